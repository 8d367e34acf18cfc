"""GeoJSON record helpers for stations and observations."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union


@dataclass
class StationDescriptor:
    """Location and display name of a gateway."""

    lon: float
    lat: float
    desc: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StationDescriptor":
        return cls(lon=data["lon"], lat=data["lat"], desc=data.get("desc", ""))


def build_station_feature(euid: str, station: Union[StationDescriptor, dict[str, Any]]) -> dict[str, Any]:
    """
    Build the point feature stored for a gateway.

    The identifier is duplicated in euid and gw_euid so either field can be
    queried.
    """
    if isinstance(station, dict):
        station = StationDescriptor.from_dict(station)
    return {
        "type": "Feature",
        "geometry": {
            "type": "Point",
            "coordinates": [station.lon, station.lat],
        },
        "properties": {
            "euid": euid,
            "gw_euid": euid,
            "name": station.desc,
        },
    }


def load_gateways(path: str) -> dict[str, StationDescriptor]:
    """
    Load a gateway mapping from a JSON file.

    The file holds an object keyed by gateway id, each value a
    {lon, lat, desc} object. Key order is preserved.

    Raises:
        FileNotFoundError: If the file doesn't exist
        TypeError: If the top level is not an object
    """
    gateways_path = Path(path)
    if not gateways_path.exists():
        msg = f"Gateways file not found: {path}"
        raise FileNotFoundError(msg)

    with gateways_path.open(encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        msg = "Invalid gateways file: must be an object keyed by gateway id"
        raise TypeError(msg)

    return {gateway_id: StationDescriptor.from_dict(station) for gateway_id, station in data.items()}


def load_features(path: str) -> list[dict[str, Any]]:
    """
    Load observation features from a GeoJSON file.

    Accepts a FeatureCollection or a bare list of features.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the content is neither a FeatureCollection nor a list
    """
    features_path = Path(path)
    if not features_path.exists():
        msg = f"Observations file not found: {path}"
        raise FileNotFoundError(msg)

    with features_path.open(encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, list):
        return data
    if isinstance(data, dict) and data.get("type") == "FeatureCollection":
        return list(data.get("features", []))

    msg = "Invalid observations file: expected a FeatureCollection or a list of features"
    raise ValueError(msg)
