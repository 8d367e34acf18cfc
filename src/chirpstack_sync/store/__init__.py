"""MongoDB store operations for the sync.

This package provides:
- StoreManager: per-operation connections to the stations and observations collections
- StoreResult: outcome of a store operation
- StationDescriptor / build_station_feature: station record construction
"""

from .manager import StoreManager, StoreResult
from .records import StationDescriptor, build_station_feature, load_features, load_gateways

__all__ = [
    "StationDescriptor",
    "StoreManager",
    "StoreResult",
    "build_station_feature",
    "load_features",
    "load_gateways",
]
