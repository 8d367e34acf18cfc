"""Configuration loading for the ChirpStack store sync."""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Exit status reserved for an unusable MongoDB URL
EXIT_CONFIG_ERROR = 4

# scheme:, empty, host:port, database
URI_SEGMENT_COUNT = 4

DEFAULT_STATIONS_COLLECTION = "chirpstack-stations"
DEFAULT_OBSERVATIONS_COLLECTION = "chirpstack-observations"


@dataclass(frozen=True)
class ConnectionDescriptor:
    """MongoDB coordinates: the full connection URI and its database name."""

    uri: str
    db_name: str

    @classmethod
    def from_uri(cls, uri: str) -> "ConnectionDescriptor":
        """
        Build a descriptor from a URI of the form scheme://host:port/dbName.

        Args:
            uri: MongoDB connection URI

        Returns:
            ConnectionDescriptor with db_name taken from the last path segment

        Raises:
            ValueError: If the URI does not split into exactly four segments
        """
        segments = uri.split("/")
        if len(segments) != URI_SEGMENT_COUNT:
            msg = f"Configuration error, invalid mongo url {uri}"
            raise ValueError(msg)
        return cls(uri=uri, db_name=segments[3])


@dataclass
class Config:
    """Configuration for MongoDB access."""

    mongodb_url: str
    stations_collection: str = DEFAULT_STATIONS_COLLECTION
    observations_collection: str = DEFAULT_OBSERVATIONS_COLLECTION
    log_level: str = "INFO"


def configure(uri: str, logger: Optional[logging.Logger] = None) -> ConnectionDescriptor:
    """
    Parse the MongoDB URL once at startup.

    An invalid URL is fatal: the error is logged and the process exits with
    EXIT_CONFIG_ERROR before any connection is attempted.
    """
    try:
        return ConnectionDescriptor.from_uri(uri)
    except ValueError as e:
        (logger or logging.getLogger(__name__)).error(str(e))
        sys.exit(EXIT_CONFIG_ERROR)


def load_config(env_file: Optional[str] = None) -> Config:
    """
    Load configuration from environment variables.

    Environment variable loading precedence:
    1. If env_file provided via CLI, load from that path
    2. Otherwise, check for .env in current working directory
    3. Otherwise, use system environment variables

    Args:
        env_file: Optional path to .env file (CLI parameter)

    Returns:
        Config object with loaded settings

    Raises:
        ValueError: If MONGODB_URL is missing
    """
    if env_file:
        load_dotenv(env_file)
    elif Path(".env").exists():
        load_dotenv(".env")

    mongodb_url = os.getenv("MONGODB_URL")
    if not mongodb_url:
        msg = "Missing required environment variables: MONGODB_URL"
        raise ValueError(msg)

    return Config(
        mongodb_url=mongodb_url.strip(),
        stations_collection=os.getenv("STATIONS_COLLECTION") or DEFAULT_STATIONS_COLLECTION,
        observations_collection=os.getenv("OBSERVATIONS_COLLECTION") or DEFAULT_OBSERVATIONS_COLLECTION,
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )
