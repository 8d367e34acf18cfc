"""ChirpStack gateway and observation sync into MongoDB."""

from chirpstack_sync.scripts.sync import run_store_sync
from chirpstack_sync.store import StoreManager, StoreResult

__version__ = "0.1.0"

__all__ = ["StoreManager", "StoreResult", "__version__", "run_store_sync"]
