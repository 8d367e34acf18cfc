"""MongoDB store manager for ChirpStack stations and observations."""

import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from pymongo import ASCENDING, AsyncMongoClient
from pymongo.errors import DuplicateKeyError

from ..config import DEFAULT_OBSERVATIONS_COLLECTION, DEFAULT_STATIONS_COLLECTION, ConnectionDescriptor
from .records import StationDescriptor, build_station_feature

STATION_KEY = "properties.euid"


@dataclass
class StoreResult:
    """Outcome of a store operation."""

    operation: str
    collection: str
    inserted: int = 0
    skipped: int = 0
    deleted: int = 0
    failed: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


class StoreManager:
    """
    Persists gateway stations and observation features to MongoDB.

    Every operation opens its own client, runs its queries and closes the
    client again, whatever the outcome. Store errors never escape an
    operation: they are logged and reported through StoreResult.
    """

    def __init__(
        self,
        descriptor: ConnectionDescriptor,
        stations_collection: str = DEFAULT_STATIONS_COLLECTION,
        observations_collection: str = DEFAULT_OBSERVATIONS_COLLECTION,
        client_factory: Optional[Callable[[str], Any]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.descriptor = descriptor
        self.stations_collection = stations_collection
        self.observations_collection = observations_collection
        self.client_factory = client_factory or AsyncMongoClient
        self.logger = logger or logging.getLogger(__name__)

    @property
    def db_name(self) -> str:
        return self.descriptor.db_name

    @asynccontextmanager
    async def _database(self) -> AsyncIterator[Any]:
        """Open a client for the configured database and close it on exit."""
        client = self.client_factory(self.descriptor.uri)
        try:
            await client.aconnect()
            self.logger.debug(f"Connected to MongoDB {self.db_name}")
            yield client[self.db_name]
        finally:
            await client.close()
            self.logger.debug("MongoDB connection closed")

    async def clear_collection(self, collection_name: str) -> StoreResult:
        """
        Delete every document in a collection.

        Used on the observations collection when the record model changes.
        Failures are logged as warnings and returned, never raised.
        """
        result = StoreResult(operation="clear_collection", collection=collection_name)
        try:
            async with self._database() as db:
                deleted = await db[collection_name].delete_many({})
                result.deleted = deleted.deleted_count
                self.logger.info(f"Deleted {result.deleted} items from {collection_name}.")
        except Exception as e:
            result.error = str(e)
            self.logger.warning(f"Error cleaning collection {collection_name}: {e}")
        return result

    async def insert_observations(self, features: Iterable[Mapping[str, Any]]) -> StoreResult:
        """
        Insert observation features one document at a time, in input order.

        The first failing insert aborts the rest of the batch; documents
        already written stay written. Failures (including features the
        driver cannot encode) are logged as warnings and returned.
        """
        features = list(features)
        collection_name = self.observations_collection
        result = StoreResult(operation="insert_observations", collection=collection_name)
        if not features:
            return result

        try:
            async with self._database() as db:
                collection = db[collection_name]
                for feature in features:
                    # insert_one mutates its argument with _id
                    await collection.insert_one(dict(feature))
                    result.inserted += 1
            self.logger.info(f"Inserted {result.inserted} features into {collection_name}")
        except Exception as e:
            result.failed = len(features) - result.inserted
            result.error = f"{type(e).__name__}: {e}"
            self.logger.warning(
                f"Error inserting GeoJSON into {collection_name} after {result.inserted} of {len(features)}: "
                f"{result.error}"
            )
        return result

    async def sync_stations(self, gateways: Mapping[str, Union[StationDescriptor, dict[str, Any]]]) -> StoreResult:
        """
        Insert a station record for each gateway not yet stored.

        Existing stations are left untouched. A station found by find_one is
        skipped; otherwise it is inserted, and a DuplicateKeyError from the
        unique index (another writer got there first) also counts as skipped.
        Iteration follows the mapping's own order and stops at the first
        error.
        """
        collection_name = self.stations_collection
        result = StoreResult(operation="sync_stations", collection=collection_name)
        if not gateways:
            return result

        try:
            async with self._database() as db:
                collection = db[collection_name]
                for gateway_id, station in gateways.items():
                    if await collection.find_one({STATION_KEY: gateway_id}) is not None:
                        result.skipped += 1
                        continue

                    try:
                        await collection.insert_one(build_station_feature(gateway_id, station))
                    except DuplicateKeyError:
                        result.skipped += 1
                        continue

                    result.inserted += 1
                    self.logger.info(f"Gateway ({gateway_id}) inserted successfully into {collection_name}")
        except Exception as e:
            result.failed = len(gateways) - result.inserted - result.skipped
            result.error = f"{type(e).__name__}: {e}"
            self.logger.error(f"Error adding gateway in collection {collection_name}: {result.error}")
        return result

    async def ensure_indexes(self) -> StoreResult:
        """
        Create the unique gateway index on the stations collection.

        A collection already holding duplicate gateways cannot take the
        index; the duplicated ids are logged and counted in failed.
        """
        collection_name = self.stations_collection
        result = StoreResult(operation="ensure_indexes", collection=collection_name)
        try:
            async with self._database() as db:
                collection = db[collection_name]
                try:
                    name = await collection.create_index([(STATION_KEY, ASCENDING)], unique=True)
                    self.logger.debug(f"Index {name} ready on {collection_name}")
                except DuplicateKeyError as e:
                    duplicates = await self._duplicate_gateways(collection)
                    result.failed = len(duplicates)
                    result.error = str(e)
                    self.logger.warning(
                        f"Unique index not created, duplicate gateways in {collection_name}: {', '.join(duplicates)}"
                    )
        except Exception as e:
            result.error = str(e)
            self.logger.warning(f"Error creating index on {collection_name}: {e}")
        return result

    @staticmethod
    async def _duplicate_gateways(collection: Any) -> list[str]:
        """Gateway ids stored more than once."""
        cursor = await collection.aggregate([
            {"$group": {"_id": f"${STATION_KEY}", "count": {"$sum": 1}}},
            {"$match": {"count": {"$gt": 1}}},
            {"$sort": {"_id": 1}},
        ])
        return [row["_id"] async for row in cursor]

    async def count_documents(self, collection_name: str, query: Optional[dict[str, Any]] = None) -> int:
        """Count documents matching query. Store errors propagate."""
        async with self._database() as db:
            return await db[collection_name].count_documents(query or {})
