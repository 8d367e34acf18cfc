#!/usr/bin/env python3
"""
ChirpStack to MongoDB Sync

Writes gateway stations and observation features into MongoDB.
Stations are inserted only when missing; observations are appended.

Usage:
    chirpstack-sync --gateways gateways.json --observations observations.geojson
    chirpstack-sync --clear-observations --observations observations.geojson
    chirpstack-sync --status

Exit codes:
    0 - Sync completed successfully
    1 - Sync failed (store errors or unreadable input)
    4 - Invalid MongoDB URL
"""

import argparse
import asyncio
import logging
import sys
import traceback
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Optional

from chirpstack_sync.config import Config, configure, load_config
from chirpstack_sync.store import StoreManager, StoreResult, load_features, load_gateways


def _log(message: str, logger: Optional[logging.Logger] = None):
    """Log message using logger if provided, otherwise print."""
    if logger:
        logger.info(message)
    else:
        print(message)


def _create_manager(config: Config, client_factory=None, logger=None) -> StoreManager:
    """Validate the MongoDB URL and build the store manager."""
    descriptor = configure(config.mongodb_url, logger)
    _log(f"  ✓ Database: {descriptor.db_name}", logger)
    return StoreManager(
        descriptor,
        stations_collection=config.stations_collection,
        observations_collection=config.observations_collection,
        client_factory=client_factory,
        logger=logger,
    )


def _report_failures(results: list[StoreResult], logger=None):
    """Report any failed store operations."""
    failed = [r for r in results if not r.success]
    if failed:
        _log(f"\n⚠️  {len(failed)} store operation(s) failed:", logger)
        for result in failed:
            _log(f"  - {result.operation} on {result.collection}: {result.error}", logger)


def _print_summary(summary: dict, logger=None):
    """Print sync summary."""
    _log("\nSync complete!", logger)
    _log("=" * 60, logger)
    _log(f"Stations inserted: {summary['stations_inserted']}", logger)
    _log(f"Stations already present: {summary['stations_skipped']}", logger)
    _log(f"Observations deleted: {summary['observations_deleted']}", logger)
    _log(f"Observations inserted: {summary['observations_inserted']}", logger)
    _log("=" * 60, logger)


async def run_store_workflow(
    manager: StoreManager,
    gateways: Optional[Mapping[str, Any]] = None,
    features: Optional[Sequence[Mapping[str, Any]]] = None,
    clear_observations: bool = False,
    logger: Optional[logging.Logger] = None,
) -> dict:
    """
    Core store workflow - extracted for testability.

    Args:
        manager: StoreManager (backed by a real or fake client)
        gateways: Mapping of gateway id to {lon, lat, desc}
        features: Observation features to append
        clear_observations: If True, empty the observations collection first
        logger: Optional logger for output (if None, uses print)

    Returns:
        dict: Sync results with keys:
            - success (bool): True if every store operation succeeded (the index step is advisory)
            - index_ready (bool): True if the unique gateway index exists
            - stations_inserted (int)
            - stations_skipped (int)
            - observations_deleted (int)
            - observations_inserted (int)
            - results (list[StoreResult]): per-operation outcomes
    """
    results = []

    _log("\n[2/4] Preparing stations collection...", logger)
    # Advisory: sync_stations still checks before inserting without the index
    index = await manager.ensure_indexes()
    if not index.success:
        _log(f"  ⚠️  Continuing without unique gateway index: {index.error}", logger)

    if clear_observations:
        _log(f"\n  Clearing {manager.observations_collection}...", logger)
        results.append(await manager.clear_collection(manager.observations_collection))

    _log("\n[3/4] Syncing stations...", logger)
    if gateways:
        stations = await manager.sync_stations(gateways)
        results.append(stations)
        _log(f"  ✓ {stations.inserted} inserted, {stations.skipped} already present", logger)
    else:
        _log("  No gateways to sync", logger)

    _log("\n[4/4] Inserting observations...", logger)
    if features:
        observations = await manager.insert_observations(features)
        results.append(observations)
        _log(f"  ✓ {observations.inserted} of {len(features)} inserted", logger)
    else:
        _log("  No observations to insert", logger)

    _report_failures(results, logger)

    summary = {
        "success": all(r.success for r in results),
        "index_ready": index.success,
        "stations_inserted": sum(r.inserted for r in results if r.operation == "sync_stations"),
        "stations_skipped": sum(r.skipped for r in results if r.operation == "sync_stations"),
        "observations_deleted": sum(r.deleted for r in results if r.operation == "clear_collection"),
        "observations_inserted": sum(r.inserted for r in results if r.operation == "insert_observations"),
        "results": results,
    }
    _print_summary(summary, logger)
    return summary


async def run_store_sync(
    config: Config,
    gateways: Optional[Mapping[str, Any]] = None,
    features: Optional[Sequence[Mapping[str, Any]]] = None,
    clear_observations: bool = False,
    logger: Optional[logging.Logger] = None,
    client_factory: Optional[Callable[[str], Any]] = None,
) -> dict:
    """
    Programmatic async entry point for the store sync.

    Args:
        config: Configuration with the MongoDB URL and collection names
        gateways: Mapping of gateway id to {lon, lat, desc}
        features: Observation features to append
        clear_observations: If True, empty the observations collection first
        logger: Optional Python logger for output. If None, prints.
        client_factory: Optional MongoDB client constructor (default: AsyncMongoClient)

    Returns:
        dict: See run_store_workflow()

    Example:
        ```python
        from chirpstack_sync import run_store_sync
        from chirpstack_sync.config import Config

        config = Config(mongodb_url="mongodb://localhost:27017/chirpstack")
        results = await run_store_sync(
            config,
            gateways={"a840411e": {"lon": 6.14, "lat": 46.2, "desc": "Roof"}},
        )
        ```
    """
    _log("\n[1/4] Configuring store...", logger)
    manager = _create_manager(config, client_factory, logger)
    return await run_store_workflow(
        manager,
        gateways=gateways,
        features=features,
        clear_observations=clear_observations,
        logger=logger,
    )


async def _print_status(config: Config, logger: logging.Logger) -> bool:
    """Print document counts for both collections."""
    manager = _create_manager(config, logger=logger)
    for collection_name in (manager.stations_collection, manager.observations_collection):
        count = await manager.count_documents(collection_name)
        _log(f"  {collection_name}: {count} documents", logger)
    return True


def _console_logger(level: str) -> logging.Logger:
    """Create a simple logger that prints to console."""
    console_logger = logging.getLogger("chirpstack_sync")
    console_logger.setLevel(getattr(logging, level, logging.INFO))
    if not console_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        console_logger.addHandler(handler)
    return console_logger


async def async_main(
    env_file=None,
    gateways_path=None,
    observations_path=None,
    clear_observations=False,
    status=False,
):
    """
    CLI entry point - wraps run_store_sync() with CLI-specific concerns.

    Handles:
    - Loading configuration and input files
    - Setting up console output
    - Exit codes based on success/failure
    """
    print("=" * 60)
    print("CHIRPSTACK TO MONGODB SYNC")
    print("=" * 60)

    try:
        config = load_config(env_file=env_file)
        console_logger = _console_logger(config.log_level)

        if status:
            await _print_status(config, console_logger)
            sys.exit(0)

        gateways = load_gateways(gateways_path) if gateways_path else None
        features = load_features(observations_path) if observations_path else None

        results = await run_store_sync(
            config=config,
            gateways=gateways,
            features=features,
            clear_observations=clear_observations,
            logger=console_logger,
        )

        if results["success"]:
            print("\n✓ Sync completed successfully")
            sys.exit(0)
        else:
            print("\n❌ Sync failed - check logs for details")
            sys.exit(1)

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\n❌ SYNC FAILED: {e}")
        traceback.print_exc()
        sys.exit(1)


def main():
    """CLI entry point for chirpstack-sync command."""
    parser = argparse.ArgumentParser(description="Sync ChirpStack gateways and observations into MongoDB")
    parser.add_argument(
        "--gateways",
        help="Path to JSON object mapping gateway id to {lon, lat, desc}",
    )
    parser.add_argument(
        "--observations",
        help="Path to GeoJSON FeatureCollection of observations",
    )
    parser.add_argument(
        "--clear-observations",
        action="store_true",
        help="Delete all observations before inserting (use after a model change)",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Print document counts for both collections and exit",
    )
    parser.add_argument(
        "--env-file",
        help="Path to .env file (default: .env in working dir or system env vars)",
    )
    args = parser.parse_args()

    asyncio.run(
        async_main(
            env_file=args.env_file,
            gateways_path=args.gateways,
            observations_path=args.observations,
            clear_observations=args.clear_observations,
            status=args.status,
        )
    )


if __name__ == "__main__":
    main()
