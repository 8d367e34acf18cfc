"""End-to-end tests calling run_store_sync() with a fake MongoDB client."""

import pytest

from chirpstack_sync import run_store_sync
from chirpstack_sync.config import Config

DB = "chirpstack-test"


class TestE2EStoreSync:
    """Run the full configure / sync / insert workflow against the fake server."""

    @pytest.mark.asyncio
    async def test_complete_workflow(self, test_config, fake_server, sample_gateways, sample_features):
        results = await run_store_sync(
            test_config,
            gateways=sample_gateways,
            features=sample_features,
            client_factory=fake_server.client_factory,
        )

        assert results["success"] is True
        assert results["stations_inserted"] == 2
        assert results["stations_skipped"] == 0
        assert results["observations_inserted"] == 3
        assert len(fake_server.documents(DB, "chirpstack-stations")) == 2
        assert len(fake_server.documents(DB, "chirpstack-observations")) == 3
        assert fake_server.unique_indexes[(DB, "chirpstack-stations")] == {"properties.euid"}
        assert fake_server.open_clients == []

    @pytest.mark.asyncio
    async def test_rerun_skips_known_stations_and_appends_observations(
        self, test_config, fake_server, sample_gateways, sample_features
    ):
        for _ in range(2):
            results = await run_store_sync(
                test_config,
                gateways=sample_gateways,
                features=sample_features,
                client_factory=fake_server.client_factory,
            )

        assert results["stations_inserted"] == 0
        assert results["stations_skipped"] == 2
        assert len(fake_server.documents(DB, "chirpstack-stations")) == 2
        assert len(fake_server.documents(DB, "chirpstack-observations")) == 6

    @pytest.mark.asyncio
    async def test_clear_observations_first(self, test_config, fake_server, sample_features):
        fake_server.documents(DB, "chirpstack-observations").extend({"old": True} for _ in range(4))

        results = await run_store_sync(
            test_config,
            features=sample_features,
            clear_observations=True,
            client_factory=fake_server.client_factory,
        )

        assert results["observations_deleted"] == 4
        assert results["observations_inserted"] == 3
        assert all("old" not in d for d in fake_server.documents(DB, "chirpstack-observations"))

    @pytest.mark.asyncio
    async def test_custom_collection_names(self, fake_server, sample_gateways):
        config = Config(
            mongodb_url="mongodb://localhost:27017/other",
            stations_collection="stations",
            observations_collection="observations",
        )

        await run_store_sync(config, gateways=sample_gateways, client_factory=fake_server.client_factory)

        assert len(fake_server.documents("other", "stations")) == 2

    @pytest.mark.asyncio
    async def test_store_failure_reported_not_raised(self, test_config, fake_server, sample_features):
        fake_server.fail_insert_at = 0

        results = await run_store_sync(
            test_config,
            features=sample_features,
            client_factory=fake_server.client_factory,
        )

        assert results["success"] is False
        assert results["observations_inserted"] == 0
        failed = [r for r in results["results"] if not r.success]
        assert [r.operation for r in failed] == ["insert_observations"]

    @pytest.mark.asyncio
    async def test_existing_duplicate_stations_do_not_fail_sync(
        self, test_config, fake_server, sample_gateways, sample_features
    ):
        stations = fake_server.documents(DB, "chirpstack-stations")
        stations.extend({"properties": {"euid": "A"}} for _ in range(2))

        for _ in range(2):
            results = await run_store_sync(
                test_config,
                gateways=sample_gateways,
                features=sample_features,
                client_factory=fake_server.client_factory,
            )

            assert results["success"] is True
            assert results["index_ready"] is False

        assert results["stations_skipped"] == 2
        euids = [s["properties"]["euid"] for s in fake_server.documents(DB, "chirpstack-stations")]
        assert euids == ["A", "A", "B"]
        assert len(fake_server.documents(DB, "chirpstack-observations")) == 6

    @pytest.mark.asyncio
    async def test_invalid_url_exits_before_connecting(self, fake_server, sample_gateways):
        config = Config(mongodb_url="mongodb://localhost:27017")

        with pytest.raises(SystemExit) as exc_info:
            await run_store_sync(config, gateways=sample_gateways, client_factory=fake_server.client_factory)

        assert exc_info.value.code == 4
        assert fake_server.clients_created == 0
