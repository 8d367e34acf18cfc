"""Shared pytest fixtures for all tests."""

import pytest

from chirpstack_sync.config import Config, ConnectionDescriptor
from chirpstack_sync.store import StoreManager
from tests.helpers.fake_mongo_client import FakeMongoServer

TEST_MONGODB_URL = "mongodb://localhost:27017/chirpstack-test"


@pytest.fixture
def test_config():
    """Create test configuration pointing at the test database."""
    return Config(mongodb_url=TEST_MONGODB_URL)


@pytest.fixture
def descriptor():
    return ConnectionDescriptor.from_uri(TEST_MONGODB_URL)


@pytest.fixture
def fake_server():
    """In-memory MongoDB stand-in; see tests/helpers/fake_mongo_client.py."""
    return FakeMongoServer()


@pytest.fixture
def store_manager(descriptor, fake_server):
    """StoreManager wired to the fake server."""
    return StoreManager(descriptor, client_factory=fake_server.client_factory)


@pytest.fixture
def sample_features():
    """Three observation features in a known order."""
    return [
        {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [6.14 + i / 100, 46.2]},
            "properties": {"gw_euid": "a840411e", "rssi": -100 + i, "seq": i},
        }
        for i in range(3)
    ]


@pytest.fixture
def sample_gateways():
    return {
        "A": {"lon": 1, "lat": 2, "desc": "x"},
        "B": {"lon": 3, "lat": 4, "desc": "y"},
    }
