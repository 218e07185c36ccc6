"""
Tests for application resource handles.

Tests cover:
1. Concurrent first access builds one store and one ledger client
2. MongoDB client options
3. Invalid MongoDB URIs and close()
"""

import threading
import time
from unittest.mock import MagicMock, patch

import pytest

from wallet.config import Settings
from wallet.errors import WalletStorageError
from wallet.resources import WalletResources
from wallet.service import WalletService
from wallet.storage import InMemoryStorage, MongoStorage


class SlowResources(WalletResources):
    """Counts handle construction and holds each build open for a moment."""

    def __init__(self, settings):
        super().__init__(settings)
        self.storage_builds = 0
        self.beam_builds = 0

    def _build_storage(self):
        self.storage_builds += 1
        time.sleep(0.1)
        store = InMemoryStorage()
        store.add_client("c1", housingWalletBalance=300)
        return store

    def _build_beam(self):
        self.beam_builds += 1
        time.sleep(0.1)
        return MagicMock()


def _race(resources, attribute, parties=4):
    barrier = threading.Barrier(parties)
    seen = []

    def first_access():
        barrier.wait(timeout=5)
        seen.append(getattr(resources, attribute))

    threads = [threading.Thread(target=first_access) for _ in range(parties)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    return seen


class TestLazyHandles:
    def test_concurrent_first_access_builds_one_store(self):
        """Test that racing first requests share a single store, so no debit is lost."""
        resources = SlowResources(Settings())

        stores = _race(resources, "storage")

        assert resources.storage_builds == 1
        assert len(stores) == 4
        assert all(s is stores[0] for s in stores)

        WalletService(stores[1]).redeem("c1", 100)
        assert resources.storage.get_client("c1")["housingWalletBalance"] == 200

    def test_concurrent_first_access_builds_one_ledger_client(self):
        resources = SlowResources(Settings())

        clients = _race(resources, "beam")

        assert resources.beam_builds == 1
        assert all(c is clients[0] for c in clients)

    def test_injected_handles_are_not_rebuilt(self):
        store = InMemoryStorage()
        resources = SlowResources(Settings())
        resources._storage = store

        assert resources.storage is store
        assert resources.storage_builds == 0


class TestMongoClientOptions:
    def test_client_is_bounded_and_timezone_aware(self):
        """Test the MongoDB client options: bounded server selection and UTC-aware datetimes."""
        settings = Settings(mongodb_uri="mongodb://db.example:27017", mongodb_db="wallet", mongodb_timeout_ms=2500)

        with patch("wallet.resources.MongoClient") as mongo_client:
            storage = WalletResources(settings).storage

        mongo_client.assert_called_once_with(
            "mongodb://db.example:27017", serverSelectionTimeoutMS=2500, tz_aware=True,
        )
        mongo_client.return_value.__getitem__.assert_called_once_with("wallet")
        assert isinstance(storage, MongoStorage)

    def test_invalid_uri_raises_storage_error(self):
        resources = WalletResources(Settings(mongodb_uri="http://not-mongo"))

        with pytest.raises(WalletStorageError, match="Could not initialise MongoDB client"):
            resources.storage

    def test_close_releases_mongo_client(self):
        settings = Settings(mongodb_uri="mongodb://db.example:27017")

        with patch("wallet.resources.MongoClient") as mongo_client:
            resources = WalletResources(settings)
            first = resources.storage
            resources.close()

        mongo_client.return_value.close.assert_called_once()
        assert resources._storage is None
        assert first is not None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
