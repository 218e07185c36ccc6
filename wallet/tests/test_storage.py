"""
Tests for wallet storage backends.

The MongoDB backend is exercised against mocked pymongo collections.
"""

from unittest.mock import MagicMock

import pytest
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from wallet.errors import WalletStorageError
from wallet.storage import InMemoryStorage, MongoStorage


class TestInMemoryStorage:
    def test_conditional_decrement(self):
        storage = InMemoryStorage()
        storage.add_client("c1", housingWalletBalance=10)

        assert storage.decrement_housing_balance("c1", 4) == 6
        assert storage.decrement_housing_balance("c1", 7) is None
        assert storage.decrement_housing_balance("c1", 6) == 0
        assert storage.decrement_housing_balance("missing", 1) is None

    def test_returned_documents_are_copies(self):
        storage = InMemoryStorage()
        storage.add_client("c1", housingWalletBalance=10)

        doc = storage.get_client("c1")
        doc["housingWalletBalance"] = 1000

        assert storage.get_client("c1")["housingWalletBalance"] == 10

    def test_update_missing_client(self):
        assert InMemoryStorage().update_client("missing", {"beamCoinBalance": 1}) is False

    def test_seeded_demo_client(self):
        storage = InMemoryStorage(seed=True)

        assert storage.get_client("demo-client")["housingWalletBalance"] == 300


@pytest.fixture
def database():
    collections = {"clients": MagicMock(), "transactions": MagicMock()}
    db = MagicMock()
    db.__getitem__.side_effect = collections.__getitem__
    return db


class TestMongoStorage:
    def test_decrement_is_single_conditional_update(self, database):
        """Test that the balance check and debit are one find_one_and_update."""
        clients = database["clients"]
        clients.find_one_and_update.return_value = {"_id": "c1", "housingWalletBalance": 200}

        new_balance = MongoStorage(database).decrement_housing_balance("c1", 100)

        assert new_balance == 200
        clients.find_one_and_update.assert_called_once_with(
            {"_id": "c1", "housingWalletBalance": {"$gte": 100}},
            {"$inc": {"housingWalletBalance": -100}},
            return_document=ReturnDocument.AFTER,
        )

    def test_decrement_not_matched(self, database):
        database["clients"].find_one_and_update.return_value = None

        assert MongoStorage(database).decrement_housing_balance("c1", 100) is None

    def test_get_client_by_primary_key(self, database):
        database["clients"].find_one.return_value = {"_id": "c1", "housingWalletBalance": 5}

        doc = MongoStorage(database).get_client("c1")

        database["clients"].find_one.assert_called_once_with({"_id": "c1"})
        assert doc["uid"] == "c1"

    def test_update_client_reports_match(self, database):
        database["clients"].update_one.return_value = MagicMock(matched_count=0)

        assert MongoStorage(database).update_client("c1", {"beamCoinBalance": 3}) is False
        database["clients"].update_one.assert_called_once_with(
            {"_id": "c1"}, {"$set": {"beamCoinBalance": 3}}
        )

    def test_add_transaction_uses_record_id(self, database):
        record = {"id": "tx-1", "clientId": "c1", "type": "redemption", "amount": 150.0}

        MongoStorage(database).add_transaction(record)

        database["transactions"].insert_one.assert_called_once_with({"_id": "tx-1", **record})

    def test_list_transactions_newest_first(self, database):
        cursor = database["transactions"].find.return_value
        cursor.sort.return_value = [{"_id": "tx-1", "id": "tx-1", "clientId": "c1"}]

        rows = MongoStorage(database).list_transactions("c1")

        database["transactions"].find.assert_called_once_with({"clientId": "c1"})
        cursor.sort.assert_called_once_with("timestamp", DESCENDING)
        assert rows == [{"id": "tx-1", "clientId": "c1"}]

    def test_driver_errors_wrapped(self, database):
        database["clients"].find_one_and_update.side_effect = PyMongoError("primary stepped down")

        with pytest.raises(WalletStorageError, match="primary stepped down"):
            MongoStorage(database).decrement_housing_balance("c1", 1)
