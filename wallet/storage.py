"""
Document storage for client accounts and wallet transactions.

Client documents are keyed by client id: the in-memory store indexes them
by it and MongoDB stores it as ``_id``. Every read and write goes through
that key, never through a secondary ``uid`` query.
"""
import copy
import threading
from datetime import datetime, timezone
from typing import Optional, Protocol

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from .errors import WalletStorageError


CLIENTS = "clients"
TRANSACTIONS = "transactions"


class WalletStorage(Protocol):
    def get_client(self, client_id: str) -> Optional[dict]: ...

    def list_clients(self) -> list[dict]: ...

    def update_client(self, client_id: str, fields: dict) -> bool: ...

    def decrement_housing_balance(self, client_id: str, credits: int) -> Optional[int]:
        """Debit ``credits`` only if the balance covers it.

        Returns the new balance, or ``None`` when the balance is short or the
        client does not exist. The check and the write happen atomically.
        """
        ...

    def add_transaction(self, record: dict) -> dict: ...

    def list_transactions(self, client_id: str) -> list[dict]: ...


class InMemoryStorage:
    def __init__(self, seed: bool = False):
        self.clients: dict[str, dict] = {}
        self.transactions: list[dict] = []
        self._lock = threading.Lock()
        if seed:
            self._seed_data()

    def _seed_data(self):
        now = datetime.now(timezone.utc)
        self.clients["demo-client"] = {
            "uid": "demo-client", "name": "Demo Client",
            "email": "demo@readyaimgo.biz", "planType": "Starter",
            "housingWalletBalance": 300, "beamCoinBalance": 0,
            "createdAt": now,
        }

    def add_client(self, client_id: str, **fields) -> dict:
        doc = {"uid": client_id, **fields}
        with self._lock:
            self.clients[client_id] = doc
        return copy.deepcopy(doc)

    def get_client(self, client_id: str) -> Optional[dict]:
        with self._lock:
            doc = self.clients.get(client_id)
            return copy.deepcopy(doc) if doc is not None else None

    def list_clients(self) -> list[dict]:
        with self._lock:
            return [copy.deepcopy(doc) for doc in self.clients.values()]

    def update_client(self, client_id: str, fields: dict) -> bool:
        with self._lock:
            doc = self.clients.get(client_id)
            if doc is None:
                return False
            doc.update(fields)
            return True

    def decrement_housing_balance(self, client_id: str, credits: int) -> Optional[int]:
        with self._lock:
            doc = self.clients.get(client_id)
            if doc is None:
                return None
            current = doc.get("housingWalletBalance") or 0
            if current < credits:
                return None
            doc["housingWalletBalance"] = current - credits
            return doc["housingWalletBalance"]

    def add_transaction(self, record: dict) -> dict:
        with self._lock:
            self.transactions.append(copy.deepcopy(record))
        return record

    def list_transactions(self, client_id: str) -> list[dict]:
        with self._lock:
            entries = [copy.deepcopy(t) for t in self.transactions if t["clientId"] == client_id]
        entries.sort(key=lambda t: t["timestamp"], reverse=True)
        return entries


class MongoStorage:
    def __init__(self, database):
        self.clients = database[CLIENTS]
        self.transactions = database[TRANSACTIONS]

    @staticmethod
    def _client_doc(doc: Optional[dict]) -> Optional[dict]:
        if doc is None:
            return None
        doc = dict(doc)
        doc.setdefault("uid", str(doc.get("_id")))
        return doc

    def get_client(self, client_id: str) -> Optional[dict]:
        try:
            return self._client_doc(self.clients.find_one({"_id": client_id}))
        except PyMongoError as e:
            raise WalletStorageError(f"Failed to load client {client_id}: {e}") from e

    def list_clients(self) -> list[dict]:
        try:
            return [self._client_doc(doc) for doc in self.clients.find({})]
        except PyMongoError as e:
            raise WalletStorageError(f"Failed to list clients: {e}") from e

    def update_client(self, client_id: str, fields: dict) -> bool:
        try:
            result = self.clients.update_one({"_id": client_id}, {"$set": fields})
        except PyMongoError as e:
            raise WalletStorageError(f"Failed to update client {client_id}: {e}") from e
        return result.matched_count > 0

    def decrement_housing_balance(self, client_id: str, credits: int) -> Optional[int]:
        # $gte and $inc in one document update; a missing balance never matches
        try:
            doc = self.clients.find_one_and_update(
                {"_id": client_id, "housingWalletBalance": {"$gte": credits}},
                {"$inc": {"housingWalletBalance": -credits}},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise WalletStorageError(f"Failed to debit client {client_id}: {e}") from e
        if doc is None:
            return None
        return doc["housingWalletBalance"]

    def add_transaction(self, record: dict) -> dict:
        try:
            self.transactions.insert_one({"_id": record["id"], **record})
        except PyMongoError as e:
            raise WalletStorageError(
                f"Failed to record transaction for client {record.get('clientId')}: {e}"
            ) from e
        return record

    def list_transactions(self, client_id: str) -> list[dict]:
        try:
            cursor = self.transactions.find({"clientId": client_id}).sort("timestamp", DESCENDING)
            return [{k: v for k, v in doc.items() if k != "_id"} for doc in cursor]
        except PyMongoError as e:
            raise WalletStorageError(f"Failed to list transactions for {client_id}: {e}") from e
