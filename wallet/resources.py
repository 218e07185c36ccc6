import logging
import threading
from typing import Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from .beam import BeamLedgerClient
from .config import Settings
from .errors import WalletStorageError
from .storage import WalletStorage, InMemoryStorage, MongoStorage

logger = logging.getLogger(__name__)


class WalletResources:
    """External handles owned by one application instance.

    Nothing connects at construction. The store and the ledger client are
    built on first access, so a bad ``MONGODB_URI`` fails the first request
    that needs storage rather than process start. Sync routes run in a
    threadpool, so first access is serialised and every request sees the
    same handles. ``close()`` releases both.
    """

    def __init__(
        self,
        settings: Settings,
        storage: Optional[WalletStorage] = None,
        beam: Optional[BeamLedgerClient] = None,
    ):
        self.settings = settings
        self._storage = storage
        self._beam = beam
        self._mongo: Optional[MongoClient] = None
        self._lock = threading.Lock()

    @property
    def storage(self) -> WalletStorage:
        if self._storage is None:
            with self._lock:
                if self._storage is None:
                    self._storage = self._build_storage()
        return self._storage

    @property
    def beam(self) -> BeamLedgerClient:
        if self._beam is None:
            with self._lock:
                if self._beam is None:
                    self._beam = self._build_beam()
        return self._beam

    def _build_beam(self) -> BeamLedgerClient:
        return BeamLedgerClient(
            self.settings.beam_ledger_url,
            admin_url=self.settings.beam_ledger_admin_url,
            token=self.settings.beam_ledger_token,
            timeout=self.settings.beam_ledger_timeout,
        )

    def _build_storage(self) -> WalletStorage:
        if not self.settings.mongodb_uri:
            logger.warning("MONGODB_URI not set, using in-memory wallet storage")
            return InMemoryStorage(seed=True)
        try:
            self._mongo = MongoClient(
                self.settings.mongodb_uri,
                serverSelectionTimeoutMS=self.settings.mongodb_timeout_ms,
                tz_aware=True,
            )
        except (PyMongoError, ValueError) as e:
            raise WalletStorageError(f"Could not initialise MongoDB client: {e}") from e
        logger.info("Using MongoDB wallet storage (database %s)", self.settings.mongodb_db)
        return MongoStorage(self._mongo[self.settings.mongodb_db])

    def close(self):
        with self._lock:
            if self._beam is not None:
                self._beam.close()
                self._beam = None
            if self._mongo is not None:
                self._mongo.close()
                self._mongo = None
            self._storage = None
