import pytest
from fastapi.testclient import TestClient

from wallet.api import create_app
from wallet.config import Settings
from wallet.errors import LedgerUnavailableError
from wallet.models import BeamBalance, BeamTransactionType
from wallet.resources import WalletResources
from wallet.service import WalletService
from wallet.storage import InMemoryStorage


CLIENT_ID = "client-123"


class FakeBeamLedger:
    """Stands in for the BEAM ledger; records calls and can be switched off."""

    def __init__(self, balance: float = 0, fail: bool = False):
        self.balance = balance
        self.fail = fail
        self.posted = []
        self.admin_clients = []
        self.admin_transactions = []
        self.admin_stats = {}

    def _check(self):
        if self.fail:
            raise LedgerUnavailableError("BEAM Ledger API error: 500 Internal Server Error - boom")

    def get_balance(self, uid, id_token=None):
        self._check()
        return BeamBalance(uid=uid, balance=self.balance)

    def add_transaction(self, uid, type, amount, description, id_token=None):
        self._check()
        entry = {
            "uid": uid,
            "type": BeamTransactionType(type).value,
            "amount": amount,
            "description": description,
        }
        self.posted.append(entry)
        return entry

    def get_transactions(self, uid, id_token=None):
        self._check()
        return [t for t in self.posted if t["uid"] == uid]

    def get_admin_clients(self, id_token=None):
        self._check()
        return self.admin_clients

    def get_admin_transactions(self, limit=100, id_token=None):
        self._check()
        return self.admin_transactions[:limit]

    def get_admin_stats(self, id_token=None):
        self._check()
        return self.admin_stats

    def close(self):
        pass


@pytest.fixture
def storage():
    store = InMemoryStorage()
    store.add_client(CLIENT_ID, name="Test Client", email="test@example.com", housingWalletBalance=300)
    return store


@pytest.fixture
def beam():
    return FakeBeamLedger()


@pytest.fixture
def service(storage, beam):
    return WalletService(storage, beam)


@pytest.fixture
def client(storage, beam):
    settings = Settings()
    app = create_app(settings=settings, resources=WalletResources(settings, storage=storage, beam=beam))
    return TestClient(app)
