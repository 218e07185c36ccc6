"""
Admin reporting over clients and BEAM Coin activity.

The BEAM ledger's admin endpoints are preferred. When they are unreachable,
return nothing or return rows that do not validate, client data comes from
the document store instead. Malformed ledger transactions are skipped.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from .beam import BeamLedgerClient
from .errors import LedgerUnavailableError, WalletValidationError
from .models import AdminClient, AdminTransaction, AdminStats, MonthlyActivity
from .storage import WalletStorage

logger = logging.getLogger(__name__)

CLIENT_SORT_FIELDS = {
    "uid": "uid",
    "name": "name",
    "email": "email",
    "planType": "plan_type",
    "beamCoinBalance": "beam_coin_balance",
    "housingWalletBalance": "housing_wallet_balance",
    "lastActive": "last_active",
    "createdAt": "created_at",
}


def _as_text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _client_from_document(doc: dict) -> AdminClient:
    return AdminClient(
        uid=str(doc.get("uid") or doc.get("_id")),
        name=doc.get("name"),
        email=doc.get("email"),
        plan_type=doc.get("planType"),
        beam_coin_balance=doc.get("beamCoinBalance") or 0,
        housing_wallet_balance=doc.get("housingWalletBalance") or 0,
        stripe_customer_id=doc.get("stripeCustomerId"),
        last_active=_as_text(doc.get("lastActive")),
        created_at=_as_text(doc.get("createdAt")),
    )


def _sorted_nulls_last(items: list, key: str, descending: bool) -> list:
    present = [i for i in items if getattr(i, key) is not None]
    missing = [i for i in items if getattr(i, key) is None]
    present.sort(key=lambda i: getattr(i, key), reverse=descending)
    return present + missing


class AdminReportService:
    def __init__(self, storage: WalletStorage, beam: Optional[BeamLedgerClient] = None):
        self.storage = storage
        self.beam = beam

    def clients(
        self,
        search: Optional[str] = None,
        plan: Optional[str] = None,
        sort_by: str = "beamCoinBalance",
        descending: bool = True,
    ) -> list[AdminClient]:
        if sort_by not in CLIENT_SORT_FIELDS:
            raise WalletValidationError(
                f"Cannot sort clients by {sort_by!r}; expected one of {', '.join(CLIENT_SORT_FIELDS)}"
            )

        clients = self._load_clients()

        if search:
            needle = search.strip().lower()
            clients = [
                c for c in clients
                if any(needle in (value or "").lower() for value in (c.uid, c.name, c.email))
            ]
        if plan:
            if plan.lower() == "none":
                clients = [c for c in clients if not c.plan_type]
            else:
                clients = [c for c in clients if (c.plan_type or "").lower() == plan.lower()]

        return _sorted_nulls_last(clients, CLIENT_SORT_FIELDS[sort_by], descending)

    def transactions(
        self, limit: int = 100, type: Optional[str] = None, uid: Optional[str] = None
    ) -> list[AdminTransaction]:
        if limit <= 0:
            raise WalletValidationError("limit must be positive")

        rows = []
        if self.beam is not None:
            try:
                rows = self.beam.get_admin_transactions(limit=limit)
            except LedgerUnavailableError as e:
                logger.warning("BEAM ledger admin transactions endpoint not available: %s", e)

        transactions = []
        for row in rows:
            try:
                transactions.append(AdminTransaction.model_validate(row))
            except ValidationError as e:
                logger.warning("Skipping malformed BEAM ledger transaction %r: %s", row, e)
        if type:
            transactions = [t for t in transactions if t.type == type]
        if uid:
            transactions = [t for t in transactions if t.uid == uid]
        return _sorted_nulls_last(transactions, "timestamp", descending=True)[:limit]

    def stats(self) -> AdminStats:
        if self.beam is not None:
            try:
                remote = self.beam.get_admin_stats()
                if remote.get("totalClients"):
                    return AdminStats.model_validate(remote)
            except LedgerUnavailableError as e:
                logger.warning("BEAM ledger admin stats endpoint not available: %s", e)
            except ValidationError as e:
                logger.warning("BEAM ledger admin stats malformed, computing locally: %s", e)

        clients = self._load_clients()
        totals = {"earn": defaultdict(float), "spend": defaultdict(float)}
        for t in self.transactions():
            if t.timestamp and t.type in totals:
                totals[t.type][t.timestamp[:7]] += t.amount
        months = sorted(set(totals["earn"]) | set(totals["spend"]))

        return AdminStats(
            total_beam_coins=sum(c.beam_coin_balance or 0 for c in clients),
            total_clients=len(clients),
            total_housing_credits=sum(c.housing_wallet_balance for c in clients),
            monthly_activity=[
                MonthlyActivity(month=m, earn=totals["earn"][m], spend=totals["spend"][m])
                for m in months
            ],
        )

    def _load_clients(self) -> list[AdminClient]:
        if self.beam is not None:
            try:
                rows = self.beam.get_admin_clients()
                if rows:
                    return [AdminClient.model_validate(row) for row in rows]
                logger.info("BEAM ledger returned no admin clients, falling back to document store")
            except LedgerUnavailableError as e:
                logger.warning("BEAM ledger admin clients endpoint not available, falling back: %s", e)
            except ValidationError as e:
                logger.warning("BEAM ledger admin clients malformed, falling back: %s", e)
        return [_client_from_document(doc) for doc in self.storage.list_clients()]
