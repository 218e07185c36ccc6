import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from .beam import BeamLedgerClient
from .errors import (
    WalletServiceError,
    WalletValidationError,
    ClientNotFoundError,
    InsufficientBalanceError,
    LedgerUnavailableError,
    WalletStorageError,
)
from .models import (
    TransactionType,
    BeamTransactionType,
    ClientAccount,
    RedemptionRecord,
    RedemptionResult,
    HousingWallet,
    BeamBalanceResponse,
    BeamTransactionResponse,
    MirrorResult,
)
from .storage import WalletStorage, InMemoryStorage

__all__ = [
    "CREDIT_VALUE",
    "DEFAULT_HOUSING_CREDITS",
    "WalletService",
    "WalletServiceError",
    "WalletValidationError",
    "ClientNotFoundError",
    "InsufficientBalanceError",
    "LedgerUnavailableError",
    "WalletStorageError",
]

logger = logging.getLogger(__name__)

CREDIT_VALUE = 1.5
DEFAULT_HOUSING_CREDITS = 300
HOUSING_WALLET_DESCRIPTION = "Housing credits available for hotel redemptions"


def credit_value(credits: int) -> float:
    return credits * CREDIT_VALUE


class WalletService:
    def __init__(self, storage: Optional[WalletStorage] = None, beam: Optional[BeamLedgerClient] = None):
        self.storage = storage or InMemoryStorage()
        self.beam = beam

    def redeem(self, client_id: str, credits: int, description: Optional[str] = None) -> RedemptionResult:
        """Debit housing credits and record the redemption.

        The debit is a conditional decrement in storage, so concurrent
        redemptions can never take the balance below zero. The audit record
        is written after the debit and is not rolled back with it. The BEAM
        ledger mirror is best-effort and never changes the result.

        Not idempotent: calling twice debits twice.
        """
        self._require_client_id(client_id)
        if isinstance(credits, bool) or not isinstance(credits, int) or credits <= 0:
            raise WalletValidationError("credits must be a positive integer")

        client = self._get_client(client_id)
        new_balance = self.storage.decrement_housing_balance(client_id, credits)
        if new_balance is None:
            available = client.housing_wallet_balance or 0
            logger.info(
                "Redemption rejected for %s: requested %d, available %d", client_id, credits, available
            )
            raise InsufficientBalanceError("Insufficient housing wallet credits")

        record = RedemptionRecord(
            id=str(uuid4()),
            client_id=client_id,
            type=TransactionType.REDEMPTION,
            amount=credit_value(credits),
            timestamp=datetime.now(timezone.utc),
            description=description or f"Housing redemption - {credits} credits",
        )
        try:
            self.storage.add_transaction(record.to_document())
        except WalletStorageError:
            logger.error(
                "Housing wallet for %s debited by %d credits but the redemption record was not saved",
                client_id, credits,
            )
            raise

        self._mirror_spend(client_id, credits, description or f"Redeemed {credits} housing credits")

        logger.info("Redeemed %d housing credits for %s, new balance %d", credits, client_id, new_balance)
        return RedemptionResult(new_balance=new_balance, redeemed=credits)

    def _mirror_spend(self, client_id: str, credits: int, description: str) -> MirrorResult:
        """Best-effort: post the redemption as a BEAM ``spend``; failures are logged and dropped."""
        if self.beam is None:
            logger.debug("No BEAM ledger configured, skipping spend mirror for %s", client_id)
            return MirrorResult(ok=False, error="BEAM ledger not configured")
        try:
            transaction = self.beam.add_transaction(client_id, BeamTransactionType.SPEND, credits, description)
        except LedgerUnavailableError as e:
            logger.warning("BEAM spend mirror failed for %s (%d credits): %s", client_id, credits, e)
            return MirrorResult(ok=False, error=str(e))
        return MirrorResult(ok=True, transaction=transaction)

    def get_housing_wallet(self, client_id: str) -> HousingWallet:
        """Housing credits and their dollar value for one client.

        Only a balance that was never set reports the 300-credit grant. A
        stored balance of 0 reports 0, so a fully spent wallet does not
        appear to refill; older deployments treated 0 as unset and showed 300.
        """
        self._require_client_id(client_id)
        client = self._get_client(client_id)
        credits = client.housing_wallet_balance
        if credits is None:
            credits = DEFAULT_HOUSING_CREDITS
        return HousingWallet(
            credits=credits,
            value=credit_value(credits),
            description=HOUSING_WALLET_DESCRIPTION,
        )

    def list_transactions(self, client_id: str) -> list[RedemptionRecord]:
        self._require_client_id(client_id)
        return [RedemptionRecord.model_validate(t) for t in self.storage.list_transactions(client_id)]

    def record_transaction(
        self, client_id: str, type: TransactionType, amount: float, description: str
    ) -> RedemptionRecord:
        self._require_client_id(client_id)
        if not description:
            raise WalletValidationError("description is required")
        record = RedemptionRecord(
            id=str(uuid4()),
            client_id=client_id,
            type=TransactionType(type),
            amount=float(amount),
            timestamp=datetime.now(timezone.utc),
            description=description,
        )
        self.storage.add_transaction(record.to_document())
        return record

    def beam_balance(self, client_id: str, id_token: Optional[str] = None) -> BeamBalanceResponse:
        """Live BEAM balance, refreshing the cached copy on the client document.

        Falls back to the cached balance when the ledger is down.
        """
        self._require_client_id(client_id)
        try:
            balance = self._require_beam().get_balance(client_id, id_token=id_token)
        except LedgerUnavailableError as e:
            client = self._find_client(client_id)
            if client is None:
                raise
            logger.warning("BEAM ledger unavailable for %s, serving cached balance: %s", client_id, e)
            return BeamBalanceResponse(
                balance=client.beam_coin_balance or 0,
                uid=client_id,
                cached=True,
                error="Ledger unavailable, showing cached balance",
            )

        now = datetime.now(timezone.utc)
        try:
            self.storage.update_client(
                client_id, {"beamCoinBalance": balance.balance, "beamCoinLastUpdated": now}
            )
        except WalletStorageError as e:
            logger.error("Could not cache BEAM balance for %s: %s", client_id, e)
        return BeamBalanceResponse(balance=balance.balance, uid=client_id, last_updated=now)

    def beam_transaction(
        self,
        client_id: str,
        type: BeamTransactionType,
        amount: float,
        description: str,
        id_token: Optional[str] = None,
    ) -> BeamTransactionResponse:
        self._require_client_id(client_id)
        type = BeamTransactionType(type)
        result = self._require_beam().add_transaction(client_id, type, amount, description, id_token=id_token)

        try:
            client = self._find_client(client_id)
            if client is not None:
                current = client.beam_coin_balance or 0
                if type == BeamTransactionType.EARN:
                    new_balance = current + amount
                else:
                    new_balance = max(0, current - amount)
                self.storage.update_client(client_id, {
                    "beamCoinBalance": new_balance,
                    "beamCoinLastUpdated": datetime.now(timezone.utc),
                })
        except WalletStorageError as e:
            logger.error("Could not update cached BEAM balance for %s: %s", client_id, e)

        return BeamTransactionResponse(transaction=result)

    def beam_transactions(self, client_id: str, id_token: Optional[str] = None) -> list:
        self._require_client_id(client_id)
        return self._require_beam().get_transactions(client_id, id_token=id_token)

    def _find_client(self, client_id: str) -> Optional[ClientAccount]:
        doc = self.storage.get_client(client_id)
        if doc is None:
            return None
        return ClientAccount.model_validate({"uid": client_id, **doc})

    def _get_client(self, client_id: str) -> ClientAccount:
        client = self._find_client(client_id)
        if client is None:
            raise ClientNotFoundError(f"Client {client_id} not found")
        return client

    def _require_beam(self) -> BeamLedgerClient:
        if self.beam is None:
            raise LedgerUnavailableError("BEAM ledger is not configured")
        return self.beam

    @staticmethod
    def _require_client_id(client_id: str):
        if not client_id or not str(client_id).strip():
            raise WalletValidationError("Client ID required")
