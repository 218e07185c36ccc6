"""
Readyaimgo Wallet Service

This package provides:
- Housing Wallet redemptions with an atomic, never-negative balance debit
- Append-only redemption records
- Best-effort mirroring of redemptions to the BEAM Coin ledger
- BEAM Coin balance lookups with a cached fallback
- Admin reporting over clients and ledger activity
"""

from .models import (
    TransactionType,
    BeamTransactionType,
    RedemptionRecord,
    RedemptionResult,
    HousingWallet,
)
from .service import WalletService

__all__ = [
    "TransactionType",
    "BeamTransactionType",
    "RedemptionRecord",
    "RedemptionResult",
    "HousingWallet",
    "WalletService",
]
