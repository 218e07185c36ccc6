from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field, ConfigDict, StrictInt
from pydantic.alias_generators import to_camel


class TransactionType(str, Enum):
    PAYMENT = "payment"
    REDEMPTION = "redemption"
    CREDIT = "credit"


class BeamTransactionType(str, Enum):
    EARN = "earn"
    SPEND = "spend"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClientAccount(CamelModel):
    uid: str
    name: Optional[str] = None
    email: Optional[str] = None
    plan_type: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    housing_wallet_balance: Optional[int] = None
    beam_coin_balance: Optional[float] = 0
    beam_coin_last_updated: Optional[datetime] = None
    created_at: Optional[datetime] = None
    last_active: Optional[datetime] = None


class RedemptionRecord(CamelModel):
    id: str
    client_id: str
    type: TransactionType
    amount: float
    timestamp: datetime
    description: str

    def to_document(self) -> dict:
        doc = self.model_dump(by_alias=True)
        doc["type"] = self.type.value
        return doc


class RedeemRequest(CamelModel):
    client_id: str = Field(..., min_length=1)
    credits: StrictInt = Field(..., gt=0, description="Housing credits to redeem")
    description: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "clientId": "client-123",
            "credits": 100,
            "description": "Hotel stay - 2 nights",
        }
    })


class RedemptionResult(CamelModel):
    success: bool = True
    message: str = "Housing credits redeemed successfully"
    new_balance: int
    redeemed: int


class HousingWallet(CamelModel):
    credits: int
    value: float
    description: str


class CreateTransactionRequest(CamelModel):
    client_id: str = Field(..., min_length=1)
    type: TransactionType
    amount: float
    description: str = Field(..., min_length=1)


class BeamBalance(CamelModel):
    uid: str
    balance: float = 0


class BeamBalanceResponse(CamelModel):
    balance: float
    uid: str
    last_updated: Optional[datetime] = None
    cached: Optional[bool] = None
    error: Optional[str] = None


class BeamTransactionRequest(CamelModel):
    client_id: str = Field(..., min_length=1)
    type: BeamTransactionType
    amount: float = Field(..., gt=0)
    description: str = Field(..., min_length=1)


class BeamTransactionResponse(CamelModel):
    success: bool = True
    message: str = "BEAM Coin transaction recorded"
    transaction: Any = None


class AdminClient(CamelModel):
    uid: str
    name: Optional[str] = None
    email: Optional[str] = None
    plan_type: Optional[str] = None
    beam_coin_balance: Optional[float] = 0
    housing_wallet_balance: int = 0
    stripe_customer_id: Optional[str] = None
    last_active: Optional[str] = None
    created_at: Optional[str] = None


class AdminTransaction(CamelModel):
    uid: str
    type: str
    amount: float
    description: str = ""
    timestamp: Optional[str] = None
    id: Optional[str] = None


class MonthlyActivity(CamelModel):
    month: str
    earn: float = 0
    spend: float = 0


class AdminStats(CamelModel):
    total_beam_coins: float = 0
    total_clients: int = 0
    total_usd_subscriptions: float = 0
    total_housing_credits: int = 0
    monthly_activity: list[MonthlyActivity] = Field(default_factory=list)


@dataclass(frozen=True)
class MirrorResult:
    """Outcome of a best-effort write to the BEAM ledger."""

    ok: bool
    transaction: Optional[dict] = None
    error: Optional[str] = None
