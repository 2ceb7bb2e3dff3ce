"""Virtual currency models"""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, Any
from datetime import datetime

from gamify.models.points import new_id
from gamify.utils.datetime_helpers import now_utc


class TransactionType(str, Enum):
    EARN = "earn"
    SPEND = "spend"


class CurrencyTransaction(BaseModel):
    """One currency movement"""
    id: str = Field(default_factory=new_id)
    user_id: str
    type: TransactionType
    amount: int = Field(ge=0)
    source: str
    description: str
    timestamp: datetime = Field(default_factory=now_utc)
    metadata: dict[str, Any] = Field(default_factory=dict)
    event_id: Optional[str] = None

    @property
    def signed_amount(self) -> int:
        return self.amount if self.type == TransactionType.EARN else -self.amount

    def capped_to_balance(self, balance: int) -> "CurrencyTransaction":
        """Spend limited to what the account holds; the asked-for amount moves to metadata["requested"]"""
        if self.type == TransactionType.EARN or self.amount <= balance:
            return self
        return self.model_copy(update={
            "amount": max(0, balance),
            "metadata": {**self.metadata, "requested": self.amount},
        })


class CurrencyAccount(BaseModel):
    """
    Spendable balance of a user.

    transactions holds only the most recent entries (capped); the full
    history lives in the store's durable transaction ledger.
    """
    user_id: str
    balance: int = Field(default=0, ge=0)
    transactions: list[CurrencyTransaction] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=now_utc)


class TransactionResult(BaseModel):
    account: CurrencyAccount
    transaction: CurrencyTransaction
    new_balance: int
    duplicate: bool = False


class ConversionResult(BaseModel):
    account: CurrencyAccount
    currency_earned: int
