"""
Ledger Models

A Transaction is the only thing that moves a HomeBank balance.

DESIGN DECISION: Transactions are frozen. Once a record is written it is
never edited or removed; corrections are new ADJUSTMENT transactions.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from familybank.models.money import Money


class TransactionType(str, Enum):
    """Kinds of ledger entries."""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    ADJUSTMENT = "adjustment"


class TransactionStatus(str, Enum):
    """
    Posting status.

    Only POSTED transactions count toward balance.
    """
    POSTED = "posted"
    PENDING = "pending"


class Transaction(BaseModel):
    """
    An immutable ledger entry.

    The sign of ``signed_amount`` always agrees with the type:
    deposits are positive, withdrawals negative, adjustments non-zero.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Ordering key, monotonic per account"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Account the entry belongs to"
    )
    type: TransactionType
    signed_amount: Money = Field(
        ...,
        description="Negative for withdrawals"
    )
    status: TransactionStatus = TransactionStatus.POSTED
    memo: str = Field(
        default="",
        max_length=500
    )
    request_id: Optional[UUID] = Field(
        default=None,
        description="Request this entry fulfils, if any"
    )
    entered_by: str = Field(
        ...,
        min_length=1,
        description="Principal that entered the transaction"
    )

    @model_validator(mode='after')
    def validate_sign(self) -> 'Transaction':
        """Keep the sign consistent with the transaction type."""
        if self.signed_amount.is_zero:
            raise ValueError("Transaction amount cannot be zero")
        if self.type == TransactionType.DEPOSIT and self.signed_amount.is_negative:
            raise ValueError("Deposit amount must be positive")
        if self.type == TransactionType.WITHDRAWAL and self.signed_amount.is_positive:
            raise ValueError("Withdrawal amount must be negative")
        return self

    @property
    def is_posted(self) -> bool:
        return self.status == TransactionStatus.POSTED
