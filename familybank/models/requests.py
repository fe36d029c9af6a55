"""
Request Models

A Request is a proposed withdrawal or deposit. It has no effect on balance
until an administrator (or the auto-post policy) decides it.

State machine:

    PENDING --approve_and_post--> FULFILLED
    PENDING --deny--------------> DENIED

FULFILLED and DENIED are terminal.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from familybank.models.money import Money


class RequestKind(str, Enum):
    """What the requester is asking for."""
    WITHDRAWAL = "withdrawal"
    DEPOSIT = "deposit"


class RequestStatus(str, Enum):
    """
    Request lifecycle status.

    CRITICAL: A request leaves PENDING exactly once.
    """
    PENDING = "pending"
    FULFILLED = "fulfilled"
    DENIED = "denied"


class Request(BaseModel):
    """
    A withdrawal or deposit awaiting (or past) an administrator decision.

    Decision fields stay empty while the request is PENDING.
    ``fulfilled_amount`` is set if and only if the request is FULFILLED,
    and may be lower or higher than the requested ``amount``.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique request ID"
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    # What was asked
    user_id: str = Field(
        ...,
        min_length=1,
        description="Requester"
    )
    kind: RequestKind
    amount: Money = Field(
        ...,
        description="Requested amount (always positive)"
    )
    purpose: str = Field(
        ...,
        min_length=1,
        description="Why the money is needed"
    )
    link: Optional[str] = None
    notes: Optional[str] = None

    # Decision
    status: RequestStatus = RequestStatus.PENDING
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None
    fulfilled_amount: Optional[Money] = None
    receipt_ref: Optional[str] = None
    admin_note: Optional[str] = None

    @model_validator(mode='after')
    def validate_decision_fields(self) -> 'Request':
        """Decision fields must agree with the status."""
        if not self.amount.is_positive:
            raise ValueError("Requested amount must be greater than zero")

        if self.status == RequestStatus.PENDING:
            decided = (
                self.decided_at, self.decided_by, self.fulfilled_amount,
                self.receipt_ref, self.admin_note,
            )
            if any(field is not None for field in decided):
                raise ValueError("Pending request cannot carry decision fields")
            return self

        if self.decided_at is None or not self.decided_by:
            raise ValueError("Decided request must record decided_at and decided_by")

        if self.status == RequestStatus.FULFILLED:
            if self.fulfilled_amount is None or not self.fulfilled_amount.is_positive:
                raise ValueError("Fulfilled request must carry a positive fulfilled_amount")
        elif self.fulfilled_amount is not None:
            raise ValueError("Only fulfilled requests carry a fulfilled_amount")

        return self

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    def can_decide(self) -> bool:
        return self.status == RequestStatus.PENDING
