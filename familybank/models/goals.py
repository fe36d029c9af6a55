"""
Goal Account Models (EtterBank)

A goal account keeps two stored balances: the holder's primary balance and
the goal balance. Every contribution to the goal is matched 1:1 by the bank.
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from familybank.models.money import Money


class GoalAction(str, Enum):
    """
    Direct actions a holder can take.

    DEPOSIT brings new money straight into the goal.
    TRANSFER moves money from the primary balance into the goal.
    """
    DEPOSIT = "deposit"
    TRANSFER = "transfer"


class GoalAccount(BaseModel):
    """Stored state of one goal account."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    primary_balance: Money = Field(default_factory=Money.zero)
    goal_balance: Money = Field(default_factory=Money.zero)

    # Static target fields, set at provisioning
    goal_name: str = Field(default="Savings goal", max_length=200)
    goal_target: Money = Field(default_factory=Money.zero)

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class GoalActionRecord(BaseModel):
    """
    Immutable entry in the goal-account action log.

    The bank always matches the user's contribution exactly.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    username: str = Field(..., min_length=1)
    action: GoalAction
    amount_user: Money
    match_bank: Money
    credited_to_goal: Money
    primary_after: Money
    goal_after: Money

    @model_validator(mode='after')
    def validate_match(self) -> 'GoalActionRecord':
        if self.match_bank != self.amount_user:
            raise ValueError("Bank match must equal the user contribution")
        if self.credited_to_goal != self.amount_user + self.match_bank:
            raise ValueError("Credited amount must equal contribution plus match")
        return self


class GoalSnapshot(BaseModel):
    """What the holder sees after every action."""

    user_id: str
    primary_balance: Money
    goal_balance: Money
    goal_name: str
    goal_target: Money

    @property
    def remaining_to_goal(self) -> Money:
        remaining = self.goal_target - self.goal_balance
        return remaining if remaining.is_positive else Money.zero()

    @classmethod
    def of(cls, account: GoalAccount) -> "GoalSnapshot":
        return cls(
            user_id=account.user_id,
            primary_balance=account.primary_balance,
            goal_balance=account.goal_balance,
            goal_name=account.goal_name,
            goal_target=account.goal_target,
        )
