"""
Read-side Queries

DESIGN DECISION: Every figure shown to a user is derived from stored
records at the time of the query. Nothing here writes, caches, or
estimates: a balance is the ledger sum, a pending list is the current
PENDING requests.
"""

from typing import Optional

from pydantic import BaseModel, Field

from familybank.ledger import LedgerStore
from familybank.models.identity import Principal, Role, normalize_user_id
from familybank.models.ledger import Transaction
from familybank.models.money import Money
from familybank.models.requests import Request
from familybank.services.identity import UserStoreInterface
from familybank.workflow import RequestWorkflow


class AccountBalance(BaseModel):
    """One row of the balances overview."""

    user_id: str
    display_name: str
    balance: Money
    pending_requests: int = 0


class Statement(BaseModel):
    """Balance plus recent activity for one HomeBank account."""

    user_id: str
    balance: Money
    transactions: list[Transaction] = Field(default_factory=list)
    pending: list[Request] = Field(default_factory=list)


class QueryExecutor:
    """
    Answers balance, pending, and statement queries.

    GUARANTEES:
    - Only returns real data from storage
    - Users without any transactions show a zero balance, not an absence
    """

    def __init__(
        self,
        ledger: LedgerStore,
        workflow: RequestWorkflow,
        users: UserStoreInterface,
    ):
        self._ledger = ledger
        self._workflow = workflow
        self._users = users

    async def list_balances(self, only: Optional[Principal] = None) -> list[AccountBalance]:
        """
        Balances of every non-admin user, or of ``only`` when given.
        """
        if only is not None:
            principals = [only]
        else:
            principals = [
                principal for principal in await self._users.list_users()
                if principal.role != Role.ADMIN
            ]

        balances = await self._ledger.balances()
        pending_counts: dict[str, int] = {}
        for request in await self._workflow.list_pending():
            key = normalize_user_id(request.user_id)
            pending_counts[key] = pending_counts.get(key, 0) + 1

        return [
            AccountBalance(
                user_id=principal.user_id,
                display_name=principal.display_name or principal.user_id,
                balance=balances.get(principal.key, Money.zero()),
                pending_requests=pending_counts.get(principal.key, 0),
            )
            for principal in principals
        ]

    async def list_pending(self, user_id: Optional[str] = None) -> list[Request]:
        return await self._workflow.list_pending(user_id)

    async def statement(self, user_id: str, limit: int = 20) -> Statement:
        return Statement(
            user_id=user_id,
            balance=await self._ledger.balance_of(user_id),
            transactions=await self._ledger.recent_transactions(user_id, limit),
            pending=await self._workflow.list_pending(user_id),
        )
