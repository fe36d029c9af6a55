"""
Goal-Matching Engine (EtterBank)

Every dollar a holder puts toward their goal is matched 1:1 by the bank:

    DEPOSIT  x -> primary unchanged,    goal += 2x
    TRANSFER x -> primary -= x (x <= primary), goal += 2x

Amounts are rounded to cents once, on the way in. All comparisons after
that are exact integer-cent comparisons.
"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

import structlog

from familybank.audit import AuditLogger, create_correlation_id
from familybank.exceptions import InsufficientFunds, NotFound, ValidationError
from familybank.models.goals import GoalAccount, GoalAction, GoalActionRecord, GoalSnapshot
from familybank.models.identity import normalize_user_id
from familybank.models.money import Money, RawAmount
from familybank.services.locking import AccountLocks
from familybank.services.storage import (
    GOAL_ACCOUNTS,
    GOAL_ACTIONS,
    RecordLogInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class GoalMatchingEngine:
    """Applies goal actions to stored goal accounts under the account lock."""

    def __init__(
        self,
        log: RecordLogInterface,
        locks: AccountLocks,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._log = log
        self._locks = locks
        self._audit_logger = audit_logger

    async def _find_account(self, user_id: str) -> Optional[GoalAccount]:
        key = normalize_user_id(user_id)
        for account in await self._log.scan(GOAL_ACCOUNTS):
            if normalize_user_id(account.user_id) == key:
                return account
        return None

    async def get_account(self, user_id: str) -> GoalAccount:
        account = await self._find_account(user_id)
        if account is None:
            raise NotFound(f"No goal account for user: {user_id}")
        return account

    async def open_account(
        self,
        user_id: str,
        primary_balance: RawAmount = 0,
        goal_name: str = "Savings goal",
        goal_target: RawAmount = 0,
    ) -> GoalAccount:
        """Provision a goal account. One per user."""
        async with self._locks.for_account(user_id):
            if await self._find_account(user_id) is not None:
                raise ValidationError(f"User already has a goal account: {user_id}")
            account = GoalAccount(
                user_id=user_id,
                primary_balance=Money.parse(primary_balance),
                goal_name=goal_name,
                goal_target=Money.parse(goal_target),
            )
            await self._log.append(GOAL_ACCOUNTS, account)

        logger.info("goal_account_opened", user_id=user_id, goal_name=goal_name)
        return account

    async def snapshot(self, user_id: str) -> GoalSnapshot:
        return GoalSnapshot.of(await self.get_account(user_id))

    async def history(self, user_id: str, limit: int = 20) -> list[GoalActionRecord]:
        """The user's goal actions, newest first."""
        key = normalize_user_id(user_id)
        records = [
            record for record in await self._log.scan(GOAL_ACTIONS)
            if normalize_user_id(record.username) == key
        ]
        records.reverse()
        return records[:limit]

    async def apply_action(
        self,
        user_id: str,
        action: Any,
        amount: RawAmount,
        correlation_id: Optional[UUID] = None,
    ) -> GoalSnapshot:
        """
        Apply a DEPOSIT or TRANSFER and return the new snapshot.

        Raises:
            ValidationError: Unknown action
            InvalidAmount: Amount is not positive after rounding to cents
            NotFound: No goal account for the user
            InsufficientFunds: TRANSFER exceeds the primary balance
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            action = GoalAction(action.strip().lower() if isinstance(action, str) else action)
        except ValueError:
            raise ValidationError(f"Unknown goal action: {action!r}")
        contribution = Money.parse(amount, require_positive=True)

        async with self._locks.for_account(user_id):
            account = await self.get_account(user_id)

            primary = account.primary_balance
            if action == GoalAction.TRANSFER:
                if primary < contribution:
                    raise InsufficientFunds(
                        f"Cannot transfer {contribution}: primary balance is {primary}"
                    )
                primary = primary - contribution

            match = contribution
            credited = contribution + match
            updated = account.model_copy(update={
                "primary_balance": primary,
                "goal_balance": account.goal_balance + credited,
                "updated_at": datetime.now(timezone.utc),
            })
            record = GoalActionRecord(
                username=account.user_id,
                action=action,
                amount_user=contribution,
                match_bank=match,
                credited_to_goal=credited,
                primary_after=updated.primary_balance,
                goal_after=updated.goal_balance,
            )

            await self._log.update_by_id(GOAL_ACCOUNTS, updated)
            try:
                await self._log.append(GOAL_ACTIONS, record)
            except Exception:
                await self._restore(account)
                raise

        logger.info(
            "goal_action_applied",
            user_id=account.user_id,
            action=action.value,
            amount=contribution.to_display_string(),
            primary_after=updated.primary_balance.to_display_string(),
            goal_after=updated.goal_balance.to_display_string(),
        )
        if self._audit_logger:
            await self._audit_logger.log_goal_action(
                record_id=record.id,
                user_id=account.user_id,
                action=action.value,
                amount=contribution.to_display_string(),
                goal_after=updated.goal_balance.to_display_string(),
                correlation_id=correlation_id,
            )
        return GoalSnapshot.of(updated)

    async def _restore(self, account: GoalAccount) -> None:
        try:
            await self._log.update_by_id(GOAL_ACCOUNTS, account)
        except StorageError as e:
            logger.error("goal_account_restore_failed", user_id=account.user_id, error=str(e))
        else:
            logger.warning("goal_account_restored", user_id=account.user_id)
