"""
Ledger Store

The append-only transaction log behind every HomeBank balance.

GUARANTEES:
- A balance is always the sum of the Posted transactions for that user,
  computed from the log on every call (no cached totals to drift)
- Entries are never edited or deleted; corrections are new ADJUSTMENT
  transactions
- ``created_at`` is strictly increasing per account, so "newest first"
  is well defined even for entries posted within the same microsecond
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

import structlog

from familybank.exceptions import InvalidAmount
from familybank.models.identity import normalize_user_id
from familybank.models.ledger import Transaction, TransactionStatus, TransactionType
from familybank.models.money import Money, RawAmount, total
from familybank.services.storage import TRANSACTIONS, RecordLogInterface


logger = structlog.get_logger(__name__)


class LedgerStore:
    """
    Append and read access to the ``transactions`` collection.

    This class does no locking of its own. Callers that check a balance
    before posting must hold the account lock around both steps.
    """

    def __init__(self, log: RecordLogInterface):
        self._log = log
        self._last_created_at: dict[str, datetime] = {}

    def _next_timestamp(self, user_id: str) -> datetime:
        key = normalize_user_id(user_id)
        now = datetime.now(timezone.utc)
        last = self._last_created_at.get(key)
        if last is not None and now <= last:
            now = last + timedelta(microseconds=1)
        self._last_created_at[key] = now
        return now

    async def append(self, transaction: Transaction) -> UUID:
        """
        Append a transaction to the log.

        Once this returns the record is permanently visible to
        ``balance_of`` and ``recent_transactions``.
        """
        await self._log.append(TRANSACTIONS, transaction)
        key = normalize_user_id(transaction.user_id)
        last = self._last_created_at.get(key)
        if last is None or transaction.created_at > last:
            self._last_created_at[key] = transaction.created_at

        logger.info(
            "transaction_appended",
            transaction_id=str(transaction.id),
            user_id=transaction.user_id,
            type=transaction.type.value,
            signed_amount=transaction.signed_amount.to_display_string(),
            status=transaction.status.value,
        )
        return transaction.id

    async def post(
        self,
        user_id: str,
        type: TransactionType,
        amount: RawAmount,
        memo: str,
        entered_by: str,
        status: TransactionStatus = TransactionStatus.POSTED,
        request_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Build a correctly signed transaction and append it.

        For DEPOSIT and WITHDRAWAL ``amount`` is the positive magnitude and
        the sign is applied here. For ADJUSTMENT ``amount`` is already signed.

        Raises:
            InvalidAmount: If the amount is not positive (deposit/withdrawal)
                or is zero (adjustment)
        """
        if type == TransactionType.ADJUSTMENT:
            signed = Money.parse(amount)
            if signed.is_zero:
                raise InvalidAmount("Adjustment amount cannot be zero")
        else:
            magnitude = Money.parse(amount, require_positive=True)
            signed = -magnitude if type == TransactionType.WITHDRAWAL else magnitude

        transaction = Transaction(
            created_at=self._next_timestamp(user_id),
            user_id=user_id,
            type=type,
            signed_amount=signed,
            status=status,
            memo=memo,
            request_id=request_id,
            entered_by=entered_by,
        )
        await self.append(transaction)
        return transaction

    async def _transactions_for(self, user_id: str) -> list[Transaction]:
        key = normalize_user_id(user_id)
        return [
            txn for txn in await self._log.scan(TRANSACTIONS)
            if normalize_user_id(txn.user_id) == key
        ]

    async def balance_of(self, user_id: str) -> Money:
        """Sum of signed amounts over the user's Posted transactions."""
        transactions = await self._transactions_for(user_id)
        return total(txn.signed_amount for txn in transactions if txn.is_posted)

    async def balances(self) -> dict[str, Money]:
        """Posted balance of every user that has at least one transaction."""
        balances: dict[str, Money] = {}
        for txn in await self._log.scan(TRANSACTIONS):
            key = normalize_user_id(txn.user_id)
            current = balances.get(key, Money.zero())
            balances[key] = current + txn.signed_amount if txn.is_posted else current
        return balances

    async def recent_transactions(self, user_id: str, limit: int = 20) -> list[Transaction]:
        """
        The user's transactions, newest first.

        Every call returns a fresh list; it is not a live cursor.
        """
        transactions = await self._transactions_for(user_id)
        ordered = sorted(
            enumerate(transactions),
            key=lambda pair: (pair[1].created_at, pair[0]),
            reverse=True,
        )
        return [txn for _, txn in ordered[:limit]]

    async def transactions_for_request(self, request_id: UUID) -> list[Transaction]:
        return [
            txn for txn in await self._log.scan(TRANSACTIONS)
            if txn.request_id == request_id
        ]
