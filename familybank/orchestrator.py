"""
Family Bank Facade

This module ties together all the components and exposes one operation
per business action, for any front end (web app, bot, CLI) to call:

- HomeBank: requests, decisions, direct posts, balances, statements
- EtterBank: goal snapshot and matched goal actions

DESIGN DECISION: The facade enforces the boundaries:
- Every operation runs as an authenticated Principal that still exists
- Administrator-only operations are checked here, before any state is read
- Every failure comes back as a tagged Failure, never a raw exception
- Every failure is audited

Storage internals never leak: a StorageError reaches the caller only as the
``storage_unavailable`` kind with a generic message.
"""

from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel

from familybank.audit import AuditLogger, configure_logging, create_correlation_id
from familybank.config import LedgerSettings, get_settings
from familybank.exceptions import (
    AuthorizationError,
    FamilyBankError,
    NotFound,
    ValidationError,
)
from familybank.goals import GoalMatchingEngine
from familybank.ledger import LedgerStore
from familybank.models.goals import GoalSnapshot
from familybank.models.identity import Principal
from familybank.models.ledger import Transaction, TransactionStatus
from familybank.models.money import RawAmount
from familybank.models.requests import Request
from familybank.queries import AccountBalance, QueryExecutor, Statement
from familybank.services.identity import (
    InMemorySessionGate,
    InMemoryUserStore,
    SessionGateInterface,
    UserStoreInterface,
)
from familybank.services.locking import AccountLocks
from familybank.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsRecordLog,
    InMemoryRecordLog,
    RecordLogAuditStorage,
    RecordLogInterface,
    StorageError,
)
from familybank.validation import RequestValidator
from familybank.workflow import RequestWorkflow


logger = structlog.get_logger(__name__)

STORAGE_UNAVAILABLE = "storage_unavailable"
_STORAGE_MESSAGE = "Storage is temporarily unavailable. Please try again."
INTERNAL_ERROR = "internal_error"
_INTERNAL_MESSAGE = "Something went wrong. Please try again."


class Failure(BaseModel):
    """Structured failure payload; ``kind`` is stable, ``message`` is for people."""

    kind: str
    message: str


class OperationResult(BaseModel):
    """Either a value or a failure, never both."""

    value: Any = None
    failure: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: Any = None) -> "OperationResult":
        return cls(value=value)

    @classmethod
    def fail(cls, kind: str, message: str) -> "OperationResult":
        return cls(failure=Failure(kind=kind, message=message))


class FamilyBank:
    """
    Caller-facing operations.

    None of these are idempotent: calling create_request twice creates two
    requests.
    """

    def __init__(
        self,
        users: UserStoreInterface,
        sessions: SessionGateInterface,
        ledger: LedgerStore,
        workflow: RequestWorkflow,
        goals: GoalMatchingEngine,
        queries: QueryExecutor,
        locks: AccountLocks,
        settings: Optional[LedgerSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[RequestValidator] = None,
    ):
        self._users = users
        self._sessions = sessions
        self._ledger = ledger
        self._workflow = workflow
        self._goals = goals
        self._queries = queries
        self._locks = locks
        self._settings = settings or get_settings().ledger
        self._audit_logger = audit_logger
        self._validator = validator or RequestValidator(self._settings)

    @property
    def sessions(self) -> SessionGateInterface:
        return self._sessions

    @property
    def goals(self) -> GoalMatchingEngine:
        """Provisioning access to goal accounts (``open_account``)."""
        return self._goals

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _run(
        self,
        operation: str,
        actor: Optional[str],
        action: Callable[[UUID], Awaitable[Any]],
    ) -> OperationResult:
        correlation_id = create_correlation_id()
        log = logger.bind(operation=operation, actor=actor, correlation_id=str(correlation_id))
        try:
            value = await action(correlation_id)
        except AuthorizationError as e:
            log.warning("operation_unauthorized", reason=e.message)
            if self._audit_logger:
                await self._audit_logger.log_authorization_failed(
                    operation=operation,
                    actor=actor,
                    reason=e.message,
                    correlation_id=correlation_id,
                )
            return OperationResult.fail(e.kind, e.message)
        except FamilyBankError as e:
            log.info("operation_rejected", kind=e.kind, message=e.message)
            if self._audit_logger:
                await self._audit_logger.log_operation_failed(
                    operation=operation,
                    actor=actor,
                    kind=e.kind,
                    message=e.message,
                    correlation_id=correlation_id,
                )
            return OperationResult.fail(e.kind, e.message)
        except StorageError as e:
            log.error("storage_failed", error_type=type(e).__name__, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"operation": operation, "actor": actor},
                    correlation_id=correlation_id,
                )
            return OperationResult.fail(STORAGE_UNAVAILABLE, _STORAGE_MESSAGE)
        except Exception as e:
            log.exception("operation_crashed", error_type=type(e).__name__)
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"operation": operation, "actor": actor},
                    correlation_id=correlation_id,
                )
            return OperationResult.fail(INTERNAL_ERROR, _INTERNAL_MESSAGE)
        return OperationResult.success(value)

    async def _require(self, principal: Principal, admin: bool = False) -> Principal:
        """
        Re-check the principal against the user store.

        The stored role is authoritative, not the one the caller carries.
        """
        if principal is None:
            raise AuthorizationError("Not signed in")
        current = await self._users.lookup(principal.user_id)
        if current is None:
            raise AuthorizationError(f"Unknown user: {principal.user_id}")
        if admin and not current.is_admin:
            raise AuthorizationError("Administrator role required")
        return current

    @staticmethod
    def _actor(principal: Optional[Principal]) -> Optional[str]:
        return principal.user_id if principal is not None else None

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def authenticate(self, token: str) -> OperationResult:
        """Resolve a session token to the Principal it belongs to."""
        async def action(correlation_id: UUID) -> Principal:
            session = await self._sessions.resolve(token) if token else None
            if session is None:
                raise AuthorizationError("Session is missing or expired")
            principal = await self._users.lookup(session.user_id)
            if principal is None:
                raise AuthorizationError(f"Unknown user: {session.user_id}")
            return principal

        return await self._run("authenticate", None, action)

    # ------------------------------------------------------------------
    # EtterBank
    # ------------------------------------------------------------------

    async def get_snapshot(self, principal: Principal) -> OperationResult:
        async def action(correlation_id: UUID) -> GoalSnapshot:
            current = await self._require(principal)
            return await self._goals.snapshot(current.user_id)

        return await self._run("get_snapshot", self._actor(principal), action)

    async def apply_goal_action(
        self,
        principal: Principal,
        action: Any,
        amount: RawAmount,
    ) -> OperationResult:
        """Deposit or transfer into the caller's own goal, matched 1:1."""
        async def run(correlation_id: UUID) -> GoalSnapshot:
            current = await self._require(principal)
            return await self._goals.apply_action(
                current.user_id, action, amount, correlation_id=correlation_id
            )

        return await self._run("apply_goal_action", self._actor(principal), run)

    # ------------------------------------------------------------------
    # HomeBank
    # ------------------------------------------------------------------

    async def create_request(
        self,
        principal: Principal,
        kind: Any,
        amount: RawAmount,
        purpose: Optional[str],
        link: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> OperationResult:
        async def action(correlation_id: UUID) -> Request:
            current = await self._require(principal)
            return await self._workflow.create(
                current, kind, amount, purpose, link=link, notes=notes,
                correlation_id=correlation_id,
            )

        return await self._run("create_request", self._actor(principal), action)

    async def approve_and_post(
        self,
        principal: Principal,
        request_id: UUID,
        fulfilled_amount: RawAmount,
        receipt_ref: Optional[str] = None,
        note: Optional[str] = None,
    ) -> OperationResult:
        """Value is the ``(request, transaction)`` pair."""
        async def action(correlation_id: UUID) -> tuple[Request, Transaction]:
            current = await self._require(principal, admin=True)
            return await self._workflow.approve_and_post(
                request_id, fulfilled_amount, current.user_id,
                receipt_ref=receipt_ref, note=note, correlation_id=correlation_id,
            )

        return await self._run("approve_and_post", self._actor(principal), action)

    async def deny(
        self,
        principal: Principal,
        request_id: UUID,
        note: Optional[str] = None,
    ) -> OperationResult:
        async def action(correlation_id: UUID) -> Request:
            current = await self._require(principal, admin=True)
            return await self._workflow.deny(
                request_id, current.user_id, note=note, correlation_id=correlation_id,
            )

        return await self._run("deny", self._actor(principal), action)

    async def post_direct_transaction(
        self,
        principal: Principal,
        user_id: str,
        type: Any,
        amount: RawAmount,
        memo: Optional[str],
        status: Any = TransactionStatus.POSTED,
    ) -> OperationResult:
        """
        Administrator posts straight to a user's ledger, bypassing requests.

        ADJUSTMENT takes a signed amount; DEPOSIT and WITHDRAWAL take a
        positive magnitude.
        """
        async def action(correlation_id: UUID) -> Transaction:
            current = await self._require(principal, admin=True)
            data = self._validator.validate_direct_transaction(type, amount, memo, status)
            target = await self._users.lookup(user_id)
            if target is None:
                raise NotFound(f"Unknown user: {user_id}")

            async with self._locks.for_account(target.user_id):
                transaction = await self._ledger.post(
                    user_id=target.user_id,
                    type=data.type,
                    amount=data.amount,
                    memo=data.memo,
                    entered_by=current.user_id,
                    status=data.status,
                )

            if self._audit_logger:
                await self._audit_logger.log_transaction_posted(
                    transaction_id=transaction.id,
                    user_id=transaction.user_id,
                    transaction_type=transaction.type.value,
                    signed_amount=transaction.signed_amount.to_display_string(),
                    entered_by=transaction.entered_by,
                    correlation_id=correlation_id,
                )
            return transaction

        return await self._run("post_direct_transaction", self._actor(principal), action)

    async def list_pending(self, principal: Principal, scope: str = "mine") -> OperationResult:
        """``scope`` is ``"mine"`` (anyone) or ``"all"`` (administrators)."""
        async def action(correlation_id: UUID) -> list[Request]:
            if scope not in ("mine", "all"):
                raise ValidationError(f"scope must be 'mine' or 'all' (got {scope!r})")
            current = await self._require(principal, admin=scope == "all")
            if scope == "all":
                return await self._queries.list_pending()
            return await self._queries.list_pending(current.user_id)

        return await self._run("list_pending", self._actor(principal), action)

    async def list_balances(self, principal: Principal) -> OperationResult:
        """Every account for administrators; only the caller's own otherwise."""
        async def action(correlation_id: UUID) -> list[AccountBalance]:
            current = await self._require(principal)
            if current.is_admin:
                return await self._queries.list_balances()
            return await self._queries.list_balances(only=current)

        return await self._run("list_balances", self._actor(principal), action)

    async def get_statement(
        self,
        principal: Principal,
        user_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> OperationResult:
        async def action(correlation_id: UUID) -> Statement:
            current = await self._require(principal)
            target_id = user_id or current.user_id
            target = await self._users.lookup(target_id)
            if target is None or target.key != current.key:
                if not current.is_admin:
                    raise AuthorizationError("Administrator role required")
                if target is None:
                    raise NotFound(f"Unknown user: {target_id}")

            count = self._settings.recent_transactions_limit if limit is None else limit
            if count <= 0:
                raise ValidationError("limit must be greater than zero")
            return await self._queries.statement(target.user_id, count)

        return await self._run("get_statement", self._actor(principal), action)


def create_app_components(
    users: Optional[UserStoreInterface] = None,
    log: Optional[RecordLogInterface] = None,
    settings: Optional[LedgerSettings] = None,
) -> FamilyBank:
    """
    Factory function to wire a FamilyBank.

    Args:
        users: User store. Defaults to an empty in-memory store.
        log: Record log. Defaults to the configured ``storage_backend``.
        settings: Ledger settings. Defaults to environment configuration.

    Every component receives the same record log and lock registry; there
    is no global "current spreadsheet".
    """
    settings = settings or get_settings().ledger
    users = users or InMemoryUserStore()
    configure_logging(settings.log_level)

    if log is None:
        if settings.storage_backend == "google_sheets":
            log = GoogleSheetsRecordLog(GoogleSheetsClient())
        else:
            log = InMemoryRecordLog()

    audit_logger = AuditLogger(RecordLogAuditStorage(log))
    locks = AccountLocks()
    ledger = LedgerStore(log)
    validator = RequestValidator(settings)

    workflow = RequestWorkflow(
        log, ledger, locks,
        settings=settings,
        audit_logger=audit_logger,
        validator=validator,
    )
    goals = GoalMatchingEngine(log, locks, audit_logger=audit_logger)
    queries = QueryExecutor(ledger, workflow, users)
    sessions = InMemorySessionGate(users, ttl_minutes=settings.session_ttl_minutes)

    logger.info(
        "family_bank_ready",
        storage_backend=settings.storage_backend,
        auto_post_deposits=settings.auto_post_deposits,
    )
    return FamilyBank(
        users=users,
        sessions=sessions,
        ledger=ledger,
        workflow=workflow,
        goals=goals,
        queries=queries,
        locks=locks,
        settings=settings,
        audit_logger=audit_logger,
        validator=validator,
    )
