"""
Request Workflow

Flow:
1. Create -> validate input, persist a PENDING request
2. Decide -> an administrator approves (with the granted amount) or denies
3. Post   -> an approval appends exactly one POSTED transaction

Deposits created by roles in the auto-post set skip step 2: they are
written already FULFILLED by the system decider, inside the same locked
section as creation, so nobody ever sees them PENDING.

DESIGN DECISION: The request update and the transaction append are two
separate storage writes. The request is written first; if the append then
fails, the request is restored to its prior record and the error
propagates. The result is that a FULFILLED request never exists without its
transaction, and a failed decision leaves no trace. A failed auto-post
cannot be undone that way (the request was appended, and the log has no
delete), so the request is rewritten as DENIED with a system note.
"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

import structlog

from familybank.audit import AuditLogger, create_correlation_id
from familybank.config import LedgerSettings, get_settings
from familybank.exceptions import InvalidTransition, NotFound
from familybank.ledger import LedgerStore
from familybank.models.identity import Principal, normalize_user_id
from familybank.models.ledger import Transaction, TransactionType
from familybank.models.money import Money, RawAmount
from familybank.models.requests import Request, RequestKind, RequestStatus
from familybank.services.locking import AccountLocks
from familybank.services.storage import REQUESTS, RecordLogInterface, StorageError
from familybank.validation import RequestValidator


logger = structlog.get_logger(__name__)

_TRANSACTION_TYPE = {
    RequestKind.WITHDRAWAL: TransactionType.WITHDRAWAL,
    RequestKind.DEPOSIT: TransactionType.DEPOSIT,
}


class RequestWorkflow:
    """
    Owns the PENDING -> FULFILLED | DENIED state machine.

    A request leaves PENDING exactly once. Every decision takes the lock of
    the request's owner and re-reads the request inside it, so two admins
    approving the same request concurrently produce one transaction and one
    InvalidTransition.
    """

    def __init__(
        self,
        log: RecordLogInterface,
        ledger: LedgerStore,
        locks: AccountLocks,
        settings: Optional[LedgerSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[RequestValidator] = None,
    ):
        self._log = log
        self._ledger = ledger
        self._locks = locks
        self._settings = settings or get_settings().ledger
        self._audit_logger = audit_logger
        self._validator = validator or RequestValidator(self._settings)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, request_id: UUID) -> Request:
        for request in await self._log.scan(REQUESTS):
            if request.id == request_id:
                return request
        raise NotFound(f"Request not found: {request_id}")

    async def list_for_user(self, user_id: str) -> list[Request]:
        """All of a user's requests, oldest first."""
        key = normalize_user_id(user_id)
        return [
            request for request in await self._log.scan(REQUESTS)
            if normalize_user_id(request.user_id) == key
        ]

    async def list_pending(self, user_id: Optional[str] = None) -> list[Request]:
        """PENDING requests, oldest first; everyone's when ``user_id`` is None."""
        if user_id is None:
            requests = await self._log.scan(REQUESTS)
        else:
            requests = await self.list_for_user(user_id)
        return [request for request in requests if request.is_pending]

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def should_auto_post(self, principal: Principal, kind: RequestKind) -> bool:
        return (
            kind == RequestKind.DEPOSIT
            and self._settings.auto_post_deposits
            and principal.role.value in self._settings.auto_post_roles_set
        )

    async def create(
        self,
        principal: Principal,
        kind: Any,
        amount: RawAmount,
        purpose: Optional[str],
        link: Optional[str] = None,
        notes: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Request:
        """
        Create a request for the principal's own account.

        Raises:
            ValidationError: Bad kind, amount, purpose, link, or notes
        """
        correlation_id = correlation_id or create_correlation_id()
        data = self._validator.validate_request(kind, amount, purpose, link, notes)

        fields = {
            "user_id": principal.user_id,
            "kind": data.kind,
            "amount": data.amount,
            "purpose": data.purpose,
            "link": data.link,
            "notes": data.notes,
        }

        if not self.should_auto_post(principal, data.kind):
            async with self._locks.for_account(principal.user_id):
                request = Request(**fields)
                await self._log.append(REQUESTS, request)

            logger.info(
                "request_created",
                request_id=str(request.id),
                user_id=request.user_id,
                kind=request.kind.value,
                amount=request.amount.to_display_string(),
            )
            if self._audit_logger:
                await self._audit_logger.log_request_created(
                    request_id=request.id,
                    user_id=request.user_id,
                    kind=request.kind.value,
                    amount=request.amount.to_display_string(),
                    correlation_id=correlation_id,
                )
            return request

        request, transaction = await self._create_auto_posted(fields)
        if self._audit_logger:
            await self._audit_logger.log_request_auto_posted(
                request_id=request.id,
                user_id=request.user_id,
                amount=request.amount.to_display_string(),
                decided_by=request.decided_by,
                correlation_id=correlation_id,
            )
            await self._log_transaction(transaction, correlation_id)
        return request

    async def _create_auto_posted(self, fields: dict) -> tuple[Request, Transaction]:
        system = self._settings.system_decider_id
        async with self._locks.for_account(fields["user_id"]):
            decided_at = datetime.now(timezone.utc)
            request = Request(
                **fields,
                status=RequestStatus.FULFILLED,
                decided_at=decided_at,
                decided_by=system,
                fulfilled_amount=fields["amount"],
                admin_note="Auto-posted",
            )
            await self._log.append(REQUESTS, request)
            try:
                transaction = await self._post_for(request, request.fulfilled_amount, system)
            except Exception:
                # The request is already visible as FULFILLED; retire it
                failed = self._transition(
                    request,
                    status=RequestStatus.DENIED,
                    decided_at=decided_at,
                    decided_by=system,
                    fulfilled_amount=None,
                    admin_note="Auto-post failed",
                )
                await self._restore(failed)
                raise

        logger.info(
            "request_auto_posted",
            request_id=str(request.id),
            user_id=request.user_id,
            amount=request.amount.to_display_string(),
            transaction_id=str(transaction.id),
        )
        return request, transaction

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    async def approve_and_post(
        self,
        request_id: UUID,
        fulfilled_amount: RawAmount,
        decided_by: str,
        receipt_ref: Optional[str] = None,
        note: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Request, Transaction]:
        """
        Fulfil a PENDING request and post its transaction.

        ``fulfilled_amount`` may be lower or higher than the requested
        amount (partial or increased grant).

        Raises:
            ValidationError: fulfilled_amount is not positive
            NotFound: No such request
            InvalidTransition: Request is not PENDING
        """
        correlation_id = correlation_id or create_correlation_id()
        decision = self._validator.validate_decision(fulfilled_amount, receipt_ref, note)
        owner = (await self.get(request_id)).user_id

        async with self._locks.for_account(owner):
            current = await self._pending(request_id)
            fulfilled = self._transition(
                current,
                status=RequestStatus.FULFILLED,
                decided_at=datetime.now(timezone.utc),
                decided_by=decided_by,
                fulfilled_amount=decision.fulfilled_amount,
                receipt_ref=decision.receipt_ref,
                admin_note=decision.note,
            )
            await self._log.update_by_id(REQUESTS, fulfilled)
            try:
                transaction = await self._post_for(fulfilled, decision.fulfilled_amount, decided_by)
            except Exception:
                await self._restore(current)
                raise

        logger.info(
            "request_fulfilled",
            request_id=str(fulfilled.id),
            requested=fulfilled.amount.to_display_string(),
            fulfilled=decision.fulfilled_amount.to_display_string(),
            decided_by=decided_by,
        )
        if self._audit_logger:
            await self._audit_logger.log_request_fulfilled(
                request_id=fulfilled.id,
                requested=fulfilled.amount.to_display_string(),
                fulfilled=decision.fulfilled_amount.to_display_string(),
                decided_by=decided_by,
                correlation_id=correlation_id,
            )
            await self._log_transaction(transaction, correlation_id)
        return fulfilled, transaction

    async def deny(
        self,
        request_id: UUID,
        decided_by: str,
        note: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Request:
        """
        Deny a PENDING request. Never touches the ledger.

        Raises:
            NotFound: No such request
            InvalidTransition: Request is not PENDING
        """
        correlation_id = correlation_id or create_correlation_id()
        parsed_note = self._validator.validate_note(note)
        owner = (await self.get(request_id)).user_id

        async with self._locks.for_account(owner):
            current = await self._pending(request_id)
            denied = self._transition(
                current,
                status=RequestStatus.DENIED,
                decided_at=datetime.now(timezone.utc),
                decided_by=decided_by,
                admin_note=parsed_note,
            )
            await self._log.update_by_id(REQUESTS, denied)

        logger.info("request_denied", request_id=str(denied.id), decided_by=decided_by)
        if self._audit_logger:
            await self._audit_logger.log_request_denied(
                request_id=denied.id,
                decided_by=decided_by,
                note=parsed_note,
                correlation_id=correlation_id,
            )
        return denied

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _pending(self, request_id: UUID) -> Request:
        request = await self.get(request_id)
        if not request.can_decide():
            raise InvalidTransition(
                f"Request {request_id} is already {request.status.value}"
            )
        return request

    @staticmethod
    def _transition(request: Request, **changes) -> Request:
        # Re-validate so decision fields always agree with the status
        return Request.model_validate({**dict(request), **changes})

    async def _post_for(
        self,
        request: Request,
        amount: Money,
        entered_by: str,
    ) -> Transaction:
        return await self._ledger.post(
            user_id=request.user_id,
            type=_TRANSACTION_TYPE[request.kind],
            amount=amount,
            memo=f"Request: {request.purpose}",
            entered_by=entered_by,
            request_id=request.id,
        )

    async def _restore(self, request: Request) -> None:
        try:
            await self._log.update_by_id(REQUESTS, request)
        except StorageError as e:
            logger.error(
                "request_restore_failed",
                request_id=str(request.id),
                status=request.status.value,
                error=str(e),
            )
        else:
            logger.warning(
                "request_restored",
                request_id=str(request.id),
                status=request.status.value,
            )

    async def _log_transaction(self, transaction: Transaction, correlation_id: UUID) -> None:
        await self._audit_logger.log_transaction_posted(
            transaction_id=transaction.id,
            user_id=transaction.user_id,
            transaction_type=transaction.type.value,
            signed_amount=transaction.signed_amount.to_display_string(),
            entered_by=transaction.entered_by,
            correlation_id=correlation_id,
        )
