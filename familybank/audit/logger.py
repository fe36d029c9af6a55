"""
Audit Logger

DESIGN DECISION: Every movement of money is logged.
This provides:
1. Complete traceability (who moved what, when, and why)
2. Debugging capability
3. A history the administrator can review

The audit logger:
- Is async to match the storage layer
- Gracefully handles failures (a failed audit write never undoes or
  fails a business operation that already committed)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from familybank.models.audit import AuditEvent, AuditEventBuilder
from familybank.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route stdlib logging (and therefore structlog) to stdout."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stdout,
    )
    logging.getLogger().setLevel(level)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit collection of the configured storage
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("familybank.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_request_created(
        self,
        request_id: UUID,
        user_id: str,
        kind: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.request_created(
            request_id=request_id,
            user_id=user_id,
            kind=kind,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_request_auto_posted(
        self,
        request_id: UUID,
        user_id: str,
        amount: str,
        decided_by: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.request_auto_posted(
            request_id=request_id,
            user_id=user_id,
            amount=amount,
            decided_by=decided_by,
            correlation_id=correlation_id,
        ))

    async def log_request_fulfilled(
        self,
        request_id: UUID,
        requested: str,
        fulfilled: str,
        decided_by: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.request_fulfilled(
            request_id=request_id,
            requested=requested,
            fulfilled=fulfilled,
            decided_by=decided_by,
            correlation_id=correlation_id,
        ))

    async def log_request_denied(
        self,
        request_id: UUID,
        decided_by: str,
        note: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.request_denied(
            request_id=request_id,
            decided_by=decided_by,
            note=note,
            correlation_id=correlation_id,
        ))

    async def log_transaction_posted(
        self,
        transaction_id: UUID,
        user_id: str,
        transaction_type: str,
        signed_amount: str,
        entered_by: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_posted(
            transaction_id=transaction_id,
            user_id=user_id,
            transaction_type=transaction_type,
            signed_amount=signed_amount,
            entered_by=entered_by,
            correlation_id=correlation_id,
        ))

    async def log_goal_action(
        self,
        record_id: UUID,
        user_id: str,
        action: str,
        amount: str,
        goal_after: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.goal_action_applied(
            record_id=record_id,
            user_id=user_id,
            action=action,
            amount=amount,
            goal_after=goal_after,
            correlation_id=correlation_id,
        ))

    async def log_authorization_failed(
        self,
        operation: str,
        actor: Optional[str],
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.authorization_failed(
            operation=operation,
            actor=actor,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_operation_failed(
        self,
        operation: str,
        actor: Optional[str],
        kind: str,
        message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.operation_failed(
            operation=operation,
            actor=actor,
            kind=kind,
            message=message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a caller-facing operation and pass it
    through all subsequent steps.
    """
    return uuid4()
