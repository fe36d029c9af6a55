"""
Audit Models for Family Bank

Every decision that touches money is logged for audit purposes.
This provides:
1. Traceability of who moved which amount and why
2. Debugging information when an operation fails
3. A history the administrator can review

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Request workflow
    REQUEST_CREATED = "request_created"
    REQUEST_AUTO_POSTED = "request_auto_posted"
    REQUEST_FULFILLED = "request_fulfilled"
    REQUEST_DENIED = "request_denied"

    # Ledger
    TRANSACTION_POSTED = "transaction_posted"

    # Goal accounts
    GOAL_ACTION_APPLIED = "goal_action_applied"

    # Access
    AUTHORIZATION_FAILED = "authorization_failed"

    # Failures
    OPERATION_FAILED = "operation_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'request', 'transaction', 'goal_account')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a request and its transaction)"
    )

    actor: Optional[str] = Field(
        default=None,
        description="Principal that triggered the event"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "actor": self.actor,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.request_created(request_id, user_id, ...)
        event = AuditEventBuilder.transaction_posted(transaction_id, ...)
    """

    @staticmethod
    def request_created(
        request_id: UUID,
        user_id: str,
        kind: str,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REQUEST_CREATED,
            entity_type="request",
            entity_id=request_id,
            correlation_id=correlation_id,
            actor=user_id,
            description=f"{kind.capitalize()} request for {amount} created",
            details={"kind": kind, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def request_auto_posted(
        request_id: UUID,
        user_id: str,
        amount: str,
        decided_by: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REQUEST_AUTO_POSTED,
            entity_type="request",
            entity_id=request_id,
            correlation_id=correlation_id,
            actor=decided_by,
            description=f"Deposit of {amount} for {user_id} auto-posted",
            details={"user_id": user_id, "amount": amount},
        )

    @staticmethod
    def request_fulfilled(
        request_id: UUID,
        requested: str,
        fulfilled: str,
        decided_by: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REQUEST_FULFILLED,
            entity_type="request",
            entity_id=request_id,
            correlation_id=correlation_id,
            actor=decided_by,
            description=f"Request fulfilled for {fulfilled} (requested {requested})",
            details={
                "requested_amount": requested,
                "fulfilled_amount": fulfilled,
                "partial": requested != fulfilled,
            },
            is_user_action=True,
        )

    @staticmethod
    def request_denied(
        request_id: UUID,
        decided_by: str,
        note: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REQUEST_DENIED,
            entity_type="request",
            entity_id=request_id,
            correlation_id=correlation_id,
            actor=decided_by,
            description="Request denied",
            details={"note": note},
            is_user_action=True,
        )

    @staticmethod
    def transaction_posted(
        transaction_id: UUID,
        user_id: str,
        transaction_type: str,
        signed_amount: str,
        entered_by: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_POSTED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            actor=entered_by,
            description=f"{transaction_type.capitalize()} of {signed_amount} posted to {user_id}",
            details={
                "user_id": user_id,
                "type": transaction_type,
                "signed_amount": signed_amount,
            },
        )

    @staticmethod
    def goal_action_applied(
        record_id: UUID,
        user_id: str,
        action: str,
        amount: str,
        goal_after: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_ACTION_APPLIED,
            entity_type="goal_action",
            entity_id=record_id,
            correlation_id=correlation_id,
            actor=user_id,
            description=f"Goal {action} of {amount} matched 1:1",
            details={"action": action, "amount": amount, "goal_after": goal_after},
            is_user_action=True,
        )

    @staticmethod
    def authorization_failed(
        operation: str,
        actor: Optional[str],
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTHORIZATION_FAILED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            actor=actor,
            description=f"Authorization failed for {operation}",
            details={"operation": operation},
            error_message=reason,
        )

    @staticmethod
    def operation_failed(
        operation: str,
        actor: Optional[str],
        kind: str,
        message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_FAILED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            actor=actor,
            description=f"{operation} failed: {kind}",
            details={"operation": operation, "kind": kind},
            error_message=message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"System error: {error_type}",
            details=details or {},
            error_message=error_message,
        )
