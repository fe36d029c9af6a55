"""
Data Models Package

This package contains all Pydantic models used in the Family Bank system.
All data flowing through the system must conform to these schemas.
"""

from familybank.models.money import Money, round2, total
from familybank.models.identity import Principal, Role, Session, normalize_user_id
from familybank.models.ledger import Transaction, TransactionStatus, TransactionType
from familybank.models.requests import Request, RequestKind, RequestStatus
from familybank.models.goals import (
    GoalAccount,
    GoalAction,
    GoalActionRecord,
    GoalSnapshot,
)
from familybank.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Money
    "Money",
    "round2",
    "total",
    # Identity
    "Principal",
    "Role",
    "Session",
    "normalize_user_id",
    # Ledger
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    # Requests
    "Request",
    "RequestKind",
    "RequestStatus",
    # Goal accounts
    "GoalAccount",
    "GoalAction",
    "GoalActionRecord",
    "GoalSnapshot",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
