"""Validation package."""

from familybank.validation.validator import (
    DecisionInput,
    DirectTransactionInput,
    RequestInput,
    RequestValidator,
    ValidationIssue,
)

__all__ = [
    "DecisionInput",
    "DirectTransactionInput",
    "RequestInput",
    "RequestValidator",
    "ValidationIssue",
]
