"""
Exception hierarchy for Family Bank.

Every business failure carries a stable ``kind`` so that callers can react
to it (re-prompt, re-authenticate, correct input) without parsing messages.
None of these are fatal to the process.
"""

from typing import Optional


class FamilyBankError(Exception):
    """Base exception for all business failures."""

    kind = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FamilyBankError, ValueError):
    """
    Malformed or out-of-range input.

    Subclasses ValueError so it can be raised from inside pydantic
    validators and surface as a field error there.
    """

    kind = "validation_error"

    def __init__(self, message: str, issues: Optional[list] = None):
        super().__init__(message)
        self.issues = issues or []


class InvalidAmount(ValidationError):
    """Amount is not finite, not a number, or not positive where required."""


class NotFound(FamilyBankError):
    """Unknown account, request, or user."""

    kind = "not_found"


class AuthorizationError(FamilyBankError):
    """Missing or expired session, or wrong role for the operation."""

    kind = "authorization_error"


class InvalidTransition(FamilyBankError):
    """Request is not in the state required for the attempted decision."""

    kind = "invalid_transition"


class InsufficientFunds(FamilyBankError):
    """Transfer exceeds the primary balance."""

    kind = "insufficient_funds"
