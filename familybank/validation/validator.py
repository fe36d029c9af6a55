"""
Input Validation

DESIGN DECISION: All caller input is checked here before any state is
touched, and every problem is collected rather than stopping at the first
one. A caller correcting a form wants to hear about the empty purpose AND
the negative amount in one round trip.

IMPORTANT: Validation NEVER silently fixes issues beyond the documented
normalizations (trimming text, rounding amounts to cents on ingress).
"""

from enum import Enum
from typing import NamedTuple, Optional, TypeVar

from pydantic import AnyHttpUrl, BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from familybank.config import LedgerSettings, get_settings
from familybank.exceptions import InvalidAmount, ValidationError
from familybank.models.ledger import TransactionStatus, TransactionType
from familybank.models.money import Money, RawAmount
from familybank.models.requests import RequestKind


E = TypeVar("E", bound=Enum)

_http_url = TypeAdapter(AnyHttpUrl)


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'too_long')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    suggested_fix: Optional[str] = None


class RequestInput(NamedTuple):
    kind: RequestKind
    amount: Money
    purpose: str
    link: Optional[str]
    notes: Optional[str]


class DecisionInput(NamedTuple):
    fulfilled_amount: Money
    receipt_ref: Optional[str]
    note: Optional[str]


class DirectTransactionInput(NamedTuple):
    type: TransactionType
    amount: Money
    memo: str
    status: TransactionStatus


class RequestValidator:
    """
    Validates request, decision, and direct-transaction input.

    Raises a single ValidationError whose ``issues`` lists everything wrong.
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    # ------------------------------------------------------------------
    # Field checks
    # ------------------------------------------------------------------

    def _enum(
        self,
        enum_type: type[E],
        value,
        field: str,
        issues: list[ValidationIssue],
    ) -> Optional[E]:
        if isinstance(value, enum_type):
            return value
        if isinstance(value, str):
            try:
                return enum_type(value.strip().lower())
            except ValueError:
                pass
        allowed = ", ".join(member.value for member in enum_type)
        issues.append(ValidationIssue(
            field=field,
            issue_type="invalid_value",
            message=f"{field} must be one of: {allowed} (got {value!r})",
        ))
        return None

    def _amount(
        self,
        value: RawAmount,
        field: str,
        issues: list[ValidationIssue],
        require_positive: bool = True,
    ) -> Optional[Money]:
        try:
            return Money.parse(value, require_positive=require_positive)
        except InvalidAmount as e:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_amount",
                message=e.message,
                suggested_fix="Enter an amount such as 12.50",
            ))
            return None

    def _text(
        self,
        value: Optional[str],
        field: str,
        max_length: int,
        issues: list[ValidationIssue],
        required: bool = False,
    ) -> Optional[str]:
        text = (value or "").strip()
        if not text:
            if required:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing",
                    message=f"{field} is required",
                ))
            return None
        if len(text) > max_length:
            issues.append(ValidationIssue(
                field=field,
                issue_type="too_long",
                message=f"{field} must be at most {max_length} characters",
            ))
            return None
        return text

    def _link(self, value: Optional[str], issues: list[ValidationIssue]) -> Optional[str]:
        link = self._text(value, "link", 2000, issues)
        if link is None:
            return None
        try:
            _http_url.validate_python(link)
        except PydanticValidationError:
            issues.append(ValidationIssue(
                field="link",
                issue_type="invalid_format",
                message="link must be an http(s) URL",
                suggested_fix="Paste the full address, starting with https://",
            ))
            return None
        return link

    @staticmethod
    def _raise_if_any(issues: list[ValidationIssue]) -> None:
        if issues:
            raise ValidationError(
                RequestValidator.get_user_friendly_summary(issues),
                issues=issues,
            )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate_request(
        self,
        kind,
        amount: RawAmount,
        purpose: Optional[str],
        link: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> RequestInput:
        issues: list[ValidationIssue] = []
        parsed_kind = self._enum(RequestKind, kind, "kind", issues)
        parsed_amount = self._amount(amount, "amount", issues)
        parsed_purpose = self._text(
            purpose, "purpose", self._settings.max_purpose_length, issues, required=True
        )
        parsed_link = self._link(link, issues)
        parsed_notes = self._text(notes, "notes", self._settings.max_notes_length, issues)
        self._raise_if_any(issues)
        return RequestInput(parsed_kind, parsed_amount, parsed_purpose, parsed_link, parsed_notes)

    def validate_decision(
        self,
        fulfilled_amount: RawAmount,
        receipt_ref: Optional[str] = None,
        note: Optional[str] = None,
    ) -> DecisionInput:
        issues: list[ValidationIssue] = []
        parsed_amount = self._amount(fulfilled_amount, "fulfilled_amount", issues)
        parsed_receipt = self._text(receipt_ref, "receipt_ref", 500, issues)
        parsed_note = self._text(note, "note", self._settings.max_notes_length, issues)
        self._raise_if_any(issues)
        return DecisionInput(parsed_amount, parsed_receipt, parsed_note)

    def validate_note(self, note: Optional[str]) -> Optional[str]:
        issues: list[ValidationIssue] = []
        parsed_note = self._text(note, "note", self._settings.max_notes_length, issues)
        self._raise_if_any(issues)
        return parsed_note

    def validate_direct_transaction(
        self,
        type,
        amount: RawAmount,
        memo: Optional[str],
        status=TransactionStatus.POSTED,
    ) -> DirectTransactionInput:
        """
        Adjustments take a signed, non-zero amount; deposits and
        withdrawals take a positive magnitude.
        """
        issues: list[ValidationIssue] = []
        parsed_type = self._enum(TransactionType, type, "type", issues)
        parsed_status = self._enum(TransactionStatus, status, "status", issues)

        is_adjustment = parsed_type == TransactionType.ADJUSTMENT
        parsed_amount = self._amount(amount, "amount", issues, require_positive=not is_adjustment)
        if is_adjustment and parsed_amount is not None and parsed_amount.is_zero:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_amount",
                message="Adjustment amount cannot be zero",
            ))

        parsed_memo = self._text(memo, "memo", 500, issues, required=True)
        self._raise_if_any(issues)
        return DirectTransactionInput(parsed_type, parsed_amount, parsed_memo, parsed_status)

    @staticmethod
    def get_user_friendly_summary(issues: list[ValidationIssue]) -> str:
        """One message listing every issue, for the caller to show."""
        if not issues:
            return "Everything looks good."
        if len(issues) == 1:
            return issues[0].message
        return "Please fix the following: " + "; ".join(issue.message for issue in issues)
