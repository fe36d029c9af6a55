"""Tests for the request validator."""

import pytest

from familybank.config import LedgerSettings
from familybank.exceptions import ValidationError
from familybank.models.ledger import TransactionStatus, TransactionType
from familybank.models.money import Money
from familybank.models.requests import RequestKind
from familybank.validation import RequestValidator


@pytest.fixture
def validator():
    return RequestValidator(LedgerSettings(max_purpose_length=10, max_notes_length=20))


class TestRequestInput:
    """Tests for validate_request."""

    def test_normalizes(self, validator):
        data = validator.validate_request(" Deposit ", "$5.005", " chores ", notes="   ")
        assert data.kind == RequestKind.DEPOSIT
        assert data.amount == Money.parse("5.01")
        assert data.purpose == "chores"
        assert data.notes is None

    def test_limits_come_from_settings(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_request("deposit", "1", "x" * 11, notes="y" * 21)
        assert [i.issue_type for i in exc_info.value.issues] == ["too_long", "too_long"]

    @pytest.mark.parametrize("link", ["example.com", "javascript:alert(1)", "ftp://host/file"])
    def test_rejects_non_http_links(self, validator, link):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_request("deposit", "1", "book", link=link)
        assert exc_info.value.issues[0].field == "link"

    def test_single_issue_message(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_request("deposit", "1", "")
        assert exc_info.value.message == "purpose is required"


class TestDirectTransactionInput:
    """Tests for validate_direct_transaction."""

    def test_adjustment_keeps_sign(self, validator):
        data = validator.validate_direct_transaction("adjustment", "-3", "fix")
        assert data.type == TransactionType.ADJUSTMENT
        assert data.amount == Money(-300)
        assert data.status == TransactionStatus.POSTED

    def test_zero_adjustment(self, validator):
        with pytest.raises(ValidationError):
            validator.validate_direct_transaction("adjustment", "0", "fix")

    def test_withdrawal_takes_magnitude(self, validator):
        with pytest.raises(ValidationError):
            validator.validate_direct_transaction("withdrawal", "-3", "fix")

    def test_memo_and_status(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_direct_transaction("deposit", "3", "", status="cleared")
        assert {i.field for i in exc_info.value.issues} == {"memo", "status"}


class TestSummary:
    def test_summary(self):
        assert RequestValidator.get_user_friendly_summary([]) == "Everything looks good."
