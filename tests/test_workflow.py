"""
Tests for the request workflow.

Covers the state machine, partial grants, auto-post, and that a failed
storage write never leaves a half-applied decision behind.
"""

import asyncio
from uuid import uuid4

import pytest

from familybank.config import GoogleSheetsSettings, LedgerSettings
from familybank.exceptions import InvalidTransition, NotFound, ValidationError
from familybank.ledger import LedgerStore
from familybank.models.identity import Principal, Role
from familybank.models.ledger import TransactionType
from familybank.models.money import Money
from familybank.models.requests import RequestKind, RequestStatus
from familybank.services.storage import (
    REQUESTS,
    TRANSACTIONS,
    GoogleSheetsClient,
    GoogleSheetsRecordLog,
    StorageError,
)
from familybank.workflow import RequestWorkflow


class TestCreate:
    """Tests for request creation and validation."""

    def test_withdrawal_starts_pending(self, workflow, kid):
        request = asyncio.run(workflow.create(kid, "withdrawal", "15.00", "  new game  "))
        assert request.status == RequestStatus.PENDING
        assert request.kind == RequestKind.WITHDRAWAL
        assert request.amount == Money.parse("15.00")
        assert request.purpose == "new game"
        assert request.decided_by is None

    def test_collects_every_issue(self, workflow, kid):
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(workflow.create(kid, "loan", "-3", "  ", link="ftp://x"))
        fields = {issue.field for issue in exc_info.value.issues}
        assert fields == {"kind", "amount", "purpose", "link"}

    def test_purpose_length_limit(self, workflow, kid):
        with pytest.raises(ValidationError):
            asyncio.run(workflow.create(kid, "withdrawal", "1", "x" * 201))

    def test_link_must_be_http(self, workflow, kid):
        request = asyncio.run(
            workflow.create(kid, "withdrawal", "1", "book", link="https://example.com/book")
        )
        assert request.link == "https://example.com/book"

    def test_nothing_posted_while_pending(self, workflow, ledger, kid):
        asyncio.run(workflow.create(kid, "withdrawal", "5", "snack"))
        assert asyncio.run(ledger.balance_of("kid")) == Money.zero()


class TestAutoPost:
    """Deposits from auto-post roles are fulfilled immediately."""

    def test_requester_deposit_is_fulfilled(self, workflow, ledger, kid, log):
        async def scenario():
            request = await workflow.create(kid, "deposit", "10.00", "toy")
            linked = await ledger.transactions_for_request(request.id)
            stored = await workflow.get(request.id)
            return request, linked, stored

        request, linked, stored = asyncio.run(scenario())
        assert request.status == RequestStatus.FULFILLED
        assert request.decided_by == "system"
        assert request.fulfilled_amount == Money.parse("10.00")
        assert stored.status == RequestStatus.FULFILLED
        assert len(linked) == 1
        assert linked[0].signed_amount == Money.parse("10.00")
        assert linked[0].is_posted

    def test_admin_deposit_not_auto_posted_by_default(self, workflow, admin):
        request = asyncio.run(workflow.create(admin, "deposit", "10.00", "gift"))
        assert request.status == RequestStatus.PENDING

    def test_admin_role_can_be_configured(self, log, ledger, locks, admin):
        settings = LedgerSettings(auto_post_roles="requester,admin")
        workflow = RequestWorkflow(log, ledger, locks, settings=settings)
        request = asyncio.run(workflow.create(admin, "deposit", "10.00", "gift"))
        assert request.status == RequestStatus.FULFILLED

    def test_disabled_flag(self, log, ledger, locks, kid):
        settings = LedgerSettings(auto_post_deposits=False)
        workflow = RequestWorkflow(log, ledger, locks, settings=settings)
        request = asyncio.run(workflow.create(kid, "deposit", "10.00", "toy"))
        assert request.status == RequestStatus.PENDING

    def test_withdrawal_never_auto_posted(self, workflow, kid):
        request = asyncio.run(workflow.create(kid, "withdrawal", "10.00", "toy"))
        assert request.status == RequestStatus.PENDING

    def test_never_observable_as_pending(self, workflow, kid):
        async def scenario():
            await workflow.create(kid, "deposit", "10.00", "toy")
            return await workflow.list_pending()

        assert asyncio.run(scenario()) == []

    def test_failed_post_retires_request(self, workflow, ledger, kid, log):
        log.fail_on.add(("append", TRANSACTIONS))

        async def scenario():
            with pytest.raises(StorageError):
                await workflow.create(kid, "deposit", "10.00", "toy")
            return await workflow.list_for_user("kid"), await ledger.balance_of("kid")

        requests, balance = asyncio.run(scenario())
        assert [r.status for r in requests] == [RequestStatus.DENIED]
        assert requests[0].admin_note == "Auto-post failed"
        assert balance == Money.zero()


class TestDecisions:
    """Approve-and-post and deny."""

    def test_partial_grant(self, workflow, ledger, kid):
        async def scenario():
            request = await workflow.create(kid, "withdrawal", "15.00", "shoes")
            fulfilled, txn = await workflow.approve_and_post(request.id, "12.00", "Mom")
            return fulfilled, txn, await ledger.balance_of("kid")

        fulfilled, txn, balance = asyncio.run(scenario())
        assert fulfilled.status == RequestStatus.FULFILLED
        assert fulfilled.amount == Money.parse("15.00")
        assert fulfilled.fulfilled_amount == Money.parse("12.00")
        assert fulfilled.decided_by == "Mom"
        assert fulfilled.decided_at is not None
        assert txn.type == TransactionType.WITHDRAWAL
        assert txn.signed_amount == Money.parse("-12.00")
        assert txn.request_id == fulfilled.id
        assert balance == Money.parse("-12.00")

    def test_grant_above_request(self, workflow, admin):
        async def scenario():
            request = await workflow.create(admin, "deposit", "5.00", "chores")
            return await workflow.approve_and_post(request.id, "7.50", "Mom", receipt_ref="r-1")

        fulfilled, txn = asyncio.run(scenario())
        assert txn.signed_amount == Money.parse("7.50")
        assert fulfilled.receipt_ref == "r-1"

    def test_single_fulfilment(self, workflow, ledger, kid):
        async def scenario():
            request = await workflow.create(kid, "withdrawal", "5", "snack")
            await workflow.approve_and_post(request.id, "5", "Mom")
            with pytest.raises(InvalidTransition):
                await workflow.approve_and_post(request.id, "5", "Mom")
            with pytest.raises(InvalidTransition):
                await workflow.deny(request.id, "Mom")
            return await ledger.transactions_for_request(request.id)

        assert len(asyncio.run(scenario())) == 1

    def test_concurrent_approvals_post_once(self, workflow, ledger, kid):
        async def scenario():
            request = await workflow.create(kid, "withdrawal", "5", "snack")
            results = await asyncio.gather(
                workflow.approve_and_post(request.id, "5", "Mom"),
                workflow.approve_and_post(request.id, "4", "Dad"),
                return_exceptions=True,
            )
            return results, await ledger.transactions_for_request(request.id)

        results, linked = asyncio.run(scenario())
        assert sum(isinstance(r, InvalidTransition) for r in results) == 1
        assert len(linked) == 1

    def test_deny_posts_nothing(self, workflow, ledger, kid):
        async def scenario():
            request = await workflow.create(kid, "withdrawal", "5", "snack")
            denied = await workflow.deny(request.id, "Mom", note="not today")
            return denied, await ledger.transactions_for_request(request.id)

        denied, linked = asyncio.run(scenario())
        assert denied.status == RequestStatus.DENIED
        assert denied.admin_note == "not today"
        assert denied.fulfilled_amount is None
        assert linked == []

    def test_decisions_keep_request_fields(self, workflow, kid):
        """A decided request keeps its id, owner and amounts in storage."""
        async def scenario():
            first = await workflow.create(kid, "withdrawal", "15.25", "shoes")
            second = await workflow.create(kid, "withdrawal", "3.10", "snack")
            await workflow.approve_and_post(first.id, "12.00", "Mom")
            await workflow.deny(second.id, "Mom")
            return first, second, await workflow.get(first.id), await workflow.get(second.id)

        first, second, fulfilled, denied = asyncio.run(scenario())
        assert fulfilled.id == first.id and denied.id == second.id
        assert fulfilled.amount == Money(1525)
        assert fulfilled.fulfilled_amount == Money(1200)
        assert fulfilled.created_at == first.created_at
        assert denied.amount == Money(310)
        assert denied.user_id == "Kid"

    def test_unknown_request(self, workflow):
        with pytest.raises(NotFound):
            asyncio.run(workflow.approve_and_post(uuid4(), "5", "Mom"))
        with pytest.raises(NotFound):
            asyncio.run(workflow.deny(uuid4(), "Mom"))

    @pytest.mark.parametrize("amount", ["0", "-1", "abc"])
    def test_fulfilled_amount_must_be_positive(self, workflow, kid, amount):
        async def scenario():
            request = await workflow.create(kid, "withdrawal", "5", "snack")
            with pytest.raises(ValidationError):
                await workflow.approve_and_post(request.id, amount, "Mom")
            return await workflow.get(request.id)

        assert asyncio.run(scenario()).status == RequestStatus.PENDING

    def test_failed_post_restores_pending(self, workflow, ledger, kid, log):
        async def scenario():
            request = await workflow.create(kid, "withdrawal", "5", "snack")
            log.fail_on.add(("append", TRANSACTIONS))
            with pytest.raises(StorageError):
                await workflow.approve_and_post(request.id, "5", "Mom")
            return await workflow.get(request.id), await ledger.balance_of("kid")

        stored, balance = asyncio.run(scenario())
        assert stored.status == RequestStatus.PENDING
        assert stored.decided_by is None
        assert balance == Money.zero()

    def test_failed_request_update_posts_nothing(self, workflow, ledger, kid, log):
        async def scenario():
            request = await workflow.create(kid, "withdrawal", "5", "snack")
            log.fail_on.add(("update_by_id", REQUESTS))
            with pytest.raises(StorageError):
                await workflow.approve_and_post(request.id, "5", "Mom")
            return await ledger.transactions_for_request(request.id)

        assert asyncio.run(scenario()) == []


class TestListing:
    """Pending listings."""

    def test_list_pending_scopes(self, workflow, kid):
        other = Principal(user_id="Sib", role=Role.REQUESTER)

        async def scenario():
            await workflow.create(kid, "withdrawal", "1", "a")
            await workflow.create(other, "withdrawal", "2", "b")
            decided = await workflow.create(kid, "withdrawal", "3", "c")
            await workflow.deny(decided.id, "Mom")
            return await workflow.list_pending(), await workflow.list_pending("KID")

        everyone, mine = asyncio.run(scenario())
        assert [r.purpose for r in everyone] == ["a", "b"]
        assert [r.purpose for r in mine] == ["a"]


class TestSheetsBackedDecisions:
    """Decisions over the Google Sheets log, with its write retries."""

    def test_retried_transaction_append_posts_once(self, spreadsheet, locks, settings, kid):
        """An approval whose transaction append lands but loses its response posts once."""
        sheets = GoogleSheetsRecordLog(
            GoogleSheetsClient(
                settings=GoogleSheetsSettings(credentials_path="unused.json", spreadsheet_id="test"),
                spreadsheet=spreadsheet,
            )
        )
        ledger = LedgerStore(sheets)
        workflow = RequestWorkflow(sheets, ledger, locks, settings=settings)

        async def scenario():
            request = await workflow.create(kid, "withdrawal", "5.00", "snack")
            await sheets.scan(TRANSACTIONS)
            spreadsheet.sheets["Transactions"].drop_responses = 1
            await workflow.approve_and_post(request.id, "5.00", "Mom")
            return (
                await workflow.get(request.id),
                await ledger.transactions_for_request(request.id),
                await ledger.balance_of("kid"),
            )

        stored, linked, balance = asyncio.run(scenario())
        assert stored.status == RequestStatus.FULFILLED
        assert len(linked) == 1
        assert balance == Money.parse("-5.00")
