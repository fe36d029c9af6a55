"""
Shared fixtures.

Everything runs against the in-memory record log. Tests that need a
storage failure use FailingRecordLog, which raises StorageError on chosen
(method, collection) pairs.
"""

import gspread
import pytest

from familybank.config import LedgerSettings
from familybank.ledger import LedgerStore
from familybank.models.identity import Principal, Role
from familybank.orchestrator import create_app_components
from familybank.services.identity import InMemoryUserStore
from familybank.services.locking import AccountLocks
from familybank.services.storage import InMemoryRecordLog, StorageError
from familybank.workflow import RequestWorkflow


class FailingRecordLog(InMemoryRecordLog):
    """In-memory log that fails selected writes."""

    def __init__(self):
        super().__init__()
        self.fail_on: set[tuple[str, str]] = set()

    async def append(self, collection, record):
        if ("append", collection) in self.fail_on:
            raise StorageError(f"append to {collection} failed")
        return await super().append(collection, record)

    async def update_by_id(self, collection, record):
        if ("update_by_id", collection) in self.fail_on:
            raise StorageError(f"update of {collection} failed")
        return await super().update_by_id(collection, record)


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the record log."""

    def __init__(self, title):
        self.title = title
        self.rows: list[list[str]] = []
        # Appends that land but whose response is lost
        self.drop_responses = 0

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append([str(value) for value in values])
        if self.drop_responses:
            self.drop_responses -= 1
            raise TimeoutError("response lost")

    def update(self, range_name=None, values=None, value_input_option=None):
        index = int(range_name[1:]) - 1
        self.rows[index] = [str(value) for value in values[0]]


class FakeSpreadsheet:
    def __init__(self):
        self.sheets: dict[str, FakeWorksheet] = {}

    def worksheet(self, title):
        if title not in self.sheets:
            raise gspread.WorksheetNotFound(title)
        return self.sheets[title]

    def add_worksheet(self, title, rows, cols):
        sheet = self.sheets[title] = FakeWorksheet(title)
        return sheet


@pytest.fixture
def settings():
    return LedgerSettings(
        auto_post_deposits=True,
        auto_post_roles="requester",
        storage_backend="memory",
    )


@pytest.fixture
def admin():
    return Principal(user_id="Mom", role=Role.ADMIN, display_name="Mom")


@pytest.fixture
def kid():
    return Principal(user_id="Kid", role=Role.REQUESTER, display_name="Kid")


@pytest.fixture
def holder():
    return Principal(user_id="Etter", role=Role.HOLDER, display_name="Etter")


@pytest.fixture
def users(admin, kid, holder):
    return InMemoryUserStore([admin, kid, holder])


@pytest.fixture
def log():
    return FailingRecordLog()


@pytest.fixture
def locks():
    return AccountLocks()


@pytest.fixture
def ledger(log):
    return LedgerStore(log)


@pytest.fixture
def workflow(log, ledger, locks, settings):
    return RequestWorkflow(log, ledger, locks, settings=settings)


@pytest.fixture
def spreadsheet():
    return FakeSpreadsheet()


@pytest.fixture
def bank(users, log, settings):
    return create_app_components(users=users, log=log, settings=settings)
