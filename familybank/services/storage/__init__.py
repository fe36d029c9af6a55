"""
Storage Services Package

Provides the append-log interface and its implementations.
In-memory is the default; Google Sheets is available for households that
want to see their ledger in a spreadsheet.
"""

from familybank.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    RecordLogInterface,
    RecordNotFoundError,
    SchemaError,
    StorageError,
)
from familybank.services.storage.schema import (
    AUDIT,
    COLLECTIONS,
    GOAL_ACCOUNTS,
    GOAL_ACTIONS,
    REQUESTS,
    TRANSACTIONS,
    RecordSchema,
    get_schema,
)
from familybank.services.storage.memory import InMemoryRecordLog
from familybank.services.storage.audit_log import RecordLogAuditStorage
from familybank.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRecordLog,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RecordLogInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "RecordNotFoundError",
    "SchemaError",
    "StorageError",
    # Schemas
    "AUDIT",
    "COLLECTIONS",
    "GOAL_ACCOUNTS",
    "GOAL_ACTIONS",
    "REQUESTS",
    "TRANSACTIONS",
    "RecordSchema",
    "get_schema",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsRecordLog",
    "InMemoryRecordLog",
    "RecordLogAuditStorage",
]
