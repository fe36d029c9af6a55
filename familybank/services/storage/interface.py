"""
Abstract Storage Interface

DESIGN DECISION: The core depends on a tiny append-log abstraction rather
than on any particular store. This allows us to:
1. Swap Google Sheets for a relational table or an embedded log file
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

Every collection holds one record type (see schema.py). Each operation is
atomic on its own but operations do not compose; callers that need a
multi-step read-check-write sequence must hold the account lock.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from familybank.models.audit import AuditEvent


class RecordLogInterface(ABC):
    """
    Abstract interface for the persistence collaborator.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def append(self, collection: str, record: BaseModel) -> str:
        """
        Durably append a record to the end of a collection.

        Args:
            collection: Collection name (e.g. "transactions")
            record: The record to append; must match the collection schema

        Returns:
            The record's id as a string

        Raises:
            SchemaError: If the record does not match the collection
            DuplicateError: If a record with the same id already exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def scan(self, collection: str) -> list[BaseModel]:
        """
        Read every record of a collection in append order.

        The returned list is a snapshot; later writes do not affect it.
        """
        pass

    @abstractmethod
    async def update_by_id(self, collection: str, record: BaseModel) -> bool:
        """
        Replace a single record identified by its id.

        Raises:
            RecordNotFoundError: If no record has that id
            StorageError: If the write fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
        actor: Optional[str] = None,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class RecordNotFoundError(StorageError):
    """Record not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate record."""
    pass


class SchemaError(StorageError):
    """Record or row does not match the collection schema."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
