"""
Audit storage on top of the record log.

Audit events live in their own append-only collection of whichever
backend is configured.
"""

from typing import Optional
from uuid import UUID

from familybank.models.audit import AuditEvent
from familybank.services.storage.interface import (
    AuditStorageInterface,
    RecordLogInterface,
)
from familybank.services.storage.schema import AUDIT


class RecordLogAuditStorage(AuditStorageInterface):
    """Audit events stored in the ``audit`` collection."""

    def __init__(self, log: RecordLogInterface):
        self._log = log

    async def append_event(self, event: AuditEvent) -> bool:
        await self._log.append(AUDIT, event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            event for event in await self._log.scan(AUDIT)
            if event.correlation_id == correlation_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
        actor: Optional[str] = None,
    ) -> list[AuditEvent]:
        events = await self._log.scan(AUDIT)
        if actor is not None:
            events = [event for event in events if event.actor == actor]
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
