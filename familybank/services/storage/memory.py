"""
In-memory implementation of the record log.

Used by default and in tests. Records are copied on the way in and on the
way out, so callers can never mutate stored state through a reference.
"""

import asyncio
from collections import defaultdict

from pydantic import BaseModel

from familybank.services.storage.interface import (
    DuplicateError,
    RecordLogInterface,
    RecordNotFoundError,
)
from familybank.services.storage.schema import get_schema


class InMemoryRecordLog(RecordLogInterface):
    """Process-local record log keyed by collection name."""

    def __init__(self):
        self._records: dict[str, list[BaseModel]] = defaultdict(list)
        self._positions: dict[str, dict[str, int]] = defaultdict(dict)

    async def append(self, collection: str, record: BaseModel) -> str:
        schema = get_schema(collection)
        schema.check(record)
        # Suspension point, as with any real backend
        await asyncio.sleep(0)

        record_id = schema.record_id(record)
        positions = self._positions[collection]
        if record_id in positions:
            raise DuplicateError(f"Duplicate id in '{collection}': {record_id}")

        positions[record_id] = len(self._records[collection])
        self._records[collection].append(record.model_copy(deep=True))
        return record_id

    async def scan(self, collection: str) -> list[BaseModel]:
        get_schema(collection)
        await asyncio.sleep(0)
        return [record.model_copy(deep=True) for record in self._records[collection]]

    async def update_by_id(self, collection: str, record: BaseModel) -> bool:
        schema = get_schema(collection)
        schema.check(record)
        await asyncio.sleep(0)

        record_id = schema.record_id(record)
        position = self._positions[collection].get(record_id)
        if position is None:
            raise RecordNotFoundError(f"No record '{record_id}' in '{collection}'")

        self._records[collection][position] = record.model_copy(deep=True)
        return True
