"""
Record schemas, one per collection.

Rows are validated here, at the persistence boundary, so business logic
never reads a field by header name.
"""

import json
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from familybank.models.audit import AuditEvent
from familybank.models.goals import GoalAccount, GoalActionRecord
from familybank.models.ledger import Transaction
from familybank.models.requests import Request
from familybank.services.storage.interface import SchemaError


TRANSACTIONS = "transactions"
REQUESTS = "requests"
GOAL_ACCOUNTS = "goal_accounts"
GOAL_ACTIONS = "goal_actions"
AUDIT = "audit"


@dataclass(frozen=True)
class RecordSchema:
    """Maps a collection to its model and to flat string rows."""

    name: str
    model: type[BaseModel]
    id_field: str = "id"
    json_fields: tuple[str, ...] = ()

    @property
    def columns(self) -> list[str]:
        return list(self.model.model_fields)

    def record_id(self, record: BaseModel) -> str:
        return str(getattr(record, self.id_field))

    def check(self, record: Any) -> BaseModel:
        if not isinstance(record, self.model):
            raise SchemaError(
                f"Collection '{self.name}' stores {self.model.__name__}, "
                f"got {type(record).__name__}"
            )
        return record

    def to_row(self, record: BaseModel) -> list[str]:
        """Flatten a record into one string cell per column."""
        data = self.check(record).model_dump(mode="json")
        row = []
        for column in self.columns:
            value = data[column]
            if value is None:
                row.append("")
            elif column in self.json_fields:
                row.append(json.dumps(value))
            elif isinstance(value, bool):
                row.append("true" if value else "false")
            else:
                row.append(str(value))
        return row

    def from_row(self, row: list[str]) -> BaseModel:
        """Rebuild a record from a row, validating every field."""
        data = {}
        try:
            for index, column in enumerate(self.columns):
                cell = row[index] if index < len(row) else ""
                if cell == "":
                    continue
                data[column] = json.loads(cell) if column in self.json_fields else cell

            return self.model.model_validate(data)
        except (PydanticValidationError, json.JSONDecodeError) as e:
            raise SchemaError(f"Malformed row in '{self.name}': {e}") from e


COLLECTIONS: dict[str, RecordSchema] = {
    TRANSACTIONS: RecordSchema(TRANSACTIONS, Transaction),
    REQUESTS: RecordSchema(REQUESTS, Request),
    GOAL_ACCOUNTS: RecordSchema(GOAL_ACCOUNTS, GoalAccount),
    GOAL_ACTIONS: RecordSchema(GOAL_ACTIONS, GoalActionRecord),
    AUDIT: RecordSchema(AUDIT, AuditEvent, id_field="event_id", json_fields=("details",)),
}


def get_schema(collection: str) -> RecordSchema:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise SchemaError(f"Unknown collection: {collection}")
