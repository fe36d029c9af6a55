"""
Identity Models

The core never manages credentials. It only consumes an authenticated
principal (user id + role) handed over by the session collaborator.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """
    Roles a principal can hold.

    ADMIN decides requests and posts direct transactions.
    REQUESTER is the unprivileged HomeBank role (a kid asking for money).
    HOLDER owns an EtterBank goal account and moves funds directly.
    """
    ADMIN = "admin"
    REQUESTER = "requester"
    HOLDER = "holder"


def normalize_user_id(user_id: str) -> str:
    """Canonical key for case-insensitive user lookups."""
    return user_id.strip().casefold()


class Principal(BaseModel):
    """The authenticated identity under which an operation executes."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    user_id: str = Field(..., min_length=1, max_length=100)
    role: Role
    display_name: Optional[str] = Field(default=None, max_length=200)

    @property
    def key(self) -> str:
        return normalize_user_id(self.user_id)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class Session(BaseModel):
    """An issued session as returned by the session collaborator."""
    model_config = ConfigDict(frozen=True)

    token: str
    user_id: str
    role: Role
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
