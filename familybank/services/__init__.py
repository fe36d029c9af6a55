"""Services package: storage backends, identity collaborators, account locks."""

from familybank.services.identity import (
    InMemorySessionGate,
    InMemoryUserStore,
    SessionGateInterface,
    UserStoreInterface,
)
from familybank.services.locking import AccountLocks

__all__ = [
    "AccountLocks",
    "InMemorySessionGate",
    "InMemoryUserStore",
    "SessionGateInterface",
    "UserStoreInterface",
]
