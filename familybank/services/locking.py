"""
Per-account mutual exclusion.

Every read-check-write sequence (read balance, check the business rule,
append, write back) runs while holding the lock of the account it touches.
"""

import asyncio

from familybank.models.identity import normalize_user_id


class AccountLocks:
    """Registry of asyncio locks keyed by case-insensitive user id."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def for_account(self, user_id: str) -> asyncio.Lock:
        key = normalize_user_id(user_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def is_locked(self, user_id: str) -> bool:
        lock = self._locks.get(normalize_user_id(user_id))
        return lock is not None and lock.locked()
