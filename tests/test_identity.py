"""Tests for principals, the user store, the session gate and account locks."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from familybank.exceptions import NotFound
from familybank.models.identity import Principal, Role, normalize_user_id
from familybank.services.identity import (
    InMemorySessionGate,
    InMemoryUserStore,
    SessionGateInterface,
)
from familybank.services.locking import AccountLocks


class Clock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


class TestUserStore:
    """Tests for InMemoryUserStore."""

    def test_lookup_is_case_insensitive(self, users):
        principal = asyncio.run(users.lookup("  KID "))
        assert principal.user_id == "Kid"
        assert principal.role == Role.REQUESTER

    def test_unknown_user(self, users):
        assert asyncio.run(users.lookup("nobody")) is None

    def test_list_users_sorted(self, users):
        assert [p.user_id for p in asyncio.run(users.list_users())] == ["Etter", "Kid", "Mom"]

    def test_normalize(self):
        assert normalize_user_id(" Mom ") == "mom"

    def test_principal_flags(self, admin, kid):
        assert admin.is_admin and not kid.is_admin
        assert kid.key == "kid"


class TestSessionGate:
    """Tests for InMemorySessionGate."""

    def test_issue_and_resolve(self, users):
        gate = InMemorySessionGate(users, ttl_minutes=10)

        async def scenario():
            session = await gate.issue("mom")
            return session, await gate.resolve(session.token)

        session, resolved = asyncio.run(scenario())
        assert resolved == session
        assert session.role == Role.ADMIN

    def test_expiry(self, users):
        clock = Clock()
        gate = InMemorySessionGate(users, ttl_minutes=10, clock=clock)

        async def scenario():
            session = await gate.issue("kid")
            clock.now += timedelta(minutes=10)
            return await gate.resolve(session.token)

        assert asyncio.run(scenario()) is None

    def test_zero_ttl_expires_immediately(self, users):
        clock = Clock()
        gate = InMemorySessionGate(users, ttl_minutes=0, clock=clock)

        async def scenario():
            session = await gate.issue("kid")
            return session, await gate.resolve(session.token)

        session, resolved = asyncio.run(scenario())
        assert session.expires_at == session.issued_at
        assert resolved is None

    def test_gate_contract_is_abstract(self):
        assert SessionGateInterface.__abstractmethods__ == {"resolve", "issue", "revoke"}

        class ResolveOnly(SessionGateInterface):
            async def resolve(self, token):
                return None

        with pytest.raises(TypeError):
            ResolveOnly()

    def test_unknown_user_cannot_sign_in(self, users):
        gate = InMemorySessionGate(users, ttl_minutes=10)
        with pytest.raises(NotFound):
            asyncio.run(gate.issue("stranger"))

    def test_tokens_are_unique(self, users):
        gate = InMemorySessionGate(users, ttl_minutes=10)

        async def scenario():
            return {(await gate.issue("kid")).token for _ in range(5)}

        assert len(asyncio.run(scenario())) == 5


class TestAccountLocks:
    """Tests for AccountLocks."""

    def test_same_lock_for_case_variants(self):
        locks = AccountLocks()
        assert locks.for_account("Kid") is locks.for_account("kid ")
        assert locks.for_account("kid") is not locks.for_account("mom")

    def test_serializes_critical_sections(self):
        locks = AccountLocks()
        order = []

        async def worker(name):
            async with locks.for_account("kid"):
                order.append(f"{name}-in")
                await asyncio.sleep(0)
                order.append(f"{name}-out")

        async def scenario():
            await asyncio.gather(worker("a"), worker("b"))

        asyncio.run(scenario())
        assert order == ["a-in", "a-out", "b-in", "b-out"]

    def test_is_locked(self):
        locks = AccountLocks()

        async def scenario():
            async with locks.for_account("kid"):
                return locks.is_locked("KID")

        assert asyncio.run(scenario()) is True
        assert locks.is_locked("kid") is False


class TestPrincipal:
    def test_frozen(self, kid):
        with pytest.raises(ValueError):
            kid.role = Role.ADMIN

    def test_blank_user_id_rejected(self):
        with pytest.raises(ValueError):
            Principal(user_id="   ", role=Role.HOLDER)
