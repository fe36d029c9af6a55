"""
Session and user-store collaborators.

The core only ever sees a Principal. How users are provisioned and how
credentials are checked belongs to whoever implements these interfaces.
The in-memory versions here are enough for a single-process household
deployment and for tests.
"""

import secrets
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

import structlog

from familybank.config import get_settings
from familybank.exceptions import NotFound
from familybank.models.identity import Principal, Session, normalize_user_id


logger = structlog.get_logger(__name__)


class UserStoreInterface(ABC):
    """Capability to look up a principal by user id."""

    @abstractmethod
    async def lookup(self, user_id: str) -> Optional[Principal]:
        """Case-insensitive lookup; None if the user does not exist."""
        pass

    @abstractmethod
    async def list_users(self) -> list[Principal]:
        pass


class SessionGateInterface(ABC):
    """Resolves opaque session tokens to sessions."""

    @abstractmethod
    async def resolve(self, token: str) -> Optional[Session]:
        """
        Return the session for a token.

        Returns None when the token is unknown or the session has expired.
        Callers must treat None as an authorization failure.
        """
        pass

    @abstractmethod
    async def issue(self, user_id: str) -> Session:
        """
        Start a session for a known user.

        Raises:
            NotFound: The user is not in the user store
        """
        pass

    @abstractmethod
    async def revoke(self, token: str) -> None:
        """End a session. Unknown tokens are ignored."""
        pass


class InMemoryUserStore(UserStoreInterface):
    """Users provisioned in code or from configuration."""

    def __init__(self, principals: Iterable[Principal] = ()):
        self._users: dict[str, Principal] = {}
        for principal in principals:
            self.add(principal)

    def add(self, principal: Principal) -> None:
        self._users[principal.key] = principal

    async def lookup(self, user_id: str) -> Optional[Principal]:
        return self._users.get(normalize_user_id(user_id))

    async def list_users(self) -> list[Principal]:
        return sorted(self._users.values(), key=lambda p: p.key)


class InMemorySessionGate(SessionGateInterface):
    """
    Issues random bearer tokens that expire after a fixed lifetime.
    """

    def __init__(
        self,
        users: UserStoreInterface,
        ttl_minutes: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._users = users
        if ttl_minutes is None:
            ttl_minutes = get_settings().ledger.session_ttl_minutes
        self._ttl = timedelta(minutes=ttl_minutes)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sessions: dict[str, Session] = {}

    async def issue(self, user_id: str) -> Session:
        principal = await self._users.lookup(user_id)
        if principal is None:
            raise NotFound(f"Unknown user: {user_id}")

        now = self._clock()
        session = Session(
            token=secrets.token_urlsafe(32),
            user_id=principal.user_id,
            role=principal.role,
            issued_at=now,
            expires_at=now + self._ttl,
        )
        self._sessions[session.token] = session
        logger.info("session_issued", user_id=principal.user_id, role=principal.role.value)
        return session

    async def resolve(self, token: str) -> Optional[Session]:
        session = self._sessions.get(token)
        if session is None:
            return None
        if session.is_expired(self._clock()):
            del self._sessions[token]
            logger.info("session_expired", user_id=session.user_id)
            return None
        return session

    async def revoke(self, token: str) -> None:
        self._sessions.pop(token, None)
