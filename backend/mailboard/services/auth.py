"""Password login against configured users, with in-memory sessions."""

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

import bcrypt

from ..config import UserConfig, get_config
from ..utils.timeutil import utcnow

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """An authenticated board owner."""

    session_id: str
    username: str
    email: str
    created_at: datetime
    last_activity: datetime

    @property
    def owner_id(self) -> str:
        """Boards and emails are scoped by this identity."""
        return self.username


@dataclass
class SessionStore:
    """
    Sessions keyed by id with a sliding inactivity timeout.

    A lookup refreshes ``last_activity``; an expired session is dropped on
    lookup, and ``evict_expired`` sweeps the rest.
    """

    timeout: timedelta
    _sessions: dict[str, Session] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self._sessions)

    def _expired(self, session: Session, now: datetime) -> bool:
        return now - session.last_activity > self.timeout

    def open(self, username: str, email: str) -> Session:
        now = utcnow()
        session = Session(
            session_id=secrets.token_urlsafe(32),
            username=username,
            email=email,
            created_at=now,
            last_activity=now,
        )
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Optional[Session]:
        session = self._sessions.get(session_id)
        if session is None:
            return None

        now = utcnow()
        if self._expired(session, now):
            self.close(session_id)
            return None

        session.last_activity = now
        return session

    def close(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def evict_expired(self) -> int:
        now = utcnow()
        expired = [sid for sid, s in self._sessions.items() if self._expired(s, now)]
        for session_id in expired:
            del self._sessions[session_id]
        return len(expired)


class AuthService:
    """Authenticates configured users and manages their sessions."""

    def __init__(self, store: Optional[SessionStore] = None):
        if store is None:
            store = SessionStore(
                timeout=timedelta(minutes=get_config().session.timeout_minutes)
            )
        self.store = store

    def get_user_by_username(self, username: str) -> Optional[UserConfig]:
        return next((u for u in get_config().users if u.username == username), None)

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Check a password against its bcrypt hash; malformed hashes never match."""
        try:
            return bcrypt.checkpw(
                plain_password.encode("utf-8"), hashed_password.encode("utf-8")
            )
        except ValueError as e:
            logger.error(f"Unusable password hash in configuration: {e}")
            return False

    def authenticate(self, username: str, password: str) -> Optional[Session]:
        """Open a session when the credentials match a configured user."""
        user = self.get_user_by_username(username)
        if user is None or not self.verify_password(password, user.password_hash):
            return None

        self.store.evict_expired()
        return self.store.open(user.username, user.email)

    def get_session(self, session_id: str) -> Optional[Session]:
        return self.store.get(session_id)

    def invalidate_session(self, session_id: str) -> None:
        self.store.close(session_id)

    def evict_expired(self) -> int:
        return self.store.evict_expired()


# Global singleton instance
_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    """Get the global auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
