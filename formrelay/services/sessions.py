"""Server-side browser sessions backed by the key/value store."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from formrelay.clients.sqlite_store import KeyValueStore
from formrelay.core.errors import SessionPersistError

logger = logging.getLogger(__name__)

_SORT_KEY = "state"


def _partition_key(session_id: str) -> str:
    return f"session#{session_id}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_instant(raw: str) -> datetime:
    value = datetime.fromisoformat(raw)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class AuthorizationAttempt:
    """An in-flight handshake bound to exactly one session."""

    state: str
    code_verifier: Optional[str]
    created_at: datetime = field(default_factory=_utcnow)

    def is_expired(self, ttl_seconds: int, *, reference: Optional[datetime] = None) -> bool:
        moment = reference or _utcnow()
        return moment - self.created_at > timedelta(seconds=ttl_seconds)


@dataclass(slots=True)
class SessionData:
    """What a session may hold: a pending attempt and, later, an account id."""

    session_id: str
    created_at: datetime = field(default_factory=_utcnow)
    account_id: Optional[str] = None
    authorization: Optional[AuthorizationAttempt] = None

    @property
    def is_authenticated(self) -> bool:
        return self.account_id is not None

    def take_authorization(self) -> Optional[AuthorizationAttempt]:
        """Remove and return the bound attempt so it can never be reused."""
        attempt, self.authorization = self.authorization, None
        return attempt

    def to_item(self) -> Dict[str, Any]:
        attempt = None
        if self.authorization:
            attempt = {
                "state": self.authorization.state,
                "code_verifier": self.authorization.code_verifier,
                "created_at": self.authorization.created_at.isoformat(),
            }
        return {
            "pk": _partition_key(self.session_id),
            "sk": _SORT_KEY,
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "account_id": self.account_id,
            "authorization": attempt,
        }

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "SessionData":
        attempt_raw = item.get("authorization")
        attempt = None
        if attempt_raw:
            attempt = AuthorizationAttempt(
                state=attempt_raw["state"],
                code_verifier=attempt_raw.get("code_verifier"),
                created_at=_parse_instant(attempt_raw["created_at"]),
            )
        return cls(
            session_id=item["session_id"],
            created_at=_parse_instant(item["created_at"]),
            account_id=item.get("account_id"),
            authorization=attempt,
        )


class SessionStore:
    """Create, load, save and destroy sessions with a fixed maximum age."""

    def __init__(self, store: KeyValueStore, *, max_age_seconds: int) -> None:
        self._store = store
        self._max_age = timedelta(seconds=max_age_seconds)

    def new(self) -> SessionData:
        """Return a fresh, unsaved session."""
        return SessionData(session_id=secrets.token_urlsafe(32))

    def get(self, session_id: str) -> Optional[SessionData]:
        item = self._store.get_item(
            partition_key=_partition_key(session_id), sort_key=_SORT_KEY
        )
        if not item:
            return None
        session = SessionData.from_item(item)
        if _utcnow() - session.created_at > self._max_age:
            logger.info("Discarding session past its maximum age")
            self.destroy(session_id)
            return None
        return session

    def save(self, session: SessionData) -> None:
        try:
            self._store.put_item(session.to_item())
        except Exception as exc:  # pylint: disable=broad-except
            raise SessionPersistError("Failed to persist session.") from exc

    def rotate(self, session: SessionData) -> None:
        """Move ``session`` to a fresh id and drop the row under the old one."""
        previous_id = session.session_id
        session.session_id = secrets.token_urlsafe(32)
        try:
            self.save(session)
        except SessionPersistError:
            session.session_id = previous_id
            raise
        self.destroy(previous_id)

    def destroy(self, session_id: str) -> None:
        try:
            self._store.delete_item(
                partition_key=_partition_key(session_id), sort_key=_SORT_KEY
            )
        except Exception as exc:  # pylint: disable=broad-except
            raise SessionPersistError("Failed to destroy session.") from exc


__all__ = ["AuthorizationAttempt", "SessionData", "SessionStore"]
