"""
Account model: one per Airtable identity, holding the delegated credential.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Account(BaseModel):
    """Local account keyed by the external (Airtable) user id."""

    external_id: str = Field(..., description="Airtable user id, unique per account.")
    email: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_expires_at: Optional[datetime] = Field(
        None, description="Hard gate: the token is unusable after this instant."
    )
    profile: Dict[str, Any] = Field(default_factory=dict)
    last_login_at: datetime = Field(default_factory=_utcnow)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def is_token_expired(self, now: Optional[datetime] = None) -> bool:
        if self.token_expires_at is None:
            return False
        moment = now or _utcnow()
        expires_at = self.token_expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return moment >= expires_at


def default_email(external_id: str) -> str:
    return f"{external_id}@airtable.user"


__all__ = ["Account", "default_email"]
