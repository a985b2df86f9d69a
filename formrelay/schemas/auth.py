"""Schemas related to authentication."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from formrelay.models.account import Account


class PersonalTokenLogin(BaseModel):
    """Payload for signing in with an Airtable personal access token."""

    token: str = Field(..., min_length=1, description="Airtable personal access token.")


class AccountView(BaseModel):
    """Account as shown to its owner; tokens are never included."""

    external_id: str
    email: str
    profile: Dict[str, Any] = Field(default_factory=dict)
    token_expires_at: Optional[datetime] = None
    last_login_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> "AccountView":
        return cls(
            external_id=account.external_id,
            email=account.email,
            profile=account.profile,
            token_expires_at=account.token_expires_at,
            last_login_at=account.last_login_at,
        )


__all__ = ["AccountView", "PersonalTokenLogin"]
