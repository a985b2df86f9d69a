"""Pure account reconciliation for successful handshakes."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from formrelay.models.account import Account, default_email
from formrelay.models.oauth import TokenSet


def reconcile_account(
    existing: Optional[Account],
    *,
    external_id: str,
    token_set: TokenSet,
    profile: Dict[str, Any],
    now: datetime,
) -> Account:
    """Return a new account, or an updated copy of ``existing``.

    Token fields and expiry are overwritten unconditionally: the last
    successful handshake wins. ``existing`` is never mutated.
    """
    expires_at = (
        now + timedelta(seconds=token_set.expires_in)
        if token_set.expires_in is not None
        else None
    )
    email = profile.get("email") or (existing.email if existing else None)
    updates = {
        "email": email or default_email(external_id),
        "access_token": token_set.access_token,
        "refresh_token": token_set.refresh_token,
        "token_expires_at": expires_at,
        "profile": dict(profile),
        "last_login_at": now,
        "updated_at": now,
    }

    if existing is None:
        return Account(external_id=external_id, created_at=now, **updates)
    if existing.external_id != external_id:
        raise ValueError("Cannot reconcile an account with a different external id.")
    return existing.model_copy(update=updates)


__all__ = ["reconcile_account"]
