"""HMAC signing for the session cookie value."""

from __future__ import annotations

import base64
import hmac
from hashlib import sha256
from typing import Optional


class SessionCookieSigner:
    """Sign session ids so a client cannot mint or alter one."""

    _SEPARATOR = "."

    def __init__(self, secret_key: str) -> None:
        if not secret_key:
            raise ValueError("Session secret must be provided.")
        self._secret_key = secret_key.encode("utf-8")

    def _signature(self, session_id: str) -> str:
        digest = hmac.new(self._secret_key, session_id.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")

    def sign(self, session_id: str) -> str:
        return f"{session_id}{self._SEPARATOR}{self._signature(session_id)}"

    def unsign(self, cookie_value: str | None) -> Optional[str]:
        """Return the session id, or None when the value is missing or forged."""
        if not cookie_value:
            return None
        session_id, sep, signature = cookie_value.rpartition(self._SEPARATOR)
        if not sep or not session_id:
            return None
        if not hmac.compare_digest(signature, self._signature(session_id)):
            return None
        return session_id


__all__ = ["SessionCookieSigner"]
