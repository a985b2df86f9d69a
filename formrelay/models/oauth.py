"""
Domain models for the OAuth handshake.
"""

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, Field


class TokenSet(BaseModel):
    """Tokens returned by the platform for one successful handshake."""

    access_token: str
    refresh_token: Optional[str] = Field(
        None, description="Captured and stored, never used to renew access."
    )
    expires_in: Optional[int] = Field(
        None, description="Lifetime in seconds; None for non-expiring tokens."
    )


@dataclass(frozen=True)
class PkcePair:
    """Proof-key verifier and its S256 challenge."""

    verifier: str
    challenge: str
    method: str = "S256"


__all__ = ["PkcePair", "TokenSet"]
