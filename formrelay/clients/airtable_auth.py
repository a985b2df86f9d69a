"""
Airtable OAuth utilities.

Builds the PKCE-protected authorization URL, exchanges authorization codes for
tokens and resolves the identity behind an access token.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from fastapi import status

from formrelay.core.config import AirtableSettings, OAuthSettings
from formrelay.core.errors import ConfigurationError, UpstreamError
from formrelay.models.oauth import PkcePair, TokenSet
from formrelay.utils.http import json_object

_DEFAULT_EXPIRES_IN = 3600


class OAuthTokenExchangeError(UpstreamError):
    """Raised when the token endpoint rejects the authorization code."""

    category = "token_exchange_failed"


class IdentityFetchError(UpstreamError):
    """Raised when the whoami endpoint does not return a usable identity."""

    category = "identity_fetch_failed"


def _base64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_state() -> str:
    """Return a one-time nonce for the ``state`` parameter."""
    return secrets.token_hex(16)


def derive_code_challenge(verifier: str) -> str:
    return _base64url(hashlib.sha256(verifier.encode("ascii")).digest())


def generate_pkce_pair() -> PkcePair:
    verifier = secrets.token_urlsafe(32)
    return PkcePair(verifier=verifier, challenge=derive_code_challenge(verifier))


def _error_text(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict):
        return str(
            payload.get("error_description") or payload.get("error") or payload
        )
    return str(payload)


class AirtableOAuthClient:
    """Build Airtable authorization URLs and exchange authorization codes."""

    def __init__(
        self,
        airtable_settings: AirtableSettings,
        oauth_settings: OAuthSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._airtable = airtable_settings
        self._oauth = oauth_settings
        self._transport = transport

    def ensure_configured(self) -> None:
        """Fail fast when the client registration is incomplete."""
        if not self._airtable.client_id or not self._airtable.client_secret:
            raise ConfigurationError(
                "OAuth not configured: set AIRTABLE_CLIENT_ID and AIRTABLE_CLIENT_SECRET."
            )
        if not self._airtable.redirect_uri:
            raise ConfigurationError("Redirect URI missing: set AIRTABLE_REDIRECT_URI.")

    def build_authorization_url(self, *, state: str, code_challenge: str) -> str:
        """Construct the Airtable consent URL."""
        self.ensure_configured()
        params = {
            "client_id": self._airtable.client_id,
            "redirect_uri": self._airtable.redirect_uri,
            "response_type": "code",
            "scope": self._oauth.scopes,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{self._airtable.authorize_url}?{urlencode(params)}"

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._airtable.request_timeout_seconds,
            transport=self._transport,
        )

    def _basic_credentials(self) -> str:
        raw = f"{self._airtable.client_id}:{self._airtable.client_secret}"
        return base64.b64encode(raw.encode("utf-8")).decode("ascii")

    async def exchange_authorization_code(
        self, *, code: str, code_verifier: str
    ) -> TokenSet:
        """Exchange an authorization code and its PKCE verifier for tokens."""
        self.ensure_configured()
        payload = {
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self._airtable.redirect_uri,
            "code_verifier": code_verifier,
        }
        headers = {"Authorization": f"Basic {self._basic_credentials()}"}

        try:
            async with self._http() as client:
                response = await client.post(
                    self._airtable.token_url, data=payload, headers=headers
                )
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError(str(exc)) from exc

        if response.status_code != status.HTTP_200_OK:
            raise OAuthTokenExchangeError(_error_text(response))

        token_payload = json_object(response, OAuthTokenExchangeError)
        access_token = token_payload.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise OAuthTokenExchangeError("No access token returned from Airtable.")

        raw_expires_in = token_payload.get("expires_in") or _DEFAULT_EXPIRES_IN
        try:
            expires_in = int(raw_expires_in)
        except (TypeError, ValueError) as exc:
            raise OAuthTokenExchangeError(
                f"Invalid expires_in from Airtable: {raw_expires_in!r}"
            ) from exc

        return TokenSet(
            access_token=access_token,
            refresh_token=token_payload.get("refresh_token"),
            expires_in=expires_in,
        )

    async def fetch_identity(self, access_token: str) -> Dict[str, Any]:
        """Return the whoami profile for an access token."""
        url = f"{self._airtable.api_base_url.rstrip('/')}/meta/whoami"
        headers = {"Authorization": f"Bearer {access_token}"}

        try:
            async with self._http() as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise IdentityFetchError(str(exc)) from exc

        if response.status_code != status.HTTP_200_OK:
            raise IdentityFetchError(_error_text(response))

        profile = json_object(response, IdentityFetchError)
        if not profile.get("id"):
            raise IdentityFetchError("Invalid user data from Airtable.")
        return profile


__all__ = [
    "AirtableOAuthClient",
    "IdentityFetchError",
    "OAuthTokenExchangeError",
    "derive_code_challenge",
    "generate_pkce_pair",
    "generate_state",
]
