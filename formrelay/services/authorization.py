"""
Three-legged authorization handshake with PKCE.

``begin`` binds a fresh nonce and verifier to the browser session and returns
the consent URL. ``complete`` walks the callback state machine:

    Idle -> PendingAuthorization -> Authorized | Failed(reason)

Checks run strictly in order and the first failure short-circuits; no network
call happens until every local check has passed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from formrelay.clients.airtable_auth import (
    AirtableOAuthClient,
    IdentityFetchError,
    OAuthTokenExchangeError,
    generate_pkce_pair,
    generate_state,
)
from formrelay.core.config import OAuthSettings
from formrelay.core.errors import (
    SecurityValidationError,
    SessionPersistError,
    UpstreamError,
)
from formrelay.models.account import Account
from formrelay.models.oauth import TokenSet
from formrelay.services.accounts import reconcile_account
from formrelay.services.credential_vault import CredentialVault
from formrelay.services.sessions import AuthorizationAttempt, SessionData, SessionStore

logger = logging.getLogger(__name__)


class CallbackFailure(str, Enum):
    UPSTREAM_DENIED = "upstream_denied"
    NO_CODE = "no_code"
    SESSION_EXPIRED = "session_expired"
    INVALID_STATE = "invalid_state"
    NO_VERIFIER = "no_verifier"
    TOKEN_EXCHANGE_FAILED = "token_exchange_failed"
    IDENTITY_FETCH_FAILED = "identity_fetch_failed"
    SESSION_SAVE_FAILED = "session_save_failed"

    @property
    def reason_code(self) -> str:
        """Coarse code exposed to the browser."""
        if self is CallbackFailure.UPSTREAM_DENIED:
            return "access_denied"
        if self in (
            CallbackFailure.TOKEN_EXCHANGE_FAILED,
            CallbackFailure.IDENTITY_FETCH_FAILED,
        ):
            return "auth_failed"
        return self.value


@dataclass(frozen=True)
class CallbackOutcome:
    """Result of a callback or token login; ``detail`` is for operator logs only."""

    account: Optional[Account] = None
    failure: Optional[CallbackFailure] = None
    detail: Optional[str] = None

    @property
    def authorized(self) -> bool:
        return self.failure is None and self.account is not None


class AuthorizationService:
    """Initiates and completes the handshake for one browser session."""

    def __init__(
        self,
        *,
        oauth_client: AirtableOAuthClient,
        vault: CredentialVault,
        sessions: SessionStore,
        oauth_settings: OAuthSettings,
    ) -> None:
        self._oauth_client = oauth_client
        self._vault = vault
        self._sessions = sessions
        self._oauth_settings = oauth_settings

    def begin(self, session: SessionData) -> str:
        """Bind a new attempt to ``session``, persist it and return the consent URL.

        Raises ``ConfigurationError`` before touching the session when client
        credentials are missing, and ``SessionPersistError`` when the session
        cannot be saved; in both cases no redirect must be issued.
        """
        self._oauth_client.ensure_configured()

        pkce = generate_pkce_pair()
        state = generate_state()
        session.authorization = AuthorizationAttempt(
            state=state, code_verifier=pkce.verifier
        )
        self._sessions.save(session)

        return self._oauth_client.build_authorization_url(
            state=state, code_challenge=pkce.challenge
        )

    def _consume_attempt(
        self, session: Optional[SessionData]
    ) -> Optional[AuthorizationAttempt]:
        """Detach the pending attempt and persist its removal."""
        attempt = session.take_authorization() if session else None
        if session is None or attempt is None:
            return None
        try:
            self._sessions.save(session)
        except SessionPersistError as exc:
            raise SecurityValidationError(
                CallbackFailure.SESSION_SAVE_FAILED.value, str(exc)
            ) from exc
        return attempt

    def _validate_callback(
        self,
        session: Optional[SessionData],
        *,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str],
    ) -> tuple[SessionData, str, str]:
        # every callback burns the attempt, whatever the outcome
        attempt = self._consume_attempt(session)

        if error:
            raise SecurityValidationError(
                CallbackFailure.UPSTREAM_DENIED.value, f"Airtable reported {error!r}"
            )
        if not code:
            raise SecurityValidationError(CallbackFailure.NO_CODE.value)
        if session is None or attempt is None:
            raise SecurityValidationError(CallbackFailure.SESSION_EXPIRED.value)
        if attempt.is_expired(self._oauth_settings.state_ttl_seconds):
            raise SecurityValidationError(
                CallbackFailure.SESSION_EXPIRED.value, "Authorization attempt expired"
            )
        if state != attempt.state:
            raise SecurityValidationError(
                CallbackFailure.INVALID_STATE.value,
                f"State mismatch: expected {attempt.state!r}, received {state!r}",
            )
        if not attempt.code_verifier:
            raise SecurityValidationError(CallbackFailure.NO_VERIFIER.value)
        return session, code, attempt.code_verifier

    async def complete(
        self,
        session: Optional[SessionData],
        *,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
    ) -> CallbackOutcome:
        """Validate the callback, exchange the code and authenticate the session."""
        try:
            session, code, verifier = self._validate_callback(
                session, code=code, state=state, error=error
            )
        except SecurityValidationError as exc:
            return CallbackOutcome(failure=CallbackFailure(exc.reason), detail=str(exc))

        try:
            token_set = await self._oauth_client.exchange_authorization_code(
                code=code, code_verifier=verifier
            )
            profile = await self._oauth_client.fetch_identity(token_set.access_token)
        except (OAuthTokenExchangeError, IdentityFetchError) as exc:
            return CallbackOutcome(
                failure=CallbackFailure(exc.category), detail=exc.detail
            )

        return self._authenticate(session, token_set=token_set, profile=profile)

    async def login_with_personal_token(
        self, session: SessionData, token: str
    ) -> CallbackOutcome:
        """Authenticate a session with a personal access token (no expiry)."""
        try:
            profile = await self._oauth_client.fetch_identity(token)
        except UpstreamError as exc:
            return CallbackOutcome(
                failure=CallbackFailure.IDENTITY_FETCH_FAILED, detail=exc.detail
            )
        return self._authenticate(
            session, token_set=TokenSet(access_token=token), profile=profile
        )

    def _authenticate(
        self,
        session: SessionData,
        *,
        token_set: TokenSet,
        profile: Dict[str, Any],
    ) -> CallbackOutcome:
        external_id = str(profile["id"])
        account = reconcile_account(
            self._vault.get(external_id),
            external_id=external_id,
            token_set=token_set,
            profile=profile,
            now=datetime.now(timezone.utc),
        )
        self._vault.put(account)
        logger.info("Account %s authorized", account.external_id)

        session.authorization = None
        session.account_id = account.external_id
        try:
            # a fresh id for the authenticated session; the pre-login id is dropped
            self._sessions.rotate(session)
        except SessionPersistError as exc:
            return CallbackOutcome(
                account=account,
                failure=CallbackFailure.SESSION_SAVE_FAILED,
                detail=str(exc),
            )
        return CallbackOutcome(account=account)


__all__ = [
    "AuthorizationService",
    "CallbackFailure",
    "CallbackOutcome",
]
