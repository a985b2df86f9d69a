"""
Browser session resolution and the session guard for authenticated routes.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, Response

from formrelay.clients import SessionCookieSigner
from formrelay.core.config import AppSettings
from formrelay.dependencies.clients import (
    get_credential_vault,
    get_session_signer,
    get_session_store,
)
from formrelay.dependencies.config import AppSettingsDep
from formrelay.models.account import Account
from formrelay.services import CredentialVault, SessionData, SessionStore

logger = logging.getLogger(__name__)


def get_browser_session(
    request: Request,
    settings: AppSettingsDep,
    signer: Annotated[SessionCookieSigner, Depends(get_session_signer)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> Optional[SessionData]:
    """Return the session named by a validly signed cookie, if it is still live."""
    session_id = signer.unsign(request.cookies.get(settings.session.cookie_name))
    if not session_id:
        return None
    return sessions.get(session_id)


def require_account(
    session: Annotated[Optional[SessionData], Depends(get_browser_session)],
    vault: Annotated[CredentialVault, Depends(get_credential_vault)],
) -> Account:
    """Resolve the authenticated account or fail closed with 401."""
    account = None
    if session is not None and session.account_id:
        account = vault.get(session.account_id)
    if account is None:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Authentication required",
        )
    return account


def set_session_cookie(
    response: Response,
    session: SessionData,
    *,
    settings: AppSettings,
    signer: SessionCookieSigner,
) -> None:
    response.set_cookie(
        key=settings.session.cookie_name,
        value=signer.sign(session.session_id),
        max_age=settings.session.max_age_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.session.same_site,
        domain=settings.session.cookie_domain,
    )


def clear_session_cookie(response: Response, *, settings: AppSettings) -> None:
    response.delete_cookie(
        key=settings.session.cookie_name,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.session.same_site,
        domain=settings.session.cookie_domain,
    )


CurrentAccount = Annotated[Account, Depends(require_account)]

__all__ = [
    "CurrentAccount",
    "clear_session_cookie",
    "get_browser_session",
    "require_account",
    "set_session_cookie",
]
