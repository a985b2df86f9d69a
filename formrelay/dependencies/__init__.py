"""Expose dependency helpers for FastAPI routers."""

from .auth import (
    CurrentAccount,
    clear_session_cookie,
    get_browser_session,
    require_account,
    set_session_cookie,
)
from .clients import (
    get_airtable_oauth_client,
    get_airtable_records_client,
    get_authorization_service,
    get_credential_vault,
    get_delegated_write_gate,
    get_form_store,
    get_reconciliation_listener,
    get_session_signer,
    get_session_store,
    get_sqlite_store,
    get_submission_store,
    get_token_cipher_service,
)
from .config import AppSettingsDep, get_app_settings

__all__ = [
    "CurrentAccount",
    "AppSettingsDep",
    "clear_session_cookie",
    "get_airtable_oauth_client",
    "get_airtable_records_client",
    "get_app_settings",
    "get_authorization_service",
    "get_browser_session",
    "get_credential_vault",
    "get_delegated_write_gate",
    "get_form_store",
    "get_reconciliation_listener",
    "get_session_signer",
    "get_session_store",
    "get_sqlite_store",
    "get_submission_store",
    "get_token_cipher_service",
    "require_account",
    "set_session_cookie",
]
