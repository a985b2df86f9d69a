"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Process-wide singletons (the SQLite store) are cached; services are assembled
per request from their injected collaborators so that overriding a leaf
dependency in tests reaches every service built on top of it.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from formrelay.clients import (
    AirtableOAuthClient,
    AirtableRecordsClient,
    KeyValueStore,
    SessionCookieSigner,
    SQLiteStore,
)
from formrelay.dependencies.config import AppSettingsDep
from formrelay.services import (
    AuthorizationService,
    CredentialVault,
    DelegatedWriteGate,
    FormStore,
    ReconciliationListener,
    SessionStore,
    SubmissionStore,
    TokenCipherService,
)


@lru_cache()
def _sqlite_store(db_path: str) -> SQLiteStore:
    return SQLiteStore(db_path)


def get_sqlite_store(settings: AppSettingsDep) -> KeyValueStore:
    """Provide the shared key/value store."""
    return _sqlite_store(settings.database_path)


def get_token_cipher_service(settings: AppSettingsDep) -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    secret = settings.security.token_encryption_secret or settings.session.secret
    return TokenCipherService(secret=secret)


def get_session_signer(settings: AppSettingsDep) -> SessionCookieSigner:
    return SessionCookieSigner(settings.session.secret)


def get_airtable_oauth_client(settings: AppSettingsDep) -> AirtableOAuthClient:
    return AirtableOAuthClient(settings.airtable, settings.oauth)


def get_airtable_records_client(settings: AppSettingsDep) -> AirtableRecordsClient:
    return AirtableRecordsClient(settings.airtable)


def get_credential_vault(
    store: Annotated[KeyValueStore, Depends(get_sqlite_store)],
    cipher: Annotated[TokenCipherService, Depends(get_token_cipher_service)],
) -> CredentialVault:
    return CredentialVault(store, cipher)


def get_session_store(
    settings: AppSettingsDep,
    store: Annotated[KeyValueStore, Depends(get_sqlite_store)],
) -> SessionStore:
    return SessionStore(store, max_age_seconds=settings.session.max_age_seconds)


def get_form_store(
    store: Annotated[KeyValueStore, Depends(get_sqlite_store)],
) -> FormStore:
    return FormStore(store)


def get_submission_store(
    store: Annotated[KeyValueStore, Depends(get_sqlite_store)],
) -> SubmissionStore:
    return SubmissionStore(store)


def get_authorization_service(
    settings: AppSettingsDep,
    oauth_client: Annotated[AirtableOAuthClient, Depends(get_airtable_oauth_client)],
    vault: Annotated[CredentialVault, Depends(get_credential_vault)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> AuthorizationService:
    return AuthorizationService(
        oauth_client=oauth_client,
        vault=vault,
        sessions=sessions,
        oauth_settings=settings.oauth,
    )


def get_delegated_write_gate(
    vault: Annotated[CredentialVault, Depends(get_credential_vault)],
    records_client: Annotated[
        AirtableRecordsClient, Depends(get_airtable_records_client)
    ],
    submissions: Annotated[SubmissionStore, Depends(get_submission_store)],
) -> DelegatedWriteGate:
    return DelegatedWriteGate(
        vault=vault, records_client=records_client, submissions=submissions
    )


def get_reconciliation_listener(
    submissions: Annotated[SubmissionStore, Depends(get_submission_store)],
) -> ReconciliationListener:
    return ReconciliationListener(submissions)


__all__ = [
    "get_airtable_oauth_client",
    "get_airtable_records_client",
    "get_authorization_service",
    "get_credential_vault",
    "get_delegated_write_gate",
    "get_form_store",
    "get_reconciliation_listener",
    "get_session_signer",
    "get_session_store",
    "get_sqlite_store",
    "get_submission_store",
    "get_token_cipher_service",
]
