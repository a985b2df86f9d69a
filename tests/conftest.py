"""Pytest configuration and in-memory collaborators shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from typing import Any, Dict, Optional

import httpx
import pytest

from formrelay.clients.airtable_auth import (
    AirtableOAuthClient,
    IdentityFetchError,
    OAuthTokenExchangeError,
)
from formrelay.clients.airtable_records import RecordWriteError
from formrelay.clients.session_cookie import SessionCookieSigner
from formrelay.core.config import AppSettings, get_settings
from formrelay.main import app
from formrelay.models.oauth import TokenSet
from formrelay.services import (
    CredentialVault,
    FormStore,
    SessionStore,
    SubmissionStore,
    TokenCipherService,
)


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


class MemoryStore:
    """Dict-backed stand-in for the SQLite key/value store."""

    def __init__(self) -> None:
        self.items: Dict[tuple[str, str], Dict[str, Any]] = {}
        self.failing_prefixes: set[str] = set()

    def put_item(self, item: Dict[str, Any]) -> None:
        if any(item["pk"].startswith(prefix) for prefix in self.failing_prefixes):
            raise RuntimeError("store unavailable")
        self.items[(item["pk"], item["sk"])] = dict(item)

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]:
        item = self.items.get((partition_key, sort_key))
        return dict(item) if item else None

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        self.items.pop((partition_key, sort_key), None)

    def list_items_with_prefix(
        self, *, partition_key: str, sort_key_prefix: str
    ) -> list[Dict[str, Any]]:
        return [
            dict(item)
            for (pk, sk), item in self.items.items()
            if pk == partition_key and sk.startswith(sort_key_prefix)
        ]

    def with_pk_prefix(self, prefix: str) -> list[Dict[str, Any]]:
        return [item for (pk, _), item in self.items.items() if pk.startswith(prefix)]


class StubOAuthClient(AirtableOAuthClient):
    """Real URL building; recorded, scripted token exchange and whoami."""

    def __init__(self, settings: AppSettings) -> None:
        super().__init__(settings.airtable, settings.oauth)
        self.exchange_calls: list[tuple[str, str]] = []
        self.identity_calls: list[str] = []
        self.token_set = TokenSet(
            access_token="owner-access", refresh_token="owner-refresh", expires_in=3600
        )
        self.profile: Dict[str, Any] = {"id": "usrOwner", "email": "owner@example.com"}
        self.exchange_error: Optional[str] = None
        self.identity_error: Optional[str] = None

    async def exchange_authorization_code(self, *, code: str, code_verifier: str) -> TokenSet:
        self.exchange_calls.append((code, code_verifier))
        if self.exchange_error:
            raise OAuthTokenExchangeError(self.exchange_error)
        return self.token_set

    async def fetch_identity(self, access_token: str) -> Dict[str, Any]:
        self.identity_calls.append(access_token)
        if self.identity_error:
            raise IdentityFetchError(self.identity_error)
        return dict(self.profile)

    @property
    def network_calls(self) -> int:
        return len(self.exchange_calls) + len(self.identity_calls)


class RecordingRecordsClient:
    def __init__(self) -> None:
        self.calls: list[Dict[str, Any]] = []
        self.fail_with: Optional[str] = None

    async def create_record(
        self, *, access_token: str, base_id: str, table_id: str, fields: Dict[str, Any]
    ) -> str:
        self.calls.append(
            {
                "access_token": access_token,
                "base_id": base_id,
                "table_id": table_id,
                "fields": fields,
            }
        )
        if self.fail_with:
            raise RecordWriteError(self.fail_with)
        return f"rec{len(self.calls):05d}"


@pytest.fixture()
def settings() -> AppSettings:
    return get_settings().model_copy(deep=True)


@pytest.fixture()
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="test-token-secret")


@pytest.fixture()
def vault(memory_store, cipher) -> CredentialVault:
    return CredentialVault(memory_store, cipher)


@pytest.fixture()
def form_store(memory_store) -> FormStore:
    return FormStore(memory_store)


@pytest.fixture()
def submission_store(memory_store) -> SubmissionStore:
    return SubmissionStore(memory_store)


@pytest.fixture()
def session_store(memory_store, settings) -> SessionStore:
    return SessionStore(memory_store, max_age_seconds=settings.session.max_age_seconds)


@pytest.fixture()
def signer(settings) -> SessionCookieSigner:
    return SessionCookieSigner(settings.session.secret)


@pytest.fixture()
def oauth_client(settings) -> StubOAuthClient:
    return StubOAuthClient(settings)


@pytest.fixture()
def records_client() -> RecordingRecordsClient:
    return RecordingRecordsClient()


@pytest.fixture()
def app_overrides(settings, memory_store, cipher, oauth_client, records_client):
    from formrelay import dependencies

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            dependencies.get_app_settings: lambda: settings,
            dependencies.get_sqlite_store: lambda: memory_store,
            dependencies.get_token_cipher_service: lambda: cipher,
            dependencies.get_airtable_oauth_client: lambda: oauth_client,
            dependencies.get_airtable_records_client: lambda: records_client,
        }
    )

    yield

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(app_overrides):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as test_client:
        yield test_client


@pytest.fixture()
async def visitor(app_overrides):
    """A second, cookie-less browser."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as test_client:
        yield test_client
