try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import logging
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from formrelay import dependencies
from formrelay.clients.airtable_auth import AirtableOAuthClient, derive_code_challenge
from formrelay.main import app

pytestmark = pytest.mark.anyio


def _query(location: str) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(urlparse(location).query).items()}


def _pending_attempt(memory_store) -> dict:
    sessions = memory_store.with_pk_prefix("session#")
    assert len(sessions) == 1
    return sessions[0]["authorization"]


async def _start(client) -> dict[str, str]:
    response = await client.get("/api/auth/airtable")
    assert response.status_code == 302
    return _query(response.headers["location"])


async def test_authorize_redirects_with_pkce_and_binds_session(client, memory_store):
    response = await client.get("/api/auth/airtable")

    assert response.status_code == 302
    location = response.headers["location"]
    assert location.startswith("https://airtable.com/oauth2/v1/authorize?")
    params = _query(location)
    assert params["client_id"] == "test-client-id"
    assert params["redirect_uri"] == "https://relay.example.com/api/auth/airtable/callback"
    assert params["response_type"] == "code"
    assert params["code_challenge_method"] == "S256"
    assert "data.records:write" in params["scope"].split(" ")

    attempt = _pending_attempt(memory_store)
    assert attempt["state"] == params["state"]
    assert params["code_challenge"] == derive_code_challenge(attempt["code_verifier"])

    set_cookie = response.headers["set-cookie"].lower()
    assert "httponly" in set_cookie
    assert "samesite=lax" in set_cookie
    assert "max-age=86400" in set_cookie


async def test_authorize_without_client_credentials_fails_before_redirect(
    client, settings, memory_store
):
    settings.airtable.client_secret = None

    response = await client.get("/api/auth/airtable")

    assert response.status_code == 500
    assert "location" not in response.headers
    assert memory_store.with_pk_prefix("session#") == []


async def test_authorize_does_not_redirect_when_session_cannot_be_saved(
    client, memory_store
):
    memory_store.failing_prefixes.add("session#")

    response = await client.get("/api/auth/airtable")

    assert response.status_code == 500
    assert "location" not in response.headers


async def test_callback_success_creates_account_and_authenticates(
    client, memory_store, oauth_client, vault
):
    params = await _start(client)
    verifier = _pending_attempt(memory_store)["code_verifier"]

    response = await client.get(
        "/api/auth/airtable/callback",
        params={"code": "auth-code", "state": params["state"]},
    )

    assert response.status_code == 302
    assert response.headers["location"] == "https://app.example.com/dashboard"
    assert oauth_client.exchange_calls == [("auth-code", verifier)]
    assert oauth_client.identity_calls == ["owner-access"]

    account = vault.get("usrOwner")
    assert account is not None
    assert account.access_token == "owner-access"
    assert account.refresh_token == "owner-refresh"
    assert account.email == "owner@example.com"

    session = memory_store.with_pk_prefix("session#")[0]
    assert session["account_id"] == "usrOwner"
    assert session["authorization"] is None

    me = await client.get("/api/auth/me")
    assert me.status_code == 200
    body = me.json()
    assert body["external_id"] == "usrOwner"
    assert "access_token" not in body


async def test_callback_state_mismatch_makes_no_network_calls(client, oauth_client):
    params = await _start(client)

    response = await client.get(
        "/api/auth/airtable/callback",
        params={"code": "auth-code", "state": params["state"] + "x"},
    )

    assert response.status_code == 302
    assert response.headers["location"] == (
        "https://app.example.com/login?error=invalid_state"
    )
    assert oauth_client.network_calls == 0


async def test_attempt_is_single_use(client, oauth_client):
    params = await _start(client)
    callback = {"code": "auth-code", "state": params["state"]}

    first = await client.get("/api/auth/airtable/callback", params=callback)
    second = await client.get("/api/auth/airtable/callback", params=callback)

    assert first.headers["location"].endswith("/dashboard")
    assert second.headers["location"].endswith("/login?error=session_expired")
    assert len(oauth_client.exchange_calls) == 1


async def test_failed_callback_also_consumes_attempt(client, oauth_client):
    params = await _start(client)

    await client.get(
        "/api/auth/airtable/callback", params={"code": "c", "state": "wrong"}
    )
    retry = await client.get(
        "/api/auth/airtable/callback", params={"code": "c", "state": params["state"]}
    )

    assert retry.headers["location"].endswith("error=session_expired")
    assert oauth_client.network_calls == 0


@pytest.mark.parametrize(
    ("query", "reason"),
    [
        ({"error": "access_denied", "code": "c", "state": "s"}, "access_denied"),
        ({"state": "s"}, "no_code"),
    ],
)
async def test_early_rejections_still_consume_attempt(
    client, oauth_client, memory_store, query, reason
):
    params = await _start(client)

    response = await client.get("/api/auth/airtable/callback", params=query)

    assert response.headers["location"].endswith(f"/login?error={reason}")
    assert oauth_client.network_calls == 0
    assert _pending_attempt(memory_store) is None

    retry = await client.get(
        "/api/auth/airtable/callback", params={"code": "c", "state": params["state"]}
    )
    assert retry.headers["location"].endswith("/login?error=session_expired")
    assert oauth_client.network_calls == 0


async def test_callback_without_session_reports_session_expired(client, oauth_client):
    response = await client.get(
        "/api/auth/airtable/callback", params={"code": "c", "state": "s"}
    )

    assert response.headers["location"].endswith("/login?error=session_expired")
    assert oauth_client.network_calls == 0


async def test_callback_without_verifier_reports_no_verifier(
    client, memory_store, oauth_client
):
    params = await _start(client)
    session = memory_store.with_pk_prefix("session#")[0]
    session["authorization"]["code_verifier"] = None
    memory_store.put_item(session)

    response = await client.get(
        "/api/auth/airtable/callback", params={"code": "c", "state": params["state"]}
    )

    assert response.headers["location"].endswith("/login?error=no_verifier")
    assert oauth_client.network_calls == 0


async def test_stale_attempt_reports_session_expired(client, memory_store, oauth_client):
    params = await _start(client)
    session = memory_store.with_pk_prefix("session#")[0]
    stale = datetime.now(timezone.utc) - timedelta(hours=1)
    session["authorization"]["created_at"] = stale.isoformat()
    memory_store.put_item(session)

    response = await client.get(
        "/api/auth/airtable/callback", params={"code": "c", "state": params["state"]}
    )

    assert response.headers["location"].endswith("/login?error=session_expired")
    assert oauth_client.network_calls == 0


async def test_token_exchange_failure_is_generic_to_the_browser(client, oauth_client, vault):
    oauth_client.exchange_error = "invalid_grant: code already used"
    params = await _start(client)

    response = await client.get(
        "/api/auth/airtable/callback", params={"code": "c", "state": params["state"]}
    )

    assert response.headers["location"] == "https://app.example.com/login?error=auth_failed"
    assert "invalid_grant" not in response.headers["location"]
    assert oauth_client.identity_calls == []
    assert vault.get("usrOwner") is None


async def test_identity_fetch_failure_reports_auth_failed(client, oauth_client, vault):
    oauth_client.identity_error = "401 Unauthorized"
    params = await _start(client)

    response = await client.get(
        "/api/auth/airtable/callback", params={"code": "c", "state": params["state"]}
    )

    assert response.headers["location"].endswith("/login?error=auth_failed")
    assert vault.get("usrOwner") is None


async def test_session_save_failure_after_authorization_is_reported(
    client, memory_store, oauth_client
):
    params = await _start(client)
    original_fetch = oauth_client.fetch_identity

    async def fetch_then_break_store(access_token: str):
        profile = await original_fetch(access_token)
        memory_store.failing_prefixes.add("session#")
        return profile

    oauth_client.fetch_identity = fetch_then_break_store

    response = await client.get(
        "/api/auth/airtable/callback", params={"code": "c", "state": params["state"]}
    )

    assert response.headers["location"].endswith("/login?error=session_save_failed")
    memory_store.failing_prefixes.clear()
    me = await client.get("/api/auth/me")
    assert me.status_code == 401


async def test_repeat_handshake_overwrites_tokens(client, oauth_client, vault):
    params = await _start(client)
    await client.get(
        "/api/auth/airtable/callback", params={"code": "c1", "state": params["state"]}
    )

    oauth_client.token_set = oauth_client.token_set.model_copy(
        update={"access_token": "second-access", "refresh_token": "second-refresh"}
    )
    params = await _start(client)
    await client.get(
        "/api/auth/airtable/callback", params={"code": "c2", "state": params["state"]}
    )

    account = vault.get("usrOwner")
    assert account.access_token == "second-access"
    assert account.refresh_token == "second-refresh"


async def test_session_id_is_rotated_on_authentication(client, memory_store, settings):
    params = await _start(client)
    pre_login = memory_store.with_pk_prefix("session#")[0]["session_id"]
    pre_login_cookie = client.cookies.get(settings.session.cookie_name)

    response = await client.get(
        "/api/auth/airtable/callback", params={"code": "c", "state": params["state"]}
    )

    sessions = memory_store.with_pk_prefix("session#")
    assert len(sessions) == 1
    assert sessions[0]["session_id"] != pre_login
    assert sessions[0]["account_id"] == "usrOwner"
    assert response.headers["set-cookie"].startswith(
        f"{settings.session.cookie_name}={sessions[0]['session_id']}."
    )

    # the pre-login cookie no longer names a live session
    client.cookies.clear()
    client.cookies.set(settings.session.cookie_name, pre_login_cookie)
    assert (await client.get("/api/auth/me")).status_code == 401


def _real_oauth_client(settings, handler) -> AirtableOAuthClient:
    return AirtableOAuthClient(
        settings.airtable, settings.oauth, transport=httpx.MockTransport(handler)
    )


async def test_html_token_response_redirects_with_auth_failed(client, settings, vault):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    real_client = _real_oauth_client(settings, handler)
    app.dependency_overrides[dependencies.get_airtable_oauth_client] = lambda: real_client
    params = await _start(client)

    response = await client.get(
        "/api/auth/airtable/callback", params={"code": "c", "state": params["state"]}
    )

    assert response.status_code == 302
    assert response.headers["location"].endswith("/login?error=auth_failed")
    assert vault.get("usrOwner") is None


async def test_html_identity_response_redirects_with_auth_failed(client, settings, vault):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/token"):
            return httpx.Response(200, json={"access_token": "at", "expires_in": 60})
        return httpx.Response(200, text="<html>maintenance</html>")

    real_client = _real_oauth_client(settings, handler)
    app.dependency_overrides[dependencies.get_airtable_oauth_client] = lambda: real_client
    params = await _start(client)

    response = await client.get(
        "/api/auth/airtable/callback", params={"code": "c", "state": params["state"]}
    )

    assert response.status_code == 302
    assert response.headers["location"].endswith("/login?error=auth_failed")
    assert vault.get("usrOwner") is None


async def test_failure_detail_is_logged_but_not_redirected(client, oauth_client, caplog):
    caplog.set_level(logging.WARNING, logger="formrelay.api.routes")
    oauth_client.exchange_error = "invalid_grant: code already used"
    params = await _start(client)

    response = await client.get(
        "/api/auth/airtable/callback", params={"code": "c", "state": params["state"]}
    )

    assert "invalid_grant" not in response.headers["location"]
    messages = [
        record.getMessage()
        for record in caplog.records
        if record.name == "formrelay.api.routes"
    ]
    assert any(
        "token_exchange_failed" in message and "invalid_grant" in message
        for message in messages
    )
