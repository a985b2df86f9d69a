"""
FastAPI routes for the form relay.

Authorization handshake, session-guarded form management, the public
delegated submission endpoint and the Airtable change-notification webhook.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from formrelay.clients import SessionCookieSigner
from formrelay.core.config import AppSettings
from formrelay.core.errors import (
    ConfigurationError,
    DelegationError,
    DelegationExpiredError,
    ReconciliationError,
    SessionPersistError,
    SubmissionValidationError,
    UpstreamError,
)
from formrelay.dependencies import (
    AppSettingsDep,
    CurrentAccount,
    clear_session_cookie,
    get_authorization_service,
    get_browser_session,
    get_delegated_write_gate,
    get_form_store,
    get_reconciliation_listener,
    get_session_signer,
    get_session_store,
    get_submission_store,
    set_session_cookie,
)
from formrelay.models.forms import Form
from formrelay.schemas import (
    AccountView,
    FormCreateRequest,
    FormSummary,
    PersonalTokenLogin,
    SubmissionRequest,
    SubmissionResult,
    SubmissionView,
)
from formrelay.services import (
    AuthorizationService,
    CallbackFailure,
    DelegatedWriteGate,
    FormStore,
    ReconciliationListener,
    SessionData,
    SessionStore,
    SubmissionStore,
)
from formrelay.services.reconciliation import parse_notification

router = APIRouter()
logger = logging.getLogger(__name__)

Signer = Annotated[SessionCookieSigner, Depends(get_session_signer)]
BrowserSession = Annotated[Optional[SessionData], Depends(get_browser_session)]
Sessions = Annotated[SessionStore, Depends(get_session_store)]
Authorization = Annotated[AuthorizationService, Depends(get_authorization_service)]
Forms = Annotated[FormStore, Depends(get_form_store)]


def _login_redirect(settings: AppSettings, reason: str) -> RedirectResponse:
    url = f"{settings.frontend_url('login')}?{urlencode({'error': reason})}"
    return RedirectResponse(url=url, status_code=HTTPStatus.FOUND)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/airtable", name="start_airtable_authorization")
async def start_airtable_authorization(
    settings: AppSettingsDep,
    signer: Signer,
    session: BrowserSession,
    sessions: Sessions,
    service: Authorization,
) -> Response:
    """Bind a nonce and PKCE verifier to the session and redirect to Airtable."""
    browser_session = session or sessions.new()
    try:
        authorization_url = service.begin(browser_session)
    except ConfigurationError as exc:
        logger.error("Cannot start authorization: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="Server configuration error: OAuth client is not configured.",
        ) from exc
    except SessionPersistError as exc:
        logger.error("Cannot start authorization: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="Unable to save the authorization session.",
        ) from exc

    response = RedirectResponse(url=authorization_url, status_code=HTTPStatus.FOUND)
    set_session_cookie(response, browser_session, settings=settings, signer=signer)
    return response


@router.get("/auth/airtable/callback", name="complete_airtable_authorization")
async def complete_airtable_authorization(
    settings: AppSettingsDep,
    signer: Signer,
    session: BrowserSession,
    service: Authorization,
    code: Optional[str] = Query(None, description="Authorization code."),
    state: Optional[str] = Query(None, description="Nonce issued at authorization."),
    error: Optional[str] = Query(None, description="Error reported by Airtable."),
) -> RedirectResponse:
    """Finish the handshake and send the browser to the dashboard or login page."""
    outcome = await service.complete(session, code=code, state=state, error=error)
    if not outcome.authorized or session is None:
        failure = outcome.failure or CallbackFailure.SESSION_EXPIRED
        logger.warning(
            "Airtable callback failed (%s): %s", failure.value, outcome.detail
        )
        return _login_redirect(settings, failure.reason_code)

    response = RedirectResponse(
        url=settings.frontend_url("dashboard"), status_code=HTTPStatus.FOUND
    )
    set_session_cookie(response, session, settings=settings, signer=signer)
    return response


@router.post("/auth/login-token", status_code=HTTPStatus.OK)
async def login_with_personal_token(
    payload: PersonalTokenLogin,
    settings: AppSettingsDep,
    signer: Signer,
    session: BrowserSession,
    sessions: Sessions,
    service: Authorization,
) -> JSONResponse:
    """Authenticate with an Airtable personal access token."""
    browser_session = session or sessions.new()
    outcome = await service.login_with_personal_token(browser_session, payload.token)
    if not outcome.authorized:
        logger.warning(
            "Personal token login failed (%s): %s",
            outcome.failure.value if outcome.failure else "unknown",
            outcome.detail,
        )

    if outcome.failure is CallbackFailure.SESSION_SAVE_FAILED:
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="Session save failed",
        )
    if not outcome.authorized or outcome.account is None:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Invalid token or failed to authenticate",
        )

    response = JSONResponse(
        content={
            "message": "Login successful",
            "account": AccountView.from_account(outcome.account).model_dump(mode="json"),
        }
    )
    set_session_cookie(response, browser_session, settings=settings, signer=signer)
    return response


@router.get("/auth/me", response_model=AccountView)
async def current_account(account: CurrentAccount) -> AccountView:
    return AccountView.from_account(account)


@router.post("/auth/logout", status_code=HTTPStatus.OK)
async def logout(
    settings: AppSettingsDep,
    session: BrowserSession,
    sessions: Sessions,
) -> JSONResponse:
    """Invalidate the server-side session and clear the cookie."""
    if session is not None:
        try:
            sessions.destroy(session.session_id)
        except SessionPersistError as exc:
            logger.error("Logout failed: %s", exc)
            raise HTTPException(
                status_code=HTTPStatus.INTERNAL_SERVER_ERROR, detail="Logout failed"
            ) from exc

    response = JSONResponse(content={"message": "Logged out successfully"})
    clear_session_cookie(response, settings=settings)
    return response


@router.post("/forms", response_model=Form, status_code=HTTPStatus.CREATED)
async def create_form(
    payload: FormCreateRequest,
    account: CurrentAccount,
    forms: Forms,
) -> Form:
    """Create a form owned by the authenticated account."""
    return forms.create(
        owner_id=account.external_id,
        base_id=payload.base_id,
        table_id=payload.table_id,
        title=payload.title,
        questions=payload.questions,
    )


@router.get("/forms", response_model=list[FormSummary])
async def list_forms(account: CurrentAccount, forms: Forms) -> list[FormSummary]:
    owned = sorted(
        forms.list_for_owner(account.external_id),
        key=lambda form: form.created_at,
        reverse=True,
    )
    return [FormSummary(**form.model_dump()) for form in owned]


@router.get(
    "/forms/{form_id}",
    response_model=Form,
    response_model_exclude={"owner_id"},
)
async def get_form(form_id: str, forms: Forms) -> Form:
    """Public: fetch a form definition for filling in."""
    form = forms.get(form_id)
    if form is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Form not found")
    return form


@router.post(
    "/responses/forms/{form_id}/submit",
    response_model=SubmissionResult,
    status_code=HTTPStatus.CREATED,
)
async def submit_form_response(
    form_id: str,
    payload: SubmissionRequest,
    forms: Forms,
    gate: Annotated[DelegatedWriteGate, Depends(get_delegated_write_gate)],
) -> SubmissionResult | JSONResponse:
    """Public: write a visitor's answers to Airtable as the form owner."""
    form = forms.get(form_id)
    if form is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Form not found")

    try:
        record = await gate.submit(form, payload.answers)
    except DelegationExpiredError as exc:
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            detail="Form owner authorization has expired",
        ) from exc
    except DelegationError as exc:
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            detail="Form owner authentication not available",
        ) from exc
    except SubmissionValidationError as exc:
        return JSONResponse(
            status_code=HTTPStatus.BAD_REQUEST, content={"errors": exc.errors}
        )
    except UpstreamError as exc:
        logger.error("Submission for form %s failed: %s", form_id, exc.detail)
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY, detail="Failed to save submission"
        ) from exc

    return SubmissionResult(record_id=record.external_record_id)


@router.get(
    "/responses/forms/{form_id}/responses", response_model=list[SubmissionView]
)
async def list_form_responses(
    form_id: str,
    account: CurrentAccount,
    forms: Forms,
    submissions: Annotated[SubmissionStore, Depends(get_submission_store)],
) -> list[SubmissionView]:
    """List submissions of a form owned by the authenticated account."""
    form = forms.get(form_id)
    if form is None or form.owner_id != account.external_id:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Form not found")
    return [
        SubmissionView.from_record(record)
        for record in submissions.list_for_form(form_id)
    ]


@router.post("/webhooks/airtable", status_code=HTTPStatus.OK)
async def airtable_webhook(
    request: Request,
    listener: Annotated[ReconciliationListener, Depends(get_reconciliation_listener)],
) -> dict:
    """Apply an Airtable change notification to the cached submission."""
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    try:
        notification = parse_notification(payload)
    except ReconciliationError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)
        ) from exc

    outcome = listener.handle(notification)
    return {"status": outcome.value}


@router.get("/webhooks/airtable", status_code=HTTPStatus.OK)
async def airtable_webhook_verification() -> dict:
    return {"status": "ok"}


__all__ = ["router"]
