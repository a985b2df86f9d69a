"""Public schema exports."""

from .auth import AccountView, PersonalTokenLogin
from .forms import (
    FormCreateRequest,
    FormSummary,
    SubmissionRequest,
    SubmissionResult,
    SubmissionView,
)
from .webhooks import WebhookNotification, WebhookRecordRef

__all__ = [
    "AccountView",
    "FormCreateRequest",
    "FormSummary",
    "PersonalTokenLogin",
    "SubmissionRequest",
    "SubmissionResult",
    "SubmissionView",
    "WebhookNotification",
    "WebhookRecordRef",
]
