"""
Reconciliation of cached submissions from Airtable change notifications.

Notifications may arrive duplicated, concurrently or out of order. Every
transition is keyed by the Airtable record id and idempotent, so no further
coordination is needed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, assert_never

from pydantic import ValidationError

from formrelay.core.errors import ReconciliationError
from formrelay.models.forms import RecordStatus
from formrelay.schemas.webhooks import WebhookNotification
from formrelay.services.forms import SubmissionStore

logger = logging.getLogger(__name__)


class WebhookEventKind(Enum):
    RECORD_UPDATED = "record.updated"
    RECORD_DELETED = "record.deleted"
    UNHANDLED = "unhandled"

    @classmethod
    def from_tag(cls, tag: str) -> "WebhookEventKind":
        if tag == cls.RECORD_UPDATED.value:
            return cls.RECORD_UPDATED
        if tag == cls.RECORD_DELETED.value:
            return cls.RECORD_DELETED
        return cls.UNHANDLED


class ReconciliationOutcome(str, Enum):
    APPLIED = "applied"
    UNKNOWN_RECORD = "ignored"
    UNHANDLED_EVENT = "unhandled"


def parse_notification(payload: Any) -> WebhookNotification:
    """Validate a raw JSON body; structural problems raise ReconciliationError."""
    if not isinstance(payload, dict):
        raise ReconciliationError("Invalid webhook payload")
    try:
        return WebhookNotification.model_validate(payload)
    except ValidationError as exc:
        raise ReconciliationError("Invalid webhook payload") from exc


class ReconciliationListener:
    """Apply notification events to locally cached submissions."""

    def __init__(self, submissions: SubmissionStore) -> None:
        self._submissions = submissions

    def handle(self, notification: WebhookNotification) -> ReconciliationOutcome:
        record_id = notification.record.id
        record = self._submissions.get_by_external_id(record_id)
        if record is None:
            logger.info("Webhook received for unknown record: %s", record_id)
            return ReconciliationOutcome.UNKNOWN_RECORD

        kind = WebhookEventKind.from_tag(notification.event)
        if kind is WebhookEventKind.RECORD_UPDATED:
            record = record.model_copy(
                update={
                    "status": RecordStatus.ACTIVE,
                    "updated_at": datetime.now(timezone.utc),
                }
            )
        elif kind is WebhookEventKind.RECORD_DELETED:
            if record.status is RecordStatus.DELETED:
                return ReconciliationOutcome.APPLIED
            record = record.model_copy(update={"status": RecordStatus.DELETED})
        elif kind is WebhookEventKind.UNHANDLED:
            logger.info("Unhandled webhook event: %s", notification.event)
            return ReconciliationOutcome.UNHANDLED_EVENT
        else:
            assert_never(kind)

        self._submissions.save(record)
        logger.info("Record %s reconciled from %s", record_id, notification.event)
        return ReconciliationOutcome.APPLIED


__all__ = [
    "ReconciliationListener",
    "ReconciliationOutcome",
    "WebhookEventKind",
    "parse_notification",
]
