"""Schemas for Airtable change notifications."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class WebhookRecordRef(BaseModel):
    """The record a notification refers to; extra attributes are kept."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)


class WebhookNotification(BaseModel):
    """Body posted by Airtable for a record change."""

    model_config = ConfigDict(extra="ignore")

    event: str = Field(..., min_length=1, description="Event tag, e.g. record.deleted.")
    base: str = Field(..., min_length=1)
    table: str = Field(..., min_length=1)
    record: WebhookRecordRef


__all__ = ["WebhookNotification", "WebhookRecordRef"]
