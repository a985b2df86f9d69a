"""Airtable record API wrapper used for delegated writes."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import status

from formrelay.core.config import AirtableSettings
from formrelay.core.errors import UpstreamError
from formrelay.utils.http import json_object

logger = logging.getLogger(__name__)


class RecordWriteError(UpstreamError):
    """Raised when Airtable refuses or fails a record create."""

    category = "record_write_failed"


class AirtableRecordsClient:
    """Create records in a base/table using a caller-supplied bearer token."""

    def __init__(
        self,
        airtable_settings: AirtableSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._airtable = airtable_settings
        self._transport = transport

    async def create_record(
        self,
        *,
        access_token: str,
        base_id: str,
        table_id: str,
        fields: Dict[str, Any],
    ) -> str:
        """Create one record and return its Airtable record id."""
        url = f"{self._airtable.api_base_url.rstrip('/')}/{base_id}/{table_id}"
        headers = {"Authorization": f"Bearer {access_token}"}
        body = {"records": [{"fields": fields}]}

        try:
            async with httpx.AsyncClient(
                timeout=self._airtable.request_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise RecordWriteError(str(exc)) from exc

        if response.status_code != status.HTTP_200_OK:
            logger.warning(
                "Airtable record create failed for %s/%s with status %s",
                base_id,
                table_id,
                response.status_code,
            )
            raise RecordWriteError(response.text)

        records = json_object(response, RecordWriteError).get("records")
        first = records[0] if isinstance(records, list) and records else None
        record_id = first.get("id") if isinstance(first, dict) else None
        if not record_id:
            raise RecordWriteError("Airtable response did not include a record id.")
        return record_id


__all__ = ["AirtableRecordsClient", "RecordWriteError"]
