"""HTTP response helpers shared by the Airtable clients."""

from __future__ import annotations

from typing import Any, Dict, Type

import httpx

from formrelay.core.errors import UpstreamError


def json_object(response: httpx.Response, error_cls: Type[UpstreamError]) -> Dict[str, Any]:
    """Decode a JSON object body or raise ``error_cls``.

    Airtable occasionally answers 200 with an HTML maintenance page; that must
    surface as the client's own error, never as a decoding exception.
    """
    try:
        payload = response.json()
    except ValueError as exc:
        raise error_cls(
            f"Non-JSON body from Airtable (status {response.status_code})."
        ) from exc
    if not isinstance(payload, dict):
        raise error_cls(
            f"Unexpected {type(payload).__name__} body from Airtable."
        )
    return payload


__all__ = ["json_object"]
