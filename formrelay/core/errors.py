"""Error taxonomy shared by the authorization, delegation and webhook flows.

Every error is resolved at the route that triggers it; none of them is
retried inside the service layer.
"""

from __future__ import annotations

from typing import Optional


class FormRelayError(Exception):
    """Base class for all application errors."""


class ConfigurationError(FormRelayError):
    """Raised when required local configuration (client credentials) is missing."""


class SecurityValidationError(FormRelayError):
    """Raised when a callback fails one of the handshake security checks.

    ``reason`` is the coarse code shown to the browser. The message may carry
    internal detail and must only be logged.
    """

    def __init__(self, reason: str, message: Optional[str] = None) -> None:
        self.reason = reason
        super().__init__(message or reason)


class UpstreamError(FormRelayError):
    """Raised when a call to the platform fails.

    ``category`` is safe to show to users, ``detail`` is operator diagnostics.
    """

    category = "upstream_error"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(f"{self.category}: {detail}" if detail else self.category)


class SessionPersistError(FormRelayError):
    """Raised when the session store fails to save or delete a session."""


class DelegationError(FormRelayError):
    """Raised when the form owner's credential cannot be used for a write."""


class DelegationExpiredError(DelegationError):
    """Raised when the form owner's access token is past its expiry."""


class SubmissionValidationError(FormRelayError):
    """Raised when submitted answers do not fit the form definition."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("; ".join(errors))


class ReconciliationError(FormRelayError):
    """Raised for structurally invalid change notifications."""


__all__ = [
    "ConfigurationError",
    "DelegationError",
    "DelegationExpiredError",
    "FormRelayError",
    "ReconciliationError",
    "SecurityValidationError",
    "SessionPersistError",
    "SubmissionValidationError",
    "UpstreamError",
]
