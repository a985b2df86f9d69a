"""Service layer exports."""

from .authorization import AuthorizationService, CallbackFailure, CallbackOutcome
from .credential_vault import CredentialVault
from .delegated_write import DelegatedWriteGate
from .forms import FormStore, SubmissionStore
from .reconciliation import ReconciliationListener, ReconciliationOutcome
from .sessions import SessionData, SessionStore
from .token_cipher import TokenCipherService

__all__ = [
    "AuthorizationService",
    "CallbackFailure",
    "CallbackOutcome",
    "CredentialVault",
    "DelegatedWriteGate",
    "FormStore",
    "ReconciliationListener",
    "ReconciliationOutcome",
    "SessionData",
    "SessionStore",
    "SubmissionStore",
    "TokenCipherService",
]
