"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


_DEFAULT_ENV_VARS: dict[str, str] = {
    "AIRTABLE_CLIENT_ID": "test-client-id",
    "AIRTABLE_CLIENT_SECRET": "test-client-secret",
    "AIRTABLE_REDIRECT_URI": "https://relay.example.com/api/auth/airtable/callback",
    "FRONTEND_URL": "https://app.example.com",
    "SESSION_SECRET": "test-session-secret",
    "TOKEN_ENCRYPTION_SECRET": "test-token-secret",
    "FORMRELAY_DB_PATH": str(Path(tempfile.gettempdir()) / "formrelay-test.db"),
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)
