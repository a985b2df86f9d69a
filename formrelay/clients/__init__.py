"""Expose constructed client wrappers."""

from .airtable_auth import AirtableOAuthClient
from .airtable_records import AirtableRecordsClient
from .session_cookie import SessionCookieSigner
from .sqlite_store import KeyValueStore, SQLiteStore

__all__ = [
    "AirtableOAuthClient",
    "AirtableRecordsClient",
    "KeyValueStore",
    "SQLiteStore",
    "SessionCookieSigner",
]
