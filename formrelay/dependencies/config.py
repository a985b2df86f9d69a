"""Settings injection for routes and dependency factories."""

from typing import Annotated

from fastapi import Depends

from formrelay.core.config import AppSettings, get_settings


def get_app_settings() -> AppSettings:
    """Return the process-wide settings; overridden in tests."""
    return get_settings()


AppSettingsDep = Annotated[AppSettings, Depends(get_app_settings)]

__all__ = ["AppSettingsDep", "get_app_settings"]
