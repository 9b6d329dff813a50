"""
FastAPI Dependency Injection Providers.

Architecture:
    1. get_settings() - Loads and caches application configuration
    2. get_studio_service() - Creates/returns the singleton StudioService

The service holds configuration only; every request opens its own
httpx.AsyncClient, so sharing the singleton shares no mutable state.

Settings Path:
    config/settings.yaml by default, overridden by the SONGCLONE_SETTINGS
    environment variable. A missing file means "use defaults", so the
    service starts with nothing but environment credentials.

Testing:
    Override get_studio_service with app.dependency_overrides to inject a
    StudioService built around an httpx.MockTransport.
"""
from __future__ import annotations

import os
from functools import lru_cache

from songclone_ms.core.config import Settings, load_settings
from songclone_ms.services.studio_service import StudioService, get_service

SETTINGS_ENV = "SONGCLONE_SETTINGS"
DEFAULT_SETTINGS_PATH = "config/settings.yaml"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache application settings."""
    return load_settings(os.getenv(SETTINGS_ENV, DEFAULT_SETTINGS_PATH), missing_ok=True)


def get_studio_service() -> StudioService:
    """Get the singleton StudioService instance."""
    return get_service(get_settings())
