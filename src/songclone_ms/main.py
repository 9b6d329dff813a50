"""
FastAPI Application Entry Point.

Creates and configures the FastAPI application for songclone-ms.

Usage:
    # Run with uvicorn
    uvicorn songclone_ms.main:app --host 0.0.0.0 --port 8000

    # Or use the module directly
    python -m uvicorn songclone_ms.main:app --reload
"""

from __future__ import annotations

from fastapi import FastAPI

from songclone_ms import __version__
from songclone_ms.api.routes import router
from songclone_ms.core.logging import configure_logging


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    There is no warmup step: the service holds configuration only and
    opens provider connections per request.
    """
    # Initialize structured logging (reads SONGCLONE_LOG_LEVEL env var)
    configure_logging()

    app = FastAPI(title="songclone-ms", version=__version__)
    app.include_router(router)
    return app


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
