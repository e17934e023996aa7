"""
FastAPI application entrypoint for the personal assistant.
"""

from __future__ import annotations

from fastapi import FastAPI

from assistant.api.routes import router as api_router
from assistant.core.config import get_settings
from assistant.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Personal Assistant API",
        version="0.1.0",
        description=(
            "Google sign-in, Gmail and Calendar access with transparent token refresh, "
            "Gemini-backed assistant actions, and face enrollment and recognition."
        ),
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
