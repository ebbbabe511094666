"""Uvicorn launcher for the HTTP API."""

from __future__ import annotations

import logging

from skillhub.config import Settings, load_settings
from skillhub.logging_config import configure_logging

logger = logging.getLogger(__name__)


def run_server(settings: Settings | None = None, host: str = "127.0.0.1") -> None:
    """Start the HTTP API server with uvicorn."""
    import uvicorn

    from skillhub.server.app import create_app

    if settings is None:
        settings = load_settings()
    configure_logging(settings.log_level)

    logger.info(f"Starting skillhub HTTP API on {host}:{settings.port}")
    uvicorn.run(
        create_app(settings=settings),
        host=host,
        port=settings.port,
        log_level="warning",
    )
