"""Starlette app factory with lifespan for the skill service."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import anyio.to_thread
from starlette.applications import Starlette

from skillhub.config import Settings, load_settings
from skillhub.server.routes_skills import routes as skills_routes
from skillhub.service import SkillService

logger = logging.getLogger(__name__)


def create_app(
    service: SkillService | None = None,
    settings: Settings | None = None,
) -> Starlette:
    """Create a Starlette app serving the skill routes.

    When no service is given, one is built from settings and started (cache
    restore, repository sync, auto-sync) in the lifespan, and closed on shutdown.
    A caller-supplied service is used as-is and left open.
    """

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        owned = service is None
        if owned:
            app.state.service = SkillService(settings or load_settings())
            await anyio.to_thread.run_sync(app.state.service.start)
            app.state.service.start_auto_sync()
        else:
            app.state.service = service

        yield

        if owned:
            app.state.service.close()

    return Starlette(routes=skills_routes, lifespan=lifespan)
