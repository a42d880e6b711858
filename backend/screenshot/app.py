"""
Application Factory

Wires engine, alarms, session manager, cache and gateway into a FastAPI app.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .browser import AlarmScheduler, PlaywrightEngine, SessionConfig, SessionManager
from .cache_manager import ScreenshotCacheManager
from .config import ScreenshotSettings
from .gateway import ScreenshotGateway
from .routes_fastapi import cache_router, router

logger = logging.getLogger(__name__)


def create_app(settings: Optional[ScreenshotSettings] = None, engine=None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Service settings (read from the environment when omitted)
        engine: Object with an async ``launch()`` returning a browser handle
    """
    settings = settings or ScreenshotSettings.from_env()

    alarms = AlarmScheduler()
    sessions = SessionManager(
        engine=engine or PlaywrightEngine(ws_endpoint=settings.browser_ws_endpoint),
        alarms=alarms,
        config=SessionConfig(
            idle_budget_seconds=settings.idle_budget_seconds,
            tick_interval_seconds=settings.tick_interval_seconds,
            navigation_timeout_seconds=settings.navigation_timeout_seconds,
            max_concurrent_renders=settings.max_concurrent_renders,
            extra_http_headers=settings.extra_http_headers,
        ),
    )
    cache = ScreenshotCacheManager(
        cache_dir=settings.cache_dir,
        max_cache_size_mb=settings.cache_max_size_mb,
        max_entry_size_mb=settings.max_render_size_mb,
    )
    gateway = ScreenshotGateway(
        cache=cache,
        sessions=sessions,
        session_key=settings.session_key,
        query_params=settings.query_params,
        defaults=settings.defaults,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting screenshot service")
        yield
        logger.info("Shutting down screenshot service")
        await gateway.wait_for_pending_stores()
        await sessions.shutdown()
        await alarms.close()

    app = FastAPI(title="Screenshot Service", lifespan=lifespan)
    app.state.screenshot_gateway = gateway
    app.state.public_origin = settings.public_origin

    app.include_router(cache_router)
    app.include_router(router)
    return app
