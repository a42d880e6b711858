"""
Screenshot Gateway

Cache-aside front door for screenshot requests:
1. Return the cached response if this exact URL was rendered and is fresh
2. Otherwise parse the URL and render it through the session manager
3. Store the result in the background and return it
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from email.utils import formatdate
from typing import Dict, Optional, Sequence, Set

from fastapi import BackgroundTasks

from .browser.session_manager import SessionManager
from .cache_manager import ScreenshotCacheManager
from .errors import EngineUnavailable, ParseError, RenderError, RenderTimeout
from .params import RenderDefaults, RenderRequest, parse_screenshot_url

logger = logging.getLogger(__name__)


@dataclass
class GatewayResponse:
    """Framework-neutral response"""
    status_code: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)
    cache_status: Optional[str] = None  # "HIT" | "MISS" for successful responses

    @property
    def is_success(self) -> bool:
        return self.status_code < 400


def build_response_headers(request: RenderRequest, now: Optional[float] = None) -> Dict[str, str]:
    """Freshness headers for a rendered response."""
    now = time.time() if now is None else now
    ttl = request.cache_ttl_seconds
    return {
        "Cache-Control": f"public, max-age={ttl}",
        "Content-Type": request.content_type,
        "Expires": formatdate(now + ttl, usegmt=True),
    }


def _error_response(status_code: int, message: str) -> GatewayResponse:
    return GatewayResponse(
        status_code=status_code,
        body=message.encode("utf-8"),
        headers={"Content-Type": "text/plain; charset=utf-8"},
    )


class ScreenshotGateway:
    """
    Cache-aside gateway

    Usage:
        gateway = ScreenshotGateway(cache, sessions, session_key="browser")
        response = await gateway.handle("https://example.com/screenshot/foo.png")
    """

    def __init__(
        self,
        cache: ScreenshotCacheManager,
        sessions: SessionManager,
        session_key: str = "browser",
        query_params: Sequence[str] = (),
        defaults: Optional[RenderDefaults] = None,
    ):
        self.cache = cache
        self.sessions = sessions
        self.session_key = session_key
        self.query_params = tuple(query_params)
        self.defaults = defaults or RenderDefaults()
        self._pending_stores: Set[asyncio.Task] = set()

    async def handle(
        self,
        request_url: str,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> GatewayResponse:
        cached = await self.cache.get(request_url)
        if cached is not None:
            logger.debug(f"[ScreenshotGateway] Cache hit: {request_url[:80]}")
            return GatewayResponse(
                status_code=200,
                body=cached.body,
                headers=cached.headers,
                cache_status="HIT",
            )

        try:
            request = parse_screenshot_url(request_url, self.query_params, self.defaults)
        except ParseError as e:
            logger.info(f"[ScreenshotGateway] Rejected malformed URL: {request_url[:80]}")
            return _error_response(400, str(e))

        logger.info(
            f"[ScreenshotGateway] Rendering {request.target_url[:80]} "
            f"({request.width}x{request.height}@{request.scale}x, {request.output_format.value})"
        )

        try:
            body, content_type = await self.sessions.acquire_and_render(self.session_key, request)
        except RenderTimeout as e:
            return _error_response(504, str(e))
        except EngineUnavailable as e:
            return _error_response(503, str(e))
        except RenderError as e:
            return _error_response(502, str(e))

        headers = build_response_headers(request)
        self._schedule_store(request_url, body, headers, content_type, request.cache_ttl_seconds, background_tasks)

        logger.info(f"[ScreenshotGateway] Rendered: {request.target_url[:80]} ({len(body)} bytes)")

        return GatewayResponse(status_code=200, body=body, headers=headers, cache_status="MISS")

    def _schedule_store(
        self,
        request_url: str,
        body: bytes,
        headers: Dict[str, str],
        content_type: str,
        ttl_seconds: int,
        background_tasks: Optional[BackgroundTasks],
    ) -> None:
        """Store in the cache without delaying the response."""
        if background_tasks is not None:
            background_tasks.add_task(self.cache.put, request_url, body, headers, content_type, ttl_seconds)
            return

        task = asyncio.create_task(self.cache.put(request_url, body, headers, content_type, ttl_seconds))
        self._pending_stores.add(task)
        task.add_done_callback(self._pending_stores.discard)

    async def wait_for_pending_stores(self) -> None:
        """Wait for background cache writes started without BackgroundTasks."""
        if self._pending_stores:
            await asyncio.gather(*self._pending_stores, return_exceptions=True)
