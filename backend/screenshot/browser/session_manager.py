"""
Browser Session Manager

Keeps one browser per session key alive between requests.

Lifecycle:
- First render for a key launches the browser (or relaunches it if the
  previous one disconnected)
- Every render runs in its own browser context, so cookies and storage
  never leak between callers sharing the browser
- After each render an alarm is armed (if none is pending). Each alarm tick
  adds the tick interval to the session's idle time; once the idle budget is
  spent the browser is closed. Any render resets the idle time to zero.

All handle, idle-time and alarm transitions for a key happen under that
session's lock. Rendering itself runs outside the lock so requests overlap.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Tuple

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..errors import EngineUnavailable, EvictionFailure, RenderError, RenderTimeout
from ..params import OutputFormat, RenderRequest
from .alarms import AlarmScheduler

logger = logging.getLogger(__name__)


# ============================================
# Configuration
# ============================================

@dataclass
class SessionConfig:
    """Browser session configuration"""
    # Total idle time before the browser is closed (seconds)
    idle_budget_seconds: float = 60.0

    # Alarm interval; idle time grows by this much per tick (seconds)
    tick_interval_seconds: float = 10.0

    # Upper bound for navigation to reach network idle (seconds)
    navigation_timeout_seconds: float = 30.0

    # Maximum overlapping renders per session (0 = unlimited)
    max_concurrent_renders: int = 0

    # Headers applied to every page (forwarded auth)
    extra_http_headers: Dict[str, str] = field(default_factory=dict)

    # PDF page setup
    pdf_format: str = "A4"
    pdf_margin: Dict[str, str] = field(default_factory=lambda: {
        "top": "20px",
        "right": "40px",
        "bottom": "20px",
        "left": "40px",
    })


class RenderEngine(Protocol):
    async def launch(self) -> Any:
        ...


# ============================================
# Browser Session
# ============================================

class BrowserSession:
    """
    One browser bound to one key.

    Attributes:
        handle: Running browser, or None when not started / evicted
        alive_seconds: Idle time accumulated by alarm ticks since last use
        in_flight: Renders currently using the handle
    """

    def __init__(
        self,
        key: str,
        engine: RenderEngine,
        alarms: AlarmScheduler,
        config: SessionConfig,
    ):
        self.key = key
        self.engine = engine
        self.alarms = alarms
        self.config = config

        self.handle = None
        self.alive_seconds = 0.0
        self.in_flight = 0
        self.launches = 0

        self._next_tick_due: Optional[float] = None
        self._lock = asyncio.Lock()
        self._render_slots = (
            asyncio.Semaphore(config.max_concurrent_renders)
            if config.max_concurrent_renders > 0
            else None
        )

        alarms.register(key, self.on_idle_tick)

    @property
    def is_connected(self) -> bool:
        return self.handle is not None and self.handle.is_connected()

    @property
    def is_vacant(self) -> bool:
        """No browser and nobody using the session."""
        return self.handle is None and self.in_flight == 0

    # ============================================
    # Rendering
    # ============================================

    async def render(self, request: RenderRequest) -> Tuple[bytes, str]:
        """
        Render a request with this session's browser.

        Returns:
            (body, content_type)

        Raises:
            EngineUnavailable: browser could not be started
            RenderTimeout: navigation did not reach network idle in time
            RenderError: navigation or capture failed
        """
        # Counted before waiting on the lock so eviction and registry cleanup
        # see callers that have not reached the browser yet.
        self.in_flight += 1
        try:
            handle = await self._acquire()
            if self._render_slots is not None:
                async with self._render_slots:
                    body = await self._capture(handle, request)
            else:
                body = await self._capture(handle, request)
        finally:
            await self._release()

        return body, request.content_type

    async def _acquire(self):
        async with self._lock:
            if not self.is_connected:
                if self.handle is not None:
                    logger.warning(f"[BrowserSession] {self.key}: browser disconnected, replacing")
                    await self._close_handle(self.handle)
                    self.handle = None

                logger.info(f"[BrowserSession] {self.key}: starting new browser instance")
                try:
                    self.handle = await self.engine.launch()
                except Exception as e:
                    logger.error(f"[BrowserSession] {self.key}: could not start browser: {e}")
                    raise EngineUnavailable(f"Could not start browser: {e}", key=self.key) from e
                self.launches += 1

            self.alive_seconds = 0.0
            return self.handle

    async def _release(self) -> None:
        async with self._lock:
            self.in_flight -= 1
            self.alive_seconds = 0.0
            if self.handle is not None:
                await self._ensure_alarm()

    async def _capture(self, handle, request: RenderRequest) -> bytes:
        try:
            context = await handle.new_context(
                viewport={"width": request.width, "height": request.height},
                device_scale_factor=request.scale,
            )
        except Exception as e:
            logger.error(f"[BrowserSession] {self.key}: could not open browser context: {e}")
            raise RenderError(f"Could not open browser context: {e}", key=self.key) from e

        try:
            page = await context.new_page()
            try:
                if self.config.extra_http_headers:
                    await page.set_extra_http_headers(self.config.extra_http_headers)

                await page.goto(
                    request.target_url,
                    wait_until="networkidle",
                    timeout=self.config.navigation_timeout_seconds * 1000,
                )

                if request.output_format is OutputFormat.PDF:
                    return await page.pdf(
                        format=self.config.pdf_format,
                        margin=self.config.pdf_margin,
                    )
                return await page.screenshot(
                    type="png",
                    clip={"x": 0, "y": 0, "width": request.width, "height": request.height},
                )
            finally:
                await self._close_quietly(page, "page")
        except PlaywrightTimeoutError as e:
            logger.error(f"[BrowserSession] {self.key}: timeout rendering {request.target_url}")
            raise RenderTimeout(f"Timed out rendering {request.target_url}: {e}", key=self.key) from e
        except Exception as e:
            logger.error(f"[BrowserSession] {self.key}: render failed for {request.target_url}: {e}")
            raise RenderError(f"Failed to render {request.target_url}: {e}", key=self.key) from e
        finally:
            await self._close_quietly(context, "context")

    async def _close_quietly(self, resource, name: str) -> None:
        """Close a page or context; teardown errors never mask the render outcome."""
        try:
            await resource.close()
        except Exception as e:
            logger.warning(f"[BrowserSession] {self.key}: failed to close {name}: {e}")

    # ============================================
    # Idle Eviction
    # ============================================

    async def _ensure_alarm(self) -> None:
        """Arm the idle alarm unless one is already pending (assumes lock held)."""
        if await self.alarms.get_alarm(self.key) is not None:
            return
        logger.debug(f"[BrowserSession] {self.key}: setting alarm")
        await self._schedule_tick()

    async def _schedule_tick(self) -> None:
        due = self.alarms.now() + self.config.tick_interval_seconds
        self._next_tick_due = due
        await self.alarms.set_alarm(self.key, due)

    async def on_idle_tick(self) -> None:
        """Alarm callback: extend the browser's life or close it."""
        async with self._lock:
            if not self._is_expected_tick():
                logger.debug(f"[BrowserSession] {self.key}: ignoring duplicate alarm")
                return
            self._next_tick_due = None

            if self.handle is None:
                return

            if self.in_flight:
                self.alive_seconds = 0.0
                await self._schedule_tick()
                return

            self.alive_seconds += self.config.tick_interval_seconds
            budget = self.config.idle_budget_seconds

            if self.alive_seconds < budget:
                logger.debug(
                    f"[BrowserSession] {self.key}: kept alive for {self.alive_seconds:g}s, extending lifespan"
                )
                await self._schedule_tick()
                return

            logger.info(f"[BrowserSession] {self.key}: exceeded idle budget of {budget:g}s, closing browser")
            handle, self.handle = self.handle, None
            await self._close_handle(handle)

    def _is_expected_tick(self) -> bool:
        # At-least-once delivery: a tick arriving well before the one we armed
        # is a repeat of an earlier alarm.
        if self._next_tick_due is None:
            return False
        slack = self.config.tick_interval_seconds / 2
        return self.alarms.now() >= self._next_tick_due - slack

    async def _close_handle(self, handle) -> None:
        try:
            await handle.close()
        except Exception as e:
            failure = EvictionFailure(f"Failed to close browser: {e}", key=self.key)
            logger.warning(f"[BrowserSession] {self.key}: {failure.reason}: {failure}")

    async def close(self) -> None:
        """Close the browser and cancel the pending alarm."""
        async with self._lock:
            await self.alarms.delete_alarm(self.key)
            self._next_tick_due = None
            if self.handle is not None:
                handle, self.handle = self.handle, None
                await self._close_handle(handle)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "connected": self.is_connected,
            "alive_seconds": self.alive_seconds,
            "in_flight": self.in_flight,
            "launches": self.launches,
        }


# ============================================
# Session Manager
# ============================================

class SessionManager:
    """
    Registry of browser sessions, one per key.

    Usage:
        manager = SessionManager(PlaywrightEngine(), AlarmScheduler())
        body, content_type = await manager.acquire_and_render("browser", request)
    """

    def __init__(
        self,
        engine: RenderEngine,
        alarms: Optional[AlarmScheduler] = None,
        config: Optional[SessionConfig] = None,
    ):
        self.engine = engine
        self.alarms = alarms or AlarmScheduler()
        self.config = config or SessionConfig()
        self._sessions: Dict[str, BrowserSession] = {}

        logger.info(
            f"SessionManager initialized: idle_budget={self.config.idle_budget_seconds:g}s, "
            f"tick={self.config.tick_interval_seconds:g}s"
        )

    def get_session(self, key: str) -> Optional[BrowserSession]:
        return self._sessions.get(key)

    async def acquire_and_render(self, key: str, request: RenderRequest) -> Tuple[bytes, str]:
        session = self._sessions.get(key)
        if session is None:
            session = BrowserSession(key, self.engine, self.alarms, self.config)
            self._sessions[key] = session

        try:
            return await session.render(request)
        except EngineUnavailable:
            if session.is_vacant and self._sessions.get(key) is session:
                del self._sessions[key]
                self.alarms.unregister(key)
            raise

    async def shutdown(self) -> None:
        """Close every session's browser."""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            await session.close()
            self.alarms.unregister(session.key)
        if sessions:
            logger.info(f"SessionManager shut down {len(sessions)} session(s)")

    def get_stats(self) -> Dict[str, Any]:
        return {key: session.get_stats() for key, session in self._sessions.items()}
