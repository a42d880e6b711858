"""
Screenshot service test configuration

Fixtures:
- engine: fake Playwright engine that records every browser/context/page call
- alarms: alarm scheduler with a manual clock, fired explicitly by tests
- cache: screenshot cache in a temporary directory
- sessions: SessionManager wired to the fake engine and manual alarms
"""

import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Make the backend packages importable
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from screenshot.browser.session_manager import SessionConfig, SessionManager
from screenshot.cache_manager import ScreenshotCacheManager
from screenshot.params import parse_screenshot_url


PNG_BYTES = b"\x89PNG-fake"
PDF_BYTES = b"%PDF-fake"


# ============================================
# Fake Playwright Engine
# ============================================

class FakePage:
    def __init__(self, context: "FakeContext"):
        self.context = context
        self.calls: List[tuple] = []
        self.closed = False

    async def set_extra_http_headers(self, headers: Dict[str, str]):
        self.calls.append(("headers", dict(headers)))

    async def goto(self, url: str, wait_until: Optional[str] = None, timeout: Optional[float] = None):
        self.calls.append(("goto", url, wait_until, timeout))
        engine = self.context.browser.engine
        engine.active_gotos += 1
        engine.max_active_gotos = max(engine.max_active_gotos, engine.active_gotos)
        engine.goto_started.set()
        try:
            if engine.goto_gate is not None:
                await engine.goto_gate.wait()
            if engine.goto_delay:
                await asyncio.sleep(engine.goto_delay)
            if engine.goto_error is not None:
                raise engine.goto_error
        finally:
            engine.active_gotos -= 1

    async def pdf(self, **options):
        self.calls.append(("pdf", options))
        return PDF_BYTES

    async def screenshot(self, **options):
        self.calls.append(("screenshot", options))
        return PNG_BYTES

    async def close(self):
        self.closed = True
        if self.context.browser.engine.page_close_error is not None:
            raise self.context.browser.engine.page_close_error


class FakeContext:
    def __init__(self, browser: "FakeBrowser", options: dict):
        self.browser = browser
        self.options = options
        self.pages: List[FakePage] = []
        self.closed = False

    async def new_page(self) -> FakePage:
        page = FakePage(self)
        self.pages.append(page)
        return page

    async def close(self):
        self.closed = True
        if self.browser.engine.context_close_error is not None:
            raise self.browser.engine.context_close_error


class FakeBrowser:
    def __init__(self, engine: "FakeEngine"):
        self.engine = engine
        self.connected = True
        self.closed = False
        self.contexts: List[FakeContext] = []

    def is_connected(self) -> bool:
        return self.connected and not self.closed

    async def new_context(self, **options) -> FakeContext:
        context = FakeContext(self, options)
        self.contexts.append(context)
        return context

    async def close(self):
        self.closed = True
        if self.engine.close_error is not None:
            raise self.engine.close_error


class FakeEngine:
    """Stands in for PlaywrightEngine; failure knobs are plain attributes."""

    def __init__(self):
        self.launches: List[FakeBrowser] = []
        self.launch_error: Optional[Exception] = None
        self.launch_delay = 0.0
        self.goto_error: Optional[Exception] = None
        self.goto_delay = 0.0
        self.goto_gate: Optional[asyncio.Event] = None
        self.goto_started = asyncio.Event()
        self.close_error: Optional[Exception] = None
        self.page_close_error: Optional[Exception] = None
        self.context_close_error: Optional[Exception] = None
        self.active_gotos = 0
        self.max_active_gotos = 0

    async def launch(self) -> FakeBrowser:
        error = self.launch_error
        if self.launch_delay:
            await asyncio.sleep(self.launch_delay)
        if error is not None:
            raise error
        browser = FakeBrowser(self)
        self.launches.append(browser)
        return browser

    @property
    def live_browsers(self) -> List[FakeBrowser]:
        return [b for b in self.launches if b.is_connected()]


# ============================================
# Manual Alarm Scheduler
# ============================================

class ManualAlarmScheduler:
    """AlarmScheduler with a hand-driven clock; alarms only fire via fire()."""

    def __init__(self, start: float = 1_000_000.0):
        self.clock = start
        self.alarms: Dict[str, float] = {}
        self.handlers: Dict[str, object] = {}
        self.set_calls: List[tuple] = []

    def now(self) -> float:
        return self.clock

    def register(self, key, handler):
        self.handlers[key] = handler

    def unregister(self, key):
        self.handlers.pop(key, None)
        self.alarms.pop(key, None)

    async def get_alarm(self, key):
        return self.alarms.get(key)

    async def set_alarm(self, key, when):
        self.alarms[key] = when
        self.set_calls.append((key, when))

    async def delete_alarm(self, key):
        self.alarms.pop(key, None)

    async def close(self):
        self.alarms.clear()

    async def fire(self, key: str = "browser"):
        """Advance the clock to the pending alarm and run its handler."""
        when = self.alarms.pop(key)
        self.clock = max(self.clock, when)
        await self.handlers[key]()


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def alarms():
    return ManualAlarmScheduler()


@pytest.fixture
def session_config():
    return SessionConfig()


@pytest.fixture
def sessions(engine, alarms, session_config):
    return SessionManager(engine=engine, alarms=alarms, config=session_config)


@pytest.fixture
def cache(tmp_path):
    return ScreenshotCacheManager(cache_dir=str(tmp_path / "cache"), max_cache_size_mb=1, max_entry_size_mb=1)


@pytest.fixture
def png_request():
    return parse_screenshot_url("https://example.com/screenshot/600x400/foo@2x.png")


@pytest.fixture
def pdf_request():
    return parse_screenshot_url("https://example.com/screenshot/foo.pdf")
