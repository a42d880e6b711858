"""
Environment configuration tests

Run:
    cd backend
    pytest tests/test_config.py -v
"""

import pytest

from screenshot.config import ScreenshotSettings
from screenshot.params import OutputFormat

ENV_NAMES = [
    "SCREENSHOT_DEFAULT_FORMAT",
    "SCREENSHOT_DEFAULT_WIDTH",
    "SCREENSHOT_DEFAULT_HEIGHT",
    "SCREENSHOT_DEFAULT_SCALE",
    "SCREENSHOT_CACHE_TTL_SECONDS",
    "CF_ACCESS_CLIENT_ID",
    "CF_ACCESS_CLIENT_SECRET",
    "SCREENSHOT_QUERY_PARAMS",
    "BROWSER_SESSION_KEY",
    "BROWSER_IDLE_BUDGET_SECONDS",
    "BROWSER_TICK_INTERVAL_SECONDS",
    "BROWSER_NAVIGATION_TIMEOUT_SECONDS",
    "BROWSER_MAX_CONCURRENT_RENDERS",
    "BROWSER_WS_ENDPOINT",
    "SCREENSHOT_CACHE_DIR",
    "SCREENSHOT_CACHE_MAX_SIZE_MB",
    "SCREENSHOT_MAX_SIZE_MB",
    "SCREENSHOT_PUBLIC_ORIGIN",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = ScreenshotSettings.from_env()

    assert settings.defaults.output_format == OutputFormat.PNG
    assert (settings.defaults.width, settings.defaults.height, settings.defaults.scale) == (1200, 630, 1)
    assert settings.defaults.cache_ttl_seconds == 604800
    assert settings.query_params == []
    assert settings.extra_http_headers == {}
    assert settings.session_key == "browser"
    assert settings.idle_budget_seconds == 60.0
    assert settings.tick_interval_seconds == 10.0
    assert settings.browser_ws_endpoint is None
    assert settings.public_origin is None


def test_overrides(clean_env):
    clean_env.setenv("SCREENSHOT_DEFAULT_FORMAT", "pdf")
    clean_env.setenv("SCREENSHOT_DEFAULT_WIDTH", "800")
    clean_env.setenv("SCREENSHOT_QUERY_PARAMS", "?og=1&&theme=dark")
    clean_env.setenv("BROWSER_SESSION_KEY", "tenant-1")
    clean_env.setenv("BROWSER_IDLE_BUDGET_SECONDS", "120")
    clean_env.setenv("BROWSER_WS_ENDPOINT", "ws://chrome:9222")

    settings = ScreenshotSettings.from_env()

    assert settings.defaults.output_format == OutputFormat.PDF
    assert settings.defaults.width == 800
    assert settings.query_params == ["og=1", "theme=dark"]
    assert settings.session_key == "tenant-1"
    assert settings.idle_budget_seconds == 120.0
    assert settings.browser_ws_endpoint == "ws://chrome:9222"


def test_access_headers_need_both_values(clean_env):
    clean_env.setenv("CF_ACCESS_CLIENT_ID", "id")
    assert ScreenshotSettings.from_env().extra_http_headers == {}

    clean_env.setenv("CF_ACCESS_CLIENT_SECRET", "secret")
    assert ScreenshotSettings.from_env().extra_http_headers == {
        "CF-Access-Client-Id": "id",
        "CF-Access-Client-Secret": "secret",
    }


def test_invalid_format(clean_env):
    clean_env.setenv("SCREENSHOT_DEFAULT_FORMAT", "gif")

    with pytest.raises(ValueError):
        ScreenshotSettings.from_env()
