"""
Screenshot Service Configuration

All settings come from environment variables and are read once at startup.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .params import OutputFormat, RenderDefaults, split_query_params


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass
class ScreenshotSettings:
    """Service settings"""
    # Render defaults
    defaults: RenderDefaults = field(default_factory=RenderDefaults)

    # Query params appended to every target URL
    query_params: List[str] = field(default_factory=list)

    # Headers sent with every navigation (e.g. Cloudflare Access service token)
    extra_http_headers: Dict[str, str] = field(default_factory=dict)

    # Browser session
    session_key: str = "browser"
    idle_budget_seconds: float = 60.0
    tick_interval_seconds: float = 10.0
    navigation_timeout_seconds: float = 30.0
    max_concurrent_renders: int = 0  # 0 = unlimited
    browser_ws_endpoint: Optional[str] = None

    # Response cache
    cache_dir: str = "./screenshot_cache"
    cache_max_size_mb: int = 500
    max_render_size_mb: int = 20

    # Origin used to rebuild request URLs behind a proxy
    public_origin: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ScreenshotSettings":
        defaults = RenderDefaults(
            output_format=OutputFormat(os.getenv("SCREENSHOT_DEFAULT_FORMAT", OutputFormat.PNG.value)),
            width=_env_int("SCREENSHOT_DEFAULT_WIDTH", 1200),
            height=_env_int("SCREENSHOT_DEFAULT_HEIGHT", 630),
            scale=_env_int("SCREENSHOT_DEFAULT_SCALE", 1),
            cache_ttl_seconds=_env_int("SCREENSHOT_CACHE_TTL_SECONDS", 60 * 60 * 24 * 7),
        )

        headers = {}
        client_id = os.getenv("CF_ACCESS_CLIENT_ID")
        client_secret = os.getenv("CF_ACCESS_CLIENT_SECRET")
        if client_id and client_secret:
            headers = {
                "CF-Access-Client-Id": client_id,
                "CF-Access-Client-Secret": client_secret,
            }

        return cls(
            defaults=defaults,
            query_params=split_query_params(os.getenv("SCREENSHOT_QUERY_PARAMS")),
            extra_http_headers=headers,
            session_key=os.getenv("BROWSER_SESSION_KEY", "browser"),
            idle_budget_seconds=_env_float("BROWSER_IDLE_BUDGET_SECONDS", 60.0),
            tick_interval_seconds=_env_float("BROWSER_TICK_INTERVAL_SECONDS", 10.0),
            navigation_timeout_seconds=_env_float("BROWSER_NAVIGATION_TIMEOUT_SECONDS", 30.0),
            max_concurrent_renders=_env_int("BROWSER_MAX_CONCURRENT_RENDERS", 0),
            browser_ws_endpoint=os.getenv("BROWSER_WS_ENDPOINT") or None,
            cache_dir=os.getenv("SCREENSHOT_CACHE_DIR", "./screenshot_cache"),
            cache_max_size_mb=_env_int("SCREENSHOT_CACHE_MAX_SIZE_MB", 500),
            max_render_size_mb=_env_int("SCREENSHOT_MAX_SIZE_MB", 20),
            public_origin=os.getenv("SCREENSHOT_PUBLIC_ORIGIN") or None,
        )
