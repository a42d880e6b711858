"""
Screenshot Module

Renders web pages to PNG or PDF from a URL that encodes the rendering
parameters, and caches the results.

Features:
- URL-encoded parameters (dimensions, scale, format, query)
- One reusable browser per session key with idle eviction
- File-based response cache with per-entry TTL and LRU eviction
"""

from .routes_fastapi import router, cache_router
from .gateway import ScreenshotGateway, GatewayResponse
from .cache_manager import ScreenshotCacheManager
from .params import OutputFormat, RenderDefaults, RenderRequest, parse_screenshot_url

__all__ = [
    "router",
    "cache_router",
    "ScreenshotGateway",
    "GatewayResponse",
    "ScreenshotCacheManager",
    "OutputFormat",
    "RenderDefaults",
    "RenderRequest",
    "parse_screenshot_url",
]
