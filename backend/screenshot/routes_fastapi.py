"""
Screenshot API Routes

Provides endpoints for:
- Rendering screenshots/PDFs from the URL itself (catch-all route)
- Cache statistics
- Cache management (cleanup, clear)
- Health check with browser session state
"""

import logging
from typing import Any, Dict
from urllib.parse import quote

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel

from .gateway import ScreenshotGateway

logger = logging.getLogger(__name__)


# ============================================
# Response Models
# ============================================

class CacheStats(BaseModel):
    """Cache statistics"""
    total_entries: int
    total_size_bytes: int
    total_size_mb: float
    max_size_mb: int
    usage_percent: float


class CacheStatsResponse(BaseModel):
    success: bool
    stats: CacheStats


class CacheCleanupResponse(BaseModel):
    success: bool
    removed_entries: int
    current_stats: CacheStats


class CacheClearResponse(BaseModel):
    success: bool
    removed_entries: int
    message: str


class HealthResponse(BaseModel):
    status: str
    service: str
    cache_stats: CacheStats
    sessions: Dict[str, Dict[str, Any]]


# ============================================
# Routers
# ============================================

# Admin routes must be included before the catch-all screenshot route
cache_router = APIRouter(prefix="/api/screenshot-cache", tags=["Screenshot Cache"])
router = APIRouter(tags=["Screenshot"])


def get_gateway(request: Request) -> ScreenshotGateway:
    return request.app.state.screenshot_gateway


def _request_url(request: Request) -> str:
    """
    The URL exactly as the client addressed it (rebased on the public origin if configured).

    Built from the raw, still percent-encoded path: ``request.url`` is decoded,
    which would turn ``%3F`` into a query separator.
    """
    public_origin = getattr(request.app.state, "public_origin", None)
    origin = public_origin.rstrip("/") if public_origin else f"{request.url.scheme}://{request.url.netloc}"

    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        path = quote(request.scope["path"])

    query_string = request.scope.get("query_string", b"").decode("latin-1")
    query = f"?{query_string}" if query_string else ""
    return f"{origin}{path}{query}"


# ============================================
# Endpoints
# ============================================

@cache_router.get("/stats", response_model=CacheStatsResponse)
async def get_cache_stats(request: Request):
    """Get cache statistics."""
    gateway = get_gateway(request)
    return CacheStatsResponse(success=True, stats=CacheStats(**gateway.cache.get_stats()))


@cache_router.post("/cleanup", response_model=CacheCleanupResponse)
async def cleanup_cache(request: Request):
    """
    Clean up expired cache entries.

    Expired entries are also dropped on read; this sweeps the rest.
    """
    gateway = get_gateway(request)
    removed = await gateway.cache.cleanup_expired()
    return CacheCleanupResponse(
        success=True,
        removed_entries=removed,
        current_stats=CacheStats(**gateway.cache.get_stats()),
    )


@cache_router.delete("/clear", response_model=CacheClearResponse)
async def clear_cache(request: Request):
    """Clear all cached renders."""
    gateway = get_gateway(request)
    removed = await gateway.cache.clear_all()
    return CacheClearResponse(
        success=True,
        removed_entries=removed,
        message="Cache cleared successfully",
    )


@cache_router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Health check endpoint."""
    gateway = get_gateway(request)
    return HealthResponse(
        status="healthy",
        service="screenshot",
        cache_stats=CacheStats(**gateway.cache.get_stats()),
        sessions=gateway.sessions.get_stats(),
    )


@router.get("/{full_path:path}")
async def render_screenshot(full_path: str, request: Request, background_tasks: BackgroundTasks):
    """
    Render the page encoded in the request URL.

    Example:
        GET /screenshot/600x400/foo/bar@2x.pdf?x=1
        -> PDF of https://<host>/foo/bar?x=1
    """
    gateway = get_gateway(request)
    result = await gateway.handle(_request_url(request), background_tasks)

    if not result.is_success:
        raise HTTPException(status_code=result.status_code, detail=result.body.decode("utf-8"))

    headers = dict(result.headers)
    media_type = headers.pop("Content-Type", None)
    headers["X-Cache"] = result.cache_status or "MISS"

    return Response(content=result.body, media_type=media_type, headers=headers)
