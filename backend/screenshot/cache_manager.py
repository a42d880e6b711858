"""
Screenshot Cache Manager

File-based response cache for rendered screenshots with:
- Per-entry expiry (each render carries its own TTL)
- LRU (Least Recently Used) eviction when the size limit is reached
- Headers stored alongside the body so hits replay the original response
"""

import os
import time
import hashlib
import json
import asyncio
from pathlib import Path
from typing import Dict, List, Optional
from dataclasses import dataclass, asdict
import logging

logger = logging.getLogger(__name__)

BODY_EXTENSIONS = {
    "image/png": ".png",
    "application/pdf": ".pdf",
}


@dataclass
class CacheEntry:
    """Metadata for a cached response."""
    url: str
    content_type: str
    headers: Dict[str, str]
    size_bytes: int
    created_at: float
    expires_at: float
    last_accessed: float

    @property
    def is_expired(self) -> bool:
        return time.time() >= self.expires_at


@dataclass
class CachedResponse:
    """A cache hit: body plus the headers it was first served with."""
    body: bytes
    headers: Dict[str, str]
    content_type: str


class ScreenshotCacheManager:
    """
    Manages the file-based screenshot cache.

    Cache structure:
    cache_dir/
    ├── renders/
    │   ├── a1b2c3d4e5f6.png
    │   ├── 0f1e2d3c4b5a.pdf
    │   └── ...
    └── metadata.json

    Entries are keyed by a hash of the request URL; the full URL is kept in
    the entry so a hash collision reads as a miss.
    """

    def __init__(
        self,
        cache_dir: str = "./screenshot_cache",
        max_cache_size_mb: int = 500,
        max_entry_size_mb: int = 20,
    ):
        self.cache_dir = Path(cache_dir)
        self.renders_dir = self.cache_dir / "renders"
        self.metadata_file = self.cache_dir / "metadata.json"

        self.max_cache_size_bytes = max_cache_size_mb * 1024 * 1024
        self.max_entry_size_bytes = max_entry_size_mb * 1024 * 1024

        self._lock = asyncio.Lock()

        self.renders_dir.mkdir(parents=True, exist_ok=True)
        self._entries: Dict[str, CacheEntry] = self._read_metadata()
        logger.info(f"[ScreenshotCache] {self.cache_dir}: {len(self._entries)} entries")

    # ============================================
    # Persistence
    # ============================================

    def _read_metadata(self) -> Dict[str, CacheEntry]:
        if not self.metadata_file.exists():
            return {}
        try:
            raw = json.loads(self.metadata_file.read_text())
            return {key: CacheEntry(**fields) for key, fields in raw.items()}
        except Exception as e:
            logger.warning(f"[ScreenshotCache] Ignoring unreadable metadata: {e}")
            return {}

    def _write_metadata(self) -> None:
        # Atomic replace
        tmp_file = self.metadata_file.with_suffix(".tmp")
        try:
            tmp_file.write_text(json.dumps({key: asdict(entry) for key, entry in self._entries.items()}))
            os.replace(tmp_file, self.metadata_file)
        except Exception as e:
            logger.error(f"[ScreenshotCache] Failed to save metadata: {e}")

    @staticmethod
    def _key_for(url: str) -> str:
        return hashlib.sha256(url.encode()).hexdigest()[:16]

    def _body_path(self, key: str, content_type: str) -> Path:
        return self.renders_dir / f"{key}{BODY_EXTENSIONS.get(content_type, '.bin')}"

    @property
    def total_size_bytes(self) -> int:
        return sum(entry.size_bytes for entry in self._entries.values())

    # ============================================
    # Lookup / Store
    # ============================================

    async def get(self, url: str) -> Optional[CachedResponse]:
        """
        Get a cached response by request URL.

        Returns:
            CachedResponse if cached and fresh, None otherwise.
        """
        key = self._key_for(url)

        async with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.url != url:
                return None

            if entry.is_expired:
                logger.debug(f"[ScreenshotCache] Expired: {url[:80]}")
                self._discard([key])
                return None

            try:
                body = self._body_path(key, entry.content_type).read_bytes()
            except OSError as e:
                logger.warning(f"[ScreenshotCache] Dropping entry with unreadable body: {e}")
                self._discard([key])
                return None

            entry.last_accessed = time.time()
            self._write_metadata()

        logger.debug(f"[ScreenshotCache] Hit: {url[:80]}")
        return CachedResponse(body=body, headers=dict(entry.headers), content_type=entry.content_type)

    async def put(
        self,
        url: str,
        body: bytes,
        headers: Dict[str, str],
        content_type: str,
        ttl_seconds: int,
    ) -> bool:
        """
        Cache a rendered response.

        Args:
            url: Request URL (the cache key)
            body: Rendered bytes
            headers: Response headers to replay on hit
            content_type: MIME type of the body
            ttl_seconds: Freshness horizon of this entry

        Returns:
            True if cached successfully, False otherwise.
        """
        size = len(body)
        if size > self.max_entry_size_bytes:
            logger.warning(f"[ScreenshotCache] Render too large ({size} bytes): {url[:80]}")
            return False

        key = self._key_for(url)

        async with self._lock:
            self._drop(key)
            self._make_room(size)

            try:
                self._body_path(key, content_type).write_bytes(body)
            except OSError as e:
                logger.error(f"[ScreenshotCache] Failed to cache {url[:80]}: {e}")
                self._write_metadata()
                return False

            now = time.time()
            self._entries[key] = CacheEntry(
                url=url,
                content_type=content_type,
                headers=dict(headers),
                size_bytes=size,
                created_at=now,
                expires_at=now + ttl_seconds,
                last_accessed=now,
            )
            self._write_metadata()

        logger.debug(f"[ScreenshotCache] Stored: {url[:80]} ({size} bytes, ttl={ttl_seconds}s)")
        return True

    # ============================================
    # Eviction (callers hold the lock)
    # ============================================

    def _drop(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.pop(key, None)
        if entry is not None:
            try:
                self._body_path(key, entry.content_type).unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"[ScreenshotCache] Failed to delete body for {entry.url[:80]}: {e}")
        return entry

    def _discard(self, keys: List[str]) -> int:
        removed = sum(1 for key in keys if self._drop(key) is not None)
        self._write_metadata()
        return removed

    def _make_room(self, needed_bytes: int) -> None:
        budget = self.max_cache_size_bytes - needed_bytes
        used = self.total_size_bytes
        while used > budget and self._entries:
            key = min(self._entries, key=lambda k: self._entries[k].last_accessed)
            entry = self._drop(key)
            used -= entry.size_bytes
            logger.info(f"[ScreenshotCache] LRU evicted: {entry.url[:80]}")

    async def cleanup_expired(self) -> int:
        """
        Remove all expired entries.

        Returns:
            Number of entries removed.
        """
        async with self._lock:
            removed = self._discard([key for key, entry in self._entries.items() if entry.is_expired])

        if removed:
            logger.info(f"[ScreenshotCache] Cleaned up {removed} expired entries")
        return removed

    async def clear_all(self) -> int:
        """Clear all cached renders. Returns the number of entries removed."""
        async with self._lock:
            removed = self._discard(list(self._entries))

        logger.info(f"[ScreenshotCache] Cleared {removed} entries")
        return removed

    def get_stats(self) -> dict:
        used = self.total_size_bytes
        limit = self.max_cache_size_bytes
        return {
            "total_entries": len(self._entries),
            "total_size_bytes": used,
            "total_size_mb": round(used / (1024 * 1024), 2),
            "max_size_mb": limit // (1024 * 1024),
            "usage_percent": round(used / limit * 100, 1) if limit > 0 else 0,
        }
