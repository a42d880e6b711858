"""
Screenshot Errors

Typed failures surfaced to the gateway:
- ParseError: malformed screenshot URL (client fault)
- RenderError: navigation/capture failed
- RenderTimeout: navigation did not settle in time
- EngineUnavailable: browser could not be started
- EvictionFailure: browser shutdown failed during idle eviction (logged only)
"""

from typing import Optional


class ParseError(ValueError):
    """Request URL does not match the screenshot URL pattern."""

    def __init__(self, url: str, message: str = "URL does not match screenshot pattern"):
        self.url = url
        super().__init__(f"{message}: {url}")


class RenderError(Exception):
    """Rendering failed after the browser was acquired."""

    reason = "render-failed"

    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(message)


class RenderTimeout(RenderError):
    """Navigation did not reach network idle within the timeout."""

    reason = "timeout"


class EngineUnavailable(RenderError):
    """Browser instance could not be launched or connected."""

    reason = "engine-unavailable"


class EvictionFailure(RenderError):
    """
    Graceful browser shutdown failed while evicting an idle session.

    Log-only: built to tag the warning with its reason, never raised.
    """

    reason = "eviction-failed"
