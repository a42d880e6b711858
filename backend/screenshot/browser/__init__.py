"""
Browser Session Module

Owns the lifecycle of the Playwright browser used for rendering:
- Lazy launch, reuse while connected
- Per-request isolated contexts
- Alarm-driven idle eviction
"""

from .alarms import AlarmScheduler
from .engine import BrowserHandle, PlaywrightEngine
from .session_manager import BrowserSession, SessionConfig, SessionManager

__all__ = [
    "AlarmScheduler",
    "BrowserHandle",
    "PlaywrightEngine",
    "BrowserSession",
    "SessionConfig",
    "SessionManager",
]
