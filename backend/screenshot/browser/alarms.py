"""
Alarm Scheduler

Per-key wake-ups backed by asyncio tasks. Each key has at most one pending
alarm; setting a new one replaces the old. When an alarm fires, the pending
slot is cleared before the handler runs, so the handler may schedule the
next alarm itself.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

AlarmHandler = Callable[[], Awaitable[None]]


class AlarmScheduler:
    """In-process timer service keyed by session key"""

    def __init__(self):
        self._alarms: Dict[str, float] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._handlers: Dict[str, AlarmHandler] = {}

    def now(self) -> float:
        """Wall-clock time used for alarm timestamps."""
        return time.time()

    def register(self, key: str, handler: AlarmHandler) -> None:
        self._handlers[key] = handler

    def unregister(self, key: str) -> None:
        self._handlers.pop(key, None)
        self._cancel(key)

    async def get_alarm(self, key: str) -> Optional[float]:
        return self._alarms.get(key)

    async def set_alarm(self, key: str, when: float) -> None:
        self._cancel(key)
        self._alarms[key] = when
        self._tasks[key] = asyncio.create_task(self._fire(key, when))

    async def delete_alarm(self, key: str) -> None:
        self._cancel(key)

    async def close(self) -> None:
        """Cancel every pending alarm."""
        tasks = list(self._tasks.values())
        for key in list(self._tasks):
            self._cancel(key)
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _cancel(self, key: str) -> None:
        self._alarms.pop(key, None)
        task = self._tasks.pop(key, None)
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _fire(self, key: str, when: float) -> None:
        await asyncio.sleep(max(0.0, when - self.now()))

        if self._alarms.get(key) != when:
            return
        del self._alarms[key]
        self._tasks.pop(key, None)

        handler = self._handlers.get(key)
        if handler is None:
            logger.debug(f"[Alarms] No handler for {key}, dropping alarm")
            return

        try:
            await handler()
        except Exception as e:
            logger.error(f"[Alarms] Handler for {key} failed: {e}", exc_info=True)
