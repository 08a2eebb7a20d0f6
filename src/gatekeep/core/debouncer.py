#!/usr/bin/env python3
"""
Debouncer Module
Delays a call until input has settled, cancelling superseded calls.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional, Set

logger = logging.getLogger(__name__)


class Debouncer:
    """Single pending-timer slot.

    ``schedule`` replaces whatever is pending. When the timer fires the slot is
    released before ``fn`` runs, so a later ``schedule`` never cancels a call
    that is already talking to the server; stale results from such calls are
    the caller's to discard.
    """

    def __init__(self, name: str = "debouncer"):
        self.name = name
        self._pending: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def schedule(self, value: Any, delay_ms: float, fn: Callable[[Any], Any]) -> asyncio.Task:
        """Cancel any pending call and schedule ``fn(value)`` after ``delay_ms``."""
        self.cancel()
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._fire(value, delay_ms, fn))
        self._pending = task
        return task

    async def _fire(self, value: Any, delay_ms: float, fn: Callable[[Any], Any]):
        try:
            await asyncio.sleep(max(delay_ms, 0) / 1000.0)
        except asyncio.CancelledError:
            logger.debug(f"{self.name}: superseded call for {value!r}")
            raise

        task = asyncio.current_task()
        if self._pending is task:
            self._pending = None
        self._inflight.add(task)
        try:
            result = fn(value)
            if inspect.isawaitable(result):
                result = await result
            return result
        finally:
            self._inflight.discard(task)

    def cancel(self):
        """Drop the pending call, if any."""
        if self._pending is not None:
            if not self._pending.done():
                self._pending.cancel()
            self._pending = None

    def shutdown(self):
        """Cancel the pending call and every call already fired (teardown)."""
        self.cancel()
        for task in list(self._inflight):
            task.cancel()
        self._inflight.clear()
