#!/usr/bin/env python3
"""
Rate Limiter Module
Optimistic client-side daily quota for sensitive actions (block, report).

The server is the authoritative enforcer; this only saves round-trips the
server would reject. Counters roll over lazily: a record dated before today
reads as zero, and the new day is written only once an action is recorded.
"""

import logging
from datetime import date
from typing import Callable, Dict, List, Optional

from gatekeep.config import DAILY_ACTION_LIMITS
from gatekeep.core.counter_store import CounterStore, MemoryCounterStore
from gatekeep.core.errors import RateLimitExceeded
from gatekeep.core.models import RateLimitCounter, RateLimitStatus
from gatekeep.utils import next_midnight

logger = logging.getLogger(__name__)

Listener = Callable[[RateLimitStatus], None]


class RateLimiter:
    """Per-kind daily counters backed by a CounterStore."""

    def __init__(self, store: Optional[CounterStore] = None, limits: Optional[Dict[str, int]] = None,
                 today: Callable[[], date] = date.today):
        self.store = store if store is not None else MemoryCounterStore()
        self.limits = dict(limits if limits is not None else DAILY_ACTION_LIMITS)
        self.today = today
        self._listeners: List[Listener] = []

    def daily_limit(self, kind: str) -> int:
        if kind not in self.limits:
            raise ValueError(f"Unknown action kind '{kind}'. Known kinds: {', '.join(sorted(self.limits))}")
        return int(self.limits[kind])

    def _read(self, kind: str) -> RateLimitCounter:
        limit = self.daily_limit(kind)
        today = self.today()
        try:
            record = self.store.load(kind)
        except (OSError, ValueError) as e:
            # Fail open: the server still enforces the real limit
            logger.warning(f"Could not read '{kind}' counter, assuming 0: {e}")
            record = None

        if not record:
            return RateLimitCounter(kind=kind, date=today, count=0, daily_limit=limit)

        try:
            stored_date = date.fromisoformat(str(record.get('date')))
            count = max(int(record.get('count', 0)), 0)
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed '{kind}' counter {record!r}: {e}")
            return RateLimitCounter(kind=kind, date=today, count=0, daily_limit=limit)

        if stored_date != today:
            logger.debug(f"'{kind}' counter from {stored_date} rolled over")
            return RateLimitCounter(kind=kind, date=today, count=0, daily_limit=limit)
        return RateLimitCounter(kind=kind, date=stored_date, count=count, daily_limit=limit)

    def _write(self, counter: RateLimitCounter):
        try:
            self.store.save(counter.kind, counter.to_record())
        except (OSError, ValueError) as e:
            logger.warning(f"Could not persist '{counter.kind}' counter: {e}")

    def count(self, kind: str) -> int:
        return self._read(kind).count

    def remaining(self, kind: str) -> int:
        counter = self._read(kind)
        return max(0, counter.daily_limit - counter.count)

    def can_perform(self, kind: str) -> bool:
        return self.remaining(kind) > 0

    def is_limit_reached(self, kind: str) -> bool:
        return not self.can_perform(kind)

    def status(self, kind: str) -> RateLimitStatus:
        return self._status_of(self._read(kind))

    def _status_of(self, counter: RateLimitCounter) -> RateLimitStatus:
        remaining = max(0, counter.daily_limit - counter.count)
        return RateLimitStatus(
            kind=counter.kind,
            remaining=remaining,
            is_limit_reached=remaining <= 0,
            daily_limit=counter.daily_limit,
            resets_at=next_midnight(counter.date),
        )

    def ensure(self, kind: str) -> RateLimitStatus:
        """Return the status, or raise RateLimitExceeded when nothing is left today."""
        current = self.status(kind)
        if current.is_limit_reached:
            raise RateLimitExceeded(kind, current.daily_limit)
        return current

    def record_action(self, kind: str) -> RateLimitStatus:
        """Count one performed action against today's quota."""
        counter = self._read(kind)
        counter.count += 1
        if counter.count > counter.daily_limit:
            logger.warning(f"'{kind}' recorded beyond its daily limit ({counter.count}/{counter.daily_limit})")
        self._write(counter)
        logger.info(f"Recorded '{kind}' action ({counter.count}/{counter.daily_limit} today)")
        return self._notify(self._status_of(counter))

    def reset(self, kind: str) -> RateLimitStatus:
        """Start today's count over (manual reset)."""
        counter = RateLimitCounter(kind=kind, date=self.today(), count=0, daily_limit=self.daily_limit(kind))
        self._write(counter)
        return self._notify(self._status_of(counter))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self, current: RateLimitStatus) -> RateLimitStatus:
        for listener in list(self._listeners):
            try:
                listener(current)
            except Exception:
                logger.exception("Rate limit listener failed")
        return current
