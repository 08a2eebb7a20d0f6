#!/usr/bin/env python3
"""
Uniqueness Checker Module
Debounced, cached "is this value already taken?" checks for a single input field.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional

from gatekeep.config import DEFAULT_CACHE_TTL, DEFAULT_DEBOUNCE_MS, ERROR_MESSAGES, SUCCESS_MESSAGES
from gatekeep.core.debouncer import Debouncer
from gatekeep.core.errors import TransportError, ValidationError
from gatekeep.core.models import IDLE, CheckResult
from gatekeep.core.ttl_cache import TTLCache
from gatekeep.core.validators import PHONE, USERNAME, FieldRules, validate_candidate
from gatekeep.utils import mask_phone

logger = logging.getLogger(__name__)

Lookup = Callable[[str], Awaitable[bool]]
Listener = Callable[[CheckResult], None]


class UniquenessChecker:
    """Turns raw input into a stream of idle/checking/available/taken/invalid results.

    ``lookup`` resolves to True when the value already exists remotely and
    raises on transport failure. Only the result for the live input value is
    ever published.
    """

    def __init__(self, rules: FieldRules, lookup: Lookup, *, cache: Optional[TTLCache] = None,
                 debouncer: Optional[Debouncer] = None, delay_ms: float = DEFAULT_DEBOUNCE_MS,
                 is_focused: Optional[Callable[[], bool]] = None):
        self.rules = rules
        self.lookup = lookup
        self.cache = cache if cache is not None else TTLCache(DEFAULT_CACHE_TTL)
        self.debouncer = debouncer if debouncer is not None else Debouncer(f"{rules.name}-check")
        self.delay_ms = delay_ms
        self.is_focused = is_focused
        self.remote_calls = 0
        self._live_value = ""
        self._result: CheckResult = IDLE
        self._listeners: List[Listener] = []
        self._alive = True

    @property
    def result(self) -> CheckResult:
        return self._result

    @property
    def live_value(self) -> str:
        return self._live_value

    @property
    def alive(self) -> bool:
        return self._alive

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _publish(self, result: CheckResult) -> CheckResult:
        self._result = result
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:
                logger.exception(f"{self.rules.name} listener failed")
        return result

    def _label(self, value: str) -> str:
        return mask_phone(value) if self.rules is PHONE else value

    def _validate(self, value: str) -> Optional[CheckResult]:
        """Return an idle/invalid result when the value must not reach the server."""
        try:
            validate_candidate(value, self.rules)
        except ValidationError as e:
            if e.reason == 'empty':
                return CheckResult(status="idle", checked_value=value)
            return CheckResult(status="invalid", checked_value=value, message=e.message)
        return None

    def on_input(self, value: str) -> CheckResult:
        """Handle a text change: validate now, check remotely once input settles."""
        if not self._alive:
            return self._result
        self._live_value = value
        self.debouncer.cancel()

        local = self._validate(value)
        if local is not None:
            return self._publish(local)

        self.debouncer.schedule(value, self.delay_ms, self._run_check)
        return self._publish(CheckResult(status="idle", checked_value=value))

    async def check(self, value: str) -> CheckResult:
        """Check ``value`` right away, bypassing the debounce delay."""
        if not self._alive:
            return self._result
        self._live_value = value
        self.debouncer.cancel()
        return await self._run_check(value)

    def _cached(self, value: str) -> Optional[CheckResult]:
        entry = self.cache.lookup(value)
        if entry is None:
            return None
        logger.debug(f"Cache hit for {self.rules.name} {self._label(value)!r}: {entry.outcome}")
        return self._outcome_result(value, entry.outcome == "taken")

    def _outcome_result(self, value: str, exists: bool, restore_focus: bool = False) -> CheckResult:
        if exists:
            return CheckResult(status="taken", checked_value=value,
                               message=ERROR_MESSAGES['taken'].format(field=self.rules.name),
                               restore_focus=restore_focus)
        return CheckResult(status="available", checked_value=value,
                           message=SUCCESS_MESSAGES['available'].format(field=self.rules.name),
                           restore_focus=restore_focus)

    def _is_stale(self, value: str) -> bool:
        return not self._alive or value != self._live_value

    async def _run_check(self, value: str) -> CheckResult:
        if self._is_stale(value):
            return self._result

        local = self._validate(value)
        if local is not None:
            return self._publish(local)

        cached = self._cached(value)
        if cached is not None:
            return self._publish(cached)

        was_focused = bool(self.is_focused()) if self.is_focused else False
        self._publish(CheckResult(status="checking", checked_value=value))
        self.remote_calls += 1

        try:
            exists = await self.lookup(value)
            failure = None
        except TransportError as e:
            failure = e.message
        except Exception as e:
            logger.error(f"Unexpected error checking {self.rules.name} {self._label(value)!r}: {e}")
            failure = str(e)

        if self._is_stale(value):
            logger.debug(f"Discarding superseded {self.rules.name} result for {self._label(value)!r}")
            return self._result

        restore_focus = was_focused and self.is_focused is not None and not self.is_focused()

        if failure is not None:
            logger.warning(f"{self.rules.name} check failed for {self._label(value)!r}: {failure}")
            return self._publish(CheckResult(
                status="invalid",
                checked_value=value,
                message=ERROR_MESSAGES['connection_error'],
                restore_focus=restore_focus,
            ))

        self.cache.set(value, "taken" if exists else "available")
        logger.info(f"{self.rules.name} {self._label(value)!r}: {'taken' if exists else 'available'}")
        return self._publish(self._outcome_result(value, bool(exists), restore_focus))

    def close(self):
        """Tear down: no timers fire and late responses are ignored."""
        self._alive = False
        self.debouncer.shutdown()
        self._listeners.clear()


def _authority_lookup(call: Callable[[str], Awaitable], field_name: str) -> Lookup:
    async def lookup(value: str) -> bool:
        response = await call(value)
        if not response.success:
            raise TransportError(response.message or ERROR_MESSAGES['check_failed'].format(field=field_name))
        return response.exists
    return lookup


def username_checker(authority, **kwargs) -> UniquenessChecker:
    """Checker wired to the authority's username search."""
    return UniquenessChecker(USERNAME, _authority_lookup(authority.check_username_exists, "username"), **kwargs)


def phone_checker(authority, **kwargs) -> UniquenessChecker:
    """Checker for full phone numbers (dial code included)."""
    return UniquenessChecker(PHONE, _authority_lookup(authority.check_phone_exists, "phone"), **kwargs)
