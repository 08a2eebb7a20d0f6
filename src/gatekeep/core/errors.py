#!/usr/bin/env python3
"""
Exception types shared across Gatekeep.

Conflicts ("taken", "already registered") are ordinary outcomes and are not
represented here.
"""

from typing import Optional


class GatekeepError(Exception):
    """Base class for all Gatekeep errors."""


class ValidationError(GatekeepError):
    """Local input rejection; never reaches the network."""

    def __init__(self, message: str, reason: str = "invalid"):
        super().__init__(message)
        self.message = message
        self.reason = reason


class TransportError(GatekeepError):
    """Network, timeout or server-side failure talking to the remote authority."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RateLimitExceeded(GatekeepError):
    """The local daily quota for an action kind is spent."""

    def __init__(self, kind: str, limit: int, message: Optional[str] = None):
        super().__init__(message or f"Daily limit of {limit} reached for '{kind}'")
        self.kind = kind
        self.limit = limit
