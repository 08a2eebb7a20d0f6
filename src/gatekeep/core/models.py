#!/usr/bin/env python3
"""
Core models and result schemas for Gatekeep.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from datetime import date, datetime
from typing import Any, Dict, Literal, Optional

Status = Literal["idle", "checking", "available", "taken", "invalid"]
Outcome = Literal["available", "taken"]


@dataclass(frozen=True)
class CheckResult:
    status: Status
    checked_value: str = ""
    message: str = ""
    restore_focus: bool = False

    @property
    def is_final(self) -> bool:
        return self.status in ("available", "taken")

    def is_current(self, live_value: str) -> bool:
        """A result is authoritative only for the input it was computed from."""
        return self.checked_value == live_value

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


IDLE = CheckResult(status="idle")


@dataclass(frozen=True)
class CacheEntry:
    key: str
    outcome: Outcome
    timestamp: float


@dataclass(frozen=True)
class ExistsResponse:
    success: bool
    exists: bool = False
    message: Optional[str] = None


@dataclass(frozen=True)
class ActionResponse:
    success: bool
    message: Optional[str] = None
    data: Any = None


@dataclass
class RateLimitCounter:
    kind: str
    date: date
    count: int = 0
    daily_limit: int = 0

    def to_record(self) -> Dict[str, Any]:
        return {"date": self.date.isoformat(), "count": self.count}


@dataclass(frozen=True)
class RateLimitStatus:
    kind: str
    remaining: int
    is_limit_reached: bool
    daily_limit: int
    resets_at: Optional[datetime] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["resets_at"] = self.resets_at.isoformat() if self.resets_at else None
        return data
