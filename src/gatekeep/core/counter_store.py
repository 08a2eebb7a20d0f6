#!/usr/bin/env python3
"""
Counter Store Module
Persistence for daily action counters, one small record per action kind.
"""

import os
import json
import logging
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class CounterStore(Protocol):
    """Where the rate limiter keeps ``{"date": "YYYY-MM-DD", "count": int}`` per kind."""

    def load(self, kind: str) -> Optional[Dict[str, Any]]:
        ...

    def save(self, kind: str, record: Dict[str, Any]) -> None:
        ...


class MemoryCounterStore:
    """Process-local store; used in tests and when no state file is configured."""

    def __init__(self, initial: Optional[Dict[str, Dict[str, Any]]] = None):
        self.records: Dict[str, Dict[str, Any]] = {k: dict(v) for k, v in (initial or {}).items()}
        self.writes = 0

    def load(self, kind: str) -> Optional[Dict[str, Any]]:
        record = self.records.get(kind)
        return dict(record) if record is not None else None

    def save(self, kind: str, record: Dict[str, Any]) -> None:
        self.records[kind] = dict(record)
        self.writes += 1


class JsonCounterStore:
    """All kinds kept in a single JSON document on disk."""

    def __init__(self, path: str):
        self.path = os.path.expanduser(path)

    def _read_all(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Counter file is not a mapping: {self.path}")
        return data

    def load(self, kind: str) -> Optional[Dict[str, Any]]:
        record = self._read_all().get(kind)
        if record is not None and not isinstance(record, dict):
            raise ValueError(f"Malformed counter record for '{kind}' in {self.path}")
        return record

    def save(self, kind: str, record: Dict[str, Any]) -> None:
        try:
            data = self._read_all()
        except ValueError:
            logger.warning(f"Overwriting unreadable counter file {self.path}")
            data = {}
        data[kind] = dict(record)

        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError):
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.debug(f"Saved counter for '{kind}' to {self.path}")
