#!/usr/bin/env python3
"""
Adapters to map raw remote payloads to structured response models.

The backend is inconsistent about key casing (``Success``/``success``,
``Message``/``message``, ``Data``/``data``); everything is normalized here so
nothing downstream branches on optional or oddly-cased fields.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from gatekeep.core.models import ActionResponse, ExistsResponse

_MISSING = object()


def _field(payload: Mapping[str, Any], name: str, default: Any = None) -> Any:
    if name in payload:
        return payload[name]
    wanted = name.lower()
    for key, value in payload.items():
        if isinstance(key, str) and key.lower() == wanted:
            return value
    return default


def _as_mapping(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, Mapping):
        return dict(payload)
    # Some endpoints answer with a bare boolean
    if isinstance(payload, bool):
        return {"success": True, "data": payload}
    return {}


def _message(payload: Mapping[str, Any]) -> Optional[str]:
    msg = _field(payload, "message")
    if msg is None:
        msg = _field(payload, "error")
    return str(msg) if msg else None


def _as_bool(value: Any) -> bool:
    """Strict flag parsing: True, 1, "true" and "1" only."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1")
    return False


def parse_success(payload: Any) -> bool:
    data = _as_mapping(payload)
    return _as_bool(_field(data, "success", False))


def to_exists_response(payload: Any) -> ExistsResponse:
    """Normalize a phone-exists style answer (``data`` or ``exists`` is a bool)."""
    data = _as_mapping(payload)
    success = parse_success(data)
    exists = _field(data, "exists", _MISSING)
    if exists is _MISSING:
        exists = _field(data, "data", False)
    return ExistsResponse(success=success, exists=_as_bool(exists) if success else False, message=_message(data))


def to_matches_response(payload: Any) -> ExistsResponse:
    """Normalize a find/search answer; any non-empty match list means the value exists."""
    data = _as_mapping(payload)
    success = parse_success(data)
    matches = _field(data, "matches", _MISSING)
    if matches is _MISSING:
        matches = _field(data, "data", None)
    exists = bool(matches) if success else False
    return ExistsResponse(success=success, exists=exists, message=_message(data))


def to_action_response(payload: Any) -> ActionResponse:
    data = _as_mapping(payload)
    return ActionResponse(
        success=parse_success(data),
        message=_message(data),
        data=_field(data, "data"),
    )
