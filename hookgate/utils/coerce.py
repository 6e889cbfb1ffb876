"""Lightweight parsing helpers for permissive type coercion."""

from __future__ import annotations

import json
from typing import Optional


def parse_boolish(value: object, default: bool = False) -> bool:
    """Parse a truthy/falsey value from common representations."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default


def parse_optional_int(value: object) -> Optional[int]:
    """Best-effort int parsing; returns None on failure."""
    try:
        if value is None:
            return None
        if isinstance(value, bool):
            return int(value)
        return int(str(value).strip())
    except (ValueError, TypeError):
        return None


def parse_strict_flag(value: object) -> Optional[bool]:
    """Recognise only ``true``/``false``, ``"true"``/``"false"`` and ``1``/``0``.

    Anything else returns None so the caller can keep its own default.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value == "true":
            return True
        if value == "false":
            return False
        return None
    if isinstance(value, (int, float)):
        if value == 1:
            return True
        if value == 0:
            return False
    return None


def coerce_to_str(value: object) -> str:
    """Render a JSON value as text the way a hook author would expect."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return str(value)
    try:
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    except (TypeError, ValueError):
        return str(value)
