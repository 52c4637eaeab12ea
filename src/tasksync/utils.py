"""Provide helpers for ids and timestamps."""

from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from .constants import TASK_ID_PREFIX


def _generate_task_id() -> str:
    """Short human-friendly task ID: ``task-<8hex>``."""
    return f"{TASK_ID_PREFIX}-{uuid.uuid4().hex[:8]}"


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        if not isinstance(value, str):
            value = str(value)
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
        # If a naive timestamp slips in, assume UTC to avoid crashes.
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        return None


def resolve_timestamp(value: Any) -> Optional[float]:
    """Resolve a store timestamp to epoch seconds.

    Accepts epoch numbers, ISO-8601 strings, ``datetime`` objects and
    ``{"seconds": s, "nanoseconds": n}`` mappings. Anything else (including
    booleans and NaN) resolves to ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        ts = float(value)
        return ts if math.isfinite(ts) else None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, dict):
        seconds = resolve_timestamp(value.get("seconds"))
        if seconds is None:
            return None
        nanos = resolve_timestamp(value.get("nanoseconds")) or 0.0
        return seconds + nanos / 1e9
    if isinstance(value, str):
        text = value.strip()
        try:
            return resolve_timestamp(float(text))
        except ValueError:
            dt = _parse_iso(text)
            return dt.timestamp() if dt else None
    return None
