"""Field and coupling rules for task records.

The coupling law is ``completed == (progress == 100)``.  Both resolvers below
are the only places that derive one field from the other; every write path
and the inbound normalization go through them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional

from .constants import PROGRESS_MAX, PROGRESS_MIN
from .errors import ValidationError
from .model import Task
from .utils import resolve_timestamp


@dataclass(frozen=True)
class CompletionState:
    completed: bool
    progress: int

    def to_patch(self) -> dict[str, Any]:
        return {"completed": self.completed, "progress": self.progress}


def _parse_progress(value: Any) -> Optional[int]:
    """Return the rounded numeric value of *value*, or None if it has none."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    if math.isinf(number):
        return PROGRESS_MAX if number > 0 else PROGRESS_MIN
    return int(round(number))


def _parse_completed(value: Any) -> bool:
    """Only real booleans and the numbers 1/0 count; anything else is False."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return value == 1
    return False


def normalize_progress(value: Any) -> int:
    """Clamp *value* to ``[0, 100]``; non-numeric or missing input is 0."""
    parsed = _parse_progress(value)
    if parsed is None:
        return PROGRESS_MIN
    return max(PROGRESS_MIN, min(PROGRESS_MAX, parsed))


def resolve_completion_from_toggle(current_completed: Any) -> CompletionState:
    """Flip completion; progress follows the boolean (100 or 0).

    Partial progress is discarded, so toggling twice restores ``completed``
    but not a partial ``progress``.
    """
    completed = not bool(current_completed)
    return CompletionState(completed=completed, progress=PROGRESS_MAX if completed else PROGRESS_MIN)


def resolve_completion_from_progress(raw_progress: Any) -> CompletionState:
    progress = normalize_progress(raw_progress)
    return CompletionState(completed=progress == PROGRESS_MAX, progress=progress)


def validate_text(text: Any) -> str:
    """Return the trimmed label or raise :class:`ValidationError`."""
    if not isinstance(text, str):
        raise ValidationError("task text must be a string")
    trimmed = text.strip()
    if not trimmed:
        raise ValidationError("task text must not be empty")
    return trimmed


def normalize_record(raw: Any) -> Optional[Task]:
    """Defensively turn an inbound store record into a consistent :class:`Task`.

    Records without an id yield ``None``.  A numeric ``progress`` wins over
    ``completed``; records without a usable progress (e.g. written before the
    field existed) derive it from ``completed``.
    """
    if not isinstance(raw, dict):
        return None
    task_id = str(raw.get("id") or "").strip()
    if not task_id:
        return None

    if _parse_progress(raw.get("progress")) is None:
        completed = _parse_completed(raw.get("completed"))
        state = CompletionState(completed=completed, progress=PROGRESS_MAX if completed else PROGRESS_MIN)
    else:
        state = resolve_completion_from_progress(raw.get("progress"))

    owner = raw.get("ownerId")
    text = raw.get("text")
    return Task(
        id=task_id,
        text=text if isinstance(text, str) else ("" if text is None else str(text)),
        completed=state.completed,
        progress=state.progress,
        created_at=resolve_timestamp(raw.get("createdAt")),
        owner_id=str(owner) if owner is not None else None,
    )
