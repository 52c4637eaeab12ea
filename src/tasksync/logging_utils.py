"""Configure loguru and format views for logs and CLI output."""

from __future__ import annotations

import json
import sys
from typing import Any

from loguru import logger


def configure_logging(level: str = "INFO") -> None:
    """Configure loguru logger with the specified level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan> - "
            "{message}"
        ),
    )


def summarize_view(view: Any) -> dict[str, Any]:
    """Render a compact, JSON-friendly summary of a view.

    Args:
        view: :class:`~tasksync.model.View` instance (or None).

    Returns:
        A dictionary with partition sizes and the newest task id of each.
    """
    if view is None:
        return {"view": None}
    incomplete = getattr(view, "incomplete", ()) or ()
    completed = getattr(view, "completed", ()) or ()
    return {
        "incomplete_n": len(incomplete),
        "completed_n": len(completed),
        "newest_incomplete": incomplete[0].id if incomplete else None,
        "newest_completed": completed[0].id if completed else None,
    }


def pretty(obj: Any, *, indent: int = 2) -> str:
    """Serialize an object as JSON for readable output.

    Args:
        obj: Object to serialize.
        indent: Indentation level for JSON output.

    Returns:
        A JSON string when possible; otherwise `str(obj)`.
    """
    try:
        return json.dumps(obj, indent=indent, default=str)
    except Exception:
        return str(obj)
