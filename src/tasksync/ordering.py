"""Deterministic projection from the mirror to a displayable view."""

from __future__ import annotations

from typing import Iterable

from .model import Task, View


def sort_key(task: Task) -> tuple[float, str]:
    """Newest first; missing timestamps count as epoch 0; ties by id."""
    return (-(task.created_at or 0.0), task.id)


def build_view(tasks: Iterable[Task]) -> View:
    incomplete: list[Task] = []
    completed: list[Task] = []
    for task in tasks:
        (completed if task.completed else incomplete).append(task)
    return View(
        incomplete=tuple(sorted(incomplete, key=sort_key)),
        completed=tuple(sorted(completed, key=sort_key)),
    )
