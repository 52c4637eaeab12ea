"""Task, snapshot and view models for the shared task list.

Tasks are records of the remote authoritative store.  The local side never
edits them in place: a :class:`Snapshot` delivers the full collection, the
mirror is rebuilt from it, and a fresh :class:`View` is derived for consumers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from .constants import PROGRESS_MAX


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Task:
    """One entry of the shared collection.

    Serializes to the wire layout ``id``, ``text``, ``completed``,
    ``progress``, ``createdAt``, ``ownerId``.
    """

    id: str
    text: str = ""
    completed: bool = False
    progress: int = 0
    created_at: Optional[float] = None  # epoch seconds, server-assigned
    owner_id: Optional[str] = None

    @property
    def is_consistent(self) -> bool:
        """True when ``completed`` agrees with ``progress == 100``."""
        return self.completed == (self.progress == PROGRESS_MAX)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "progress": self.progress,
            "createdAt": self.created_at,
            "ownerId": self.owner_id,
        }


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Snapshot:
    """Full state of a collection as delivered by one change notification."""

    records: tuple[dict[str, Any], ...] = ()
    seq: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Snapshot":
        """Build a snapshot from a ``{"seq": n, "tasks": [...]}`` message.

        Raises ``ValueError`` when ``tasks`` is missing or not a list; an empty
        snapshot would otherwise wipe the mirror.
        """
        raw_tasks = payload.get("tasks")
        if not isinstance(raw_tasks, list):
            raise ValueError("tasks must be a list")
        records = tuple(r for r in raw_tasks if isinstance(r, dict))
        seq = payload.get("seq")
        try:
            seq = int(seq) if seq is not None and not isinstance(seq, bool) else None
        except (TypeError, ValueError):
            seq = None
        return cls(records=records, seq=seq)


# ---------------------------------------------------------------------------
# View
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class View:
    """Read-only, partitioned and sorted projection of the mirror."""

    incomplete: tuple[Task, ...] = field(default_factory=tuple)
    completed: tuple[Task, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls) -> "View":
        return cls()

    @property
    def tasks(self) -> tuple[Task, ...]:
        """All tasks, incomplete partition first."""
        return self.incomplete + self.completed

    def find(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def __len__(self) -> int:
        return len(self.incomplete) + len(self.completed)

    def __iter__(self) -> Iterator[Task]:
        return iter(self.tasks)

    def __contains__(self, task_id: object) -> bool:
        return any(task.id == task_id for task in self.tasks)

    def to_dict(self) -> dict[str, Any]:
        return {
            "incomplete": [t.to_dict() for t in self.incomplete],
            "completed": [t.to_dict() for t in self.completed],
        }
