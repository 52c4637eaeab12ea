"""File-backed task collections, one YAML file per application id.

Records are stored in the wire layout (``id``, ``text``, ``completed``,
``progress``, ``createdAt``, ``ownerId``).  All reads and writes hold an
exclusive file lock plus a process-local thread lock.
"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from ..constants import COLLECTIONS_DIR
from ..io_utils import FileLock, _atomic_write_yaml, load_yaml_mapping
from ..utils import _generate_task_id

SCHEMA_VERSION = 1
_IMMUTABLE_FIELDS = {"id", "createdAt"}


class FileCollectionRepository:
    """Authoritative task store behind the reference server.

    Parameters
    ----------
    state_dir:
        Server state directory; collections live in ``<state_dir>/collections``.
    """

    def __init__(self, state_dir: Path) -> None:
        self._root = state_dir / COLLECTIONS_DIR
        self._thread_lock = threading.RLock()
        self._last_created_at: dict[str, float] = {}

    def _paths(self, app_id: str) -> tuple[Path, FileLock]:
        return self._root / f"{app_id}.yaml", FileLock(self._root / f"{app_id}.lock")

    @staticmethod
    def _load(path: Path) -> list[dict[str, Any]]:
        raw, err = load_yaml_mapping(path)
        if err:
            logger.warning("Ignoring unreadable collection file: {}", err)
        items = raw.get("tasks", [])
        if not isinstance(items, list):
            return []
        return [dict(item) for item in items if isinstance(item, dict)]

    @staticmethod
    def _save(path: Path, tasks: list[dict[str, Any]]) -> None:
        _atomic_write_yaml(path, {"version": SCHEMA_VERSION, "tasks": tasks})

    # -- public API ---------------------------------------------------------

    def list(self, app_id: str) -> list[dict[str, Any]]:
        path, lock = self._paths(app_id)
        with self._thread_lock:
            with lock:
                return self._load(path)

    def create(self, app_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Insert a record; the server assigns ``id`` and ``createdAt``."""
        path, lock = self._paths(app_id)
        with self._thread_lock:
            with lock:
                tasks = self._load(path)
                latest = max(
                    [self._last_created_at.get(app_id, 0.0)]
                    + [float(t["createdAt"]) for t in tasks if isinstance(t.get("createdAt"), (int, float))]
                )
                created_at = max(time.time(), latest + 1e-6)
                self._last_created_at[app_id] = created_at
                record = {k: v for k, v in fields.items() if k not in _IMMUTABLE_FIELDS}
                record = {"id": _generate_task_id(), **record, "createdAt": created_at}
                tasks.append(record)
                self._save(path, tasks)
        return record

    def update(self, app_id: str, task_id: str, changes: dict[str, Any]) -> Optional[dict[str, Any]]:
        path, lock = self._paths(app_id)
        with self._thread_lock:
            with lock:
                tasks = self._load(path)
                for idx, existing in enumerate(tasks):
                    if existing.get("id") == task_id:
                        updated = {**existing, **{k: v for k, v in changes.items() if k not in _IMMUTABLE_FIELDS}}
                        tasks[idx] = updated
                        self._save(path, tasks)
                        return updated
        return None

    def delete(self, app_id: str, task_id: str) -> bool:
        path, lock = self._paths(app_id)
        with self._thread_lock:
            with lock:
                tasks = self._load(path)
                keep = [t for t in tasks if t.get("id") != task_id]
                if len(keep) == len(tasks):
                    return False
                self._save(path, keep)
        return True
