"""File locking and YAML persistence helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import IO, Any, Optional

import yaml

if os.name != "nt":
    import fcntl


class FileLock:
    """Exclusive advisory lock on a sidecar file.

    Uses ``flock`` on POSIX; on Windows only the caller's thread lock applies.
    """

    def __init__(self, lock_path: Path) -> None:
        self.lock_path = lock_path
        self._handle: Optional[IO[str]] = None

    def __enter__(self) -> "FileLock":
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = open(self.lock_path, "a", encoding="utf-8")
        if os.name != "nt":
            fcntl.flock(self._handle.fileno(), fcntl.LOCK_EX)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            if os.name != "nt":
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()


def _atomic_write_yaml(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False, allow_unicode=True)
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(tmp_path, path)


def load_yaml_mapping(path: Path) -> tuple[dict[str, Any], str | None]:
    """Read a YAML mapping; returns ``({}, error)`` when it cannot be used.

    A missing or empty file is not an error.
    """
    if not path.exists():
        return {}, None
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        return {}, f"{path.name}: {exc.__class__.__name__}: {exc}"
    except yaml.YAMLError as exc:
        return {}, f"{path.name}: YAMLError: {exc}"
    if data is None:
        return {}, None
    if not isinstance(data, dict):
        return {}, f"{path.name}: expected a mapping, got {type(data).__name__}"
    return data, None
