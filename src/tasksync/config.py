"""Load the optional client configuration from `.tasksync/config.yaml`."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

from .constants import (
    APP_ID_PATTERN,
    CONFIG_FILE,
    DEFAULT_APP_ID,
    DEFAULT_BASE_URL,
    DEFAULT_LOG_LEVEL,
    DEFAULT_REQUEST_TIMEOUT,
    STATE_DIR_NAME,
)
from .io_utils import load_yaml_mapping

VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}

_APP_ID_RE = re.compile(APP_ID_PATTERN)


def is_valid_app_id(value: Any) -> bool:
    return isinstance(value, str) and bool(_APP_ID_RE.fullmatch(value))


@dataclass(frozen=True)
class SyncConfig:
    """Everything a session needs, passed explicitly at construction time."""

    app_id: str = DEFAULT_APP_ID
    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL
    state_dir: Path = Path(STATE_DIR_NAME)

    @property
    def collection_path(self) -> str:
        return f"{self.app_id}/tasks"


def _apply(config: SyncConfig, raw: dict[str, Any], errors: list[str]) -> SyncConfig:
    changes: dict[str, Any] = {}

    app_id = raw.get("app_id")
    if app_id is not None:
        if is_valid_app_id(app_id):
            changes["app_id"] = app_id
        else:
            errors.append(f"app_id: invalid value {app_id!r}")

    base_url = raw.get("base_url")
    if base_url is not None:
        if isinstance(base_url, str) and base_url.startswith(("http://", "https://")):
            changes["base_url"] = base_url.rstrip("/")
        else:
            errors.append(f"base_url: invalid value {base_url!r}")

    timeout = raw.get("request_timeout")
    if timeout is not None:
        try:
            value = float(timeout)
        except (TypeError, ValueError):
            value = -1.0
        if value > 0:
            changes["request_timeout"] = value
        else:
            errors.append(f"request_timeout: invalid value {timeout!r}")

    level = raw.get("log_level")
    if level is not None:
        if isinstance(level, str) and level.upper() in VALID_LOG_LEVELS:
            changes["log_level"] = level.upper()
        else:
            errors.append(f"log_level: invalid value {level!r}")

    return replace(config, **changes) if changes else config


def load_sync_config(
    project_dir: Path,
    overrides: Optional[dict[str, Any]] = None,
) -> tuple[SyncConfig, str | None]:
    """Load the optional config file and apply explicit overrides.

    Args:
        project_dir: Directory holding the ``.tasksync/`` state directory.
        overrides: Values that win over the file (e.g. CLI flags); ``None``
            entries are ignored.

    Returns:
        A tuple of ``(config, error_message)``. Invalid or unreadable values
        fall back to defaults and are described in the error message.
    """
    project_dir = project_dir.resolve()
    state_dir = project_dir / STATE_DIR_NAME
    config = SyncConfig(state_dir=state_dir)
    errors: list[str] = []

    data, err = load_yaml_mapping(state_dir / CONFIG_FILE)
    if err:
        errors.append(err)
    else:
        config = _apply(config, data, errors)

    if overrides:
        config = _apply(config, {k: v for k, v in overrides.items() if v is not None}, errors)

    return config, "; ".join(errors) if errors else None
