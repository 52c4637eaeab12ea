"""Shared constants for tasksync."""

from __future__ import annotations

STATE_DIR_NAME = ".tasksync"
CONFIG_FILE = "config.yaml"
COLLECTIONS_DIR = "collections"

DEFAULT_APP_ID = "default"
DEFAULT_BASE_URL = "http://127.0.0.1:8000"
DEFAULT_REQUEST_TIMEOUT = 10.0  # seconds
DEFAULT_LOG_LEVEL = "INFO"

PROGRESS_MIN = 0
PROGRESS_MAX = 100

TASK_ID_PREFIX = "task"
APP_ID_PATTERN = r"^[A-Za-z0-9_.-]{1,64}$"

HEARTBEAT_INTERVAL = 15.0  # seconds between SSE keepalive comments
SUBSCRIBER_QUEUE_SIZE = 64
