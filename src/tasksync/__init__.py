"""Provide the public `tasksync` package exports."""

from __future__ import annotations

from .config import SyncConfig, load_sync_config
from .errors import AuthError, NotReadyError, SubscriptionError, TaskSyncError, ValidationError, WriteError
from .model import Snapshot, Task, View
from .ordering import build_view
from .session import TaskListSession, open_http_session
from .sync import MutationGateway, StoreState, SyncedCollectionStore

__all__ = [
    "AuthError",
    "MutationGateway",
    "NotReadyError",
    "Snapshot",
    "StoreState",
    "SubscriptionError",
    "SyncConfig",
    "SyncedCollectionStore",
    "Task",
    "TaskListSession",
    "TaskSyncError",
    "ValidationError",
    "View",
    "WriteError",
    "build_view",
    "load_sync_config",
    "open_http_session",
]
