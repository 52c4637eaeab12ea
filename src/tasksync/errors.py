"""Error taxonomy for the synchronized task list."""

from __future__ import annotations

from typing import Optional


class TaskSyncError(Exception):
    """Base class for every error raised by :mod:`tasksync`."""


class AuthError(TaskSyncError):
    """The identity provider could not resolve a user id."""


class SubscriptionError(TaskSyncError):
    """The change stream could not be opened or was lost."""


class ValidationError(TaskSyncError):
    """Mutation input was rejected before any remote call was made."""


class NotReadyError(TaskSyncError):
    """A mutation was attempted before the store was started."""


class WriteError(TaskSyncError):
    """The remote store rejected a create, update or delete."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        task_id: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.task_id = task_id
