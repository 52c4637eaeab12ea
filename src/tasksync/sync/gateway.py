"""Translate user intent into normalized write requests.

The gateway never touches the local mirror.  A successful call only means
the remote store acknowledged the write; the change becomes visible when the
remote's own snapshot reaches :class:`~tasksync.sync.store.SyncedCollectionStore`.
"""

from __future__ import annotations

import time
from typing import Any, Optional

from loguru import logger

from ..errors import NotReadyError, TaskSyncError, ValidationError, WriteError
from ..transport.base import RemoteStoreTransport, WriteAck, WriteOp, document_path
from ..validation import (
    resolve_completion_from_progress,
    resolve_completion_from_toggle,
    validate_text,
)
from .store import SyncedCollectionStore


def _check_task_id(task_id: Any) -> str:
    if not isinstance(task_id, str) or not task_id.strip() or "/" in task_id:
        raise ValidationError(f"invalid task id: {task_id!r}")
    return task_id.strip()


class MutationGateway:
    def __init__(self, store: SyncedCollectionStore, transport: RemoteStoreTransport) -> None:
        self._store = store
        self._transport = transport

    def _require_ready(self, action: str) -> None:
        if not self._store.is_ready:
            raise NotReadyError(f"cannot {action}: store is {self._store.state.value}")

    async def _submit(self, path: str, op: WriteOp, payload: dict[str, Any], task_id: Optional[str] = None) -> WriteAck:
        try:
            ack = await self._transport.write(path, op, payload)
        except WriteError as exc:
            logger.warning("Remote rejected {} {}: {}", op.value, path, exc)
            raise
        except TaskSyncError:
            raise
        except Exception as exc:
            logger.warning("Write {} {} failed: {}", op.value, path, exc)
            raise WriteError(f"{op.value} {path} failed: {exc}", task_id=task_id) from exc
        logger.debug("Remote acknowledged {} {} -> {}", op.value, path, ack.task_id)
        return ack

    async def create(self, text: str, owner_id: Optional[str] = None) -> WriteAck:
        """Submit a new incomplete task; the remote assigns id and createdAt."""
        self._require_ready("create")
        label = validate_text(text)
        payload = {
            "text": label,
            "completed": False,
            "progress": 0,
            "createdAt": time.time(),
            "ownerId": owner_id or self._store.identity,
        }
        return await self._submit(self._store.path, WriteOp.CREATE, payload)

    async def toggle(self, task_id: str, current_completed: bool) -> WriteAck:
        self._require_ready("toggle")
        task_id = _check_task_id(task_id)
        patch = resolve_completion_from_toggle(current_completed).to_patch()
        return await self._submit(document_path(self._store.path, task_id), WriteOp.UPDATE, patch, task_id)

    async def set_progress(self, task_id: str, raw_value: Any) -> WriteAck:
        self._require_ready("set progress")
        task_id = _check_task_id(task_id)
        patch = resolve_completion_from_progress(raw_value).to_patch()
        return await self._submit(document_path(self._store.path, task_id), WriteOp.UPDATE, patch, task_id)

    async def remove(self, task_id: str) -> WriteAck:
        self._require_ready("remove")
        task_id = _check_task_id(task_id)
        return await self._submit(document_path(self._store.path, task_id), WriteOp.DELETE, {}, task_id)
