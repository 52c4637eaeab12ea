"""Contract between the sync engine and a remote authoritative store.

A transport offers two things:

* ``subscribe(path)``: a cancellable asynchronous stream of full
  :class:`~tasksync.model.Snapshot` deliveries for one collection.
* ``write(path, op, payload)``: a create/update/delete request that is either
  acknowledged or rejected with :class:`~tasksync.errors.WriteError`.

Create targets the collection path (``"<app_id>/tasks"``); update and delete
target the document path (``"<app_id>/tasks/<task_id>"``).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from loguru import logger

from ..model import Snapshot


class WriteOp(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class WriteAck:
    op: WriteOp
    task_id: Optional[str] = None


def document_path(collection_path: str, task_id: str) -> str:
    return f"{collection_path.rstrip('/')}/{task_id}"


def split_document_path(path: str) -> tuple[str, str]:
    """Split ``"<collection>/<task_id>"`` into its two parts."""
    collection, _, task_id = path.rstrip("/").rpartition("/")
    return collection, task_id


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

class CancelToken:
    """Explicit cancellation signal for one subscription stream."""

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run *callback* on cancellation (immediately if already cancelled)."""
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancel callback failed")


# ---------------------------------------------------------------------------
# Subscription
# ---------------------------------------------------------------------------

class Subscription(ABC):
    """Asynchronous stream of snapshots for one collection path.

    Iteration ends when the token is cancelled or the remote closes the
    stream; a broken stream raises :class:`~tasksync.errors.SubscriptionError`.
    ``aclose()`` releases the underlying resources and is idempotent.
    """

    def __init__(self, path: str, token: Optional[CancelToken] = None) -> None:
        self.path = path
        self.token = token or CancelToken()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Snapshot:
        if self._closed or self.token.cancelled:
            raise StopAsyncIteration
        snapshot = await self._receive()
        if snapshot is None or self.token.cancelled:
            raise StopAsyncIteration
        return snapshot

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._release()

    @abstractmethod
    async def _receive(self) -> Optional[Snapshot]:
        """Wait for the next snapshot; ``None`` means the stream ended."""
        raise NotImplementedError

    @abstractmethod
    async def _release(self) -> None:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class RemoteStoreTransport(ABC):
    @abstractmethod
    async def subscribe(self, path: str, *, token: Optional[CancelToken] = None) -> Subscription:
        raise NotImplementedError

    @abstractmethod
    async def write(self, path: str, op: WriteOp, payload: dict[str, Any]) -> WriteAck:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None
