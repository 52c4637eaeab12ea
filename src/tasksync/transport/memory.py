"""In-process authoritative store implementing the transport contract.

Behaves like the reference server: assigns ids and creation timestamps,
keeps one collection per path and pushes a full snapshot, stamped with a
global monotonic sequence number, to every subscriber after each accepted
write.  It also exposes fault injection hooks used by the test-suite.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

from loguru import logger

from ..errors import SubscriptionError, WriteError
from ..model import Snapshot
from ..utils import _generate_task_id
from .base import CancelToken, RemoteStoreTransport, Subscription, WriteAck, WriteOp, split_document_path

_END = object()


class _MemorySubscription(Subscription):
    def __init__(self, store: "InMemoryRemoteStore", path: str, token: Optional[CancelToken]) -> None:
        super().__init__(path, token)
        self._store = store
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self.token.add_callback(lambda: self._queue.put_nowait(_END))

    def push(self, item: Any) -> None:
        if not self.closed:
            self._queue.put_nowait(item)

    async def _receive(self) -> Optional[Snapshot]:
        item = await self._queue.get()
        if item is _END:
            return None
        if isinstance(item, BaseException):
            raise item
        return item

    async def _release(self) -> None:
        self._store._detach(self)


class InMemoryRemoteStore(RemoteStoreTransport):
    """Authoritative store that lives in the current event loop."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._subscribers: list[_MemorySubscription] = []
        self._seq = 0
        self._last_created_at = 0.0
        self.writes: list[tuple[str, WriteOp, dict[str, Any]]] = []
        self.fail_subscribe: Optional[str] = None
        self.reject_writes: Optional[str] = None
        self.subscribe_calls = 0
        self.released = 0

    # -- inspection ---------------------------------------------------------

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def records(self, path: str) -> list[dict[str, Any]]:
        return [dict(r) for r in self._collections.get(path, {}).values()]

    # -- fault injection ----------------------------------------------------

    def put_raw(self, path: str, record: dict[str, Any], *, publish: bool = True) -> None:
        """Store *record* verbatim, bypassing every rule (a faulty client)."""
        self._collections.setdefault(path, {})[str(record.get("id"))] = dict(record)
        if publish:
            self.publish(path)

    def break_subscriptions(self, exc: Optional[BaseException] = None) -> None:
        """Fail every open stream with *exc*."""
        error = exc or SubscriptionError("change stream lost")
        for sub in list(self._subscribers):
            sub.push(error)

    def close_subscriptions(self) -> None:
        """End every open stream as if the remote hung up."""
        for sub in list(self._subscribers):
            sub.push(_END)

    # -- transport contract -------------------------------------------------

    async def subscribe(self, path: str, *, token: Optional[CancelToken] = None) -> Subscription:
        self.subscribe_calls += 1
        if self.fail_subscribe:
            raise SubscriptionError(self.fail_subscribe)
        sub = _MemorySubscription(self, path, token)
        self._subscribers.append(sub)
        sub.push(self._snapshot(path))
        logger.debug("Memory store: subscribed path={} (total={})", path, self.subscriber_count)
        return sub

    async def write(self, path: str, op: WriteOp, payload: dict[str, Any]) -> WriteAck:
        self.writes.append((path, op, dict(payload)))
        if self.reject_writes:
            raise WriteError(self.reject_writes)

        if op is WriteOp.CREATE:
            task_id = _generate_task_id()
            record = dict(payload)
            record["id"] = task_id
            record["createdAt"] = self._next_created_at()
            self._collections.setdefault(path, {})[task_id] = record
            collection = path
        else:
            collection, task_id = split_document_path(path)
            records = self._collections.get(collection, {})
            if task_id not in records:
                raise WriteError(f"Task {task_id} not found", status_code=404, task_id=task_id)
            if op is WriteOp.UPDATE:
                changes = {k: v for k, v in payload.items() if k not in ("id", "createdAt")}
                records[task_id] = {**records[task_id], **changes}
            else:
                del records[task_id]

        self.publish(collection)
        return WriteAck(op=op, task_id=task_id)

    # -- internals ----------------------------------------------------------

    def publish(self, path: str) -> None:
        for sub in list(self._subscribers):
            if sub.path == path:
                sub.push(self._snapshot(path))

    def _snapshot(self, path: str) -> Snapshot:
        self._seq += 1
        return Snapshot(records=tuple(self.records(path)), seq=self._seq)

    def _next_created_at(self) -> float:
        now = max(time.time(), self._last_created_at + 1e-6)
        self._last_created_at = now
        return now

    def _detach(self, sub: _MemorySubscription) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)
        self.released += 1
        logger.debug("Memory store: released path={} (total={})", sub.path, self.subscriber_count)
