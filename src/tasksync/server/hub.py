"""Fan-out of full collection snapshots to streaming subscribers.

Every accepted write publishes the complete collection to all subscribers of
that application id.  Messages carry a hub-wide monotonic ``seq`` so clients
can drop snapshots that arrive out of order.

Wire format of one server-sent event::

    id: 12
    data: {"seq": 12, "app_id": "default", "tasks": [...]}
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator

from loguru import logger

from ..constants import HEARTBEAT_INTERVAL, SUBSCRIBER_QUEUE_SIZE


class SnapshotHub:
    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE) -> None:
        self._subscribers: dict[str, set[asyncio.Queue[dict[str, Any]]]] = {}
        self._seq = 0
        self._queue_size = queue_size

    @property
    def seq(self) -> int:
        return self._seq

    def subscriber_count(self, app_id: str) -> int:
        return len(self._subscribers.get(app_id, ()))

    def _message(self, app_id: str, tasks: list[dict[str, Any]]) -> dict[str, Any]:
        self._seq += 1
        return {"seq": self._seq, "app_id": app_id, "tasks": tasks}

    def subscribe(self, app_id: str, tasks: list[dict[str, Any]]) -> asyncio.Queue[dict[str, Any]]:
        """Register a subscriber and queue the current snapshot for it."""
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._queue_size)
        queue.put_nowait(self._message(app_id, tasks))
        self._subscribers.setdefault(app_id, set()).add(queue)
        logger.debug("Hub: subscriber added app_id={} (total={})", app_id, self.subscriber_count(app_id))
        return queue

    def unsubscribe(self, app_id: str, queue: asyncio.Queue[dict[str, Any]]) -> None:
        subs = self._subscribers.get(app_id)
        if not subs:
            return
        subs.discard(queue)
        if not subs:
            self._subscribers.pop(app_id, None)
        logger.debug("Hub: subscriber removed app_id={} (total={})", app_id, self.subscriber_count(app_id))

    def publish(self, app_id: str, tasks: list[dict[str, Any]]) -> dict[str, Any]:
        """Push the full collection to every subscriber of *app_id*."""
        message = self._message(app_id, tasks)
        stale: list[asyncio.Queue[dict[str, Any]]] = []
        for queue in list(self._subscribers.get(app_id, ())):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                stale.append(queue)
        for queue in stale:
            logger.warning("Hub: dropping slow subscriber app_id={}", app_id)
            self.unsubscribe(app_id, queue)
            # Replace the oldest pending snapshot with an error frame so the
            # stream ends and the client sees the failure.
            queue.get_nowait()
            queue.put_nowait({"error": "subscriber too slow"})
        return message


async def sse_events(
    hub: SnapshotHub,
    app_id: str,
    queue: asyncio.Queue[dict[str, Any]],
    *,
    heartbeat: float = HEARTBEAT_INTERVAL,
) -> AsyncIterator[dict[str, str]]:
    """Yield queued snapshots as ``EventSourceResponse`` events."""
    try:
        while True:
            try:
                message = await asyncio.wait_for(queue.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield {"comment": "keepalive"}
                continue
            if "error" in message:
                yield {"event": "error", "data": json.dumps(message["error"])}
                break
            yield {"data": json.dumps(message), "id": str(message["seq"])}
    finally:
        hub.unsubscribe(app_id, queue)
