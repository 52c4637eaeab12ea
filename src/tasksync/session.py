"""Scoped wiring of identity, store and gateway for one client session.

Usage::

    async with open_http_session(config) as session:
        await session.add("Buy milk")
        view = await session.store.wait_for(lambda v: len(v) > 0)

Leaving the ``async with`` block always stops the store, releasing the
subscription, whatever the exit path.
"""

from __future__ import annotations

from typing import Any, Optional

from loguru import logger

from .config import SyncConfig
from .errors import NotReadyError, ValidationError, WriteError
from .identity import HttpIdentityProvider, IdentityProvider
from .model import View
from .sync import MutationGateway, SyncedCollectionStore
from .transport.base import RemoteStoreTransport, WriteAck
from .transport.http import HttpTransport


class TaskListSession:
    def __init__(
        self,
        config: SyncConfig,
        transport: RemoteStoreTransport,
        identity_provider: IdentityProvider,
        *,
        owns_transport: bool = False,
    ) -> None:
        self.config = config
        self.transport = transport
        self.identity_provider = identity_provider
        self.store = SyncedCollectionStore(transport, config.collection_path)
        self.gateway = MutationGateway(self.store, transport)
        self.user_id: Optional[str] = None
        self._owns_transport = owns_transport

    async def __aenter__(self) -> "TaskListSession":
        try:
            self.user_id = await self.identity_provider.authenticate()
            await self.store.start(self.user_id)
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        try:
            await self.store.stop()
        finally:
            if self._owns_transport:
                await self.transport.aclose()

    def current_view(self) -> View:
        return self.store.current_view()

    # -- UI-facing helpers --------------------------------------------------

    async def add(self, text: str) -> Optional[WriteAck]:
        """Create a task; blank text is ignored and returns None."""
        try:
            return await self.gateway.create(text, self.user_id)
        except ValidationError as exc:
            logger.debug("Ignoring add: {}", exc)
            return None

    async def toggle(self, task_id: str) -> WriteAck:
        """Toggle using the completion state currently shown in the view."""
        if not self.store.is_ready:
            raise NotReadyError("cannot toggle: session is not started")
        task = self.store.current_view().find(task_id)
        if task is None:
            raise WriteError(f"Task {task_id} is not in the current view", task_id=task_id)
        return await self.gateway.toggle(task_id, task.completed)

    async def set_progress(self, task_id: str, value: Any) -> WriteAck:
        return await self.gateway.set_progress(task_id, value)

    async def remove(self, task_id: str) -> WriteAck:
        return await self.gateway.remove(task_id)


def open_http_session(config: SyncConfig) -> TaskListSession:
    transport = HttpTransport(config.base_url, timeout=config.request_timeout)
    identity = HttpIdentityProvider(config.base_url, timeout=config.request_timeout)
    return TaskListSession(config, transport, identity, owns_transport=True)
