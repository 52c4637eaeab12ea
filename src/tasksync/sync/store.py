"""Local mirror of the remote task collection.

The store subscribes to the transport's change stream and rebuilds its
mirror from every snapshot.  It never merges partial updates and never
applies its own writes speculatively: the remote store is the only source of
truth, and the mirror is authoritative only until the next snapshot arrives.

Lifecycle::

    UNINITIALIZED --start()--> SYNCED --stream error--> ERRORED
         ^                       |  ^                      |
         |                       |  +--start() + snapshot--+
         +------- STOPPED <--stop()-+
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from loguru import logger

from ..errors import NotReadyError, SubscriptionError
from ..logging_utils import summarize_view
from ..model import Task, View
from ..ordering import build_view
from ..transport.base import CancelToken, RemoteStoreTransport, Subscription
from ..validation import normalize_record

ViewListener = Callable[[View, Optional[SubscriptionError]], None]


class StoreState(str, Enum):
    UNINITIALIZED = "uninitialized"
    SYNCED = "synced"
    ERRORED = "errored"
    STOPPED = "stopped"


@dataclass
class SubscriptionHandle:
    """Caller-side handle for one acquired subscription."""

    path: str
    identity: str
    token: CancelToken = field(default_factory=CancelToken)

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def cancel(self) -> None:
        self.token.cancel()


class SyncedCollectionStore:
    """Bridge between a remote change stream and the local :class:`View`.

    Parameters
    ----------
    transport:
        Remote store transport used to open the subscription.
    path:
        Collection path, e.g. ``"default/tasks"``.
    """

    def __init__(self, transport: RemoteStoreTransport, path: str) -> None:
        self._transport = transport
        self._path = path
        self._state = StoreState.UNINITIALIZED
        self._error: Optional[SubscriptionError] = None
        self._identity: Optional[str] = None
        self._handle: Optional[SubscriptionHandle] = None
        self._subscription: Optional[Subscription] = None
        self._pump_task: Optional[asyncio.Task[None]] = None
        self._mirror: dict[str, Task] = {}
        self._view = View.empty()
        self._last_seq: Optional[int] = None
        self._awaiting_fresh = False
        self._snapshot_count = 0
        self._listeners: list[ViewListener] = []
        self._changed = asyncio.Event()
        self._lifecycle = asyncio.Lock()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def path(self) -> str:
        return self._path

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def error(self) -> Optional[SubscriptionError]:
        return self._error

    @property
    def identity(self) -> Optional[str]:
        return self._identity

    @property
    def snapshot_count(self) -> int:
        return self._snapshot_count

    @property
    def is_ready(self) -> bool:
        """True once started (synced or errored) with a known identity."""
        return bool(self._identity) and self._state in (StoreState.SYNCED, StoreState.ERRORED)

    def current_view(self) -> View:
        return self._view

    def add_listener(self, listener: ViewListener) -> Callable[[], None]:
        """Call *listener(view, error)* on every view or error change."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def wait_for(self, predicate: Callable[[View], bool], timeout: Optional[float] = None) -> View:
        """Wait until *predicate(view)* holds and return that view.

        Raises the store's :class:`SubscriptionError` if the stream fails
        while waiting.
        """
        error_at_entry = self._error

        async def _wait() -> View:
            while not predicate(self._view):
                if self._error is not None and self._error is not error_at_entry:
                    raise self._error
                await self._changed.wait()
            return self._view

        return await asyncio.wait_for(_wait(), timeout)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, identity: str) -> SubscriptionHandle:
        if not identity:
            raise NotReadyError("an authenticated identity is required before subscribing")
        async with self._lifecycle:
            return await self._start_locked(identity)

    async def _start_locked(self, identity: str) -> SubscriptionHandle:
        if self._handle is not None and self._pump_task is not None and not self._pump_task.done():
            return self._handle
        await self._release_current()

        handle = SubscriptionHandle(path=self._path, identity=identity)
        try:
            subscription = await self._transport.subscribe(self._path, token=handle.token)
        except SubscriptionError:
            logger.warning("Subscription to {} failed", self._path)
            raise
        except Exception as exc:
            logger.warning("Subscription to {} failed: {}", self._path, exc)
            raise SubscriptionError(f"cannot subscribe to {self._path}: {exc}") from exc

        self._identity = identity
        self._handle = handle
        self._subscription = subscription
        self._last_seq = None
        if self._state is StoreState.ERRORED:
            self._awaiting_fresh = True
        else:
            self._state = StoreState.SYNCED
            self._error = None
        self._pump_task = asyncio.create_task(self._pump(handle, subscription))
        logger.info("Subscribed to {} as {}", self._path, identity)
        return handle

    async def stop(self) -> None:
        """Release the subscription; safe to call any number of times.

        Waits for an in-flight :meth:`start` so the subscription it acquires
        is released too.
        """
        async with self._lifecycle:
            if self._state is StoreState.STOPPED and self._handle is None:
                return
            await self._release_current()
            if self._state is not StoreState.UNINITIALIZED:
                self._state = StoreState.STOPPED
                logger.info("Stopped syncing {}", self._path)

    async def _release_current(self) -> None:
        handle, subscription, task = self._handle, self._subscription, self._pump_task
        self._handle = None
        self._subscription = None
        self._pump_task = None
        if handle is not None:
            handle.cancel()
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        # A pump cancelled before its first step never reaches its finally.
        if subscription is not None:
            await subscription.aclose()

    async def _pump(self, handle: SubscriptionHandle, subscription: Subscription) -> None:
        try:
            async for snapshot in subscription:
                self.on_snapshot(snapshot.records, seq=snapshot.seq)
            if not handle.cancelled:
                self._enter_error(SubscriptionError(f"change stream for {self._path} closed by remote"))
        except SubscriptionError as exc:
            self._enter_error(exc)
        except Exception as exc:
            logger.exception("Change stream for {} failed", self._path)
            self._enter_error(SubscriptionError(f"change stream for {self._path} failed: {exc}"))
        finally:
            await subscription.aclose()

    # ------------------------------------------------------------------
    # Snapshot handling
    # ------------------------------------------------------------------

    def on_snapshot(self, raw_records: Iterable[Any], seq: Optional[int] = None) -> bool:
        """Replace the mirror with *raw_records*; False if the snapshot is stale."""
        if seq is not None and self._last_seq is not None and seq < self._last_seq:
            logger.debug("Discarding stale snapshot seq={} (applied={})", seq, self._last_seq)
            return False

        mirror: dict[str, Task] = {}
        for raw in raw_records:
            task = normalize_record(raw)
            if task is None:
                logger.warning("Skipping record without id in {}: {}", self._path, raw)
                continue
            if task.id in mirror:
                logger.warning("Duplicate task id {} in snapshot; keeping the later record", task.id)
            mirror[task.id] = task

        self._mirror = mirror
        self._view = build_view(mirror.values())
        self._snapshot_count += 1
        if seq is not None:
            self._last_seq = seq
        if self._state is StoreState.ERRORED and self._awaiting_fresh:
            logger.info("Change stream for {} recovered", self._path)
            self._state = StoreState.SYNCED
            self._error = None
            self._awaiting_fresh = False
        elif self._state is StoreState.UNINITIALIZED:
            self._state = StoreState.SYNCED
        logger.debug("Applied snapshot seq={} {}", seq, summarize_view(self._view))
        self._notify()
        return True

    def _enter_error(self, error: SubscriptionError) -> None:
        logger.warning("Change stream for {} lost: {}", self._path, error)
        self._error = error
        self._state = StoreState.ERRORED
        self._awaiting_fresh = False
        self._notify()

    def _notify(self) -> None:
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()
        for listener in list(self._listeners):
            try:
                listener(self._view, self._error)
            except Exception:
                logger.exception("View listener failed")
