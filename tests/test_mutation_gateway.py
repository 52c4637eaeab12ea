"""Tests for the write side (tasksync/sync/gateway.py)."""

from __future__ import annotations

import pytest

from tasksync.errors import NotReadyError, SubscriptionError, ValidationError, WriteError
from tasksync.sync import MutationGateway, SyncedCollectionStore
from tasksync.transport.base import WriteAck, WriteOp
from tasksync.transport.memory import InMemoryRemoteStore

COLLECTION = "default/tasks"


@pytest.fixture
async def synced(remote: InMemoryRemoteStore):
    store = SyncedCollectionStore(remote, COLLECTION)
    await store.start("u1")
    await store.wait_for(lambda _v: store.snapshot_count >= 1, timeout=2)
    yield store, MutationGateway(store, remote)
    await store.stop()


async def _create(store: SyncedCollectionStore, gateway: MutationGateway, text: str) -> str:
    ack = await gateway.create(text)
    assert ack.task_id
    await store.wait_for(lambda v: ack.task_id in v, timeout=2)
    return ack.task_id


@pytest.mark.anyio
class TestCreate:
    async def test_create_appears_first_in_incomplete(self, synced, remote) -> None:
        store, gateway = synced
        await _create(store, gateway, "Older")
        task_id = await _create(store, gateway, "Buy milk")

        view = store.current_view()
        first = view.incomplete[0]
        assert first.id == task_id
        assert (first.text, first.completed, first.progress) == ("Buy milk", False, 0)
        assert first.owner_id == "u1"
        assert first.created_at is not None

    async def test_create_payload(self, synced, remote) -> None:
        _, gateway = synced
        await gateway.create("  Buy milk  ")
        path, op, payload = remote.writes[-1]
        assert path == COLLECTION
        assert op is WriteOp.CREATE
        assert payload["text"] == "Buy milk"
        assert (payload["completed"], payload["progress"]) == (False, 0)
        assert payload["ownerId"] == "u1"
        assert "id" not in payload

    async def test_create_does_not_touch_local_view(self, synced, remote) -> None:
        store, gateway = synced
        before = store.current_view()
        await gateway.create("Buy milk")
        assert store.current_view() is before

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_blank_text_rejected_without_remote_call(self, synced, remote, text) -> None:
        _, gateway = synced
        with pytest.raises(ValidationError):
            await gateway.create(text)
        assert remote.writes == []


@pytest.mark.anyio
class TestUpdates:
    async def test_toggle_incomplete_moves_to_completed(self, synced, remote) -> None:
        store, gateway = synced
        task_id = await _create(store, gateway, "Buy milk")

        await gateway.toggle(task_id, False)
        assert remote.writes[-1] == (f"{COLLECTION}/{task_id}", WriteOp.UPDATE, {"completed": True, "progress": 100})

        view = await store.wait_for(lambda v: any(t.id == task_id for t in v.completed), timeout=2)
        assert view.find(task_id).progress == 100
        assert all(t.id != task_id for t in view.incomplete)

    async def test_toggle_complete_resets_progress(self, synced, remote) -> None:
        store, gateway = synced
        task_id = await _create(store, gateway, "Buy milk")
        await gateway.toggle(task_id, True)
        assert remote.writes[-1][2] == {"completed": False, "progress": 0}

    async def test_set_progress_clamps_high(self, synced, remote) -> None:
        store, gateway = synced
        task_id = await _create(store, gateway, "Buy milk")
        await gateway.set_progress(task_id, 150)
        assert remote.writes[-1][2] == {"progress": 100, "completed": True}

    async def test_set_progress_partial(self, synced, remote) -> None:
        store, gateway = synced
        task_id = await _create(store, gateway, "Buy milk")
        await gateway.set_progress(task_id, 55)
        assert remote.writes[-1][2] == {"progress": 55, "completed": False}
        view = await store.wait_for(lambda v: v.find(task_id).progress == 55, timeout=2)
        assert view.find(task_id).completed is False

    async def test_set_progress_unparseable_is_zero(self, synced, remote) -> None:
        store, gateway = synced
        task_id = await _create(store, gateway, "Buy milk")
        await gateway.set_progress(task_id, "lots")
        assert remote.writes[-1][2] == {"progress": 0, "completed": False}

    async def test_remove(self, synced, remote) -> None:
        store, gateway = synced
        task_id = await _create(store, gateway, "Buy milk")
        ack = await gateway.remove(task_id)
        assert ack == WriteAck(op=WriteOp.DELETE, task_id=task_id)
        view = await store.wait_for(lambda v: task_id not in v, timeout=2)
        assert len(view) == 0

    @pytest.mark.parametrize("task_id", ["", "  ", "a/b", None])
    async def test_bad_task_id_rejected(self, synced, remote, task_id) -> None:
        _, gateway = synced
        with pytest.raises(ValidationError):
            await gateway.toggle(task_id, False)
        assert remote.writes == []


@pytest.mark.anyio
class TestFailures:
    async def test_not_ready_before_start(self, remote) -> None:
        store = SyncedCollectionStore(remote, COLLECTION)
        gateway = MutationGateway(store, remote)
        with pytest.raises(NotReadyError):
            await gateway.create("Buy milk")
        with pytest.raises(NotReadyError):
            await gateway.set_progress("t1", 50)
        assert remote.writes == []

    async def test_not_ready_after_stop(self, synced, remote) -> None:
        store, gateway = synced
        await store.stop()
        with pytest.raises(NotReadyError):
            await gateway.remove("t1")

    async def test_unknown_id_surfaces_write_error(self, synced, remote) -> None:
        store, gateway = synced
        before = store.current_view()
        with pytest.raises(WriteError) as excinfo:
            await gateway.set_progress("missing", 50)
        assert excinfo.value.status_code == 404
        assert store.current_view() is before

    async def test_rejected_write_leaves_local_state_alone(self, synced, remote) -> None:
        store, gateway = synced
        task_id = await _create(store, gateway, "Buy milk")
        before = store.current_view()
        remote.reject_writes = "permission denied"
        with pytest.raises(WriteError, match="permission denied"):
            await gateway.toggle(task_id, False)
        assert store.current_view() is before
        assert before.find(task_id).completed is False

    async def test_transport_crash_wrapped(self, synced) -> None:
        store, _ = synced

        class Flaky(InMemoryRemoteStore):
            async def write(self, path, op, payload):
                raise ConnectionError("socket closed")

        gateway = MutationGateway(store, Flaky())
        with pytest.raises(WriteError, match="socket closed"):
            await gateway.create("Buy milk")

    async def test_writes_allowed_while_errored(self, synced, remote) -> None:
        store, gateway = synced
        remote.break_subscriptions()
        with pytest.raises(SubscriptionError):
            await store.wait_for(lambda v: False, timeout=2)
        ack = await gateway.create("queued while offline")
        assert ack.task_id in {r["id"] for r in remote.records(COLLECTION)}
