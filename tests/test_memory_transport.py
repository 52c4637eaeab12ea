from __future__ import annotations

import pytest

from tasksync.errors import WriteError
from tasksync.transport.base import CancelToken, WriteOp, document_path, split_document_path

COLLECTION = "default/tasks"


def test_document_paths() -> None:
    assert document_path(COLLECTION, "t1") == "default/tasks/t1"
    assert document_path(COLLECTION + "/", "t1") == "default/tasks/t1"
    assert split_document_path("default/tasks/t1") == (COLLECTION, "t1")


def test_cancel_token_runs_callbacks_once() -> None:
    token = CancelToken()
    calls: list[str] = []
    token.add_callback(lambda: calls.append("a"))
    token.add_callback(lambda: (_ for _ in ()).throw(RuntimeError("bad callback")))
    token.cancel()
    token.cancel()
    token.add_callback(lambda: calls.append("late"))
    assert token.cancelled
    assert calls == ["a", "late"]


@pytest.mark.anyio
class TestInMemoryRemoteStore:
    async def test_subscribe_delivers_initial_and_subsequent_snapshots(self, remote) -> None:
        sub = await remote.subscribe(COLLECTION)
        first = await sub.__anext__()
        assert first.records == ()
        ack = await remote.write(COLLECTION, WriteOp.CREATE, {"text": "Buy milk"})
        second = await sub.__anext__()
        assert second.seq > first.seq
        assert second.records[0]["id"] == ack.task_id
        await sub.aclose()

    async def test_create_ignores_client_id_and_timestamp(self, remote) -> None:
        ack = await remote.write(COLLECTION, WriteOp.CREATE, {"id": "mine", "text": "x", "createdAt": 1.0})
        record = remote.records(COLLECTION)[0]
        assert record["id"] == ack.task_id != "mine"
        assert record["createdAt"] > 1.0

    async def test_update_and_delete_unknown(self, remote) -> None:
        with pytest.raises(WriteError) as excinfo:
            await remote.write(f"{COLLECTION}/nope", WriteOp.UPDATE, {"progress": 1})
        assert excinfo.value.status_code == 404
        with pytest.raises(WriteError):
            await remote.write(f"{COLLECTION}/nope", WriteOp.DELETE, {})

    async def test_snapshots_scoped_to_path(self, remote) -> None:
        sub = await remote.subscribe("other/tasks")
        await sub.__anext__()
        await remote.write(COLLECTION, WriteOp.CREATE, {"text": "x"})
        assert sub._queue.empty()
        await sub.aclose()

    async def test_cancel_ends_stream_and_release_counts_once(self, remote) -> None:
        token = CancelToken()
        sub = await remote.subscribe(COLLECTION, token=token)
        await sub.__anext__()
        token.cancel()
        assert [s async for s in sub] == []
        await sub.aclose()
        await sub.aclose()
        assert remote.released == 1
        assert remote.subscriber_count == 0
