"""HTTP transport for the reference remote store server.

Writes are plain REST calls; the change stream is a server-sent-events
response where each ``data:`` frame carries ``{"seq": n, "tasks": [...]}``.
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Optional

import httpx
from loguru import logger

from ..constants import DEFAULT_REQUEST_TIMEOUT
from ..errors import SubscriptionError, WriteError
from ..model import Snapshot
from .base import CancelToken, RemoteStoreTransport, Subscription, WriteAck, WriteOp, split_document_path

API_PREFIX = "/api/collections"


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return str(body)[:200]


class _SseSubscription(Subscription):
    def __init__(self, path: str, token: Optional[CancelToken], response: httpx.Response) -> None:
        super().__init__(path, token)
        self._response = response
        self._lines: AsyncIterator[str] = response.aiter_lines().__aiter__()

    async def _receive(self) -> Optional[Snapshot]:
        event = "message"
        data: list[str] = []
        while True:
            try:
                line = await self._lines.__anext__()
            except StopAsyncIteration:
                return None
            except httpx.HTTPError as exc:
                raise SubscriptionError(f"change stream failed: {exc}") from exc

            if line == "":
                if not data:
                    event = "message"
                    continue
                text = "\n".join(data)
                if event == "error":
                    raise SubscriptionError(f"remote store reported: {text}")
                try:
                    payload = json.loads(text)
                except json.JSONDecodeError as exc:
                    raise SubscriptionError(f"malformed snapshot frame: {exc}") from exc
                if not isinstance(payload, dict):
                    raise SubscriptionError("malformed snapshot frame: expected object")
                try:
                    return Snapshot.from_payload(payload)
                except ValueError as exc:
                    raise SubscriptionError(f"malformed snapshot frame: {exc}") from exc

            if line.startswith(":"):
                continue  # keepalive
            name, _, value = line.partition(":")
            value = value[1:] if value.startswith(" ") else value
            if name == "event":
                event = value
            elif name == "data":
                data.append(value)

    async def _release(self) -> None:
        await self._response.aclose()


class HttpTransport(RemoteStoreTransport):
    """Talk to ``tasksync.server`` over HTTP.

    Parameters
    ----------
    base_url:
        Server root, e.g. ``http://127.0.0.1:8000``.
    timeout:
        Per-request timeout for writes.  The stream itself has no read timeout.
    client:
        Optional pre-built ``httpx.AsyncClient`` (tests pass one backed by
        ``MockTransport``); it is not closed by :meth:`aclose`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def subscribe(self, path: str, *, token: Optional[CancelToken] = None) -> Subscription:
        url = f"{API_PREFIX}/{path}/stream"
        request = self._client.build_request(
            "GET",
            url,
            headers={"Accept": "text/event-stream"},
            timeout=httpx.Timeout(DEFAULT_REQUEST_TIMEOUT, read=None),
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise SubscriptionError(f"cannot open change stream {url}: {exc}") from exc
        if response.status_code >= 400:
            await response.aread()
            detail = _error_detail(response)
            await response.aclose()
            raise SubscriptionError(f"cannot open change stream {url}: {response.status_code} {detail}")
        logger.debug("HTTP transport: subscribed {}", url)
        return _SseSubscription(path, token, response)

    async def write(self, path: str, op: WriteOp, payload: dict[str, Any]) -> WriteAck:
        task_id: Optional[str] = None
        url = f"{API_PREFIX}/{path}"
        try:
            if op is WriteOp.CREATE:
                response = await self._client.post(url, json=payload)
            else:
                _, task_id = split_document_path(path)
                if op is WriteOp.UPDATE:
                    response = await self._client.patch(url, json=payload)
                else:
                    response = await self._client.delete(url)
        except httpx.HTTPError as exc:
            raise WriteError(f"{op.value} {url} failed: {exc}", task_id=task_id) from exc

        if response.status_code >= 400:
            raise WriteError(
                f"{op.value} {url} rejected: {_error_detail(response)}",
                status_code=response.status_code,
                task_id=task_id,
            )
        if op is WriteOp.CREATE:
            try:
                task_id = str(response.json()["task"]["id"])
            except (ValueError, KeyError, TypeError) as exc:
                raise WriteError(f"create {url} returned an unexpected body") from exc
        return WriteAck(op=op, task_id=task_id)
