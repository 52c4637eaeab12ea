"""Identity providers that resolve the session's user id."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from loguru import logger

from .constants import DEFAULT_REQUEST_TIMEOUT
from .errors import AuthError


def new_anonymous_id() -> str:
    return f"anon-{uuid.uuid4().hex[:12]}"


class IdentityProvider(ABC):
    @abstractmethod
    async def authenticate(self) -> str:
        """Return the user id for this session or raise :class:`AuthError`."""
        raise NotImplementedError


class StaticIdentityProvider(IdentityProvider):
    def __init__(self, user_id: str) -> None:
        self._user_id = user_id

    async def authenticate(self) -> str:
        if not self._user_id or not self._user_id.strip():
            raise AuthError("no user id configured")
        return self._user_id.strip()


class AnonymousIdentityProvider(IdentityProvider):
    """Mint one local ``anon-<hex>`` id and keep it for the provider's life."""

    def __init__(self) -> None:
        self._user_id: Optional[str] = None

    async def authenticate(self) -> str:
        if self._user_id is None:
            self._user_id = new_anonymous_id()
        return self._user_id


class HttpIdentityProvider(IdentityProvider):
    """Ask the reference server for an anonymous session id."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._client = client

    async def _post(self, client: httpx.AsyncClient) -> httpx.Response:
        return await client.post("/api/auth/session")

    async def authenticate(self) -> str:
        try:
            if self._client is not None:
                response = await self._post(self._client)
            else:
                async with httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout) as client:
                    response = await self._post(client)
        except httpx.HTTPError as exc:
            raise AuthError(f"identity request failed: {exc}") from exc

        if response.status_code >= 400:
            raise AuthError(f"identity request rejected: {response.status_code}")
        try:
            user_id = response.json()["user_id"]
        except (ValueError, KeyError, TypeError) as exc:
            raise AuthError("identity response missing user_id") from exc
        user_id = user_id.strip() if isinstance(user_id, str) else ""
        if not user_id:
            raise AuthError("identity response carried an empty user_id")
        logger.info("Authenticated as {}", user_id)
        return user_id
