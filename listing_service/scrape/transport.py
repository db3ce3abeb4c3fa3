"""HTTP transport used to fetch listing pages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Protocol

import httpx

from listing_service.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    body: str

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class Transport(Protocol):
    """Protocol for page transports."""

    async def send(self, url: str, headers: Mapping[str, str]) -> TransportResponse: ...


class HttpxTransport:
    """Issues GET requests through a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        *,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=True, timeout=timeout)

    async def send(self, url: str, headers: Mapping[str, str]) -> TransportResponse:
        """GET *url* and return its status and decoded body.

        Non-2xx responses are returned, not raised; only connection-level
        problems become :class:`TransportError`.
        """
        try:
            resp = await self._client.get(url, headers=dict(headers))
        except httpx.HTTPError as exc:
            logger.debug("transport error", extra={"url": url, "error": type(exc).__name__})
            raise TransportError(f"request to {url} failed: {exc}") from exc
        return TransportResponse(status_code=resp.status_code, body=resp.text)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
