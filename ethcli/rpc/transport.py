"""HTTP JSON-RPC transport: one session per process, no retries."""
from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ..errors import TransportError

logger = logging.getLogger(__name__)


class HttpTransport:
    """POSTs JSON-RPC envelopes to a single endpoint.

    The underlying ``aiohttp.ClientSession`` is opened once and reused for
    every call of the invocation. A failed request is surfaced as
    ``TransportError``; the caller decides whether to try again.
    """

    def __init__(self, rpc_url: str, timeout: int = 30) -> None:
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> HttpTransport:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def open(self) -> aiohttp.ClientSession:
        if self._session is not None:
            return self._session
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)
        self._session = aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        )
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def send(self, envelope: dict[str, Any]) -> Any:
        """Send one envelope and return the decoded response body."""
        session = await self.open()

        try:
            async with session.post(self.rpc_url, json=envelope) as response:
                try:
                    body = await response.json(content_type=None)
                except ValueError as e:
                    raise TransportError(
                        f"Malformed response from {self.rpc_url} "
                        f"(HTTP {response.status}): {e}"
                    ) from e

                if response.status >= 400 and not (
                    isinstance(body, dict) and "error" in body
                ):
                    raise TransportError(
                        f"HTTP {response.status} from {self.rpc_url}"
                    )
                return body
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Request to {self.rpc_url} timed out after {self.timeout}s"
            ) from e
        except aiohttp.ClientError as e:
            logger.debug("Transport failure for %s", envelope.get("method"), exc_info=True)
            raise TransportError(f"Cannot reach {self.rpc_url}: {e}") from e
