"""RPC gateway: builds JSON-RPC 2.0 envelopes and unwraps responses."""
from __future__ import annotations

import itertools
import logging
from typing import Any, Sequence

from ..errors import RpcError, TransportError
from ..interfaces.transport import Transport
from ..quantity import decode_quantity

logger = logging.getLogger(__name__)


class RpcGateway:
    """Thin, retryless JSON-RPC caller on top of a Transport."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._ids = itertools.count(1)

    async def call(self, method: str, params: Sequence[Any] = ()) -> Any:
        """Call ``method`` and return its ``result``.

        Raises:
            RpcError: the node answered with a JSON-RPC error object.
            TransportError: the request failed or the envelope is malformed.
        """
        request_id = next(self._ids)
        envelope = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": list(params),
        }
        logger.debug("-> %s %s", method, envelope["params"])
        response = await self._transport.send(envelope)
        result = self._unwrap(response, request_id, method)
        logger.debug("<- %s ok", method)
        return result

    async def call_quantity(self, method: str, params: Sequence[Any] = ()) -> Any:
        """Call ``method`` and decode its hex quantity result."""
        return self.decode_quantity(method, await self.call(method, params))

    @staticmethod
    def decode_quantity(method: str, value: Any) -> Any:
        """Decode a node-returned quantity; a malformed one is a TransportError."""
        try:
            return decode_quantity(value)
        except ValueError:
            raise TransportError(f"Malformed quantity from {method}: {value!r}") from None

    @staticmethod
    def _unwrap(response: Any, request_id: int, method: str) -> Any:
        if not isinstance(response, dict):
            raise TransportError(f"Malformed JSON-RPC response to {method}")
        if response.get("id") != request_id:
            raise TransportError(
                f"JSON-RPC response id {response.get('id')!r} "
                f"does not match request id {request_id}"
            )

        if "error" in response:
            error = response["error"]
            if not isinstance(error, dict):
                raise TransportError(f"Malformed JSON-RPC error object for {method}")
            code = error.get("code")
            raise RpcError(
                code=int(code) if isinstance(code, int) else -32603,
                message=str(error.get("message", "")),
                data=error.get("data"),
            )

        if "result" not in response:
            raise TransportError(
                f"JSON-RPC response to {method} has neither result nor error"
            )
        return response["result"]
