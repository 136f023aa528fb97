"""Shared test doubles and sample values."""
from __future__ import annotations

from typing import Any, Callable

from eth_abi import encode
from eth_utils import to_hex

# Well-known development key (first anvil/hardhat account).
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
RECIPIENT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
VITALIK = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
PUBLIC_RESOLVER = "0x231b0Ee14048e9dCcD1d247744d114a4EB5E8E63"
TX_HASH = "0x" + "7920" * 15 + "89da"
BLOCK_HASH = "0x" + "ab" * 32


class RpcFailure:
    """Marker for a JSON-RPC error answer in FakeTransport tables."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        self.code = code
        self.message = message
        self.data = data


class FakeTransport:
    """Answers JSON-RPC envelopes from a method -> result table.

    A table value may be a plain result, a ``RpcFailure``, an exception to
    raise, or a callable taking the params and returning one of those.
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = dict(responses or {})
        self.requests: list[dict[str, Any]] = []
        self.closed = False

    @property
    def methods(self) -> list[str]:
        return [r["method"] for r in self.requests]

    def params_of(self, method: str) -> list[Any]:
        return next(r["params"] for r in self.requests if r["method"] == method)

    async def send(self, envelope: dict[str, Any]) -> Any:
        self.requests.append(envelope)
        if envelope["method"] not in self.responses:
            return {
                "jsonrpc": "2.0",
                "id": envelope["id"],
                "error": {"code": -32601, "message": "the method does not exist"},
            }

        answer = self.responses[envelope["method"]]
        if callable(answer) and not isinstance(answer, type):
            answer = answer(envelope["params"])
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, RpcFailure):
            error = {"code": answer.code, "message": answer.message}
            if answer.data is not None:
                error["data"] = answer.data
            return {"jsonrpc": "2.0", "id": envelope["id"], "error": error}
        return {"jsonrpc": "2.0", "id": envelope["id"], "result": answer}

    async def close(self) -> None:
        self.closed = True


def ens_answer(address: str, resolver: str = PUBLIC_RESOLVER) -> str:
    """Universal Resolver return data for an addr() lookup."""
    return to_hex(encode(["bytes", "address"], [encode(["address"], [address]), resolver]))


def sequence(*answers: Any) -> Callable[[list[Any]], Any]:
    """Answer successive calls with successive values; the last one repeats."""
    remaining = list(answers)

    def _next(_params: list[Any]) -> Any:
        return remaining.pop(0) if len(remaining) > 1 else remaining[0]

    return _next
