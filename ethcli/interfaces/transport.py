"""Transport protocol: moves one JSON-RPC envelope to the node and back."""
from typing import Any, Protocol


class Transport(Protocol):
    """Abstract interface for sending JSON-RPC envelopes."""

    async def send(self, envelope: dict[str, Any]) -> Any: ...
