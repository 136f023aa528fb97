"""Error taxonomy: every failure is terminal for the command."""
from __future__ import annotations

from typing import Any

EXIT_OK = 0
EXIT_UNEXPECTED = 1


class EthCliError(Exception):
    """Base class for errors rendered to the user."""

    exit_code = EXIT_UNEXPECTED

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"type": type(self).__name__, "message": self.message}


class ValidationError(EthCliError):
    """Bad, missing or conflicting arguments; raised before any network call."""

    exit_code = 2


class MissingArgumentError(ValidationError):
    def __init__(self, resource: str, action: str, names: tuple[str, ...]) -> None:
        flags = " or ".join(f"--{n.replace('_', '-')}" for n in names)
        super().__init__(f"'{resource} {action}' requires {flags}")
        self.names = names


class ResolutionError(EthCliError):
    """ENS name could not be resolved to an address."""

    exit_code = 3


class TransportError(EthCliError):
    """Connection failure, timeout or malformed response."""

    exit_code = 4


class RpcError(EthCliError):
    """Well-formed JSON-RPC error response from the node."""

    exit_code = 5

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data

    def __str__(self) -> str:
        return f"RPC error {self.code}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["code"] = self.code
        if self.data is not None:
            out["data"] = self.data
        return out


class SigningError(EthCliError):
    """Missing or invalid key material."""

    exit_code = 6


class ConfirmationTimeout(EthCliError):
    """Receipt polling gave up. The transaction itself may still be pending."""

    exit_code = 7

    def __init__(self, transaction_hash: str, timeout: float) -> None:
        super().__init__(
            f"No receipt for {transaction_hash} after {timeout:g}s; "
            "the transaction may still be pending"
        )
        self.transaction_hash = transaction_hash
        self.timeout = timeout

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["transactionHash"] = self.transaction_hash
        return out
