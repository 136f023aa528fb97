"""Data models: all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import ValidationError
from .quantity import is_address, is_hash32, to_quantity


class BlockTag(str, Enum):
    LATEST = "latest"
    EARLIEST = "earliest"
    PENDING = "pending"
    SAFE = "safe"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class BlockSelector:
    """Exactly one of a block number, a block hash or a block tag."""

    number: int | None = None
    hash: str | None = None
    tag: BlockTag | None = None

    def __post_init__(self) -> None:
        supplied = sum(v is not None for v in (self.number, self.hash, self.tag))
        if supplied != 1:
            raise ValidationError(
                "A block selector needs exactly one of a number, hash or tag"
            )
        if self.hash is not None and not is_hash32(self.hash):
            raise ValidationError(f"Invalid block hash: {self.hash}")
        if self.number is not None and self.number < 0:
            raise ValidationError("Block number must be non-negative")

    @classmethod
    def from_args(
        cls,
        hash: str | None = None,
        number: int | None = None,
        tag: BlockTag | str | None = None,
    ) -> BlockSelector | None:
        """Build a selector from optional CLI values.

        Returns ``None`` when nothing was supplied so callers decide whether a
        default applies; more than one value is always a ``ValidationError``.
        """
        supplied = [v for v in (hash, number, tag) if v is not None]
        if not supplied:
            return None
        if len(supplied) > 1:
            raise ValidationError(
                "Provided multiple block identifiers. "
                "Only a block tag, number or hash must be provided."
            )
        if tag is not None and not isinstance(tag, BlockTag):
            try:
                tag = BlockTag(tag)
            except ValueError:
                raise ValidationError(f"Unknown block tag: {tag}") from None
        return cls(number=number, hash=hash, tag=tag)

    @property
    def is_hash(self) -> bool:
        return self.hash is not None

    def number_param(self) -> str:
        """Tag or hex number, the shape ``*ByNumber`` methods expect."""
        if self.tag is not None:
            return self.tag.value
        if self.number is not None:
            return to_quantity(self.number)
        raise ValidationError("A block hash cannot be used where a number is required")


@dataclass(frozen=True)
class AccountIdentifier:
    """Exactly one of a 20-byte hex address or an ENS name."""

    address: str | None = None
    ens: str | None = None

    def __post_init__(self) -> None:
        if (self.address is None) == (self.ens is None):
            raise ValidationError(
                "An account needs exactly one of an address or an ENS name"
            )
        if self.address is not None and not is_address(self.address):
            raise ValidationError(f"Invalid address: {self.address}")
        if self.ens is not None and "." not in self.ens:
            raise ValidationError(f"Invalid ENS name: {self.ens}")

    @classmethod
    def from_args(
        cls, address: str | None = None, ens: str | None = None
    ) -> AccountIdentifier | None:
        if address is None and ens is None:
            return None
        if address is not None and ens is not None:
            raise ValidationError(
                "Provided multiple account identifiers. "
                "Either an ens or address must be provided."
            )
        return cls(address=address, ens=ens)

    @property
    def is_ens(self) -> bool:
        return self.ens is not None


@dataclass(frozen=True)
class Command:
    """One parsed CLI invocation."""

    resource: str
    action: str
    args: dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        value = self.args.get(name)
        return default if value is None else value

    def has(self, name: str) -> bool:
        return self.args.get(name) is not None


@dataclass(frozen=True)
class TransactionRequest:
    """Transaction fields; unset values are filled from node defaults."""

    sender: str | None = None
    to: str | None = None
    value: int = 0
    data: str = "0x"
    nonce: int | None = None
    gas: int | None = None
    gas_price: int | None = None
    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None
    chain_id: int | None = None

    @property
    def is_dynamic_fee(self) -> bool:
        return self.max_fee_per_gas is not None or self.max_priority_fee_per_gas is not None

    @property
    def has_fee(self) -> bool:
        return self.gas_price is not None or self.is_dynamic_fee

    def to_rpc(self) -> dict[str, Any]:
        """JSON-RPC transaction object (hex quantities, unset fields omitted)."""
        out: dict[str, Any] = {}
        if self.sender is not None:
            out["from"] = self.sender
        if self.to is not None:
            out["to"] = self.to
        if self.value:
            out["value"] = to_quantity(self.value)
        if self.data and self.data != "0x":
            out["data"] = self.data
        quantities = {
            "nonce": self.nonce,
            "gas": self.gas,
            "gasPrice": self.gas_price,
            "maxFeePerGas": self.max_fee_per_gas,
            "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
            "chainId": self.chain_id,
        }
        for key, value in quantities.items():
            if value is not None:
                out[key] = to_quantity(value)
        return out

    def to_signable(self) -> dict[str, Any]:
        """Integer-valued dict in the shape eth-account signs."""
        out: dict[str, Any] = {
            "value": self.value,
            "data": self.data,
            "nonce": self.nonce,
            "gas": self.gas,
            "chainId": self.chain_id,
        }
        if self.to is not None:
            out["to"] = self.to
        if self.is_dynamic_fee:
            out["maxFeePerGas"] = self.max_fee_per_gas
            out["maxPriorityFeePerGas"] = self.max_priority_fee_per_gas
            out["type"] = 2
        else:
            out["gasPrice"] = self.gas_price
        return out


@dataclass(frozen=True)
class SignedTransaction:
    raw: str
    hash: str


class TxStage(str, Enum):
    BUILT = "built"
    FILLED = "filled"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    ERRORED = "errored"


@dataclass(frozen=True)
class TxSubmission:
    """Outcome of a mutating action."""

    transaction_hash: str
    stage: TxStage = TxStage.SUBMITTED
    receipt: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "transactionHash": self.transaction_hash,
            "stage": self.stage.value,
        }
        if self.receipt is not None:
            out["receipt"] = self.receipt
        return out
