"""Identifier resolution: ENS names, addresses and block selectors."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak, to_bytes, to_checksum_address, to_hex

from ..config import DEFAULT_ENS_RESOLVER
from ..errors import ResolutionError, RpcError, ValidationError
from ..models import AccountIdentifier, BlockSelector, BlockTag
from ..rpc.gateway import RpcGateway

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
_RESOLVE_SELECTOR = keccak(text="resolve(bytes,bytes)")[:4]
_ADDR_SELECTOR = keccak(text="addr(bytes32)")[:4]


class BlockParam(str, Enum):
    """Block parameter shape a JSON-RPC method accepts."""

    NUMBER = "number"  # tag or hex number
    HASH = "hash"  # 32-byte block hash
    BLOCK_ID = "block_id"  # EIP-1898: tag, number or {"blockHash": ...}


def normalize_name(name: str) -> str:
    # TODO: full ENSIP-15 normalization; lowercase covers ASCII names only.
    return name.strip().lower().rstrip(".")


def namehash(name: str) -> bytes:
    node = b"\x00" * 32
    if name:
        for label in reversed(name.split(".")):
            node = keccak(node + keccak(text=label))
    return node


def dns_encode(name: str) -> bytes:
    """DNS wire-format encoding of a dotted name."""
    out = b""
    for label in name.split("."):
        raw = label.encode("utf-8")
        if not raw or len(raw) > 63:
            raise ValidationError(f"Invalid ENS label in '{name}'")
        out += bytes([len(raw)]) + raw
    return out + b"\x00"


class IdentifierResolver:
    """Turns user-facing identifiers into canonical RPC parameters."""

    def __init__(self, gateway: RpcGateway, ens_resolver: str = DEFAULT_ENS_RESOLVER) -> None:
        self._gateway = gateway
        self._ens_resolver = ens_resolver

    async def resolve_account(self, account: AccountIdentifier) -> str:
        """Return a 20-byte hex address for ``account``.

        Addresses are returned unchanged without touching the network. ENS
        names cost exactly one ``eth_call``.
        """
        if account.ens is not None:
            return await self.resolve_ens(account.ens)
        if account.address is None:
            raise ValidationError("An account needs an address or an ENS name")
        return account.address

    async def resolve_ens(self, name: str) -> str:
        normalized = normalize_name(name)
        node = namehash(normalized)
        calldata = _RESOLVE_SELECTOR + encode(
            ["bytes", "bytes"], [dns_encode(normalized), _ADDR_SELECTOR + node]
        )

        try:
            result = await self._gateway.call(
                "eth_call",
                [{"to": self._ens_resolver, "data": to_hex(calldata)}, BlockTag.LATEST.value],
            )
        except RpcError as e:
            raise ResolutionError(f"ENS name '{name}' could not be resolved: {e.message}") from e

        address = self._decode_address(name, result)
        logger.info("Resolved %s -> %s", name, address)
        return address

    @staticmethod
    def _decode_address(name: str, result: Any) -> str:
        try:
            answer, _resolver = decode(["bytes", "address"], to_bytes(hexstr=result))
            (address,) = decode(["address"], answer)
        except (DecodingError, TypeError, ValueError) as e:
            raise ResolutionError(
                f"ENS name '{name}' returned an undecodable answer"
            ) from e

        if address.lower() == ZERO_ADDRESS:
            raise ResolutionError(f"ENS name '{name}' has no address record")
        return to_checksum_address(address)

    @staticmethod
    def block_param(selector: BlockSelector | None, shape: BlockParam) -> Any:
        """Return ``selector`` in the shape a method accepts.

        ``None`` means ``latest``. A hash given to a number-only method (or
        a number given to a hash-only one) is a ``ValidationError``.
        """
        if selector is None:
            if shape is BlockParam.HASH:
                raise ValidationError("A block hash is required")
            return BlockTag.LATEST.value

        if shape is BlockParam.HASH:
            if not selector.is_hash:
                raise ValidationError("This operation needs a block hash")
            return selector.hash

        if selector.is_hash:
            if shape is BlockParam.NUMBER:
                raise ValidationError(
                    "This operation takes a block number or tag, not a block hash"
                )
            return {"blockHash": selector.hash}

        return selector.number_param()
