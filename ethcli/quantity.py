"""Hex quantity and data helpers for JSON-RPC parameters."""
from __future__ import annotations

import re
from typing import Any

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
HASH32_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
HEX_DATA_RE = re.compile(r"^0x(?:[0-9a-fA-F]{2})*$")


def is_address(value: Any) -> bool:
    return isinstance(value, str) and bool(ADDRESS_RE.fullmatch(value))


def is_hash32(value: Any) -> bool:
    return isinstance(value, str) and bool(HASH32_RE.fullmatch(value))


def is_hex_data(value: Any) -> bool:
    return isinstance(value, str) and bool(HEX_DATA_RE.fullmatch(value))


def parse_quantity(raw: str | int) -> int:
    """Parse a decimal or 0x-prefixed hex quantity into a non-negative int."""
    if isinstance(raw, bool):
        raise ValueError("quantity cannot be boolean")
    if isinstance(raw, int):
        if raw < 0:
            raise ValueError("quantity must be non-negative")
        return raw

    value = str(raw).strip()
    if not value:
        raise ValueError("quantity cannot be empty")
    if value.lower().startswith("0x"):
        try:
            return int(value, 16)
        except ValueError:
            raise ValueError(f"invalid hex quantity: {value}") from None
    if not value.isdigit():
        raise ValueError(
            "quantity must be a decimal integer or 0x-prefixed hex quantity"
        )
    return int(value, 10)


def to_quantity(value: int) -> str:
    """Encode an int as a JSON-RPC quantity (no leading zeros)."""
    if value < 0:
        raise ValueError("quantity must be non-negative")
    return hex(value)


def decode_quantity(value: Any) -> Any:
    """Decode a node-returned hex quantity; anything else passes through."""
    if isinstance(value, str) and value.startswith("0x"):
        return int(value, 16) if len(value) > 2 else 0
    return value
