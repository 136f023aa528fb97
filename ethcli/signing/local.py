"""Private-key signer: the only place key material is touched."""
from __future__ import annotations

import logging

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import ValidationError as EthValidationError
from eth_utils import to_hex

from ..errors import SigningError
from ..models import SignedTransaction, TransactionRequest

logger = logging.getLogger(__name__)


class LocalSigner:
    """Signs transactions and EIP-191 messages with a 32-byte private key."""

    def __init__(self, private_key: str) -> None:
        key = private_key.strip()
        if not key.startswith("0x"):
            key = "0x" + key
        try:
            self._account = Account.from_key(key)
        except (ValueError, TypeError, EthValidationError):
            raise SigningError("Invalid private key: expected 32 bytes of hex") from None

    @property
    def address(self) -> str:
        return self._account.address

    def sign_transaction(self, tx: TransactionRequest) -> SignedTransaction:
        """Sign a fully filled request and return the raw bytes and hash."""
        missing = [
            name
            for name in ("nonce", "gas", "chain_id")
            if getattr(tx, name) is None
        ]
        if not tx.has_fee:
            missing.append("gas_price")
        if missing:
            raise SigningError(
                f"Cannot sign an unfilled transaction (missing {', '.join(missing)})"
            )

        try:
            signed = self._account.sign_transaction(tx.to_signable())
        except (ValueError, TypeError, EthValidationError) as e:
            raise SigningError(f"Transaction signing failed: {e}") from e

        tx_hash = to_hex(signed.hash)
        logger.debug("Signed transaction %s (nonce %s)", tx_hash, tx.nonce)
        return SignedTransaction(raw=to_hex(signed.raw_transaction), hash=tx_hash)

    def sign_message(self, data: bytes) -> str:
        """EIP-191 personal-message signature as 0x-hex."""
        signed = self._account.sign_message(encode_defunct(primitive=data))
        return to_hex(signed.signature)
