"""Signer protocol: key material that never leaves the process."""
from typing import Protocol

from ..models import SignedTransaction, TransactionRequest


class Signer(Protocol):
    """Abstract interface for local signing."""

    @property
    def address(self) -> str: ...

    def sign_transaction(self, tx: TransactionRequest) -> SignedTransaction: ...

    def sign_message(self, data: bytes) -> str: ...
