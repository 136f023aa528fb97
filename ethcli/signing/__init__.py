"""Local signing backed by eth-account."""
from .local import LocalSigner

__all__ = ["LocalSigner"]
