"""Service modules"""
from .resolver import BlockParam, IdentifierResolver
from .pipeline import TransactionPipeline
from .router import ACTIONS, ActionSpec, CommandRouter
from .client import EthClient

__all__ = [
    "ACTIONS",
    "ActionSpec",
    "BlockParam",
    "CommandRouter",
    "EthClient",
    "IdentifierResolver",
    "TransactionPipeline",
]
