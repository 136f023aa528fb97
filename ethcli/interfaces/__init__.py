"""Protocol interfaces for the Ethereum JSON-RPC client."""
from .renderer import Renderer
from .signer import Signer
from .transport import Transport

__all__ = ["Renderer", "Signer", "Transport"]
