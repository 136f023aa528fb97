"""JSON-RPC gateway and HTTP transport."""
from .gateway import RpcGateway
from .transport import HttpTransport

__all__ = ["HttpTransport", "RpcGateway"]
