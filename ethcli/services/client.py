"""Per-invocation wiring of transport, gateway, resolver, pipeline and router."""
from __future__ import annotations

import logging
from typing import Any

from ..config import CliConfig
from ..interfaces.signer import Signer
from ..interfaces.transport import Transport
from ..models import Command
from ..rpc import HttpTransport, RpcGateway
from ..signing import LocalSigner
from .pipeline import TransactionPipeline
from .resolver import IdentifierResolver
from .router import CommandRouter

logger = logging.getLogger(__name__)


class EthClient:
    """Owns the one RPC connection of a CLI invocation."""

    def __init__(self, config: CliConfig, transport: Transport | None = None) -> None:
        self._config = config
        self._transport: Transport = transport or HttpTransport(
            config.rpc_url, config.rpc_timeout
        )

        self._signer: Signer | None = None
        if config.private_key:
            self._signer = LocalSigner(config.private_key)
            logger.debug("Loaded signing key for %s", self._signer.address)

        self._gateway = RpcGateway(self._transport)
        self._resolver = IdentifierResolver(self._gateway, config.ens_resolver)
        self._pipeline = TransactionPipeline(
            self._gateway,
            self._resolver,
            self._signer,
            chain_id=config.chain_id,
            poll_interval=config.poll_interval,
            confirmation_timeout=config.confirmation_timeout,
        )
        self._router = CommandRouter(self._gateway, self._resolver, self._pipeline)

    async def __aenter__(self) -> EthClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        close = getattr(self._transport, "close", None)
        if close is not None:
            await close()

    async def run(self, command: Command) -> Any:
        return await self._router.dispatch(command)
