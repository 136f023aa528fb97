"""Transaction pipeline: Built -> Filled -> Signed -> Submitted -> Confirmed/Errored."""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import replace
from typing import Any

from ..errors import ConfirmationTimeout, SigningError, TransportError, ValidationError
from ..interfaces.signer import Signer
from ..models import (
    AccountIdentifier,
    Command,
    SignedTransaction,
    TransactionRequest,
    TxStage,
    TxSubmission,
)
from ..quantity import is_hash32, is_hex_data, parse_quantity
from ..rpc.gateway import RpcGateway
from .resolver import IdentifierResolver

logger = logging.getLogger(__name__)

_QUANTITY_ARGS = (
    "value",
    "nonce",
    "gas",
    "gas_price",
    "max_fee_per_gas",
    "max_priority_fee_per_gas",
    "chain_id",
)


def _parse_quantity_arg(command: Command, name: str) -> int | None:
    raw = command.get(name)
    if raw is None:
        return None
    try:
        return parse_quantity(raw)
    except ValueError as e:
        raise ValidationError(f"--{name.replace('_', '-')}: {e}") from None


def _sender_identifier(value: str) -> AccountIdentifier:
    """``--from`` as an address when 0x-prefixed, otherwise as an ENS name."""
    if value.lower().startswith("0x"):
        return AccountIdentifier(address=value)
    return AccountIdentifier(ens=value)


class TransactionPipeline:
    """Builds, fills, signs and submits transactions.

    Local signing (``eth_sendRawTransaction``) and node-side signing
    (``eth_sendTransaction``) are separate entry points; the caller picks one
    and the pipeline never falls back from one to the other.
    """

    def __init__(
        self,
        gateway: RpcGateway,
        resolver: IdentifierResolver,
        signer: Signer | None = None,
        *,
        chain_id: int | None = None,
        poll_interval: float = 2.0,
        confirmation_timeout: float = 120,
    ) -> None:
        self._gateway = gateway
        self._resolver = resolver
        self._signer = signer
        self._chain_id = chain_id
        self._poll_interval = poll_interval
        self._confirmation_timeout = confirmation_timeout
        # Fill->submit for one sender must not interleave or nonces collide.
        self._sender_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def build(self, command: Command, sender: str | None = None) -> TransactionRequest:
        """Built: a request from command arguments, with ``to`` resolved."""
        values = {name: _parse_quantity_arg(command, name) for name in _QUANTITY_ARGS}

        data = command.get("data", "0x")
        if not is_hex_data(data):
            raise ValidationError(f"--data must be 0x-prefixed hex bytes, got '{data}'")

        if values["gas_price"] is not None and (
            values["max_fee_per_gas"] is not None
            or values["max_priority_fee_per_gas"] is not None
        ):
            raise ValidationError(
                "--gas-price conflicts with --max-fee-per-gas/--max-priority-fee-per-gas"
            )
        if (values["max_fee_per_gas"] is None) != (values["max_priority_fee_per_gas"] is None):
            raise ValidationError(
                "--max-fee-per-gas and --max-priority-fee-per-gas must be given together"
            )

        if sender is None and command.has("from"):
            sender = await self._resolver.resolve_account(
                _sender_identifier(command.get("from"))
            )

        recipient = AccountIdentifier.from_args(command.get("to"), command.get("ens_to"))
        to = await self._resolver.resolve_account(recipient) if recipient else None
        if to is None and data == "0x":
            raise ValidationError("A transaction needs a recipient or calldata")

        tx = TransactionRequest(
            sender=sender,
            to=to,
            value=values["value"] or 0,
            data=data,
            nonce=values["nonce"],
            gas=values["gas"],
            gas_price=values["gas_price"],
            max_fee_per_gas=values["max_fee_per_gas"],
            max_priority_fee_per_gas=values["max_priority_fee_per_gas"],
            chain_id=values["chain_id"],
        )
        logger.debug("Transaction %s: %s", TxStage.BUILT.value, tx)
        return tx

    async def fill(self, tx: TransactionRequest) -> TransactionRequest:
        """Filled: nonce, gas, fee and chain id taken from the node when unset."""
        if tx.sender is None:
            raise ValidationError("Cannot fill a transaction without a sender")

        updates: dict[str, Any] = {}
        if tx.nonce is None:
            updates["nonce"] = await self._gateway.call_quantity(
                "eth_getTransactionCount", [tx.sender, "pending"]
            )
        if tx.gas is None:
            updates["gas"] = await self._gateway.call_quantity(
                "eth_estimateGas", [tx.to_rpc()]
            )
        if not tx.has_fee:
            updates["gas_price"] = await self._gateway.call_quantity("eth_gasPrice")
        if tx.chain_id is None:
            if self._chain_id is not None:
                updates["chain_id"] = self._chain_id
            else:
                updates["chain_id"] = await self._gateway.call_quantity("eth_chainId")

        filled = replace(tx, **updates)
        logger.debug("Transaction %s: %s", TxStage.FILLED.value, filled)
        return filled

    def sign(self, tx: TransactionRequest) -> SignedTransaction:
        """Signed: raw bytes and hash from the configured key."""
        signed = self._require_signer().sign_transaction(tx)
        logger.debug("Transaction %s: %s", TxStage.SIGNED.value, signed.hash)
        return signed

    async def submit_raw(self, raw: str) -> str:
        tx_hash = await self._gateway.call("eth_sendRawTransaction", [raw])
        return self._submitted(tx_hash)

    async def submit_unsigned(self, tx: TransactionRequest) -> str:
        tx_hash = await self._gateway.call("eth_sendTransaction", [tx.to_rpc()])
        return self._submitted(tx_hash)

    async def wait_for_receipt(self, tx_hash: str) -> TxSubmission:
        """Poll for a receipt until one appears or the timeout elapses.

        Interrupting the wait only stops polling; the transaction stays on
        the network.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._confirmation_timeout
        logger.info("Waiting for receipt of %s", tx_hash)

        try:
            while True:
                receipt = await self._gateway.call("eth_getTransactionReceipt", [tx_hash])
                if receipt is not None:
                    return self._finalize(tx_hash, receipt)

                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise ConfirmationTimeout(tx_hash, self._confirmation_timeout)
                await asyncio.sleep(min(self._poll_interval, remaining))
        except asyncio.CancelledError:
            logger.warning("Stopped waiting for %s; it remains submitted", tx_hash)
            raise

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def local_sender(self, command: Command) -> Signer:
        """Return the configured signer, checked against ``--from`` if given.

        ``--from`` may be an address or an ENS name; a name costs one
        resolution call. The key is checked before anything touches the node.
        """
        signer = self._require_signer()
        requested = command.get("from")
        if requested is None:
            return signer

        address = await self._resolver.resolve_account(_sender_identifier(requested))
        if address.lower() != signer.address.lower():
            raise SigningError(
                f"--from {requested} does not match the configured key ({signer.address})"
            )
        return signer

    async def sign_only(self, command: Command) -> dict[str, str]:
        """Build, fill and sign locally; nothing is submitted."""
        signer = await self.local_sender(command)
        tx = await self.build(command, sender=signer.address)
        tx = await self.fill(tx)
        signed = self.sign(tx)
        return {"from": signer.address, "raw": signed.raw, "transactionHash": signed.hash}

    async def send_signed(self, command: Command) -> TxSubmission:
        """Sign locally and submit with ``eth_sendRawTransaction``."""
        signer = await self.local_sender(command)

        async with self._sender_locks[signer.address.lower()]:
            tx = await self.build(command, sender=signer.address)
            tx = await self.fill(tx)
            signed = self.sign(tx)
            tx_hash = await self.submit_raw(signed.raw)

        if tx_hash.lower() != signed.hash.lower():
            logger.warning(
                "Node returned hash %s, locally computed %s", tx_hash, signed.hash
            )
        return await self._finish(tx_hash, bool(command.get("wait", False)))

    async def send_node_signed(self, command: Command) -> TxSubmission:
        """Submit an unsigned request with ``eth_sendTransaction``; the node signs."""
        tx = await self.build(command)
        if tx.sender is None:
            raise ValidationError("Node-signed transactions need --from")

        async with self._sender_locks[tx.sender.lower()]:
            tx_hash = await self.submit_unsigned(tx)
        return await self._finish(tx_hash, bool(command.get("wait", False)))

    async def send_raw(self, command: Command) -> TxSubmission:
        """Submit already-signed transaction bytes."""
        raw = command.get("raw")
        if not is_hex_data(raw) or raw == "0x":
            raise ValidationError("--raw must be 0x-prefixed signed transaction bytes")
        tx_hash = await self.submit_raw(raw)
        return await self._finish(tx_hash, bool(command.get("wait", False)))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_signer(self) -> Signer:
        if self._signer is None:
            raise SigningError(
                "No private key configured; pass --priv-key or set priv_key in the config file"
            )
        return self._signer

    @staticmethod
    def _submitted(tx_hash: Any) -> str:
        if not is_hash32(tx_hash):
            raise TransportError(f"Node returned an invalid transaction hash: {tx_hash!r}")
        logger.info("Transaction %s: %s", TxStage.SUBMITTED.value, tx_hash)
        return tx_hash

    async def _finish(self, tx_hash: str, wait: bool) -> TxSubmission:
        if not wait:
            return TxSubmission(transaction_hash=tx_hash)
        return await self.wait_for_receipt(tx_hash)

    @staticmethod
    def _finalize(tx_hash: str, receipt: dict[str, Any]) -> TxSubmission:
        # Pre-Byzantium receipts carry no status field.
        status = receipt.get("status")
        if status is not None:
            status = RpcGateway.decode_quantity("eth_getTransactionReceipt", status)
        stage = TxStage.ERRORED if status == 0 else TxStage.CONFIRMED
        logger.info("Transaction %s: %s", stage.value, tx_hash)
        return TxSubmission(transaction_hash=tx_hash, stage=stage, receipt=receipt)
