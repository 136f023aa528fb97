"""Command routing: (resource, action) -> validated JSON-RPC call sequence."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..errors import MissingArgumentError, RpcError, ValidationError
from ..models import AccountIdentifier, BlockSelector, BlockTag, Command
from ..quantity import is_hash32, is_hex_data, parse_quantity, to_quantity
from ..rpc.gateway import RpcGateway
from .pipeline import TransactionPipeline
from .resolver import BlockParam, IdentifierResolver

logger = logging.getLogger(__name__)

# EIP-1474 "Resource not found"
NOT_FOUND_CODE = -32001

BLOCK_ID_ARGS = ("hash", "number", "tag")
ACCOUNT_ARGS = ("address", "ens")
TX_TARGET_ARGS = ("to", "ens_to", "data")


@dataclass(frozen=True)
class ActionSpec:
    """Static routing descriptor for one (resource, action) pair.

    ``required`` holds argument groups; a group is satisfied when any one of
    its names was supplied. ``methods`` lists the JSON-RPC methods the
    handler may call, in the order the handler uses them.
    """

    handler: str
    methods: tuple[str, ...] = ()
    required: tuple[tuple[str, ...], ...] = ()
    params: tuple[str, ...] = ()
    flags: tuple[str, ...] = ()
    mutating: bool = False
    quantity: bool = False
    not_found: bool = False
    block_param: BlockParam = BlockParam.BLOCK_ID
    default_tag: BlockTag = BlockTag.LATEST
    description: str = ""


ACTIONS: dict[tuple[str, str], ActionSpec] = {
    # -- block --------------------------------------------------------------
    ("block", "get"): ActionSpec(
        "_by_block",
        ("eth_getBlockByHash", "eth_getBlockByNumber"),
        required=(BLOCK_ID_ARGS,),
        flags=("include_tx",),
        not_found=True,
        description="Gets a block using the provided identifier",
    ),
    ("block", "number"): ActionSpec(
        "_plain",
        ("eth_blockNumber",),
        quantity=True,
        description="Gets the number of the most recent block",
    ),
    ("block", "transaction-count"): ActionSpec(
        "_by_block",
        ("eth_getBlockTransactionCountByHash", "eth_getBlockTransactionCountByNumber"),
        required=(BLOCK_ID_ARGS,),
        quantity=True,
        not_found=True,
        description="Gets the number of transactions in the block",
    ),
    ("block", "uncle-count"): ActionSpec(
        "_by_block",
        ("eth_getUncleCountByBlockHash", "eth_getUncleCountByBlockNumber"),
        required=(BLOCK_ID_ARGS,),
        quantity=True,
        not_found=True,
        description="Gets the number of uncles of the block",
    ),
    ("block", "receipts"): ActionSpec(
        "_block_receipts",
        ("eth_getBlockByHash", "eth_getBlockReceipts"),
        required=(BLOCK_ID_ARGS,),
        not_found=True,
        description="Gets the transaction receipts of the block",
    ),
    # -- account ------------------------------------------------------------
    ("account", "balance"): ActionSpec(
        "_account",
        ("eth_getBalance",),
        required=(ACCOUNT_ARGS,),
        quantity=True,
        description="Gets the account balance in wei",
    ),
    ("account", "code"): ActionSpec(
        "_account",
        ("eth_getCode",),
        required=(ACCOUNT_ARGS,),
        description="Gets the code deployed at the account",
    ),
    ("account", "transaction-count"): ActionSpec(
        "_account",
        ("eth_getTransactionCount",),
        required=(ACCOUNT_ARGS,),
        quantity=True,
        description="Gets the number of transactions sent from the account",
    ),
    ("account", "nonce"): ActionSpec(
        "_account",
        ("eth_getTransactionCount",),
        required=(ACCOUNT_ARGS,),
        quantity=True,
        default_tag=BlockTag.PENDING,
        description="Gets the next nonce of the account, pending included",
    ),
    ("account", "storage"): ActionSpec(
        "_account",
        ("eth_getStorageAt",),
        required=(ACCOUNT_ARGS, ("slot",)),
        params=("slot",),
        description="Gets the value stored in a storage slot",
    ),
    # -- transaction --------------------------------------------------------
    ("transaction", "get"): ActionSpec(
        "_transaction",
        (
            "eth_getTransactionByHash",
            "eth_getTransactionByBlockHashAndIndex",
            "eth_getTransactionByBlockNumberAndIndex",
        ),
        required=(("hash", "block_hash", "block_number", "block_tag"),),
        not_found=True,
        description="Gets a transaction by hash or by block and index",
    ),
    ("transaction", "receipt"): ActionSpec(
        "_plain",
        ("eth_getTransactionReceipt",),
        required=(("hash",),),
        params=("hash",),
        not_found=True,
        description="Gets the receipt of a transaction",
    ),
    ("transaction", "call"): ActionSpec(
        "_call",
        ("eth_call",),
        required=(TX_TARGET_ARGS,),
        description="Executes a message call without creating a transaction",
    ),
    ("transaction", "send"): ActionSpec(
        "_send_signed",
        ("eth_sendRawTransaction",),
        required=(TX_TARGET_ARGS,),
        mutating=True,
        description="Signs the transaction with the configured key and submits it",
    ),
    ("transaction", "send-node"): ActionSpec(
        "_send_node_signed",
        ("eth_sendTransaction",),
        required=(("from",), TX_TARGET_ARGS),
        mutating=True,
        description="Submits an unsigned transaction for the node to sign",
    ),
    ("transaction", "send-raw"): ActionSpec(
        "_send_raw",
        ("eth_sendRawTransaction",),
        required=(("raw",),),
        mutating=True,
        description="Submits already signed transaction bytes",
    ),
    # -- gas ----------------------------------------------------------------
    ("gas", "price"): ActionSpec(
        "_plain",
        ("eth_gasPrice",),
        quantity=True,
        description="Gets the current gas price in wei",
    ),
    ("gas", "fee"): ActionSpec(
        "_plain",
        ("eth_maxPriorityFeePerGas",),
        quantity=True,
        description="Gets the current max priority fee per gas in wei",
    ),
    ("gas", "estimate"): ActionSpec(
        "_call",
        ("eth_estimateGas",),
        required=(TX_TARGET_ARGS,),
        quantity=True,
        block_param=BlockParam.NUMBER,
        description="Estimates the gas used by the transaction",
    ),
    ("gas", "history"): ActionSpec(
        "_fee_history",
        ("eth_feeHistory",),
        required=(("count",),),
        block_param=BlockParam.NUMBER,
        description="Gets base and priority fees for a block range",
    ),
    # -- utils --------------------------------------------------------------
    ("utils", "accounts"): ActionSpec(
        "_plain", ("eth_accounts",), description="Gets the accounts known by the node"
    ),
    ("utils", "chain-id"): ActionSpec(
        "_plain", ("eth_chainId",), quantity=True, description="Gets the chain id"
    ),
    ("utils", "protocol-version"): ActionSpec(
        "_plain",
        ("eth_protocolVersion",),
        description="Gets the ethereum protocol version",
    ),
    ("utils", "sync-status"): ActionSpec(
        "_plain", ("eth_syncing",), description="Gets the node sync status"
    ),
    ("utils", "proof"): ActionSpec(
        "_proof",
        ("eth_getProof",),
        required=(ACCOUNT_ARGS,),
        description="Gets the EIP-1186 account and storage proof",
    ),
    ("utils", "resolve"): ActionSpec(
        "_resolve",
        ("eth_call",),
        required=(("ens",),),
        description="Resolves an ENS name to an address",
    ),
    ("utils", "sign"): ActionSpec(
        "_sign",
        required=(TX_TARGET_ARGS,),
        flags=("tx",),
        description="Signs data (EIP-191), or a transaction with --tx, using the configured key",
    ),
}

RESOURCES = ("block", "account", "transaction", "event", "gas", "utils")


def actions_for(resource: str) -> dict[str, ActionSpec]:
    return {action: spec for (res, action), spec in ACTIONS.items() if res == resource}


class CommandRouter:
    """Dispatches a Command through the resolver, gateway and pipeline."""

    def __init__(
        self,
        gateway: RpcGateway,
        resolver: IdentifierResolver,
        pipeline: TransactionPipeline,
    ) -> None:
        self._gateway = gateway
        self._resolver = resolver
        self._pipeline = pipeline

    async def dispatch(self, command: Command) -> Any:
        """Run ``command`` and return a JSON-serializable result."""
        spec = ACTIONS.get((command.resource, command.action))
        if spec is None:
            available = ", ".join(sorted(actions_for(command.resource))) or "none"
            raise ValidationError(
                f"Unknown action '{command.resource} {command.action}' "
                f"(available: {available})"
            )

        for group in spec.required:
            if not any(command.has(name) for name in group):
                raise MissingArgumentError(command.resource, command.action, group)

        if spec.mutating:
            logger.info("Running mutating action '%s %s'", command.resource, command.action)
        else:
            logger.debug("Running '%s %s'", command.resource, command.action)

        handler = getattr(self, spec.handler)
        result = await handler(command, spec)
        if spec.quantity:
            result = RpcGateway.decode_quantity("/".join(spec.methods), result)
        return result

    # ------------------------------------------------------------------
    # Argument helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _found(result: Any, spec: ActionSpec, what: str) -> Any:
        if result is None and spec.not_found:
            raise RpcError(NOT_FOUND_CODE, f"{what} not found")
        return result

    @staticmethod
    def _hash_arg(command: Command, name: str) -> str:
        value = command.get(name)
        if not is_hash32(value):
            raise ValidationError(f"--{name.replace('_', '-')} must be a 32-byte hex hash")
        return value

    @staticmethod
    def _quantity_arg(command: Command, name: str) -> int:
        try:
            return parse_quantity(command.get(name))
        except ValueError as e:
            raise ValidationError(f"--{name.replace('_', '-')}: {e}") from None

    @staticmethod
    def _block_selector(command: Command, prefix: str = "block_") -> BlockSelector | None:
        return BlockSelector.from_args(
            hash=command.get(f"{prefix}hash"),
            number=command.get(f"{prefix}number"),
            tag=command.get(f"{prefix}tag"),
        )

    def _block_arg(self, command: Command, spec: ActionSpec) -> Any:
        selector = self._block_selector(command)
        if selector is None:
            return spec.default_tag.value
        return self._resolver.block_param(selector, spec.block_param)

    def _account_identifier(self, command: Command) -> AccountIdentifier:
        account = AccountIdentifier.from_args(command.get("address"), command.get("ens"))
        if account is None:
            raise MissingArgumentError(command.resource, command.action, ACCOUNT_ARGS)
        return account

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _plain(self, command: Command, spec: ActionSpec) -> Any:
        params = [
            self._hash_arg(command, name) if name == "hash" else command.get(name)
            for name in spec.params
        ]
        result = await self._gateway.call(spec.methods[0], params)
        return self._found(result, spec, "Resource")

    async def _by_block(self, command: Command, spec: ActionSpec) -> Any:
        selector = self._block_selector(command, prefix="")
        if selector is None:
            raise MissingArgumentError(command.resource, command.action, BLOCK_ID_ARGS)

        by_hash, by_number = spec.methods
        if selector.is_hash:
            method = by_hash
            param = self._resolver.block_param(selector, BlockParam.HASH)
        else:
            method = by_number
            param = self._resolver.block_param(selector, BlockParam.NUMBER)

        params: list[Any] = [param]
        params.extend(bool(command.get(flag, False)) for flag in spec.flags)
        result = await self._gateway.call(method, params)
        return self._found(result, spec, "Block")

    async def _block_receipts(self, command: Command, spec: ActionSpec) -> Any:
        selector = self._block_selector(command, prefix="")
        if selector is None:
            raise MissingArgumentError(command.resource, command.action, BLOCK_ID_ARGS)

        lookup_method, receipts_method = spec.methods
        if selector.is_hash:
            block = await self._gateway.call(lookup_method, [selector.hash, False])
            block = self._found(block, spec, "Block")
            param = block["number"]
        else:
            param = self._resolver.block_param(selector, BlockParam.NUMBER)

        result = await self._gateway.call(receipts_method, [param])
        return self._found(result, spec, "Block")

    async def _account(self, command: Command, spec: ActionSpec) -> Any:
        account = self._account_identifier(command)
        extra = [to_quantity(self._quantity_arg(command, name)) for name in spec.params]
        block = self._block_arg(command, spec)

        address = await self._resolver.resolve_account(account)
        return await self._gateway.call(spec.methods[0], [address, *extra, block])

    async def _transaction(self, command: Command, spec: ActionSpec) -> Any:
        by_hash, by_block_hash, by_block_number = spec.methods

        if command.has("hash"):
            if self._block_selector(command) is not None:
                raise ValidationError("--hash conflicts with the block selector flags")
            result = await self._gateway.call(by_hash, [self._hash_arg(command, "hash")])
            return self._found(result, spec, "Transaction")

        if not command.has("index"):
            raise MissingArgumentError(command.resource, command.action, ("index",))
        index = to_quantity(self._quantity_arg(command, "index"))
        selector = self._block_selector(command)
        if selector is None:
            raise MissingArgumentError(
                command.resource,
                command.action,
                ("hash", "block_hash", "block_number", "block_tag"),
            )

        if selector.is_hash:
            params = [self._resolver.block_param(selector, BlockParam.HASH), index]
            result = await self._gateway.call(by_block_hash, params)
        else:
            params = [self._resolver.block_param(selector, BlockParam.NUMBER), index]
            result = await self._gateway.call(by_block_number, params)
        return self._found(result, spec, "Transaction")

    async def _call(self, command: Command, spec: ActionSpec) -> Any:
        selector = self._block_selector(command)
        block = (
            self._resolver.block_param(selector, spec.block_param)
            if selector is not None
            else None
        )
        tx = await self._pipeline.build(command)

        params: list[Any] = [tx.to_rpc()]
        if spec.methods[0] == "eth_call":
            params.append(block if block is not None else BlockTag.LATEST.value)
        elif block is not None:
            params.append(block)
        return await self._gateway.call(spec.methods[0], params)

    async def _fee_history(self, command: Command, spec: ActionSpec) -> Any:
        count = self._quantity_arg(command, "count")
        if count < 1:
            raise ValidationError("--count must be at least 1")

        percentiles = [float(p) for p in command.get("percentiles", [])]
        if any(not 0 <= p <= 100 for p in percentiles):
            raise ValidationError("Reward percentiles must be between 0 and 100")
        if percentiles != sorted(percentiles):
            raise ValidationError("Reward percentiles must be monotonically increasing")

        block = self._block_arg(command, spec)
        return await self._gateway.call(
            spec.methods[0], [to_quantity(count), block, percentiles]
        )

    async def _proof(self, command: Command, spec: ActionSpec) -> Any:
        account = self._account_identifier(command)
        keys = list(command.get("storage_keys", []))
        for key in keys:
            if not is_hash32(key):
                raise ValidationError(f"Storage key must be a 32-byte hex value: {key}")
        block = self._block_arg(command, spec)

        address = await self._resolver.resolve_account(account)
        return await self._gateway.call(spec.methods[0], [address, keys, block])

    async def _resolve(self, command: Command, spec: ActionSpec) -> Any:
        account = AccountIdentifier(ens=command.get("ens"))
        return await self._resolver.resolve_account(account)

    async def _sign(self, command: Command, spec: ActionSpec) -> Any:
        if command.get("tx", False):
            return await self._pipeline.sign_only(command)

        if not command.has("data"):
            raise MissingArgumentError(command.resource, command.action, ("data",))
        signer = await self._pipeline.local_sender(command)
        data = command.get("data")
        if not is_hex_data(data):
            raise ValidationError("--data must be 0x-prefixed hex bytes")
        signature = signer.sign_message(bytes.fromhex(data[2:]))
        return {"address": signer.address, "signature": signature}

    async def _send_signed(self, command: Command, spec: ActionSpec) -> Any:
        return (await self._pipeline.send_signed(command)).to_dict()

    async def _send_node_signed(self, command: Command, spec: ActionSpec) -> Any:
        return (await self._pipeline.send_node_signed(command)).to_dict()

    async def _send_raw(self, command: Command, spec: ActionSpec) -> Any:
        return (await self._pipeline.send_raw(command)).to_dict()
