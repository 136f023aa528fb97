"""Unit tests for the build -> fill -> sign -> submit transaction pipeline."""
from __future__ import annotations

import asyncio
from typing import Any

import pytest
from eth_account import Account
from eth_utils import keccak, to_hex

from ethcli.errors import ConfirmationTimeout, SigningError, TransportError, ValidationError
from ethcli.models import Command, TransactionRequest, TxStage
from ethcli.rpc import RpcGateway
from ethcli.services import IdentifierResolver, TransactionPipeline
from ethcli.signing import LocalSigner
from tests.helpers import (
    RECIPIENT,
    TEST_ADDRESS,
    TX_HASH,
    VITALIK,
    FakeTransport,
    ens_answer,
    sequence,
)

FILL_METHODS = ["eth_getTransactionCount", "eth_estimateGas", "eth_gasPrice", "eth_chainId"]


def _send(**args: Any) -> Command:
    return Command("transaction", "send", args)


def _hash_of_raw(params: list[Any]) -> str:
    return to_hex(keccak(hexstr=params[0]))


@pytest.fixture()
def node(transport: FakeTransport) -> FakeTransport:
    transport.responses.update(
        {
            "eth_getTransactionCount": "0x7",
            "eth_estimateGas": "0x5208",
            "eth_gasPrice": "0x3b9aca00",
            "eth_chainId": "0x1",
            "eth_sendRawTransaction": _hash_of_raw,
            "eth_sendTransaction": TX_HASH,
        }
    )
    return transport


class TestBuild:
    @pytest.mark.asyncio
    async def test_parses_quantities(self, pipeline: TransactionPipeline) -> None:
        tx = await pipeline.build(_send(to=RECIPIENT, value="0x10", gas="21000"))
        assert tx.value == 16
        assert tx.gas == 21000
        assert tx.nonce is None

    @pytest.mark.asyncio
    async def test_resolves_ens_recipient(
        self, pipeline: TransactionPipeline, transport: FakeTransport
    ) -> None:
        transport.responses["eth_call"] = ens_answer(VITALIK)
        tx = await pipeline.build(_send(ens_to="vitalik.eth"))
        assert tx.to == VITALIK
        assert transport.methods == ["eth_call"]

    @pytest.mark.asyncio
    async def test_contract_creation_allowed(self, pipeline: TransactionPipeline) -> None:
        tx = await pipeline.build(_send(data="0x6000"))
        assert tx.to is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "args",
        [
            {},
            {"to": RECIPIENT, "data": "0xabc"},
            {"to": RECIPIENT, "value": "-5"},
            {"to": RECIPIENT, "gas_price": "1", "max_fee_per_gas": "2", "max_priority_fee_per_gas": "1"},
            {"to": RECIPIENT, "max_fee_per_gas": "2"},
            {"to": RECIPIENT, "from": "0x1234"},
            {"to": RECIPIENT, "ens_to": "vitalik.eth"},
        ],
    )
    async def test_invalid_arguments(
        self, pipeline: TransactionPipeline, transport: FakeTransport, args: dict[str, Any]
    ) -> None:
        with pytest.raises(ValidationError):
            await pipeline.build(_send(**args))
        assert transport.requests == []


class TestFill:
    @pytest.mark.asyncio
    async def test_fills_missing_fields(
        self, pipeline: TransactionPipeline, node: FakeTransport
    ) -> None:
        tx = await pipeline.fill(TransactionRequest(sender=TEST_ADDRESS, to=RECIPIENT))
        assert (tx.nonce, tx.gas, tx.gas_price, tx.chain_id) == (7, 21000, 10**9, 1)
        assert node.methods == FILL_METHODS
        assert node.params_of("eth_getTransactionCount") == [TEST_ADDRESS, "pending"]

    @pytest.mark.asyncio
    async def test_keeps_given_fields(
        self, gateway: RpcGateway, resolver: IdentifierResolver, signer: LocalSigner, node: FakeTransport
    ) -> None:
        pipeline = TransactionPipeline(gateway, resolver, signer, chain_id=5)
        tx = TransactionRequest(
            sender=TEST_ADDRESS, to=RECIPIENT, nonce=1, gas=21000, max_fee_per_gas=2, max_priority_fee_per_gas=1
        )
        filled = await pipeline.fill(tx)
        assert filled.chain_id == 5
        assert filled.gas_price is None
        assert node.requests == []

    @pytest.mark.asyncio
    async def test_requires_sender(self, pipeline: TransactionPipeline) -> None:
        with pytest.raises(ValidationError):
            await pipeline.fill(TransactionRequest(to=RECIPIENT))

    @pytest.mark.asyncio
    async def test_malformed_node_quantity(
        self, pipeline: TransactionPipeline, node: FakeTransport
    ) -> None:
        node.responses["eth_estimateGas"] = "0xnothex"
        with pytest.raises(TransportError, match="Malformed quantity from eth_estimateGas"):
            await pipeline.fill(TransactionRequest(sender=TEST_ADDRESS, to=RECIPIENT))


class TestSendSigned:
    @pytest.mark.asyncio
    async def test_full_sequence(self, pipeline: TransactionPipeline, node: FakeTransport) -> None:
        result = await pipeline.send_signed(_send(to=RECIPIENT, value="1000"))

        assert node.methods == FILL_METHODS + ["eth_sendRawTransaction"]
        assert node.params_of("eth_estimateGas")[0]["from"] == TEST_ADDRESS
        raw = node.params_of("eth_sendRawTransaction")[0]
        assert Account.recover_transaction(raw) == TEST_ADDRESS
        assert result.stage is TxStage.SUBMITTED
        assert result.transaction_hash == to_hex(keccak(hexstr=raw))

    @pytest.mark.asyncio
    async def test_no_key_fails_before_any_call(
        self, unsigned_pipeline: TransactionPipeline, node: FakeTransport
    ) -> None:
        with pytest.raises(SigningError, match="No private key"):
            await unsigned_pipeline.send_signed(_send(to=RECIPIENT))
        assert node.requests == []

    @pytest.mark.asyncio
    async def test_from_must_match_key(self, pipeline: TransactionPipeline, node: FakeTransport) -> None:
        with pytest.raises(SigningError, match="does not match"):
            await pipeline.send_signed(_send(to=RECIPIENT, **{"from": RECIPIENT}))
        assert node.requests == []

    @pytest.mark.asyncio
    async def test_from_ens_resolving_to_key(
        self, pipeline: TransactionPipeline, node: FakeTransport
    ) -> None:
        node.responses["eth_call"] = ens_answer(TEST_ADDRESS)
        await pipeline.send_signed(_send(to=RECIPIENT, **{"from": "deployer.eth"}))
        assert node.methods == ["eth_call"] + FILL_METHODS + ["eth_sendRawTransaction"]

    @pytest.mark.asyncio
    async def test_from_ens_mismatch(
        self, pipeline: TransactionPipeline, node: FakeTransport
    ) -> None:
        node.responses["eth_call"] = ens_answer(VITALIK)
        with pytest.raises(SigningError, match="does not match"):
            await pipeline.send_signed(_send(to=RECIPIENT, **{"from": "vitalik.eth"}))
        assert node.methods == ["eth_call"]

    @pytest.mark.asyncio
    async def test_fully_specified_skips_fill(
        self, pipeline: TransactionPipeline, node: FakeTransport
    ) -> None:
        await pipeline.send_signed(
            _send(to=RECIPIENT, nonce="3", gas="21000", gas_price="1", chain_id="1")
        )
        assert node.methods == ["eth_sendRawTransaction"]

    @pytest.mark.asyncio
    async def test_invalid_hash_from_node(
        self, pipeline: TransactionPipeline, node: FakeTransport
    ) -> None:
        node.responses["eth_sendRawTransaction"] = "0x1234"
        with pytest.raises(TransportError, match="invalid transaction hash"):
            await pipeline.send_signed(_send(to=RECIPIENT))

    @pytest.mark.asyncio
    async def test_same_sender_not_interleaved(
        self, gateway: RpcGateway, resolver: IdentifierResolver, signer: LocalSigner
    ) -> None:
        class YieldingTransport(FakeTransport):
            async def send(self, envelope: dict[str, Any]) -> Any:
                await asyncio.sleep(0)
                return await super().send(envelope)

        node = YieldingTransport(
            {
                "eth_getTransactionCount": "0x0",
                "eth_estimateGas": "0x5208",
                "eth_gasPrice": "0x1",
                "eth_chainId": "0x1",
                "eth_sendRawTransaction": _hash_of_raw,
            }
        )
        pipeline = TransactionPipeline(RpcGateway(node), resolver, signer)

        await asyncio.gather(
            pipeline.send_signed(_send(to=RECIPIENT)),
            pipeline.send_signed(_send(to=RECIPIENT)),
        )

        one = FILL_METHODS + ["eth_sendRawTransaction"]
        assert node.methods == one + one


class TestSignOnly:
    @pytest.mark.asyncio
    async def test_fills_and_signs_without_submitting(
        self, pipeline: TransactionPipeline, node: FakeTransport
    ) -> None:
        result = await pipeline.sign_only(
            Command("utils", "sign", {"tx": True, "to": RECIPIENT, "value": "1000"})
        )

        assert node.methods == FILL_METHODS
        assert result["from"] == TEST_ADDRESS
        assert Account.recover_transaction(result["raw"]) == TEST_ADDRESS
        assert result["transactionHash"] == to_hex(keccak(hexstr=result["raw"]))

    @pytest.mark.asyncio
    async def test_no_key_fails_before_any_call(
        self, unsigned_pipeline: TransactionPipeline, node: FakeTransport
    ) -> None:
        with pytest.raises(SigningError, match="No private key"):
            await unsigned_pipeline.sign_only(Command("utils", "sign", {"to": RECIPIENT}))
        assert node.requests == []


class TestWait:
    @pytest.mark.asyncio
    async def test_confirmed(
        self, pipeline: TransactionPipeline, node: FakeTransport, sample_receipt: dict[str, Any]
    ) -> None:
        node.responses["eth_getTransactionReceipt"] = sequence(None, None, sample_receipt)
        result = await pipeline.send_signed(_send(to=RECIPIENT, wait=True))
        assert result.stage is TxStage.CONFIRMED
        assert result.receipt == sample_receipt
        assert node.methods.count("eth_getTransactionReceipt") == 3

    @pytest.mark.asyncio
    async def test_reverted_is_errored(
        self, pipeline: TransactionPipeline, node: FakeTransport, sample_receipt: dict[str, Any]
    ) -> None:
        node.responses["eth_getTransactionReceipt"] = {**sample_receipt, "status": "0x0"}
        result = await pipeline.wait_for_receipt(TX_HASH)
        assert result.stage is TxStage.ERRORED

    @pytest.mark.asyncio
    async def test_malformed_status(
        self, pipeline: TransactionPipeline, node: FakeTransport, sample_receipt: dict[str, Any]
    ) -> None:
        node.responses["eth_getTransactionReceipt"] = {**sample_receipt, "status": "0xq"}
        with pytest.raises(TransportError, match="Malformed quantity"):
            await pipeline.wait_for_receipt(TX_HASH)

    @pytest.mark.asyncio
    async def test_receipt_without_status_is_confirmed(
        self, pipeline: TransactionPipeline, node: FakeTransport
    ) -> None:
        node.responses["eth_getTransactionReceipt"] = {"transactionHash": TX_HASH}
        result = await pipeline.wait_for_receipt(TX_HASH)
        assert result.stage is TxStage.CONFIRMED

    @pytest.mark.asyncio
    async def test_timeout_carries_hash(
        self, pipeline: TransactionPipeline, node: FakeTransport
    ) -> None:
        node.responses["eth_getTransactionReceipt"] = None
        with pytest.raises(ConfirmationTimeout) as exc_info:
            await pipeline.wait_for_receipt(TX_HASH)
        assert exc_info.value.transaction_hash == TX_HASH

    @pytest.mark.asyncio
    async def test_no_wait_does_not_poll(
        self, pipeline: TransactionPipeline, node: FakeTransport
    ) -> None:
        await pipeline.send_signed(_send(to=RECIPIENT))
        assert "eth_getTransactionReceipt" not in node.methods

    @pytest.mark.asyncio
    async def test_cancel_stops_polling(
        self,
        gateway: RpcGateway,
        resolver: IdentifierResolver,
        signer: LocalSigner,
        node: FakeTransport,
    ) -> None:
        pipeline = TransactionPipeline(
            gateway, resolver, signer, poll_interval=0.01, confirmation_timeout=60
        )
        node.responses["eth_getTransactionReceipt"] = None

        task = asyncio.create_task(pipeline.wait_for_receipt(TX_HASH))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert node.methods
        assert set(node.methods) == {"eth_getTransactionReceipt"}


class TestSendNodeSigned:
    @pytest.mark.asyncio
    async def test_submits_unsigned(
        self, unsigned_pipeline: TransactionPipeline, node: FakeTransport
    ) -> None:
        command = Command("transaction", "send-node", {"from": TEST_ADDRESS, "to": RECIPIENT, "value": "5"})
        result = await unsigned_pipeline.send_node_signed(command)

        assert node.methods == ["eth_sendTransaction"]
        assert node.params_of("eth_sendTransaction") == [
            {"from": TEST_ADDRESS, "to": RECIPIENT, "value": "0x5"}
        ]
        assert result.transaction_hash == TX_HASH

    @pytest.mark.asyncio
    async def test_resolves_ens_from(
        self, unsigned_pipeline: TransactionPipeline, node: FakeTransport
    ) -> None:
        node.responses["eth_call"] = ens_answer(VITALIK)
        command = Command(
            "transaction", "send-node", {"from": "vitalik.eth", "to": RECIPIENT}
        )
        await unsigned_pipeline.send_node_signed(command)

        assert node.methods == ["eth_call", "eth_sendTransaction"]
        assert node.params_of("eth_sendTransaction")[0]["from"] == VITALIK

    @pytest.mark.asyncio
    async def test_requires_from(
        self, unsigned_pipeline: TransactionPipeline, node: FakeTransport
    ) -> None:
        with pytest.raises(ValidationError, match="--from"):
            await unsigned_pipeline.send_node_signed(Command("transaction", "send-node", {"to": RECIPIENT}))
        assert node.requests == []


class TestSendRaw:
    @pytest.mark.asyncio
    async def test_submits_bytes(
        self, unsigned_pipeline: TransactionPipeline, node: FakeTransport
    ) -> None:
        node.responses["eth_sendRawTransaction"] = TX_HASH
        result = await unsigned_pipeline.send_raw(Command("transaction", "send-raw", {"raw": "0x02f870"}))
        assert node.params_of("eth_sendRawTransaction") == ["0x02f870"]
        assert result.to_dict() == {"transactionHash": TX_HASH, "stage": "submitted"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["0x", "02f870", "0xabc"])
    async def test_rejects_bad_bytes(
        self, unsigned_pipeline: TransactionPipeline, node: FakeTransport, raw: str
    ) -> None:
        with pytest.raises(ValidationError):
            await unsigned_pipeline.send_raw(Command("transaction", "send-raw", {"raw": raw}))
        assert node.requests == []
