"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Any

import pytest

from ethcli.config import CliConfig, OutputMode
from ethcli.rpc import RpcGateway
from ethcli.services import CommandRouter, IdentifierResolver, TransactionPipeline
from ethcli.signing import LocalSigner
from tests.helpers import BLOCK_HASH, TEST_PRIVATE_KEY, TX_HASH, FakeTransport


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def gateway(transport: FakeTransport) -> RpcGateway:
    return RpcGateway(transport)


@pytest.fixture()
def resolver(gateway: RpcGateway) -> IdentifierResolver:
    return IdentifierResolver(gateway)


@pytest.fixture()
def signer() -> LocalSigner:
    return LocalSigner(TEST_PRIVATE_KEY)


@pytest.fixture()
def pipeline(
    gateway: RpcGateway, resolver: IdentifierResolver, signer: LocalSigner
) -> TransactionPipeline:
    return TransactionPipeline(
        gateway, resolver, signer, poll_interval=0.01, confirmation_timeout=0.05
    )


@pytest.fixture()
def unsigned_pipeline(
    gateway: RpcGateway, resolver: IdentifierResolver
) -> TransactionPipeline:
    return TransactionPipeline(
        gateway, resolver, None, poll_interval=0.01, confirmation_timeout=0.05
    )


@pytest.fixture()
def router(
    gateway: RpcGateway, resolver: IdentifierResolver, pipeline: TransactionPipeline
) -> CommandRouter:
    return CommandRouter(gateway, resolver, pipeline)


@pytest.fixture()
def keyless_router(
    gateway: RpcGateway,
    resolver: IdentifierResolver,
    unsigned_pipeline: TransactionPipeline,
) -> CommandRouter:
    return CommandRouter(gateway, resolver, unsigned_pipeline)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_config() -> CliConfig:
    return CliConfig(
        rpc_url="http://localhost:8545",
        private_key=TEST_PRIVATE_KEY,
        output_mode=OutputMode.CONSOLE,
        poll_interval=0.01,
        confirmation_timeout=1,
    )


SAMPLE_YAML = textwrap.dedent("""\
    priv_key: "${TEST_ETHCLI_KEY}"
    rpc_url: "https://eth-mainnet.g.alchemy.com/v2/someapikey"
    out: json
    file: out/result.json
    rpc_timeout: 10
    chain_id: 1
""")

SAMPLE_JSON = textwrap.dedent("""\
    {
      "priv_key": "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80",
      "rpc_url": "https://eth-mainnet.g.alchemy.com/v2/someapikey"
    }
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


@pytest.fixture()
def sample_json_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.json"
    cfg_file.write_text(SAMPLE_JSON)
    return cfg_file


# ---------------------------------------------------------------------------
# Sample chain data
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_block() -> dict[str, Any]:
    return {
        "number": "0x104a443",
        "hash": BLOCK_HASH,
        "transactions": [TX_HASH],
        "uncles": [],
    }


@pytest.fixture()
def sample_receipt() -> dict[str, Any]:
    return {
        "transactionHash": TX_HASH,
        "blockNumber": "0x104a443",
        "status": "0x1",
        "gasUsed": "0x5208",
    }
