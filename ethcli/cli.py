"""Command-line interface for the Ethereum JSON-RPC client."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Callable

from .config import ConfigOverrides, OutputMode, load_config
from .errors import EXIT_OK, EthCliError, ValidationError
from .interfaces.renderer import Renderer
from .logging_setup import configure_logging
from .models import BlockTag, Command
from .output import ConsoleRenderer, JsonRenderer, build_renderer
from .services import EthClient
from .services.router import RESOURCES, actions_for

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130
_GLOBAL_DESTS = {
    "priv_key",
    "rpc_url",
    "out",
    "file",
    "config_file",
    "log_level",
    "resource",
    "action",
}
_TAGS = [tag.value for tag in BlockTag]

ArgAdder = Callable[[argparse.ArgumentParser], None]


# ---------------------------------------------------------------------------
# Argument groups
# ---------------------------------------------------------------------------


def _block_id_args(
    parser: argparse.ArgumentParser, prefix: str = "", hash_allowed: bool = True
) -> None:
    flag = f"--{prefix}" if prefix else "--"
    if hash_allowed:
        parser.add_argument(
            f"{flag}hash", metavar="BLOCK_HASH", help="Hash of the target block"
        )
    parser.add_argument(
        f"{flag}number",
        type=int,
        metavar="BLOCK_NUMBER",
        help="Number of the target block",
    )
    parser.add_argument(
        f"{flag}tag",
        choices=_TAGS,
        metavar="BLOCK_TAG",
        help=f"Tag of the target block ({', '.join(_TAGS)})",
    )


def _account_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--address", help="Ethereum address for the account")
    parser.add_argument("--ens", help="ENS name for the account")


def _tx_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--from", dest="from", help="Address or ENS name the transaction is sent from"
    )
    parser.add_argument("--to", help="Address the transaction is sent to")
    parser.add_argument("--ens-to", help="ENS name of the receiving account")
    parser.add_argument("--value", help="Amount of wei to send (decimal or 0x-hex)")
    parser.add_argument("--data", help="Calldata as 0x-prefixed hex")
    parser.add_argument("--gas", help="Gas limit")
    parser.add_argument("--gas-price", help="Legacy gas price in wei")
    parser.add_argument("--max-fee-per-gas", help="EIP-1559 max fee per gas in wei")
    parser.add_argument(
        "--max-priority-fee-per-gas", help="EIP-1559 priority fee per gas in wei"
    )
    parser.add_argument("--nonce", help="Transaction nonce")
    parser.add_argument("--chain-id", help="Chain id used for signing")


def _wait_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--wait", action="store_true", help="Wait for the transaction receipt"
    )


def _block_ref_args(parser: argparse.ArgumentParser) -> None:
    _block_id_args(parser, prefix="block-")


def _block_number_args(parser: argparse.ArgumentParser) -> None:
    _block_id_args(parser, prefix="block-", hash_allowed=False)


def _sign_args(parser: argparse.ArgumentParser) -> None:
    _tx_args(parser)
    parser.add_argument(
        "--tx",
        action="store_true",
        help="Sign a transaction built from the flags instead of --data as a message",
    )


_ACTION_ARGS: dict[tuple[str, str], tuple[ArgAdder, ...]] = {
    ("block", "get"): (
        lambda p: p.add_argument(
            "--include-tx", action="store_true", help="Include full transactions"
        ),
    ),
    ("account", "storage"): (
        lambda p: p.add_argument("--slot", help="Storage slot (decimal or 0x-hex)"),
    ),
    ("transaction", "get"): (
        _block_ref_args,
        lambda p: p.add_argument(
            "--index", help="Index of the transaction in the block"
        ),
    ),
    ("transaction", "call"): (_tx_args, _block_ref_args),
    ("transaction", "send"): (_tx_args, _wait_args),
    ("transaction", "send-node"): (_tx_args, _wait_args),
    ("transaction", "send-raw"): (
        lambda p: p.add_argument("--raw", help="Signed transaction bytes as 0x-hex"),
        _wait_args,
    ),
    ("gas", "estimate"): (_tx_args, _block_number_args),
    ("gas", "history"): (
        lambda p: p.add_argument(
            "--count", help="Number of blocks in the requested range"
        ),
        _block_number_args,
        lambda p: p.add_argument(
            "--percentiles",
            nargs="*",
            type=float,
            default=[],
            help="Increasing reward percentiles",
        ),
    ),
    ("utils", "proof"): (
        _account_args,
        lambda p: p.add_argument(
            "--storage-keys", nargs="*", default=[], help="Storage keys to prove"
        ),
        _block_ref_args,
    ),
    ("utils", "resolve"): (
        lambda p: p.add_argument("--ens", help="ENS name to resolve"),
    ),
    ("utils", "sign"): (_sign_args,),
}

_RESOURCE_ARGS: dict[str, tuple[ArgAdder, ...]] = {
    "block": (_block_id_args,),
    "account": (_account_args, _block_ref_args),
    "transaction": (
        lambda p: p.add_argument("--hash", help="Hash of the target transaction"),
    ),
}

_RESOURCE_HELP = {
    "block": "Execute block related operations",
    "account": "Execute account related operations",
    "transaction": "Execute transaction related operations",
    "event": "Execute event related operations",
    "gas": "Execute gas related operations",
    "utils": "Collection of utils",
}


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="ethcli",
        description="Ethereum JSON-RPC command-line client",
    )
    parser.add_argument(
        "--priv-key", default=None, help="Private key used to sign transactions"
    )
    parser.add_argument("--rpc-url", default=None, help="JSON-RPC endpoint URL")
    parser.add_argument(
        "--out",
        default=None,
        choices=[mode.value for mode in OutputMode],
        help="Output mode (default: console)",
    )
    parser.add_argument("--file", default=None, help="Output file for --out json")
    parser.add_argument(
        "--config-file", default=None, help="Path to a JSON or YAML config file"
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    resources = parser.add_subparsers(dest="resource")
    for resource in RESOURCES:
        resource_parser = resources.add_parser(resource, help=_RESOURCE_HELP[resource])
        for add_args in _RESOURCE_ARGS.get(resource, ()):
            add_args(resource_parser)

        actions = resource_parser.add_subparsers(dest="action")
        for action, spec in actions_for(resource).items():
            action_parser = actions.add_parser(action, help=spec.description)
            for add_args in _ACTION_ARGS.get((resource, action), ()):
                add_args(action_parser)

    return parser


def command_from_args(args: argparse.Namespace) -> Command:
    """Turn parsed arguments into a Command (global flags excluded)."""
    values: dict[str, Any] = {
        key: value for key, value in vars(args).items() if key not in _GLOBAL_DESTS
    }
    return Command(resource=args.resource, action=args.action or "", args=values)


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command and return the process exit code."""
    configure_logging(args.log_level)

    try:
        config = load_config(
            ConfigOverrides(
                priv_key=args.priv_key,
                rpc_url=args.rpc_url,
                out=args.out,
                file=args.file,
                config_file=args.config_file,
            )
        )
    except (FileNotFoundError, ValueError) as e:
        # No config to build a renderer from; the file target may be the problem.
        fallback: Renderer = (
            JsonRenderer() if args.out == OutputMode.JSON.value else ConsoleRenderer()
        )
        fallback.render_error({"type": "ConfigError", "message": str(e)})
        return ValidationError.exit_code

    renderer = build_renderer(config)
    command = command_from_args(args)

    try:
        async with EthClient(config) as client:
            result = await client.run(command)
    except EthCliError as e:
        logger.debug("Command failed", exc_info=True)
        renderer.render_error(e.to_dict())
        return e.exit_code

    renderer.render(result)
    return EXIT_OK


def main(argv: list[str] | None = None) -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.resource:
        parser.print_help()
        sys.exit(ValidationError.exit_code)

    try:
        code = asyncio.run(_run(args))
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        code = EXIT_INTERRUPTED
    sys.exit(code)
