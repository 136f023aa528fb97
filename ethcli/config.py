"""Configuration loader: merges CLI flags over a config file over defaults."""
from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .quantity import is_address

logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "http://localhost:8545"
# ENS Universal Resolver on mainnet; answers resolve(name, calldata) in one call.
DEFAULT_ENS_RESOLVER = "0xce01f8eee7E479C928F8919abD53E553a36CeF67"


class OutputMode(str, Enum):
    CONSOLE = "console"
    JSON = "json"


# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CliConfig:
    rpc_url: str = DEFAULT_RPC_URL
    private_key: str | None = None
    output_mode: OutputMode = OutputMode.CONSOLE
    output_file: Path | None = None
    rpc_timeout: int = 30
    poll_interval: float = 2.0
    confirmation_timeout: int = 120
    chain_id: int | None = None
    ens_resolver: str = DEFAULT_ENS_RESOLVER

    def __repr__(self) -> str:
        key = "<set>" if self.private_key else None
        return (
            f"CliConfig(rpc_url={self.rpc_url!r}, private_key={key!r}, "
            f"output_mode={self.output_mode.value!r}, output_file={self.output_file!r})"
        )


@dataclass(frozen=True)
class ConfigOverrides:
    """Values supplied on the command line; ``None`` means not supplied."""

    priv_key: str | None = None
    rpc_url: str | None = None
    out: str | None = None
    file: str | None = None
    config_file: str | None = None


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# File reading
# ---------------------------------------------------------------------------


def _read_config_file(config_path: Path) -> dict[str, Any]:
    """Read a JSON or YAML config document into a dict."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        try:
            if config_path.suffix.lower() == ".json":
                raw = json.load(f)
            else:
                raw = yaml.safe_load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ValueError(f"Invalid config file {config_path}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")
    return raw


def _optional_int(raw: dict[str, Any], key: str) -> int | None:
    value = raw.get(key)
    if value in (None, ""):
        return None
    return int(value)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(overrides: ConfigOverrides | None = None) -> CliConfig:
    """Build the process-wide config.

    Precedence: CLI overrides, then the config file (if one was given),
    then defaults. ``${VAR}`` references in the file are expanded after
    ``.env`` has been loaded.
    """
    load_dotenv()
    overrides = overrides or ConfigOverrides()

    raw: dict[str, Any] = {}
    if overrides.config_file:
        config_path = Path(overrides.config_file)
        if not config_path.is_absolute():
            config_path = Path.cwd() / config_path
        raw = _interpolate_env(_read_config_file(config_path))
        logger.debug("Read config file %s", config_path)

    merged = dict(raw)
    for key in ("priv_key", "rpc_url", "out", "file"):
        value = getattr(overrides, key)
        if value is not None:
            merged[key] = value

    out = merged.get("out") or OutputMode.CONSOLE.value
    try:
        output_mode = OutputMode(out)
    except ValueError:
        raise ValueError(f"Unknown output mode '{out}'") from None

    output_file = merged.get("file")
    cfg = CliConfig(
        rpc_url=merged.get("rpc_url") or DEFAULT_RPC_URL,
        private_key=merged.get("priv_key") or None,
        output_mode=output_mode,
        output_file=Path(output_file) if output_file else None,
        rpc_timeout=int(merged.get("rpc_timeout", 30)),
        poll_interval=float(merged.get("poll_interval", 2.0)),
        confirmation_timeout=int(merged.get("confirmation_timeout", 120)),
        chain_id=_optional_int(merged, "chain_id"),
        ens_resolver=merged.get("ens_resolver") or DEFAULT_ENS_RESOLVER,
    )

    _validate(cfg)
    logger.debug("Configuration loaded: %r", cfg)
    return cfg


def _validate(cfg: CliConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.rpc_url.startswith(("http://", "https://")):
        raise ValueError(f"rpc_url must be an http(s) URL, got '{cfg.rpc_url}'")
    if cfg.output_file is not None and cfg.output_mode is not OutputMode.JSON:
        raise ValueError("An output file requires the json output mode")
    if cfg.rpc_timeout <= 0:
        raise ValueError("rpc_timeout must be positive")
    if cfg.poll_interval <= 0:
        raise ValueError("poll_interval must be positive")
    if cfg.confirmation_timeout <= 0:
        raise ValueError("confirmation_timeout must be positive")
    if not is_address(cfg.ens_resolver):
        raise ValueError(f"ens_resolver is not an address: '{cfg.ens_resolver}'")
