"""Configuration loader for the RPC-backed commands.

Settings come from three layers, highest priority first: explicit overrides
(CLI flags), ``BITCOIN_RPC_*``/``ORDPOOL_RPC_*`` environment variables and the
``rpc`` section of ``~/.ordpool.yaml``. The node is addressed either by a full
``url`` or by ``host``/``port``; whichever the highest layer names wins.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence, Tuple
from urllib.parse import urlparse

import yaml


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".ordpool.yaml"
DEFAULT_RPC_HOST = "127.0.0.1"
DEFAULT_RPC_PORT = 8332
ENV_PREFIXES = ("BITCOIN_RPC_", "ORDPOOL_RPC_")
SETTINGS = ("url", "host", "port", "user", "password")

Layer = Tuple[str, Mapping[str, Any]]


@dataclass(frozen=True)
class RPCConfig:
    """Credentials and URL of a Bitcoin Core compatible node."""

    user: str
    password: str
    url: str = f"http://{DEFAULT_RPC_HOST}:{DEFAULT_RPC_PORT}"


def _read_rpc_section(path: Path, *, required: bool) -> Mapping[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    section = loaded.get("rpc") if isinstance(loaded, dict) else None
    if section is None and isinstance(loaded, dict):
        return {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected {path} to contain an 'rpc' mapping")
    return section


def _env_layer(env: Mapping[str, str]) -> dict[str, str]:
    layer: dict[str, str] = {}
    for name in SETTINGS:
        for prefix in ENV_PREFIXES:
            value = env.get(prefix + name.upper())
            if value:
                layer[name] = value
                break
    return layer


def _lookup(layers: Sequence[Layer], name: str) -> Tuple[Any, str | None]:
    for source, layer in layers:
        value = layer.get(name)
        if value is not None:
            return value, source
    return None, None


def _checked_url(raw: str, source: str) -> str:
    parsed = urlparse(str(raw))
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ConfigurationError(f"Invalid RPC URL in {source}: {raw}")
    try:
        parsed.port
    except ValueError as exc:
        raise ConfigurationError(f"Invalid port in RPC URL from {source}: {raw}") from exc
    return str(raw).rstrip("/")


def _resolve_url(layers: Sequence[Layer]) -> str:
    for source, layer in layers:
        if layer.get("url"):
            return _checked_url(layer["url"], source)
        if layer.get("host") is not None or layer.get("port") is not None:
            break

    host, _ = _lookup(layers, "host")
    raw_port, port_source = _lookup(layers, "port")
    try:
        port = DEFAULT_RPC_PORT if raw_port is None else int(raw_port)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid port in {port_source}: {raw_port}") from exc
    return f"http://{host or DEFAULT_RPC_HOST}:{port}"


def load_rpc_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> RPCConfig:
    """Resolve RPC settings from overrides, environment and YAML, in that order."""

    env_map = os.environ if env is None else env
    path = Path(config_path).expanduser() if config_path is not None else DEFAULT_CONFIG_PATH

    layers: list[Layer] = [
        ("overrides", {key: value for key, value in (overrides or {}).items() if value is not None}),
        ("environment", _env_layer(env_map)),
        (str(path), _read_rpc_section(path, required=config_path is not None)),
    ]

    user, _ = _lookup(layers, "user")
    password, _ = _lookup(layers, "password")
    if not user or not password:
        raise ConfigurationError(
            "RPC credentials must be provided via BITCOIN_RPC_* environment variables or a config file"
        )

    return RPCConfig(user=str(user), password=str(password), url=_resolve_url(layers))
