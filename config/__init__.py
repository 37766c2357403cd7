# PATH: config/__init__.py
"""
Configuration loading for the EVM token client.

Defaults live in config/client.yaml; environment variables (optionally
from a .env file) override them:

    EVM_RPC_ENDPOINT          primary JSON-RPC endpoint
    EVM_RPC_API_KEY           bearer token sent with every request
    EVM_RPC_TIMEOUT_SECONDS   per-request timeout
    EVM_RPC_FALLBACKS         comma-separated fallback endpoints
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from core.constants import DEFAULT_PROBE_MARGIN, DEFAULT_TIMEOUT_SECONDS
from core.exceptions import ConfigError


CONFIG_DIR = Path(__file__).parent
CLIENT_CONFIG_FILE = "client.yaml"


@dataclass
class ResolverConfig:
    """Block-time resolver tuning."""
    probe_margin: int = DEFAULT_PROBE_MARGIN
    max_probes: Optional[int] = None


@dataclass
class ClientConfig:
    """Connection settings for one chain endpoint."""
    endpoint: str
    api_key: Optional[str] = None
    additional_headers: Dict[str, str] = field(default_factory=dict)
    fallback_endpoints: List[str] = field(default_factory=list)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    resolver: ResolverConfig = field(default_factory=ResolverConfig)


def load_yaml(filename: str) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        filename: Name of file in config directory

    Returns:
        Parsed YAML as dict
    """
    filepath = CONFIG_DIR / filename
    if not filepath.exists():
        raise FileNotFoundError(f"Config file not found: {filepath}")

    with open(filepath, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _read_config_file(path: Optional[Path]) -> Dict[str, Any]:
    if path is None:
        try:
            return load_yaml(CLIENT_CONFIG_FILE)
        except FileNotFoundError:
            return {}

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}", details={"path": str(path)})
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", details={"path": str(path)}) from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}", details={"path": str(path)})
    return data


def apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    if os.environ.get("EVM_RPC_ENDPOINT"):
        config["endpoint"] = os.environ["EVM_RPC_ENDPOINT"]
    if os.environ.get("EVM_RPC_API_KEY"):
        config["api_key"] = os.environ["EVM_RPC_API_KEY"]
    if os.environ.get("EVM_RPC_TIMEOUT_SECONDS"):
        try:
            config["timeout_seconds"] = float(os.environ["EVM_RPC_TIMEOUT_SECONDS"])
        except ValueError:
            raise ConfigError(
                f"EVM_RPC_TIMEOUT_SECONDS is not a number: {os.environ['EVM_RPC_TIMEOUT_SECONDS']!r}"
            ) from None
    if os.environ.get("EVM_RPC_FALLBACKS"):
        config["fallback_endpoints"] = [
            url.strip() for url in os.environ["EVM_RPC_FALLBACKS"].split(",") if url.strip()
        ]
    return config


def load_client_config(
    path: Optional[Path] = None,
    use_dotenv: bool = True,
    **overrides: Any,
) -> ClientConfig:
    """
    Build a ClientConfig from YAML, environment and explicit overrides.

    Precedence (highest first): overrides, environment, YAML file.
    Overrides whose value is None are ignored.

    Raises:
        ConfigError: If no endpoint is configured or the file is invalid
    """
    if use_dotenv:
        load_dotenv()

    raw = apply_env_overrides(dict(_read_config_file(path)))
    raw.update({key: value for key, value in overrides.items() if value is not None})

    endpoint = raw.get("endpoint")
    if not endpoint:
        raise ConfigError(
            "No RPC endpoint configured (set EVM_RPC_ENDPOINT or 'endpoint' in client.yaml)",
        )

    resolver_raw = raw.get("resolver") or {}
    if not isinstance(resolver_raw, dict):
        raise ConfigError("'resolver' section must be a mapping")

    try:
        return ClientConfig(
            endpoint=endpoint,
            api_key=raw.get("api_key") or None,
            additional_headers=dict(raw.get("additional_headers") or {}),
            fallback_endpoints=list(raw.get("fallback_endpoints") or []),
            timeout_seconds=float(raw.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
            resolver=ResolverConfig(
                probe_margin=int(resolver_raw.get("probe_margin", DEFAULT_PROBE_MARGIN)),
                max_probes=(
                    int(resolver_raw["max_probes"])
                    if resolver_raw.get("max_probes") is not None
                    else None
                ),
            ),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid client configuration: {e}") from e
