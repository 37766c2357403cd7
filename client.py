# PATH: client.py
"""
client.py - EVM token client facade.

Wires one RPCProvider to the token adapters and a BlockTimeResolver:

    async with create_client("https://rpc.example", api_key="...") as client:
        block = await client.block_time.resolve_block_for_timestamp(1700000000)
        balance = await client.erc20.get_balance_of(account, usdc, decimals=6,
                                                    timestamp=1700000000)
"""

from typing import Any, Dict, List, Optional

from core.constants import DEFAULT_PROBE_MARGIN, DEFAULT_TIMEOUT_SECONDS
from core.exceptions import ConfigError
from core.logging import get_logger
from chains.block import BlockFetcher
from chains.block_time import BlockTimeResolver
from chains.providers import RPCProvider
from config import ClientConfig
from tokens import Erc20Adapter, Erc721Adapter, Erc1155Adapter

logger = get_logger(__name__)


class EvmClient:
    """Token reads and timestamp resolution over one provider."""

    def __init__(
        self,
        provider: RPCProvider,
        probe_margin: int = DEFAULT_PROBE_MARGIN,
        max_probes: Optional[int] = None,
    ):
        self.provider = provider
        self.block_time = BlockTimeResolver(
            BlockFetcher(provider),
            probe_margin=probe_margin,
            max_probes=max_probes,
        )
        self.erc20 = Erc20Adapter(provider, self.block_time)
        self.erc721 = Erc721Adapter(provider, self.block_time)
        self.erc1155 = Erc1155Adapter(provider, self.block_time)

    async def close(self) -> None:
        await self.provider.close()

    async def __aenter__(self) -> "EvmClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


def create_client(
    endpoint: str,
    api_key: Optional[str] = None,
    additional_headers: Optional[Dict[str, str]] = None,
    fallback_endpoints: Optional[List[str]] = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    probe_margin: int = DEFAULT_PROBE_MARGIN,
    max_probes: Optional[int] = None,
    **provider_kwargs: Any,
) -> EvmClient:
    """
    Create a client bound to a JSON-RPC endpoint.

    Raises:
        ConfigError: If endpoint is empty
    """
    if not endpoint:
        raise ConfigError("An RPC endpoint is required")

    provider = RPCProvider(
        endpoint,
        api_key=api_key,
        additional_headers=additional_headers,
        fallback_endpoints=fallback_endpoints,
        timeout_seconds=timeout_seconds,
        **provider_kwargs,
    )
    logger.debug(
        "Client created",
        extra={"context": {"endpoint": endpoint, "fallbacks": len(fallback_endpoints or [])}},
    )
    return EvmClient(provider, probe_margin=probe_margin, max_probes=max_probes)


def create_client_from_config(config: ClientConfig, **provider_kwargs: Any) -> EvmClient:
    return create_client(
        config.endpoint,
        api_key=config.api_key,
        additional_headers=config.additional_headers,
        fallback_endpoints=config.fallback_endpoints,
        timeout_seconds=config.timeout_seconds,
        probe_margin=config.resolver.probe_margin,
        max_probes=config.resolver.max_probes,
        **provider_kwargs,
    )
