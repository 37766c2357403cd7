"""
chains/block.py - Block fetching and parsing.

Provides:
- parse_block(): strict payload -> Block conversion
- fetch_block(): eth_getBlockByNumber through an RPCProvider
- BlockFetcher: the fetch collaborator consumed by the block-time resolver
"""

from typing import Any, Awaitable, Callable, Mapping, Union

from core.constants import BLOCK_TAG_LATEST
from core.exceptions import EvmClientError, MalformedResponseError, UpstreamError
from core.logging import get_logger
from core.models import Block
from chains.providers import RPCProvider

logger = get_logger(__name__)

BlockIdentifier = Union[int, str]
FetchBlock = Callable[[BlockIdentifier], Awaitable[Block]]


def _parse_quantity(value: Any, field_name: str, payload: Mapping[str, Any]) -> int:
    if isinstance(value, bool):
        raise MalformedResponseError(
            f"Block {field_name} is not numeric: {value!r}",
            details={"field": field_name, "payload": dict(payload)},
        )
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if text.startswith(("0x", "0X")):
                return int(text, 16)
            return int(text)
        except ValueError:
            pass
    raise MalformedResponseError(
        f"Block {field_name} is not numeric: {value!r}",
        details={"field": field_name, "payload": dict(payload)},
    )


def parse_block(payload: Any) -> Block:
    """
    Convert an eth_getBlockByNumber result into a Block.

    Accepts hex quantities (as returned by nodes) and plain ints.

    Raises:
        MalformedResponseError: If number or timestamp is missing or not an integer
    """
    if isinstance(payload, Block):
        return payload
    if not isinstance(payload, Mapping):
        raise MalformedResponseError(
            f"Block payload is not an object: {type(payload).__name__}",
        )
    if "number" not in payload or "timestamp" not in payload:
        raise MalformedResponseError(
            "Block payload missing number or timestamp",
            details={"keys": sorted(payload.keys())},
        )

    number = _parse_quantity(payload["number"], "number", payload)
    timestamp = _parse_quantity(payload["timestamp"], "timestamp", payload)
    if number < 0:
        raise MalformedResponseError(
            f"Block number is negative: {number}",
            details={"payload": dict(payload)},
        )
    return Block(number=number, timestamp=timestamp)


async def fetch_block(
    provider: RPCProvider,
    identifier: BlockIdentifier = BLOCK_TAG_LATEST,
) -> Block:
    """
    Fetch a block header by number or tag.

    Args:
        provider: RPC provider instance
        identifier: Block number or "latest"

    Returns:
        Parsed Block

    Raises:
        UpstreamError: If the fetch fails
        MalformedResponseError: If the payload cannot be parsed
    """
    try:
        payload = await provider.get_block_by_number(identifier)
        block = parse_block(payload)

        logger.debug(f"Fetched block {block.number} (identifier={identifier})")
        return block

    except EvmClientError:
        raise
    except Exception as e:
        raise UpstreamError(
            f"Failed to fetch block {identifier}: {e}",
            details={"identifier": str(identifier)},
        ) from e


class BlockFetcher:
    """
    Fetch collaborator bound to one provider.

    Instances are awaitable callables: `await fetcher(identifier) -> Block`.
    """

    def __init__(self, provider: RPCProvider):
        self.provider = provider

    async def __call__(self, identifier: BlockIdentifier) -> Block:
        return await fetch_block(self.provider, identifier)
