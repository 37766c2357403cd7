"""
tokens/base.py - Shared eth_call plumbing for token adapters.

Every token read goes through TokenAdapter._call():
- Optional historical lookup: a `timestamp` is resolved to a block number
- Empty results ("0x" or null) raise UpstreamError (NO_RESULT)
- Failures are logged with the "[namespace/method]" prefix and re-raised
"""

from typing import Optional

from core.constants import BLOCK_TAG_LATEST, ErrorCode
from core.exceptions import UpstreamError, ValidationError
from core.logging import get_logger
from chains.block_time import BlockTimeResolver
from chains.providers import RPCProvider

logger = get_logger(__name__)

BlockParam = int | str


class TokenAdapter:
    """Base class for ERC token adapters bound to one provider."""

    namespace = "token"

    def __init__(
        self,
        provider: RPCProvider,
        resolver: Optional[BlockTimeResolver] = None,
    ):
        self.provider = provider
        self.resolver = resolver

    async def _block_param(
        self,
        block: BlockParam,
        timestamp: Optional[int],
    ) -> BlockParam:
        if timestamp is None:
            return block
        if block != BLOCK_TAG_LATEST:
            raise ValidationError("Pass either block or timestamp, not both")
        if self.resolver is None:
            raise ValidationError(
                f"{self.namespace}: timestamp lookups need a BlockTimeResolver",
            )
        return await self.resolver.resolve_block_for_timestamp(timestamp)

    async def _call(
        self,
        method_name: str,
        contract_address: str,
        data: str,
        block: BlockParam = BLOCK_TAG_LATEST,
        timestamp: Optional[int] = None,
    ) -> str:
        """
        eth_call a contract and return the raw hex result.

        Raises:
            UpstreamError: If the call fails or returns no data
        """
        label = f"[{self.namespace}/{method_name}]"
        block_param = await self._block_param(block, timestamp)

        try:
            response = await self.provider.eth_call(contract_address, data, block_param)
        except UpstreamError as e:
            logger.error(
                f"{label} error: {e.message}",
                extra={"context": {"contract": contract_address, "code": e.code.value}},
            )
            raise

        result = response.result
        if not result or result == "0x":
            logger.error(
                f"{label} error: No result returned",
                extra={"context": {"contract": contract_address, "block": str(block_param)}},
            )
            raise UpstreamError(
                f"{label} No result returned",
                code=ErrorCode.UPSTREAM_NO_RESULT,
                details={"contract": contract_address, "block": str(block_param)},
            )
        return result
