# PATH: tokens/erc20.py
"""
tokens/erc20.py - ERC20 reads and native balance.

Amounts come back as display strings:
- get_balance(): native balance in ether, 18 fixed places ("0" for zero)
- get_balance_of() / get_total_supply(): token amount scaled by `decimals`
  (default 18), thousands separators, trailing zeros trimmed
"""

import asyncio
from typing import Optional

from core.constants import BLOCK_TAG_LATEST, ETHER_DECIMALS, Erc20, ErrorCode
from core.exceptions import UpstreamError
from core.formatting import (
    decode_hex_string,
    decode_uint256,
    format_token_amount,
    pad_address,
    wei_to_ether,
)
from core.logging import get_logger
from core.models import TokenInfo
from tokens.base import BlockParam, TokenAdapter

logger = get_logger(__name__)


def encode_balance_of(account_address: str) -> str:
    """Encode balanceOf(address)."""
    return f"{Erc20.BALANCE_OF.value}{pad_address(account_address)}"


class Erc20Adapter(TokenAdapter):
    """ERC20 token reads."""

    namespace = "erc20"

    async def get_balance(
        self,
        account_address: str,
        block: BlockParam = BLOCK_TAG_LATEST,
        timestamp: Optional[int] = None,
    ) -> str:
        """Native (ETH) balance of an account, in ether."""
        block_param = await self._block_param(block, timestamp)
        try:
            response = await self.provider.get_balance(account_address, block_param)
        except UpstreamError as e:
            logger.error(
                f"[erc20/getBalance] error: {e.message}",
                extra={"context": {"account": account_address}},
            )
            raise

        if not response.result:
            raise UpstreamError(
                "[erc20/getBalance] No result returned",
                code=ErrorCode.UPSTREAM_NO_RESULT,
                details={"account": account_address},
            )
        return wei_to_ether(response.result)

    async def get_balance_of(
        self,
        account_address: str,
        contract_address: str,
        decimals: int = ETHER_DECIMALS,
        block: BlockParam = BLOCK_TAG_LATEST,
        timestamp: Optional[int] = None,
    ) -> str:
        """Token balance of an account for an ERC20 contract."""
        result = await self._call(
            "getBalanceOf",
            contract_address,
            encode_balance_of(account_address),
            block,
            timestamp,
        )
        return format_token_amount(result, decimals)

    async def get_name(
        self,
        contract_address: str,
        block: BlockParam = BLOCK_TAG_LATEST,
        timestamp: Optional[int] = None,
    ) -> str:
        result = await self._call("getName", contract_address, Erc20.NAME.value, block, timestamp)
        return decode_hex_string(result)

    async def get_symbol(
        self,
        contract_address: str,
        block: BlockParam = BLOCK_TAG_LATEST,
        timestamp: Optional[int] = None,
    ) -> str:
        result = await self._call("getSymbol", contract_address, Erc20.SYMBOL.value, block, timestamp)
        return decode_hex_string(result)

    async def get_decimals(
        self,
        contract_address: str,
        block: BlockParam = BLOCK_TAG_LATEST,
        timestamp: Optional[int] = None,
    ) -> int:
        result = await self._call("getDecimals", contract_address, Erc20.DECIMALS.value, block, timestamp)
        return decode_uint256(result)

    async def get_total_supply(
        self,
        contract_address: str,
        decimals: int = ETHER_DECIMALS,
        block: BlockParam = BLOCK_TAG_LATEST,
        timestamp: Optional[int] = None,
    ) -> str:
        """Total supply of an ERC20 token, scaled by `decimals`."""
        result = await self._call(
            "getTotalSupply",
            contract_address,
            Erc20.TOTAL_SUPPLY.value,
            block,
            timestamp,
        )
        return format_token_amount(result, decimals)

    async def get_token_info(
        self,
        contract_address: str,
        block: BlockParam = BLOCK_TAG_LATEST,
        timestamp: Optional[int] = None,
    ) -> TokenInfo:
        """
        Name, symbol, decimals and total supply in one round of calls.

        total_supply is scaled by the token's own decimals. A timestamp is
        resolved once and every read uses that block.
        """
        block = await self._block_param(block, timestamp)
        name, symbol, decimals = await asyncio.gather(
            self.get_name(contract_address, block),
            self.get_symbol(contract_address, block),
            self.get_decimals(contract_address, block),
        )
        total_supply = await self.get_total_supply(contract_address, decimals=decimals, block=block)
        return TokenInfo(
            address=contract_address,
            name=name,
            symbol=symbol,
            total_supply=total_supply,
            decimals=decimals,
        )
