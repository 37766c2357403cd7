# PATH: tokens/erc721.py
"""
tokens/erc721.py - ERC721 (NFT) reads.
"""

from typing import Optional

from core.constants import BLOCK_TAG_LATEST, Erc721
from core.formatting import (
    HexOrInt,
    decode_address,
    decode_hex_string,
    encode_uint256,
    format_token_amount,
    pad_address,
)
from tokens.base import BlockParam, TokenAdapter


def encode_balance_of(account_address: str) -> str:
    return f"{Erc721.BALANCE_OF.value}{pad_address(account_address)}"


def encode_owner_of(token_id: HexOrInt) -> str:
    return f"{Erc721.OWNER_OF.value}{encode_uint256(token_id)}"


def encode_token_uri(token_id: HexOrInt) -> str:
    return f"{Erc721.TOKEN_URI.value}{encode_uint256(token_id)}"


class Erc721Adapter(TokenAdapter):
    """ERC721 token reads. Token ids accept int, decimal or 0x-hex strings."""

    namespace = "erc721"

    async def get_balance_of(
        self,
        account_address: str,
        contract_address: str,
        block: BlockParam = BLOCK_TAG_LATEST,
        timestamp: Optional[int] = None,
    ) -> str:
        """Number of tokens held by an account."""
        result = await self._call(
            "getBalanceOf",
            contract_address,
            encode_balance_of(account_address),
            block,
            timestamp,
        )
        return format_token_amount(result, 0)

    async def get_owner_of(
        self,
        contract_address: str,
        token_id: HexOrInt,
        block: BlockParam = BLOCK_TAG_LATEST,
        timestamp: Optional[int] = None,
    ) -> str:
        """Owner address (lowercase 0x-hex) of a token."""
        result = await self._call(
            "getOwnerOf",
            contract_address,
            encode_owner_of(token_id),
            block,
            timestamp,
        )
        return decode_address(result)

    async def get_token_uri(
        self,
        contract_address: str,
        token_id: HexOrInt,
        block: BlockParam = BLOCK_TAG_LATEST,
        timestamp: Optional[int] = None,
    ) -> str:
        """Metadata URI of a token."""
        result = await self._call(
            "getTokenUri",
            contract_address,
            encode_token_uri(token_id),
            block,
            timestamp,
        )
        return decode_hex_string(result)
