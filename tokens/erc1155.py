# PATH: tokens/erc1155.py
"""
tokens/erc1155.py - ERC1155 (multi-token) reads.

balanceOfBatch(address[], uint256[]) layout:
    selector
    word 0: offset of accounts array (0x40)
    word 1: offset of ids array (0x40 + 32 * (n + 1))
    accounts: length word + n address words
    ids:      length word + n uint256 words
"""

from typing import List, Optional, Sequence

from core.constants import BLOCK_TAG_LATEST, Erc1155
from core.formatting import (
    HexOrInt,
    concat_addresses_and_ids,
    decode_uint256_array,
    encode_uint256,
    format_token_amount,
    pad_address,
)
from tokens.base import BlockParam, TokenAdapter

WORD_BYTES = 32
HEAD_BYTES = 2 * WORD_BYTES


def encode_balance_of(account_address: str, token_id: HexOrInt) -> str:
    return f"{Erc1155.BALANCE_OF.value}{pad_address(account_address)}{encode_uint256(token_id)}"


def encode_balance_of_batch(
    account_addresses: Sequence[str],
    token_ids: Sequence[HexOrInt],
) -> str:
    """
    Encode balanceOfBatch(address[], uint256[]).

    Raises:
        ValidationError: If the sequences differ in length
    """
    addresses, ids = concat_addresses_and_ids(account_addresses, token_ids)
    count = len(account_addresses)
    ids_offset = HEAD_BYTES + WORD_BYTES * (count + 1)

    return "".join([
        Erc1155.BALANCE_OF_BATCH.value,
        encode_uint256(HEAD_BYTES),
        encode_uint256(ids_offset),
        encode_uint256(count),
        addresses,
        encode_uint256(count),
        ids,
    ])


class Erc1155Adapter(TokenAdapter):
    """ERC1155 token reads."""

    namespace = "erc1155"

    async def get_balance_of(
        self,
        account_address: str,
        contract_address: str,
        token_id: HexOrInt,
        block: BlockParam = BLOCK_TAG_LATEST,
        timestamp: Optional[int] = None,
    ) -> str:
        """Balance of one token id held by an account."""
        result = await self._call(
            "getBalanceOf",
            contract_address,
            encode_balance_of(account_address, token_id),
            block,
            timestamp,
        )
        return format_token_amount(result, 0)

    async def get_balance_of_batch(
        self,
        account_addresses: Sequence[str],
        contract_address: str,
        token_ids: Sequence[HexOrInt],
        block: BlockParam = BLOCK_TAG_LATEST,
        timestamp: Optional[int] = None,
    ) -> List[str]:
        """Balances for (account[i], token_ids[i]) pairs, in input order."""
        result = await self._call(
            "getBalanceOfBatch",
            contract_address,
            encode_balance_of_batch(account_addresses, token_ids),
            block,
            timestamp,
        )
        return [format_token_amount(value, 0) for value in decode_uint256_array(result)]
