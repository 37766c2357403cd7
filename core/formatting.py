# PATH: core/formatting.py
"""
Hex, ABI-word and token-amount formatting for the EVM token client.

No float arithmetic: amounts go through int and Decimal only.

CONTRACTS:
- wei_to_ether(): "0x"-prefixed hex or int in, 18-place decimal string out ("0" for zero)
- format_token_amount(): thousands separators, trailing fractional zeros trimmed
- decode_hex_string(): ABI-encoded `string` return value -> str
- Invalid input raises ValidationError, never returns a silent default
"""

import re
from decimal import Decimal, localcontext
from typing import Any, Dict, List, Sequence, Tuple, Union

from core.constants import (
    BLOCK_TAGS,
    ETHER_DECIMALS,
    JSONRPC_VERSION,
    WORD_HEX_LENGTH,
)
from core.exceptions import ValidationError

HexOrInt = Union[str, int]

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")


# =============================================================================
# JSON-RPC PAYLOADS
# =============================================================================

def construct_eth_method_payload(
    params: Any,
    method: str,
    tag: str = "latest",
    request_id: int = 1,
) -> Dict[str, Any]:
    """
    Build the payload for calls such as eth_call or eth_getBalance.

    Args:
        params: Call object ({"to": ..., "data": ...}) or an address
        method: JSON-RPC method name
        tag: Block tag or hex block number the call is evaluated at
        request_id: JSON-RPC id

    Example:
        >>> construct_eth_method_payload("0xabc...", "eth_getBalance")
        {'jsonrpc': '2.0', 'method': 'eth_getBalance', 'params': ['0xabc...', 'latest'], 'id': 1}
    """
    return {
        "jsonrpc": JSONRPC_VERSION,
        "method": method,
        "params": [params, tag],
        "id": request_id,
    }


def to_block_param(block: HexOrInt) -> str:
    """
    Normalize a block identifier for RPC params.

    int -> hex quantity, decimal string -> hex quantity,
    tags ("latest", ...) and 0x-hex strings pass through.
    """
    if isinstance(block, bool):
        raise ValidationError(f"Invalid block identifier: {block!r}")
    if isinstance(block, int):
        if block < 0:
            raise ValidationError(f"Block number must be >= 0, got {block}")
        return hex(block)
    if isinstance(block, str):
        value = block.strip()
        if value in BLOCK_TAGS:
            return value
        if _HEX_RE.match(value) and len(value) > 2:
            return hex(int(value, 16))
        if value.isdigit():
            return hex(int(value))
    raise ValidationError(
        f"Invalid block identifier: {block!r}",
        details={"block": str(block)},
    )


# =============================================================================
# ABI WORDS
# =============================================================================

def strip_hex_prefix(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value


def pad_address(address: str) -> str:
    """Left-pad a 20-byte address to one 32-byte ABI word (no 0x)."""
    if not isinstance(address, str) or not _ADDRESS_RE.match(address):
        raise ValidationError(
            f"Invalid address: {address!r}",
            details={"address": str(address)},
        )
    return address[2:].lower().zfill(WORD_HEX_LENGTH)


def encode_uint256(value: HexOrInt) -> str:
    """
    Encode an unsigned integer as one ABI word (no 0x).

    Accepts int, decimal string ("6522") or hex string ("0x197a").
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid uint256: {value!r}")
    if isinstance(value, str):
        text = value.strip()
        try:
            number = int(text, 16) if text.startswith(("0x", "0X")) else int(text)
        except ValueError:
            raise ValidationError(f"Invalid uint256: {value!r}") from None
    elif isinstance(value, int):
        number = value
    else:
        raise ValidationError(f"Invalid uint256: {value!r}")

    if number < 0 or number >= 2**256:
        raise ValidationError(f"uint256 out of range: {value!r}")
    return format(number, "x").zfill(WORD_HEX_LENGTH)


def split_words(hex_data: str) -> List[str]:
    """Split ABI return data into 32-byte words."""
    data = strip_hex_prefix(hex_data)
    if len(data) % WORD_HEX_LENGTH != 0:
        raise ValidationError(
            f"ABI data length {len(data)} is not a multiple of {WORD_HEX_LENGTH}",
        )
    return [data[i:i + WORD_HEX_LENGTH] for i in range(0, len(data), WORD_HEX_LENGTH)]


def decode_uint256(hex_data: str) -> int:
    """Decode a single uint256 return value. "0x" decodes to 0."""
    data = strip_hex_prefix(hex_data)
    if not data:
        return 0
    try:
        return int(data[:WORD_HEX_LENGTH], 16)
    except ValueError:
        raise ValidationError(f"Invalid uint256 data: {hex_data!r}") from None


def decode_address(hex_data: str) -> str:
    """Decode an `address` return value (last 20 bytes of the first word)."""
    data = strip_hex_prefix(hex_data)
    if len(data) < WORD_HEX_LENGTH:
        raise ValidationError(f"Invalid address data: {hex_data!r}")
    return "0x" + data[WORD_HEX_LENGTH - 40:WORD_HEX_LENGTH].lower()


def decode_uint256_array(hex_data: str) -> List[int]:
    """Decode a single dynamic `uint256[]` return value."""
    words = split_words(hex_data)
    if len(words) < 2:
        raise ValidationError(f"Invalid uint256[] data: {hex_data!r}")

    offset = int(words[0], 16) // 32
    if offset >= len(words):
        raise ValidationError(f"uint256[] offset out of range: {offset}")
    length = int(words[offset], 16)
    items = words[offset + 1:offset + 1 + length]
    if len(items) != length:
        raise ValidationError(
            f"uint256[] truncated: expected {length} items, got {len(items)}",
        )
    return [int(word, 16) for word in items]


def concat_addresses_and_ids(
    account_addresses: Sequence[str],
    token_ids: Sequence[HexOrInt],
) -> Tuple[str, str]:
    """
    Concatenate padded addresses and padded token ids for batch calls.

    Returns:
        (addresses_hex, ids_hex), each a run of 32-byte words without 0x
    """
    if len(account_addresses) != len(token_ids):
        raise ValidationError(
            "Address and token id arrays must be of the same length",
            details={
                "addresses": len(account_addresses),
                "token_ids": len(token_ids),
            },
        )

    addresses = "".join(pad_address(address) for address in account_addresses)
    ids = "".join(encode_uint256(token_id) for token_id in token_ids)
    return addresses, ids


def clean_hex_string(hex_string: str) -> str:
    """
    Remove leading zeros from a hex quantity.

    Example:
        >>> clean_hex_string("0x000a")
        '0xa'
        >>> clean_hex_string("0x0000")
        '0x0'
    """
    if not isinstance(hex_string, str) or not hex_string.startswith("0x"):
        raise ValidationError(f"Invalid hex string format: {hex_string!r}")

    digits = hex_string[2:].lstrip("0")
    return f"0x{digits}" if digits else "0x0"


def decode_hex_string(hex_string: str) -> str:
    """
    Decode an ABI-encoded `string` return value.

    Layout: offset word, length word, UTF-8 bytes padded to 32.
    Legacy tokens returning a bare bytes32 (shorter than two words)
    are decoded as a null-padded string.
    """
    data = strip_hex_prefix(hex_string)
    try:
        if len(data) < 2 * WORD_HEX_LENGTH:
            raw = bytes.fromhex(data[:WORD_HEX_LENGTH])
        else:
            offset = int(data[:WORD_HEX_LENGTH], 16) * 2
            length = int(data[offset:offset + WORD_HEX_LENGTH], 16) * 2
            start = offset + WORD_HEX_LENGTH
            raw = bytes.fromhex(data[start:start + length])
    except ValueError:
        raise ValidationError(f"Invalid ABI string data: {hex_string[:80]!r}") from None

    return raw.replace(b"\x00", b"").decode("utf-8", errors="replace").strip()


# =============================================================================
# AMOUNTS
# =============================================================================

def _parse_quantity(value: Union[str, int], allow_decimal: bool) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text in ("0x", ""):
            return 0
        if text.startswith("0x"):
            try:
                return int(text, 16)
            except ValueError:
                raise ValidationError(f"Invalid hex quantity: {value!r}") from None
        if allow_decimal and text.isdigit():
            return int(text)
    raise ValidationError(f"Invalid quantity: {value!r}")


def wei_to_ether(wei_value: Union[str, int, bool]) -> str:
    """
    Convert a wei quantity to ether.

    Strings must be 0x-prefixed hex (as returned by the RPC).

    Example:
        >>> wei_to_ether("0xde0b6b3a7640000")
        '1.000000000000000000'
        >>> wei_to_ether("0x")
        '0'
    """
    value = _parse_quantity(wei_value, allow_decimal=False)
    if value == 0:
        return "0"

    with localcontext() as ctx:
        ctx.prec = 100
        ether = Decimal(value) / (Decimal(10) ** ETHER_DECIMALS)
        return f"{ether:.{ETHER_DECIMALS}f}"


def format_token_amount(token_amount: Union[str, int], decimals: int) -> str:
    """
    Scale a raw token amount by its decimals for display.

    Integer part gets thousands separators; trailing fractional
    zeros are trimmed.

    Example:
        >>> format_token_amount("0x3635c9adc5dea00000", 18)
        '1,000'
        >>> format_token_amount(1234567, 6)
        '1.234567'
    """
    if decimals < 0:
        raise ValidationError(f"decimals must be >= 0, got {decimals}")

    amount = _parse_quantity(token_amount, allow_decimal=True)
    if amount == 0:
        return "0"

    integer_part, fractional_part = divmod(amount, 10 ** decimals)
    formatted_integer = f"{integer_part:,}"

    if decimals == 0:
        return formatted_integer

    fraction = str(fractional_part).zfill(decimals).rstrip("0")
    return f"{formatted_integer}.{fraction}" if fraction else formatted_integer
