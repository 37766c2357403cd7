"""
tests/unit/test_tokens.py - ERC20 / ERC721 / ERC1155 adapter tests.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from core.constants import ErrorCode
from core.exceptions import UpstreamError, ValidationError
from core.models import TokenInfo
from tokens import Erc20Adapter, Erc721Adapter, Erc1155Adapter
from tokens.erc1155 import encode_balance_of_batch
from tokens.erc721 import encode_owner_of

ACCOUNT = "0x1111111111111111111111111111111111111111"
OTHER = "0x2222222222222222222222222222222222222222"
CONTRACT = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"


def word(value: int) -> str:
    return format(value, "x").zfill(64)


def abi_string(text: str) -> str:
    raw = text.encode("utf-8").hex()
    padded = raw.ljust(((len(raw) + 63) // 64) * 64, "0")
    return "0x" + word(32) + word(len(text.encode("utf-8"))) + padded


@pytest.fixture
def mock_provider():
    """Create mock RPC provider."""
    provider = MagicMock()
    provider.eth_call = AsyncMock()
    provider.get_balance = AsyncMock()
    return provider


def respond(provider, result):
    provider.eth_call.return_value = MagicMock(result=result, latency_ms=10)


class TestErc20:
    """Erc20Adapter."""

    @pytest.fixture
    def adapter(self, mock_provider):
        return Erc20Adapter(mock_provider)

    @pytest.mark.asyncio
    async def test_get_balance_native(self, adapter, mock_provider):
        mock_provider.get_balance.return_value = MagicMock(result="0xde0b6b3a7640000")

        assert await adapter.get_balance(ACCOUNT) == "1.000000000000000000"
        mock_provider.get_balance.assert_awaited_once_with(ACCOUNT, "latest")

    @pytest.mark.asyncio
    async def test_get_balance_zero(self, adapter, mock_provider):
        mock_provider.get_balance.return_value = MagicMock(result="0x0")

        assert await adapter.get_balance(ACCOUNT) == "0"

    @pytest.mark.asyncio
    async def test_get_balance_no_result(self, adapter, mock_provider):
        mock_provider.get_balance.return_value = MagicMock(result=None)

        with pytest.raises(UpstreamError) as exc_info:
            await adapter.get_balance(ACCOUNT)

        assert exc_info.value.code == ErrorCode.UPSTREAM_NO_RESULT

    @pytest.mark.asyncio
    async def test_get_balance_of_encodes_call(self, adapter, mock_provider):
        respond(mock_provider, "0x" + word(1500 * 10**18))

        assert await adapter.get_balance_of(ACCOUNT, CONTRACT) == "1,500"

        to, data, block = mock_provider.eth_call.await_args.args
        assert to == CONTRACT
        assert data == "0x70a08231" + "0" * 24 + ACCOUNT[2:]
        assert block == "latest"

    @pytest.mark.asyncio
    async def test_get_balance_of_custom_decimals(self, adapter, mock_provider):
        respond(mock_provider, "0x" + word(1_234_567))

        assert await adapter.get_balance_of(ACCOUNT, CONTRACT, decimals=6) == "1.234567"

    @pytest.mark.asyncio
    async def test_get_balance_of_at_block(self, adapter, mock_provider):
        respond(mock_provider, "0x" + word(0))

        assert await adapter.get_balance_of(ACCOUNT, CONTRACT, block=17_000_000) == "0"
        assert mock_provider.eth_call.await_args.args[2] == 17_000_000

    @pytest.mark.asyncio
    async def test_get_name_and_symbol(self, adapter, mock_provider):
        respond(mock_provider, abi_string("USD Coin"))
        assert await adapter.get_name(CONTRACT) == "USD Coin"
        assert mock_provider.eth_call.await_args.args[1] == "0x06fdde03"

        respond(mock_provider, abi_string("USDC"))
        assert await adapter.get_symbol(CONTRACT) == "USDC"
        assert mock_provider.eth_call.await_args.args[1] == "0x95d89b41"

    @pytest.mark.asyncio
    async def test_get_symbol_bytes32(self, adapter, mock_provider):
        respond(mock_provider, "0x" + b"MKR".hex().ljust(64, "0"))

        assert await adapter.get_symbol(CONTRACT) == "MKR"

    @pytest.mark.asyncio
    async def test_get_decimals(self, adapter, mock_provider):
        respond(mock_provider, "0x" + word(6))

        assert await adapter.get_decimals(CONTRACT) == 6

    @pytest.mark.asyncio
    async def test_get_total_supply(self, adapter, mock_provider):
        respond(mock_provider, "0x" + word(21_000_000 * 10**18 + 5 * 10**17))

        assert await adapter.get_total_supply(CONTRACT) == "21,000,000.5"
        assert mock_provider.eth_call.await_args.args[1] == "0x18160ddd"

    @pytest.mark.asyncio
    async def test_empty_result_raises(self, adapter, mock_provider):
        respond(mock_provider, "0x")

        with pytest.raises(UpstreamError) as exc_info:
            await adapter.get_name(CONTRACT)

        assert exc_info.value.code == ErrorCode.UPSTREAM_NO_RESULT
        assert "No result returned" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_upstream_error_reraised(self, adapter, mock_provider):
        mock_provider.eth_call.side_effect = UpstreamError("All RPC endpoints failed for eth_call")

        with pytest.raises(UpstreamError):
            await adapter.get_decimals(CONTRACT)

    @pytest.mark.asyncio
    async def test_invalid_account(self, adapter, mock_provider):
        with pytest.raises(ValidationError):
            await adapter.get_balance_of("not-an-address", CONTRACT)

        mock_provider.eth_call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_token_info(self, adapter, mock_provider):
        results = {
            "0x06fdde03": abi_string("USD Coin"),
            "0x95d89b41": abi_string("USDC"),
            "0x313ce567": "0x" + word(6),
            "0x18160ddd": "0x" + word(2_500_000 * 10**6),
        }

        async def eth_call(to, data, block):
            return MagicMock(result=results[data])

        mock_provider.eth_call.side_effect = eth_call

        info = await adapter.get_token_info(CONTRACT)

        assert info == TokenInfo(
            address=CONTRACT,
            name="USD Coin",
            symbol="USDC",
            total_supply="2,500,000",
            decimals=6,
        )


class TestTimestampReads:
    """Reads pinned to a UNIX timestamp."""

    @pytest.fixture
    def resolver(self):
        resolver = MagicMock()
        resolver.resolve_block_for_timestamp = AsyncMock(return_value=17_500_000)
        return resolver

    @pytest.mark.asyncio
    async def test_timestamp_resolved_to_block(self, mock_provider, resolver):
        adapter = Erc20Adapter(mock_provider, resolver)
        respond(mock_provider, "0x" + word(10**18))

        assert await adapter.get_balance_of(ACCOUNT, CONTRACT, timestamp=1_700_000_000) == "1"

        resolver.resolve_block_for_timestamp.assert_awaited_once_with(1_700_000_000)
        assert mock_provider.eth_call.await_args.args[2] == 17_500_000

    @pytest.mark.asyncio
    async def test_native_balance_at_timestamp(self, mock_provider, resolver):
        adapter = Erc20Adapter(mock_provider, resolver)
        mock_provider.get_balance.return_value = MagicMock(result="0x0")

        await adapter.get_balance(ACCOUNT, timestamp=1_700_000_000)

        mock_provider.get_balance.assert_awaited_once_with(ACCOUNT, 17_500_000)

    @pytest.mark.asyncio
    async def test_metadata_at_timestamp(self, mock_provider, resolver):
        adapter = Erc20Adapter(mock_provider, resolver)
        respond(mock_provider, abi_string("USDC"))

        assert await adapter.get_symbol(CONTRACT, timestamp=1_700_000_000) == "USDC"
        assert mock_provider.eth_call.await_args.args[2] == 17_500_000

    @pytest.mark.asyncio
    async def test_token_info_resolves_timestamp_once(self, mock_provider, resolver):
        adapter = Erc20Adapter(mock_provider, resolver)
        results = {
            "0x06fdde03": abi_string("USD Coin"),
            "0x95d89b41": abi_string("USDC"),
            "0x313ce567": "0x" + word(6),
            "0x18160ddd": "0x" + word(10**6),
        }
        blocks = []

        async def eth_call(to, data, block):
            blocks.append(block)
            return MagicMock(result=results[data])

        mock_provider.eth_call.side_effect = eth_call

        info = await adapter.get_token_info(CONTRACT, timestamp=1_700_000_000)

        assert info.total_supply == "1"
        assert blocks == [17_500_000] * 4
        resolver.resolve_block_for_timestamp.assert_awaited_once_with(1_700_000_000)

    @pytest.mark.asyncio
    async def test_token_uri_at_timestamp(self, mock_provider, resolver):
        adapter = Erc721Adapter(mock_provider, resolver)
        respond(mock_provider, abi_string("ipfs://bafy/42.json"))

        assert await adapter.get_token_uri(CONTRACT, 42, timestamp=1_700_000_000) == "ipfs://bafy/42.json"
        assert mock_provider.eth_call.await_args.args[2] == 17_500_000

    @pytest.mark.asyncio
    async def test_timestamp_without_resolver(self, mock_provider):
        adapter = Erc721Adapter(mock_provider)

        with pytest.raises(ValidationError):
            await adapter.get_owner_of(CONTRACT, 1, timestamp=1_700_000_000)

    @pytest.mark.asyncio
    async def test_block_and_timestamp_conflict(self, mock_provider, resolver):
        adapter = Erc20Adapter(mock_provider, resolver)

        with pytest.raises(ValidationError):
            await adapter.get_balance_of(ACCOUNT, CONTRACT, block=5, timestamp=1_700_000_000)

        resolver.resolve_block_for_timestamp.assert_not_awaited()


class TestErc721:
    """Erc721Adapter."""

    @pytest.fixture
    def adapter(self, mock_provider):
        return Erc721Adapter(mock_provider)

    def test_encode_owner_of_uses_token_id(self):
        assert encode_owner_of(6522) == "0x6352211e" + word(6522)
        assert encode_owner_of("0x197a") == encode_owner_of(6522)
        assert encode_owner_of("6522") == encode_owner_of(6522)

    @pytest.mark.asyncio
    async def test_get_balance_of(self, adapter, mock_provider):
        respond(mock_provider, "0x" + word(3))

        assert await adapter.get_balance_of(ACCOUNT, CONTRACT) == "3"

    @pytest.mark.asyncio
    async def test_get_owner_of(self, adapter, mock_provider):
        respond(mock_provider, "0x" + "0" * 24 + OTHER[2:])

        assert await adapter.get_owner_of(CONTRACT, 42) == OTHER
        assert mock_provider.eth_call.await_args.args[1] == "0x6352211e" + word(42)

    @pytest.mark.asyncio
    async def test_get_token_uri(self, adapter, mock_provider):
        respond(mock_provider, abi_string("ipfs://bafy/42.json"))

        assert await adapter.get_token_uri(CONTRACT, 42) == "ipfs://bafy/42.json"
        assert mock_provider.eth_call.await_args.args[1] == "0xc87b56dd" + word(42)

    @pytest.mark.asyncio
    async def test_invalid_token_id(self, adapter):
        with pytest.raises(ValidationError):
            await adapter.get_owner_of(CONTRACT, -1)


class TestErc1155:
    """Erc1155Adapter."""

    @pytest.fixture
    def adapter(self, mock_provider):
        return Erc1155Adapter(mock_provider)

    def test_encode_balance_of_batch_layout(self):
        data = encode_balance_of_batch([ACCOUNT, OTHER], [1, 2])
        words = [data[10 + i:10 + i + 64] for i in range(0, len(data) - 10, 64)]

        assert data.startswith("0x4e1273f4")
        assert words[0] == word(0x40)
        assert words[1] == word(0x40 + 32 * 3)
        assert words[2] == word(2)
        assert words[3].endswith(ACCOUNT[2:])
        assert words[4].endswith(OTHER[2:])
        assert words[5] == word(2)
        assert words[6:] == [word(1), word(2)]

    def test_encode_balance_of_batch_length_mismatch(self):
        with pytest.raises(ValidationError):
            encode_balance_of_batch([ACCOUNT], [1, 2])

    @pytest.mark.asyncio
    async def test_get_balance_of(self, adapter, mock_provider):
        respond(mock_provider, "0x" + word(12_000))

        assert await adapter.get_balance_of(ACCOUNT, CONTRACT, 7) == "12,000"
        data = mock_provider.eth_call.await_args.args[1]
        assert data == "0x00fdd58e" + "0" * 24 + ACCOUNT[2:] + word(7)

    @pytest.mark.asyncio
    async def test_get_balance_of_batch(self, adapter, mock_provider):
        respond(mock_provider, "0x" + word(32) + word(3) + word(5) + word(0) + word(1_000_000))

        balances = await adapter.get_balance_of_batch(
            [ACCOUNT, OTHER, ACCOUNT], CONTRACT, [1, 2, 3]
        )

        assert balances == ["5", "0", "1,000,000"]
