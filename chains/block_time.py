"""
chains/block_time.py - Timestamp -> block resolution.

Finds the last block mined at or before a UNIX timestamp using only a
"fetch block by number/tag" primitive, which costs a network round-trip.

SEARCH CONTRACT:
- Boundaries (block 1 and "latest") are fetched once per resolver
- T < first.timestamp   -> block 1
- T >= latest.timestamp -> latest.number
- Otherwise the answer B satisfies B.timestamp <= T < (B + 1).timestamp
- Every block identifier is fetched at most once per resolver
- A block is probed at most once per target timestamp

Probing is interpolation with a running seconds-per-block estimate,
refined from the two most recent probes. Each probe also narrows a
bracket (highest block known at or before T, lowest block known after T);
after two consecutive probes that fail to halve the bracket the next one
bisects it, so a call needs at most about 3 * log2(chain_length) probes.
"""

import asyncio
import functools
import math
from dataclasses import dataclass, field
from fractions import Fraction
from numbers import Real
from types import MappingProxyType
from typing import Mapping, Optional

from core.constants import (
    BLOCK_TAG_LATEST,
    DEFAULT_PROBE_MARGIN,
    FIRST_BLOCK_ALIAS,
    FIRST_BLOCK_NUMBER,
)
from core.exceptions import (
    EvmClientError,
    InsufficientChainDataError,
    MalformedResponseError,
    ResolutionTimeoutError,
    UpstreamError,
    ValidationError,
)
from core.logging import get_logger, log_resolution
from core.models import Block, BlockRef
from chains.block import BlockIdentifier, FetchBlock, parse_block

logger = get_logger(__name__)

BISECT_AFTER_SLOW_PROBES = 2


@dataclass
class ProbeHistory:
    """
    Probes issued while resolving one target timestamp.

    low: highest block known to be at or before the target
    high: lowest block known to be after the target
    head: chain head number when the search started
    """
    low: int
    high: int
    head: Optional[int] = None
    blocks: set[int] = field(default_factory=set)
    probes: int = 0
    slow_probes: int = 0  # consecutive probes that did not halve the bracket

    def __post_init__(self) -> None:
        if self.head is None:
            self.head = self.high

    @property
    def width(self) -> int:
        return self.high - self.low

    def record(self, block: Block, target_timestamp: int) -> None:
        if block.timestamp <= target_timestamp:
            self.low = max(self.low, block.number)
        else:
            self.high = min(self.high, block.number)

    def nearest_unprobed(self, lower: int, upper: int, around: int) -> Optional[int]:
        """Closest block to `around` within [lower, upper] not probed yet."""
        origin = min(max(around, lower), upper)
        for distance in range(upper - lower + 1):
            for number in (origin - distance, origin + distance):
                if lower <= number <= upper and number not in self.blocks:
                    return number
        return None


def _cache_key(identifier: BlockIdentifier) -> str:
    if isinstance(identifier, bool):
        raise ValidationError(f"Invalid block identifier: {identifier!r}")
    if isinstance(identifier, int):
        return str(identifier)
    key = str(identifier).strip()
    return str(int(key)) if key.isdigit() else key


def _as_target(timestamp: Real) -> int:
    if isinstance(timestamp, bool) or not isinstance(timestamp, Real):
        raise ValidationError(
            f"Timestamp must be a number, got {type(timestamp).__name__}",
            details={"timestamp": repr(timestamp)},
        )
    if not math.isfinite(timestamp):
        raise ValidationError(f"Timestamp must be finite, got {timestamp!r}")
    if timestamp < 0:
        raise ValidationError(f"Timestamp must not be negative, got {timestamp!r}")
    return math.floor(timestamp)


def _forget(pending: dict, key, future: asyncio.Future) -> None:
    if pending.get(key) is future:
        del pending[key]


class BlockTimeResolver:
    """
    Resolves UNIX timestamps to block numbers for one chain.

    Holds the session state: block cache, per-timestamp probe history,
    chain boundaries and the average block interval. Safe to share between
    concurrent tasks on one event loop.

    Args:
        fetch_block: Awaitable callable returning a Block (or an
            eth_getBlockByNumber-style mapping) for a number or "latest"
        probe_margin: Probes allowed on top of 3 * ceil(log2(chain_length))
        max_probes: Fixed probe ceiling, overrides the derived one
    """

    def __init__(
        self,
        fetch_block: FetchBlock,
        probe_margin: int = DEFAULT_PROBE_MARGIN,
        max_probes: Optional[int] = None,
    ):
        self._fetch_block = fetch_block
        self._probe_margin = probe_margin
        self._max_probes = max_probes

        self._cached_blocks: dict[str, Block] = {}
        self._pending_fetches: dict[str, asyncio.Future] = {}
        self._pending_resolutions: dict[int, asyncio.Future] = {}
        self._probe_history: dict[int, ProbeHistory] = {}
        self._boundary_lock = asyncio.Lock()

        self._first_block: Optional[Block] = None
        self._latest_block: Optional[Block] = None
        self._average_block_interval: Optional[Fraction] = None
        self._request_count = 0

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------

    @property
    def first_block(self) -> Optional[Block]:
        return self._first_block

    @property
    def latest_block(self) -> Optional[Block]:
        return self._latest_block

    @property
    def average_block_interval(self) -> Optional[Fraction]:
        """Seconds per block, exact. None until boundaries are known."""
        return self._average_block_interval

    @property
    def request_count(self) -> int:
        """Fetches issued to the collaborator so far."""
        return self._request_count

    @property
    def cached_blocks(self) -> Mapping[str, Block]:
        return MappingProxyType(self._cached_blocks)

    @property
    def probe_history(self) -> Mapping[int, ProbeHistory]:
        """Probe records of resolutions still in progress."""
        return MappingProxyType(self._probe_history)

    # -------------------------------------------------------------------------
    # Block cache
    # -------------------------------------------------------------------------

    async def get_or_fetch(self, identifier: BlockIdentifier) -> Block:
        """
        Return a block from cache, fetching it once if missing.

        Concurrent callers for the same missing identifier share one fetch.

        Raises:
            UpstreamError: If the fetch collaborator fails
            MalformedResponseError: If it returns something that is not a block
        """
        key = _cache_key(identifier)
        cached = self._cached_blocks.get(key)
        if cached is not None:
            return cached

        pending = self._pending_fetches.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch(identifier, key))
            self._pending_fetches[key] = pending
            pending.add_done_callback(functools.partial(_forget, self._pending_fetches, key))
        return await asyncio.shield(pending)

    async def _fetch(self, identifier: BlockIdentifier, key: str) -> Block:
        self._request_count += 1
        try:
            payload = await self._fetch_block(identifier)
        except EvmClientError:
            raise
        except Exception as e:
            raise UpstreamError(
                f"Block fetch failed for {identifier}: {e}",
                details={"identifier": str(identifier)},
            ) from e

        block = parse_block(payload)
        if key.isdigit() and block.number != int(key):
            raise MalformedResponseError(
                f"Requested block {key}, got block {block.number}",
                details={"identifier": key, "number": block.number},
            )

        self._cached_blocks[key] = block
        self._cached_blocks.setdefault(str(block.number), block)
        if block.number == FIRST_BLOCK_NUMBER:
            self._cached_blocks.setdefault(FIRST_BLOCK_ALIAS, block)
        return block

    # -------------------------------------------------------------------------
    # Boundaries
    # -------------------------------------------------------------------------

    async def ensure_boundaries(self) -> None:
        """
        Populate first/latest blocks and the initial average interval.

        Raises:
            InsufficientChainDataError: If the chain head is at block 1 or below
        """
        async with self._boundary_lock:
            if self._latest_block is None:
                self._latest_block = await self.get_or_fetch(BLOCK_TAG_LATEST)
            latest = self._latest_block

            if self._first_block is None:
                if latest.number >= FIRST_BLOCK_NUMBER:
                    self._first_block = await self.get_or_fetch(FIRST_BLOCK_NUMBER)
                else:
                    self._first_block = latest
            first = self._first_block

            if latest.number <= FIRST_BLOCK_NUMBER:
                raise InsufficientChainDataError(
                    f"Chain head is block {latest.number}, need at least 2 blocks",
                    details={"latest_block": latest.number},
                )

            if self._average_block_interval is None:
                elapsed = latest.timestamp - first.timestamp
                if elapsed > 0:
                    self._average_block_interval = Fraction(
                        elapsed, latest.number - FIRST_BLOCK_NUMBER
                    )

    async def refresh_latest(self) -> Block:
        """
        Re-read the chain head. The refined interval estimate is kept.

        The new head replaces the old one in a single assignment; searches
        already running keep the head they started with.
        """
        async with self._boundary_lock:
            self._cached_blocks.pop(BLOCK_TAG_LATEST, None)
            self._pending_fetches.pop(BLOCK_TAG_LATEST, None)
            self._latest_block = await self.get_or_fetch(BLOCK_TAG_LATEST)
        try:
            await self.ensure_boundaries()
        except InsufficientChainDataError as e:
            logger.warning(str(e), extra={"context": e.details})
        return self._latest_block  # type: ignore[return-value]

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def next_probe(self, target_timestamp: int, current_block: int, skip: int) -> int:
        """
        Choose the next block number to probe for a target.

        current_block + skip, clamped to the chain and to the open bracket
        of the target's probe record. Already-probed candidates push the
        skip further from zero; an exhausted direction falls back to the
        nearest unprobed block. The chosen block is registered.
        """
        history = self._probe_history.get(target_timestamp)
        if history is None:
            if self._latest_block is None:
                raise InsufficientChainDataError("Chain boundaries are not known yet")
            history = ProbeHistory(low=FIRST_BLOCK_NUMBER, high=self._latest_block.number)
            self._probe_history[target_timestamp] = history

        lower = max(history.low + 1, FIRST_BLOCK_NUMBER)
        upper = min(history.high - 1, history.head)
        if lower > upper:
            raise ResolutionTimeoutError(
                f"No blocks left to probe for timestamp {target_timestamp}",
                details={"low": history.low, "high": history.high},
            )

        step = skip
        while True:
            candidate = min(max(current_block + step, lower), upper)
            if candidate not in history.blocks:
                break
            bound = upper if step >= 0 else lower
            if candidate == bound:
                candidate = history.nearest_unprobed(lower, upper, current_block)
                if candidate is None:
                    raise ResolutionTimeoutError(
                        f"No blocks left to probe for timestamp {target_timestamp}",
                        details={"low": history.low, "high": history.high},
                    )
                break
            step += 1 if step >= 0 else -1

        history.blocks.add(candidate)
        return max(candidate, FIRST_BLOCK_NUMBER)

    async def is_optimal_block(self, target_timestamp: int, block: Block) -> bool:
        """
        True if `block` is the last block at or before the target.

        Costs one (cached) fetch of the successor block.
        """
        if block.timestamp > target_timestamp:
            return False

        history = self._probe_history.get(target_timestamp)
        if history is not None:
            head = history.head
        elif self._latest_block is not None:
            head = self._latest_block.number
        else:
            head = None
        if head is not None and block.number >= head:
            return True

        successor = await self.get_or_fetch(block.number + 1)
        self._record(target_timestamp, successor)
        return successor.timestamp > target_timestamp

    def _record(self, target_timestamp: int, block: Block) -> None:
        history = self._probe_history.get(target_timestamp)
        if history is not None:
            history.record(block, target_timestamp)

    async def _probe(self, target_timestamp: int, number: int) -> Block:
        history = self._probe_history[target_timestamp]
        width = history.width

        block = await self.get_or_fetch(number)
        history.probes += 1
        history.record(block, target_timestamp)
        if history.width * 2 > width:
            history.slow_probes += 1
        else:
            history.slow_probes = 0

        logger.debug(
            f"Probe {history.probes} for {target_timestamp}: block {block.number} @ {block.timestamp}",
            extra={"context": {"low": history.low, "high": history.high}},
        )
        return block

    def _skip(self, target_timestamp: int, candidate: Block, history: ProbeHistory) -> int:
        if history.slow_probes >= BISECT_AFTER_SLOW_PROBES:
            return (history.low + history.high) // 2 - candidate.number

        difference = target_timestamp - candidate.timestamp
        interval = self._average_block_interval
        skip = math.ceil(difference / interval) if interval else 0
        if skip == 0:
            skip = -1 if difference < 0 else 1
        return skip

    def _update_interval(self, previous: Block, current: Block) -> None:
        blocks = abs(previous.number - current.number)
        seconds = abs(previous.timestamp - current.timestamp)
        if blocks and seconds:
            self._average_block_interval = Fraction(seconds, blocks)

    def _probe_ceiling(self, head: int) -> int:
        if self._max_probes is not None:
            return self._max_probes
        chain_length = max(2, head - self._first_block.number + 1)
        return (BISECT_AFTER_SLOW_PROBES + 1) * math.ceil(math.log2(chain_length)) + self._probe_margin

    def _initial_guess(self, target_timestamp: int) -> int:
        interval = self._average_block_interval
        if not interval:
            return FIRST_BLOCK_NUMBER + 1
        return math.ceil((target_timestamp - self._first_block.timestamp) / interval)

    async def resolve_block_for_timestamp(self, timestamp: Real) -> int:
        """
        Resolve a UNIX timestamp to the last block mined at or before it.

        Concurrent calls for the same timestamp share one search.

        Raises:
            ValidationError: If timestamp is not a number
            UpstreamError: If any block fetch fails
            ResolutionTimeoutError: If the probe ceiling is exceeded
        """
        target = _as_target(timestamp)

        pending = self._pending_resolutions.get(target)
        if pending is None:
            pending = asyncio.ensure_future(self._resolve(target))
            self._pending_resolutions[target] = pending
            pending.add_done_callback(functools.partial(_forget, self._pending_resolutions, target))
        return await asyncio.shield(pending)

    async def get_block_from_timestamp(self, timestamp: Real) -> BlockRef:
        """Resolve a timestamp and pair it with the block number."""
        block = await self.resolve_block_for_timestamp(timestamp)
        return BlockRef(timestamp=_as_target(timestamp), block=block)

    async def _resolve(self, target: int) -> int:
        if (
            self._first_block is None
            or self._latest_block is None
            or self._average_block_interval is None
        ):
            try:
                await self.ensure_boundaries()
            except InsufficientChainDataError as e:
                logger.warning(
                    f"{e.message}; falling back to single-block steps",
                    extra={"context": e.details},
                )

        first, latest = self._first_block, self._latest_block

        if target < first.timestamp:
            return FIRST_BLOCK_NUMBER
        if target >= latest.timestamp:
            return latest.number

        self._probe_history[target] = history = ProbeHistory(
            low=FIRST_BLOCK_NUMBER, high=latest.number, head=latest.number
        )
        requests_before = self._request_count
        try:
            result = await self._search(target, history)
        finally:
            self._probe_history.pop(target, None)

        log_resolution(
            logger,
            timestamp=target,
            block_number=result,
            probes=history.probes,
            requests=self._request_count - requests_before,
        )
        return result

    async def _search(self, target: int, history: ProbeHistory) -> int:
        ceiling = self._probe_ceiling(history.head)

        if history.width == 1:
            return history.low

        guess = self._initial_guess(target)
        candidate = await self._probe(target, self.next_probe(target, guess, 0))

        while True:
            if await self.is_optimal_block(target, candidate):
                return candidate.number
            if history.width == 1:
                return history.low

            if history.probes >= ceiling:
                raise ResolutionTimeoutError(
                    f"Probe ceiling {ceiling} reached for timestamp {target}",
                    details={
                        "timestamp": target,
                        "probes": history.probes,
                        "low": history.low,
                        "high": history.high,
                    },
                )

            skip = self._skip(target, candidate, history)
            following = await self._probe(
                target, self.next_probe(target, candidate.number, skip)
            )
            self._update_interval(candidate, following)
            candidate = following
