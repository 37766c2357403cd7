# PATH: core/models.py
"""
Core data models for the EVM token client.

Block is produced only by the fetch collaborator and never mutated.
BlockRef pairs a requested timestamp with the block it resolved to.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Block:
    """Block height and UNIX-second timestamp."""

    number: int
    timestamp: int

    def __post_init__(self):
        if self.number < 0:
            raise ValueError(f"Block number must be >= 0, got {self.number}")

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class BlockRef:
    """Result of a timestamp lookup: requested timestamp and resolved block."""

    timestamp: int
    block: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class TokenInfo:
    """
    ERC20 metadata as returned by the token-info lookup.

    total_supply is already formatted (18 decimals, thousands separators).
    """

    address: str
    name: str
    symbol: str
    total_supply: str
    decimals: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
