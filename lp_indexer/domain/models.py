"""
Domain models for the position indexer.

These are the entity records held in the store. Liquidity and raw token
amounts are Python ints (uint256 range); USD values are Decimals.
Block timestamps are unix seconds as emitted by the ledger.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from lp_indexer.constants import BIGDECIMAL_ZERO, DEFAULT_INPUT_TOKEN_COUNT


class PositionStatus(str, Enum):
    """Position lifecycle status derived from liquidity and closure stamps."""
    NEVER_OPENED = "never_opened"
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class Token:
    """
    Read-only token metadata snapshot.

    `decimals` and `last_price_usd` may be unset when the resolver has not
    seen the token yet.
    """
    id: str
    symbol: Optional[str] = None
    decimals: Optional[int] = None
    last_price_usd: Optional[Decimal] = None


@dataclass
class Pool:
    """
    Liquidity pool aggregate.

    `input_tokens`, `total_liquidity` and `total_liquidity_usd` are read-only
    from the indexer's point of view; the three position counters are owned
    by the lifecycle engine.
    """
    id: str
    input_tokens: List[str] = field(default_factory=list)
    total_liquidity: int = 0
    total_liquidity_usd: Decimal = BIGDECIMAL_ZERO

    open_position_count: int = 0
    closed_position_count: int = 0
    position_count: int = 0


@dataclass
class Account:
    """Per-holder aggregate mirroring the pool counters."""
    id: str
    open_position_count: int = 0
    closed_position_count: int = 0
    position_count: int = 0


@dataclass
class Protocol:
    """Protocol-wide aggregate. Only open and cumulative counts at this scope."""
    id: str
    open_position_count: int = 0
    cumulative_position_count: int = 0


@dataclass(frozen=True)
class PositionMetadata:
    """Static description of a minted position NFT (what the manager contract reports)."""
    token_id: int
    pool: str
    tick_lower: Optional[int] = None
    tick_upper: Optional[int] = None


@dataclass
class Position:
    """
    Liquidity-provider position keyed by its NFT token id.

    Invariants:
        liquidity == 0            <=> position is closed (or never opened)
        hash_closed is not None   <=> closed since its last open
    """
    id: str
    token_id: int
    pool: str
    account: str

    tick_lower: Optional[int] = None
    tick_upper: Optional[int] = None

    liquidity: int = 0
    liquidity_usd: Decimal = BIGDECIMAL_ZERO

    cumulative_deposit_token_amounts: List[int] = field(
        default_factory=lambda: [0] * DEFAULT_INPUT_TOKEN_COUNT
    )
    cumulative_withdraw_token_amounts: List[int] = field(
        default_factory=lambda: [0] * DEFAULT_INPUT_TOKEN_COUNT
    )
    cumulative_deposit_usd: Decimal = BIGDECIMAL_ZERO
    cumulative_withdraw_usd: Decimal = BIGDECIMAL_ZERO

    deposit_count: int = 0
    withdraw_count: int = 0

    # Opening stamps (set once, at creation)
    hash_opened: Optional[str] = None
    block_number_opened: Optional[int] = None
    timestamp_opened: Optional[int] = None

    # Closing stamps (set on close, cleared on re-open)
    hash_closed: Optional[str] = None
    block_number_closed: Optional[int] = None
    timestamp_closed: Optional[int] = None

    @property
    def status(self) -> PositionStatus:
        if self.liquidity != 0:
            return PositionStatus.OPEN
        if self.hash_closed is not None:
            return PositionStatus.CLOSED
        return PositionStatus.NEVER_OPENED


@dataclass(frozen=True)
class PositionSnapshot:
    """
    Immutable point-in-time copy of a position after an event.

    Keyed by (position id, transaction hash, log index); append-only.
    """
    id: str
    position: str
    hash: str
    log_index: int
    block_number: int
    timestamp: int
    account: str
    pool: str
    liquidity: int
    liquidity_usd: Decimal
    cumulative_deposit_token_amounts: tuple
    cumulative_withdraw_token_amounts: tuple
    cumulative_deposit_usd: Decimal
    cumulative_withdraw_usd: Decimal
    deposit_count: int
    withdraw_count: int
