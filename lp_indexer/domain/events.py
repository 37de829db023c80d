"""
Event schemas for position-manager events.

Events arrive already decoded. Each carries the ledger context of the
triggering log plus event-specific parameters.
"""
from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class EventContext:
    """Ledger context of a single emitted log."""
    transaction_hash: str
    block_number: int
    block_timestamp: int
    sender: str  # transaction.from
    log_index: int = 0

    @property
    def ordinal(self) -> Tuple[int, int]:
        """Position of the log in ledger order."""
        return (self.block_number, self.log_index)


@dataclass(frozen=True)
class IncreaseLiquidity:
    """Liquidity added to a position (including the initial mint)."""
    context: EventContext
    token_id: int
    liquidity: int
    amounts: Tuple[int, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class DecreaseLiquidity:
    """
    Liquidity removed from a position.

    `liquidity` is the signed delta applied by addition, so removals carry a
    negative value. Decoders that receive unsigned magnitudes negate them
    before building this event.
    """
    context: EventContext
    token_id: int
    liquidity: int
    amounts: Tuple[int, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Transfer:
    """Position NFT ownership transfer."""
    context: EventContext
    token_id: int
    from_address: str
    to_address: str
