"""
Position lifecycle rule and counter maintenance.

State machine (per position):

    NEVER_OPENED → OPEN → CLOSED → OPEN → CLOSED → …

Transitions are decided by the liquidity crossing zero:

    FIRST_OPEN  increase, pre-event liquidity == 0, never closed before
    REOPEN      increase, pre-event liquidity == 0, hash_closed set
    CLOSE       decrease, post-event liquidity == 0
    NONE        anything else (counters untouched)

Open transitions look at the liquidity BEFORE the event is applied, the
close transition at the liquidity AFTER it. Pool, Account and Protocol
counters always move together for the same transition.
"""
from enum import Enum

from lp_indexer.constants import BIGINT_ZERO
from lp_indexer.domain.events import EventContext
from lp_indexer.domain.models import Account, Pool, Position, Protocol


class Transition(str, Enum):
    """Lifecycle transition caused by one liquidity event."""
    NONE = "none"
    FIRST_OPEN = "first_open"
    REOPEN = "reopen"
    CLOSE = "close"


def is_closed(position: Position) -> bool:
    return position.liquidity == BIGINT_ZERO


def is_reopened(position: Position) -> bool:
    """True when a zero-liquidity position has been closed before."""
    return position.hash_closed is not None


def open_transition(position: Position) -> Transition:
    """Transition for an increase event. Call before liquidity is updated."""
    if not is_closed(position):
        return Transition.NONE
    if is_reopened(position):
        return Transition.REOPEN
    return Transition.FIRST_OPEN


def close_transition(position: Position) -> Transition:
    """Transition for a decrease event. Call after liquidity is updated."""
    if is_closed(position):
        return Transition.CLOSE
    return Transition.NONE


def apply_transition(
    transition: Transition,
    position: Position,
    pool: Pool,
    account: Account,
    protocol: Protocol,
    event: EventContext,
) -> None:
    """Move the counters at all three scopes and stamp or clear closure fields."""
    if transition == Transition.FIRST_OPEN:
        pool.open_position_count += 1
        pool.position_count += 1
        account.open_position_count += 1
        account.position_count += 1
        protocol.open_position_count += 1
        protocol.cumulative_position_count += 1

    elif transition == Transition.REOPEN:
        pool.open_position_count += 1
        pool.closed_position_count -= 1
        account.open_position_count += 1
        account.closed_position_count -= 1
        protocol.open_position_count += 1
        position.hash_closed = None
        position.block_number_closed = None
        position.timestamp_closed = None

    elif transition == Transition.CLOSE:
        pool.open_position_count -= 1
        pool.closed_position_count += 1
        account.open_position_count -= 1
        account.closed_position_count += 1
        protocol.open_position_count -= 1
        position.hash_closed = event.transaction_hash
        position.block_number_closed = event.block_number
        position.timestamp_closed = event.block_timestamp
