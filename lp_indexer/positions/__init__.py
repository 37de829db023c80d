"""
Position lifecycle module.

Contains the position-manager event handlers, lifecycle transitions,
valuation helpers and the counter invariant monitor.

ARCHITECTURE:
    PositionManagerHandlers (single entry point for all events)
        │
        ├── lifecycle (open / re-open / close transitions + counters)
        │
        ├── valuation (token decimals, USD sums, pro-rata liquidity)
        │
        ├── transfer (owner reassignment between accounts)
        │
        └── EntityStore.apply (one ChangeSet per event)
"""

from lp_indexer.positions.handlers import (
    PositionManagerEvent,
    PositionManagerHandlers,
    build_handlers,
)
from lp_indexer.positions.invariants import (
    assert_consistent,
    check_invariant,
    find_violations,
    verify_store,
)
from lp_indexer.positions.lifecycle import Transition
from lp_indexer.positions.outcome import EventOutcome, EventStatus

__all__ = [
    "PositionManagerEvent",
    "PositionManagerHandlers",
    "build_handlers",
    "assert_consistent",
    "check_invariant",
    "find_violations",
    "verify_store",
    "Transition",
    "EventOutcome",
    "EventStatus",
]
