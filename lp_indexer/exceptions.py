"""
Custom exception hierarchy for the position indexer.

Hierarchy:

    IndexerError (base)
    ├── OperationalError   storage / infrastructure failure
    ├── DataError          bad input, skip the record, keep going
    │   └── EventDecodeError
    └── InvariantError     counter consistency violated, halt

Rules:
    - OperationalError: let it propagate; the replay run stops and can be resumed.
    - DataError: catch, log, skip this event record, continue.
    - InvariantError: never swallow. The entity graph is no longer trustworthy.

Unresolvable positions and pools are NOT exceptions: store lookups return
Found / NotFound and handlers report them as event outcomes.
"""


class IndexerError(Exception):
    """Base exception for all indexer errors."""
    pass


class OperationalError(IndexerError):
    """Storage or infrastructure failure (database unreachable, disk full)."""
    pass


class DataError(IndexerError):
    """Malformed input record.

    Treatment: catch, log, skip this record, continue replay.
    """
    pass


class EventDecodeError(DataError):
    """Raised when a decoded-event record cannot be turned into an event."""
    pass


class InvariantError(IndexerError):
    """Counter or position-state invariant violation.

    Treatment: halt. This should never be caught and silently continued.
    """
    pass
