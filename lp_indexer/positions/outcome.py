"""
Handler outcomes.

Every handler call returns an EventOutcome instead of raising for the
expected abort kinds, so callers (replay, tests) can tell a hard abort from
a soft one without parsing logs.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from lp_indexer.domain.protocols import ChangeSet
from lp_indexer.positions.lifecycle import Transition


class EventStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"                        # e.g. transfer from the zero address
    POSITION_NOT_FOUND = "position_not_found"  # hard abort, error-level report
    POOL_NOT_FOUND = "pool_not_found"          # soft abort, warning-level report


@dataclass
class EventOutcome:
    status: EventStatus
    transition: Transition = Transition.NONE
    position_id: Optional[str] = None
    change_set: ChangeSet = field(default_factory=ChangeSet)

    @property
    def applied(self) -> bool:
        return self.status == EventStatus.APPLIED

    @property
    def aborted(self) -> bool:
        return self.status in (EventStatus.POSITION_NOT_FOUND, EventStatus.POOL_NOT_FOUND)
