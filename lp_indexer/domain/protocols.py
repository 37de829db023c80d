"""
Domain protocols (interfaces) for dependency inversion.

These protocols define the contracts that storage layers must implement,
allowing the lifecycle handlers to depend on abstractions rather than a
concrete database. Lookups that may fail return a tagged Found / NotFound
result instead of None so that the two abort kinds stay distinguishable.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Generic, List, Optional, Protocol, TypeVar, Union, runtime_checkable

from lp_indexer.domain.events import EventContext
from lp_indexer.domain.models import (
    Account,
    Pool,
    Position,
    PositionSnapshot,
    Protocol as ProtocolEntity,
    Token,
)

T = TypeVar("T")


class NotFoundReason(str, Enum):
    """Which lookup failed. POSITION is a hard abort, POOL a soft one."""
    POSITION = "position"
    POOL = "pool"


@dataclass(frozen=True)
class Found(Generic[T]):
    value: T


@dataclass(frozen=True)
class NotFound:
    reason: NotFoundReason
    key: str = ""


Resolution = Union[Found[T], NotFound]


@dataclass
class ChangeSet:
    """
    Everything a handler intends to persist for one event.

    Built in full before anything is written; applied by the store in a
    single step so that pool, account and protocol counters never diverge.
    """
    positions: Dict[str, Position] = field(default_factory=dict)
    pools: Dict[str, Pool] = field(default_factory=dict)
    accounts: Dict[str, Account] = field(default_factory=dict)
    protocol: Optional[ProtocolEntity] = None
    snapshots: List[PositionSnapshot] = field(default_factory=list)

    def add_position(self, position: Position) -> None:
        self.positions[position.id] = position

    def add_pool(self, pool: Pool) -> None:
        self.pools[pool.id] = pool

    def add_account(self, account: Account) -> None:
        self.accounts[account.id] = account

    def set_protocol(self, protocol: ProtocolEntity) -> None:
        self.protocol = protocol

    def add_snapshot(self, snapshot: PositionSnapshot) -> None:
        self.snapshots.append(snapshot)

    @property
    def is_empty(self) -> bool:
        return not (
            self.positions or self.pools or self.accounts
            or self.protocol is not None or self.snapshots
        )


@runtime_checkable
class EntityStore(Protocol):
    """
    Entity store consumed by the handlers.

    Implemented by lp_indexer.storage.repository.SqlEntityStore in
    production and lp_indexer.storage.memory.InMemoryEntityStore in tests.
    Every returned entity is a private copy; only `apply` persists.
    """

    def get_or_create_position(self, event: EventContext, token_id: int) -> Resolution[Position]: ...

    def get_pool(self, address: str) -> Resolution[Pool]: ...

    def get_or_create_token(self, event: EventContext, address: str) -> Token: ...

    def get_or_create_account(self, address: str) -> Account: ...

    def get_or_create_protocol(self, protocol_id: str) -> ProtocolEntity: ...

    def apply(self, change_set: ChangeSet) -> None: ...

    def get_position(self, position_id: str) -> Optional[Position]: ...

    def list_positions(self) -> List[Position]: ...

    def list_pools(self) -> List[Pool]: ...

    def list_accounts(self) -> List[Account]: ...

    def snapshots_for(self, position_id: str) -> List[PositionSnapshot]: ...
