"""
Dictionary-backed entity store.

Used by tests and dry-run replays. Entities are deep-copied on the way in
and out, so a handler that aborts after mutating its copies leaves the store
untouched; `apply` swaps in the whole change set at once.
"""
import copy
from typing import Dict, Iterable, List, Optional

from lp_indexer.constants import DEFAULT_INPUT_TOKEN_COUNT
from lp_indexer.domain.events import EventContext
from lp_indexer.domain.models import (
    Account,
    Pool,
    Position,
    PositionMetadata,
    PositionSnapshot,
    Protocol,
    Token,
)
from lp_indexer.domain.protocols import ChangeSet, Found, NotFound, NotFoundReason, Resolution


def position_id_for(token_id: int) -> str:
    return str(token_id)


def new_position(event: EventContext, metadata: PositionMetadata, token_count: int) -> Position:
    """Default record for a position seen for the first time."""
    return Position(
        id=position_id_for(metadata.token_id),
        token_id=metadata.token_id,
        pool=metadata.pool,
        account=event.sender,
        tick_lower=metadata.tick_lower,
        tick_upper=metadata.tick_upper,
        cumulative_deposit_token_amounts=[0] * token_count,
        cumulative_withdraw_token_amounts=[0] * token_count,
        hash_opened=event.transaction_hash,
        block_number_opened=event.block_number,
        timestamp_opened=event.block_timestamp,
    )


class InMemoryEntityStore:
    """In-memory implementation of the EntityStore protocol."""

    def __init__(self, position_metadata: Optional[Iterable[PositionMetadata]] = None):
        self._positions: Dict[str, Position] = {}
        self._pools: Dict[str, Pool] = {}
        self._accounts: Dict[str, Account] = {}
        self._protocols: Dict[str, Protocol] = {}
        self._tokens: Dict[str, Token] = {}
        self._snapshots: Dict[str, PositionSnapshot] = {}
        self._metadata: Dict[int, PositionMetadata] = {}
        for metadata in position_metadata or ():
            self.register_position_metadata(metadata)

    # ========== SEEDING ==========

    def register_position_metadata(self, metadata: PositionMetadata) -> None:
        self._metadata[metadata.token_id] = metadata

    def seed_pool(self, pool: Pool) -> None:
        """Insert a pool, or refresh an existing pool's snapshot fields without touching its counters."""
        existing = self._pools.get(pool.id)
        if existing is None:
            self._pools[pool.id] = copy.deepcopy(pool)
            return
        existing.input_tokens = list(pool.input_tokens)
        existing.total_liquidity = pool.total_liquidity
        existing.total_liquidity_usd = pool.total_liquidity_usd

    def seed_token(self, token: Token) -> None:
        self._tokens[token.id] = copy.deepcopy(token)

    # ========== ENTITY STORE ==========

    def get_or_create_position(self, event: EventContext, token_id: int) -> Resolution[Position]:
        existing = self._positions.get(position_id_for(token_id))
        if existing is not None:
            return Found(copy.deepcopy(existing))

        metadata = self._metadata.get(token_id)
        if metadata is None:
            return NotFound(NotFoundReason.POSITION, key=str(token_id))

        pool = self._pools.get(metadata.pool)
        token_count = len(pool.input_tokens) if pool is not None else DEFAULT_INPUT_TOKEN_COUNT
        return Found(new_position(event, metadata, token_count))

    def get_pool(self, address: str) -> Resolution[Pool]:
        pool = self._pools.get(address)
        if pool is None:
            return NotFound(NotFoundReason.POOL, key=address)
        return Found(copy.deepcopy(pool))

    def get_or_create_token(self, event: EventContext, address: str) -> Token:
        token = self._tokens.get(address)
        if token is None:
            return Token(id=address)
        return copy.deepcopy(token)

    def get_or_create_account(self, address: str) -> Account:
        account = self._accounts.get(address)
        if account is None:
            return Account(id=address)
        return copy.deepcopy(account)

    def get_or_create_protocol(self, protocol_id: str) -> Protocol:
        protocol = self._protocols.get(protocol_id)
        if protocol is None:
            return Protocol(id=protocol_id)
        return copy.deepcopy(protocol)

    def apply(self, change_set: ChangeSet) -> None:
        staged = copy.deepcopy(change_set)
        self._positions.update(staged.positions)
        self._pools.update(staged.pools)
        self._accounts.update(staged.accounts)
        if staged.protocol is not None:
            self._protocols[staged.protocol.id] = staged.protocol
        for snapshot in staged.snapshots:
            # Append-only: a snapshot id is written once
            self._snapshots.setdefault(snapshot.id, snapshot)

    # ========== READS ==========

    def get_position(self, position_id: str) -> Optional[Position]:
        position = self._positions.get(position_id)
        return copy.deepcopy(position) if position is not None else None

    def get_account(self, address: str) -> Optional[Account]:
        account = self._accounts.get(address)
        return copy.deepcopy(account) if account is not None else None

    def list_positions(self) -> List[Position]:
        return [copy.deepcopy(p) for p in self._positions.values()]

    def list_pools(self) -> List[Pool]:
        return [copy.deepcopy(p) for p in self._pools.values()]

    def list_accounts(self) -> List[Account]:
        return [copy.deepcopy(a) for a in self._accounts.values()]

    def snapshots_for(self, position_id: str) -> List[PositionSnapshot]:
        return [s for s in self._snapshots.values() if s.position == position_id]
