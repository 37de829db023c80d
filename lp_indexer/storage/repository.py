"""
SQL persistence for the position entity graph.

Provides the ORM models and SqlEntityStore, the production implementation of
the EntityStore protocol. Liquidity, raw token amounts and USD values are
stored as decimal strings: uint128/uint256 values overflow BIGINT and USD
values must round-trip without rounding.
"""
import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.exc import SQLAlchemyError

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
from lp_indexer.exceptions import OperationalError
from lp_indexer.monitoring.logger import get_logger
from lp_indexer.storage.db import Base, Database
from lp_indexer.storage.memory import new_position, position_id_for

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dump_ints(values: Iterable[int]) -> str:
    return json.dumps([str(v) for v in values])


def _load_ints(raw: Optional[str]) -> List[int]:
    return [int(v) for v in json.loads(raw)] if raw else []


def _dec(raw: Optional[str]) -> Optional[Decimal]:
    return Decimal(raw) if raw is not None else None


def _str(value) -> Optional[str]:
    return str(value) if value is not None else None


# ORM Models
class PositionModel(Base):
    """ORM model for positions (one row per position NFT)."""
    __tablename__ = "positions"
    __table_args__ = (
        Index("idx_position_pool", "pool"),
        Index("idx_position_account", "account"),
    )

    id = Column(String, primary_key=True)
    token_id = Column(String, nullable=False)
    pool = Column(String, nullable=False)
    account = Column(String, nullable=False)
    tick_lower = Column(Integer, nullable=True)
    tick_upper = Column(Integer, nullable=True)

    liquidity = Column(String, nullable=False)
    liquidity_usd = Column(String, nullable=False)
    cumulative_deposit_token_amounts = Column(Text, nullable=False)  # JSON list of int strings
    cumulative_withdraw_token_amounts = Column(Text, nullable=False)
    cumulative_deposit_usd = Column(String, nullable=False)
    cumulative_withdraw_usd = Column(String, nullable=False)
    deposit_count = Column(Integer, nullable=False, default=0)
    withdraw_count = Column(Integer, nullable=False, default=0)

    hash_opened = Column(String, nullable=True)
    block_number_opened = Column(BigInteger, nullable=True)
    timestamp_opened = Column(BigInteger, nullable=True)
    hash_closed = Column(String, nullable=True)
    block_number_closed = Column(BigInteger, nullable=True)
    timestamp_closed = Column(BigInteger, nullable=True)

    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class PoolModel(Base):
    """ORM model for pools."""
    __tablename__ = "pools"

    id = Column(String, primary_key=True)
    input_tokens = Column(Text, nullable=False)  # JSON list of addresses
    total_liquidity = Column(String, nullable=False)
    total_liquidity_usd = Column(String, nullable=False)
    open_position_count = Column(Integer, nullable=False, default=0)
    closed_position_count = Column(Integer, nullable=False, default=0)
    position_count = Column(Integer, nullable=False, default=0)


class AccountModel(Base):
    """ORM model for position holders."""
    __tablename__ = "accounts"

    id = Column(String, primary_key=True)
    open_position_count = Column(Integer, nullable=False, default=0)
    closed_position_count = Column(Integer, nullable=False, default=0)
    position_count = Column(Integer, nullable=False, default=0)


class ProtocolModel(Base):
    """ORM model for the protocol aggregate."""
    __tablename__ = "protocols"

    id = Column(String, primary_key=True)
    open_position_count = Column(Integer, nullable=False, default=0)
    cumulative_position_count = Column(Integer, nullable=False, default=0)


class TokenModel(Base):
    """ORM model for token metadata snapshots."""
    __tablename__ = "tokens"

    id = Column(String, primary_key=True)
    symbol = Column(String, nullable=True)
    decimals = Column(Integer, nullable=True)
    last_price_usd = Column(String, nullable=True)


class PositionMetadataModel(Base):
    """ORM model for minted position NFTs (token id → pool, tick range)."""
    __tablename__ = "position_metadata"

    token_id = Column(String, primary_key=True)
    pool = Column(String, nullable=False)
    tick_lower = Column(Integer, nullable=True)
    tick_upper = Column(Integer, nullable=True)


class PositionSnapshotModel(Base):
    """ORM model for append-only position snapshots."""
    __tablename__ = "position_snapshots"
    __table_args__ = (
        Index("idx_snapshot_position", "position", "block_number", "log_index"),
    )

    id = Column(String, primary_key=True)
    position = Column(String, nullable=False)
    hash = Column(String, nullable=False)
    log_index = Column(Integer, nullable=False)
    block_number = Column(BigInteger, nullable=False)
    timestamp = Column(BigInteger, nullable=False)
    account = Column(String, nullable=False)
    pool = Column(String, nullable=False)
    liquidity = Column(String, nullable=False)
    liquidity_usd = Column(String, nullable=False)
    cumulative_deposit_token_amounts = Column(Text, nullable=False)
    cumulative_withdraw_token_amounts = Column(Text, nullable=False)
    cumulative_deposit_usd = Column(String, nullable=False)
    cumulative_withdraw_usd = Column(String, nullable=False)
    deposit_count = Column(Integer, nullable=False)
    withdraw_count = Column(Integer, nullable=False)


# Row <-> entity conversion
def _position_from_row(pm: PositionModel) -> Position:
    return Position(
        id=pm.id,
        token_id=int(pm.token_id),
        pool=pm.pool,
        account=pm.account,
        tick_lower=pm.tick_lower,
        tick_upper=pm.tick_upper,
        liquidity=int(pm.liquidity),
        liquidity_usd=Decimal(pm.liquidity_usd),
        cumulative_deposit_token_amounts=_load_ints(pm.cumulative_deposit_token_amounts),
        cumulative_withdraw_token_amounts=_load_ints(pm.cumulative_withdraw_token_amounts),
        cumulative_deposit_usd=Decimal(pm.cumulative_deposit_usd),
        cumulative_withdraw_usd=Decimal(pm.cumulative_withdraw_usd),
        deposit_count=pm.deposit_count,
        withdraw_count=pm.withdraw_count,
        hash_opened=pm.hash_opened,
        block_number_opened=pm.block_number_opened,
        timestamp_opened=pm.timestamp_opened,
        hash_closed=pm.hash_closed,
        block_number_closed=pm.block_number_closed,
        timestamp_closed=pm.timestamp_closed,
    )


def _position_to_row(position: Position) -> PositionModel:
    return PositionModel(
        id=position.id,
        token_id=str(position.token_id),
        pool=position.pool,
        account=position.account,
        tick_lower=position.tick_lower,
        tick_upper=position.tick_upper,
        liquidity=str(position.liquidity),
        liquidity_usd=str(position.liquidity_usd),
        cumulative_deposit_token_amounts=_dump_ints(position.cumulative_deposit_token_amounts),
        cumulative_withdraw_token_amounts=_dump_ints(position.cumulative_withdraw_token_amounts),
        cumulative_deposit_usd=str(position.cumulative_deposit_usd),
        cumulative_withdraw_usd=str(position.cumulative_withdraw_usd),
        deposit_count=position.deposit_count,
        withdraw_count=position.withdraw_count,
        hash_opened=position.hash_opened,
        block_number_opened=position.block_number_opened,
        timestamp_opened=position.timestamp_opened,
        hash_closed=position.hash_closed,
        block_number_closed=position.block_number_closed,
        timestamp_closed=position.timestamp_closed,
        updated_at=_utcnow(),
    )


def _pool_from_row(pm: PoolModel) -> Pool:
    return Pool(
        id=pm.id,
        input_tokens=json.loads(pm.input_tokens),
        total_liquidity=int(pm.total_liquidity),
        total_liquidity_usd=Decimal(pm.total_liquidity_usd),
        open_position_count=pm.open_position_count,
        closed_position_count=pm.closed_position_count,
        position_count=pm.position_count,
    )


def _pool_to_row(pool: Pool) -> PoolModel:
    return PoolModel(
        id=pool.id,
        input_tokens=json.dumps(list(pool.input_tokens)),
        total_liquidity=str(pool.total_liquidity),
        total_liquidity_usd=str(pool.total_liquidity_usd),
        open_position_count=pool.open_position_count,
        closed_position_count=pool.closed_position_count,
        position_count=pool.position_count,
    )


def _account_from_row(am: AccountModel) -> Account:
    return Account(
        id=am.id,
        open_position_count=am.open_position_count,
        closed_position_count=am.closed_position_count,
        position_count=am.position_count,
    )


def _snapshot_from_row(sm: PositionSnapshotModel) -> PositionSnapshot:
    return PositionSnapshot(
        id=sm.id,
        position=sm.position,
        hash=sm.hash,
        log_index=sm.log_index,
        block_number=sm.block_number,
        timestamp=sm.timestamp,
        account=sm.account,
        pool=sm.pool,
        liquidity=int(sm.liquidity),
        liquidity_usd=Decimal(sm.liquidity_usd),
        cumulative_deposit_token_amounts=tuple(_load_ints(sm.cumulative_deposit_token_amounts)),
        cumulative_withdraw_token_amounts=tuple(_load_ints(sm.cumulative_withdraw_token_amounts)),
        cumulative_deposit_usd=Decimal(sm.cumulative_deposit_usd),
        cumulative_withdraw_usd=Decimal(sm.cumulative_withdraw_usd),
        deposit_count=sm.deposit_count,
        withdraw_count=sm.withdraw_count,
    )


def _snapshot_to_row(snapshot: PositionSnapshot) -> PositionSnapshotModel:
    return PositionSnapshotModel(
        id=snapshot.id,
        position=snapshot.position,
        hash=snapshot.hash,
        log_index=snapshot.log_index,
        block_number=snapshot.block_number,
        timestamp=snapshot.timestamp,
        account=snapshot.account,
        pool=snapshot.pool,
        liquidity=str(snapshot.liquidity),
        liquidity_usd=str(snapshot.liquidity_usd),
        cumulative_deposit_token_amounts=_dump_ints(snapshot.cumulative_deposit_token_amounts),
        cumulative_withdraw_token_amounts=_dump_ints(snapshot.cumulative_withdraw_token_amounts),
        cumulative_deposit_usd=str(snapshot.cumulative_deposit_usd),
        cumulative_withdraw_usd=str(snapshot.cumulative_withdraw_usd),
        deposit_count=snapshot.deposit_count,
        withdraw_count=snapshot.withdraw_count,
    )


class SqlEntityStore:
    """
    SQLAlchemy implementation of the EntityStore protocol.

    Reads open a short session each; `apply` writes the whole change set in
    one session so a failure rolls back every row of the event.
    """

    def __init__(self, db: Database):
        self.db = db

    # ========== SEEDING ==========

    def register_position_metadata(self, metadata: PositionMetadata) -> None:
        with self.db.get_session() as session:
            session.merge(PositionMetadataModel(
                token_id=str(metadata.token_id),
                pool=metadata.pool,
                tick_lower=metadata.tick_lower,
                tick_upper=metadata.tick_upper,
            ))

    def seed_pool(self, pool: Pool) -> None:
        """Insert a pool, or refresh an existing pool's snapshot fields without touching its counters."""
        with self.db.get_session() as session:
            pm = session.get(PoolModel, pool.id)
            if pm is None:
                session.add(_pool_to_row(pool))
                return
            # Counters are owned by the handlers
            pm.input_tokens = json.dumps(list(pool.input_tokens))
            pm.total_liquidity = str(pool.total_liquidity)
            pm.total_liquidity_usd = str(pool.total_liquidity_usd)

    def seed_token(self, token: Token) -> None:
        with self.db.get_session() as session:
            session.merge(TokenModel(
                id=token.id,
                symbol=token.symbol,
                decimals=token.decimals,
                last_price_usd=_str(token.last_price_usd),
            ))

    # ========== ENTITY STORE ==========

    def get_or_create_position(self, event: EventContext, token_id: int) -> Resolution[Position]:
        with self.db.get_session() as session:
            pm = session.get(PositionModel, position_id_for(token_id))
            if pm is not None:
                return Found(_position_from_row(pm))

            meta = session.get(PositionMetadataModel, str(token_id))
            if meta is None:
                return NotFound(NotFoundReason.POSITION, key=str(token_id))

            pool = session.get(PoolModel, meta.pool)
            token_count = len(json.loads(pool.input_tokens)) if pool is not None else DEFAULT_INPUT_TOKEN_COUNT
            metadata = PositionMetadata(
                token_id=token_id,
                pool=meta.pool,
                tick_lower=meta.tick_lower,
                tick_upper=meta.tick_upper,
            )
            return Found(new_position(event, metadata, token_count))

    def get_pool(self, address: str) -> Resolution[Pool]:
        with self.db.get_session() as session:
            pm = session.get(PoolModel, address)
            if pm is None:
                return NotFound(NotFoundReason.POOL, key=address)
            return Found(_pool_from_row(pm))

    def get_or_create_token(self, event: EventContext, address: str) -> Token:
        with self.db.get_session() as session:
            tm = session.get(TokenModel, address)
            if tm is None:
                return Token(id=address)
            return Token(
                id=tm.id,
                symbol=tm.symbol,
                decimals=tm.decimals,
                last_price_usd=_dec(tm.last_price_usd),
            )

    def get_or_create_account(self, address: str) -> Account:
        with self.db.get_session() as session:
            am = session.get(AccountModel, address)
            if am is None:
                return Account(id=address)
            return _account_from_row(am)

    def get_or_create_protocol(self, protocol_id: str) -> Protocol:
        with self.db.get_session() as session:
            pm = session.get(ProtocolModel, protocol_id)
            if pm is None:
                return Protocol(id=protocol_id)
            return Protocol(
                id=pm.id,
                open_position_count=pm.open_position_count,
                cumulative_position_count=pm.cumulative_position_count,
            )

    def apply(self, change_set: ChangeSet) -> None:
        try:
            with self.db.get_session() as session:
                for pool in change_set.pools.values():
                    session.merge(_pool_to_row(pool))
                for account in change_set.accounts.values():
                    session.merge(AccountModel(
                        id=account.id,
                        open_position_count=account.open_position_count,
                        closed_position_count=account.closed_position_count,
                        position_count=account.position_count,
                    ))
                for position in change_set.positions.values():
                    session.merge(_position_to_row(position))
                if change_set.protocol is not None:
                    session.merge(ProtocolModel(
                        id=change_set.protocol.id,
                        open_position_count=change_set.protocol.open_position_count,
                        cumulative_position_count=change_set.protocol.cumulative_position_count,
                    ))
                for snapshot in change_set.snapshots:
                    # Append-only: never overwrite an existing snapshot
                    if session.get(PositionSnapshotModel, snapshot.id) is None:
                        session.add(_snapshot_to_row(snapshot))
        except SQLAlchemyError as e:
            logger.error("CHANGE_SET_APPLY_FAILED", error=str(e), positions=list(change_set.positions))
            raise OperationalError(f"Failed to apply change set: {e}") from e

    # ========== READS ==========

    def get_position(self, position_id: str) -> Optional[Position]:
        with self.db.get_session() as session:
            pm = session.get(PositionModel, position_id)
            return _position_from_row(pm) if pm is not None else None

    def get_account(self, address: str) -> Optional[Account]:
        with self.db.get_session() as session:
            am = session.get(AccountModel, address)
            return _account_from_row(am) if am is not None else None

    def list_positions(self) -> List[Position]:
        with self.db.get_session() as session:
            return [_position_from_row(pm) for pm in session.query(PositionModel).order_by(PositionModel.id).all()]

    def list_pools(self) -> List[Pool]:
        with self.db.get_session() as session:
            return [_pool_from_row(pm) for pm in session.query(PoolModel).order_by(PoolModel.id).all()]

    def list_accounts(self) -> List[Account]:
        with self.db.get_session() as session:
            return [_account_from_row(am) for am in session.query(AccountModel).order_by(AccountModel.id).all()]

    def snapshots_for(self, position_id: str) -> List[PositionSnapshot]:
        with self.db.get_session() as session:
            rows = (
                session.query(PositionSnapshotModel)
                .filter(PositionSnapshotModel.position == position_id)
                .order_by(PositionSnapshotModel.block_number, PositionSnapshotModel.log_index)
                .all()
            )
            return [_snapshot_from_row(sm) for sm in rows]
