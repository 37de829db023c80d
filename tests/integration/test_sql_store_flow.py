"""
SqlEntityStore against in-memory SQLite.

Runs the lifecycle scenarios through the SQL store and checks exact
round-trips of uint256 integers and Decimal USD values, append-only
snapshots, and rollback of a failed change set.
"""
from dataclasses import replace
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

import lp_indexer.storage.repository as repository
from conftest import (
    ALICE, BOB, OPEN_TOKEN_ID, ORPHAN_TOKEN_ID, POOL, PROTOCOL_ID, UNKNOWN_TOKEN_ID, USDC, WETH, seed_default,
)
from lp_indexer.domain.protocols import ChangeSet
from lp_indexer.exceptions import OperationalError
from lp_indexer.positions import assert_consistent, verify_store
from lp_indexer.positions.handlers import PositionManagerHandlers
from lp_indexer.positions.lifecycle import Transition
from lp_indexer.positions.outcome import EventStatus
from lp_indexer.positions.valuation import liquidity_usd
from lp_indexer.storage.db import init_db
from lp_indexer.storage.repository import SqlEntityStore
from lp_indexer.storage.seed import apply_seed


@pytest.fixture
def sql_store():
    store = SqlEntityStore(init_db("sqlite://"))
    seed_default(store)
    return store


@pytest.fixture
def sql_handlers(sql_store):
    return PositionManagerHandlers(sql_store, protocol_id=PROTOCOL_ID)


def test_open_close_reopen_cycle(sql_store, sql_handlers, events):
    transitions = [
        sql_handlers.handle(events.increase(OPEN_TOKEN_ID, 100, amounts=(10 ** 6, 10 ** 18))).transition,
        sql_handlers.handle(events.decrease(OPEN_TOKEN_ID, -100, tx_hash="0xclose")).transition,
    ]

    closed = sql_store.get_position(str(OPEN_TOKEN_ID))
    assert closed.hash_closed == "0xclose"
    assert closed.cumulative_deposit_usd == Decimal("2001")

    transitions.append(sql_handlers.handle(events.increase(OPEN_TOKEN_ID, 50)).transition)
    assert transitions == [Transition.FIRST_OPEN, Transition.CLOSE, Transition.REOPEN]

    position = sql_store.get_position(str(OPEN_TOKEN_ID))
    assert position.liquidity == 50
    assert position.hash_closed is None
    assert position.block_number_closed is None

    pool = sql_store.get_pool(POOL).value
    assert (pool.open_position_count, pool.closed_position_count, pool.position_count) == (1, 0, 1)

    protocol = sql_store.get_or_create_protocol(PROTOCOL_ID)
    assert (protocol.open_position_count, protocol.cumulative_position_count) == (1, 1)

    assert_consistent(sql_store, PROTOCOL_ID)


def test_uint256_and_decimal_round_trip(sql_store, sql_handlers, events):
    big = 2 ** 200
    sql_handlers.handle(events.increase(OPEN_TOKEN_ID, big, amounts=(big, 3)))

    position = sql_store.get_position(str(OPEN_TOKEN_ID))
    assert position.liquidity == big
    assert position.cumulative_deposit_token_amounts == [big, 3]

    # Stored as text, read back with the same digits and exponent
    expected = liquidity_usd(big, sql_store.get_pool(POOL).value)
    assert position.liquidity_usd == Decimal(big * 5)
    assert position.liquidity_usd.as_tuple() == expected.as_tuple()


def test_transfer_persists_accounts(sql_store, sql_handlers, events):
    sql_handlers.handle(events.increase(OPEN_TOKEN_ID, 100))
    sql_handlers.handle(events.transfer(OPEN_TOKEN_ID, ALICE, BOB))

    assert sql_store.get_account(ALICE).position_count == 0
    assert sql_store.get_account(BOB).open_position_count == 1
    assert sql_store.get_position(str(OPEN_TOKEN_ID)).account == BOB
    assert [a.id for a in sql_store.list_accounts()] == [ALICE, BOB]


def test_aborts_persist_nothing(sql_store, sql_handlers, events):
    assert sql_handlers.handle(events.increase(UNKNOWN_TOKEN_ID, 1)).status == EventStatus.POSITION_NOT_FOUND
    assert sql_handlers.handle(events.increase(ORPHAN_TOKEN_ID, 1)).status == EventStatus.POOL_NOT_FOUND

    assert sql_store.list_positions() == []
    assert sql_store.list_accounts() == []
    assert sql_store.get_or_create_protocol(PROTOCOL_ID).cumulative_position_count == 0


def test_snapshots_are_append_only_and_ordered(sql_store, sql_handlers, events):
    outcome = sql_handlers.handle(events.increase(OPEN_TOKEN_ID, 100))
    sql_handlers.handle(events.decrease(OPEN_TOKEN_ID, -25))

    # A second write under the same snapshot id is ignored
    rewrite = ChangeSet()
    rewrite.add_snapshot(replace(outcome.change_set.snapshots[0], liquidity=999))
    sql_store.apply(rewrite)

    snapshots = sql_store.snapshots_for(str(OPEN_TOKEN_ID))
    assert [s.liquidity for s in snapshots] == [100, 75]
    assert snapshots[0].cumulative_deposit_token_amounts == (0, 0)


def test_failed_apply_rolls_back(sql_store, sql_handlers, events, monkeypatch):
    sql_handlers.handle(events.increase(OPEN_TOKEN_ID, 100))
    pool_before = sql_store.get_pool(POOL).value

    def _fail(snapshot):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(repository, "_snapshot_to_row", _fail)

    with pytest.raises(OperationalError, match="disk full"):
        sql_handlers.handle(events.decrease(OPEN_TOKEN_ID, -100))

    assert sql_store.get_pool(POOL).value == pool_before
    assert sql_store.get_position(str(OPEN_TOKEN_ID)).liquidity == 100


def test_empty_change_set_is_harmless(sql_store):
    sql_store.apply(ChangeSet())
    assert sql_store.list_positions() == []


def test_reseed_keeps_pool_counters(sql_store, sql_handlers, events):
    sql_handlers.handle(events.increase(OPEN_TOKEN_ID, 100))

    apply_seed(sql_store, {"pools": [{
        "id": POOL,
        "input_tokens": [USDC, WETH],
        "total_liquidity": "2000000",
        "total_liquidity_usd": "8000000",
    }]})

    pool = sql_store.get_pool(POOL).value
    assert pool.total_liquidity == 2_000_000
    assert pool.total_liquidity_usd == Decimal("8000000")
    assert (pool.open_position_count, pool.closed_position_count, pool.position_count) == (1, 0, 1)
    assert verify_store(sql_store, PROTOCOL_ID) == []

    sql_handlers.handle(events.decrease(OPEN_TOKEN_ID, -100))
    pool = sql_store.get_pool(POOL).value
    assert (pool.open_position_count, pool.closed_position_count) == (0, 1)
    assert_consistent(sql_store, PROTOCOL_ID)
