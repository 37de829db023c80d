"""
Tests for operator seed files.
"""
from decimal import Decimal

import pytest

from conftest import OPEN_TOKEN_ID, OTHER_TOKEN_ID, POOL, PROTOCOL_ID, USDC, WETH
from lp_indexer.domain.events import EventContext
from lp_indexer.domain.protocols import Found
from lp_indexer.exceptions import DataError
from lp_indexer.positions.invariants import verify_store
from lp_indexer.storage.memory import InMemoryEntityStore
from lp_indexer.storage.seed import apply_seed, load_seed_file

SEED_YAML = """
tokens:
  - id: "0xusdc"
    symbol: USDC
    decimals: 6
    last_price_usd: "1.0"
  - id: "0xnew"
pools:
  - id: "0xpool"
    input_tokens: ["0xusdc", "0xnew"]
    total_liquidity: "340282366920938463463374607431768211455"
    total_liquidity_usd: "1250000.75"
positions:
  - token_id: 7
    pool: "0xpool"
    tick_lower: -60
    tick_upper: 60
"""

CONTEXT = EventContext(transaction_hash="0xseed", block_number=1, block_timestamp=1, sender="0xa")


def test_seed_file_round_trip(tmp_path):
    path = tmp_path / "seed.yaml"
    path.write_text(SEED_YAML)
    store = InMemoryEntityStore()

    counts = apply_seed(store, load_seed_file(path))

    assert counts == {"tokens": 2, "pools": 1, "positions": 1}

    pool = store.get_pool("0xpool").value
    assert pool.total_liquidity == 2 ** 128 - 1
    assert pool.total_liquidity_usd == Decimal("1250000.75")

    usdc = store.get_or_create_token(CONTEXT, "0xusdc")
    assert usdc.decimals == 6
    assert usdc.last_price_usd == Decimal("1.0")

    unpriced = store.get_or_create_token(CONTEXT, "0xnew")
    assert unpriced.decimals is None
    assert unpriced.last_price_usd is None

    resolved = store.get_or_create_position(CONTEXT, 7)
    assert isinstance(resolved, Found)
    assert resolved.value.tick_lower == -60


def test_missing_seed_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_seed_file(tmp_path / "absent.yaml")


def test_non_mapping_document(tmp_path):
    path = tmp_path / "seed.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(DataError):
        load_seed_file(path)


@pytest.mark.parametrize("data", [
    {"pools": [{"input_tokens": []}]},
    {"positions": [{"token_id": 1}]},
    {"positions": [{"token_id": "seven", "pool": "0xpool"}]},
    {"tokens": [{"id": "0xt", "last_price_usd": "cheap"}]},
    {"tokens": "0xt"},
    {"pools": ["0xpool"]},
])
def test_malformed_entries_seed_nothing(data):
    store = InMemoryEntityStore()

    with pytest.raises(DataError):
        apply_seed(store, {"tokens": [{"id": "0xok", "decimals": 18}], **data})

    assert store.list_pools() == []
    assert store.get_or_create_token(CONTEXT, "0xok").decimals is None


class TestReseedLivePool:

    def test_reseed_refreshes_snapshot_and_keeps_counters(self, store, handlers, events):
        """Re-seeding a pool with open positions only updates its read-only fields."""
        handlers.handle(events.increase(OPEN_TOKEN_ID, 100))
        handlers.handle(events.increase(OTHER_TOKEN_ID, 100))
        handlers.handle(events.decrease(OTHER_TOKEN_ID, -100))

        apply_seed(store, {"pools": [{
            "id": POOL,
            "input_tokens": [USDC, WETH],
            "total_liquidity": "2000000",
            "total_liquidity_usd": "8000000",
        }]})

        pool = store.get_pool(POOL).value
        assert pool.total_liquidity == 2_000_000
        assert pool.total_liquidity_usd == Decimal("8000000")
        assert (pool.open_position_count, pool.closed_position_count, pool.position_count) == (1, 1, 2)
        assert verify_store(store, PROTOCOL_ID) == []

        # Closing afterwards must not push the pool below zero
        handlers.handle(events.decrease(OPEN_TOKEN_ID, -100))
        pool = store.get_pool(POOL).value
        assert (pool.open_position_count, pool.closed_position_count) == (0, 2)
        assert verify_store(store, PROTOCOL_ID) == []
