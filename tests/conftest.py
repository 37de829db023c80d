"""
Pytest configuration and shared fixtures.
"""
from decimal import Decimal

import pytest

from lp_indexer.domain.events import DecreaseLiquidity, EventContext, IncreaseLiquidity, Transfer
from lp_indexer.domain.models import Pool, PositionMetadata, Token
from lp_indexer.positions.handlers import PositionManagerHandlers
from lp_indexer.storage.memory import InMemoryEntityStore

PROTOCOL_ID = "uniswap-v3"

POOL = "0x88e6a0c2ddd26feeb64f039a2c41296fcb3f5640"
MISSING_POOL = "0x000000000000000000000000000000000000dead"
USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
WETH = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"

ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"

# Token ids registered with position metadata
OPEN_TOKEN_ID = 1
OTHER_TOKEN_ID = 2
ORPHAN_TOKEN_ID = 3  # metadata points at a pool that is not seeded
UNKNOWN_TOKEN_ID = 999


def seed_default(store) -> None:
    """Seed one USDC/WETH pool, its tokens, and position metadata."""
    store.seed_token(Token(id=USDC, symbol="USDC", decimals=6, last_price_usd=Decimal("1")))
    store.seed_token(Token(id=WETH, symbol="WETH", decimals=18, last_price_usd=Decimal("2000")))
    store.seed_pool(Pool(
        id=POOL,
        input_tokens=[USDC, WETH],
        total_liquidity=1_000_000,
        total_liquidity_usd=Decimal("5000000"),
    ))
    store.register_position_metadata(PositionMetadata(OPEN_TOKEN_ID, POOL, -887220, 887220))
    store.register_position_metadata(PositionMetadata(OTHER_TOKEN_ID, POOL, -600, 600))
    store.register_position_metadata(PositionMetadata(ORPHAN_TOKEN_ID, MISSING_POOL, -60, 60))


class EventFactory:
    """Builds events on a strictly increasing block sequence."""

    def __init__(self, start_block: int = 17_000_000):
        self.block = start_block

    def context(self, sender: str = ALICE, log_index: int = 0, tx_hash: str = None) -> EventContext:
        self.block += 1
        return EventContext(
            transaction_hash=tx_hash or f"0x{self.block:064x}",
            block_number=self.block,
            block_timestamp=1_700_000_000 + self.block * 12,
            sender=sender,
            log_index=log_index,
        )

    def increase(self, token_id, liquidity, amounts=(0, 0), **ctx) -> IncreaseLiquidity:
        return IncreaseLiquidity(self.context(**ctx), token_id, liquidity, tuple(amounts))

    def decrease(self, token_id, liquidity, amounts=(0, 0), **ctx) -> DecreaseLiquidity:
        """`liquidity` is the signed delta (negative for removals)."""
        return DecreaseLiquidity(self.context(**ctx), token_id, liquidity, tuple(amounts))

    def transfer(self, token_id, from_address, to_address, **ctx) -> Transfer:
        return Transfer(self.context(**ctx), token_id, from_address, to_address)


@pytest.fixture
def store():
    store = InMemoryEntityStore()
    seed_default(store)
    return store


@pytest.fixture
def handlers(store):
    return PositionManagerHandlers(store, protocol_id=PROTOCOL_ID)


@pytest.fixture
def events():
    return EventFactory()
