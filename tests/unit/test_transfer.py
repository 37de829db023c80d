"""
Tests for position NFT ownership transfers.
"""
from structlog.testing import capture_logs

from conftest import ALICE, BOB, OPEN_TOKEN_ID, POOL, PROTOCOL_ID, UNKNOWN_TOKEN_ID
from lp_indexer.constants import ZERO_ADDRESS
from lp_indexer.positions.handlers import PositionManagerHandlers
from lp_indexer.positions.outcome import EventStatus

BURN_ADDRESS = "0x000000000000000000000000000000000000dEaD"


def _counters(account):
    return (account.open_position_count, account.closed_position_count, account.position_count)


class TestTransfer:

    def test_open_position_moves_open_unit(self, store, handlers, events):
        handlers.handle(events.increase(OPEN_TOKEN_ID, 100))
        pool_before = store.get_pool(POOL).value
        protocol_before = store.get_or_create_protocol(PROTOCOL_ID)

        outcome = handlers.handle(events.transfer(OPEN_TOKEN_ID, ALICE, BOB))

        assert outcome.status == EventStatus.APPLIED
        assert _counters(store.get_account(ALICE)) == (0, 0, 0)
        assert _counters(store.get_account(BOB)) == (1, 0, 1)
        assert store.get_position(str(OPEN_TOKEN_ID)).account == BOB

        # Pool and Protocol untouched
        assert store.get_pool(POOL).value == pool_before
        assert store.get_or_create_protocol(PROTOCOL_ID) == protocol_before

    def test_closed_position_moves_closed_unit(self, store, handlers, events):
        handlers.handle(events.increase(OPEN_TOKEN_ID, 100))
        handlers.handle(events.decrease(OPEN_TOKEN_ID, -100))

        handlers.handle(events.transfer(OPEN_TOKEN_ID, ALICE, BOB))

        assert _counters(store.get_account(ALICE)) == (0, 0, 0)
        assert _counters(store.get_account(BOB)) == (0, 1, 1)

    def test_transfer_from_zero_address_is_noop(self, store, handlers, events):
        handlers.handle(events.increase(OPEN_TOKEN_ID, 100))
        position_before = store.get_position(str(OPEN_TOKEN_ID))
        accounts_before = store.list_accounts()

        outcome = handlers.handle(events.transfer(OPEN_TOKEN_ID, ZERO_ADDRESS, BOB))

        assert outcome.status == EventStatus.SKIPPED
        assert outcome.change_set.is_empty
        assert store.get_position(str(OPEN_TOKEN_ID)) == position_before
        assert store.list_accounts() == accounts_before
        assert store.get_account(BOB) is None

    def test_mint_address_match_ignores_case(self, store, events):
        handlers = PositionManagerHandlers(store, protocol_id=PROTOCOL_ID, zero_address=BURN_ADDRESS)

        outcome = handlers.handle(events.transfer(OPEN_TOKEN_ID, BURN_ADDRESS.upper().replace("0X", "0x"), BOB))

        assert outcome.status == EventStatus.SKIPPED

    def test_unknown_position_is_hard_abort(self, store, handlers, events):
        event = events.transfer(UNKNOWN_TOKEN_ID, ALICE, BOB)
        with capture_logs() as logs:
            outcome = handlers.handle(event)

        assert outcome.status == EventStatus.POSITION_NOT_FOUND
        assert [e["log_level"] for e in logs if e["event"] == "POSITION_NOT_FOUND"] == ["error"]
        assert store.list_accounts() == []

    def test_self_transfer_keeps_counters(self, store, handlers, events):
        handlers.handle(events.increase(OPEN_TOKEN_ID, 100))

        handlers.handle(events.transfer(OPEN_TOKEN_ID, ALICE, ALICE))

        assert _counters(store.get_account(ALICE)) == (1, 0, 1)
        assert store.get_position(str(OPEN_TOKEN_ID)).account == ALICE

    def test_transfer_writes_no_snapshot(self, store, handlers, events):
        handlers.handle(events.increase(OPEN_TOKEN_ID, 100))
        handlers.handle(events.transfer(OPEN_TOKEN_ID, ALICE, BOB))

        assert len(store.snapshots_for(str(OPEN_TOKEN_ID))) == 1

    def test_liquidity_events_after_transfer_count_for_sender(self, store, handlers, events):
        handlers.handle(events.increase(OPEN_TOKEN_ID, 100))
        handlers.handle(events.transfer(OPEN_TOKEN_ID, ALICE, BOB))
        handlers.handle(events.decrease(OPEN_TOKEN_ID, -100, sender=BOB))

        assert _counters(store.get_account(BOB)) == (0, 1, 1)
        assert store.get_pool(POOL).value.closed_position_count == 1
