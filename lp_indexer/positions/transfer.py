"""
Ownership transfer of position NFTs.

Moves one position between two Account aggregates. Pool and Protocol
counters are never touched: a transfer does not open or close anything.
"""
from lp_indexer.constants import ZERO_ADDRESS
from lp_indexer.domain.events import Transfer
from lp_indexer.domain.protocols import ChangeSet, EntityStore, NotFound
from lp_indexer.monitoring.logger import get_logger
from lp_indexer.positions.lifecycle import is_closed
from lp_indexer.positions.outcome import EventOutcome, EventStatus

logger = get_logger(__name__)


def handle_transfer(store: EntityStore, event: Transfer, zero_address: str = ZERO_ADDRESS) -> EventOutcome:
    """
    Apply a position NFT transfer.

    Transfers from the zero address are mints; the increase-liquidity path
    already accounts for them.
    """
    if event.from_address.lower() == zero_address.lower():
        return EventOutcome(status=EventStatus.SKIPPED)

    ctx = event.context
    resolved = store.get_or_create_position(ctx, event.token_id)
    if isinstance(resolved, NotFound):
        logger.error(
            "POSITION_NOT_FOUND",
            handler="transfer",
            tx_hash=ctx.transaction_hash,
            token_id=str(event.token_id),
        )
        return EventOutcome(status=EventStatus.POSITION_NOT_FOUND)
    position = resolved.value

    account = store.get_or_create_account(event.to_address)
    if event.from_address == event.to_address:
        old_account = account
    else:
        old_account = store.get_or_create_account(event.from_address)

    account.position_count += 1
    old_account.position_count -= 1

    if is_closed(position):
        account.closed_position_count += 1
        old_account.closed_position_count -= 1
    else:
        account.open_position_count += 1
        old_account.open_position_count -= 1

    position.account = event.to_address

    change_set = ChangeSet()
    change_set.add_account(account)
    change_set.add_account(old_account)
    change_set.add_position(position)
    store.apply(change_set)

    logger.debug(
        "POSITION_TRANSFERRED",
        position_id=position.id,
        from_address=event.from_address,
        to_address=event.to_address,
        closed=is_closed(position),
    )
    return EventOutcome(status=EventStatus.APPLIED, position_id=position.id, change_set=change_set)
