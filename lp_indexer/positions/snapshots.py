"""Point-in-time position snapshots."""
from lp_indexer.domain.events import EventContext
from lp_indexer.domain.models import Position, PositionSnapshot


def snapshot_id(position_id: str, event: EventContext) -> str:
    return f"{position_id}-{event.transaction_hash}-{event.log_index}"


def take_position_snapshot(position: Position, event: EventContext) -> PositionSnapshot:
    """Copy the post-update fields of `position` into an immutable snapshot."""
    return PositionSnapshot(
        id=snapshot_id(position.id, event),
        position=position.id,
        hash=event.transaction_hash,
        log_index=event.log_index,
        block_number=event.block_number,
        timestamp=event.block_timestamp,
        account=position.account,
        pool=position.pool,
        liquidity=position.liquidity,
        liquidity_usd=position.liquidity_usd,
        cumulative_deposit_token_amounts=tuple(position.cumulative_deposit_token_amounts),
        cumulative_withdraw_token_amounts=tuple(position.cumulative_withdraw_token_amounts),
        cumulative_deposit_usd=position.cumulative_deposit_usd,
        cumulative_withdraw_usd=position.cumulative_withdraw_usd,
        deposit_count=position.deposit_count,
        withdraw_count=position.withdraw_count,
    )
