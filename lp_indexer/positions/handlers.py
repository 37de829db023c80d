"""
Position manager event handlers.

Entry points for IncreaseLiquidity, DecreaseLiquidity and Transfer events.
Each handler resolves every record it needs, computes all new values on
private copies, collects them into one ChangeSet and hands that to the store
in a single `apply` call. An aborted handler applies nothing.
"""
from typing import List, Optional, Tuple, Union

from lp_indexer.config.config import IndexerConfig
from lp_indexer.constants import DEFAULT_PROTOCOL_ID, ZERO_ADDRESS
from lp_indexer.domain.events import DecreaseLiquidity, EventContext, IncreaseLiquidity, Transfer
from lp_indexer.domain.models import Account, Pool, Position, Protocol, Token
from lp_indexer.domain.protocols import ChangeSet, EntityStore, NotFound
from lp_indexer.monitoring.logger import event_log_context, get_logger
from lp_indexer.positions.lifecycle import Transition, apply_transition, close_transition, open_transition
from lp_indexer.positions.outcome import EventOutcome, EventStatus
from lp_indexer.positions.snapshots import take_position_snapshot
from lp_indexer.positions.transfer import handle_transfer
from lp_indexer.positions.valuation import (
    liquidity_usd,
    sum_int_lists_by_index,
    usd_value_from_native_tokens,
)

logger = get_logger(__name__)

LiquidityEvent = Union[IncreaseLiquidity, DecreaseLiquidity]
PositionManagerEvent = Union[IncreaseLiquidity, DecreaseLiquidity, Transfer]


class PositionManagerHandlers:
    """
    Stateless event handlers bound to a store and a protocol handle.

    The protocol id is owned by the indexing run that constructs this object;
    nothing here keeps module-level state.
    """

    def __init__(
        self,
        store: EntityStore,
        protocol_id: str = DEFAULT_PROTOCOL_ID,
        zero_address: str = ZERO_ADDRESS,
        snapshots_enabled: bool = True,
    ):
        self.store = store
        self.protocol_id = protocol_id
        self.zero_address = zero_address
        self.snapshots_enabled = snapshots_enabled

    def handle(self, event: PositionManagerEvent) -> EventOutcome:
        """Dispatch an event to its handler."""
        if isinstance(event, IncreaseLiquidity):
            handler = self.handle_increase_liquidity
        elif isinstance(event, DecreaseLiquidity):
            handler = self.handle_decrease_liquidity
        elif isinstance(event, Transfer):
            handler = self.handle_transfer
        else:
            raise TypeError(f"Unsupported event type: {type(event).__name__}")

        ctx = event.context
        with event_log_context(ctx.transaction_hash, ctx.block_number, ctx.log_index):
            return handler(event)

    def handle_increase_liquidity(self, event: IncreaseLiquidity) -> EventOutcome:
        resolved = self._resolve(event.context, event.token_id, handler="increase_liquidity")
        if isinstance(resolved, EventOutcome):
            return resolved
        position, pool, account, protocol = resolved

        # Open / re-open is decided on the pre-event liquidity
        transition = open_transition(position)
        apply_transition(transition, position, pool, account, protocol, event.context)

        tokens = self._tokens(event.context, pool)
        position.liquidity = position.liquidity + event.liquidity
        position.liquidity_usd = liquidity_usd(position.liquidity, pool)
        position.cumulative_deposit_token_amounts = sum_int_lists_by_index([
            position.cumulative_deposit_token_amounts,
            list(event.amounts),
        ])
        position.cumulative_deposit_usd = usd_value_from_native_tokens(
            tokens, position.cumulative_deposit_token_amounts
        )
        position.deposit_count += 1

        return self._commit(event.context, transition, position, pool, account, protocol)

    def handle_decrease_liquidity(self, event: DecreaseLiquidity) -> EventOutcome:
        resolved = self._resolve(event.context, event.token_id, handler="decrease_liquidity")
        if isinstance(resolved, EventOutcome):
            return resolved
        position, pool, account, protocol = resolved

        tokens = self._tokens(event.context, pool)
        position.liquidity = position.liquidity + event.liquidity
        position.liquidity_usd = liquidity_usd(position.liquidity, pool)
        position.cumulative_withdraw_token_amounts = sum_int_lists_by_index([
            position.cumulative_withdraw_token_amounts,
            list(event.amounts),
        ])
        position.cumulative_withdraw_usd = usd_value_from_native_tokens(
            tokens, position.cumulative_withdraw_token_amounts
        )
        position.withdraw_count += 1

        # Close is decided on the post-event liquidity
        transition = close_transition(position)
        apply_transition(transition, position, pool, account, protocol, event.context)

        return self._commit(event.context, transition, position, pool, account, protocol)

    def handle_transfer(self, event: Transfer) -> EventOutcome:
        return handle_transfer(self.store, event, zero_address=self.zero_address)

    # ========== INTERNALS ==========

    def _resolve(
        self, ctx: EventContext, token_id: int, handler: str
    ) -> Union[EventOutcome, Tuple[Position, Pool, Account, Protocol]]:
        """Resolve the records a liquidity event touches, or the abort outcome."""
        account = self.store.get_or_create_account(ctx.sender)

        resolved_position = self.store.get_or_create_position(ctx, token_id)
        if isinstance(resolved_position, NotFound):
            logger.error(
                "POSITION_NOT_FOUND",
                handler=handler,
                tx_hash=ctx.transaction_hash,
                token_id=str(token_id),
            )
            return EventOutcome(status=EventStatus.POSITION_NOT_FOUND)
        position = resolved_position.value

        resolved_pool = self.store.get_pool(position.pool)
        if isinstance(resolved_pool, NotFound):
            logger.warning("POOL_NOT_FOUND", handler=handler, position_id=position.id, pool=position.pool)
            return EventOutcome(status=EventStatus.POOL_NOT_FOUND, position_id=position.id)

        protocol = self.store.get_or_create_protocol(self.protocol_id)
        return position, resolved_pool.value, account, protocol

    def _tokens(self, ctx: EventContext, pool: Pool) -> List[Token]:
        return [self.store.get_or_create_token(ctx, address) for address in pool.input_tokens]

    def _commit(
        self,
        ctx: EventContext,
        transition: Transition,
        position: Position,
        pool: Pool,
        account: Account,
        protocol: Protocol,
    ) -> EventOutcome:
        change_set = ChangeSet()
        change_set.add_pool(pool)
        change_set.add_account(account)
        change_set.add_position(position)
        change_set.set_protocol(protocol)
        if self.snapshots_enabled:
            change_set.add_snapshot(take_position_snapshot(position, ctx))

        self.store.apply(change_set)

        if transition != Transition.NONE:
            logger.info(
                "POSITION_TRANSITION",
                transition=transition.value,
                position_id=position.id,
                pool=pool.id,
                account=account.id,
                tx_hash=ctx.transaction_hash,
            )
        return EventOutcome(
            status=EventStatus.APPLIED,
            transition=transition,
            position_id=position.id,
            change_set=change_set,
        )


def build_handlers(store: EntityStore, config: Optional[IndexerConfig] = None) -> PositionManagerHandlers:
    """Construct handlers from indexer configuration (or defaults)."""
    if config is None:
        return PositionManagerHandlers(store)
    return PositionManagerHandlers(
        store,
        protocol_id=config.protocol_id,
        zero_address=config.zero_address,
        snapshots_enabled=config.snapshots_enabled,
    )
