"""
Counter and position-state invariants.

Invariants checked:
1. Pool / Account: open + closed == position_count
2. Pool / Account / Protocol: no negative counters
3. Protocol: open <= cumulative
4. Protocol open count equals the sum of pool open counts
5. Position: liquidity >= 0, closure stamps only while liquidity == 0

Handlers never check these inline; the monitor runs over a store snapshot
(CLI `verify`, end-of-replay check, tests).
"""
from typing import Iterable, List, Optional

from lp_indexer.domain.models import Account, Pool, Position, Protocol
from lp_indexer.domain.protocols import EntityStore
from lp_indexer.exceptions import InvariantError
from lp_indexer.monitoring.logger import get_logger

logger = get_logger(__name__)


def check_invariant(condition: bool, message: str) -> None:
    """Assert an invariant. Raises InvariantError if false."""
    if not condition:
        logger.critical("INVARIANT_VIOLATION", detail=message)
        raise InvariantError(message)


def _counter_violations(kind: str, entity) -> List[str]:
    violations = []
    if entity.open_position_count + entity.closed_position_count != entity.position_count:
        violations.append(
            f"{kind} {entity.id}: open ({entity.open_position_count}) + closed "
            f"({entity.closed_position_count}) != position_count ({entity.position_count})"
        )
    for name in ("open_position_count", "closed_position_count", "position_count"):
        if getattr(entity, name) < 0:
            violations.append(f"{kind} {entity.id}: negative {name} ({getattr(entity, name)})")
    return violations


def find_violations(
    pools: Iterable[Pool],
    accounts: Iterable[Account],
    protocol: Optional[Protocol],
    positions: Iterable[Position] = (),
) -> List[str]:
    """Return a human-readable line per violated invariant (empty when consistent)."""
    violations: List[str] = []
    pools = list(pools)

    for pool in pools:
        violations.extend(_counter_violations("pool", pool))
    for account in accounts:
        violations.extend(_counter_violations("account", account))

    if protocol is not None:
        if protocol.open_position_count < 0:
            violations.append(f"protocol {protocol.id}: negative open_position_count")
        if protocol.open_position_count > protocol.cumulative_position_count:
            violations.append(
                f"protocol {protocol.id}: open ({protocol.open_position_count}) > "
                f"cumulative ({protocol.cumulative_position_count})"
            )
        pool_open = sum(p.open_position_count for p in pools)
        if pools and pool_open != protocol.open_position_count:
            violations.append(
                f"protocol {protocol.id}: open ({protocol.open_position_count}) != "
                f"sum of pool open counts ({pool_open})"
            )

    for position in positions:
        if position.liquidity < 0:
            violations.append(f"position {position.id}: negative liquidity ({position.liquidity})")
        if position.hash_closed is not None and position.liquidity != 0:
            violations.append(f"position {position.id}: closure stamp set while liquidity is {position.liquidity}")

    return violations


def verify_store(store: EntityStore, protocol_id: str) -> List[str]:
    """Run every invariant over the current contents of `store`."""
    return find_violations(
        pools=store.list_pools(),
        accounts=store.list_accounts(),
        protocol=store.get_or_create_protocol(protocol_id),
        positions=store.list_positions(),
    )


def assert_consistent(store: EntityStore, protocol_id: str) -> None:
    """Raise InvariantError on the first violation found in `store`."""
    violations = verify_store(store, protocol_id)
    for line in violations[1:]:
        logger.error("INVARIANT_VIOLATION", detail=line)
    check_invariant(not violations, violations[0] if violations else "")
