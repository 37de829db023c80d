"""
Replay of decoded position-manager events.

Reads JSON Lines records produced by an upstream decoder and feeds them to
the handlers in file order. One record per line:

    {"event": "IncreaseLiquidity", "tx_hash": "0x..", "block_number": 1,
     "block_timestamp": 1620000000, "sender": "0x..", "log_index": 3,
     "token_id": 42, "liquidity": "1000", "amounts": ["10", "20"]}

    {"event": "Transfer", ..., "token_id": 42, "from": "0x..", "to": "0x.."}

Integer fields accept JSON numbers or decimal strings (uint256 values do
not fit a double).
"""
import json
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple, Union

from lp_indexer.config.config import IndexerConfig
from lp_indexer.domain.events import DecreaseLiquidity, EventContext, IncreaseLiquidity, Transfer
from lp_indexer.exceptions import DataError, EventDecodeError
from lp_indexer.monitoring.logger import get_logger
from lp_indexer.positions.handlers import PositionManagerEvent, PositionManagerHandlers
from lp_indexer.positions.outcome import EventStatus

logger = get_logger(__name__)

EVENT_NAMES = ("IncreaseLiquidity", "DecreaseLiquidity", "Transfer")


def _int_field(record: Dict[str, Any], name: str) -> int:
    if name not in record:
        raise EventDecodeError(f"missing field {name!r}")
    value = record[name]
    if isinstance(value, bool):
        raise EventDecodeError(f"field {name!r} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise EventDecodeError(f"field {name!r} must be an integer, got {value!r}") from e


def _str_field(record: Dict[str, Any], name: str) -> str:
    value = record.get(name)
    if not isinstance(value, str) or not value:
        raise EventDecodeError(f"field {name!r} must be a non-empty string")
    return value


def _address_field(record: Dict[str, Any], name: str) -> str:
    # Account ids are keyed on lowercase hex
    return _str_field(record, name).lower()


def _amounts(record: Dict[str, Any]) -> Tuple[int, ...]:
    raw = record.get("amounts")
    if raw is None:
        # Two-token pools may use amount0 / amount1 like the ABI
        raw = [record.get("amount0", 0), record.get("amount1", 0)]
    if not isinstance(raw, list):
        raise EventDecodeError("field 'amounts' must be a list")
    try:
        return tuple(int(v) for v in raw)
    except (TypeError, ValueError) as e:
        raise EventDecodeError(f"field 'amounts' must hold integers, got {raw!r}") from e


def decode_event(record: Dict[str, Any], config: Optional[IndexerConfig] = None) -> PositionManagerEvent:
    """
    Build an event from one decoded record.

    Raises:
        EventDecodeError: If the record is malformed or of an unknown type
    """
    config = config or IndexerConfig()
    if not isinstance(record, dict):
        raise EventDecodeError(f"record must be an object, got {type(record).__name__}")

    name = record.get("event")
    if name not in EVENT_NAMES:
        raise EventDecodeError(f"unknown event type {name!r}")

    context = EventContext(
        transaction_hash=_str_field(record, "tx_hash"),
        block_number=_int_field(record, "block_number"),
        block_timestamp=_int_field(record, "block_timestamp"),
        sender=_address_field(record, "sender"),
        log_index=_int_field(record, "log_index") if "log_index" in record else 0,
    )
    token_id = _int_field(record, "token_id")

    if name == "Transfer":
        return Transfer(
            context=context,
            token_id=token_id,
            from_address=_address_field(record, "from"),
            to_address=_address_field(record, "to"),
        )

    liquidity = _int_field(record, "liquidity")
    amounts = _amounts(record)
    if name == "IncreaseLiquidity":
        return IncreaseLiquidity(context=context, token_id=token_id, liquidity=liquidity, amounts=amounts)

    if config.decrease_liquidity_is_magnitude:
        liquidity = -abs(liquidity)
    return DecreaseLiquidity(context=context, token_id=token_id, liquidity=liquidity, amounts=amounts)


def iter_lines(path: Union[str, Path]) -> Iterator[Tuple[int, str]]:
    """Yield (line number, text) for each non-blank line of a JSONL file."""
    with open(path, "r") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if line:
                yield line_no, line


def parse_record(line: str) -> Dict[str, Any]:
    try:
        return json.loads(line)
    except json.JSONDecodeError as e:
        raise EventDecodeError(f"invalid JSON ({e.msg})") from e


@dataclass
class ReplaySummary:
    """Counts collected over one replay run."""
    processed: int = 0
    applied: int = 0
    skipped: int = 0
    position_not_found: int = 0
    pool_not_found: int = 0
    decode_errors: int = 0
    out_of_order: int = 0
    transitions: Counter = field(default_factory=Counter)

    def record(self, status: EventStatus, transition: str) -> None:
        self.processed += 1
        if status == EventStatus.APPLIED:
            self.applied += 1
            if transition != "none":
                self.transitions[transition] += 1
        elif status == EventStatus.SKIPPED:
            self.skipped += 1
        elif status == EventStatus.POSITION_NOT_FOUND:
            self.position_not_found += 1
        elif status == EventStatus.POOL_NOT_FOUND:
            self.pool_not_found += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "applied": self.applied,
            "skipped": self.skipped,
            "position_not_found": self.position_not_found,
            "pool_not_found": self.pool_not_found,
            "decode_errors": self.decode_errors,
            "out_of_order": self.out_of_order,
            "transitions": dict(self.transitions),
        }


class EventProcessor:
    """Feeds decoded records to the handlers strictly in order."""

    def __init__(self, handlers: PositionManagerHandlers, config: Optional[IndexerConfig] = None):
        self.handlers = handlers
        self.config = config or IndexerConfig()
        self._last_ordinal: Optional[Tuple[int, int]] = None

    def process_record(self, record: Dict[str, Any], summary: ReplaySummary) -> None:
        event = decode_event(record, self.config)
        ordinal = event.context.ordinal
        if self._last_ordinal is not None and ordinal < self._last_ordinal:
            # Still applied; counters assume ledger order so flag it
            summary.out_of_order += 1
            logger.warning("EVENT_OUT_OF_ORDER", ordinal=ordinal, previous=self._last_ordinal)
        self._last_ordinal = ordinal
        outcome = self.handlers.handle(event)
        summary.record(outcome.status, outcome.transition.value)

    def replay(self, path: Union[str, Path], stop_on_error: bool = False) -> ReplaySummary:
        """
        Replay a JSONL file.

        Malformed records are logged and skipped unless `stop_on_error`.
        Storage failures always propagate.
        """
        summary = ReplaySummary()
        for line_no, line in iter_lines(path):
            try:
                self.process_record(parse_record(line), summary)
            except DataError as e:
                summary.decode_errors += 1
                logger.warning("EVENT_DECODE_FAILED", line=line_no, error=str(e))
                if stop_on_error:
                    raise
        logger.info("REPLAY_COMPLETED", path=str(path), **summary.to_dict())
        return summary
