"""
Operator seeding of pools, tokens and position metadata.

Seed files are YAML:

    tokens:
      - id: "0xa0b8..."
        symbol: USDC
        decimals: 6
        last_price_usd: "1.0"
    pools:
      - id: "0x88e6..."
        input_tokens: ["0xa0b8...", "0xc02a..."]
        total_liquidity: "1000000"
        total_liquidity_usd: "2500000.00"
    positions:
      - token_id: 1
        pool: "0x88e6..."
        tick_lower: -887220
        tick_upper: 887220

Large integers and USD values should be quoted.
"""
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from lp_indexer.domain.models import Pool, PositionMetadata, Token
from lp_indexer.exceptions import DataError
from lp_indexer.monitoring.logger import get_logger

logger = get_logger(__name__)


def load_seed_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a YAML seed document."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Seed file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise DataError(f"Invalid seed YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise DataError(f"Seed file {path} must contain a mapping")
    return data


def _decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise DataError(f"{name} must be a decimal, got {value!r}") from e


def _optional_int(entry: Dict[str, Any], name: str):
    value = entry.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise DataError(f"{name} must be an integer, got {value!r}") from e


def _entries(data: Dict[str, Any], section: str) -> List[Dict[str, Any]]:
    entries = data.get(section) or []
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        raise DataError(f"seed section {section!r} must be a list of mappings")
    return entries


def _token(entry: Dict[str, Any]) -> Token:
    if not entry.get("id"):
        raise DataError(f"token entry without id: {entry!r}")
    price = entry.get("last_price_usd")
    return Token(
        id=str(entry["id"]),
        symbol=entry.get("symbol"),
        decimals=_optional_int(entry, "decimals"),
        last_price_usd=_decimal(price, "last_price_usd") if price is not None else None,
    )


def _pool(entry: Dict[str, Any]) -> Pool:
    if not entry.get("id"):
        raise DataError(f"pool entry without id: {entry!r}")
    input_tokens = entry.get("input_tokens") or []
    if not isinstance(input_tokens, list):
        raise DataError(f"pool {entry['id']}: input_tokens must be a list")
    return Pool(
        id=str(entry["id"]),
        input_tokens=[str(t) for t in input_tokens],
        total_liquidity=_optional_int(entry, "total_liquidity") or 0,
        total_liquidity_usd=_decimal(entry.get("total_liquidity_usd", "0"), "total_liquidity_usd"),
    )


def _metadata(entry: Dict[str, Any]) -> PositionMetadata:
    token_id = _optional_int(entry, "token_id")
    if token_id is None or not entry.get("pool"):
        raise DataError(f"position entry needs token_id and pool: {entry!r}")
    return PositionMetadata(
        token_id=token_id,
        pool=str(entry["pool"]),
        tick_lower=_optional_int(entry, "tick_lower"),
        tick_upper=_optional_int(entry, "tick_upper"),
    )


def apply_seed(store, data: Dict[str, Any]) -> Dict[str, int]:
    """
    Register seed entries with a store.

    Every entry is validated before anything is written, so a malformed file
    seeds nothing.

    Args:
        store: Any store exposing seed_token / seed_pool / register_position_metadata
        data: Parsed seed document

    Returns:
        Count of entries written per section
    """
    tokens = [_token(e) for e in _entries(data, "tokens")]
    pools = [_pool(e) for e in _entries(data, "pools")]
    positions = [_metadata(e) for e in _entries(data, "positions")]

    for token in tokens:
        store.seed_token(token)
    for pool in pools:
        store.seed_pool(pool)
    for metadata in positions:
        store.register_position_metadata(metadata)

    counts = {"tokens": len(tokens), "pools": len(pools), "positions": len(positions)}
    logger.info("SEED_APPLIED", **counts)
    return counts
