"""
Cumulative valuation of position token amounts.

Converts raw per-token integer amounts into USD using each token's decimals
and last known price. Scaling, products and sums run in a wide decimal
context that traps `Inexact`, so a USD value is either exact or rejected
with a DataError. Only the pool share in `liquidity_usd` is a division and
is rounded to VALUATION_PRECISION digits. Recomputation from the same inputs
is bit-identical either way.
"""
from decimal import Context, Decimal, DivisionByZero, Inexact, InvalidOperation, Overflow, localcontext
from typing import List, Sequence

from lp_indexer.constants import BIGDECIMAL_ZERO, VALUATION_PRECISION
from lp_indexer.domain.models import Pool, Token
from lp_indexer.exceptions import DataError

_EXACT_CONTEXT = Context(
    prec=VALUATION_PRECISION,
    traps=[InvalidOperation, DivisionByZero, Overflow, Inexact],
)
_DIVISION_CONTEXT = Context(prec=VALUATION_PRECISION)


def convert_token_to_decimal(amount: int, decimals: int | None) -> Decimal:
    """
    Scale a raw token amount down by its decimals.

    Tokens with zero or unknown decimals are returned unscaled.
    """
    if not decimals:
        return Decimal(amount)
    with localcontext(_EXACT_CONTEXT):
        return Decimal(amount).scaleb(-decimals)


def safe_div(amount0: Decimal, amount1: Decimal) -> Decimal:
    """Divide, yielding zero when the divisor is zero."""
    if amount1 == BIGDECIMAL_ZERO:
        return BIGDECIMAL_ZERO
    with localcontext(_DIVISION_CONTEXT):
        return amount0 / amount1


def sum_int_lists_by_index(lists: Sequence[Sequence[int]]) -> List[int]:
    """
    Elementwise sum of equal-length integer sequences.

    Lengths are a data contract with the pool's token count and are not
    re-checked here.
    """
    if not lists:
        return []
    total = [0] * len(lists[0])
    for values in lists:
        for i, value in enumerate(values):
            total[i] += value
    return total


def usd_value_from_native_tokens(tokens: Sequence[Token], amounts: Sequence[int]) -> Decimal:
    """
    USD value of per-token raw amounts.

    A token without a last price contributes zero instead of failing the sum.

    Raises:
        DataError: If a price carries more digits than the value can hold exactly
    """
    usd_value = BIGDECIMAL_ZERO
    try:
        with localcontext(_EXACT_CONTEXT):
            for token, amount in zip(tokens, amounts):
                if token.last_price_usd is None:
                    continue
                amount_converted = convert_token_to_decimal(amount, token.decimals)
                usd_value = usd_value + amount_converted * token.last_price_usd
    except Inexact as e:
        raise DataError(f"USD value of {list(amounts)} is not representable in {VALUATION_PRECISION} digits") from e
    return usd_value


def liquidity_usd(liquidity: int, pool: Pool) -> Decimal:
    """Share of the pool's USD liquidity held by `liquidity` units; zero for an empty pool."""
    share = safe_div(Decimal(liquidity), Decimal(pool.total_liquidity))
    with localcontext(_DIVISION_CONTEXT):
        return share * pool.total_liquidity_usd
