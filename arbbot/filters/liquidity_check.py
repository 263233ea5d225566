# arbbot/filters/liquidity_check.py

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from typing import Optional


@dataclass
class LiquidityResult:
    ok: bool
    amount: int
    limit: Decimal
    limited_by: str
    reason: str = ""


def liquidity_guard(
    *,
    buy_liquidity: Decimal,
    sell_liquidity: Decimal,
    buy_max_amount: Optional[Decimal],
    sell_max_amount: Optional[Decimal],
    pair_max_amount: Optional[Decimal],
    liquidity_fraction,
) -> LiquidityResult:
    """
    Trade size = floor of the tightest of:
    each side's depth * liquidity_fraction, each venue's max amount,
    and the pair's configured ceiling (None = unbounded)
    """
    fraction = Decimal(str(liquidity_fraction))

    bounds = [
        ("buy liquidity", buy_liquidity * fraction),
        ("sell liquidity", sell_liquidity * fraction),
    ]
    if buy_max_amount is not None:
        bounds.append(("buy venue max", buy_max_amount))
    if sell_max_amount is not None:
        bounds.append(("sell venue max", sell_max_amount))
    if pair_max_amount is not None:
        bounds.append(("pair max", pair_max_amount))

    # First bound wins ties
    limited_by, limit = min(bounds, key=lambda b: b[1])
    amount = int(limit.to_integral_value(rounding=ROUND_FLOOR))

    if amount <= 0:
        return LiquidityResult(
            ok=False,
            amount=0,
            limit=limit,
            limited_by=limited_by,
            reason=f"Trade size {limit} ({limited_by}) rounds to zero",
        )

    return LiquidityResult(
        ok=True,
        amount=amount,
        limit=limit,
        limited_by=limited_by,
    )

