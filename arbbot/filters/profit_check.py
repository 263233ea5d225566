# arbbot/filters/profit_check.py

from dataclasses import dataclass
from decimal import Decimal


@dataclass
class ProfitResult:
    ok: bool
    gross_profit_percent: Decimal
    fee_percent: Decimal
    net_profit_percent: Decimal
    reason: str = ""


def profit_guard(
    *,
    buy_price: Decimal,
    sell_price: Decimal,
    expected_fee: Decimal,
    amount: int,
    min_profit_percent: Decimal,
) -> ProfitResult:
    """
    buy_price  = what the buy venue charges (priceAtoB)
    sell_price = what the sell venue pays (priceBtoA)
    expected_fee is absolute, in the same units as amount
    """
    gross_profit_percent = (sell_price - buy_price) / buy_price * 100
    fee_percent = Decimal(expected_fee) / Decimal(amount) * 100
    net_profit_percent = gross_profit_percent - fee_percent

    if net_profit_percent < min_profit_percent:
        return ProfitResult(
            ok=False,
            gross_profit_percent=gross_profit_percent,
            fee_percent=fee_percent,
            net_profit_percent=net_profit_percent,
            reason=f"Net profit {net_profit_percent:.4f}% < {min_profit_percent}%",
        )

    return ProfitResult(
        ok=True,
        gross_profit_percent=gross_profit_percent,
        fee_percent=fee_percent,
        net_profit_percent=net_profit_percent,
    )
