# arbbot/detector.py
"""
Opportunity Detector
Turns one pair's quote set into at most one arbitrage opportunity

Pure functions: no I/O, no shared state. The same quotes and pair config
always produce the same result.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from arbbot.config import LIQUIDITY_FRACTION
from arbbot.filters.liquidity_check import liquidity_guard
from arbbot.filters.profit_check import profit_guard
from arbbot.pairs import PairConfig
from arbbot.quote_engine import Quote


@dataclass(frozen=True)
class Opportunity:
    """Buy token A on one venue, sell it on another"""
    token_a: str
    token_b: str
    buy_venue: str
    sell_venue: str
    buy_price: Decimal
    sell_price: Decimal
    amount: int                        # smallest units, floor-rounded
    gross_profit_percent: Decimal
    net_profit_percent: Decimal
    min_profit_absolute: Decimal       # floor the execution layer must enforce
    expected_fee: Decimal

    @property
    def pair(self) -> Tuple[str, str]:
        return (self.token_a, self.token_b)

    @property
    def label(self) -> str:
        return f"{self.token_a}/{self.token_b}"

    @property
    def expected_profit(self) -> Decimal:
        return Decimal(self.amount) * self.net_profit_percent / 100


@dataclass(frozen=True)
class Detection:
    """Detector verdict: an opportunity, or why there is none"""
    opportunity: Optional[Opportunity]
    reason: str
    gross_profit_percent: Optional[Decimal] = None

    def __str__(self) -> str:
        status = "FOUND" if self.opportunity else "NONE"
        return f"{status}: {self.reason}"


def find_best_prices(quotes: Sequence[Quote]) -> Tuple[Quote, Quote]:
    """
    (best buy, best sell): lowest priceAtoB, highest priceBtoA
    min/max keep the first of equal candidates, so ties follow venue order
    """
    best_buy = min(quotes, key=lambda q: q.price_a_to_b)
    best_sell = max(quotes, key=lambda q: q.price_b_to_a)
    return best_buy, best_sell


def evaluate_opportunity(
    quotes: List[Quote],
    pair: PairConfig,
    liquidity_fraction=LIQUIDITY_FRACTION,
) -> Detection:
    """
    Checks:
    1. At least two quotes
    2. Trade size bounded by liquidity and configured maximums
    3. Net profit (after absolute fees) meets the pair's threshold
    """
    if len(quotes) < 2:
        return Detection(
            opportunity=None,
            reason=f"Need at least 2 quotes, have {len(quotes)}",
        )

    best_buy, best_sell = find_best_prices(quotes)

    # =========================================================
    # Trade size
    # =========================================================
    liquidity = liquidity_guard(
        buy_liquidity=best_buy.liquidity,
        sell_liquidity=best_sell.liquidity,
        buy_max_amount=best_buy.max_amount,
        sell_max_amount=best_sell.max_amount,
        pair_max_amount=pair.max_amount,
        liquidity_fraction=liquidity_fraction,
    )

    if not liquidity.ok:
        return Detection(
            opportunity=None,
            reason=f"Liquidity guard failed: {liquidity.reason}",
        )

    # =========================================================
    # Profit after fees
    # =========================================================
    expected_fee = best_buy.fee + best_sell.fee

    profit = profit_guard(
        buy_price=best_buy.price_a_to_b,
        sell_price=best_sell.price_b_to_a,
        expected_fee=expected_fee,
        amount=liquidity.amount,
        min_profit_percent=pair.min_profit_percent,
    )

    if not profit.ok:
        return Detection(
            opportunity=None,
            reason=f"Profit guard failed: {profit.reason}",
            gross_profit_percent=profit.gross_profit_percent,
        )

    min_profit_absolute = (
        Decimal(str(pair.min_profit_percent)) / 100
        * best_buy.price_a_to_b
        * liquidity.amount
    )

    opportunity = Opportunity(
        token_a=pair.token_a,
        token_b=pair.token_b,
        buy_venue=best_buy.venue,
        sell_venue=best_sell.venue,
        buy_price=best_buy.price_a_to_b,
        sell_price=best_sell.price_b_to_a,
        amount=liquidity.amount,
        gross_profit_percent=profit.gross_profit_percent,
        net_profit_percent=profit.net_profit_percent,
        min_profit_absolute=min_profit_absolute,
        expected_fee=expected_fee,
    )

    return Detection(
        opportunity=opportunity,
        reason=f"Net {profit.net_profit_percent:.4f}% >= {pair.min_profit_percent}% "
               f"(size limited by {liquidity.limited_by})",
        gross_profit_percent=profit.gross_profit_percent,
    )


def detect_opportunity(
    quotes: List[Quote],
    pair: PairConfig,
    liquidity_fraction=LIQUIDITY_FRACTION,
) -> Optional[Opportunity]:
    return evaluate_opportunity(quotes, pair, liquidity_fraction).opportunity


def format_opportunity(opp: Opportunity) -> str:
    """Format opportunity for logging"""
    return (
        f"{opp.label}: buy on {opp.buy_venue} @ {opp.buy_price}, "
        f"sell on {opp.sell_venue} @ {opp.sell_price}, "
        f"amount {opp.amount}, gross {opp.gross_profit_percent:.4f}%, "
        f"net {opp.net_profit_percent:.4f}%"
    )
