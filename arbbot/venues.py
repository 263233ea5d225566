# arbbot/venues.py
"""
Venue Quote Sources
One implementation per venue transport, all exposing
fetch_quote(venue, token_a, token_b, timeout) -> Quote
"""

import abc
import time
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

import requests
from web3 import Web3

from arbbot.pairs import VENUE_TYPE_API, VENUE_TYPE_ONCHAIN, VenueConfig
from arbbot.quote_engine import Quote

# Sample size for API quotes (smallest units of token A)
DEFAULT_QUOTE_AMOUNT = 1_000_000_000

# =============================================================================
# PAIR ABI (Universal for V2 forks)
# =============================================================================

PAIR_ABI = [
    {
        "name": "getReserves",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {"name": "reserve0", "type": "uint112"},
            {"name": "reserve1", "type": "uint112"},
            {"name": "blockTimestampLast", "type": "uint32"},
        ],
    },
    {
        "name": "token0",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
]


class QuoteError(Exception):
    """Venue answered, but not with a usable quote"""


def _to_decimal(data: dict, key: str, venue: str) -> Decimal:
    try:
        value = Decimal(str(data[key]))
    except KeyError:
        raise QuoteError(f"{venue}: response missing {key}")
    except (InvalidOperation, TypeError, ValueError):
        raise QuoteError(f"{venue}: bad {key} value {data.get(key)!r}")
    if not value.is_finite():
        raise QuoteError(f"{venue}: non-finite {key} value {data[key]!r}")
    return value


class QuoteSource(abc.ABC):
    @abc.abstractmethod
    def fetch_quote(
        self,
        venue: VenueConfig,
        token_a: str,
        token_b: str,
        timeout: float,
    ) -> Quote:
        """Produce a Quote or raise"""
        raise NotImplementedError


# =============================================================================
# HTTP API VENUES
# =============================================================================

def parse_api_quote(venue: VenueConfig, data: dict, fetched_at: Optional[float] = None) -> Quote:
    """
    Turn a venue's JSON quote into a Quote

    Accepts explicit priceAtoB/priceBtoA, or derives them from the
    inAmount/outAmount of a swap quote.
    """
    if not isinstance(data, dict):
        raise QuoteError(f"{venue.name}: expected a JSON object, got {type(data).__name__}")

    if "priceAtoB" in data and "priceBtoA" in data:
        price_a_to_b = _to_decimal(data, "priceAtoB", venue.name)
        price_b_to_a = _to_decimal(data, "priceBtoA", venue.name)
        max_amount = data.get("maxAmount")
    else:
        in_amount = _to_decimal(data, "inAmount", venue.name)
        out_amount = _to_decimal(data, "outAmount", venue.name)
        if in_amount <= 0 or out_amount <= 0:
            raise QuoteError(f"{venue.name}: empty swap quote")
        price_a_to_b = out_amount / in_amount
        price_b_to_a = in_amount / out_amount
        max_amount = data.get("maxAmount", data["inAmount"])

    liquidity = _to_decimal(data, "liquidity", venue.name)

    fee = data.get("feeAmount", data.get("fee"))

    try:
        fee = Decimal(str(fee)) if fee is not None else venue.fee
        return Quote(
            venue=venue.name,
            price_a_to_b=price_a_to_b,
            price_b_to_a=price_b_to_a,
            liquidity=liquidity,
            max_amount=Decimal(str(max_amount)) if max_amount is not None else None,
            fee=fee,
            fetched_at=fetched_at if fetched_at is not None else time.time(),
        )
    except (ValueError, InvalidOperation) as e:
        raise QuoteError(str(e))


class ApiQuoteSource(QuoteSource):
    """Aggregator-style venue answering GET {api_url}/quote"""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        quote_amount: int = DEFAULT_QUOTE_AMOUNT,
    ):
        self.session = session or requests.Session()
        self.quote_amount = quote_amount

    def fetch_quote(self, venue, token_a, token_b, timeout):
        response = self.session.get(
            f"{venue.api_url.rstrip('/')}/quote",
            params={
                "inputMint": token_a,
                "outputMint": token_b,
                "amount": self.quote_amount,
            },
            timeout=timeout,
        )
        response.raise_for_status()
        try:
            data = response.json()
        except ValueError:
            raise QuoteError(f"{venue.name}: response is not JSON")
        return parse_api_quote(venue, data)


# =============================================================================
# ON-CHAIN VENUES
# =============================================================================

class OnChainQuoteSource(QuoteSource):
    """
    Reads V2-style pool reserves through web3

    The call timeout lives on the web3 provider; the aggregator still
    bounds how long it waits for the answer.
    """

    def __init__(self, w3: Web3):
        self.w3 = w3
        self._pair_cache: Dict[str, object] = {}
        self._token0_cache: Dict[str, str] = {}

    def _get_pair(self, pool: str):
        """Get cached pair contract"""
        if pool not in self._pair_cache:
            self._pair_cache[pool] = self.w3.eth.contract(
                address=Web3.to_checksum_address(pool),
                abi=PAIR_ABI,
            )
        return self._pair_cache[pool]

    def _token0(self, pool: str, contract) -> str:
        if pool not in self._token0_cache:
            self._token0_cache[pool] = contract.functions.token0().call()
        return self._token0_cache[pool]

    def fetch_quote(self, venue, token_a, token_b, timeout):
        pool = venue.pool_for(token_a, token_b)
        if not pool:
            raise QuoteError(f"{venue.name}: no pool configured for {token_a}/{token_b}")

        contract = self._get_pair(pool)
        r0, r1, _ = contract.functions.getReserves().call()
        token0 = self._token0(pool, contract).lower()

        if token0 == token_a.lower():
            reserve_a, reserve_b = r0, r1
        elif token0 == token_b.lower():
            reserve_a, reserve_b = r1, r0
        else:
            raise QuoteError(f"{venue.name}: pool {pool} does not hold {token_a}")

        if reserve_a <= 0 or reserve_b <= 0:
            raise QuoteError(f"{venue.name}: pool {pool} is empty")

        mid = Decimal(reserve_b) / Decimal(reserve_a)
        fee_rate = Decimal(venue.fee_bps) / Decimal(10000)

        return Quote(
            venue=venue.name,
            price_a_to_b=mid / (1 - fee_rate),
            price_b_to_a=mid * (1 - fee_rate),
            liquidity=Decimal(reserve_a),
            max_amount=None,
            fee=venue.fee,
            fetched_at=time.time(),
        )


# =============================================================================
# FACTORY
# =============================================================================

def build_quote_source(
    venue: VenueConfig,
    w3: Optional[Web3] = None,
    session: Optional[requests.Session] = None,
) -> QuoteSource:
    if venue.type == VENUE_TYPE_API:
        return ApiQuoteSource(session=session)
    if venue.type == VENUE_TYPE_ONCHAIN:
        if w3 is None:
            raise RuntimeError(f"Venue {venue.name} needs a web3 connection")
        return OnChainQuoteSource(w3)
    raise RuntimeError(f"Venue {venue.name}: unknown type {venue.type!r}")


def build_quote_sources(
    venues: List[VenueConfig],
    w3: Optional[Web3] = None,
    session: Optional[requests.Session] = None,
) -> Dict[str, QuoteSource]:
    """One source per enabled venue, keyed by venue name"""
    session = session or requests.Session()
    onchain = OnChainQuoteSource(w3) if w3 is not None else None
    sources: Dict[str, QuoteSource] = {}
    for venue in venues:
        if not venue.enabled:
            continue
        if venue.type == VENUE_TYPE_ONCHAIN and onchain is not None:
            sources[venue.name] = onchain
        else:
            sources[venue.name] = build_quote_source(venue, w3=w3, session=session)
    return sources
