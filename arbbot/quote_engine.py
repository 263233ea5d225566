# arbbot/quote_engine.py
"""
Multi-Venue Quote Aggregation
Fetches quotes for a pair from every enabled venue in parallel,
drops venues that fail or time out, and caches the result briefly
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from arbbot.config import QUOTE_CACHE_TTL_SECONDS, QUOTE_TIMEOUT_SECONDS
from arbbot.pairs import PairConfig, VenueConfig

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Quote:
    """Single venue quote for a pair"""
    venue: str
    price_a_to_b: Decimal   # what the venue charges for A, in B
    price_b_to_a: Decimal   # what the venue pays for A, in B
    liquidity: Decimal      # reported depth, smallest units
    max_amount: Optional[Decimal]  # None = unbounded
    fee: Decimal            # absolute fee, input token smallest units
    fetched_at: float

    def __post_init__(self):
        numbers = [self.price_a_to_b, self.price_b_to_a, self.liquidity, self.fee]
        if self.max_amount is not None:
            numbers.append(self.max_amount)
        # Decimal accepts Infinity/NaN, and NaN cannot be ordered
        if not all(n.is_finite() for n in numbers):
            raise ValueError(f"{self.venue}: non-finite quote value")
        if self.price_a_to_b <= 0 or self.price_b_to_a <= 0:
            raise ValueError(f"{self.venue}: prices must be positive")
        if self.liquidity < 0:
            raise ValueError(f"{self.venue}: negative liquidity")
        if self.max_amount is not None and self.max_amount <= 0:
            raise ValueError(f"{self.venue}: maxAmount must be positive")
        if self.fee < 0:
            raise ValueError(f"{self.venue}: negative fee")


def make_quote(
    venue: str,
    price_a_to_b,
    price_b_to_a,
    liquidity,
    max_amount=None,
    fee=0,
    fetched_at: Optional[float] = None,
) -> Quote:
    """Build a Quote from raw numbers (ints, floats, strings or Decimals)"""
    return Quote(
        venue=venue,
        price_a_to_b=Decimal(str(price_a_to_b)),
        price_b_to_a=Decimal(str(price_b_to_a)),
        liquidity=Decimal(str(liquidity)),
        max_amount=Decimal(str(max_amount)) if max_amount is not None else None,
        fee=Decimal(str(fee)),
        fetched_at=fetched_at if fetched_at is not None else time.time(),
    )


@dataclass(frozen=True)
class _CacheEntry:
    stored_at: float
    quotes: Tuple[Quote, ...]


# =============================================================================
# PRICE AGGREGATOR
# =============================================================================

class PriceAggregator:
    """
    Concurrent quote fetcher with a per-pair cache

    sources maps venue name -> object with
    fetch_quote(venue, token_a, token_b, timeout) -> Quote
    """

    def __init__(
        self,
        sources: Dict[str, object],
        timeout: float = QUOTE_TIMEOUT_SECONDS,
        cache_ttl: float = QUOTE_CACHE_TTL_SECONDS,
        clock=time.monotonic,
    ):
        self.sources = dict(sources)
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self._clock = clock
        self._cache: Dict[Tuple[str, str], _CacheEntry] = {}
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, key: Tuple[str, str]) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _cached(self, key: Tuple[str, str]) -> Optional[List[Quote]]:
        if self.cache_ttl <= 0:
            return None
        entry = self._cache.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at >= self.cache_ttl:
            return None
        return list(entry.quotes)

    def invalidate(self, pair: PairConfig) -> None:
        with self._lock_for(pair.key):
            self._cache.pop(pair.key, None)

    def fetch_quotes(self, pair: PairConfig, venues: List[VenueConfig]) -> List[Quote]:
        """
        Quotes for a pair from all enabled venues
        Result order follows the venue list, whatever order responses arrive in
        """
        key = pair.key
        with self._lock_for(key):
            cached = self._cached(key)
            if cached is not None:
                logger.debug(f"{pair.label}: using {len(cached)} cached quotes")
                return cached

            quotes = self._fetch_all(pair, venues)

            if quotes and self.cache_ttl > 0:
                self._cache[key] = _CacheEntry(self._clock(), tuple(quotes))
            return quotes

    def _fetch_all(self, pair: PairConfig, venues: List[VenueConfig]) -> List[Quote]:
        active = [v for v in venues if v.enabled and v.name in self.sources]
        if not active:
            return []

        # Parallel quote fetching; stragglers are abandoned, not awaited
        executor = ThreadPoolExecutor(
            max_workers=len(active),
            thread_name_prefix=f"quotes-{pair.token_a}-{pair.token_b}",
        )
        try:
            future_to_venue = {
                executor.submit(
                    self.sources[venue.name].fetch_quote,
                    venue, pair.token_a, pair.token_b, self.timeout,
                ): venue
                for venue in active
            }
            done, _ = wait(future_to_venue, timeout=self.timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        by_venue: Dict[str, Quote] = {}
        for future, venue in future_to_venue.items():
            if future not in done:
                logger.warning(f"{pair.label}: {venue.name} timed out after {self.timeout}s")
                continue
            try:
                quote = future.result()
            except Exception as e:
                logger.warning(f"{pair.label}: {venue.name} quote failed: {e}")
                continue
            if not isinstance(quote, Quote):
                logger.warning(f"{pair.label}: {venue.name} returned malformed quote {quote!r}")
                continue
            by_venue[venue.name] = quote

        return [by_venue[v.name] for v in active if v.name in by_venue]
