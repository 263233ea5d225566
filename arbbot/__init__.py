# arbbot/__init__.py
"""
Cross-Venue Arbitrage Bot
Watches several venues per token pair and executes profitable spreads

Modules:
- config: Configuration and environment
- pairs: Pair and venue registry
- venues: Per-transport quote sources (HTTP API, on-chain pools)
- quote_engine: Concurrent quote aggregation with a short cache
- detector: Opportunity detection
- submitter: Trade submission to the arbitrage contract
- executor: Per-pair serialized execution with retries
- analytics: Opportunity/execution history
- scheduler: Fixed-interval cycle driver
- main: Entry point
"""

__version__ = "1.0.0"

from arbbot.detector import Opportunity, detect_opportunity
from arbbot.executor import ExecutionOrchestrator, ExecutionStatus
from arbbot.pairs import PairConfig, VenueConfig
from arbbot.quote_engine import PriceAggregator, Quote
from arbbot.scheduler import CycleScheduler

__all__ = [
    "Opportunity",
    "detect_opportunity",
    "ExecutionOrchestrator",
    "ExecutionStatus",
    "PairConfig",
    "VenueConfig",
    "PriceAggregator",
    "Quote",
    "CycleScheduler",
]
