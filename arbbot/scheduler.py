# arbbot/scheduler.py
"""
Cycle Scheduler
Runs quote -> detect -> execute for every enabled pair on a fixed
interval, pairs in parallel, each pair's failures kept to itself
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional

from arbbot.config import LIQUIDITY_FRACTION, MAX_CONCURRENT_PAIRS, SCAN_INTERVAL_SECONDS
from arbbot.detector import Opportunity, evaluate_opportunity, format_opportunity
from arbbot.executor import ExecutionOrchestrator, ExecutionResult, ExecutionStatus
from arbbot.pairs import PairConfig, VenueConfig, enabled_pairs, enabled_venues
from arbbot.quote_engine import PriceAggregator

logger = logging.getLogger(__name__)


@dataclass
class PairCycleResult:
    """What one pair's pipeline did this cycle"""
    pair: PairConfig
    completed: bool
    quotes: int = 0
    opportunity: Optional[Opportunity] = None
    execution: Optional[ExecutionResult] = None
    error: str = ""


@dataclass
class CycleResult:
    """Result of one scheduler cycle"""
    started_at: float
    duration_ms: float
    pairs: List[PairCycleResult] = field(default_factory=list)

    @property
    def opportunities(self) -> int:
        return sum(1 for r in self.pairs if r.opportunity is not None)

    @property
    def executions(self) -> int:
        return sum(
            1 for r in self.pairs
            if r.execution is not None and r.execution.status == ExecutionStatus.SUCCESS
        )

    @property
    def failed_pairs(self) -> int:
        return sum(1 for r in self.pairs if not r.completed)


class CycleScheduler:
    """
    Drives the pipeline until stopped

    With no orchestrator the scheduler only detects and records
    opportunities (scan mode).
    """

    def __init__(
        self,
        pairs: List[PairConfig],
        venues: List[VenueConfig],
        aggregator: PriceAggregator,
        orchestrator: Optional[ExecutionOrchestrator] = None,
        analytics=None,
        interval: float = SCAN_INTERVAL_SECONDS,
        max_concurrency: int = MAX_CONCURRENT_PAIRS,
        liquidity_fraction: float = LIQUIDITY_FRACTION,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.pairs = enabled_pairs(pairs)
        self.venues = enabled_venues(venues)
        self.aggregator = aggregator
        self.orchestrator = orchestrator
        self.analytics = analytics
        self.interval = interval
        self.max_concurrency = max_concurrency
        self.liquidity_fraction = liquidity_fraction
        self._stop_event = threading.Event()
        self.running = False

    # -------------------------------------------------------------------------
    # One pair
    # -------------------------------------------------------------------------

    def _pipeline(self, pair: PairConfig) -> PairCycleResult:
        quotes = self.aggregator.fetch_quotes(pair, self.venues)

        detection = evaluate_opportunity(quotes, pair, self.liquidity_fraction)
        if detection.opportunity is None:
            logger.debug(f"{pair.label}: no opportunity ({detection.reason})")
            return PairCycleResult(pair=pair, completed=True, quotes=len(quotes))

        opportunity = detection.opportunity
        logger.info(f"PROFITABLE {format_opportunity(opportunity)}")

        if self.analytics is not None:
            self.analytics.record_opportunity(opportunity.pair, opportunity.net_profit_percent)

        execution = None
        if self.orchestrator is not None:
            execution = self.orchestrator.execute(opportunity)

        return PairCycleResult(
            pair=pair,
            completed=True,
            quotes=len(quotes),
            opportunity=opportunity,
            execution=execution,
        )

    def run_pair(self, pair: PairConfig) -> PairCycleResult:
        """Pipeline for one pair; exceptions end here"""
        try:
            return self._pipeline(pair)
        except Exception as e:
            logger.exception(f"{pair.label}: pair cycle failed: {e}")
            return PairCycleResult(pair=pair, completed=False, error=str(e))

    # -------------------------------------------------------------------------
    # One cycle
    # -------------------------------------------------------------------------

    def run_cycle(self) -> CycleResult:
        start = time.time()
        results: List[PairCycleResult] = []

        if self.pairs:
            workers = min(self.max_concurrency, len(self.pairs))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pair") as executor:
                futures = [executor.submit(self.run_pair, pair) for pair in self.pairs]
                for future in as_completed(futures):
                    results.append(future.result())

        cycle = CycleResult(
            started_at=start,
            duration_ms=(time.time() - start) * 1000,
            pairs=results,
        )

        if self.analytics is not None:
            self.analytics.record_cycle()

        logger.info(
            f"Cycle done: {len(self.pairs)} pairs, {cycle.opportunities} opportunities, "
            f"{cycle.executions} executed, {cycle.failed_pairs} failed "
            f"({cycle.duration_ms:.0f}ms)"
        )
        return cycle

    # -------------------------------------------------------------------------
    # Loop
    # -------------------------------------------------------------------------

    def start(self):
        """
        Main loop, blocks until stop()
        The stop flag is checked between cycles; a running cycle always finishes
        """
        self._stop_event.clear()
        logger.info(
            f"Scheduler starting: {len(self.pairs)} pairs, {len(self.venues)} venues, "
            f"every {self.interval}s"
        )
        self.running = True

        try:
            while not self._stop_event.is_set():
                self.run_cycle()
                self._stop_event.wait(self.interval)
        finally:
            self.running = False
            logger.info("Scheduler stopped.")

    def stop(self):
        logger.info("Stop requested, finishing current cycle...")
        self._stop_event.set()
