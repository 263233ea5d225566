import threading
import time
from unittest.mock import MagicMock

import pytest

from arbbot.executor import ExecutionOrchestrator, ExecutionStatus
from arbbot.quote_engine import PriceAggregator, make_quote
from arbbot.scheduler import CycleScheduler
from arbbot.venues import build_quote_sources

from helpers import (
    BlockingSource,
    RecordingAnalytics,
    ScriptedSubmitter,
    StaticSource,
    make_pair,
    make_venue,
    scenario_a_quotes,
)

BROKEN = make_pair(token_a="0xdead", token_b="0xbeef")
HEALTHY = make_pair()


class FakeAggregator:
    """Returns the same quotes for every pair, except pairs told to fail"""

    def __init__(self, quotes, failing=()):
        self.quotes = quotes
        self.failing = set(failing)
        self.calls = []
        self._lock = threading.Lock()

    def fetch_quotes(self, pair, venues):
        with self._lock:
            self.calls.append(pair.key)
        if pair.key in self.failing:
            raise RuntimeError("venue table corrupted")
        return list(self.quotes)


class GatedAggregator(FakeAggregator):
    def __init__(self, quotes):
        super().__init__(quotes)
        self.entered = threading.Event()
        self.gate = threading.Event()

    def fetch_quotes(self, pair, venues):
        self.entered.set()
        self.gate.wait(10)
        return super().fetch_quotes(pair, venues)


def make_scheduler(aggregator, pairs=(HEALTHY,), **kwargs):
    kwargs.setdefault("interval", 0.01)
    return CycleScheduler(
        pairs=list(pairs),
        venues=[make_venue("X"), make_venue("Y")],
        aggregator=aggregator,
        **kwargs,
    )


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


# =============================================================================
# Single cycle
# =============================================================================

def test_scan_mode_records_without_executing():
    analytics = RecordingAnalytics()
    scheduler = make_scheduler(FakeAggregator(scenario_a_quotes()), analytics=analytics)

    cycle = scheduler.run_cycle()

    assert cycle.opportunities == 1
    assert cycle.executions == 0
    assert cycle.pairs[0].execution is None
    assert analytics.opportunities == [(HEALTHY.key, cycle.pairs[0].opportunity.net_profit_percent)]
    assert analytics.cycles == 1


def test_opportunity_is_executed():
    analytics = RecordingAnalytics()
    orchestrator = ExecutionOrchestrator(ScriptedSubmitter(["0xtx"]), analytics=analytics)
    scheduler = make_scheduler(
        FakeAggregator(scenario_a_quotes()), orchestrator=orchestrator, analytics=analytics
    )

    cycle = scheduler.run_cycle()

    assert cycle.executions == 1
    assert cycle.pairs[0].execution.status == ExecutionStatus.SUCCESS
    assert analytics.executions[0][3] == "0xtx"


def test_no_opportunity_means_no_execution():
    submitter = ScriptedSubmitter([])
    scheduler = make_scheduler(
        FakeAggregator([make_quote("X", "1.00", "0.99", 10000)]),
        orchestrator=ExecutionOrchestrator(submitter),
    )

    cycle = scheduler.run_cycle()

    assert cycle.opportunities == 0
    assert cycle.pairs[0].completed is True
    assert submitter.calls == 0


def test_failing_pair_does_not_affect_others():
    aggregator = FakeAggregator(scenario_a_quotes(), failing=[BROKEN.key])
    scheduler = make_scheduler(aggregator, pairs=(BROKEN, HEALTHY))

    cycle = scheduler.run_cycle()

    by_pair = {r.pair.key: r for r in cycle.pairs}
    assert by_pair[BROKEN.key].completed is False
    assert "corrupted" in by_pair[BROKEN.key].error
    assert by_pair[HEALTHY.key].completed is True
    assert by_pair[HEALTHY.key].opportunity is not None
    assert cycle.failed_pairs == 1


def test_disabled_pairs_are_skipped():
    aggregator = FakeAggregator(scenario_a_quotes())
    scheduler = make_scheduler(aggregator, pairs=(HEALTHY, make_pair(token_a="0x1", enabled=False)))

    scheduler.run_cycle()

    assert aggregator.calls == [HEALTHY.key]


def test_slow_venue_is_dropped_and_cycle_proceeds():
    slow = BlockingSource()
    fast = StaticSource({
        "Y": make_quote("Y", "1.00", "0.99", 10000),
        "Z": make_quote("Z", "1.05", "1.02", 10000),
    })
    aggregator = PriceAggregator({"X": slow, "Y": fast, "Z": fast}, timeout=0.2, cache_ttl=0)
    scheduler = CycleScheduler(
        pairs=[HEALTHY],
        venues=[make_venue("X"), make_venue("Y"), make_venue("Z")],
        aggregator=aggregator,
    )

    try:
        cycle = scheduler.run_cycle()
    finally:
        slow.release.set()

    result = cycle.pairs[0]
    assert result.quotes == 2
    assert result.opportunity.buy_venue == "Y"
    assert result.opportunity.sell_venue == "Z"


def test_second_venue_timing_out_leaves_one_quote():
    slow = BlockingSource()
    fast = StaticSource({"X": make_quote("X", "1.00", "0.99", 10000)})
    aggregator = PriceAggregator({"X": fast, "Y": slow}, timeout=0.2, cache_ttl=0)
    scheduler = make_scheduler(aggregator)

    try:
        result = scheduler.run_pair(HEALTHY)
    finally:
        slow.release.set()

    assert result.completed is True
    assert result.quotes == 1
    assert result.opportunity is None


def test_non_finite_venue_quote_is_never_traded():
    responses = {
        "https://X.example/api/quote": {"priceAtoB": "1.00", "priceBtoA": "0.99", "liquidity": 10000},
        "https://Y.example/api/quote": {"priceAtoB": "1.05", "priceBtoA": "1.02", "liquidity": 10000},
        "https://Z.example/api/quote": {"priceAtoB": 2.0, "priceBtoA": float("inf"), "liquidity": 10000},
    }
    session = MagicMock()
    session.get.side_effect = lambda url, params, timeout: MagicMock(
        **{"json.return_value": responses[url]}
    )
    venues = [make_venue("X"), make_venue("Y"), make_venue("Z")]
    aggregator = PriceAggregator(build_quote_sources(venues, session=session), cache_ttl=0)
    scheduler = CycleScheduler(pairs=[HEALTHY], venues=venues, aggregator=aggregator)

    result = scheduler.run_pair(HEALTHY)

    assert result.completed is True
    assert result.quotes == 2
    assert result.opportunity.sell_venue == "Y"
    assert result.opportunity.net_profit_percent.is_finite()


def test_invalid_concurrency():
    with pytest.raises(ValueError):
        make_scheduler(FakeAggregator([]), max_concurrency=0)


# =============================================================================
# Loop control
# =============================================================================

def test_start_runs_cycles_until_stopped():
    analytics = RecordingAnalytics()
    scheduler = make_scheduler(FakeAggregator(scenario_a_quotes()), analytics=analytics)

    worker = threading.Thread(target=scheduler.start)
    worker.start()
    try:
        assert wait_until(lambda: analytics.cycles >= 2)
    finally:
        scheduler.stop()
        worker.join(5)

    assert not worker.is_alive()
    assert scheduler.running is False


def test_stop_lets_current_cycle_finish():
    analytics = RecordingAnalytics()
    aggregator = GatedAggregator(scenario_a_quotes())
    scheduler = make_scheduler(aggregator, analytics=analytics, interval=60)

    worker = threading.Thread(target=scheduler.start)
    worker.start()
    try:
        assert aggregator.entered.wait(5)
        scheduler.stop()
    finally:
        aggregator.gate.set()
        worker.join(5)

    assert not worker.is_alive()
    assert analytics.cycles == 1
    assert len(analytics.opportunities) == 1


def test_scheduler_restarts_after_stop():
    analytics = RecordingAnalytics()
    scheduler = make_scheduler(FakeAggregator(scenario_a_quotes()), analytics=analytics)

    for expected in (1, 2):
        worker = threading.Thread(target=scheduler.start)
        worker.start()
        try:
            assert wait_until(lambda: analytics.cycles >= expected)
        finally:
            scheduler.stop()
            worker.join(5)
        assert not worker.is_alive()
