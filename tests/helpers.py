import threading
from decimal import Decimal

from arbbot.pairs import PairConfig, VenueConfig
from arbbot.quote_engine import make_quote
from arbbot.submitter import ExecutionSubmitter

TOKEN_A = "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270"
TOKEN_B = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"


def make_pair(min_profit="0.3", max_amount=None, token_a=TOKEN_A, token_b=TOKEN_B, enabled=True):
    return PairConfig(
        token_a=token_a,
        token_b=token_b,
        min_profit_percent=Decimal(min_profit),
        max_amount=Decimal(str(max_amount)) if max_amount is not None else None,
        enabled=enabled,
    )


def make_venue(name, venue_type="api", enabled=True, **kwargs):
    if venue_type == "api":
        kwargs.setdefault("api_url", f"https://{name}.example/api")
    return VenueConfig(name=name, type=venue_type, enabled=enabled, **kwargs)


def scenario_a_quotes():
    return [
        make_quote("X", "1.00", "0.99", 10000, fee=0),
        make_quote("Y", "1.05", "1.02", 10000, fee=0),
    ]


class StaticSource:
    """Quote source answering from a venue -> quote (or exception) map"""

    def __init__(self, answers):
        self.answers = answers
        self.calls = []
        self._lock = threading.Lock()

    def fetch_quote(self, venue, token_a, token_b, timeout):
        with self._lock:
            self.calls.append((venue.name, token_a, token_b, timeout))
        answer = self.answers[venue.name]
        if isinstance(answer, Exception):
            raise answer
        return answer


class BlockingSource:
    """Never answers until released"""

    def __init__(self):
        self.release = threading.Event()

    def fetch_quote(self, venue, token_a, token_b, timeout):
        self.release.wait(10)
        return make_quote(venue.name, "1", "1", 1000)


class ScriptedSubmitter(ExecutionSubmitter):
    """Replays a list of outcomes: exceptions are raised, strings returned"""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    def submit(self, opportunity):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingAnalytics:
    def __init__(self):
        self.opportunities = []
        self.executions = []
        self.cycles = 0

    def record_opportunity(self, pair, profit_percent):
        self.opportunities.append((pair, profit_percent))

    def record_execution(self, pair, amount, profit, tx_id):
        self.executions.append((pair, amount, profit, tx_id))

    def record_cycle(self):
        self.cycles += 1
