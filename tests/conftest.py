import pytest

from helpers import make_pair

ENV_NAMES = (
    "RPC_URL", "PUBLIC_ADDRESS", "PRIVATE_KEY", "ARBITRAGE_CONTRACT", "CHAIN_ID",
    "GAS_LIMIT", "MIN_GAS_BALANCE", "SCAN_INTERVAL_SECONDS", "MAX_CONCURRENT_PAIRS", "QUOTE_TIMEOUT_SECONDS",
    "QUOTE_CACHE_TTL_SECONDS", "LIQUIDITY_FRACTION", "MAX_EXECUTION_ATTEMPTS",
    "RETRY_BACKOFF_SECONDS", "MAX_CONSECUTIVE_FAILURES", "FAILURE_COOLDOWN_SECONDS",
    "DRY_RUN_MODE", "PAIRS_FILE", "VENUES_FILE", "ANALYTICS_FILE", "LOG_DIR", "LOG_LEVEL",
)


@pytest.fixture
def pair():
    return make_pair()


@pytest.fixture
def sleeps():
    """Records backoff delays instead of sleeping"""
    delays = []
    return delays


@pytest.fixture
def clean_env(monkeypatch):
    """Unset every setting; values loaded from .env files are removed afterwards too"""
    for name in ENV_NAMES:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch
