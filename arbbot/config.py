# arbbot/config.py
"""
Arbitrage Bot Configuration
Defaults for the scan/execute pipeline, overridable from config/.env
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# -----------------------------
# Paths
# -----------------------------
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / "config" / ".env"

PAIRS_FILE = BASE_DIR / "config" / "pairs.json"
VENUES_FILE = BASE_DIR / "config" / "venues.json"
ANALYTICS_FILE = BASE_DIR / "logs" / "analytics.json"
LOG_DIR = BASE_DIR / "logs"

# -----------------------------
# Chain Configuration
# -----------------------------
CHAIN_ID = 137
GAS_LIMIT_ARBITRAGE = 500_000
MIN_GAS_BALANCE = Decimal("0.1")   # Native token needed before trading starts

# -----------------------------
# Scan Configuration
# -----------------------------
SCAN_INTERVAL_SECONDS = 3.0       # Time between cycles
MAX_CONCURRENT_PAIRS = 4          # Pairs processed in parallel per cycle

# -----------------------------
# Quote Configuration
# -----------------------------
QUOTE_TIMEOUT_SECONDS = 5.0       # Per-venue request timeout
QUOTE_CACHE_TTL_SECONDS = 5.0     # Reuse a pair's quotes for this long

# -----------------------------
# Trading Parameters
# -----------------------------
# Never consume more than 5% of either side's reported depth in one trade
LIQUIDITY_FRACTION = 0.05

# -----------------------------
# Execution / Retry
# -----------------------------
MAX_EXECUTION_ATTEMPTS = 3
RETRY_BACKOFF_SECONDS = 1.0       # Sleep = backoff * attempt number

# Circuit breakers
MAX_CONSECUTIVE_FAILURES = 5
FAILURE_COOLDOWN_SECONDS = 60.0

# -----------------------------
# Logging
# -----------------------------
LOG_LEVEL = "INFO"

# -----------------------------
# Deployment Mode
# -----------------------------
DRY_RUN_MODE = True               # Set False for real execution


@dataclass(frozen=True)
class Settings:
    """Runtime settings, loaded once at startup"""
    rpc_url: Optional[str] = None
    public_address: Optional[str] = None
    private_key: Optional[str] = None
    arbitrage_contract: Optional[str] = None
    chain_id: int = CHAIN_ID
    gas_limit: int = GAS_LIMIT_ARBITRAGE
    min_gas_balance: Decimal = MIN_GAS_BALANCE

    scan_interval_seconds: float = SCAN_INTERVAL_SECONDS
    max_concurrent_pairs: int = MAX_CONCURRENT_PAIRS
    quote_timeout_seconds: float = QUOTE_TIMEOUT_SECONDS
    quote_cache_ttl_seconds: float = QUOTE_CACHE_TTL_SECONDS
    liquidity_fraction: float = LIQUIDITY_FRACTION
    max_execution_attempts: int = MAX_EXECUTION_ATTEMPTS
    retry_backoff_seconds: float = RETRY_BACKOFF_SECONDS
    max_consecutive_failures: int = MAX_CONSECUTIVE_FAILURES
    failure_cooldown_seconds: float = FAILURE_COOLDOWN_SECONDS

    dry_run: bool = DRY_RUN_MODE
    pairs_file: Path = PAIRS_FILE
    venues_file: Path = VENUES_FILE
    analytics_file: Path = ANALYTICS_FILE
    log_dir: Path = LOG_DIR
    log_level: str = LOG_LEVEL

    def require_rpc(self) -> str:
        if not self.rpc_url:
            raise RuntimeError("RPC_URL not set in .env")
        return self.rpc_url

    def require_wallet(self) -> None:
        """Execution needs a signer and a target contract"""
        if not self.public_address:
            raise RuntimeError("PUBLIC_ADDRESS not set in .env")
        if not self.private_key:
            raise RuntimeError("PRIVATE_KEY not set in .env")
        if not self.arbitrage_contract:
            raise RuntimeError("ARBITRAGE_CONTRACT not set in .env")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_number(name: str, default, cast):
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return cast(value)
    except (ValueError, InvalidOperation):
        raise RuntimeError(f"{name}={value!r} is not a valid {cast.__name__}")


def load_settings(env_path: Optional[Path] = None) -> Settings:
    """
    Load settings from the environment
    A missing .env file is fine: plain environment variables still apply
    """
    env_path = Path(env_path) if env_path else ENV_PATH
    if env_path.exists():
        load_dotenv(env_path)

    return Settings(
        rpc_url=os.getenv("RPC_URL"),
        public_address=os.getenv("PUBLIC_ADDRESS"),
        private_key=os.getenv("PRIVATE_KEY"),
        arbitrage_contract=os.getenv("ARBITRAGE_CONTRACT"),
        chain_id=_env_number("CHAIN_ID", CHAIN_ID, int),
        gas_limit=_env_number("GAS_LIMIT", GAS_LIMIT_ARBITRAGE, int),
        min_gas_balance=_env_number("MIN_GAS_BALANCE", MIN_GAS_BALANCE, Decimal),
        scan_interval_seconds=_env_number("SCAN_INTERVAL_SECONDS", SCAN_INTERVAL_SECONDS, float),
        max_concurrent_pairs=_env_number("MAX_CONCURRENT_PAIRS", MAX_CONCURRENT_PAIRS, int),
        quote_timeout_seconds=_env_number("QUOTE_TIMEOUT_SECONDS", QUOTE_TIMEOUT_SECONDS, float),
        quote_cache_ttl_seconds=_env_number("QUOTE_CACHE_TTL_SECONDS", QUOTE_CACHE_TTL_SECONDS, float),
        liquidity_fraction=_env_number("LIQUIDITY_FRACTION", LIQUIDITY_FRACTION, float),
        max_execution_attempts=_env_number("MAX_EXECUTION_ATTEMPTS", MAX_EXECUTION_ATTEMPTS, int),
        retry_backoff_seconds=_env_number("RETRY_BACKOFF_SECONDS", RETRY_BACKOFF_SECONDS, float),
        max_consecutive_failures=_env_number("MAX_CONSECUTIVE_FAILURES", MAX_CONSECUTIVE_FAILURES, int),
        failure_cooldown_seconds=_env_number("FAILURE_COOLDOWN_SECONDS", FAILURE_COOLDOWN_SECONDS, float),
        dry_run=_env_bool("DRY_RUN_MODE", DRY_RUN_MODE),
        pairs_file=Path(os.getenv("PAIRS_FILE", PAIRS_FILE)),
        venues_file=Path(os.getenv("VENUES_FILE", VENUES_FILE)),
        analytics_file=Path(os.getenv("ANALYTICS_FILE", ANALYTICS_FILE)),
        log_dir=Path(os.getenv("LOG_DIR", LOG_DIR)),
        log_level=os.getenv("LOG_LEVEL", LOG_LEVEL).upper(),
    )
