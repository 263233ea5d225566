# arbbot/main.py
"""
Arbitrage Bot Main Loop

THIS IS THE ENTRY POINT - Run with: python -m arbbot.main

MODES:
1. scan: Detect and record opportunities only (safe)
2. simulate: Detect + eth_call the arbitrage contract (safe)
3. execute: Real trading (requires DRY_RUN_MODE=false)
4. test: One cycle in scan mode, then print statistics
"""

import argparse
import logging
import signal
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import requests

from arbbot.analytics import AnalyticsRecorder
from arbbot.config import Settings, load_settings
from arbbot.executor import ExecutionOrchestrator
from arbbot.pairs import VENUE_TYPE_ONCHAIN, VenueConfig, enabled_venues, load_pairs, load_venues
from arbbot.quote_engine import PriceAggregator
from arbbot.rpc_health import RPCHealth, check_gas_balance, connect
from arbbot.scheduler import CycleScheduler
from arbbot.submitter import DryRunSubmitter, ExecutionSubmitter, Web3Submitter
from arbbot.venues import build_quote_sources

logger = logging.getLogger(__name__)


# =============================================================================
# BOT MODES
# =============================================================================

class BotMode:
    SCAN_ONLY = "scan"           # Just observe, no execution
    SIMULATE = "simulate"        # Observe + simulate trades
    EXECUTE = "execute"          # Real execution (requires DRY_RUN_MODE=false)
    TEST = "test"                # Single scan cycle


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging(log_dir: Path, level: str = "INFO"):
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s | %(levelname)-8s | %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_dir / f"bot_{datetime.now().strftime('%Y%m%d')}.log"),
        ]
    )


# =============================================================================
# WIRING
# =============================================================================

def needs_web3(mode: str, venues: List[VenueConfig]) -> bool:
    if mode in (BotMode.SIMULATE, BotMode.EXECUTE):
        return True
    return any(v.type == VENUE_TYPE_ONCHAIN for v in venues)


def build_submitter(mode: str, settings: Settings, w3, venues: List[VenueConfig]) -> Optional[ExecutionSubmitter]:
    """None means detect-only"""
    if mode in (BotMode.SCAN_ONLY, BotMode.TEST):
        return None

    if mode == BotMode.EXECUTE and settings.dry_run:
        logger.warning("DRY_RUN_MODE is on - trades will be logged, not sent")
        return DryRunSubmitter()

    settings.require_wallet()
    balance = check_gas_balance(w3, settings.public_address, settings.min_gas_balance)
    logger.info(f"Gas balance: {balance:.4f}")

    venue_addresses = {v.name: v.address for v in venues if v.address}

    return Web3Submitter(
        w3=w3,
        contract_address=settings.arbitrage_contract,
        public_address=settings.public_address,
        private_key=settings.private_key,
        venue_addresses=venue_addresses,
        chain_id=settings.chain_id,
        gas_limit=settings.gas_limit,
        simulate_only=(mode == BotMode.SIMULATE),
    )


def build_scheduler(settings: Settings, mode: str, analytics: AnalyticsRecorder) -> CycleScheduler:
    pairs = load_pairs(settings.pairs_file)
    venues = enabled_venues(load_venues(settings.venues_file))

    w3 = None
    if needs_web3(mode, venues):
        rpc_url = settings.require_rpc()
        logger.info(f"Connecting to RPC: {rpc_url}")
        w3 = connect(rpc_url)

        ok, status = RPCHealth(w3).check()
        if not ok:
            raise RuntimeError(f"RPC unhealthy: {status}")
        logger.info(f"RPC healthy: {status}")

    sources = build_quote_sources(venues, w3=w3, session=requests.Session())
    aggregator = PriceAggregator(
        sources,
        timeout=settings.quote_timeout_seconds,
        cache_ttl=settings.quote_cache_ttl_seconds,
    )

    orchestrator = None
    submitter = build_submitter(mode, settings, w3, venues)
    if submitter is not None:
        orchestrator = ExecutionOrchestrator(
            submitter,
            analytics=analytics,
            max_attempts=settings.max_execution_attempts,
            backoff_seconds=settings.retry_backoff_seconds,
            max_consecutive_failures=settings.max_consecutive_failures,
            cooldown_seconds=settings.failure_cooldown_seconds,
        )

    return CycleScheduler(
        pairs=pairs,
        venues=venues,
        aggregator=aggregator,
        orchestrator=orchestrator,
        analytics=analytics,
        interval=settings.scan_interval_seconds,
        max_concurrency=settings.max_concurrent_pairs,
        liquidity_fraction=settings.liquidity_fraction,
    )


# =============================================================================
# ENTRY POINT
# =============================================================================

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Cross-venue Arbitrage Bot")
    parser.add_argument(
        "--mode",
        choices=[BotMode.SCAN_ONLY, BotMode.SIMULATE, BotMode.EXECUTE, BotMode.TEST],
        default=BotMode.SCAN_ONLY,
        help="Bot mode: scan (observe only), simulate, execute (real trades), test (single cycle)"
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: config/.env)"
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point"""
    args = parse_args(argv)
    settings = load_settings(args.env_file)
    setup_logging(settings.log_dir, settings.log_level)

    logger.info("=" * 60)
    logger.info("ARBITRAGE BOT STARTING")
    logger.info(f"Mode: {args.mode}")
    logger.info("=" * 60)

    analytics = AnalyticsRecorder(settings.analytics_file)

    try:
        scheduler = build_scheduler(settings, args.mode, analytics)
    except RuntimeError as e:
        logger.error(f"Startup failed: {e}")
        analytics.close()
        return 1

    def _handle_shutdown(signum, frame):
        logger.info("Shutdown signal received...")
        scheduler.stop()

    signal.signal(signal.SIGINT, _handle_shutdown)
    signal.signal(signal.SIGTERM, _handle_shutdown)

    try:
        if args.mode == BotMode.TEST:
            scheduler.run_cycle()
        else:
            scheduler.start()
    finally:
        analytics.close()
        logger.info(analytics.get_summary())
        logger.info("Bot stopped.")

    return 0


if __name__ == "__main__":
    sys.exit(main())
