# arbbot/analytics.py
"""
Run Analytics
Records detected opportunities and executions without blocking the
pipeline: the JSON history file is written from a background thread
"""

import json
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


def _pair_label(pair: Tuple[str, str]) -> str:
    return f"{pair[0]}/{pair[1]}"


class AnalyticsRecorder:
    """Track bot performance and persist the trade history"""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self.start_time = datetime.now()
        self.cycle_count = 0
        self.opportunities = []
        self.executions = []
        self.profits = []
        self.best_profit_percent = Decimal(0)
        self._lock = threading.Lock()
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="analytics")
        self._closed = False
        self._load()

    def _load(self):
        if self.path is None or not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self.opportunities = list(data.get("opportunities", []))
            self.executions = list(data.get("executions", []))
            self.profits = list(data.get("profits", []))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read analytics file {self.path} ({e}), starting fresh")

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    def record_cycle(self):
        with self._lock:
            self.cycle_count += 1

    def record_opportunity(self, pair: Tuple[str, str], profit_percent: Decimal):
        with self._lock:
            self.opportunities.append({
                "timestamp": datetime.now().isoformat(),
                "pair": _pair_label(pair),
                "profitPercentage": str(profit_percent),
            })
            if Decimal(profit_percent) > self.best_profit_percent:
                self.best_profit_percent = Decimal(profit_percent)
        self._schedule_save()

    def record_execution(self, pair: Tuple[str, str], amount: int, profit: Decimal, tx_id: str):
        with self._lock:
            self.executions.append({
                "timestamp": datetime.now().isoformat(),
                "pair": _pair_label(pair),
                "amount": amount,
                "profit": str(profit),
                "txId": tx_id,
            })
            self.profits.append(str(profit))
        self._schedule_save()

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _snapshot(self) -> dict:
        with self._lock:
            return {
                "opportunities": list(self.opportunities),
                "executions": list(self.executions),
                "profits": list(self.profits),
            }

    def _schedule_save(self):
        if self.path is None or self._closed:
            return
        try:
            self._writer.submit(self._write, self._snapshot())
        except RuntimeError:
            logger.debug("Analytics writer closed, record kept in memory only")

    def _write(self, snapshot: dict):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to save analytics: {e}")

    def close(self):
        """Flush pending writes"""
        self._closed = True
        self._writer.shutdown(wait=True)

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def get_stats(self) -> dict:
        with self._lock:
            total_profit = sum((Decimal(p) for p in self.profits), Decimal(0))
            executions = len(self.executions)
            opportunities = len(self.opportunities)
            return {
                "total_cycles": self.cycle_count,
                "total_opportunities": opportunities,
                "total_executions": executions,
                "total_profit": total_profit,
                "avg_profit": total_profit / len(self.profits) if self.profits else Decimal(0),
                "success_rate": (executions / opportunities * 100) if opportunities else 0.0,
                "best_profit_percent": self.best_profit_percent,
            }

    def get_summary(self) -> str:
        stats = self.get_stats()
        runtime = datetime.now() - self.start_time

        return (
            f"\n{'='*60}\n"
            f"BOT STATISTICS\n"
            f"{'='*60}\n"
            f"Runtime: {runtime}\n"
            f"Cycles: {stats['total_cycles']}\n"
            f"Opportunities Found: {stats['total_opportunities']}\n"
            f"Executions: {stats['total_executions']} ({stats['success_rate']:.1f}%)\n"
            f"Total Expected Profit: {stats['total_profit']:.4f}\n"
            f"Best Opportunity: {stats['best_profit_percent']:.4f}%\n"
            f"{'='*60}\n"
        )
