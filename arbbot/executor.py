# arbbot/executor.py
"""
Execution Orchestrator
Serializes execution per pair and retries transient submission failures

Per-pair state machine:
    IDLE -> SUBMITTING -> SUCCESS -> IDLE
                       -> RETRYING -> SUBMITTING
                       -> FAILED -> IDLE
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional, Tuple

from arbbot.config import (
    FAILURE_COOLDOWN_SECONDS,
    MAX_CONSECUTIVE_FAILURES,
    MAX_EXECUTION_ATTEMPTS,
    RETRY_BACKOFF_SECONDS,
)
from arbbot.detector import Opportunity
from arbbot.submitter import ExecutionSubmitter, TransientExecutionError

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS & DATA CLASSES
# =============================================================================

class ExecutionStatus(Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    RETRYING = "retrying"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ExecutionState:
    """Execution bookkeeping for one pair"""
    in_flight: bool = False
    status: ExecutionStatus = ExecutionStatus.IDLE
    last_attempt_at: Optional[float] = None
    consecutive_failures: int = 0


@dataclass
class ExecutionResult:
    """Result of an execution attempt cycle"""
    status: ExecutionStatus
    pair: Tuple[str, str]
    tx_id: Optional[str] = None
    attempts: int = 0
    error: str = ""
    execution_time_ms: float = 0


class _PairSlot:
    __slots__ = ("lock", "state")

    def __init__(self):
        self.lock = threading.Lock()
        self.state = ExecutionState()


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class ExecutionOrchestrator:
    """
    At most one submission per pair at a time; a second opportunity for a
    busy pair is dropped, not queued
    """

    def __init__(
        self,
        submitter: ExecutionSubmitter,
        analytics=None,
        max_attempts: int = MAX_EXECUTION_ATTEMPTS,
        backoff_seconds: float = RETRY_BACKOFF_SECONDS,
        max_consecutive_failures: int = MAX_CONSECUTIVE_FAILURES,
        cooldown_seconds: float = FAILURE_COOLDOWN_SECONDS,
        sleep=time.sleep,
        clock=time.time,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.submitter = submitter
        self.analytics = analytics
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.max_consecutive_failures = max_consecutive_failures
        self.cooldown_seconds = cooldown_seconds
        self._sleep = sleep
        self._clock = clock
        self._slots: Dict[Tuple[str, str], _PairSlot] = {}
        self._slots_guard = threading.Lock()

    def _slot(self, pair: Tuple[str, str]) -> _PairSlot:
        with self._slots_guard:
            slot = self._slots.get(pair)
            if slot is None:
                slot = self._slots[pair] = _PairSlot()
            return slot

    def state_for(self, pair: Tuple[str, str]) -> ExecutionState:
        """Snapshot of a pair's state"""
        slot = self._slot(pair)
        with slot.lock:
            return replace(slot.state)

    def _set_status(self, slot: _PairSlot, status: ExecutionStatus) -> None:
        with slot.lock:
            slot.state.status = status

    def _cooling_down(self, state: ExecutionState) -> bool:
        if self.max_consecutive_failures <= 0:
            return False
        if state.consecutive_failures < self.max_consecutive_failures:
            return False
        if state.last_attempt_at is None:
            return False
        return self._clock() - state.last_attempt_at < self.cooldown_seconds

    def _acquire(self, slot: _PairSlot) -> Optional[str]:
        """Claim the pair for submission; returns a skip reason if busy"""
        with slot.lock:
            state = slot.state
            if state.in_flight:
                return "execution already in flight"
            if self._cooling_down(state):
                return (
                    f"circuit open after {state.consecutive_failures} consecutive failures"
                )
            state.in_flight = True
            state.status = ExecutionStatus.SUBMITTING
            state.last_attempt_at = self._clock()
            return None

    def _release(self, slot: _PairSlot, success: bool) -> int:
        with slot.lock:
            state = slot.state
            if success:
                state.consecutive_failures = 0
            else:
                state.consecutive_failures += 1
            state.in_flight = False
            state.status = ExecutionStatus.IDLE
            return state.consecutive_failures

    def execute(self, opportunity: Opportunity) -> ExecutionResult:
        """Run one opportunity through the submit/retry state machine; never raises"""
        pair = opportunity.pair
        label = opportunity.label
        slot = self._slot(pair)

        skip_reason = self._acquire(slot)
        if skip_reason:
            logger.info(f"{label}: dropping opportunity, {skip_reason}")
            return ExecutionResult(
                status=ExecutionStatus.SKIPPED,
                pair=pair,
                error=skip_reason,
            )

        start_time = time.time()
        attempts = 0
        tx_id = None
        error = ""
        success = False

        try:
            while attempts < self.max_attempts:
                attempts += 1
                self._set_status(slot, ExecutionStatus.SUBMITTING)
                try:
                    tx_id = self.submitter.submit(opportunity)
                    success = True
                    break
                except TransientExecutionError as e:
                    error = str(e)
                    if attempts >= self.max_attempts:
                        break
                    delay = self.backoff_seconds * attempts
                    logger.warning(
                        f"{label}: attempt {attempts}/{self.max_attempts} failed ({e}), "
                        f"retrying in {delay:.1f}s"
                    )
                    self._set_status(slot, ExecutionStatus.RETRYING)
                    self._sleep(delay)
                except Exception as e:
                    error = str(e)
                    logger.error(f"{label}: permanent execution failure: {e}")
                    break
        finally:
            failures = self._release(slot, success)

        execution_time = (time.time() - start_time) * 1000

        if success:
            logger.info(
                f"{label}: executed {opportunity.amount} via "
                f"{opportunity.buy_venue} -> {opportunity.sell_venue}, tx {tx_id} "
                f"(attempt {attempts})"
            )
            if self.analytics is not None:
                self.analytics.record_execution(
                    pair, opportunity.amount, opportunity.expected_profit, tx_id
                )
            return ExecutionResult(
                status=ExecutionStatus.SUCCESS,
                pair=pair,
                tx_id=tx_id,
                attempts=attempts,
                execution_time_ms=execution_time,
            )

        logger.error(
            f"{label}: execution failed after {attempts} attempt(s): {error} "
            f"({failures} consecutive failures)"
        )
        return ExecutionResult(
            status=ExecutionStatus.FAILED,
            pair=pair,
            attempts=attempts,
            error=error,
            execution_time_ms=execution_time,
        )
