# ============================================================================
# src/lab_intelligence/analysis/task.py
# ============================================================================
"""
Analysis Task

Observable state of one document-analysis request:

    pending -> dispatched -> (partial | complete) -> synthesized
    any non-terminal state -> failed

"failed" means the primary provider produced nothing usable. "partial"
(some secondary missing) is a normal input to synthesis.
"""

import asyncio
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from ..core.context import AnalysisOutcomeStatus, AnalysisStatus, CoordinatedAnalysisResult
from ..utils.exceptions import InvalidStateTransitionError

_ALLOWED_TRANSITIONS = {
    AnalysisStatus.PENDING: {AnalysisStatus.DISPATCHED, AnalysisStatus.FAILED},
    AnalysisStatus.DISPATCHED: {AnalysisStatus.PARTIAL, AnalysisStatus.COMPLETE, AnalysisStatus.FAILED},
    AnalysisStatus.PARTIAL: {AnalysisStatus.SYNTHESIZED, AnalysisStatus.FAILED},
    AnalysisStatus.COMPLETE: {AnalysisStatus.SYNTHESIZED, AnalysisStatus.FAILED},
    AnalysisStatus.SYNTHESIZED: set(),
    AnalysisStatus.FAILED: set(),
}


class AnalysisTask:
    """
    State machine plus the handle needed to cancel the work behind it.

    Status reads are safe from any thread; transitions happen on the
    event loop running the analysis.
    """

    def __init__(self, task_id: Optional[str] = None, report_id: Optional[str] = None):
        self.task_id = task_id or uuid.uuid4().hex
        self.report_id = report_id
        self.result: Optional[CoordinatedAnalysisResult] = None
        self.error: Optional[BaseException] = None

        self._status = AnalysisStatus.PENDING
        self._history: List[Tuple[AnalysisStatus, datetime]] = [
            (AnalysisStatus.PENDING, datetime.now(timezone.utc))
        ]
        self._future: Optional[asyncio.Future] = None
        self._lock = threading.Lock()

    @property
    def status(self) -> AnalysisStatus:
        with self._lock:
            return self._status

    @property
    def history(self) -> Tuple[Tuple[AnalysisStatus, datetime], ...]:
        with self._lock:
            return tuple(self._history)

    @property
    def outcome(self) -> Optional[AnalysisOutcomeStatus]:
        """complete / degraded / failed once terminal, otherwise None."""
        status = self.status
        if status is AnalysisStatus.FAILED:
            return AnalysisOutcomeStatus.FAILED
        if status is AnalysisStatus.SYNTHESIZED:
            if self.result is not None and self.result.is_degraded:
                return AnalysisOutcomeStatus.DEGRADED
            return AnalysisOutcomeStatus.COMPLETE
        return None

    def transition(self, target: AnalysisStatus) -> None:
        with self._lock:
            if target not in _ALLOWED_TRANSITIONS[self._status]:
                raise InvalidStateTransitionError(self._status.value, target.value)
            self._status = target
            self._history.append((target, datetime.now(timezone.utc)))

    def complete(self, result: CoordinatedAnalysisResult) -> None:
        self.result = result
        self.transition(AnalysisStatus.SYNTHESIZED)

    def fail(self, error: BaseException) -> None:
        self.error = error
        self.transition(AnalysisStatus.FAILED)

    def attach(self, future: asyncio.Future) -> None:
        """Bind the running work so cancel() can reach it."""
        self._future = future

    def cancel(self) -> bool:
        """Cancel the running work; in-flight provider calls are cancelled with it."""
        if self._future is None or self._future.done():
            return False
        return self._future.cancel()

    def to_dict(self) -> Dict[str, Any]:
        outcome = self.outcome
        return {
            "task_id": self.task_id,
            "report_id": self.report_id,
            "status": self.status.value,
            "outcome": outcome.value if outcome else None,
            "error": str(self.error) if self.error else None,
            "history": [(s.value, ts.isoformat()) for s, ts in self.history],
        }
