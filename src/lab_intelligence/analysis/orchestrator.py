# ============================================================================
# src/lab_intelligence/analysis/orchestrator.py
# ============================================================================
"""
Provider Orchestrator

Dispatches one DocumentAnalysisRequest to the primary provider and every
secondary provider at the same time:

1. All provider calls start together as independent tasks
2. Each call has its own deadline (a slow secondary never extends the
   primary's, and total wall time is bounded by the largest deadline)
3. Settle-all: wait for every call to succeed, fail or time out
4. Primary failed  -> AnalysisFailedError, task status "failed"
   Secondary failed -> logged, recorded in failed_providers
5. Synthesize whatever succeeded

Secondaries receive the primary's findings only when the primary task
has already finished at the moment they are built; they never wait for
it. Cancelling analyze() cancels every in-flight provider call, and a
cancelled call counts as a failed one.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from ..config import provider_settings
from ..core.context import (
    AnalysisStatus,
    CoordinatedAnalysisResult,
    LabExtractionResult,
    PatientContext,
    ProviderAnalysisResult,
)
from ..providers.base import AnalysisProvider
from ..utils.exceptions import AnalysisFailedError, ProviderTimeoutError
from ..utils.logging import LogAdapter
from .request import DocumentAnalysisRequest
from .synthesis import SynthesisEngine
from .task import AnalysisTask

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderOutcome:
    """Settled result of one provider call."""
    provider_id: str
    result: Optional[ProviderAnalysisResult] = None
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None


class ProviderOrchestrator:
    """
    Concurrent fan-out to analysis providers.

    Args:
        primary: Required provider; drives document-type detection
        secondaries: Optional research providers
        synthesis: SynthesisEngine (default instance if omitted)
        timeouts: Per-provider deadlines by provider_id; falls back to
            each provider's default_timeout
    """

    def __init__(
        self,
        primary: AnalysisProvider,
        secondaries: Sequence[AnalysisProvider] = (),
        synthesis: Optional[SynthesisEngine] = None,
        timeouts: Optional[Dict[str, float]] = None,
    ):
        self.primary = primary
        self.secondaries = tuple(secondaries)
        self.synthesis = synthesis or SynthesisEngine()
        self.timeouts = dict(timeouts or {})

    def timeout_for(self, provider: AnalysisProvider) -> float:
        if provider.provider_id in self.timeouts:
            return self.timeouts[provider.provider_id]
        return getattr(provider, "default_timeout", provider_settings.RESEARCH_TIMEOUT)

    async def analyze(
        self,
        extraction: LabExtractionResult,
        patient: Optional[PatientContext] = None,
        task: Optional[AnalysisTask] = None,
        report_id: Optional[str] = None,
    ) -> CoordinatedAnalysisResult:
        """
        Run every provider and synthesize the survivors.

        Raises:
            AnalysisFailedError: the primary provider produced no result
            asyncio.CancelledError: the request was cancelled
        """
        task = task or AnalysisTask(report_id=report_id)
        request = DocumentAnalysisRequest.from_extraction(extraction, patient, report_id)
        log = LogAdapter(logger, {"report_id": report_id or task.task_id})

        start_time = time.monotonic()
        task.transition(AnalysisStatus.DISPATCHED)
        log.info(
            f"Dispatching analysis to {1 + len(self.secondaries)} providers "
            f"(hint={request.document_type_hint})"
        )

        primary_task = asyncio.create_task(self._call(self.primary, request, None))
        prior = self._finished_result(primary_task)
        secondary_tasks = [
            asyncio.create_task(self._call(provider, request, prior))
            for provider in self.secondaries
        ]
        all_tasks = [primary_task, *secondary_tasks]

        try:
            settled = await asyncio.gather(*all_tasks, return_exceptions=True)
        except asyncio.CancelledError as e:
            for pending in all_tasks:
                pending.cancel()
            await asyncio.gather(*all_tasks, return_exceptions=True)
            log.warning("Analysis cancelled; in-flight provider calls aborted")
            task.fail(e)
            raise

        providers = [self.primary, *self.secondaries]
        outcomes = [self._settle(p, r) for p, r in zip(providers, settled)]
        primary_outcome, secondary_outcomes = outcomes[0], outcomes[1:]

        if not primary_outcome.succeeded:
            log.error(f"Primary provider {primary_outcome.provider_id} failed: {primary_outcome.error}")
            error = AnalysisFailedError(
                f"Primary provider {primary_outcome.provider_id} failed: {primary_outcome.error}",
                cause=primary_outcome.error,
            )
            task.fail(error)
            raise error

        research = [o.result for o in secondary_outcomes if o.succeeded]
        failed = [o.provider_id for o in secondary_outcomes if not o.succeeded]
        for outcome in secondary_outcomes:
            if not outcome.succeeded:
                log.warning(f"Secondary provider {outcome.provider_id} unavailable: {outcome.error}")

        task.transition(AnalysisStatus.PARTIAL if failed else AnalysisStatus.COMPLETE)

        final = self.synthesis.synthesize(primary_outcome.result, research)
        result = CoordinatedAnalysisResult(
            primary_analysis=primary_outcome.result,
            research_findings=tuple(research),
            final_recommendations=final,
            processing_time=time.monotonic() - start_time,
            failed_providers=tuple(failed),
        )
        task.complete(result)

        log.info(
            f"Analysis {'degraded' if failed else 'complete'} in {result.processing_time:.2f}s: "
            f"{1 + len(research)} provider(s) succeeded, urgency={final.urgency_level.value}"
        )
        return result

    async def _call(
        self,
        provider: AnalysisProvider,
        request: DocumentAnalysisRequest,
        prior: Optional[ProviderAnalysisResult],
    ) -> ProviderAnalysisResult:
        timeout = self.timeout_for(provider)
        try:
            return await asyncio.wait_for(
                provider.analyze(
                    request.document_text,
                    request.patient,
                    prior_findings=prior,
                    timeout=timeout,
                    document_type_hint=request.document_type_hint,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise ProviderTimeoutError(provider.provider_id, timeout)

    @staticmethod
    def _finished_result(primary_task: asyncio.Task) -> Optional[ProviderAnalysisResult]:
        if primary_task.done() and not primary_task.cancelled() and primary_task.exception() is None:
            return primary_task.result()
        return None

    @staticmethod
    def _settle(provider: AnalysisProvider, settled) -> ProviderOutcome:
        if isinstance(settled, BaseException):
            return ProviderOutcome(provider_id=provider.provider_id, error=settled)
        return ProviderOutcome(provider_id=provider.provider_id, result=settled)

