# ============================================================================
# FILE: tests/unit/test_orchestrator.py
# ============================================================================
"""
Unit tests for ProviderOrchestrator

Providers are FakeProvider instances (see conftest) with controllable
delays, results and errors.
"""

import asyncio
import time
from types import SimpleNamespace

import pytest

from lab_intelligence.analysis import AnalysisTask, ProviderOrchestrator
from lab_intelligence.config import provider_settings
from lab_intelligence.core.context import (
    AnalysisOutcomeStatus,
    AnalysisStatus,
    UrgencyLevel,
)
from lab_intelligence.extraction import LabValueExtractor
from lab_intelligence.utils.exceptions import (
    AnalysisFailedError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderTransportError,
)


@pytest.fixture
def extraction(sample_lab_text):
    return LabValueExtractor().extract(sample_lab_text)


@pytest.mark.asyncio
async def test_all_providers_succeed(extraction, fake_provider, result_factory, sample_patient):
    """Every provider answers: complete outcome, all findings kept"""
    primary = fake_provider("gpt4o", result_factory("gpt4o", shortlist=["Hyperkalemia"]))
    research = fake_provider("perplexity", result_factory("perplexity", shortlist=["CKD"]))
    clinical = fake_provider("claude", result_factory("claude", shortlist=["hyperkalemia"]))
    task = AnalysisTask(report_id="r1")

    result = await ProviderOrchestrator(primary, [research, clinical]).analyze(
        extraction, sample_patient, task=task, report_id="r1"
    )

    assert result.primary_analysis.provider_id == "gpt4o"
    assert [r.provider_id for r in result.research_findings] == ["perplexity", "claude"]
    assert result.failed_providers == ()
    assert not result.is_degraded
    assert result.final_recommendations.diagnostic_shortlist == ("Hyperkalemia", "CKD")

    assert task.status is AnalysisStatus.SYNTHESIZED
    assert task.outcome is AnalysisOutcomeStatus.COMPLETE
    assert [s for s, _ in task.history] == [
        AnalysisStatus.PENDING,
        AnalysisStatus.DISPATCHED,
        AnalysisStatus.COMPLETE,
        AnalysisStatus.SYNTHESIZED,
    ]


@pytest.mark.asyncio
async def test_every_provider_gets_the_same_request(extraction, fake_provider, result_factory, sample_patient):
    """Same document text, patient and hint for every provider"""
    primary = fake_provider("gpt4o", result_factory("gpt4o"))
    research = fake_provider("perplexity", result_factory("perplexity"))

    await ProviderOrchestrator(primary, [research]).analyze(extraction, sample_patient)

    primary_call, research_call = primary.calls[0], research.calls[0]
    assert primary_call["document_text"] == research_call["document_text"]
    assert "Potassium: 6.8" in primary_call["document_text"]
    assert primary_call["patient_context"] is sample_patient
    assert research_call["patient_context"] is sample_patient
    assert primary_call["document_type_hint"] == "lab"
    assert research_call["document_type_hint"] == "lab"


@pytest.mark.asyncio
async def test_secondaries_do_not_wait_for_primary(extraction, fake_provider, result_factory):
    """Secondaries start immediately, without the primary's findings"""
    primary = fake_provider("gpt4o", result_factory("gpt4o"), delay=0.2)
    research = fake_provider("perplexity", result_factory("perplexity"))

    await ProviderOrchestrator(primary, [research]).analyze(extraction)

    assert research.calls[0]["prior_findings"] is None


@pytest.mark.asyncio
async def test_primary_timeout_fails_request(extraction, fake_provider, result_factory):
    """Primary times out: request fails, nothing is synthesized"""
    primary = fake_provider("gpt4o", result_factory("gpt4o"), delay=5.0, default_timeout=0.05)
    research = fake_provider("perplexity", result_factory("perplexity"))
    task = AnalysisTask()

    with pytest.raises(AnalysisFailedError) as exc_info:
        await ProviderOrchestrator(primary, [research]).analyze(extraction, task=task)

    assert isinstance(exc_info.value.cause, ProviderTimeoutError)
    assert exc_info.value.cause.provider_id == "gpt4o"
    assert task.status is AnalysisStatus.FAILED
    assert task.outcome is AnalysisOutcomeStatus.FAILED
    assert task.result is None
    assert primary.cancelled


@pytest.mark.asyncio
async def test_primary_error_fails_request(extraction, fake_provider, result_factory):
    """Any primary failure is fatal, whatever the secondaries did"""
    primary = fake_provider("gpt4o", error=ProviderTransportError("HTTP 500", "gpt4o", status=500))
    research = fake_provider("perplexity", result_factory("perplexity"))

    with pytest.raises(AnalysisFailedError) as exc_info:
        await ProviderOrchestrator(primary, [research]).analyze(extraction)

    assert exc_info.value.cause.status == 500


@pytest.mark.asyncio
async def test_secondary_timeout_degrades_and_critical_escalates(extraction, fake_provider, result_factory):
    """Primary medium, one secondary critical, one secondary times out"""
    primary = fake_provider("gpt4o", result_factory("gpt4o", urgency=UrgencyLevel.MEDIUM))
    research = fake_provider(
        "perplexity", result_factory("perplexity", urgency=UrgencyLevel.CRITICAL)
    )
    clinical = fake_provider(
        "claude", result_factory("claude"), delay=5.0, default_timeout=0.05
    )
    task = AnalysisTask()

    result = await ProviderOrchestrator(primary, [research, clinical]).analyze(extraction, task=task)

    assert result.final_recommendations.urgency_level is UrgencyLevel.CRITICAL
    assert len(result.research_findings) == 1
    assert result.failed_providers == ("claude",)
    assert result.is_degraded
    assert clinical.cancelled

    assert task.outcome is AnalysisOutcomeStatus.DEGRADED
    assert AnalysisStatus.PARTIAL in [s for s, _ in task.history]


@pytest.mark.asyncio
async def test_all_secondaries_fail(extraction, fake_provider, result_factory):
    """Primary alone still produces a result"""
    primary = fake_provider("gpt4o", result_factory("gpt4o", urgency=UrgencyLevel.HIGH, confidence=0.6))
    research = fake_provider("perplexity", error=ProviderResponseError("bad JSON", "perplexity"))
    clinical = fake_provider("claude", error=ProviderTimeoutError("claude", 45.0))

    result = await ProviderOrchestrator(primary, [research, clinical]).analyze(extraction)

    assert result.research_findings == ()
    assert result.failed_providers == ("perplexity", "claude")
    assert result.final_recommendations.urgency_level is UrgencyLevel.HIGH
    assert result.final_recommendations.confidence == pytest.approx(0.6)


@pytest.mark.asyncio
async def test_primary_only(extraction, fake_provider, result_factory):
    """No secondaries configured"""
    primary = fake_provider("gpt4o", result_factory("gpt4o"))

    result = await ProviderOrchestrator(primary).analyze(extraction)

    assert result.research_findings == ()
    assert not result.is_degraded


@pytest.mark.asyncio
async def test_calls_run_concurrently(extraction, fake_provider, result_factory):
    """Wall time tracks the slowest call, not the sum"""
    primary = fake_provider("gpt4o", result_factory("gpt4o"), delay=0.3)
    research = fake_provider("perplexity", result_factory("perplexity"), delay=0.3)
    clinical = fake_provider("claude", result_factory("claude"), delay=0.3)

    start = time.monotonic()
    await ProviderOrchestrator(primary, [research, clinical]).analyze(extraction)
    elapsed = time.monotonic() - start

    assert elapsed < 0.8


@pytest.mark.asyncio
async def test_wall_time_bounded_by_largest_deadline(extraction, fake_provider, result_factory):
    """A hanging secondary is cut off at its own deadline"""
    primary = fake_provider("gpt4o", result_factory("gpt4o"))
    hanging = fake_provider("claude", result_factory("claude"), delay=30.0, default_timeout=0.2)

    start = time.monotonic()
    result = await ProviderOrchestrator(primary, [hanging]).analyze(extraction)
    elapsed = time.monotonic() - start

    assert elapsed < 2.0
    assert result.failed_providers == ("claude",)


@pytest.mark.asyncio
async def test_explicit_timeouts_override_defaults(extraction, fake_provider, result_factory):
    """Per-provider deadlines passed to the orchestrator win"""
    primary = fake_provider("gpt4o", result_factory("gpt4o"), delay=5.0, default_timeout=60.0)
    orchestrator = ProviderOrchestrator(primary, timeouts={"gpt4o": 0.05})

    with pytest.raises(AnalysisFailedError):
        await orchestrator.analyze(extraction)
    assert primary.calls[0]["timeout"] == 0.05


def test_timeout_for_falls_back_to_settings(fake_provider):
    """Providers without a default deadline use the research timeout"""
    orchestrator = ProviderOrchestrator(fake_provider("gpt4o", default_timeout=12.0))

    assert orchestrator.timeout_for(orchestrator.primary) == 12.0
    assert orchestrator.timeout_for(SimpleNamespace(provider_id="bare")) == provider_settings.RESEARCH_TIMEOUT


@pytest.mark.asyncio
async def test_cancellation_cancels_provider_calls(extraction, fake_provider, result_factory):
    """Cancelling the analysis cancels every in-flight call"""
    primary = fake_provider("gpt4o", result_factory("gpt4o"), delay=10.0, default_timeout=30.0)
    research = fake_provider("perplexity", result_factory("perplexity"), delay=10.0, default_timeout=30.0)
    clinical = fake_provider("claude", result_factory("claude"), delay=10.0, default_timeout=30.0)
    task = AnalysisTask()

    running = asyncio.create_task(
        ProviderOrchestrator(primary, [research, clinical]).analyze(extraction, task=task)
    )
    await asyncio.sleep(0.05)
    running.cancel()

    with pytest.raises(asyncio.CancelledError):
        await running

    assert primary.cancelled
    assert research.cancelled
    assert clinical.cancelled
    assert task.status is AnalysisStatus.FAILED
