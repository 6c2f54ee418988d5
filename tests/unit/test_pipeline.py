# ============================================================================
# FILE: tests/unit/test_pipeline.py
# ============================================================================
"""
Unit tests for LabReportPipeline: persistence, failure handling and
background task control
"""

import asyncio
import time

import pytest

from lab_intelligence.analysis import AnalysisTask, ProviderOrchestrator
from lab_intelligence.core.context import AnalysisOutcomeStatus, AnalysisStatus, UrgencyLevel
from lab_intelligence.core.lab_pipeline import LabReportPipeline
from lab_intelligence.core.text_source import read_text
from lab_intelligence.storage import InMemoryStore, SQLiteStore
from lab_intelligence.utils.exceptions import ConfigurationError, ReportInProgressError


def static_source(text, errors=()):
    def source(document):
        return text, list(errors)
    return source


async def wait_until_settled(pipeline, report_id, limit=5.0):
    """Poll until background work for report_id has finished and been released."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + limit
    while pipeline.get_task(report_id) is not None:
        assert loop.time() < deadline, "background work did not finish in time"
        await asyncio.sleep(0.01)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def orchestrator(fake_provider, result_factory):
    primary = fake_provider("gpt4o", result_factory("gpt4o", shortlist=["Hyperkalemia"]))
    research = fake_provider("perplexity", result_factory("perplexity", urgency=UrgencyLevel.HIGH))
    clinical = fake_provider("claude", result_factory("claude"))
    return ProviderOrchestrator(primary, [research, clinical])


@pytest.mark.asyncio
async def test_read_text_sync_and_async():
    """Text sources may be plain or async callables"""
    async def async_source(document):
        return f"text of {document}", None

    assert await read_text(static_source("abc", ["e1"]), "doc") == ("abc", ["e1"])
    assert await read_text(async_source, "doc") == ("text of doc", [])


@pytest.mark.asyncio
async def test_process_document_complete(sample_lab_text, store, orchestrator, sample_patient):
    """Values and every analysis are persisted"""
    pipeline = LabReportPipeline(static_source(sample_lab_text), orchestrator=orchestrator, storage=store)

    result = await pipeline.process_document(b"pdf", report_id="r1", patient=sample_patient, file_name="cmp.pdf")

    assert result.success
    assert result.analysis_status is AnalysisOutcomeStatus.COMPLETE
    assert len(result.extraction.values) == 5

    report = store.get_report("r1")
    assert report["status"] == "completed"
    assert report["analysis_status"] == "complete"
    assert report["file_name"] == "cmp.pdf"
    assert report["urgency_level"] == "high"
    assert len(store.get_lab_values("r1")) == 5
    assert len(store.get_analysis_records("r1")) == 3


@pytest.mark.asyncio
async def test_primary_failure_persists_no_analysis(sample_lab_text, store, fake_provider, result_factory):
    """Primary timeout: request failed, values kept, no analysis records"""
    primary = fake_provider("gpt4o", result_factory("gpt4o"), delay=5.0, default_timeout=0.05)
    research = fake_provider("perplexity", result_factory("perplexity"))
    pipeline = LabReportPipeline(
        static_source(sample_lab_text),
        orchestrator=ProviderOrchestrator(primary, [research]),
        storage=store,
    )
    task = AnalysisTask(report_id="r1")

    result = await pipeline.process_document("doc", report_id="r1", task=task)

    assert result.status == "completed"
    assert result.analysis is None
    assert result.analysis_status is AnalysisOutcomeStatus.FAILED
    assert "gpt4o" in result.errors[0]
    assert task.status is AnalysisStatus.FAILED

    report = store.get_report("r1")
    assert report["analysis_status"] == "failed"
    assert "analysis_error" in report
    assert "final_recommendations" not in report
    assert store.get_analysis_records("r1") == []
    assert len(store.get_lab_values("r1")) == 5


@pytest.mark.asyncio
async def test_degraded_analysis(sample_lab_text, store, fake_provider, result_factory):
    """A missing secondary degrades the outcome but keeps the rest"""
    primary = fake_provider("gpt4o", result_factory("gpt4o"))
    research = fake_provider("perplexity", result_factory("perplexity"), delay=5.0, default_timeout=0.05)
    pipeline = LabReportPipeline(
        static_source(sample_lab_text),
        orchestrator=ProviderOrchestrator(primary, [research]),
        storage=store,
    )

    result = await pipeline.process_document("doc", report_id="r1")

    assert result.analysis_status is AnalysisOutcomeStatus.DEGRADED
    report = store.get_report("r1")
    assert report["analysis_status"] == "degraded"
    assert report["failed_providers"] == ["perplexity"]
    assert [r["role"] for r in store.get_analysis_records("r1")] == ["primary"]


@pytest.mark.asyncio
async def test_text_source_errors_fail_report(store, orchestrator):
    """OCR errors stop processing before extraction"""
    pipeline = LabReportPipeline(
        static_source("", ["unsupported file type"]), orchestrator=orchestrator, storage=store
    )
    task = AnalysisTask(report_id="r1")

    result = await pipeline.process_document("doc.xyz", report_id="r1", task=task)

    assert not result.success
    assert result.errors == ("unsupported file type",)
    assert task.status is AnalysisStatus.FAILED
    assert orchestrator.primary.calls == []

    report = store.get_report("r1")
    assert report["status"] == "failed"
    assert report["processing_errors"] == ["unsupported file type"]


@pytest.mark.asyncio
async def test_extraction_only(sample_lab_text, store):
    """Without an orchestrator the pipeline stops after extraction"""
    pipeline = LabReportPipeline(static_source(sample_lab_text), storage=store)

    result = await pipeline.process_document("doc", report_id="r1")

    assert result.success
    assert result.analysis is None
    assert store.get_report("r1")["status"] == "completed"
    assert store.get_report("r1")["analysis_status"] is None


@pytest.mark.asyncio
async def test_existing_report_is_reused(sample_lab_text, store):
    """A report created up front is updated, not duplicated"""
    store.create_report("r1", file_name="upload.pdf")
    pipeline = LabReportPipeline(static_source(sample_lab_text), storage=store)

    await pipeline.process_document("doc", report_id="r1")

    assert store.get_report("r1")["file_name"] == "upload.pdf"


@pytest.mark.asyncio
async def test_empty_document(store, orchestrator):
    """Nothing recognizable still completes with an empty extraction"""
    pipeline = LabReportPipeline(static_source("Nothing to see here"), orchestrator=orchestrator, storage=store)

    result = await pipeline.process_document("doc", report_id="r1")

    assert result.success
    assert result.extraction.values == ()
    assert result.extraction.confidence == 0.0
    assert store.get_report("r1")["laboratory_name"] == "Unknown Laboratory"


@pytest.mark.asyncio
async def test_submit_and_poll(sample_lab_text, store, orchestrator):
    """Background processing is observable through get_status"""
    pipeline = LabReportPipeline(static_source(sample_lab_text), orchestrator=orchestrator, storage=store)

    task = pipeline.submit("doc", report_id="r1")
    assert pipeline.get_task("r1") is task
    assert store.get_report("r1")["status"] == "pending"

    await wait_until_settled(pipeline, "r1")

    assert task.status is AnalysisStatus.SYNTHESIZED
    status = pipeline.get_status("r1")
    assert status["status"] == "synthesized"
    assert status["outcome"] == "complete"
    assert status["report_status"] == "completed"
    assert status["analysis_status"] == "complete"


@pytest.mark.asyncio
async def test_cancel_background_processing(sample_lab_text, store, fake_provider, result_factory):
    """Cancelling a report stops every in-flight provider call"""
    primary = fake_provider("gpt4o", result_factory("gpt4o"), delay=10.0, default_timeout=30.0)
    research = fake_provider("perplexity", result_factory("perplexity"), delay=10.0, default_timeout=30.0)
    pipeline = LabReportPipeline(
        static_source(sample_lab_text),
        orchestrator=ProviderOrchestrator(primary, [research]),
        storage=store,
    )

    task = pipeline.submit("doc", report_id="r1")
    await asyncio.sleep(0.05)

    assert pipeline.cancel("r1") is True
    await wait_until_settled(pipeline, "r1")

    assert task.status is AnalysisStatus.FAILED
    assert primary.cancelled
    assert research.cancelled
    status = pipeline.get_status("r1")
    assert status["report_status"] == "cancelled"
    assert status["status"] == "failed"
    assert store.get_analysis_records("r1") == []


@pytest.mark.asyncio
async def test_cancel_before_processing_starts(sample_lab_text, store, orchestrator):
    """A request cancelled before it ever ran still ends failed and cancelled"""
    pipeline = LabReportPipeline(static_source(sample_lab_text), orchestrator=orchestrator, storage=store)

    task = pipeline.submit("doc", report_id="r1")
    assert pipeline.cancel("r1") is True
    await wait_until_settled(pipeline, "r1")

    assert task.status is AnalysisStatus.FAILED
    assert orchestrator.primary.calls == []
    status = pipeline.get_status("r1")
    assert status["status"] == "failed"
    assert status["report_status"] == "cancelled"


@pytest.mark.asyncio
async def test_finished_tasks_are_released(sample_lab_text, store, orchestrator):
    """Finished work leaves memory; the report can be submitted again"""
    pipeline = LabReportPipeline(static_source(sample_lab_text), orchestrator=orchestrator, storage=store)

    first = pipeline.submit("doc", report_id="r1")
    await wait_until_settled(pipeline, "r1")
    assert pipeline.get_task("r1") is None

    second = pipeline.submit("doc", report_id="r1")
    assert second is not first
    await wait_until_settled(pipeline, "r1")
    assert pipeline.get_status("r1")["report_status"] == "completed"


@pytest.mark.asyncio
async def test_duplicate_submission_rejected(sample_lab_text, store, fake_provider, result_factory):
    """A report still in flight cannot be submitted twice"""
    primary = fake_provider("gpt4o", result_factory("gpt4o"), delay=10.0, default_timeout=30.0)
    pipeline = LabReportPipeline(
        static_source(sample_lab_text),
        orchestrator=ProviderOrchestrator(primary),
        storage=store,
    )

    task = pipeline.submit("doc", report_id="r1")
    with pytest.raises(ReportInProgressError):
        pipeline.submit("doc", report_id="r1")
    assert pipeline.get_task("r1") is task

    pipeline.cancel("r1")
    await wait_until_settled(pipeline, "r1")


@pytest.mark.asyncio
async def test_sync_text_source_does_not_block_loop():
    """Blocking OCR runs in a worker thread while the loop keeps ticking"""
    def slow_source(document):
        time.sleep(0.3)
        return "text", []

    gaps = []

    async def ticker():
        loop = asyncio.get_running_loop()
        last = loop.time()
        for _ in range(20):
            await asyncio.sleep(0.02)
            now = loop.time()
            gaps.append(now - last)
            last = now

    ticking = asyncio.ensure_future(ticker())
    assert await read_text(slow_source, "doc") == ("text", [])
    await ticking

    assert max(gaps) < 0.15

def test_unknown_report(store):
    """Unknown ids have no status and cannot be cancelled"""
    pipeline = LabReportPipeline(static_source(""), storage=store)

    assert pipeline.get_status("missing") is None
    assert pipeline.cancel("missing") is False


def test_from_config_extraction_only(tmp_path):
    """Analysis switched off needs no credentials"""
    db_path = tmp_path / "reports.db"
    pipeline = LabReportPipeline.from_config(
        static_source(""),
        {"enable_analysis": False, "store_db_path": str(db_path)},
    )

    assert pipeline.orchestrator is None
    assert isinstance(pipeline.storage, SQLiteStore)
    assert pipeline.storage.db_path == db_path


def test_from_config_builds_providers(tmp_path):
    """Keys present: primary plus two secondaries"""
    pipeline = LabReportPipeline.from_config(static_source(""), {
        "enable_analysis": True,
        "store_db_path": str(tmp_path / "reports.db"),
        "openai_api_key": "sk-test",
        "perplexity_api_key": "pplx-test",
        "anthropic_api_key": "ant-test",
    })

    assert pipeline.orchestrator.primary.provider_id == "gpt4o"
    assert [p.provider_id for p in pipeline.orchestrator.secondaries] == ["perplexity", "claude"]


def test_from_config_missing_keys(tmp_path):
    """Analysis enabled without keys is a configuration error"""
    with pytest.raises(ConfigurationError):
        LabReportPipeline.from_config(
            static_source(""),
            {"enable_analysis": True, "store_db_path": str(tmp_path / "reports.db")},
        )
