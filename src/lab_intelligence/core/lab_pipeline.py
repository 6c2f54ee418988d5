# ============================================================================
# src/lab_intelligence/core/lab_pipeline.py
# ============================================================================
"""
Lab Report Pipeline

Pipeline Flow:
    document -> text source -> extraction -> persist values
             -> provider analysis -> persist analyses -> report status

Report status ends as "completed" (with analysis_status complete,
degraded or failed), "failed" when the text source reported errors, or
"cancelled". When the primary provider fails nothing is written to the
analysis records.

Background processing is an explicit AnalysisTask: submit() returns it,
get_status() polls it, cancel() stops it together with every in-flight
provider call.
"""

import asyncio
import functools
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ..analysis import AnalysisTask, ProviderOrchestrator
from ..core.context import (
    AnalysisOutcomeStatus,
    CoordinatedAnalysisResult,
    LabExtractionResult,
    PatientContext,
)
from ..extraction import LabValueExtractor
from ..providers import create_providers
from ..storage import InMemoryStore, SQLiteStore, StorageBackend
from ..utils.exceptions import AnalysisFailedError, ReportInProgressError, StorageError
from ..utils.logging import LogAdapter
from .config import get_config
from .text_source import TextSource, read_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    report_id: str
    status: str  # "completed" or "failed"
    extraction: Optional[LabExtractionResult] = None
    analysis: Optional[CoordinatedAnalysisResult] = None
    analysis_status: Optional[AnalysisOutcomeStatus] = None
    errors: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return self.status == "completed"


class LabReportPipeline:
    """
    End-to-end processing of one lab document.

    Args:
        text_source: OCR collaborator, (document) -> (text, errors)
        extractor: LabValueExtractor (default instance if omitted)
        orchestrator: ProviderOrchestrator; None runs extraction only
        storage: StorageBackend (InMemoryStore if omitted)
    """

    def __init__(
        self,
        text_source: TextSource,
        extractor: Optional[LabValueExtractor] = None,
        orchestrator: Optional[ProviderOrchestrator] = None,
        storage: Optional[StorageBackend] = None,
    ):
        self.text_source = text_source
        self.extractor = extractor or LabValueExtractor()
        self.orchestrator = orchestrator
        self.storage = storage or InMemoryStore()

        self._tasks: Dict[str, AnalysisTask] = {}
        self._tasks_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        text_source: TextSource,
        config: Optional[Dict[str, Any]] = None,
    ) -> "LabReportPipeline":
        """
        Build a pipeline backed by SQLite and the configured providers.

        With enable_analysis off the pipeline stops after extraction and
        no provider credentials are needed.

        Raises:
            ConfigurationError: analysis is enabled but an API key is missing
        """
        config = config or get_config()

        orchestrator = None
        if config.get('enable_analysis', True):
            primary, secondaries = create_providers(config)
            orchestrator = ProviderOrchestrator(primary, secondaries)

        return cls(
            text_source,
            orchestrator=orchestrator,
            storage=SQLiteStore(config.get('store_db_path')),
        )

    async def process_document(
        self,
        document: Any,
        report_id: Optional[str] = None,
        patient: Optional[PatientContext] = None,
        file_name: str = "",
        task: Optional[AnalysisTask] = None,
    ) -> PipelineResult:
        """
        Process one document to completion.

        Storage calls and synchronous text sources run in worker threads.

        Raises:
            asyncio.CancelledError: processing was cancelled
            StorageError: the storage backend failed
        """
        report_id = report_id or uuid.uuid4().hex
        task = task or AnalysisTask(report_id=report_id)
        log = LogAdapter(logger, {"report_id": report_id})

        if await self._store(self.storage.get_report, report_id) is None:
            await self._store(self.storage.create_report, report_id, file_name=file_name)
        await self._store(self.storage.update_report, report_id, status="processing")

        try:
            # Step 1: Text
            text, errors = await read_text(self.text_source, document)
            if errors:
                log.error(f"Text extraction failed: {errors}")
                task.fail(RuntimeError("; ".join(errors)))
                await self._store(
                    self.storage.update_report, report_id,
                    status="failed", processing_errors=errors, task_status=task.status.value,
                )
                return PipelineResult(report_id=report_id, status="failed", errors=tuple(errors))

            # Step 2: Lab values
            extraction = self.extractor.extract(text, patient)
            await self._store(self.storage.save_extraction, report_id, extraction)
            log.info(f"Stored {len(extraction.values)} lab values")

            if self.orchestrator is None:
                await self._store(self.storage.update_report, report_id, status="completed")
                return PipelineResult(report_id=report_id, status="completed", extraction=extraction)

            # Step 3: Provider analysis
            try:
                analysis = await self.orchestrator.analyze(
                    extraction, patient, task=task, report_id=report_id
                )
            except AnalysisFailedError as e:
                await self._store(
                    self.storage.update_report, report_id,
                    status="completed",
                    analysis_status=AnalysisOutcomeStatus.FAILED.value,
                    analysis_error=str(e),
                    task_status=task.status.value,
                )
                return PipelineResult(
                    report_id=report_id,
                    status="completed",
                    extraction=extraction,
                    analysis_status=AnalysisOutcomeStatus.FAILED,
                    errors=(str(e),),
                )

            await self._store(self.storage.save_analysis, report_id, analysis)
            outcome = task.outcome
            await self._store(
                self.storage.update_report, report_id,
                status="completed", analysis_status=outcome.value, task_status=task.status.value,
            )

            log.info(f"Report processed: analysis {outcome.value}")
            return PipelineResult(
                report_id=report_id,
                status="completed",
                extraction=extraction,
                analysis=analysis,
                analysis_status=outcome,
            )

        except asyncio.CancelledError as e:
            log.warning("Processing cancelled")
            if not task.status.is_terminal:
                task.fail(e)
            await self._store(
                self.storage.update_report, report_id,
                status="cancelled", task_status=task.status.value,
            )
            raise

    @staticmethod
    async def _store(method, *args, **kwargs):
        """Run a blocking storage call off the event loop."""
        return await asyncio.to_thread(method, *args, **kwargs)

    # ------------------------------------------------------------------
    # Background processing
    # ------------------------------------------------------------------

    def submit(
        self,
        document: Any,
        report_id: Optional[str] = None,
        patient: Optional[PatientContext] = None,
        file_name: str = "",
    ) -> AnalysisTask:
        """
        Start processing in the background of the running event loop.

        The report row exists when this returns; poll get_status(report_id).
        The task is dropped from memory once it finishes, after which the
        stored report carries its final state.

        Raises:
            ReportInProgressError: report_id is still being processed
        """
        report_id = report_id or uuid.uuid4().hex
        task = AnalysisTask(report_id=report_id)

        with self._tasks_lock:
            if report_id in self._tasks:
                raise ReportInProgressError(report_id)
            self._tasks[report_id] = task

        try:
            if self.storage.get_report(report_id) is None:
                self.storage.create_report(report_id, file_name=file_name)
        except StorageError:
            with self._tasks_lock:
                del self._tasks[report_id]
            raise

        future = asyncio.ensure_future(
            self.process_document(document, report_id, patient, file_name, task=task)
        )
        future.add_done_callback(functools.partial(self._finish_background, report_id, task))
        task.attach(future)
        return task

    def get_task(self, report_id: str) -> Optional[AnalysisTask]:
        """The in-flight task for report_id, if any."""
        with self._tasks_lock:
            return self._tasks.get(report_id)

    def get_status(self, report_id: str) -> Optional[Dict[str, Any]]:
        """Live task state when running, otherwise the stored final state."""
        task = self.get_task(report_id)
        report = self.storage.get_report(report_id)
        if task is None and report is None:
            return None

        if task is not None:
            status = task.to_dict()
        else:
            status = {
                "report_id": report_id,
                "status": report.get("task_status"),
                "outcome": report.get("analysis_status"),
            }
        if report is not None:
            status["report_status"] = report.get("status")
            status["analysis_status"] = report.get("analysis_status")
        return status

    def cancel(self, report_id: str) -> bool:
        task = self.get_task(report_id)
        if task is None:
            return False
        return task.cancel()

    def _finish_background(self, report_id: str, task: AnalysisTask, future: asyncio.Future):
        if future.cancelled():
            error: Optional[BaseException] = asyncio.CancelledError()
        else:
            error = future.exception()
            if error is not None:
                logger.error(f"Background processing of {report_id} failed: {error}", exc_info=error)

        # Work that stopped before process_document could record its own end
        if error is not None and not task.status.is_terminal:
            task.fail(error)
            report_status = "cancelled" if future.cancelled() else "failed"
            try:
                self.storage.update_report(
                    report_id, status=report_status, task_status=task.status.value
                )
            except StorageError as e:
                logger.error(f"Could not record final status of {report_id}: {e}")

        with self._tasks_lock:
            if self._tasks.get(report_id) is task:
                del self._tasks[report_id]
