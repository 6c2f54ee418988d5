# ============================================================================
# src/lab_intelligence/storage/memory_store.py
# ============================================================================
"""
In-memory StorageBackend for tests and embedding. All dicts are guarded
by one lock so concurrent pipelines can share a store.
"""

import itertools
import threading
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..core.context import ExtractedLabValue, ProviderAnalysisResult, ProviderRole
from ..utils.exceptions import StorageError
from .base import StorageBackend


class InMemoryStore(StorageBackend):

    def __init__(self):
        self._lock = threading.Lock()
        self._reports: Dict[str, Dict[str, Any]] = {}
        self._values: Dict[str, List[Dict[str, Any]]] = {}
        self._analyses: Dict[str, List[Dict[str, Any]]] = {}
        self._ids = itertools.count(1)

    def create_report(self, report_id: str, file_name: str = "", **fields) -> Dict[str, Any]:
        now = datetime.now(timezone.utc).isoformat()
        report = {
            "report_id": report_id,
            "file_name": file_name,
            "status": "pending",
            "analysis_status": None,
            "created_at": now,
            "updated_at": now,
        }
        report.update(fields)
        with self._lock:
            if report_id in self._reports:
                raise StorageError(f"Report {report_id} already exists")
            self._reports[report_id] = report
            return deepcopy(report)

    def update_report(self, report_id: str, **fields) -> Dict[str, Any]:
        with self._lock:
            report = self._reports.get(report_id)
            if report is None:
                raise StorageError(f"Report {report_id} not found")
            report.update(fields)
            report["updated_at"] = datetime.now(timezone.utc).isoformat()
            return deepcopy(report)

    def create_lab_value(self, report_id: str, value: ExtractedLabValue) -> int:
        with self._lock:
            record_id = next(self._ids)
            record = value.to_dict()
            record["id"] = record_id
            self._values.setdefault(report_id, []).append(record)
            return record_id

    def create_analysis_record(
        self,
        report_id: str,
        result: ProviderAnalysisResult,
        role: ProviderRole = ProviderRole.SECONDARY,
    ) -> int:
        with self._lock:
            record_id = next(self._ids)
            record = result.to_dict()
            record["id"] = record_id
            record["role"] = role.value
            self._analyses.setdefault(report_id, []).append(record)
            return record_id

    def get_report(self, report_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            report = self._reports.get(report_id)
            return deepcopy(report) if report is not None else None

    def get_lab_values(self, report_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return deepcopy(self._values.get(report_id, []))

    def get_analysis_records(self, report_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return deepcopy(self._analyses.get(report_id, []))
