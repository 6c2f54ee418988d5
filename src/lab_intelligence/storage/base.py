# ============================================================================
# src/lab_intelligence/storage/base.py
# ============================================================================
"""
Storage Backend Interface

Three record kinds, keyed by report id:
- lab_reports:  one row per document, updated as processing advances
- lab_values:   one row per extracted value
- lab_analyses: one row per successful provider result

The pipeline only writes; the read helpers serve callers and tests.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..core.context import (
    CoordinatedAnalysisResult,
    ExtractedLabValue,
    LabExtractionResult,
    ProviderAnalysisResult,
    ProviderRole,
)


class StorageBackend(ABC):

    @abstractmethod
    def create_report(self, report_id: str, file_name: str = "", **fields) -> Dict[str, Any]:
        pass

    @abstractmethod
    def update_report(self, report_id: str, **fields) -> Dict[str, Any]:
        """Merge fields into the report; raises StorageError if it does not exist."""
        pass

    @abstractmethod
    def create_lab_value(self, report_id: str, value: ExtractedLabValue) -> int:
        pass

    @abstractmethod
    def create_analysis_record(
        self,
        report_id: str,
        result: ProviderAnalysisResult,
        role: ProviderRole = ProviderRole.SECONDARY,
    ) -> int:
        pass

    @abstractmethod
    def get_report(self, report_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def get_lab_values(self, report_id: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def get_analysis_records(self, report_id: str) -> List[Dict[str, Any]]:
        pass

    # ------------------------------------------------------------------
    # Composite writes
    # ------------------------------------------------------------------

    def save_extraction(self, report_id: str, extraction: LabExtractionResult) -> int:
        """Write the extraction value by value, then the report metadata."""
        for value in extraction.values:
            self.create_lab_value(report_id, value)

        self.update_report(
            report_id,
            laboratory_name=extraction.laboratory_name or "Unknown Laboratory",
            report_date=extraction.report_date.isoformat() if extraction.report_date else None,
            extraction_confidence=extraction.confidence,
            processing_notes=list(extraction.processing_notes),
        )
        return len(extraction.values)

    def save_analysis(self, report_id: str, result: CoordinatedAnalysisResult) -> int:
        """One primary record plus one record per successful secondary."""
        self.create_analysis_record(report_id, result.primary_analysis, ProviderRole.PRIMARY)
        for research in result.research_findings:
            self.create_analysis_record(report_id, research, ProviderRole.SECONDARY)

        final = result.final_recommendations
        self.update_report(
            report_id,
            document_type=result.primary_analysis.document_type,
            urgency_level=final.urgency_level.value,
            clinical_significance=", ".join(final.diagnostic_shortlist) or "Analysis completed",
            final_recommendations=final.to_dict(),
            failed_providers=list(result.failed_providers),
        )
        return 1 + len(result.research_findings)
