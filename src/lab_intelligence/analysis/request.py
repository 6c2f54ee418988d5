# ============================================================================
# src/lab_intelligence/analysis/request.py
# ============================================================================
"""
Document analysis request: the one immutable input every provider shares.
"""

from dataclasses import dataclass
from typing import Optional

from ..constants import DocumentType
from ..core.context import LabExtractionResult, PatientContext
from ..providers.prompts import describe_document, detect_document_type


@dataclass(frozen=True)
class DocumentAnalysisRequest:
    document_text: str
    document_type_hint: str
    extraction: LabExtractionResult
    patient: Optional[PatientContext] = None
    report_id: Optional[str] = None

    @classmethod
    def from_extraction(
        cls,
        extraction: LabExtractionResult,
        patient: Optional[PatientContext] = None,
        report_id: Optional[str] = None,
    ) -> "DocumentAnalysisRequest":
        source = " ".join(
            [extraction.laboratory_name or ""] + [v.test_name for v in extraction.values]
        )
        hint = detect_document_type(source)
        if hint == DocumentType.UNKNOWN.value and extraction.values:
            hint = DocumentType.LAB.value

        return cls(
            document_text=describe_document(extraction, patient, hint),
            document_type_hint=hint,
            extraction=extraction,
            patient=patient,
            report_id=report_id,
        )
