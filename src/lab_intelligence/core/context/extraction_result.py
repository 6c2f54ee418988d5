# ============================================================================
# src/lab_intelligence/core/context/extraction_result.py
# ============================================================================
"""
Extraction result for one document
- Report metadata (lab, date, patient identifiers)
- Ordered extracted values
- Aggregate confidence and non-fatal processing notes
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Optional, Tuple

from .extracted_value import ExtractedLabValue


@dataclass(frozen=True)
class PatientIdentifiers:
    name: Optional[str] = None
    date_of_birth: Optional[date] = None
    medical_record_number: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.name or self.date_of_birth or self.medical_record_number)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "medical_record_number": self.medical_record_number,
        }


@dataclass(frozen=True)
class ReportMetadata:
    laboratory_name: Optional[str] = None
    report_date: Optional[date] = None
    patient: Optional[PatientIdentifiers] = None


@dataclass(frozen=True)
class LabExtractionResult:
    laboratory_name: Optional[str] = None
    report_date: Optional[date] = None
    patient: Optional[PatientIdentifiers] = None
    values: Tuple[ExtractedLabValue, ...] = field(default_factory=tuple)
    confidence: float = 0.0
    processing_notes: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def abnormal_values(self) -> Tuple[ExtractedLabValue, ...]:
        return tuple(v for v in self.values if v.is_abnormal)

    @property
    def critical_values(self) -> Tuple[ExtractedLabValue, ...]:
        return tuple(v for v in self.values if v.critical_flag)

    @property
    def is_empty(self) -> bool:
        return not self.values

    def to_dict(self) -> Dict[str, Any]:
        return {
            "laboratory_name": self.laboratory_name,
            "report_date": self.report_date.isoformat() if self.report_date else None,
            "patient": self.patient.to_dict() if self.patient else None,
            "values": [v.to_dict() for v in self.values],
            "confidence": self.confidence,
            "processing_notes": list(self.processing_notes),
        }
