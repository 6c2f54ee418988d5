# src/lab_intelligence/core/context/__init__.py

from .enums import (
    AbnormalFlag,
    UrgencyLevel,
    AnalysisStatus,
    AnalysisOutcomeStatus,
    ProviderRole,
)
from .extracted_value import SourcePosition, RawLineMatch, ExtractedLabValue
from .extraction_result import PatientIdentifiers, ReportMetadata, LabExtractionResult
from .analysis_result import (
    PatientContext,
    Recommendation,
    AbnormalValueExplanation,
    ProviderFindings,
    ProviderAnalysisResult,
    FollowUpItem,
    FinalRecommendations,
    CoordinatedAnalysisResult,
)

__all__ = [
    "AbnormalFlag",
    "UrgencyLevel",
    "AnalysisStatus",
    "AnalysisOutcomeStatus",
    "ProviderRole",
    "SourcePosition",
    "RawLineMatch",
    "ExtractedLabValue",
    "PatientIdentifiers",
    "ReportMetadata",
    "LabExtractionResult",
    "PatientContext",
    "Recommendation",
    "AbnormalValueExplanation",
    "ProviderFindings",
    "ProviderAnalysisResult",
    "FollowUpItem",
    "FinalRecommendations",
    "CoordinatedAnalysisResult",
]
