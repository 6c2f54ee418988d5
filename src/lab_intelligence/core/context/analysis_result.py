# ============================================================================
# src/lab_intelligence/core/context/analysis_result.py
# ============================================================================
"""
Analysis result types
- PatientContext passed to every provider
- ProviderAnalysisResult: one provider's structured answer
- FinalRecommendations / CoordinatedAnalysisResult: synthesized output
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .enums import UrgencyLevel


@dataclass(frozen=True)
class PatientContext:
    age: Optional[int] = None
    sex: Optional[str] = None  # "male", "female" or None
    conditions: Tuple[str, ...] = field(default_factory=tuple)
    medications: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "age": self.age,
            "sex": self.sex,
            "conditions": list(self.conditions),
            "medications": list(self.medications),
        }


@dataclass(frozen=True)
class Recommendation:
    type: str  # "follow_up", "testing", "lifestyle", "dietary", "referral", ...
    description: str
    priority: str = "medium"  # "low", "medium", "high", "urgent"
    timeframe: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "description": self.description,
            "priority": self.priority,
            "timeframe": self.timeframe,
        }


@dataclass(frozen=True)
class AbnormalValueExplanation:
    test_name: str
    explanation: str
    significance: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test_name": self.test_name,
            "explanation": self.explanation,
            "significance": self.significance,
        }


@dataclass(frozen=True)
class ProviderFindings:
    abnormal_values: Tuple[AbnormalValueExplanation, ...] = field(default_factory=tuple)
    patterns: Tuple[str, ...] = field(default_factory=tuple)
    recommendations: Tuple[Recommendation, ...] = field(default_factory=tuple)

    # Provider-specific extras (citations, risk factors)
    citations: Tuple[str, ...] = field(default_factory=tuple)
    risk_factors: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "abnormal_values": [a.to_dict() for a in self.abnormal_values],
            "patterns": list(self.patterns),
            "recommendations": [r.to_dict() for r in self.recommendations],
            "citations": list(self.citations),
            "risk_factors": list(self.risk_factors),
        }


@dataclass(frozen=True)
class ProviderAnalysisResult:
    provider_id: str
    analysis_type: str  # "primary_orchestrator", "research_agent", "clinical_reasoning"
    document_type: str
    findings: ProviderFindings
    overall_assessment: str
    urgency_level: UrgencyLevel
    confidence: float
    processing_time: float = 0.0

    diagnostic_shortlist: Tuple[str, ...] = field(default_factory=tuple)
    clinical_questions: Tuple[str, ...] = field(default_factory=tuple)
    follow_up_actions: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"{self.provider_id}: confidence {self.confidence} outside [0, 1]")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "analysis_type": self.analysis_type,
            "document_type": self.document_type,
            "findings": self.findings.to_dict(),
            "overall_assessment": self.overall_assessment,
            "urgency_level": self.urgency_level.value,
            "confidence": self.confidence,
            "processing_time": self.processing_time,
            "diagnostic_shortlist": list(self.diagnostic_shortlist),
            "clinical_questions": list(self.clinical_questions),
            "follow_up_actions": list(self.follow_up_actions),
        }


@dataclass(frozen=True)
class FollowUpItem:
    action: str
    timeframe: Optional[str] = None
    source: Optional[str] = None  # provider id that proposed it

    def to_dict(self) -> Dict[str, Any]:
        return {"action": self.action, "timeframe": self.timeframe, "source": self.source}


@dataclass(frozen=True)
class FinalRecommendations:
    diagnostic_shortlist: Tuple[str, ...]
    clinical_questions: Tuple[str, ...]
    follow_up_timeline: Tuple[FollowUpItem, ...]
    recommendations: Tuple[Recommendation, ...]
    urgency_level: UrgencyLevel
    confidence: float

    @property
    def dietary_recommendations(self) -> Tuple[Recommendation, ...]:
        return tuple(r for r in self.recommendations if r.type == "dietary")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "diagnostic_shortlist": list(self.diagnostic_shortlist),
            "clinical_questions": list(self.clinical_questions),
            "follow_up_timeline": [f.to_dict() for f in self.follow_up_timeline],
            "recommendations": [r.to_dict() for r in self.recommendations],
            "urgency_level": self.urgency_level.value,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class CoordinatedAnalysisResult:
    primary_analysis: ProviderAnalysisResult
    research_findings: Tuple[ProviderAnalysisResult, ...]
    final_recommendations: FinalRecommendations
    processing_time: float = 0.0
    failed_providers: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_degraded(self) -> bool:
        return bool(self.failed_providers)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_analysis": self.primary_analysis.to_dict(),
            "research_findings": [r.to_dict() for r in self.research_findings],
            "final_recommendations": self.final_recommendations.to_dict(),
            "processing_time": self.processing_time,
            "failed_providers": list(self.failed_providers),
        }
