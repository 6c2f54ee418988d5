# ============================================================================
# src/lab_intelligence/providers/schemas.py
# ============================================================================
"""
Provider Payload Schemas

One strict pydantic model per provider. A payload that is missing a
required field, or carries an out-of-range value, fails validation and
the provider call fails with ProviderResponseError; there is no
best-effort partial result.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.context import (
    AbnormalValueExplanation,
    ProviderAnalysisResult,
    ProviderFindings,
    Recommendation,
    UrgencyLevel,
)

UrgencyText = Literal["low", "medium", "high", "critical"]
PriorityText = Literal["low", "medium", "high", "urgent"]


def _lower(value):
    return value.strip().lower() if isinstance(value, str) else value


class RecommendationPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str = Field(description="follow_up, testing, lifestyle, dietary, referral, ...")
    description: str = Field(min_length=1)
    priority: PriorityText = "medium"
    timeframe: Optional[str] = None

    @field_validator("type", "priority", mode="before")
    @classmethod
    def lowercase_codes(cls, value):
        return _lower(value)

    def to_recommendation(self) -> Recommendation:
        return Recommendation(
            type=self.type,
            description=self.description,
            priority=self.priority,
            timeframe=self.timeframe,
        )


class AbnormalValuePayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    test_name: str = Field(min_length=1)
    explanation: str
    significance: Optional[str] = None

    def to_explanation(self) -> AbnormalValueExplanation:
        return AbnormalValueExplanation(
            test_name=self.test_name,
            explanation=self.explanation,
            significance=self.significance,
        )


class FindingsPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    abnormal_values: List[AbnormalValuePayload] = Field(default_factory=list)
    patterns: List[str] = Field(default_factory=list)


class AnalysisPayload(BaseModel):
    """Fields every provider must return."""

    model_config = ConfigDict(frozen=True)

    overall_assessment: str = Field(min_length=1)
    urgency_level: UrgencyText
    confidence: float = Field(ge=0.0, le=1.0)

    recommendations: List[RecommendationPayload] = Field(default_factory=list)
    diagnostic_shortlist: List[str] = Field(default_factory=list)
    clinical_questions: List[str] = Field(default_factory=list)
    follow_up_actions: List[str] = Field(default_factory=list)

    @field_validator("urgency_level", mode="before")
    @classmethod
    def lowercase_urgency(cls, value):
        return _lower(value)

    def _findings(self) -> ProviderFindings:
        return ProviderFindings(
            recommendations=tuple(r.to_recommendation() for r in self.recommendations),
        )

    def to_result(
        self,
        provider_id: str,
        analysis_type: str,
        document_type: str,
        processing_time: float,
    ) -> ProviderAnalysisResult:
        return ProviderAnalysisResult(
            provider_id=provider_id,
            analysis_type=analysis_type,
            document_type=document_type,
            findings=self._findings(),
            overall_assessment=self.overall_assessment,
            urgency_level=UrgencyLevel.parse(self.urgency_level),
            confidence=self.confidence,
            processing_time=processing_time,
            diagnostic_shortlist=tuple(self.diagnostic_shortlist),
            clinical_questions=tuple(self.clinical_questions),
            follow_up_actions=tuple(self.follow_up_actions),
        )


class PrimaryAnalysisPayload(AnalysisPayload):
    """Primary orchestrator: decides the document type and initial findings."""

    document_type: str = Field(min_length=1)
    findings: FindingsPayload
    research_queries: List[str] = Field(default_factory=list)

    @field_validator("document_type", mode="before")
    @classmethod
    def lowercase_document_type(cls, value):
        return _lower(value)

    def _findings(self) -> ProviderFindings:
        return ProviderFindings(
            abnormal_values=tuple(a.to_explanation() for a in self.findings.abnormal_values),
            patterns=tuple(self.findings.patterns),
            recommendations=tuple(r.to_recommendation() for r in self.recommendations),
        )


class ResearchAnalysisPayload(AnalysisPayload):
    """Research agent: evidence review with citations."""

    evidence: List[str] = Field(default_factory=list)
    citations: List[str] = Field(default_factory=list)

    def _findings(self) -> ProviderFindings:
        return ProviderFindings(
            patterns=tuple(self.evidence),
            recommendations=tuple(r.to_recommendation() for r in self.recommendations),
            citations=tuple(self.citations),
        )


class ClinicalReasoningPayload(AnalysisPayload):
    """Clinical reasoning agent: patterns and risk factors."""

    abnormal_values: List[AbnormalValuePayload] = Field(default_factory=list)
    patterns: List[str] = Field(default_factory=list)
    risk_factors: List[str] = Field(default_factory=list)

    def _findings(self) -> ProviderFindings:
        return ProviderFindings(
            abnormal_values=tuple(a.to_explanation() for a in self.abnormal_values),
            patterns=tuple(self.patterns),
            recommendations=tuple(r.to_recommendation() for r in self.recommendations),
            risk_factors=tuple(self.risk_factors),
        )
