# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.
"""

import asyncio

import pytest

from lab_intelligence.core.context import (
    PatientContext,
    ProviderAnalysisResult,
    ProviderFindings,
    Recommendation,
    UrgencyLevel,
)


@pytest.fixture
def sample_lab_text():
    """Sample lab report text for testing"""
    return """Quest Diagnostics Laboratory Report
Patient: John Doe
MRN: 12345678
DOB: 03/14/1970
Collected: 01/15/2024

COMPREHENSIVE METABOLIC PANEL

Test                Result      Units      Reference Range    Flag
----------------------------------------------------------------
Glucose             105         mg/dl      70-100             H
Sodium              140         mmol/l     136-145
Potassium: 6.8 (3.5-5.1) HH
Creatinine          1.0         mg/dl      0.7-1.3
Serum Albumin       4.2         g/dl       3.5-5.0

Page 1 of 2
Confidential: for the named recipient only
"""


@pytest.fixture
def sample_patient():
    """Adult male patient context"""
    return PatientContext(age=54, sex="male", conditions=("hypertension",), medications=("lisinopril",))


def make_result(
    provider_id="gpt4o",
    urgency=UrgencyLevel.MEDIUM,
    confidence=0.8,
    shortlist=(),
    questions=(),
    follow_ups=(),
    recommendations=(),
    document_type="lab",
    analysis_type="primary_orchestrator",
):
    """Build a ProviderAnalysisResult with sensible defaults"""
    return ProviderAnalysisResult(
        provider_id=provider_id,
        analysis_type=analysis_type,
        document_type=document_type,
        findings=ProviderFindings(recommendations=tuple(recommendations)),
        overall_assessment=f"Assessment from {provider_id}",
        urgency_level=urgency,
        confidence=confidence,
        diagnostic_shortlist=tuple(shortlist),
        clinical_questions=tuple(questions),
        follow_up_actions=tuple(follow_ups),
    )


class FakeProvider:
    """
    Stand-in for an AnalysisProvider.

    Sleeps for `delay` seconds, then raises `error` if given, otherwise
    returns `result`. Records the calls it received and whether it was
    cancelled mid-flight.
    """

    def __init__(self, provider_id, result=None, delay=0.0, error=None, default_timeout=1.0):
        self.provider_id = provider_id
        self.analysis_type = "fake"
        self.result = result
        self.delay = delay
        self.error = error
        self.default_timeout = default_timeout
        self.calls = []
        self.cancelled = False

    async def analyze(self, document_text, patient_context=None, prior_findings=None,
                      timeout=None, document_type_hint="unknown"):
        self.calls.append({
            "document_text": document_text,
            "patient_context": patient_context,
            "prior_findings": prior_findings,
            "timeout": timeout,
            "document_type_hint": document_type_hint,
        })
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def fake_provider():
    """Factory fixture for FakeProvider"""
    return FakeProvider


@pytest.fixture
def result_factory():
    """Factory fixture for ProviderAnalysisResult"""
    return make_result


@pytest.fixture
def recommendation():
    """Recommendation factory"""
    def _make(type="follow_up", description="Repeat panel", priority="medium", timeframe=None):
        return Recommendation(type=type, description=description, priority=priority, timeframe=timeframe)
    return _make
