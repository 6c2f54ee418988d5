# ============================================================================
# src/lab_intelligence/providers/prompts.py
# ============================================================================
"""
Analysis Prompt Templates

Provides:
- System prompts for the primary, research and clinical providers
- The textual document description every provider receives
- Local document-type hinting
- Follow-up queries that fold in the primary's findings when available
"""

import json
from dataclasses import dataclass
from typing import List, Optional

from ..constants import DOCUMENT_TYPE_KEYWORDS, DocumentType
from ..core.context import LabExtractionResult, PatientContext, ProviderAnalysisResult


@dataclass(frozen=True)
class PromptTemplate:
    """Prompt template"""
    name: str
    template: str
    required_fields: tuple = ()

    def format(self, **kwargs) -> str:
        missing = [f for f in self.required_fields if f not in kwargs]
        if missing:
            raise ValueError(f"Missing required fields: {missing}")
        return self.template.format(**kwargs)


_COMMON_FIELDS = """- overall_assessment: string summary of the document
- urgency_level: "low" | "medium" | "high" | "critical"
- confidence: number between 0 and 1
- recommendations: array of {{"type", "description", "priority", "timeframe"}};
  type is one of follow_up, testing, lifestyle, dietary, referral;
  priority is one of low, medium, high, urgent
- follow_up_actions: array of strings
- diagnostic_shortlist: array of potential diagnoses or conditions
- clinical_questions: array of questions to ask the patient"""


PRIMARY_SYSTEM = PromptTemplate(
    name="primary_orchestrator",
    template="""You are the primary medical analysis agent in a multi-provider system. Your role is to:
1. Analyze the document and provide the initial clinical assessment
2. Decide the document type
3. Generate specific research questions for the other agents

Document Type (local hint): {document_type}

Respond with a single JSON object with these fields:
- document_type: "lab" | "colonoscopy" | "pathology" | "radiology" | "unknown"
- findings: {{"abnormal_values": [{{"test_name", "explanation", "significance"}}], "patterns": [string]}}
""" + _COMMON_FIELDS + """
- research_queries: array of questions for the research agents
{focus}""",
    required_fields=("document_type", "focus"),
)

RESEARCH_SYSTEM = PromptTemplate(
    name="research_agent",
    template="""You are a research agent specializing in evidence-based medicine. Your role is to:
1. Review current literature related to the findings
2. Focus on differential diagnosis and clinical correlations
3. Identify current guidelines

Document Type: {document_type}

Respond with a single JSON object with these fields:
""" + _COMMON_FIELDS + """
- evidence: array of evidence statements
- citations: array of sources""",
    required_fields=("document_type",),
)

CLINICAL_SYSTEM = PromptTemplate(
    name="clinical_reasoning",
    template="""You are a clinical reasoning agent specializing in pattern recognition. Your role is to:
1. Provide clinical reasoning for the findings
2. Identify patterns and correlations between values
3. Assess risk factors and prognosis

Document Type: {document_type}

Respond with a single JSON object and nothing else, with these fields:
""" + _COMMON_FIELDS + """
- abnormal_values: array of {{"test_name", "explanation", "significance"}}
- patterns: array of strings
- risk_factors: array of strings""",
    required_fields=("document_type",),
)

DOCUMENT_FOCUS = {
    DocumentType.LAB.value: """
For lab documents, focus on:
- Abnormal values and their clinical significance
- Patterns suggesting specific conditions
- Need for additional testing""",
    DocumentType.COLONOSCOPY.value: """
For colonoscopy documents, focus on:
- Polyp findings (size, location, histology)
- Inflammatory conditions
- Surveillance recommendations""",
}


def detect_document_type(text: str) -> str:
    """Keyword hint only; the primary provider's answer takes precedence."""
    lowered = (text or "").lower()
    for document_type, keywords in DOCUMENT_TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return document_type.value
    return DocumentType.UNKNOWN.value


def describe_patient(patient: Optional[PatientContext]) -> str:
    if patient is None:
        return "- Age: Unknown\n- Sex: Unknown"

    lines = [
        f"- Age: {patient.age if patient.age is not None else 'Unknown'}",
        f"- Sex: {patient.sex or 'Unknown'}",
    ]
    if patient.conditions:
        lines.append(f"- Known conditions: {', '.join(patient.conditions)}")
    if patient.medications:
        lines.append(f"- Medications: {', '.join(patient.medications)}")
    return "\n".join(lines)


def describe_document(
    extraction: LabExtractionResult,
    patient: Optional[PatientContext] = None,
    document_type: str = DocumentType.LAB.value,
) -> str:
    """Render an extraction result as the text every provider analyzes."""
    lines: List[str] = [
        "Medical Document Analysis Request:",
        "",
        f"Document Type: {document_type}",
        f"Report Date: {extraction.report_date.isoformat() if extraction.report_date else 'Unknown'}",
        f"Facility: {extraction.laboratory_name or 'Unknown'}",
        "",
        "Lab Values:",
    ]

    if not extraction.values:
        lines.append("(no values extracted)")

    for value in extraction.values:
        parts = [f"- {value.test_name}: {value.value}"]
        if value.unit:
            parts.append(value.unit)
        if value.reference_range:
            parts.append(f"(ref {value.reference_range})")
        if value.abnormal_flag is not None:
            parts.append(f"[{value.abnormal_flag.value}]")
        if value.critical_flag:
            parts.append("CRITICAL")
        lines.append(" ".join(parts))

    lines.extend(["", "Patient Information:", describe_patient(patient)])
    return "\n".join(lines)


def primary_user_prompt(document_text: str, document_type: str) -> str:
    return (
        f"{document_text}\n\n"
        f"Please analyze this {document_type} document and provide comprehensive clinical insights."
    )


def research_user_prompt(
    document_text: str,
    document_type: str,
    prior_findings: Optional[ProviderAnalysisResult] = None,
) -> str:
    if prior_findings is not None and prior_findings.diagnostic_shortlist:
        focus = (
            f"Research the following {document_type} findings: "
            f"{', '.join(prior_findings.diagnostic_shortlist)}."
        )
    else:
        focus = f"Research the abnormal findings in this {document_type} document."

    return (
        f"{document_text}\n\n{focus}\n"
        "Provide evidence-based analysis, current guidelines and clinical significance with citations."
    )


def clinical_user_prompt(
    document_text: str,
    patient: Optional[PatientContext],
    prior_findings: Optional[ProviderAnalysisResult] = None,
) -> str:
    lines = [document_text, ""]
    if prior_findings is not None:
        lines.append(
            "Provide clinical reasoning for these preliminary findings: "
            f"{json.dumps(prior_findings.findings.to_dict())}"
        )
    else:
        lines.append("Provide clinical reasoning for the abnormal values above.")

    if patient is not None:
        lines.append(f"Consider patient age: {patient.age}, sex: {patient.sex}")
    lines.append("Focus on pattern recognition, risk assessment and clinical correlations.")
    return "\n".join(lines)
