# ============================================================================
# FILE: tests/unit/test_providers.py
# ============================================================================
"""
Unit tests for the analysis providers

HTTP is never touched: each test replaces provider.post_json with a
coroutine returning a canned response body.
"""

import asyncio
import json

import aiohttp
import pytest

from lab_intelligence.core.context import UrgencyLevel
from lab_intelligence.providers import (
    AnthropicClinicalProvider,
    OpenAIPrimaryProvider,
    PerplexityResearchProvider,
    create_providers,
)
from lab_intelligence.utils.exceptions import (
    ConfigurationError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderTransportError,
)

DOCUMENT = "Medical Document Analysis Request:\n\nLab Values:\n- Potassium: 6.8 (ref 3.5-5.1) [HH] CRITICAL"

PRIMARY_PAYLOAD = {
    "document_type": "lab",
    "findings": {
        "abnormal_values": [{"test_name": "Potassium", "explanation": "Hyperkalemia"}],
        "patterns": ["electrolyte imbalance"],
    },
    "overall_assessment": "Critical potassium",
    "urgency_level": "critical",
    "confidence": 0.9,
    "recommendations": [{"type": "follow_up", "description": "Repeat potassium", "priority": "urgent"}],
    "diagnostic_shortlist": ["Hyperkalemia"],
    "follow_up_actions": ["Repeat BMP"],
}

SECONDARY_PAYLOAD = {
    "overall_assessment": "Consistent with hyperkalemia",
    "urgency_level": "high",
    "confidence": 0.8,
    "evidence": ["Potassium above 6.5 mmol/L warrants ECG"],
    "risk_factors": ["ACE inhibitor use"],
}


def chat_response(content, **extra):
    body = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    body.update(extra)
    return body


def canned(response, calls=None):
    """Build a post_json replacement returning `response`."""
    async def post_json(url, headers, body):
        if calls is not None:
            calls.append({"url": url, "headers": headers, "body": body})
        return response
    return post_json


@pytest.fixture
def primary():
    return OpenAIPrimaryProvider({"api_key": "sk-test", "model": "gpt-test"})


@pytest.fixture
def research():
    return PerplexityResearchProvider({"api_key": "pplx-test"})


@pytest.fixture
def clinical():
    return AnthropicClinicalProvider({"api_key": "ant-test", "anthropic_version": "2023-06-01"})


@pytest.mark.asyncio
async def test_primary_analyze_success(primary):
    """Valid JSON payload becomes a ProviderAnalysisResult"""
    calls = []
    primary.post_json = canned(chat_response(json.dumps(PRIMARY_PAYLOAD)), calls)

    result = await primary.analyze(DOCUMENT, document_type_hint="lab")

    assert result.provider_id == "gpt4o"
    assert result.analysis_type == "primary_orchestrator"
    assert result.document_type == "lab"
    assert result.urgency_level is UrgencyLevel.CRITICAL
    assert result.findings.abnormal_values[0].test_name == "Potassium"
    assert result.processing_time >= 0.0

    request = calls[0]
    assert request["url"] == "https://api.openai.com/v1/chat/completions"
    assert request["headers"]["Authorization"] == "Bearer sk-test"
    assert request["body"]["model"] == "gpt-test"
    assert request["body"]["response_format"] == {"type": "json_object"}
    assert DOCUMENT in request["body"]["messages"][1]["content"]

    stats = primary.get_statistics()
    assert stats["call_count"] == 1
    assert stats["failure_count"] == 0


@pytest.mark.asyncio
async def test_primary_document_type_overrides_hint(primary):
    """The primary's own document type wins over the local hint"""
    payload = dict(PRIMARY_PAYLOAD, document_type="Colonoscopy")
    primary.post_json = canned(chat_response(json.dumps(payload)))

    result = await primary.analyze(DOCUMENT, document_type_hint="lab")

    assert result.document_type == "colonoscopy"


@pytest.mark.asyncio
async def test_analyze_timeout(primary):
    """A call past its deadline raises ProviderTimeoutError"""
    async def slow_post(url, headers, body):
        await asyncio.sleep(5)

    primary.post_json = slow_post

    with pytest.raises(ProviderTimeoutError) as exc_info:
        await primary.analyze(DOCUMENT, timeout=0.05)

    assert exc_info.value.provider_id == "gpt4o"
    assert exc_info.value.timeout == 0.05
    assert primary.get_statistics()["failure_count"] == 1


@pytest.mark.asyncio
async def test_analyze_network_error(research):
    """aiohttp errors map to ProviderTransportError"""
    async def failing_post(url, headers, body):
        raise aiohttp.ClientConnectionError("connection refused")

    research.post_json = failing_post

    with pytest.raises(ProviderTransportError):
        await research.analyze(DOCUMENT)


@pytest.mark.asyncio
async def test_analyze_http_error_keeps_status(research):
    """Non-200 responses keep their status code"""
    async def server_error(url, headers, body):
        raise ProviderTransportError("HTTP 503", "perplexity", status=503)

    research.post_json = server_error

    with pytest.raises(ProviderTransportError) as exc_info:
        await research.analyze(DOCUMENT)
    assert exc_info.value.status == 503


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [
    "I'm sorry, I cannot analyze this document.",
    "",
    json.dumps({"overall_assessment": "ok"}),
    json.dumps(dict(PRIMARY_PAYLOAD, confidence=3)),
])
async def test_analyze_unusable_payload_fails_closed(primary, content):
    """No JSON or a schema mismatch raises ProviderResponseError"""
    primary.post_json = canned(chat_response(content))

    with pytest.raises(ProviderResponseError):
        await primary.analyze(DOCUMENT)
    assert primary.get_statistics()["failure_count"] == 1


@pytest.mark.asyncio
async def test_analyze_missing_message(primary):
    """A response without choices is a response error"""
    primary.post_json = canned({"error": "overloaded"})

    with pytest.raises(ProviderResponseError):
        await primary.analyze(DOCUMENT)


@pytest.mark.asyncio
async def test_analyze_repairs_json_syntax(primary):
    """Prose around the object and trailing commas are tolerated"""
    content = "Here is my analysis:\n" + json.dumps(PRIMARY_PAYLOAD)[:-1] + ",}\nLet me know if you need more."
    primary.post_json = canned(chat_response(content))

    result = await primary.analyze(DOCUMENT)

    assert result.urgency_level is UrgencyLevel.CRITICAL


def test_extract_json(primary):
    """Direct JSON, wrapped JSON and repaired JSON"""
    assert primary.extract_json('{"a": 1}') == {"a": 1}
    assert primary.extract_json('Sure! {"a": 1} Done.') == {"a": 1}
    assert primary.extract_json('{"a": 1, "b": [1, 2,],}') == {"a": 1, "b": [1, 2]}
    assert primary.extract_json("   ") is None


@pytest.mark.asyncio
async def test_research_fills_citations_from_response(research):
    """Top-level citations fill the payload when the model gave none"""
    response = chat_response(
        json.dumps(SECONDARY_PAYLOAD),
        citations=["https://www.ncbi.nlm.nih.gov/books/NBK470284/"],
    )
    research.post_json = canned(response)

    result = await research.analyze(DOCUMENT, document_type_hint="lab")

    assert result.provider_id == "perplexity"
    assert result.findings.citations == ("https://www.ncbi.nlm.nih.gov/books/NBK470284/",)
    assert result.findings.patterns == ("Potassium above 6.5 mmol/L warrants ECG",)
    assert result.document_type == "lab"


@pytest.mark.asyncio
async def test_research_keeps_model_citations(research):
    """Citations the model returned are not overwritten"""
    payload = dict(SECONDARY_PAYLOAD, citations=["model source"])
    research.post_json = canned(chat_response(json.dumps(payload), citations=["api source"]))

    result = await research.analyze(DOCUMENT)

    assert result.findings.citations == ("model source",)


@pytest.mark.asyncio
async def test_research_prompt_uses_prior_findings(research, result_factory):
    """The primary's shortlist and document type reach the research prompt"""
    calls = []
    research.post_json = canned(chat_response(json.dumps(SECONDARY_PAYLOAD)), calls)
    prior = result_factory(shortlist=["Hyperkalemia", "Renal failure"], document_type="colonoscopy")

    result = await research.analyze(DOCUMENT, prior_findings=prior, document_type_hint="lab")

    messages = calls[0]["body"]["messages"]
    assert "Hyperkalemia, Renal failure" in messages[1]["content"]
    assert "colonoscopy" in messages[0]["content"]
    assert result.document_type == "colonoscopy"


@pytest.mark.asyncio
async def test_clinical_request_and_content_blocks(clinical, sample_patient):
    """Messages API request shape and text-block concatenation"""
    text = json.dumps(SECONDARY_PAYLOAD)
    response = {
        "content": [
            {"type": "text", "text": text[:20]},
            {"type": "tool_use", "id": "t1"},
            {"type": "text", "text": text[20:]},
        ]
    }
    calls = []
    clinical.post_json = canned(response, calls)

    result = await clinical.analyze(DOCUMENT, patient_context=sample_patient)

    request = calls[0]
    assert request["url"] == "https://api.anthropic.com/v1/messages"
    assert request["headers"]["x-api-key"] == "ant-test"
    assert request["headers"]["anthropic-version"] == "2023-06-01"
    assert "clinical reasoning agent" in request["body"]["system"]
    assert "Consider patient age: 54, sex: male" in request["body"]["messages"][0]["content"]

    assert result.provider_id == "claude"
    assert result.findings.risk_factors == ("ACE inhibitor use",)
    assert result.urgency_level is UrgencyLevel.HIGH


@pytest.mark.asyncio
async def test_clinical_missing_content(clinical):
    """A messages response without content blocks fails closed"""
    clinical.post_json = canned({"type": "error"})

    with pytest.raises(ProviderResponseError):
        await clinical.analyze(DOCUMENT)


@pytest.mark.asyncio
async def test_cancellation_propagates(clinical):
    """Cancelling the caller cancels the in-flight call"""
    started = asyncio.Event()

    async def hanging_post(url, headers, body):
        started.set()
        await asyncio.sleep(10)

    clinical.post_json = hanging_post

    task = asyncio.create_task(clinical.analyze(DOCUMENT, timeout=30))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


def test_default_timeouts_are_independent(primary, research, clinical):
    """Each provider carries its own default deadline"""
    from lab_intelligence.config import provider_settings

    assert primary.default_timeout == provider_settings.PRIMARY_TIMEOUT
    assert research.default_timeout == provider_settings.RESEARCH_TIMEOUT
    assert clinical.default_timeout == provider_settings.CLINICAL_TIMEOUT


def test_create_providers():
    """Factory builds the primary and both secondaries"""
    primary, secondaries = create_providers({
        "openai_api_key": "a",
        "perplexity_api_key": "b",
        "anthropic_api_key": "c",
        "openai_base_url": "http://localhost:8080/v1/",
    })

    assert isinstance(primary, OpenAIPrimaryProvider)
    assert [type(p) for p in secondaries] == [PerplexityResearchProvider, AnthropicClinicalProvider]
    assert primary.base_url == "http://localhost:8080/v1"
    assert secondaries[0].base_url == "https://api.perplexity.ai"


def test_create_providers_missing_keys():
    """Missing credentials are reported together"""
    with pytest.raises(ConfigurationError) as exc_info:
        create_providers({"openai_api_key": "a"})

    message = str(exc_info.value)
    assert "perplexity_api_key" in message
    assert "anthropic_api_key" in message
    assert "openai_api_key" not in message
