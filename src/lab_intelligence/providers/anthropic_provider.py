# ============================================================================
# src/lab_intelligence/providers/anthropic_provider.py
# ============================================================================
"""
Clinical Reasoning Provider (Anthropic messages API)

Pattern recognition and risk assessment over the extracted values.
"""

from typing import Any, Dict, Optional, Tuple

from ..config import provider_settings
from ..core.context import PatientContext, ProviderAnalysisResult
from ..utils.exceptions import ProviderResponseError
from . import prompts
from .base import AnalysisProvider
from .schemas import ClinicalReasoningPayload


class AnthropicClinicalProvider(AnalysisProvider):
    """
    Config options:
        api_key: Sent as x-api-key
        base_url: API root (default: https://api.anthropic.com/v1)
        anthropic_version: API version header (default: 2023-06-01)
        model / timeout / temperature / max_tokens: CLINICAL_* defaults
    """

    provider_id = "claude"
    analysis_type = "clinical_reasoning"
    payload_schema = ClinicalReasoningPayload

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        if not self.base_url:
            self.base_url = "https://api.anthropic.com/v1"

        self.api_version = self.config.get('anthropic_version', '2023-06-01')
        self._model_name = self.config.get('model', provider_settings.CLINICAL_MODEL)
        self._timeout = self.config.get('timeout', provider_settings.CLINICAL_TIMEOUT)
        self.temperature = self.config.get('temperature', provider_settings.CLINICAL_TEMPERATURE)
        self.max_tokens = self.config.get('max_tokens', provider_settings.CLINICAL_MAX_TOKENS)

        self.logger.info(f"Initialized clinical provider: {self.base_url} / {self._model_name}")

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def default_timeout(self) -> float:
        return self._timeout

    def build_prompts(
        self,
        document_text: str,
        patient_context: Optional[PatientContext],
        prior_findings: Optional[ProviderAnalysisResult],
        document_type: str = "unknown",
    ) -> Tuple[str, str]:
        if prior_findings is not None:
            document_type = prior_findings.document_type
        system_prompt = prompts.CLINICAL_SYSTEM.format(document_type=document_type)
        return system_prompt, prompts.clinical_user_prompt(document_text, patient_context, prior_findings)

    def build_request(self, system_prompt: str, user_prompt: str):
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
            "content-type": "application/json",
        }
        body = {
            "model": self._model_name,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        return f"{self.base_url}/messages", headers, body

    def extract_content(self, data: Dict[str, Any]) -> str:
        try:
            blocks = data["content"]
            text = "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
        except (KeyError, TypeError, AttributeError) as e:
            raise ProviderResponseError(
                f"{self.provider_id} response has no content blocks", self.provider_id
            ) from e
        return text
