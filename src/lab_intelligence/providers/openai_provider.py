# ============================================================================
# src/lab_intelligence/providers/openai_provider.py
# ============================================================================
"""
Primary Provider (OpenAI chat completions)

Drives document-type detection and the initial finding set. Uses JSON
mode so the model is constrained to emit one object.
"""

from typing import Any, Dict, Optional, Tuple

from ..config import provider_settings
from ..core.context import PatientContext, ProviderAnalysisResult
from ..utils.exceptions import ProviderResponseError
from . import prompts
from .base import AnalysisProvider
from .schemas import AnalysisPayload, PrimaryAnalysisPayload


class OpenAIPrimaryProvider(AnalysisProvider):
    """
    Config options:
        api_key: Bearer token
        base_url: API root (default: https://api.openai.com/v1)
        model: Chat model (default: PRIMARY_MODEL)
        timeout / temperature / max_tokens: PRIMARY_* defaults
    """

    provider_id = "gpt4o"
    analysis_type = "primary_orchestrator"
    payload_schema = PrimaryAnalysisPayload

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        if not self.base_url:
            self.base_url = "https://api.openai.com/v1"

        self._model_name = self.config.get('model', provider_settings.PRIMARY_MODEL)
        self._timeout = self.config.get('timeout', provider_settings.PRIMARY_TIMEOUT)
        self.temperature = self.config.get('temperature', provider_settings.PRIMARY_TEMPERATURE)
        self.max_tokens = self.config.get('max_tokens', provider_settings.PRIMARY_MAX_TOKENS)

        self.logger.info(f"Initialized primary provider: {self.base_url} / {self._model_name}")

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
        system_prompt = prompts.PRIMARY_SYSTEM.format(
            document_type=document_type,
            focus=prompts.DOCUMENT_FOCUS.get(document_type, ""),
        )
        return system_prompt, prompts.primary_user_prompt(document_text, document_type)

    def build_request(self, system_prompt: str, user_prompt: str):
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        body = {
            "model": self._model_name,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "response_format": {"type": "json_object"},
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        return f"{self.base_url}/chat/completions", headers, body

    def extract_content(self, data: Dict[str, Any]) -> str:
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderResponseError(
                f"{self.provider_id} response has no message content", self.provider_id
            ) from e

    def resolve_document_type(
        self,
        payload: AnalysisPayload,
        prior_findings: Optional[ProviderAnalysisResult],
        hint: str,
    ) -> str:
        # The primary decides the type; the keyword hint is only a fallback
        return getattr(payload, "document_type", None) or hint
