# ============================================================================
# src/lab_intelligence/providers/perplexity_provider.py
# ============================================================================
"""
Research Provider (Perplexity)

Evidence review with citations. The API is chat-completions compatible
and returns source URLs next to the message; those fill in the payload's
citations when the model leaves them out.
"""

from typing import Any, Dict, Optional, Tuple

from ..config import provider_settings
from ..core.context import PatientContext, ProviderAnalysisResult
from ..utils.exceptions import ProviderResponseError
from . import prompts
from .base import AnalysisProvider
from .schemas import ResearchAnalysisPayload


class PerplexityResearchProvider(AnalysisProvider):

    provider_id = "perplexity"
    analysis_type = "research_agent"
    payload_schema = ResearchAnalysisPayload

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        if not self.base_url:
            self.base_url = "https://api.perplexity.ai"

        self._model_name = self.config.get('model', provider_settings.RESEARCH_MODEL)
        self._timeout = self.config.get('timeout', provider_settings.RESEARCH_TIMEOUT)
        self.temperature = self.config.get('temperature', provider_settings.RESEARCH_TEMPERATURE)
        self.max_tokens = self.config.get('max_tokens', provider_settings.RESEARCH_MAX_TOKENS)

        self.logger.info(f"Initialized research provider: {self.base_url} / {self._model_name}")

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
        system_prompt = prompts.RESEARCH_SYSTEM.format(document_type=document_type)
        return system_prompt, prompts.research_user_prompt(document_text, document_type, prior_findings)

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

    def response_extras(self, data: Dict[str, Any]) -> Dict[str, Any]:
        citations = data.get("citations") or []
        return {"citations": [str(c) for c in citations]}
