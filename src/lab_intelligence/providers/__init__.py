# ============================================================================
# src/lab_intelligence/providers/__init__.py
# ============================================================================
"""
Analysis providers and the factory that builds them from configuration.

Usage:
    from lab_intelligence.core.config import get_config
    from lab_intelligence.providers import create_providers

    primary, secondaries = create_providers(get_config())
"""

from typing import Any, Dict, List, Tuple

from ..utils.exceptions import ConfigurationError
from .base import AnalysisProvider
from .openai_provider import OpenAIPrimaryProvider
from .perplexity_provider import PerplexityResearchProvider
from .anthropic_provider import AnthropicClinicalProvider
from .prompts import describe_document, detect_document_type
from .schemas import (
    AnalysisPayload,
    PrimaryAnalysisPayload,
    ResearchAnalysisPayload,
    ClinicalReasoningPayload,
)


def create_providers(config: Dict[str, Any]) -> Tuple[AnalysisProvider, List[AnalysisProvider]]:
    """
    Build (primary, [research, clinical]) from a get_config() dict.

    Raises:
        ConfigurationError: an API key is missing
    """
    missing = [
        key for key in ('openai_api_key', 'perplexity_api_key', 'anthropic_api_key')
        if not config.get(key)
    ]
    if missing:
        raise ConfigurationError(f"Missing provider credentials: {', '.join(missing)}")

    primary = OpenAIPrimaryProvider({
        'api_key': config['openai_api_key'],
        'base_url': config.get('openai_base_url', ''),
    })
    research = PerplexityResearchProvider({
        'api_key': config['perplexity_api_key'],
        'base_url': config.get('perplexity_base_url', ''),
    })
    clinical = AnthropicClinicalProvider({
        'api_key': config['anthropic_api_key'],
        'base_url': config.get('anthropic_base_url', ''),
        'anthropic_version': config.get('anthropic_version', '2023-06-01'),
    })
    return primary, [research, clinical]


__all__ = [
    "AnalysisProvider",
    "OpenAIPrimaryProvider",
    "PerplexityResearchProvider",
    "AnthropicClinicalProvider",
    "AnalysisPayload",
    "PrimaryAnalysisPayload",
    "ResearchAnalysisPayload",
    "ClinicalReasoningPayload",
    "create_providers",
    "describe_document",
    "detect_document_type",
]
