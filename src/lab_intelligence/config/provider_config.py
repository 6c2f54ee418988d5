# ============================================================================
# src/lab_intelligence/config/provider_config.py
# ============================================================================
"""
Analysis Provider Settings
- Models and generation parameters
- Per-call timeouts (primary and research providers are independent)
"""

from pydantic import Field
from pydantic_settings import BaseSettings

class ProviderSettings(BaseSettings):
    # Primary (document-type detection + initial findings)
    PRIMARY_MODEL: str = Field(
        default="gpt-4o",
        description="Chat-completions model used by the primary provider"
    )
    PRIMARY_TIMEOUT: float = Field(
        default=60.0,
        gt=0.0,
        description="Seconds allowed for one primary provider call"
    )
    PRIMARY_TEMPERATURE: float = Field(default=0.2, ge=0.0, le=2.0)
    PRIMARY_MAX_TOKENS: int = Field(default=2000, ge=1)

    # Research agent (evidence review)
    RESEARCH_MODEL: str = Field(
        default="sonar-pro",
        description="Perplexity model used by the research provider"
    )
    RESEARCH_TIMEOUT: float = Field(
        default=45.0,
        gt=0.0,
        description="Seconds allowed for one research provider call"
    )
    RESEARCH_TEMPERATURE: float = Field(default=0.1, ge=0.0, le=2.0)
    RESEARCH_MAX_TOKENS: int = Field(default=1500, ge=1)

    # Clinical reasoning agent
    CLINICAL_MODEL: str = Field(
        default="claude-sonnet-4-5",
        description="Anthropic model used by the clinical reasoning provider"
    )
    CLINICAL_TIMEOUT: float = Field(
        default=45.0,
        gt=0.0,
        description="Seconds allowed for one clinical reasoning call"
    )
    CLINICAL_TEMPERATURE: float = Field(default=0.2, ge=0.0, le=1.0)
    CLINICAL_MAX_TOKENS: int = Field(default=1500, ge=1)

    SOCK_CONNECT_TIMEOUT: float = Field(
        default=10.0,
        gt=0.0,
        description="Seconds allowed to establish a provider connection"
    )

provider_settings = ProviderSettings()
