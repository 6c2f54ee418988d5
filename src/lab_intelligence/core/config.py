# ============================================================================
# src/lab_intelligence/core/config.py
# ============================================================================
"""
Runtime Configuration

Loads provider credentials and endpoints from environment variables (.env file)
with sensible defaults. Tunable thresholds and timeouts live in
lab_intelligence.config (pydantic settings); this module only covers what
differs per deployment.

Usage:
    from lab_intelligence.core.config import get_config

    config = get_config()
    providers = create_providers(config)
"""

import os
from pathlib import Path
from typing import Dict, Any
from dataclasses import dataclass, field
from functools import lru_cache

from dotenv import load_dotenv


def _load_dotenv() -> bool:
    """Load .env from the current working directory if it exists."""
    cwd_env = Path.cwd() / '.env'
    if cwd_env.exists():
        load_dotenv(cwd_env)
        return True
    return False


def _get_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ('true', '1', 'yes', 'on')


@dataclass
class Config:
    """
    Configuration container with attribute access.

    All values are loaded from environment variables with defaults.
    """

    store_db_path: str = field(default_factory=lambda: os.getenv('STORE_DB_PATH', 'data/lab_reports.db'))

    # Primary provider (OpenAI chat completions)
    openai_api_key: str = field(default_factory=lambda: os.getenv('OPENAI_API_KEY', ''))
    openai_base_url: str = field(default_factory=lambda: os.getenv('OPENAI_BASE_URL', 'https://api.openai.com/v1'))

    # Research provider (Perplexity)
    perplexity_api_key: str = field(default_factory=lambda: os.getenv('PERPLEXITY_API_KEY', ''))
    perplexity_base_url: str = field(default_factory=lambda: os.getenv('PERPLEXITY_BASE_URL', 'https://api.perplexity.ai'))

    # Clinical reasoning provider (Anthropic messages API)
    anthropic_api_key: str = field(default_factory=lambda: os.getenv('ANTHROPIC_API_KEY', ''))
    anthropic_base_url: str = field(default_factory=lambda: os.getenv('ANTHROPIC_BASE_URL', 'https://api.anthropic.com/v1'))
    anthropic_version: str = field(default_factory=lambda: os.getenv('ANTHROPIC_VERSION', '2023-06-01'))

    # Analysis can be switched off entirely (extraction-only deployments)
    enable_analysis: bool = field(default_factory=lambda: _get_bool('ENABLE_ANALYSIS', True))

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for passing to components."""
        return {
            'store_db_path': self.store_db_path,

            'openai_api_key': self.openai_api_key,
            'openai_base_url': self.openai_base_url,

            'perplexity_api_key': self.perplexity_api_key,
            'perplexity_base_url': self.perplexity_base_url,

            'anthropic_api_key': self.anthropic_api_key,
            'anthropic_base_url': self.anthropic_base_url,
            'anthropic_version': self.anthropic_version,

            'enable_analysis': self.enable_analysis,
        }


@lru_cache(maxsize=1)
def get_config() -> Dict[str, Any]:
    """
    Get configuration dictionary.

    Cached - call once and pass to components.
    """
    _load_dotenv()
    return Config().to_dict()


def reload_config() -> Dict[str, Any]:
    """Reload configuration from environment."""
    get_config.cache_clear()
    return get_config()
