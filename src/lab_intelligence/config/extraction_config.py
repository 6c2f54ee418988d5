# ============================================================================
# src/lab_intelligence/config/extraction_config.py
# ============================================================================
"""
Extraction Settings
- Metadata scan window
- Test-name and value plausibility bounds
- Keyword acceptance policy
"""

from pydantic import Field
from pydantic_settings import BaseSettings

class ExtractionSettings(BaseSettings):
    METADATA_SCAN_LINES: int = Field(
        default=10,
        ge=1,
        description="Only the first N normalized lines are searched for report metadata"
    )
    MIN_LINE_LENGTH: int = Field(
        default=5,
        ge=1,
        description="Shorter lines are never matched"
    )
    MIN_TEST_NAME_LENGTH: int = Field(
        default=2,
        ge=1,
        description="Shortest acceptable test name"
    )
    MAX_TEST_NAME_LENGTH: int = Field(
        default=60,
        ge=1,
        description="Longest acceptable test name"
    )
    ACCEPT_UNKNOWN_TESTS: bool = Field(
        default=False,
        description=(
            "Accept names without a recognized keyword when the line also carries "
            "a unit and a reference range. Off by default: missed values are "
            "preferred over spurious ones."
        )
    )

extraction_settings = ExtractionSettings()
