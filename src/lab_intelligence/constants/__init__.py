# ============================================================================
# src/lab_intelligence/constants/__init__.py
# ============================================================================
"""
Convenient imports for all constants
"""

from .critical_values import CRITICAL_VALUES
from .reference_ranges import REFERENCE_RANGES, load_reference_ranges
from .lab_keywords import LAB_TEST_KEYWORDS, NAME_PREFIXES, SHORT_KEYWORD_LENGTH
from .document_types import (
    DocumentType,
    DOCUMENT_TYPE_KEYWORDS,
    DOCUMENT_TYPE_DIETARY_DEFAULTS,
)
