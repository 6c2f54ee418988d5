# ============================================================================
# src/lab_intelligence/constants/reference_ranges.py
# ============================================================================
"""
Reference Ranges
- Normal lab ranges (age/sex specific), loaded from the knowledge directory
  (KNOWLEDGE_DIR, the packaged knowledge/ by default)
"""

import json
from pathlib import Path

from ..config import base_settings


def load_reference_ranges(path: Path = None) -> dict:
    """Load the reference range table; a missing file yields an empty table."""
    path = path or base_settings.KNOWLEDGE_DIR / "reference_ranges.json"
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return {}


REFERENCE_RANGES = load_reference_ranges()
