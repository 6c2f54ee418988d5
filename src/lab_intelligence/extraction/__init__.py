# src/lab_intelligence/extraction/__init__.py

from .text_normalizer import normalize_text, extract_metadata
from .parsing import parse_numeric_value, parse_reference_range
from .line_grammars import (
    DEFAULT_GRAMMARS,
    LineMatcher,
    is_header_line,
    is_plausible_lab_test,
)
from .evaluator import ValueEvaluator, normalize_test_name
from .aggregator import ExtractionAggregator
from .extractor import LabValueExtractor

__all__ = [
    "normalize_text",
    "extract_metadata",
    "parse_numeric_value",
    "parse_reference_range",
    "DEFAULT_GRAMMARS",
    "LineMatcher",
    "is_header_line",
    "is_plausible_lab_test",
    "ValueEvaluator",
    "normalize_test_name",
    "ExtractionAggregator",
    "LabValueExtractor",
]
