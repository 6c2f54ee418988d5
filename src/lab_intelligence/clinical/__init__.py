# src/lab_intelligence/clinical/__init__.py

from .reference_lookup import (
    ReferenceRange,
    RangeEvaluation,
    ReferenceRangeLookup,
    normalize_lookup_name,
)

__all__ = ["ReferenceRange", "RangeEvaluation", "ReferenceRangeLookup", "normalize_lookup_name"]
