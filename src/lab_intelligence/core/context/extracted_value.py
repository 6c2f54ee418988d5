# ============================================================================
# src/lab_intelligence/core/context/extracted_value.py
# ============================================================================
"""
Single extracted lab value representation
- RawLineMatch: tentative parse of one line (ephemeral)
- ExtractedLabValue: evaluated, flagged, confidence-scored value
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .enums import AbnormalFlag


@dataclass(frozen=True)
class SourcePosition:
    line: int
    column: int


@dataclass(frozen=True)
class RawLineMatch:
    test_name: str
    value: str
    unit: Optional[str] = None
    reference_range: Optional[str] = None
    flag: Optional[str] = None
    position: SourcePosition = SourcePosition(0, 0)

    # Which grammar produced this match, and its starting confidence
    grammar: str = "unknown"
    confidence: float = 0.8

    raw_line: str = ""


@dataclass(frozen=True)
class ExtractedLabValue:
    test_name: str
    value: str
    numeric_value: Optional[float] = None
    unit: Optional[str] = None

    # Reference range as printed, plus parsed bounds when available
    reference_range: Optional[str] = None
    reference_low: Optional[float] = None
    reference_high: Optional[float] = None

    abnormal_flag: Optional[AbnormalFlag] = None
    critical_flag: bool = False
    confidence: float = 0.0

    # "<" or ">" when the printed value was a censored bound
    censored: Optional[str] = None

    # Provenance
    position: SourcePosition = SourcePosition(0, 0)
    raw_text: str = ""

    def __post_init__(self):
        if self.critical_flag and (self.abnormal_flag is None or not self.abnormal_flag.is_critical):
            raise ValueError(
                f"{self.test_name}: critical flag requires HH or LL, got {self.abnormal_flag}"
            )
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"{self.test_name}: confidence {self.confidence} outside [0, 1]")

    @property
    def is_abnormal(self) -> bool:
        return self.abnormal_flag is not None and self.abnormal_flag.is_abnormal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test_name": self.test_name,
            "value": self.value,
            "numeric_value": self.numeric_value,
            "unit": self.unit,
            "reference_range": self.reference_range,
            "reference_low": self.reference_low,
            "reference_high": self.reference_high,
            "abnormal_flag": self.abnormal_flag.value if self.abnormal_flag else None,
            "critical_flag": self.critical_flag,
            "confidence": self.confidence,
            "censored": self.censored,
            "position": {"line": self.position.line, "column": self.position.column},
            "raw_text": self.raw_text,
        }
