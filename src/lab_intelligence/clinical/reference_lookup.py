# ============================================================================
# src/lab_intelligence/clinical/reference_lookup.py
# ============================================================================
"""
Reference Range Lookup

Classifies a numeric lab value against known reference ranges:
- Resolves the test name to a canonical key (exact, alias, whole-word)
- Picks the most specific range for the patient (age+sex, sex, age, general)
- Applies critical thresholds before normal bounds

Read-only after construction, so one instance is safely shared by
every extraction running in the process.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..constants import CRITICAL_VALUES, REFERENCE_RANGES
from ..core.context import AbnormalFlag
from ..utils.exceptions import ReferenceLookupError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceRange:
    test_key: str
    display_name: str
    unit: Optional[str]
    low: Optional[float]
    high: Optional[float]
    critical_low: Optional[float] = None
    critical_high: Optional[float] = None
    sex: str = "all"
    min_age: Optional[int] = None
    max_age: Optional[int] = None

    @property
    def text(self) -> str:
        low = "N/A" if self.low is None else f"{self.low:g}"
        high = "N/A" if self.high is None else f"{self.high:g}"
        return f"{low}-{high} {self.unit or ''}".strip()


@dataclass(frozen=True)
class RangeEvaluation:
    flag: AbnormalFlag
    severity: str  # "normal", "abnormal", "critical"
    interpretation: str
    low: Optional[float] = None
    high: Optional[float] = None
    reference_range: str = ""

    @property
    def is_abnormal(self) -> bool:
        return self.flag.is_abnormal

    @property
    def is_critical(self) -> bool:
        return self.flag.is_critical


def normalize_lookup_name(test_name: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace."""
    name = re.sub(r"[^a-z0-9\s]", " ", test_name.lower())
    return re.sub(r"\s+", " ", name).strip()


class ReferenceRangeLookup:
    """
    Age/sex-aware reference range table.

    Args:
        ranges: Table in the knowledge/reference_ranges.json shape.
            Defaults to the packaged table.
        critical_values: {test_key: {"low": x, "high": y}}.
            Defaults to CRITICAL_VALUES.
    """

    def __init__(
        self,
        ranges: Optional[Dict[str, Any]] = None,
        critical_values: Optional[Dict[str, Dict[str, float]]] = None,
    ):
        self._ranges = REFERENCE_RANGES if ranges is None else ranges
        self._critical = CRITICAL_VALUES if critical_values is None else critical_values

        self._aliases: Dict[str, str] = {}
        for key, entry in self._ranges.items():
            self._aliases[normalize_lookup_name(key)] = key
            self._aliases[normalize_lookup_name(entry.get("display_name", key))] = key
            for alias in entry.get("aliases", []):
                self._aliases[normalize_lookup_name(alias)] = key

        # Longest names first so "hdl cholesterol" wins over "cholesterol"
        self._by_length = sorted(self._aliases, key=len, reverse=True)

    def __contains__(self, test_name: str) -> bool:
        return self.resolve_key(test_name) is not None

    def resolve_key(self, test_name: str) -> Optional[str]:
        name = normalize_lookup_name(test_name)
        if not name:
            return None

        if name in self._aliases:
            return self._aliases[name]

        # Whole-word containment: "Glucose, Fasting" -> glucose
        padded = f" {name} "
        for alias in self._by_length:
            if f" {alias} " in padded:
                return self._aliases[alias]

        return None

    def get_range(
        self,
        test_name: str,
        age: Optional[int] = None,
        sex: Optional[str] = None,
    ) -> ReferenceRange:
        """
        Select the best reference range for a patient.

        Raises:
            ReferenceLookupError: test is unknown or has no ranges
        """
        key = self.resolve_key(test_name)
        if key is None:
            raise ReferenceLookupError(f"No reference range for '{test_name}'", test_name)

        entry = self._ranges[key]
        candidates = entry.get("ranges") or []
        if not candidates:
            raise ReferenceLookupError(f"Reference entry '{key}' has no ranges", test_name)

        chosen = self._select_best_range(candidates, age, sex.lower() if sex else None)
        critical = self._critical.get(key, {})

        return ReferenceRange(
            test_key=key,
            display_name=entry.get("display_name", key),
            unit=entry.get("unit"),
            low=chosen.get("low"),
            high=chosen.get("high"),
            critical_low=critical.get("low"),
            critical_high=critical.get("high"),
            sex=chosen.get("sex", "all"),
            min_age=chosen.get("min_age"),
            max_age=chosen.get("max_age"),
        )

    def evaluate(
        self,
        test_name: str,
        value: float,
        age: Optional[int] = None,
        sex: Optional[str] = None,
    ) -> RangeEvaluation:
        """
        Classify one value.

        Raises:
            ReferenceLookupError: no range known for the test
        """
        ref = self.get_range(test_name, age, sex)
        unit = f" {ref.unit}" if ref.unit else ""

        if ref.critical_low is not None and value < ref.critical_low:
            flag, severity = AbnormalFlag.CRITICAL_LOW, "critical"
            interpretation = f"Critically low ({value:g}{unit}). Immediate medical attention required."
        elif ref.critical_high is not None and value > ref.critical_high:
            flag, severity = AbnormalFlag.CRITICAL_HIGH, "critical"
            interpretation = f"Critically high ({value:g}{unit}). Immediate medical attention required."
        elif ref.low is not None and value < ref.low:
            flag, severity = AbnormalFlag.LOW, "abnormal"
            interpretation = f"Below normal range ({value:g}{unit}). Clinical correlation recommended."
        elif ref.high is not None and value > ref.high:
            flag, severity = AbnormalFlag.HIGH, "abnormal"
            interpretation = f"Above normal range ({value:g}{unit}). Clinical correlation recommended."
        else:
            flag, severity = AbnormalFlag.NORMAL, "normal"
            interpretation = "Within normal limits"

        return RangeEvaluation(
            flag=flag,
            severity=severity,
            interpretation=interpretation,
            low=ref.low,
            high=ref.high,
            reference_range=ref.text,
        )

    @staticmethod
    def _select_best_range(
        candidates: list,
        age: Optional[int],
        sex: Optional[str],
    ) -> Dict[str, Any]:
        """Selection order: age+sex, sex, age, general, first listed."""

        def has_age(r):
            return r.get("min_age") is not None and r.get("max_age") is not None

        def age_fits(r):
            return has_age(r) and r["min_age"] <= age <= r["max_age"]

        if age is not None and sex:
            for r in candidates:
                if r.get("sex") == sex and age_fits(r):
                    return r

        if sex:
            for r in candidates:
                if r.get("sex") == sex and not has_age(r):
                    return r

        if age is not None:
            for r in candidates:
                if age_fits(r):
                    return r

        for r in candidates:
            if r.get("sex", "all") == "all" and not has_age(r):
                return r

        return candidates[0]
