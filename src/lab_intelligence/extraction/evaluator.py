# ============================================================================
# src/lab_intelligence/extraction/evaluator.py
# ============================================================================
"""
Value Evaluator

Turns one RawLineMatch into one ExtractedLabValue:
1. Normalize the test name
2. Parse the numeric value (censored "<X"/">X" keep the bound)
3. Resolve the abnormal flag
4. Score confidence

Flag resolution order:
- explicit flag printed on the line
- the line's own printed reference range
- the reference range lookup (also the only source of HH/LL thresholds)

An explicit "N" contradicted by the resolved range is corrected; a
severity signal is never lowered. A failed lookup leaves the flag at N
with reduced confidence.
"""

import re
import logging
from typing import List, Optional, Tuple

from ..clinical.reference_lookup import RangeEvaluation, ReferenceRangeLookup
from ..config import threshold_settings
from ..constants import NAME_PREFIXES
from ..core.context import AbnormalFlag, ExtractedLabValue, RawLineMatch
from ..utils.exceptions import ExtractionError, ReferenceLookupError
from .parsing import parse_numeric_value, parse_reference_range

logger = logging.getLogger(__name__)

_PREFIX_PATTERN = re.compile(r'^(?:' + '|'.join(NAME_PREFIXES) + r')\b\s*', re.IGNORECASE)
_DISALLOWED_NAME_CHARS = re.compile(r'[^A-Za-z0-9\s\-\(\),\./%\+#]')


def normalize_test_name(name: str) -> str:
    """
    Trim, collapse whitespace, strip leading non-diagnostic words
    ("Serum Glucose" -> "Glucose") and characters outside the allow-list.
    """
    name = re.sub(r'\s+', ' ', name or '').strip()
    name = _DISALLOWED_NAME_CHARS.sub('', name)

    stripped = name
    while True:
        shorter = _PREFIX_PATTERN.sub('', stripped, count=1)
        if shorter == stripped:
            break
        stripped = shorter

    # "Total" alone stays "Total"
    if stripped.strip(' ,-'):
        name = stripped

    return re.sub(r'\s+', ' ', name).strip(' ,-')


def classify_against_range(
    value: float,
    low: Optional[float],
    high: Optional[float],
) -> AbnormalFlag:
    if low is not None and value < low:
        return AbnormalFlag.LOW
    if high is not None and value > high:
        return AbnormalFlag.HIGH
    return AbnormalFlag.NORMAL


class ValueEvaluator:
    """
    Evaluates raw line matches against reference data.

    Args:
        reference_lookup: Range lookup; only evaluate() is used
        thresholds: ThresholdSettings (defaults to the env-driven singleton)
    """

    def __init__(
        self,
        reference_lookup: Optional[ReferenceRangeLookup] = None,
        thresholds=None,
    ):
        self.reference_lookup = reference_lookup or ReferenceRangeLookup()
        self.thresholds = thresholds or threshold_settings

    def evaluate(
        self,
        match: RawLineMatch,
        notes: Optional[List[str]] = None,
        age: Optional[int] = None,
        sex: Optional[str] = None,
    ) -> Optional[ExtractedLabValue]:
        """
        Evaluate one match. Never raises.

        A match that cannot be evaluated returns None and, when a notes
        list is given, leaves a processing note there. age and sex select
        patient-specific reference ranges.
        """
        try:
            return self._evaluate(match, age, sex)
        except (ExtractionError, ValueError) as e:
            message = f"Line {match.position.line}: dropped '{match.test_name}' ({e})"
            logger.warning(message)
            if notes is not None:
                notes.append(message)
            return None

    def _evaluate(
        self,
        match: RawLineMatch,
        age: Optional[int] = None,
        sex: Optional[str] = None,
    ) -> ExtractedLabValue:
        test_name = normalize_test_name(match.test_name)
        if not test_name:
            raise ExtractionError("empty test name after normalization", match.position.line)

        numeric_value, censored = parse_numeric_value(match.value)
        printed_bounds = parse_reference_range(match.reference_range)

        flag, low, high, lookup_failed = self._resolve_flag(
            test_name, numeric_value, match.flag, printed_bounds, age, sex
        )

        confidence = self._score(match, numeric_value is not None, lookup_failed)

        return ExtractedLabValue(
            test_name=test_name,
            value=match.value,
            numeric_value=numeric_value,
            unit=match.unit,
            reference_range=match.reference_range,
            reference_low=low,
            reference_high=high,
            abnormal_flag=flag,
            critical_flag=bool(flag and flag.is_critical),
            confidence=confidence,
            censored=censored,
            position=match.position,
            raw_text=match.raw_line or " ".join(
                part for part in (
                    match.test_name, match.value, match.unit,
                    match.reference_range, match.flag,
                ) if part
            ),
        )

    # ------------------------------------------------------------------
    # Flag resolution
    # ------------------------------------------------------------------

    def _resolve_flag(
        self,
        test_name: str,
        numeric_value: Optional[float],
        flag_text: Optional[str],
        printed_bounds: Optional[Tuple[Optional[float], Optional[float]]],
        age: Optional[int] = None,
        sex: Optional[str] = None,
    ) -> Tuple[Optional[AbnormalFlag], Optional[float], Optional[float], bool]:
        """Returns (flag, resolved low, resolved high, lookup_failed)."""
        explicit = AbnormalFlag.parse(flag_text)
        low, high = printed_bounds if printed_bounds else (None, None)

        if numeric_value is None:
            # Nothing to classify; keep whatever the lab printed
            return explicit, low, high, False

        lookup = None
        if printed_bounds is None or explicit is None or explicit is AbnormalFlag.NORMAL:
            lookup = self._lookup(test_name, numeric_value, age, sex)

        if printed_bounds is None and lookup is not None:
            low, high = lookup.low, lookup.high

        if printed_bounds is not None:
            resolved = classify_against_range(numeric_value, low, high)
        elif lookup is not None:
            resolved = lookup.flag
        else:
            resolved = None

        # Critical thresholds only come from the lookup
        if lookup is not None and lookup.is_critical and resolved is not None:
            resolved = lookup.flag

        if explicit is not None and explicit is not AbnormalFlag.NORMAL:
            return explicit, low, high, False

        if explicit is AbnormalFlag.NORMAL:
            if resolved is not None and resolved.is_abnormal:
                logger.info(
                    f"{test_name}: printed flag N contradicted by range, using {resolved.value}"
                )
                return resolved, low, high, False
            return explicit, low, high, False

        if resolved is None:
            # No printed range and no known range
            return AbnormalFlag.NORMAL, low, high, True

        return resolved, low, high, False

    def _lookup(
        self,
        test_name: str,
        value: float,
        age: Optional[int],
        sex: Optional[str],
    ) -> Optional[RangeEvaluation]:
        try:
            return self.reference_lookup.evaluate(test_name, value, age=age, sex=sex)
        except ReferenceLookupError as e:
            logger.debug(f"Reference lookup unavailable: {e}")
            return None

    # ------------------------------------------------------------------
    # Confidence
    # ------------------------------------------------------------------

    def _score(self, match: RawLineMatch, has_numeric: bool, lookup_failed: bool) -> float:
        t = self.thresholds
        confidence = match.confidence

        if match.unit:
            confidence += t.UNIT_BONUS
        if match.reference_range:
            confidence += t.RANGE_BONUS
        if match.flag:
            confidence += t.FLAG_BONUS
        if has_numeric:
            confidence += t.NUMERIC_BONUS

        if len(match.test_name) < t.MIN_CONFIDENT_NAME_LENGTH:
            confidence -= t.SHORT_NAME_PENALTY
        if len(match.value) > t.MAX_CONFIDENT_VALUE_LENGTH:
            confidence -= t.LONG_VALUE_PENALTY
        if lookup_failed:
            confidence -= t.LOOKUP_FAILURE_PENALTY

        return max(0.0, min(1.0, confidence))
