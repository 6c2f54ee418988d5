# src/lab_intelligence/extraction/parsing.py
"""
Parsing utilities for lab value extraction.
"""

import re
from typing import Optional, Tuple

_CENSOR_PREFIX = re.compile(r'^(<=|>=|≤|≥|<|>)\s*')

_CENSOR_SYMBOLS = {
    '<': '<', '<=': '<', '≤': '<',
    '>': '>', '>=': '>', '≥': '>',
}


def parse_numeric_value(value_str: str) -> Tuple[Optional[float], Optional[str]]:
    """
    Parse a printed result into (number, censor).

    Handles values like:
    - "12.5"       -> (12.5, None)
    - "1,024"      -> (1024.0, None)
    - "< 0.5"      -> (0.5, "<")   censored: the bound is returned
    - ">500"       -> (500.0, ">")

    Unparsable text yields (None, None).
    """
    if not value_str:
        return None, None

    value_str = value_str.strip()
    censor = None

    prefix = _CENSOR_PREFIX.match(value_str)
    if prefix:
        censor = _CENSOR_SYMBOLS[prefix.group(1)]
        value_str = value_str[prefix.end():]

    cleaned = re.sub(r'[^\d.\-]', '', value_str)
    if not cleaned or not re.search(r'\d', cleaned):
        return None, None

    try:
        return float(cleaned), censor
    except ValueError:
        return None, None


def parse_reference_range(ref_str: str) -> Optional[Tuple[Optional[float], Optional[float]]]:
    """
    Parse reference range string into (low, high).

    Handles:
    - "12.0-15.5", "12.0 - 15.5", "70 to 100"
    - "4.5-11.0 K/uL" (range with unit)
    - ">=10", "> 5.0" -> (10.0, None)
    - "<=100", "<0.5" -> (None, 100.0)

    Qualitative ranges ("Negative", "Non-Reactive") return None.
    """
    if not ref_str:
        return None

    ref_str = ref_str.strip().strip('()[]').strip()

    qualitative_patterns = [
        r'^negative$', r'^positive$', r'^non[\-\s]?reactive$',
        r'^reactive$', r'^normal$', r'^abnormal$', r'^see\s+', r'^n/a$'
    ]
    for pattern in qualitative_patterns:
        if re.match(pattern, ref_str, re.IGNORECASE):
            return None

    range_match = re.search(r'(\d[\d,]*\.?\d*)\s*(?:[-–—]|to)\s*(\d[\d,]*\.?\d*)', ref_str, re.IGNORECASE)
    if range_match:
        try:
            low = float(range_match.group(1).replace(',', ''))
            high = float(range_match.group(2).replace(',', ''))
        except ValueError:
            return None
        if low > high:
            return None
        return low, high

    gt_match = re.match(r'^(?:>|≥)\s*=?\s*(\d[\d,]*\.?\d*)', ref_str)
    if gt_match:
        return float(gt_match.group(1).replace(',', '')), None

    lt_match = re.match(r'^(?:<|≤)\s*=?\s*(\d[\d,]*\.?\d*)', ref_str)
    if lt_match:
        return None, float(lt_match.group(1).replace(',', ''))

    return None
