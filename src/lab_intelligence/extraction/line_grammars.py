# ============================================================================
# src/lab_intelligence/extraction/line_grammars.py
# ============================================================================
"""
Line Grammars

Each grammar is a pure function (line) -> Optional[RawLineMatch]. The
matcher tries them in DEFAULT_GRAMMARS order and keeps the first hit, so
one line yields at most one match. New report layouts are supported by
adding a grammar to the tuple, not by editing the existing ones.

Text is expected to be normalized first: columns are separated by two
spaces or a single tab.
"""

import re
import logging
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Pattern, Sequence, Tuple

from ..config import extraction_settings, threshold_settings
from ..constants import LAB_TEST_KEYWORDS, SHORT_KEYWORD_LENGTH
from ..core.context import RawLineMatch, SourcePosition

logger = logging.getLogger(__name__)

LineGrammar = Callable[[str], Optional[RawLineMatch]]


# ============================================================================
# BUILDING BLOCKS
# ============================================================================

_FLAG_TOKENS = r'(?:HH|LL|HIGH|High|LOW|Low|NORMAL|Normal|H|L|N)'

NAME = r'(?P<name>[A-Za-z][A-Za-z0-9 ,\-\(\)\./%#\+]*?)'
VALUE = r'(?P<value>(?:(?:<=|>=|<|>|≤|≥)\s?)?-?\d[\d.,]*)'
UNIT = (
    r'(?!' + _FLAG_TOKENS + r'(?:\s|$))'
    r'(?P<unit>(?:x?10\^?\d+/?)?[A-Za-z%µμ/][A-Za-z0-9%µμ/\^\.\*²]*)'
)
RANGE = r'(?P<range>(?:<=|>=|<|>|≤|≥)\s?\d[\d.,]*|\d[\d.,]*\s?(?:-|–|to)\s?\d[\d.,]*)'
FLAG = r'(?P<flag>' + _FLAG_TOKENS + r')'

COLUMN = r'(?: {2,}|\t)'
TAB = r' ?\t ?'


def _make_grammar(name: str, pattern: str, base_confidence: Optional[float] = None) -> LineGrammar:
    compiled: Pattern = re.compile(pattern)

    def grammar(line: str) -> Optional[RawLineMatch]:
        match = compiled.match(line)
        if not match:
            return None

        groups = match.groupdict()
        test_name = groups['name'].strip(' ,')
        confidence = (
            threshold_settings.BASE_MATCH_CONFIDENCE if base_confidence is None else base_confidence
        )
        return RawLineMatch(
            test_name=test_name,
            value=groups['value'].strip(),
            unit=(groups.get('unit') or None),
            reference_range=(groups.get('range') or None),
            flag=(groups.get('flag') or None),
            position=SourcePosition(0, max(line.find(test_name), 0)),
            grammar=name,
            confidence=confidence,
            raw_line=line,
        )

    grammar.__name__ = name
    grammar.__qualname__ = name
    return grammar


# "Glucose  105  mg/dL  70-100  H"
columnar_with_range = _make_grammar(
    "columnar_with_range",
    r'^' + NAME + COLUMN + VALUE + r'(?:\s+' + UNIT + r')?\s+' + RANGE
    + r'(?:\s+' + FLAG + r')?\s*$',
)

# "Glucose  105  mg/dL  H  70-100"
columnar_flag_before_range = _make_grammar(
    "columnar_flag_before_range",
    r'^' + NAME + COLUMN + VALUE + r'(?:\s+' + UNIT + r')?\s+' + FLAG + r'\s+' + RANGE + r'\s*$',
)

# "Potassium: 6.8 (3.5-5.1) HH", "Glucose: 105 mg/dL 70-100 H"
colon_with_range = _make_grammar(
    "colon_with_range",
    r'^' + NAME + r'\s*:\s*' + VALUE + r'(?:\s*' + UNIT + r')?'
    + r'(?:(?:\s*\(\s*|\s+)' + RANGE + r'\s*\)?)?(?:\s+' + FLAG + r')?\s*$',
)

# "Glucose 105(mg/dL) H 70-100"
compact_value_unit = _make_grammar(
    "compact_value_unit",
    r'^' + NAME + r'\s+' + VALUE + r'\s*\(\s*' + UNIT + r'\s*\)'
    + r'(?:\s+' + FLAG + r')?(?:\s+' + RANGE + r')?\s*$',
)

# "Glucose\t105\tmg/dL\t70-100\tH"
tab_range_then_flag = _make_grammar(
    "tab_range_then_flag",
    r'^' + NAME + TAB + VALUE + r'(?:' + TAB + UNIT + r')?' + TAB + RANGE
    + r'(?:' + TAB + FLAG + r')?\s*$',
)

# "Glucose\t105\tmg/dL\tH\t70-100", range optional
tab_flag_then_range = _make_grammar(
    "tab_flag_then_range",
    r'^' + NAME + TAB + VALUE + r'(?:' + TAB + UNIT + r')?(?:' + TAB + FLAG + r')?'
    + r'(?:' + TAB + RANGE + r')?\s*$',
)

# "Glucose  105  mg/dL"; fewest columns, least trusted
minimal_columnar = _make_grammar(
    "minimal_columnar",
    r'^' + NAME + COLUMN + VALUE + r'(?:\s+' + UNIT + r')?(?:\s+' + FLAG + r')?\s*$',
    base_confidence=0.7,
)

DEFAULT_GRAMMARS: Tuple[LineGrammar, ...] = (
    columnar_with_range,
    columnar_flag_before_range,
    colon_with_range,
    compact_value_unit,
    tab_range_then_flag,
    tab_flag_then_range,
    minimal_columnar,
)


# ============================================================================
# LINE FILTERS
# ============================================================================

HEADER_PATTERNS = [
    re.compile(r'^(?:tests?|results?|values?|reference|flags?|status|range|units?|component|analyte)\b', re.IGNORECASE),
    re.compile(r'^[-=_*~.\s]{3,}$'),
    re.compile(r'^page\s+\d+', re.IGNORECASE),
    re.compile(r'^\(?continued', re.IGNORECASE),
]

# Section titles carry no digits; a digit means a possible result line
SECTION_TITLE_PATTERN = re.compile(
    r'^(?:chemistry|hematology|lipid|metabolic|comprehensive|basic|complete|'
    r'cbc|cmp|bmp|urinalysis|thyroid|endocrinology|immunology|coagulation)\b[^\d]*$',
    re.IGNORECASE,
)


def is_header_line(line: str) -> bool:
    """Column headers, dividers, page markers and section titles."""
    stripped = line.strip()
    if any(p.match(stripped) for p in HEADER_PATTERNS):
        return True
    return bool(SECTION_TITLE_PATTERN.match(stripped))


def contains_lab_keyword(name: str, keywords: Iterable[str]) -> bool:
    """
    Short keywords ("alt", "ast", "bun") must match a whole token so
    that "Alkaline" does not count as "alt"; longer ones match anywhere.
    """
    lowered = name.lower()
    for keyword in keywords:
        if len(keyword) <= SHORT_KEYWORD_LENGTH:
            if re.search(r'(?<![a-z0-9])' + re.escape(keyword) + r'(?![a-z0-9])', lowered):
                return True
        elif keyword in lowered:
            return True
    return False


def is_plausible_lab_test(
    match: RawLineMatch,
    keywords: Iterable[str] = LAB_TEST_KEYWORDS,
    min_name_length: int = 2,
    max_name_length: int = 60,
    accept_unknown: bool = False,
) -> bool:
    name = match.test_name
    if not name or not name[0].isalpha():
        return False
    if not min_name_length <= len(name) <= max_name_length:
        return False
    if not re.search(r'\d', match.value):
        return False

    if contains_lab_keyword(name, keywords):
        return True

    # Unknown names only when the line is fully structured
    return accept_unknown and bool(match.unit) and bool(match.reference_range)


# ============================================================================
# MATCHER
# ============================================================================

class LineMatcher:
    """
    Runs the grammar cascade over normalized text.

    Args:
        grammars: Ordered grammars; first match wins
        extra_keywords: Added to the built-in test vocabulary
        settings: ExtractionSettings (defaults to the env-driven singleton)
    """

    def __init__(
        self,
        grammars: Sequence[LineGrammar] = DEFAULT_GRAMMARS,
        extra_keywords: Iterable[str] = (),
        settings=None,
    ):
        self.grammars = tuple(grammars)
        self.settings = settings or extraction_settings
        self.keywords = tuple(LAB_TEST_KEYWORDS) + tuple(k.lower() for k in extra_keywords)

    def match_line(self, line: str, line_index: int = 0) -> Optional[RawLineMatch]:
        stripped = line.strip()
        if len(stripped) < self.settings.MIN_LINE_LENGTH or is_header_line(stripped):
            return None

        for grammar in self.grammars:
            match = grammar(stripped)
            if match is None:
                continue

            if not is_plausible_lab_test(
                match,
                keywords=self.keywords,
                min_name_length=self.settings.MIN_TEST_NAME_LENGTH,
                max_name_length=self.settings.MAX_TEST_NAME_LENGTH,
                accept_unknown=self.settings.ACCEPT_UNKNOWN_TESTS,
            ):
                logger.debug(f"Line {line_index} rejected ({match.grammar}): {match.test_name!r}")
                return None

            column = line.find(match.test_name)
            return replace(
                match,
                position=SourcePosition(line_index, column if column >= 0 else 0),
            )

        return None

    def match_lines(self, text: str) -> List[RawLineMatch]:
        matches = []
        for index, line in enumerate(text.split('\n')):
            match = self.match_line(line, index)
            if match is not None:
                matches.append(match)
        return matches
