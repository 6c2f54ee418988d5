# ============================================================================
# src/lab_intelligence/extraction/text_normalizer.py
# ============================================================================
"""
Text Normalization

Cleans raw OCR text before line matching:
- Line endings and pagination/confidentiality boilerplate
- Whitespace collapse that keeps column gaps (two spaces) intact
- OCR character confusions, only inside numeric tokens
- Unit spelling (mg/dl -> mg/dL, ...)

Also pulls report metadata (lab name, report date, patient identifiers)
from the first lines of the report.

Every step is idempotent, so normalize_text(normalize_text(x)) equals
normalize_text(x).
"""

import re
import logging
from datetime import date
from typing import Callable, List, Optional, Tuple

from ..core.context import PatientIdentifiers, ReportMetadata

logger = logging.getLogger(__name__)


# Whole lines dropped before matching. Page numbers tolerate OCR digit
# confusions so a later numeric fix cannot turn a kept line into one.
BOILERPLATE_PATTERNS = [
    re.compile(r'^\s*page\s+[\dOolIS]+\s*(?:of|/)\s*[\dOolIS]+\s*$', re.IGNORECASE),
    re.compile(r'^\s*confidential\b.*$', re.IGNORECASE),
    re.compile(r'^\s*\(?continued\b.*$', re.IGNORECASE),
    re.compile(r'^\s*printed\s+on\b.*$', re.IGNORECASE),
]

# Token made only of digits and OCR look-alikes, with at least one real digit
_NUMERIC_TOKEN = re.compile(r'(?<!\S)[<>]?=?[\dOolIS.,\-]*\d[\dOolIS.,\-]*(?!\S)')
_OCR_DIGITS = str.maketrans({'O': '0', 'o': '0', 'l': '1', 'I': '1', 'S': '5'})

# (spelling, canonical form); matched case-insensitively as a whole unit
UNIT_CANONICAL_FORMS = [
    ('mg/dl', 'mg/dL'),
    ('g/dl', 'g/dL'),
    ('ug/dl', 'ug/dL'),
    ('µg/dl', 'µg/dL'),
    ('mmol/l', 'mmol/L'),
    ('umol/l', 'umol/L'),
    ('meq/l', 'mEq/L'),
    ('miu/l', 'mIU/L'),
    ('iu/l', 'IU/L'),
    ('u/l', 'U/L'),
    ('k/ul', 'K/uL'),
    ('m/ul', 'M/uL'),
    ('ng/ml', 'ng/mL'),
    ('pg/ml', 'pg/mL'),
    ('ng/dl', 'ng/dL'),
    ('ml/min', 'mL/min'),
]

_UNIT_PATTERNS = [
    (re.compile(r'(?<![A-Za-zµ/])' + re.escape(spelling) + r'(?![A-Za-z])', re.IGNORECASE), canonical)
    for spelling, canonical in UNIT_CANONICAL_FORMS
]


# ============================================================================
# NORMALIZATION STEPS
# ============================================================================

def normalize_line_endings(text: str) -> str:
    return text.replace('\r\n', '\n').replace('\r', '\n')


def remove_boilerplate(text: str) -> str:
    lines = text.split('\n')
    kept = [line for line in lines if not any(p.match(line) for p in BOILERPLATE_PATTERNS)]
    return '\n'.join(kept)


def collapse_whitespace(text: str) -> str:
    """
    Collapse whitespace without destroying layout.

    Runs of 2+ spaces become exactly two (column separator), tab runs
    become one tab, blank-line runs become a single blank line.
    """
    lines = []
    previous_blank = False
    for line in text.split('\n'):
        line = re.sub(r'[\u00a0\f\v]', ' ', line).strip()
        line = re.sub(r' {2,}', '  ', line)
        line = re.sub(r'\t+', '\t', line)

        if not line:
            if not previous_blank:
                lines.append('')
            previous_blank = True
            continue

        previous_blank = False
        lines.append(line)

    return '\n'.join(lines).strip('\n')


def fix_ocr_digits(text: str) -> str:
    """O/o -> 0, l/I -> 1, S -> 5; only inside otherwise-numeric tokens."""
    return _NUMERIC_TOKEN.sub(lambda m: m.group(0).translate(_OCR_DIGITS), text)


def canonicalize_units(text: str) -> str:
    for pattern, canonical in _UNIT_PATTERNS:
        text = pattern.sub(canonical, text)
    return text


NORMALIZATION_STEPS: Tuple[Callable[[str], str], ...] = (
    normalize_line_endings,
    remove_boilerplate,
    collapse_whitespace,
    fix_ocr_digits,
    canonicalize_units,
)


def normalize_text(raw: str) -> str:
    """Apply every normalization step in order."""
    if not raw:
        return ""

    text = raw
    for step in NORMALIZATION_STEPS:
        text = step(text)
    return text


# ============================================================================
# METADATA
# ============================================================================

DATE_PATTERNS = [
    r'(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})',       # MM/DD/YYYY or MM-DD-YYYY
    r'(\d{4})[/-](\d{1,2})[/-](\d{1,2})',         # YYYY-MM-DD
    r'([A-Za-z]{3,9})\s+(\d{1,2}),?\s+(\d{4})',   # Month DD, YYYY
]

REPORT_DATE_LABELS = [
    r'collect(?:ed|ion\s+date)\s*:?\s*',
    r'drawn\s*:?\s*',
    r'date\s+collected\s*:?\s*',
    r'report(?:ed)?\s+date\s*:?\s*',
    r'date\s*:\s*',
]

DOB_LABELS = [
    r'date\s+of\s+birth\s*:?\s*',
    r'd\.?o\.?b\.?\s*:?\s*',
    r'birth\s*date\s*:?\s*',
]

PATIENT_NAME_PATTERN = re.compile(
    r"(?i:\b(?:patient(?:\s+name)?|name))\s*:\s*"
    r"([A-Z][A-Za-z'\-]+(?:,? [A-Z][A-Za-z'\-]+)*)"
)

MRN_PATTERN = re.compile(
    r'(?i:\b(?:mrn|medical\s+record(?:\s+(?:number|no\.?))?|patient\s+id|id))\s*[:#]\s*'
    r'([A-Za-z0-9\-]{3,20})'
)

LAB_BRAND_PATTERN = re.compile(
    r'\b(quest\s+diagnostics|labcorp|lab\s+corp|laboratory\s+corporation\s+of\s+america)\b',
    re.IGNORECASE,
)

LAB_NAME_PATTERN = re.compile(
    r"^([A-Z][\w&.,'\-]*(?: [\w&.,'\-]+)* "
    r"(?:laboratory|laboratories|labs?|diagnostics|medical center|hospital|clinic))\b",
    re.IGNORECASE,
)

_MONTHS = {
    'jan': 1, 'january': 1, 'feb': 2, 'february': 2,
    'mar': 3, 'march': 3, 'apr': 4, 'april': 4,
    'may': 5, 'jun': 6, 'june': 6, 'jul': 7, 'july': 7,
    'aug': 8, 'august': 8, 'sep': 9, 'sept': 9, 'september': 9,
    'oct': 10, 'october': 10, 'nov': 11, 'november': 11,
    'dec': 12, 'december': 12,
}


def parse_date_parts(groups: tuple) -> Optional[date]:
    """Build a date from three regex groups in any DATE_PATTERNS order."""
    try:
        part1, part2, part3 = groups[-3:]

        if part1.lower() in _MONTHS:
            month, day, year = _MONTHS[part1.lower()], int(part2), int(part3)
        elif len(part1) == 4:
            year, month, day = int(part1), int(part2), int(part3)
        else:
            month, day, year = int(part1), int(part2), int(part3)

        # Two-digit years
        if year < 100:
            year = 2000 + year if year < 50 else 1900 + year

        return date(year, month, day)
    except (ValueError, TypeError, AttributeError):
        return None


def _find_labeled_date(lines: List[str], labels: List[str]) -> Optional[date]:
    for line in lines:
        for label in labels:
            for date_pattern in DATE_PATTERNS:
                match = re.search(r'\b' + label + date_pattern, line, re.IGNORECASE)
                if match:
                    parsed = parse_date_parts(match.groups())
                    if parsed:
                        return parsed
    return None


def _without_birth_date(line: str) -> str:
    """Blank out "DOB: <date>" segments so they never read as a report date."""
    for label in DOB_LABELS:
        for date_pattern in DATE_PATTERNS:
            line = re.sub(r'\b' + label + date_pattern, ' ', line, flags=re.IGNORECASE)
    return line


def _find_laboratory_name(lines: List[str]) -> Optional[str]:
    for line in lines:
        brand = LAB_BRAND_PATTERN.search(line)
        if brand:
            return brand.group(1)

        # Label lines ("Patient: ...") never name the lab
        if ':' in line:
            continue

        match = LAB_NAME_PATTERN.match(line)
        if match:
            return match.group(1).strip()
    return None


def extract_metadata(text: str, scan_lines: int = 10) -> ReportMetadata:
    """
    Scan the first non-empty lines for report metadata.

    First match per field wins. A field that matches nothing is left
    as None; this function does not raise.
    """
    if not text:
        return ReportMetadata()

    lines = [line for line in text.split('\n') if line.strip()][:scan_lines]

    laboratory_name = _find_laboratory_name(lines)

    date_lines = [_without_birth_date(line) for line in lines]
    report_date = _find_labeled_date(date_lines, REPORT_DATE_LABELS)
    if report_date is None:
        report_date = _find_labeled_date(date_lines, [''])

    name = None
    mrn = None
    for line in lines:
        if name is None:
            match = PATIENT_NAME_PATTERN.search(line)
            if match:
                name = match.group(1).strip()
        if mrn is None:
            match = MRN_PATTERN.search(line)
            if match:
                mrn = match.group(1)

    patient = PatientIdentifiers(
        name=name,
        date_of_birth=_find_labeled_date(lines, DOB_LABELS),
        medical_record_number=mrn,
    )

    metadata = ReportMetadata(
        laboratory_name=laboratory_name,
        report_date=report_date,
        patient=None if patient.is_empty else patient,
    )
    logger.debug(
        f"Metadata: lab={metadata.laboratory_name}, date={metadata.report_date}, "
        f"patient={'yes' if metadata.patient else 'no'}"
    )
    return metadata
