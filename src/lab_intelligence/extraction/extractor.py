# ============================================================================
# src/lab_intelligence/extraction/extractor.py
# ============================================================================
"""
Lab Value Extractor

Synchronous extraction pipeline for one document:

    raw text -> normalize_text -> LineMatcher -> ValueEvaluator -> ExtractionAggregator

Pure CPU work with no shared mutable state; one extractor can serve any
number of documents, from any thread.
"""

import logging
from typing import List, Optional

from ..config import extraction_settings
from ..core.context import LabExtractionResult, PatientContext
from ..utils.logging import log_performance
from .aggregator import ExtractionAggregator
from .evaluator import ValueEvaluator
from .line_grammars import LineMatcher
from .text_normalizer import extract_metadata, normalize_text

logger = logging.getLogger(__name__)


class LabValueExtractor:
    """
    Structured lab-value extraction from OCR text.

    Every collaborator is injectable so tests can swap in a fixed
    reference table or a custom grammar set.
    """

    def __init__(
        self,
        matcher: Optional[LineMatcher] = None,
        evaluator: Optional[ValueEvaluator] = None,
        aggregator: Optional[ExtractionAggregator] = None,
        settings=None,
    ):
        self.settings = settings or extraction_settings
        self.matcher = matcher or LineMatcher(settings=self.settings)
        self.evaluator = evaluator or ValueEvaluator()
        self.aggregator = aggregator or ExtractionAggregator()

    @log_performance(logger, "Lab value extraction")
    def extract(
        self,
        raw_text: str,
        patient: Optional[PatientContext] = None,
    ) -> LabExtractionResult:
        """
        Extract every recognizable lab value from raw_text.

        Never raises for bad input: a document with nothing recognizable
        gives an empty, zero-confidence result with a processing note.
        """
        notes: List[str] = []

        text = normalize_text(raw_text or "")
        metadata = extract_metadata(text, scan_lines=self.settings.METADATA_SCAN_LINES)

        matches = self.matcher.match_lines(text)
        logger.debug(f"{len(matches)} candidate lines matched")

        age = patient.age if patient else None
        sex = patient.sex if patient else None

        values = []
        for match in matches:
            value = self.evaluator.evaluate(match, notes, age=age, sex=sex)
            if value is not None:
                values.append(value)

        result = self.aggregator.build(values, metadata, notes)

        logger.info(
            f"Extracted {len(result.values)} lab values "
            f"({len(result.critical_values)} critical) with {result.confidence:.1%} confidence"
        )
        return result
