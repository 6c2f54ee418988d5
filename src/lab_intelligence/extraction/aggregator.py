# ============================================================================
# src/lab_intelligence/extraction/aggregator.py
# ============================================================================
"""
Extraction Aggregator
- Builds the immutable LabExtractionResult for one document
- Aggregate confidence = mean per-value confidence + capped volume bonus
"""

import logging
from typing import Iterable, Optional, Sequence

from ..config import threshold_settings
from ..core.context import ExtractedLabValue, LabExtractionResult, ReportMetadata

logger = logging.getLogger(__name__)

NO_VALUES_NOTE = "No recognizable lab values were found in the document"


class ExtractionAggregator:

    def __init__(self, thresholds=None):
        self.thresholds = thresholds or threshold_settings

    def aggregate_confidence(self, values: Sequence[ExtractedLabValue]) -> float:
        if not values:
            return 0.0

        mean = sum(v.confidence for v in values) / len(values)
        volume_bonus = min(
            self.thresholds.VOLUME_BONUS_CAP,
            len(values) * self.thresholds.VOLUME_BONUS_PER_VALUE,
        )
        return min(1.0, mean + volume_bonus)

    def build(
        self,
        values: Iterable[ExtractedLabValue],
        metadata: Optional[ReportMetadata] = None,
        notes: Iterable[str] = (),
    ) -> LabExtractionResult:
        values = tuple(values)
        notes = list(notes)
        metadata = metadata or ReportMetadata()

        if not values:
            notes.append(NO_VALUES_NOTE)
            logger.warning(NO_VALUES_NOTE)

        return LabExtractionResult(
            laboratory_name=metadata.laboratory_name,
            report_date=metadata.report_date,
            patient=metadata.patient,
            values=values,
            confidence=self.aggregate_confidence(values),
            processing_notes=tuple(notes),
        )
