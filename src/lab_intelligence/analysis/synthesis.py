# ============================================================================
# src/lab_intelligence/analysis/synthesis.py
# ============================================================================
"""
Synthesis Engine

Merges one primary result and any successful secondary results into
FinalRecommendations:
- shortlist and questions: case-insensitive union, first seen wins
- follow-up timeline: follow-up actions plus follow_up recommendations
- recommendations: kept across types, deduplicated within a type,
  ranked by priority
- urgency: maximum across results (a single "critical" escalates)
- confidence: mean across results
"""

import logging
from statistics import mean
from typing import Iterable, List, Optional, Sequence, Tuple

from ..constants import DOCUMENT_TYPE_DIETARY_DEFAULTS, DocumentType
from ..core.context import (
    FinalRecommendations,
    FollowUpItem,
    ProviderAnalysisResult,
    Recommendation,
)
from ..utils.exceptions import SynthesisError

logger = logging.getLogger(__name__)

PRIORITY_RANK = {"urgent": 0, "high": 1, "medium": 2, "low": 3}


def merge_unique(groups: Iterable[Iterable[str]]) -> Tuple[str, ...]:
    """Order-preserving, case-insensitive union; the first spelling seen is kept."""
    seen = set()
    merged = []
    for group in groups:
        for item in group:
            key = item.strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            merged.append(item.strip())
    return tuple(merged)


class SynthesisEngine:

    def synthesize(
        self,
        primary: Optional[ProviderAnalysisResult],
        secondaries: Sequence[ProviderAnalysisResult] = (),
        document_type: Optional[str] = None,
    ) -> FinalRecommendations:
        results = [r for r in [primary, *secondaries] if r is not None]
        if not results:
            raise SynthesisError("Synthesis requires at least one successful provider result")

        document_type = document_type or results[0].document_type

        final = FinalRecommendations(
            diagnostic_shortlist=merge_unique(r.diagnostic_shortlist for r in results),
            clinical_questions=merge_unique(r.clinical_questions for r in results),
            follow_up_timeline=self._timeline(results),
            recommendations=self._recommendations(results, document_type),
            urgency_level=max(r.urgency_level for r in results),
            confidence=mean(r.confidence for r in results),
        )

        logger.info(
            f"Synthesized {len(results)} result(s): urgency={final.urgency_level.value}, "
            f"confidence={final.confidence:.2f}, {len(final.recommendations)} recommendations"
        )
        return final

    def _timeline(self, results: List[ProviderAnalysisResult]) -> Tuple[FollowUpItem, ...]:
        seen = set()
        timeline = []

        def add(action: str, timeframe: Optional[str], source: str):
            key = action.strip().lower()
            if key and key not in seen:
                seen.add(key)
                timeline.append(FollowUpItem(action=action.strip(), timeframe=timeframe, source=source))

        for result in results:
            for action in result.follow_up_actions:
                add(action, None, result.provider_id)
            for rec in result.findings.recommendations:
                if rec.type == "follow_up":
                    add(rec.description, rec.timeframe, result.provider_id)

        return tuple(timeline)

    def _recommendations(
        self,
        results: List[ProviderAnalysisResult],
        document_type: str,
    ) -> Tuple[Recommendation, ...]:
        seen = set()
        merged: List[Recommendation] = []

        def add(rec: Recommendation):
            key = (rec.type.lower(), rec.description.strip().lower())
            if key not in seen:
                seen.add(key)
                merged.append(rec)

        for result in results:
            for rec in result.findings.recommendations:
                add(rec)

        try:
            defaults = DOCUMENT_TYPE_DIETARY_DEFAULTS.get(DocumentType(document_type), ())
        except ValueError:
            defaults = ()
        for description in defaults:
            add(Recommendation(type="dietary", description=description, priority="medium"))

        # sorted() is stable, so first-seen order holds within a priority
        return tuple(sorted(merged, key=lambda r: PRIORITY_RANK.get(r.priority, len(PRIORITY_RANK))))
