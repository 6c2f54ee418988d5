# ============================================================================
# src/lab_intelligence/core/context/enums.py
# ============================================================================
"""
Processing Enums
- Abnormal flags
- Urgency levels (ordered)
- Analysis request status
"""

from enum import Enum
from typing import Optional


class AbnormalFlag(str, Enum):
    HIGH = "H"
    LOW = "L"
    CRITICAL_HIGH = "HH"
    CRITICAL_LOW = "LL"
    NORMAL = "N"

    @property
    def is_critical(self) -> bool:
        return self in (AbnormalFlag.CRITICAL_HIGH, AbnormalFlag.CRITICAL_LOW)

    @property
    def is_abnormal(self) -> bool:
        return self is not AbnormalFlag.NORMAL

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional["AbnormalFlag"]:
        """
        Map a flag token to an AbnormalFlag.

        Accepts the canonical codes plus the spelled-out words some
        vendors print ("High", "Low", "Normal"). Anything else is None.
        """
        if not text:
            return None
        token = text.strip().upper()
        token = _FLAG_WORDS.get(token, token)
        try:
            return cls(token)
        except ValueError:
            return None


_FLAG_WORDS = {
    "HIGH": "H",
    "LOW": "L",
    "NORMAL": "N",
}


_URGENCY_ORDER = {"low": 0, "medium": 1, "high": 2, "critical": 3}


class UrgencyLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _URGENCY_ORDER[self.value]

    def __lt__(self, other):
        if not isinstance(other, UrgencyLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, UrgencyLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, UrgencyLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, UrgencyLevel):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, text: str) -> "UrgencyLevel":
        """Strict parse; raises ValueError on unknown levels."""
        return cls(text.strip().lower())


class AnalysisStatus(str, Enum):
    """Observable states of one document-analysis request."""
    PENDING = "pending"
    DISPATCHED = "dispatched"
    PARTIAL = "partial"        # primary ok, at least one secondary missing
    COMPLETE = "complete"      # every provider succeeded
    SYNTHESIZED = "synthesized"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AnalysisStatus.SYNTHESIZED, AnalysisStatus.FAILED)


class ProviderRole(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class AnalysisOutcomeStatus(str, Enum):
    """User-visible result of an analysis request."""
    COMPLETE = "complete"
    DEGRADED = "degraded"   # primary ok, some secondary absent
    FAILED = "failed"       # primary absent
