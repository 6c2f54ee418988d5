# ============================================================================
# src/lab_intelligence/constants/document_types.py
# ============================================================================
"""
Document Types
- Types a document can be hinted as before analysis
- Keyword table for the local hint (the primary provider's answer wins)
"""

from enum import Enum


class DocumentType(str, Enum):
    LAB = "lab"
    COLONOSCOPY = "colonoscopy"
    PATHOLOGY = "pathology"
    RADIOLOGY = "radiology"
    UNKNOWN = "unknown"


# Checked in order; first type with a keyword present wins
DOCUMENT_TYPE_KEYWORDS = (
    (DocumentType.COLONOSCOPY, ("colonoscopy", "endoscopy", "polyp")),
    (DocumentType.PATHOLOGY, ("pathology", "biopsy", "histology")),
    (DocumentType.RADIOLOGY, ("ct scan", "mri", "x-ray", "ultrasound")),
    (DocumentType.LAB, ("hemoglobin", "glucose", "cholesterol", "lab")),
)

# Standing dietary guidance attached to a document type during synthesis
DOCUMENT_TYPE_DIETARY_DEFAULTS = {
    DocumentType.COLONOSCOPY: (
        "High-fiber diet for colon health",
        "Limit red meat consumption",
        "Increase fruits and vegetables",
    ),
}
