# ============================================================================
# src/lab_intelligence/__init__.py
# ============================================================================
"""
Lab Intelligence Engine

Structured lab-value extraction from OCR text, followed by concurrent
multi-provider analysis and consensus synthesis.

Usage:
    from lab_intelligence import LabValueExtractor, ProviderOrchestrator, create_providers
    from lab_intelligence.core.config import get_config

    result = LabValueExtractor().extract(ocr_text)

    primary, secondaries = create_providers(get_config())
    analysis = await ProviderOrchestrator(primary, secondaries).analyze(result)
"""

__version__ = "0.1.0"

from .extraction import LabValueExtractor
from .analysis import AnalysisTask, ProviderOrchestrator, SynthesisEngine
from .providers import create_providers
from .storage import InMemoryStore, SQLiteStore
from .core.lab_pipeline import LabReportPipeline, PipelineResult

__all__ = [
    "LabValueExtractor",
    "AnalysisTask",
    "ProviderOrchestrator",
    "SynthesisEngine",
    "create_providers",
    "InMemoryStore",
    "SQLiteStore",
    "LabReportPipeline",
    "PipelineResult",
]
