# src/lab_intelligence/analysis/__init__.py

from .request import DocumentAnalysisRequest
from .task import AnalysisTask
from .synthesis import SynthesisEngine, merge_unique
from .orchestrator import ProviderOrchestrator, ProviderOutcome

__all__ = [
    "DocumentAnalysisRequest",
    "AnalysisTask",
    "SynthesisEngine",
    "merge_unique",
    "ProviderOrchestrator",
    "ProviderOutcome",
]
