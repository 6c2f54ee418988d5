from .exceptions import (
    LabIntelligenceError,
    ConfigurationError,
    ExtractionError,
    ReferenceLookupError,
    ProviderError,
    ProviderTimeoutError,
    ProviderTransportError,
    ProviderResponseError,
    AnalysisFailedError,
    SynthesisError,
    InvalidStateTransitionError,
    StorageError,
    ReportInProgressError,
)
from .logging import setup_logging, log_performance, LogAdapter, JsonFormatter
