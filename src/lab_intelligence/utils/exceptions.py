# ============================================================================
# src/lab_intelligence/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the lab intelligence engine.
"""

from typing import Optional


class LabIntelligenceError(Exception):
    """Base exception for all lab intelligence errors."""
    pass


class ConfigurationError(LabIntelligenceError):
    """Invalid configuration."""
    pass


class ExtractionError(LabIntelligenceError):
    """A line could not be parsed or evaluated."""
    def __init__(self, message: str, line: Optional[int] = None):
        super().__init__(message)
        self.line = line


class ReferenceLookupError(LabIntelligenceError, LookupError):
    """Reference range unavailable for a test."""
    def __init__(self, message: str, test_name: str):
        super().__init__(message)
        self.test_name = test_name


class ProviderError(LabIntelligenceError):
    """An analysis provider call failed."""
    def __init__(self, message: str, provider_id: str):
        super().__init__(message)
        self.provider_id = provider_id


class ProviderTimeoutError(ProviderError):
    """Provider did not answer within its deadline."""
    def __init__(self, provider_id: str, timeout: float):
        super().__init__(
            f"{provider_id} timed out after {timeout:.1f}s", provider_id
        )
        self.timeout = timeout


class ProviderTransportError(ProviderError):
    """Network or HTTP-level failure talking to a provider."""
    def __init__(self, message: str, provider_id: str, status: Optional[int] = None):
        super().__init__(message, provider_id)
        self.status = status


class ProviderResponseError(ProviderError):
    """Provider answered with a payload that does not match its schema."""
    pass


class AnalysisFailedError(LabIntelligenceError):
    """The primary provider produced no usable result."""
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class SynthesisError(LabIntelligenceError):
    """Synthesis invoked without any successful provider result."""
    pass


class InvalidStateTransitionError(LabIntelligenceError):
    """Analysis task moved between states in an illegal order."""
    def __init__(self, current: str, target: str):
        super().__init__(f"Illegal transition {current} -> {target}")
        self.current = current
        self.target = target


class StorageError(LabIntelligenceError):
    """Error reading from or writing to the persistence backend."""
    pass


class ReportInProgressError(LabIntelligenceError):
    """A report was submitted again while its earlier run is still going."""
    def __init__(self, report_id: str):
        super().__init__(f"Report {report_id} is already being processed")
        self.report_id = report_id
