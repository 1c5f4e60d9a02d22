"""Exception taxonomy for the analysis pipeline."""
from typing import Optional


class AnalysisError(Exception):
    """Base exception for image analysis errors"""


class ConfigurationError(AnalysisError):
    """Raised when the API key, model id or prompt is missing or invalid"""


class EmptyImageError(AnalysisError):
    """Raised when there are no image bytes to analyze"""


class TransportError(AnalysisError):
    """Raised for network failures, timeouts and non-2xx responses"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MalformedEnvelope(AnalysisError):
    """Raised when the provider wrapper around the result is unusable"""


class MalformedPayload(AnalysisError):
    """Raised when the embedded application JSON cannot be decoded"""


class CachePersistenceError(AnalysisError):
    """Raised when the material cache cannot be written to disk"""
