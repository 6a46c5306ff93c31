"""Custom exception hierarchy for the washquote estimator."""

from __future__ import annotations


class WashquoteError(Exception):
    """Base exception for all washquote errors."""


class EstimatorValidationError(WashquoteError):
    """Raised when a request cannot be estimated as submitted."""


class UnsupportedServiceError(EstimatorValidationError):
    """Raised when a service type is outside the supported set."""

    def __init__(self, service_type: str) -> None:
        super().__init__(f"Unsupported service type: {service_type}")
        self.service_type = service_type


class StorageError(WashquoteError):
    """Raised when an image cannot be stored."""


class PropertyLookupError(WashquoteError):
    """Raised when a property-records provider call fails."""


class VisionAnalysisError(WashquoteError):
    """Raised when image analysis fails."""


class AnalysisFailedError(WashquoteError):
    """Raised when the analysis pipeline cannot produce a result."""
