"""
Custom exceptions for the marketplace reconciliation engine.

Provides:
- Typed exception hierarchy for different failure modes
- Error context preservation for root-cause diagnosis

Data-quality errors are fatal: they mean the upstream marketplace data has
drifted (new tier vocabulary, corrupt hosting values, ...) and a human has to
look at it. Nothing in the engine retries or recovers from them.
"""

from typing import Any


class MarketplaceSyncError(Exception):
    """Base exception for all marketplace sync errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message


# =============================================================================
# Data Quality Errors (fatal)
# =============================================================================


class DataQualityError(MarketplaceSyncError):
    """Base class for errors caused by unexpected source data."""

    pass


class TierParseError(DataQualityError):
    """A tier string is outside the known vocabulary."""

    pass


class DeploymentValueError(DataQualityError):
    """A computed deployment value is outside the allowed set."""

    pass


class EntityCorrelationError(DataQualityError):
    """A newly created CRM entity could not be matched back to its local record."""

    pass


# =============================================================================
# Pipeline Errors
# =============================================================================


class PipelineError(MarketplaceSyncError):
    """Base class for pipeline-related errors."""

    pass


class ValidationError(PipelineError):
    """Input handed to the engine violates its contract."""

    pass


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(MarketplaceSyncError):
    """Configuration values are malformed."""

    pass
