"""
Tests for the errors module.
"""

import pytest

from marketplace_sync.errors import (
    ConfigurationError,
    DataQualityError,
    DeploymentValueError,
    EntityCorrelationError,
    MarketplaceSyncError,
    PipelineError,
    TierParseError,
    ValidationError,
)
from marketplace_sync.pipeline.tiers import tier_from_license_tier


class TestErrorHierarchy:
    """Test error class hierarchy."""

    def test_base_error_with_context(self):
        """Test that base error captures context."""
        error = MarketplaceSyncError(
            "Something went wrong",
            context={"tier": "Gold", "count": 42},
        )

        assert error.message == "Something went wrong"
        assert error.context == {"tier": "Gold", "count": 42}
        assert "tier" in str(error)

    def test_base_error_without_context(self):
        """Test error without context."""
        error = MarketplaceSyncError("Simple error")

        assert error.message == "Simple error"
        assert error.context == {}
        assert str(error) == "Simple error"

    def test_data_quality_inheritance(self):
        """Data-quality failures share one base."""
        for cls in (TierParseError, DeploymentValueError, EntityCorrelationError):
            error = cls("bad data")
            assert isinstance(error, DataQualityError)
            assert isinstance(error, MarketplaceSyncError)

    def test_pipeline_and_config_inheritance(self):
        """Test pipeline and configuration error hierarchy."""
        assert isinstance(ValidationError("Invalid input"), PipelineError)
        assert isinstance(PipelineError("Pipeline failed"), MarketplaceSyncError)
        assert isinstance(ConfigurationError("Bad setting"), MarketplaceSyncError)
        assert not isinstance(ConfigurationError("Bad setting"), DataQualityError)


class TestRaisedErrors:
    """Errors raised by the engine carry diagnosable context."""

    def test_tier_parse_error_context(self):
        with pytest.raises(TierParseError) as exc_info:
            tier_from_license_tier('Platinum Plus')

        assert exc_info.value.context == {'value': 'Platinum Plus'}
        assert 'Platinum Plus' in str(exc_info.value)
