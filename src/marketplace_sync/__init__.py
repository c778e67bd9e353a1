"""
Marketplace Sync

Reconciliation engine that keeps CRM deals and contacts consistent with
marketplace license and transaction records. Produces an idempotent
mutation plan; network transport and uploads are left to the caller.
"""

__version__ = '0.1.0'

from .config import EngineSettings, get_settings
from .errors import (
    ConfigurationError,
    DataQualityError,
    DeploymentValueError,
    EntityCorrelationError,
    MarketplaceSyncError,
    PipelineError,
    TierParseError,
    ValidationError,
)
from .models import (
    ContactSnapshot,
    CreateDealAction,
    DealSnapshot,
    LicenseMatch,
    LicenseRecord,
    NoOpDealAction,
    RelatedRecordGroup,
    TransactionRecord,
    UpdateDealAction,
)
from .pipeline import ReconciliationEngine, ReconciliationResult
from .repository import CrmSnapshot, SnapshotProvider, StagedSnapshot

__all__ = [
    # Version
    '__version__',
    # Config
    'EngineSettings',
    'get_settings',
    # Errors
    'MarketplaceSyncError',
    'DataQualityError',
    'TierParseError',
    'DeploymentValueError',
    'EntityCorrelationError',
    'PipelineError',
    'ValidationError',
    'ConfigurationError',
    # Models
    'LicenseRecord',
    'TransactionRecord',
    'LicenseMatch',
    'RelatedRecordGroup',
    'ContactSnapshot',
    'DealSnapshot',
    'CreateDealAction',
    'UpdateDealAction',
    'NoOpDealAction',
    # Engine
    'ReconciliationEngine',
    'ReconciliationResult',
    'CrmSnapshot',
    'SnapshotProvider',
    'StagedSnapshot',
]
