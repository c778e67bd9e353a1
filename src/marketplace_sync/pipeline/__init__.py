"""
Reconciliation pipeline stages.

Tier resolution, exclusion, event interpretation, deal action generation,
contact generation and aggregation and the diff upsert gate, orchestrated by
ReconciliationEngine.
"""

from .actions import ActionGenerator
from .contacts import ContactAggregator, generate_contacts, resolve_deployment
from .diff import PropertyMapping, contact_mutations, correlate_created, diff_properties
from .events import EventInterpreter
from .exclusion import ExclusionClassifier, ExclusionResult, derive_provider_domains
from .pipeline import ReconciliationEngine, ReconciliationResult
from .tiers import (
    NO_TIER,
    UNLIMITED_TIER,
    license_tier,
    ratchet_tier,
    tier_from_evaluation_size,
    tier_from_license_tier,
    tier_from_transaction_tier,
    transaction_tier,
)

__all__ = [
    'ActionGenerator',
    'ContactAggregator',
    'EventInterpreter',
    'ExclusionClassifier',
    'ExclusionResult',
    'NO_TIER',
    'PropertyMapping',
    'ReconciliationEngine',
    'ReconciliationResult',
    'UNLIMITED_TIER',
    'contact_mutations',
    'correlate_created',
    'derive_provider_domains',
    'diff_properties',
    'generate_contacts',
    'license_tier',
    'ratchet_tier',
    'resolve_deployment',
    'tier_from_evaluation_size',
    'tier_from_license_tier',
    'tier_from_transaction_tier',
    'transaction_tier',
]
