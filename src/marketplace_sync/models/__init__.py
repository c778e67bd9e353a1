"""
Data models for the reconciliation engine.

Provides marketplace input records (licenses, transactions, groups), CRM
snapshot models, and the pipeline's output models (events, deal actions,
contact updates, audit records).
"""

from .actions import (
    COMMERCIAL_EVENTS,
    MULTIPLE_HOSTING,
    ContactMutation,
    ContactUpdateAction,
    CreateDealAction,
    DealAction,
    DealAssociations,
    DealEvent,
    DealEventKind,
    IgnoredGroupRecord,
    NoOpDealAction,
    UpdateDealAction,
)
from .crm import ContactSnapshot, ContactType, DealSnapshot
from .records import (
    ContactInfo,
    Hosting,
    LicenseMatch,
    LicenseRecord,
    PartnerDetails,
    RelatedRecordGroup,
    SaleType,
    TransactionRecord,
)

__all__ = [
    # Marketplace records
    'ContactInfo',
    'Hosting',
    'LicenseMatch',
    'LicenseRecord',
    'PartnerDetails',
    'RelatedRecordGroup',
    'SaleType',
    'TransactionRecord',
    # CRM snapshot
    'ContactSnapshot',
    'ContactType',
    'DealSnapshot',
    # Pipeline output
    'COMMERCIAL_EVENTS',
    'MULTIPLE_HOSTING',
    'ContactMutation',
    'ContactUpdateAction',
    'CreateDealAction',
    'DealAction',
    'DealAssociations',
    'DealEvent',
    'DealEventKind',
    'IgnoredGroupRecord',
    'NoOpDealAction',
    'UpdateDealAction',
]
