"""
Pipeline output models: deal events, deal actions, contact updates, and
audit records.

DealEvent is the interpreted timeline of a group. DealAction and
ContactMutation are the only mutation proposals the engine emits; they are
consumed once by the external upload layer.
"""

from datetime import date
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from .records import Hosting

MULTIPLE_HOSTING = 'Multiple'

Deployment = Literal['Server', 'Cloud', 'Data Center', 'Multiple']


class DealEventKind(str, Enum):
    """Kinds of business events derived from a group's records."""

    EVAL = 'Eval'
    PURCHASE = 'Purchase'
    RENEWAL = 'Renewal'
    UPGRADE = 'Upgrade'
    REFUND = 'Refund'
    TIER_CHANGE = 'TierChange'
    HOSTING_CHANGE = 'HostingChange'


COMMERCIAL_EVENTS = frozenset({
    DealEventKind.PURCHASE,
    DealEventKind.RENEWAL,
    DealEventKind.UPGRADE,
})


class DealEvent(BaseModel):
    """One business event in a group's timeline."""

    kind: DealEventKind
    effective_date: date
    license_ids: tuple[str, ...] = ()
    transaction_ids: tuple[str, ...] = ()
    tier: int = Field(default=-1, description='Resolved tier of the contributing record')
    hosting: Hosting | None = None

    model_config = {'frozen': True}

    @property
    def is_commercial(self) -> bool:
        return self.kind in COMMERCIAL_EVENTS


# =============================================================================
# Deal Actions
# =============================================================================


class DealAssociations(BaseModel):
    """
    Target associations of a deal, with the diff against the stored deal.

    Associations are fully replaced on every run: anything stored but not in
    the target lists is scheduled for removal.
    """

    contact_ids: tuple[str, ...] = ()
    company_ids: tuple[str, ...] = ()
    contacts_to_add: tuple[str, ...] = ()
    contacts_to_remove: tuple[str, ...] = ()
    companies_to_add: tuple[str, ...] = ()
    companies_to_remove: tuple[str, ...] = ()

    model_config = {'frozen': True}

    @property
    def has_changes(self) -> bool:
        return bool(
            self.contacts_to_add
            or self.contacts_to_remove
            or self.companies_to_add
            or self.companies_to_remove
        )


class CreateDealAction(BaseModel):
    """Create a new deal with the full property set."""

    type: Literal['create'] = 'create'
    group_key: str
    properties: dict[str, Any]
    associations: DealAssociations = Field(default_factory=DealAssociations)


class UpdateDealAction(BaseModel):
    """Write the changed subset of properties (and associations) to a deal."""

    type: Literal['update'] = 'update'
    group_key: str
    deal_id: str
    properties: dict[str, Any]
    associations: DealAssociations = Field(default_factory=DealAssociations)


class NoOpDealAction(BaseModel):
    """Nothing to write for this group."""

    type: Literal['noop'] = 'noop'
    group_key: str
    deal_id: str | None = None
    reason: str | None = None


DealAction = CreateDealAction | UpdateDealAction | NoOpDealAction


# =============================================================================
# Contact Updates
# =============================================================================


class ContactUpdateAction(BaseModel):
    """Aggregated marketplace facts proposed for one contact."""

    contact_ref: str = Field(..., description='Contact email')
    contact_id: str | None = Field(default=None, description='CRM id when the contact is known')
    tier: int
    deployment: Deployment | None = None
    related_products: tuple[str, ...] = ()
    last_event: date

    model_config = {'frozen': True}

    def proposed_properties(self) -> dict[str, Any]:
        return {
            'license_tier': self.tier,
            'deployment': self.deployment,
            'related_products': list(self.related_products),
            'last_mpac_event': self.last_event,
        }


class ContactMutation(BaseModel):
    """Changed subset of contact properties to write."""

    contact_ref: str
    contact_id: str | None = None
    properties: dict[str, Any]


# =============================================================================
# Audit
# =============================================================================


class IgnoredGroupRecord(BaseModel):
    """Audit entry for one license of an excluded group."""

    reason: str
    details: str
    license: dict[str, Any] = Field(default_factory=dict, description='Snapshot of license fields')
