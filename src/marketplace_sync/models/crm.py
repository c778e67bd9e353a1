"""
CRM snapshot models: the last-known state of contacts and deals.

The snapshot is what the Diff Upsert Gate compares proposals against. It is
supplied by an external snapshot provider (see repository.CrmSnapshot for the
in-memory implementation) and is never mutated by the pipeline itself.
"""

from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ContactType(str, Enum):
    """Whether a CRM contact is a customer or a partner."""

    CUSTOMER = 'Customer'
    PARTNER = 'Partner'


class ContactSnapshot(BaseModel):
    """Stored state of a CRM contact."""

    contact_id: str = Field(..., description='CRM object id')
    email: str = Field(..., description='Primary email')
    other_emails: tuple[str, ...] = Field(default=(), description='Secondary emails')
    contact_type: ContactType = Field(default=ContactType.CUSTOMER)
    company_ids: tuple[str, ...] = Field(default=(), description='Associated company ids')

    # Identity details, filled in for contacts generated from marketplace records
    firstname: str | None = None
    lastname: str | None = None
    phone: str | None = None
    country: str | None = None
    region: str | None = None

    # Marketplace-derived properties maintained by the engine
    license_tier: int | None = None
    deployment: str | None = None
    related_products: tuple[str, ...] = ()
    last_mpac_event: date | None = None

    model_config = {'frozen': True}

    @property
    def is_customer(self) -> bool:
        return self.contact_type == ContactType.CUSTOMER

    def marketplace_properties(self) -> dict[str, Any]:
        """Stored values of the properties the contact aggregator manages."""
        return {
            'license_tier': self.license_tier,
            'deployment': self.deployment,
            'related_products': list(self.related_products),
            'last_mpac_event': self.last_mpac_event,
        }


class DealSnapshot(BaseModel):
    """Stored state of a CRM deal, including its associations."""

    deal_id: str = Field(..., description='CRM object id')
    properties: dict[str, Any] = Field(default_factory=dict)
    contact_ids: tuple[str, ...] = ()
    company_ids: tuple[str, ...] = ()

    model_config = {'frozen': True}

    @property
    def addon_license_ids(self) -> list[str]:
        return list(self.properties.get('addon_license_ids') or [])

    @property
    def transaction_ids(self) -> list[str]:
        return list(self.properties.get('transaction_ids') or [])
