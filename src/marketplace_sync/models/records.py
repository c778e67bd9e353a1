"""
Marketplace record models: licenses, transactions, and related-record groups.

These are the immutable inputs of a reconciliation run. A RelatedRecordGroup
is produced by the upstream matcher and represents one continuous customer
relationship: an ordered list of licenses, each with the transactions made
against it.

Key design decisions:
- All models are frozen; the engine never mutates its inputs
- Tier strings are kept raw here and parsed by pipeline.tiers, so that an
  unknown vocabulary fails loudly at interpretation time
- Dates are calendar dates (the marketplace reports no time of day)
"""

from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class Hosting(str, Enum):
    """Hosting class of a license or transaction."""

    SERVER = 'Server'
    CLOUD = 'Cloud'
    DATA_CENTER = 'Data Center'


class SaleType(str, Enum):
    """Marketplace transaction sale type."""

    NEW = 'New'
    RENEWAL = 'Renewal'
    UPGRADE = 'Upgrade'
    REFUND = 'Refund'


class ContactInfo(BaseModel):
    """A person attached to a license or transaction."""

    email: str = Field(..., description='Email address as reported by the marketplace')
    name: str | None = Field(default=None, description='Full name, if reported')
    phone: str | None = Field(default=None, description='Phone number, if reported')

    model_config = {'frozen': True}


class PartnerDetails(BaseModel):
    """Reseller/partner that billed the customer."""

    partner_name: str = Field(..., description='Partner company name')
    billing_contact: ContactInfo = Field(..., description='Partner billing contact')

    model_config = {'frozen': True}


class _MarketplaceRecord(BaseModel):
    """Fields shared by licenses and transactions."""

    addon_license_id: str = Field(..., description='License lineage identifier')
    addon_key: str = Field(..., description='Product (app) key')
    addon_name: str = Field(default='', description='Human-readable product name')
    hosting: Hosting = Field(..., description='Hosting class')
    tier: str = Field(..., description='Raw tier string from the marketplace')
    license_type: str = Field(default='COMMERCIAL', description='Marketplace license type')

    technical_contact: ContactInfo = Field(..., description='Customer technical contact')
    billing_contact: ContactInfo | None = Field(default=None, description='Customer billing contact')
    partner_details: PartnerDetails | None = Field(default=None, description='Billing partner, if any')

    company: str = Field(default='', description='Customer company name')
    country: str = Field(default='', description='Customer country')
    region: str = Field(default='', description='Customer region')

    model_config = {'frozen': True}

    def emails(self) -> list[str]:
        """Technical, billing and partner-billing emails, in that order."""
        emails = [self.technical_contact.email]
        if self.billing_contact and self.billing_contact.email:
            emails.append(self.billing_contact.email)
        if self.partner_details and self.partner_details.billing_contact.email:
            emails.append(self.partner_details.billing_contact.email)
        return [e for e in emails if e]


class LicenseRecord(_MarketplaceRecord):
    """A marketplace license."""

    evaluation_opportunity_size: str | None = Field(
        default=None,
        description='Evaluation-size string (e.g. "50", "Unlimited Users", "NA")',
    )
    maintenance_start_date: date = Field(..., description='Start of maintenance period')

    def snapshot(self) -> dict[str, Any]:
        """Plain-data copy of the license fields for audit records."""
        return self.model_dump(mode='json')


class TransactionRecord(_MarketplaceRecord):
    """A marketplace transaction (sale, renewal, upgrade, refund)."""

    transaction_id: str = Field(..., description='Transaction identifier')
    sale_date: date = Field(..., description='Date of sale')
    sale_type: SaleType = Field(..., description='Sale type')
    vendor_amount: float = Field(
        default=0.0,
        description='Vendor share in currency units (negative for refunds)',
    )


class LicenseMatch(BaseModel):
    """One license together with the transactions made against it."""

    license: LicenseRecord
    transactions: tuple[TransactionRecord, ...] = ()

    model_config = {'frozen': True}


class RelatedRecordGroup(BaseModel):
    """
    Licenses and transactions believed to form one customer relationship.

    Produced by the upstream matcher; the engine treats it as a read-only
    unit of work. Always holds at least one license.
    """

    matches: tuple[LicenseMatch, ...]

    model_config = {'frozen': True}

    @field_validator('matches')
    @classmethod
    def _non_empty(cls, v: tuple[LicenseMatch, ...]) -> tuple[LicenseMatch, ...]:
        if not v:
            raise ValueError('a related record group needs at least one license')
        return v

    @property
    def licenses(self) -> list[LicenseRecord]:
        return [m.license for m in self.matches]

    @property
    def transactions(self) -> list[TransactionRecord]:
        return [t for m in self.matches for t in m.transactions]

    @property
    def records(self) -> list[LicenseRecord | TransactionRecord]:
        """Licenses first, then transactions, both in input order."""
        return [*self.licenses, *self.transactions]

    @property
    def license_ids(self) -> list[str]:
        return [lic.addon_license_id for lic in self.licenses]

    @property
    def transaction_ids(self) -> list[str]:
        return [t.transaction_id for t in self.transactions]

    @property
    def key(self) -> str:
        """Identifier used to label the group in logs."""
        return self.matches[0].license.addon_license_id

    def emails(self) -> list[str]:
        """Unique emails across every record, first occurrence wins."""
        return list(dict.fromkeys(e for r in self.records for e in r.emails()))
