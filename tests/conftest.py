"""
Pytest configuration and shared builders for the reconciliation tests.

Builders create marketplace records, groups and CRM snapshot entries with
sensible defaults, so each test only spells out the fields it cares about.

Key fixtures:
- settings: EngineSettings with test partner domains and product mapping
- empty_snapshot: CrmSnapshot with no contacts or deals
"""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

# Load environment variables
from dotenv import load_dotenv

env_file = Path(__file__).parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)

from marketplace_sync.config import EngineSettings
from marketplace_sync.models import (
    ContactInfo,
    ContactSnapshot,
    ContactType,
    DealSnapshot,
    LicenseMatch,
    LicenseRecord,
    PartnerDetails,
    RelatedRecordGroup,
    TransactionRecord,
)
from marketplace_sync.repository import CrmSnapshot

ADDON_KEY = 'com.example.timesheets'
PARTNER_DOMAIN = 'reseller-partner.com'


# =============================================================================
# Builders
# =============================================================================


def _contacts(email: str, billing_email: str | None, partner_email: str | None) -> dict:
    return {
        'technical_contact': ContactInfo(email=email),
        'billing_contact': ContactInfo(email=billing_email) if billing_email else None,
        'partner_details': (
            PartnerDetails(partner_name='Partner Co', billing_contact=ContactInfo(email=partner_email))
            if partner_email
            else None
        ),
    }


def make_license(
    license_id: str = 'L-1',
    *,
    addon_key: str = ADDON_KEY,
    hosting: str = 'Server',
    tier: str = '10 Users',
    evaluation_size: str | None = None,
    start: str = '2024-01-01',
    email: str = 'dev@acme.io',
    billing_email: str | None = None,
    partner_email: str | None = None,
    **overrides,
) -> LicenseRecord:
    fields = {
        'addon_license_id': license_id,
        'addon_key': addon_key,
        'addon_name': 'Timesheets',
        'hosting': hosting,
        'tier': tier,
        'evaluation_opportunity_size': evaluation_size,
        'maintenance_start_date': start,
        'company': 'Acme',
        'country': 'Portugal',
        'region': 'EMEA',
        **_contacts(email, billing_email, partner_email),
    }
    fields.update(overrides)
    return LicenseRecord(**fields)


def make_transaction(
    transaction_id: str = 'TX-1',
    license_id: str = 'L-1',
    *,
    sale_type: str = 'New',
    sale_date: str = '2024-01-01',
    tier: str = '10 Users',
    amount: float = 100.0,
    addon_key: str = ADDON_KEY,
    hosting: str = 'Server',
    email: str = 'dev@acme.io',
    billing_email: str | None = None,
    partner_email: str | None = None,
    **overrides,
) -> TransactionRecord:
    fields = {
        'transaction_id': transaction_id,
        'addon_license_id': license_id,
        'addon_key': addon_key,
        'addon_name': 'Timesheets',
        'hosting': hosting,
        'tier': tier,
        'sale_date': sale_date,
        'sale_type': sale_type,
        'vendor_amount': amount,
        'company': 'Acme',
        'country': 'Portugal',
        'region': 'EMEA',
        **_contacts(email, billing_email, partner_email),
    }
    fields.update(overrides)
    return TransactionRecord(**fields)


def make_group(*matches) -> RelatedRecordGroup:
    """
    Build a group from (license, [transactions]) pairs or bare licenses.
    """
    built = []
    for match in matches:
        if isinstance(match, LicenseRecord):
            built.append(LicenseMatch(license=match))
        else:
            lic, transactions = match
            built.append(LicenseMatch(license=lic, transactions=tuple(transactions)))
    return RelatedRecordGroup(matches=tuple(built))


def make_contact(
    contact_id: str = 'c-1',
    email: str = 'dev@acme.io',
    *,
    partner: bool = False,
    company_ids: tuple[str, ...] = ('co-1',),
    **overrides,
) -> ContactSnapshot:
    return ContactSnapshot(
        contact_id=contact_id,
        email=email,
        contact_type=ContactType.PARTNER if partner else ContactType.CUSTOMER,
        company_ids=() if partner else company_ids,
        **overrides,
    )


def make_deal(deal_id: str = 'd-1', **properties) -> DealSnapshot:
    contact_ids = properties.pop('contact_ids', ())
    company_ids = properties.pop('company_ids', ())
    return DealSnapshot(
        deal_id=deal_id,
        properties=properties,
        contact_ids=contact_ids,
        company_ids=company_ids,
    )


def make_settings(**overrides) -> EngineSettings:
    values = {
        'PARTNER_DOMAINS': PARTNER_DOMAIN,
        'ARCHIVED_APPS': 'com.example.retired',
        'MASS_PROVIDER_DOMAINS': 'bulkmail.example',
        'ADDONKEY_PLATFORMS': f'{ADDON_KEY}=Jira,com.example.wiki-macros=Confluence',
        'DEAL_DEALNAME': '{addon_name} at {company}',
        'DEAL_ORIGIN': None,
        'DEAL_RELATED_PRODUCTS': None,
        'CREATE_EVAL_DEALS': False,
        'TRACK_CHANGE_EVENTS': False,
    }
    values.update(overrides)
    return EngineSettings(**values)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings() -> EngineSettings:
    """Engine settings with a partner domain and product mapping."""
    return make_settings()


@pytest.fixture
def empty_snapshot() -> CrmSnapshot:
    """CRM snapshot with no contacts or deals."""
    return CrmSnapshot()
