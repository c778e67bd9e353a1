"""
Contact generation and aggregation.

generate_contacts() proposes a new CRM contact for every person named on a
record (technical, billing and partner-billing contacts) that the snapshot
does not already know by primary or secondary email:
- Partner when the email is on a partner domain or is a partner-billing
  contact, Customer otherwise
- duplicates of one email are merged, newest record first; Partner wins,
  and names and phone are taken from the first record that has them

ContactAggregator then folds every group a contact appears in (as a license
technical contact) into one ContactUpdateAction:
- tier: maximum over the stored tier and every license / evaluation-size /
  transaction tier of their groups
- deployment: the single hosting class seen, or "Multiple"
- related_products: sorted unique product names
- last_event: latest license maintenance start or transaction sale date

Only contacts known to the snapshot it is given are aggregated; the engine
hands it the stored snapshot with the generated contacts staged on top.
"""

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import date
from typing import get_args

import structlog

from ..config import EngineSettings
from ..errors import DeploymentValueError
from ..models.actions import MULTIPLE_HOSTING, ContactUpdateAction, Deployment
from ..models.crm import ContactSnapshot, ContactType
from ..models.records import (
    ContactInfo,
    LicenseRecord,
    RelatedRecordGroup,
    TransactionRecord,
)
from ..repository import SnapshotProvider
from ..utils import email_domain
from .tiers import (
    NO_TIER,
    tier_from_evaluation_size,
    tier_from_license_tier,
    tier_from_transaction_tier,
)

logger = structlog.get_logger(__name__)

ALLOWED_DEPLOYMENTS = frozenset(get_args(Deployment))


def resolve_deployment(hostings: Iterable[str]) -> str | None:
    """
    Collapse observed hosting classes into one deployment value.

    Raises:
        DeploymentValueError: If the result is outside the allowed set
    """
    distinct = set(hostings)
    if len(distinct) > 1:
        return MULTIPLE_HOSTING
    deployment = next(iter(distinct), None)
    if deployment is not None and deployment not in ALLOWED_DEPLOYMENTS:
        raise DeploymentValueError(
            f'Invalid deployment value: {deployment}',
            context={'value': deployment},
        )
    return deployment


# =============================================================================
# Contact generation
# =============================================================================

PLACEHOLDER_CONTACT_PREFIX = 'new-contact:'

# "john.smith" in a name field would render as a link in the CRM
_NAME_URL_RE = re.compile(r'(.)\.([a-zA-Z]{2})')


def _capitalize_words(text: str) -> str:
    return ' '.join(word[:1].upper() + word[1:] for word in text.split())


def _clean_name(part: str) -> str | None:
    return _NAME_URL_RE.sub(r'\1_\2', _capitalize_words(part)) or None


def split_name(name: str | None) -> tuple[str | None, str | None]:
    """First word as first name, the rest as last name; blanks become None."""
    first, _, last = (name or '').strip().partition(' ')
    return _clean_name(first), _clean_name(last)


@dataclass
class _ContactCandidate:
    email: str
    contact_type: ContactType
    firstname: str | None
    lastname: str | None
    phone: str | None
    country: str | None
    region: str | None
    updated: date


def _candidates(
    record: LicenseRecord | TransactionRecord,
    partner_domains: frozenset[str],
) -> Iterator[_ContactCandidate]:
    people: list[tuple[ContactInfo, bool]] = [(record.technical_contact, False)]
    if record.billing_contact:
        people.append((record.billing_contact, False))
    if record.partner_details:
        people.append((record.partner_details.billing_contact, True))

    if isinstance(record, TransactionRecord):
        updated = record.sale_date
    else:
        updated = record.maintenance_start_date

    for info, partner_billing in people:
        email = info.email.strip().lower()
        if not email:
            continue
        is_partner = partner_billing or email_domain(email) in partner_domains
        firstname, lastname = split_name(info.name)
        yield _ContactCandidate(
            email=email,
            contact_type=ContactType.PARTNER if is_partner else ContactType.CUSTOMER,
            firstname=firstname,
            lastname=lastname,
            phone=(info.phone or '').strip() or None,
            country=_capitalize_words(record.country) or None,
            region=record.region or None,
            updated=updated,
        )


def _merge_candidates(email: str, candidates: list[_ContactCandidate]) -> ContactSnapshot:
    ordered = sorted(candidates, key=lambda c: c.updated, reverse=True)
    newest = ordered[0]

    named = next((c for c in ordered if c.firstname and c.lastname), None)
    if named:
        firstname, lastname = named.firstname, named.lastname
    else:
        firstname = next((c.firstname for c in ordered if c.firstname), None)
        lastname = next((c.lastname for c in ordered if c.lastname), None)

    is_partner = any(c.contact_type == ContactType.PARTNER for c in ordered)

    return ContactSnapshot(
        contact_id=PLACEHOLDER_CONTACT_PREFIX + email,
        email=email,
        contact_type=ContactType.PARTNER if is_partner else ContactType.CUSTOMER,
        firstname=firstname,
        lastname=lastname,
        phone=next((c.phone for c in ordered if c.phone), None),
        country=newest.country,
        region=newest.region,
    )


def generate_contacts(
    groups: Iterable[RelatedRecordGroup],
    snapshot: SnapshotProvider,
    partner_domains: Iterable[str],
) -> list[ContactSnapshot]:
    """
    Propose a contact for every record email the snapshot does not know.

    Emails matching a stored contact's primary or secondary address belong
    to that contact and never produce a new one. Generated contacts carry a
    placeholder id (new-contact:<email>) until the CRM assigns a real one.

    Args:
        groups: All groups of the run, excluded ones included
        snapshot: Last-known CRM state
        partner_domains: Domains whose addresses are partner contacts

    Returns:
        New contacts in first-seen email order
    """
    domains = frozenset(d.lower() for d in partner_domains)
    by_email: dict[str, list[_ContactCandidate]] = {}
    known = 0

    for group in groups:
        for record in group.records:
            for candidate in _candidates(record, domains):
                if snapshot.contact_by_email(candidate.email) is not None:
                    known += 1
                    continue
                by_email.setdefault(candidate.email, []).append(candidate)

    contacts = [_merge_candidates(email, candidates) for email, candidates in by_email.items()]
    logger.debug(
        'contact_generator.generated',
        new_contacts=len(contacts),
        known_references=known,
    )
    return contacts


# =============================================================================
# Contact aggregation
# =============================================================================


@dataclass
class _ContactFacts:
    contact: ContactSnapshot
    tiers: set[int] = field(default_factory=lambda: {NO_TIER})
    events: set[date] = field(default_factory=set)
    hostings: set[str] = field(default_factory=set)
    products: set[str] = field(default_factory=set)


class ContactAggregator:
    """Aggregates per-contact marketplace facts across all groups."""

    def __init__(self, snapshot: SnapshotProvider, settings: EngineSettings):
        self.snapshot = snapshot
        self.settings = settings

    def aggregate(self, groups: Iterable[RelatedRecordGroup]) -> list[ContactUpdateAction]:
        """
        Build one ContactUpdateAction per known contact.

        Raises:
            TierParseError: If a record carries an unknown tier string
            DeploymentValueError: If a computed deployment is not allowed
        """
        facts: dict[str, _ContactFacts] = {}
        unknown: set[str] = set()

        for group in groups:
            for contact in self._technical_contacts(group, unknown):
                entry = facts.get(contact.contact_id)
                if entry is None:
                    entry = facts[contact.contact_id] = _ContactFacts(contact=contact)
                    if contact.license_tier is not None:
                        entry.tiers.add(contact.license_tier)
                self._fold(entry, group)

        if unknown:
            logger.debug('contact_aggregator.unknown_contacts', count=len(unknown))

        return [self._to_action(entry) for entry in facts.values()]

    def _technical_contacts(
        self,
        group: RelatedRecordGroup,
        unknown: set[str],
    ) -> list[ContactSnapshot]:
        contacts: dict[str, ContactSnapshot] = {}
        for lic in group.licenses:
            email = lic.technical_contact.email
            contact = self.snapshot.contact_by_email(email) if email else None
            if contact is None:
                unknown.add(email)
                continue
            contacts.setdefault(contact.contact_id, contact)
        return list(contacts.values())

    def _fold(self, entry: _ContactFacts, group: RelatedRecordGroup) -> None:
        for lic in group.licenses:
            entry.tiers.add(tier_from_evaluation_size(lic.evaluation_opportunity_size))
            entry.tiers.add(tier_from_license_tier(lic.tier))
            entry.events.add(lic.maintenance_start_date)
            entry.hostings.add(lic.hosting.value)
            entry.products.add(self.settings.platform_for(lic.addon_key))

        for tx in group.transactions:
            entry.tiers.add(tier_from_transaction_tier(tx.tier))
            entry.events.add(tx.sale_date)

    def _to_action(self, entry: _ContactFacts) -> ContactUpdateAction:
        deployment = resolve_deployment(entry.hostings)

        return ContactUpdateAction(
            contact_ref=entry.contact.email,
            contact_id=entry.contact.contact_id,
            tier=max(entry.tiers),
            deployment=deployment,
            related_products=tuple(sorted(entry.products)),
            last_event=max(entry.events),
        )
