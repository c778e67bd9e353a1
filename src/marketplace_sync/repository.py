"""
CRM snapshot access.

The engine reads the last-known CRM state through the SnapshotProvider
protocol: contacts by email and deals by the marketplace identifiers
attached to them. CrmSnapshot is the in-memory implementation, loaded from
plain data (e.g. a JSON export).

Key design decisions:
- Snapshots are immutable; apply() returns the next snapshot instead of
  mutating, which models "stored state after the upload layer ran"
- Contacts are indexed by every email they own (primary and secondary),
  case-insensitively
- Created deals receive placeholder ids (fake-deal-N) until a real CRM
  assigns one; generated contacts keep their new-contact:<email> ids
- StagedSnapshot overlays a run's generated contacts on any provider so
  later stages resolve them like stored ones
"""

from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from .models.crm import ContactSnapshot, DealSnapshot

if TYPE_CHECKING:
    from .pipeline.pipeline import ReconciliationResult

logger = structlog.get_logger(__name__)


class SnapshotProvider(Protocol):
    """Read access to the last-known CRM state."""

    @property
    def contacts(self) -> list[ContactSnapshot]: ...

    @property
    def deals(self) -> list[DealSnapshot]: ...

    def contact_by_email(self, email: str) -> ContactSnapshot | None: ...

    def find_deal(
        self,
        license_ids: Sequence[str],
        transaction_ids: Sequence[str],
    ) -> DealSnapshot | None: ...


class StagedSnapshot:
    """
    A stored snapshot with the run's generated contacts layered on top.

    Stored contacts win on email conflicts; deal lookups go to the base.
    """

    def __init__(self, base: SnapshotProvider, new_contacts: Iterable[ContactSnapshot] = ()):
        self._base = base
        self._new_contacts = list(new_contacts)
        self._new_by_email = {c.email.strip().lower(): c for c in self._new_contacts}

    @property
    def contacts(self) -> list[ContactSnapshot]:
        return [*self._base.contacts, *self._new_contacts]

    @property
    def deals(self) -> list[DealSnapshot]:
        return self._base.deals

    def contact_by_email(self, email: str) -> ContactSnapshot | None:
        stored = self._base.contact_by_email(email)
        if stored is not None:
            return stored
        return self._new_by_email.get(email.strip().lower())

    def find_deal(
        self,
        license_ids: Sequence[str],
        transaction_ids: Sequence[str],
    ) -> DealSnapshot | None:
        return self._base.find_deal(license_ids, transaction_ids)


class CrmSnapshot:
    """In-memory CRM state: contacts and deals with their associations."""

    def __init__(
        self,
        contacts: Iterable[ContactSnapshot] = (),
        deals: Iterable[DealSnapshot] = (),
    ):
        self._contacts: dict[str, ContactSnapshot] = {}
        self._contacts_by_email: dict[str, ContactSnapshot] = {}
        self._deals: dict[str, DealSnapshot] = {}
        self._deals_by_license: dict[str, DealSnapshot] = {}
        self._deals_by_transaction: dict[str, DealSnapshot] = {}

        for contact in contacts:
            self._add_contact(contact)
        for deal in deals:
            self._add_deal(deal)

    def _add_contact(self, contact: ContactSnapshot) -> None:
        self._contacts[contact.contact_id] = contact
        for email in (contact.email, *contact.other_emails):
            self._contacts_by_email[email.strip().lower()] = contact

    def _add_deal(self, deal: DealSnapshot) -> None:
        self._deals[deal.deal_id] = deal
        for license_id in deal.addon_license_ids:
            self._deals_by_license[license_id] = deal
        for transaction_id in deal.transaction_ids:
            self._deals_by_transaction[transaction_id] = deal

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'CrmSnapshot':
        """Build a snapshot from {'contacts': [...], 'deals': [...]}."""
        return cls(
            contacts=[ContactSnapshot.model_validate(c) for c in data.get('contacts', [])],
            deals=[DealSnapshot.model_validate(d) for d in data.get('deals', [])],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            'contacts': [c.model_dump(mode='json') for c in self.contacts],
            'deals': [d.model_dump(mode='json') for d in self.deals],
        }

    # =========================================================================
    # Lookups
    # =========================================================================

    @property
    def contacts(self) -> list[ContactSnapshot]:
        return list(self._contacts.values())

    @property
    def deals(self) -> list[DealSnapshot]:
        return list(self._deals.values())

    def contact_by_email(self, email: str) -> ContactSnapshot | None:
        return self._contacts_by_email.get(email.strip().lower())

    def contact_by_id(self, contact_id: str) -> ContactSnapshot | None:
        return self._contacts.get(contact_id)

    def deal_by_id(self, deal_id: str) -> DealSnapshot | None:
        return self._deals.get(deal_id)

    def find_deal(
        self,
        license_ids: Sequence[str],
        transaction_ids: Sequence[str],
    ) -> DealSnapshot | None:
        """First stored deal carrying any of the given license or transaction ids."""
        for license_id in license_ids:
            deal = self._deals_by_license.get(license_id)
            if deal:
                return deal
        for transaction_id in transaction_ids:
            deal = self._deals_by_transaction.get(transaction_id)
            if deal:
                return deal
        return None

    # =========================================================================
    # Applying a run
    # =========================================================================

    def apply(self, result: 'ReconciliationResult') -> 'CrmSnapshot':
        """
        Stored state after the upload layer has written a run's mutations.

        Args:
            result: Result of ReconciliationEngine.run()

        Returns:
            A new CrmSnapshot; this one is left untouched
        """
        deals = dict(self._deals)

        for action in result.creates:
            deal_id = self._next_fake_id(deals)
            deals[deal_id] = DealSnapshot(
                deal_id=deal_id,
                properties=dict(action.properties),
                contact_ids=action.associations.contact_ids,
                company_ids=action.associations.company_ids,
            )

        for action in result.updates:
            stored = deals[action.deal_id]
            update: dict[str, Any] = {'properties': {**stored.properties, **action.properties}}
            if action.associations.has_changes:
                update['contact_ids'] = action.associations.contact_ids
                update['company_ids'] = action.associations.company_ids
            deals[action.deal_id] = stored.model_copy(update=update)

        contacts = dict(self._contacts)
        for contact in result.contact_creates:
            contacts.setdefault(contact.contact_id, contact)
        staged = CrmSnapshot(contacts=contacts.values())

        for mutation in result.contact_mutations:
            stored_contact = staged.contact_by_email(mutation.contact_ref)
            if stored_contact is None:
                logger.warning(
                    'repository.unknown_contact_mutation',
                    contact_ref=mutation.contact_ref,
                )
                continue
            changes = dict(mutation.properties)
            if 'related_products' in changes:
                changes['related_products'] = tuple(changes['related_products'])
            contact_id = stored_contact.contact_id
            contacts[contact_id] = contacts[contact_id].model_copy(update=changes)

        logger.debug(
            'repository.applied',
            created=len(result.creates),
            updated=len(result.updates),
            contacts_created=len(result.contact_creates),
            contacts_updated=len(result.contact_mutations),
        )
        return CrmSnapshot(contacts=contacts.values(), deals=deals.values())

    @staticmethod
    def _next_fake_id(deals: dict[str, DealSnapshot]) -> str:
        n = len(deals) + 1
        while f'fake-deal-{n}' in deals:
            n += 1
        return f'fake-deal-{n}'
