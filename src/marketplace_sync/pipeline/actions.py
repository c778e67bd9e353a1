"""
Deal action generator.

Maps a group's event timeline, together with the deal already stored for
it (if any), to exactly one of create / update / no-op:

    no deal + commercial event       → Create (closedWon or closedLost)
    no deal + terminal refund        → NoOp   (nothing to refund)
    no deal + evaluations only       → NoOp   (Create at eval stage when
                                               CREATE_EVAL_DEALS is set)
    deal                             → Update with the changed subset, or
                                       NoOp when nothing changed

Associations are recomputed from every email in the group and fully
replace the stored ones.
"""

from collections.abc import Mapping
from typing import Any

import structlog

from ..config import EngineSettings
from ..models.actions import (
    MULTIPLE_HOSTING,
    CreateDealAction,
    DealAction,
    DealAssociations,
    DealEvent,
    DealEventKind,
    NoOpDealAction,
    UpdateDealAction,
)
from ..models.crm import ContactSnapshot, DealSnapshot
from ..models.records import RelatedRecordGroup, SaleType
from ..repository import SnapshotProvider
from .diff import diff_properties
from .tiers import (
    NO_TIER,
    ratchet_tier,
    tier_from_evaluation_size,
    tier_from_license_tier,
    transaction_tier,
)

logger = structlog.get_logger(__name__)


REASON_REFUND_WITHOUT_DEAL = 'Refund without existing deal'
REASON_EVAL_ONLY = 'Evaluation only'
REASON_UNCHANGED = 'Unchanged'


class ActionGenerator:
    """
    Produces one DealAction per non-excluded group.

    Responsibilities:
    - Look up the stored deal by license / transaction ids
    - Compute the full target property set of the deal
    - Gate updates through diff_properties()
    - Compute association targets and their diff
    """

    def __init__(
        self,
        snapshot: SnapshotProvider,
        settings: EngineSettings,
        contact_tiers: Mapping[str, int] | None = None,
    ):
        """
        Initialize the generator.

        Args:
            snapshot: Last-known CRM state
            settings: Engine settings (stages, deal-name template, products)
            contact_tiers: Tiers proposed for contacts in this run, by contact id.
                           Used instead of the stored tier where present.
        """
        self.snapshot = snapshot
        self.settings = settings
        self.contact_tiers = dict(contact_tiers or {})

    def generate(self, group: RelatedRecordGroup, events: list[DealEvent]) -> DealAction:
        log = logger.bind(group_key=group.key)

        deal = self.snapshot.find_deal(group.license_ids, group.transaction_ids)
        contacts = self._associated_contacts(group)
        terminal = self._terminal_event(events)
        has_commercial = any(e.is_commercial for e in events)

        if deal is None:
            if terminal is not None and terminal.kind == DealEventKind.REFUND:
                log.info('action_generator.refund_without_deal', license_ids=group.license_ids)
                return NoOpDealAction(group_key=group.key, reason=REASON_REFUND_WITHOUT_DEAL)

            if not has_commercial and not self.settings.CREATE_EVAL_DEALS:
                log.debug('action_generator.eval_only')
                return NoOpDealAction(group_key=group.key, reason=REASON_EVAL_ONLY)

            properties = self.deal_properties(group, events, contacts, stored=None)
            associations = self._associations(contacts, stored=None)
            log.debug('action_generator.create', deal_stage=properties['deal_stage'])
            return CreateDealAction(
                group_key=group.key,
                properties={k: v for k, v in properties.items() if v is not None},
                associations=associations,
            )

        properties = self.deal_properties(group, events, contacts, stored=deal)
        changed = diff_properties(properties, deal.properties)
        associations = self._associations(contacts, stored=deal)

        if not changed and not associations.has_changes:
            log.debug('action_generator.unchanged', deal_id=deal.deal_id)
            return NoOpDealAction(group_key=group.key, deal_id=deal.deal_id, reason=REASON_UNCHANGED)

        log.debug(
            'action_generator.update',
            deal_id=deal.deal_id,
            changed=sorted(changed),
            association_changes=associations.has_changes,
        )
        return UpdateDealAction(
            group_key=group.key,
            deal_id=deal.deal_id,
            properties=changed,
            associations=associations,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    def deal_stage(self, events: list[DealEvent]) -> str:
        terminal = self._terminal_event(events)
        if terminal is not None and terminal.kind == DealEventKind.REFUND:
            return self.settings.DEAL_STAGE_CLOSED_LOST
        if any(e.is_commercial for e in events):
            return self.settings.DEAL_STAGE_CLOSED_WON
        return self.settings.DEAL_STAGE_EVAL

    def deal_properties(
        self,
        group: RelatedRecordGroup,
        events: list[DealEvent],
        contacts: list[ContactSnapshot],
        stored: DealSnapshot | None,
    ) -> dict[str, Any]:
        """Full target property set of the deal for this group."""
        first = group.licenses[0]

        stored_tier = stored.properties.get('license_tier') if stored else None
        tier = ratchet_tier(
            *(self._contact_tier(c) for c in contacts if c.is_customer),
            *(tier_from_license_tier(lic.tier) for lic in group.licenses),
            *(tier_from_evaluation_size(lic.evaluation_opportunity_size) for lic in group.licenses),
            *(transaction_tier(tx) for tx in group.transactions),
            floor=int(stored_tier) if stored_tier is not None else None,
        )

        hostings = {r.hosting.value for r in group.records}
        deployment = hostings.pop() if len(hostings) == 1 else MULTIPLE_HOSTING

        amount = sum(
            -abs(tx.vendor_amount) if tx.sale_type == SaleType.REFUND else tx.vendor_amount
            for tx in group.transactions
        )

        deal_name = self.settings.render_deal_name({
            'addon_key': first.addon_key,
            'addon_name': first.addon_name or first.addon_key,
            'hosting': deployment,
            'license_type': first.license_type,
            'tier': tier,
            'company': first.company,
            'country': first.country,
            'region': first.region,
            'technical_contact_email': first.technical_contact.email,
        })

        return {
            'deal_name': deal_name,
            'deal_stage': self.deal_stage(events),
            'amount': round(amount, 2),
            'close_date': max(e.effective_date for e in events),
            'license_tier': tier,
            'deployment': deployment,
            'addon_key': first.addon_key,
            'related_products': (
                self.settings.DEAL_RELATED_PRODUCTS or self.settings.platform_for(first.addon_key)
            ),
            'country': first.country or None,
            'origin': self.settings.DEAL_ORIGIN,
            'addon_license_ids': group.license_ids,
            'transaction_ids': group.transaction_ids,
        }

    def _contact_tier(self, contact: ContactSnapshot) -> int:
        tier = self.contact_tiers.get(contact.contact_id, contact.license_tier)
        return tier if tier is not None else NO_TIER

    @staticmethod
    def _terminal_event(events: list[DealEvent]) -> DealEvent | None:
        """Last commercial or refund event of the timeline."""
        relevant = [e for e in events if e.is_commercial or e.kind == DealEventKind.REFUND]
        return relevant[-1] if relevant else None

    # =========================================================================
    # Associations
    # =========================================================================

    def _associated_contacts(self, group: RelatedRecordGroup) -> list[ContactSnapshot]:
        """Known contacts of every email in the group, customers first."""
        contacts: dict[str, ContactSnapshot] = {}
        for email in group.emails():
            contact = self.snapshot.contact_by_email(email)
            if contact is not None:
                contacts.setdefault(contact.contact_id, contact)
        return sorted(contacts.values(), key=lambda c: 0 if c.is_customer else 1)

    @staticmethod
    def _associations(
        contacts: list[ContactSnapshot],
        stored: DealSnapshot | None,
    ) -> DealAssociations:
        contact_ids = tuple(c.contact_id for c in contacts)
        company_ids = tuple(dict.fromkeys(
            company_id for c in contacts if c.is_customer for company_id in c.company_ids
        ))

        stored_contacts = stored.contact_ids if stored else ()
        stored_companies = stored.company_ids if stored else ()

        return DealAssociations(
            contact_ids=contact_ids,
            company_ids=company_ids,
            contacts_to_add=tuple(c for c in contact_ids if c not in stored_contacts),
            contacts_to_remove=tuple(c for c in stored_contacts if c not in contact_ids),
            companies_to_add=tuple(c for c in company_ids if c not in stored_companies),
            companies_to_remove=tuple(c for c in stored_companies if c not in company_ids),
        )
