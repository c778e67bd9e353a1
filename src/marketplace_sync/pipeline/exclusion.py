"""
Exclusion classifier.

Decides whether a related-record group is kept out of the CRM entirely.
Rules, first match wins:
1. Every record belongs to an archived app → "Archived app"
2. Every technical-contact domain is a partner or mass-provider domain
   → "Partner Domains" / "Mass-Provider Domains" /
     "Partner & Mass-Provider Domains"
   A technical email without a domain is never covered, so its group is kept.
   "Unknown domain issue" guards the case where coverage holds but neither
   set matched, which a non-empty group cannot reach.

Excluded groups are recorded on the run's AuditLedger together with the
vendor amount they remove from the CRM projection.
"""

from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from ..audit.ledger import AuditLedger
from ..models.records import RelatedRecordGroup
from ..utils import email_domain

logger = structlog.get_logger(__name__)


REASON_ARCHIVED_APP = 'Archived app'
REASON_PARTNER_AND_PROVIDER = 'Partner & Mass-Provider Domains'
REASON_PARTNER = 'Partner Domains'
REASON_PROVIDER = 'Mass-Provider Domains'
REASON_UNKNOWN_DOMAIN = 'Unknown domain issue'

# Free-mail and mass-hosting domains that never identify a customer company
WELL_KNOWN_PROVIDER_DOMAINS = frozenset({
    '163.com',
    'aol.com',
    'gmail.com',
    'gmx.de',
    'gmx.net',
    'googlemail.com',
    'hotmail.com',
    'icloud.com',
    'live.com',
    'mail.ru',
    'me.com',
    'msn.com',
    'outlook.com',
    'protonmail.com',
    'qq.com',
    'web.de',
    'yahoo.com',
    'yandex.ru',
})


def derive_provider_domains(raw: Iterable[str]) -> frozenset[str]:
    """Normalize a mass-provider domain list and add the well-known ones."""
    extra = {d.strip().lower().lstrip('@') for d in raw}
    extra.discard('')
    return WELL_KNOWN_PROVIDER_DOMAINS | extra


@dataclass
class ExclusionResult:
    """Outcome of classifying one group."""

    excluded: bool
    reason: str | None = None
    details: str | None = None
    ignored_amount: float = 0.0


class ExclusionClassifier:
    """
    Classifies related-record groups as kept or excluded.

    Responsibilities:
    - Apply the archived-app and domain rules in priority order
    - Tally excluded vendor amounts per reason on the ledger
    - Collect partner transactions for manual review
    """

    def __init__(
        self,
        archived_apps: Iterable[str],
        partner_domains: Iterable[str],
        provider_domains: Iterable[str],
    ):
        self.archived_apps = frozenset(archived_apps)
        self.partner_domains = frozenset(d.lower() for d in partner_domains)
        self.provider_domains = frozenset(d.lower() for d in provider_domains)

    def classify(self, group: RelatedRecordGroup, ledger: AuditLedger) -> ExclusionResult:
        """
        Classify a group, recording it on the ledger when excluded.

        Args:
            group: Group to classify
            ledger: Audit accumulator of the current run

        Returns:
            ExclusionResult; excluded groups carry reason and details
        """
        records = group.records

        if all(r.addon_key in self.archived_apps for r in records):
            return self._exclude(group, ledger, REASON_ARCHIVED_APP, records[0].addon_key)

        # a domainless email maps to '', which no domain set covers
        domains = {email_domain(r.technical_contact.email) for r in records}

        if not domains <= (self.partner_domains | self.provider_domains):
            return ExclusionResult(excluded=False)

        has_partner = bool(domains & self.partner_domains)
        has_provider = bool(domains & self.provider_domains)

        if has_partner and has_provider:
            reason = REASON_PARTNER_AND_PROVIDER
        elif has_partner:
            reason = REASON_PARTNER
            ledger.add_partner_transactions(group.transactions)
        elif has_provider:
            reason = REASON_PROVIDER
        else:
            reason = REASON_UNKNOWN_DOMAIN
            logger.error(
                'exclusion.unknown_domain_issue',
                group_key=group.key,
                license_ids=group.license_ids,
            )

        return self._exclude(group, ledger, reason, ','.join(sorted(domains)))

    def _exclude(
        self,
        group: RelatedRecordGroup,
        ledger: AuditLedger,
        reason: str,
        details: str,
    ) -> ExclusionResult:
        amount = ledger.record_ignored(reason, details, group.licenses, group.transactions)
        logger.debug(
            'exclusion.group_excluded',
            group_key=group.key,
            reason=reason,
            details=details,
            ignored_amount=amount,
        )
        return ExclusionResult(
            excluded=True,
            reason=reason,
            details=details,
            ignored_amount=amount,
        )
