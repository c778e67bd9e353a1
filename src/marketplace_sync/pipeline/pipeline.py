"""
Reconciliation engine.

Wires the pipeline stages into a single run() call that takes the matcher's
related-record groups and returns a ReconciliationResult describing every
mutation the upload layer should perform:

    groups ─┬─ generate_contacts() ──────────────────────────────────→ contact creates
            ├─ ContactAggregator ─ contact_mutations() ─────────────→ contact mutations
            └─ ExclusionClassifier ─ EventInterpreter ─ ActionGenerator → deal actions

Contacts unknown to the snapshot are generated first and staged on top of
it, so aggregation and deal associations resolve them like stored ones.
Contacts are aggregated before deals so deal tiers can take the tiers proposed for
their contacts in the same run; otherwise a second run would still find
work to do.

A run either completes or raises; nothing in the result is partial.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from ..audit.deal_log import DealAuditLog
from ..audit.ledger import AuditLedger
from ..audit.tally import Tallier, format_money
from ..config import EngineSettings, get_settings
from ..errors import ValidationError
from ..logging import PipelineTimer, logging_context
from ..models.actions import (
    ContactMutation,
    ContactUpdateAction,
    CreateDealAction,
    DealAction,
    NoOpDealAction,
    UpdateDealAction,
)
from ..models.records import RelatedRecordGroup
from ..models.crm import ContactSnapshot
from ..repository import SnapshotProvider, StagedSnapshot
from ..utils import uuid7
from .actions import ActionGenerator
from .contacts import ContactAggregator, generate_contacts
from .diff import contact_mutations
from .events import EventInterpreter
from .exclusion import ExclusionClassifier, derive_provider_domains

logger = structlog.get_logger(__name__)

TRANSACTION_TOTAL = 'Transaction total'
IGNORED_PREFIX = 'Amount of Transactions Ignored: '


# =============================================================================
# Result Model
# =============================================================================


@dataclass
class ReconciliationResult:
    """
    Aggregate result of one reconciliation run.

    Holds the mutation plan (deal actions, contact creates and contact
    mutations) plus the
    audit state accumulated while producing it.
    """

    run_id: str
    group_count: int = 0
    excluded_count: int = 0

    # Deal actions, by kind
    creates: list[CreateDealAction] = field(default_factory=list)
    updates: list[UpdateDealAction] = field(default_factory=list)
    noops: list[NoOpDealAction] = field(default_factory=list)

    # Contacts
    contact_creates: list[ContactSnapshot] = field(default_factory=list)
    contact_updates: list[ContactUpdateAction] = field(default_factory=list)
    contact_mutations: list[ContactMutation] = field(default_factory=list)

    # Audit
    ledger: AuditLedger = field(default_factory=AuditLedger)
    tallier: Tallier = field(default_factory=Tallier)
    stage_timings: dict[str, Any] = field(default_factory=dict)

    @property
    def deal_actions(self) -> list[DealAction]:
        return [*self.creates, *self.updates, *self.noops]

    @property
    def write_count(self) -> int:
        """Number of CRM writes the plan requires (0 when in sync)."""
        return (
            len(self.creates) + len(self.updates)
            + len(self.contact_creates) + len(self.contact_mutations)
        )

    def add_action(self, action: DealAction) -> None:
        if isinstance(action, CreateDealAction):
            self.creates.append(action)
        elif isinstance(action, UpdateDealAction):
            self.updates.append(action)
        else:
            self.noops.append(action)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready mutation plan."""
        return {
            'run_id': self.run_id,
            'groups': self.group_count,
            'excluded': self.excluded_count,
            'deals': {
                'create': [a.model_dump(mode='json') for a in self.creates],
                'update': [a.model_dump(mode='json') for a in self.updates],
                'noop': [a.model_dump(mode='json') for a in self.noops],
            },
            'contact_creates': [c.model_dump(mode='json') for c in self.contact_creates],
            'contacts': [m.model_dump(mode='json') for m in self.contact_mutations],
            'ignored_amounts': dict(self.ledger.ignored_amounts),
            'partner_transactions': sorted(self.ledger.partner_transactions),
            'tally': [list(row) for row in self.tallier.report()],
            'timings': self.stage_timings,
        }


# =============================================================================
# ReconciliationEngine
# =============================================================================


class ReconciliationEngine:
    """
    Orchestrates one reconciliation run over pre-grouped records.

    Responsibilities:
    - Validate the groups handed over by the matcher
    - Generate contacts the snapshot does not know yet
    - Aggregate contact updates and gate them through the diff
    - Classify, interpret and generate one deal action per group
    - Tally transaction totals and ignored amounts
    - Feed the optional audit log
    """

    def __init__(
        self,
        snapshot: SnapshotProvider,
        settings: EngineSettings | None = None,
        audit_log: DealAuditLog | None = None,
    ):
        """
        Initialize the engine.

        Args:
            snapshot: Last-known CRM state
            settings: Engine settings (defaults to get_settings())
            audit_log: Optional plaintext/redacted audit sink
        """
        self.snapshot = snapshot
        self.settings = settings or get_settings()
        self.audit_log = audit_log

        self.classifier = ExclusionClassifier(
            archived_apps=self.settings.archived_app_set,
            partner_domains=self.settings.partner_domain_set,
            provider_domains=derive_provider_domains(self.settings.extra_provider_domains),
        )
        self.interpreter = EventInterpreter(track_changes=self.settings.TRACK_CHANGE_EVENTS)

    def run(self, groups: Sequence[RelatedRecordGroup]) -> ReconciliationResult:
        """
        Run the engine over every group.

        Args:
            groups: Related-record groups from the matcher

        Returns:
            ReconciliationResult with the mutation plan and audit state

        Raises:
            ValidationError: If a group holds no license
            DataQualityError: On unknown tiers or invalid deployments
        """
        groups = list(groups)
        run_id = str(uuid7())

        with logging_context(run_id=run_id):
            self._validate(groups)

            timer = PipelineTimer()
            result = ReconciliationResult(run_id=run_id, group_count=len(groups))
            self._log_summary(groups, result)

            with timer.stage('contacts'):
                result.contact_creates = generate_contacts(
                    groups, self.snapshot, self.settings.partner_domain_set,
                )
                snapshot = StagedSnapshot(self.snapshot, result.contact_creates)
                result.contact_updates = ContactAggregator(snapshot, self.settings).aggregate(groups)
                result.contact_mutations = contact_mutations(result.contact_updates, snapshot)

            generator = ActionGenerator(
                snapshot,
                self.settings,
                contact_tiers={
                    u.contact_id: u.tier for u in result.contact_updates if u.contact_id
                },
            )

            with timer.stage('deals'):
                for group in groups:
                    with logging_context(group_id=group.key):
                        self._process_group(group, generator, result)

            self._report_ignored(result)

            result.stage_timings = timer.summary()
            logger.info(
                'engine.run_complete',
                groups=result.group_count,
                excluded=result.excluded_count,
                creates=len(result.creates),
                updates=len(result.updates),
                noops=len(result.noops),
                contact_creates=len(result.contact_creates),
                contact_mutations=len(result.contact_mutations),
                total_ms=result.stage_timings['total_ms'],
            )
            return result

    # =========================================================================
    # Stages
    # =========================================================================

    @staticmethod
    def _validate(groups: list[RelatedRecordGroup]) -> None:
        for index, group in enumerate(groups):
            if not group.matches:
                raise ValidationError(
                    'Related record group holds no license',
                    context={'index': index},
                )

    def _log_summary(self, groups: list[RelatedRecordGroup], result: ReconciliationResult) -> None:
        licenses = sum(len(g.licenses) for g in groups)
        transactions = [t for g in groups for t in g.transactions]
        total = sum(t.vendor_amount for t in transactions)

        result.tallier.first(TRANSACTION_TOTAL, total)
        logger.info(
            'engine.downloaded',
            licenses=licenses,
            transactions=len(transactions),
            contacts=len(self.snapshot.contacts),
            deals=len(self.snapshot.deals),
            transaction_total=format_money(total),
        )

    def _process_group(
        self,
        group: RelatedRecordGroup,
        generator: ActionGenerator,
        result: ReconciliationResult,
    ) -> None:
        exclusion = self.classifier.classify(group, result.ledger)
        if exclusion.excluded:
            result.excluded_count += 1
            if self.audit_log:
                self.audit_log.log_ignored(
                    group.license_ids,
                    exclusion.reason or '',
                    exclusion.details or '',
                    exclusion.ignored_amount,
                )
            return

        events = self.interpreter.interpret(group)
        action = generator.generate(group, events)
        result.add_action(action)

        if self.audit_log:
            self.audit_log.log_records(group.records)
            self.audit_log.log_events(events)
            self.audit_log.log_action(action)

    def _report_ignored(self, result: ReconciliationResult) -> None:
        ledger = result.ledger
        for reason, amount in ledger.ignored_amounts.items():
            result.tallier.less(IGNORED_PREFIX + reason, amount)

        if ledger.ignored_amounts:
            logger.info(
                'engine.ignored_amounts',
                amounts={reason: format_money(amount) for reason, amount in ledger.ignored_amounts.items()},
            )

        if ledger.partner_transactions:
            logger.warning(
                'engine.partner_transactions',
                count=len(ledger.partner_transactions),
                amount=format_money(sum(t.vendor_amount for t in ledger.partner_transactions.values())),
            )
            if self.audit_log:
                self.audit_log.log_partner_transactions(ledger.partner_transactions.values())
