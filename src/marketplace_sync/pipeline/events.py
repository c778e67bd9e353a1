"""
Event interpreter.

Turns a related-record group into its chronological business timeline:
- each license contributes one event at its maintenance start date
  (Eval when it has no commercial tier, Purchase otherwise)
- each transaction contributes one event at its sale date, typed by sale type

Ordering is deterministic: by date, then license events before transaction
events, then input order. With change tracking enabled, TierChange and
HostingChange markers follow any commercial transaction whose tier or
hosting differs from the previous commercial event.
"""

from dataclasses import dataclass

import structlog

from ..models.actions import DealEvent, DealEventKind
from ..models.records import RelatedRecordGroup, SaleType
from .tiers import NO_TIER, license_tier, transaction_tier

logger = structlog.get_logger(__name__)


SALE_TYPE_EVENTS = {
    SaleType.NEW: DealEventKind.PURCHASE,
    SaleType.RENEWAL: DealEventKind.RENEWAL,
    SaleType.UPGRADE: DealEventKind.UPGRADE,
    SaleType.REFUND: DealEventKind.REFUND,
}

_LICENSE_SOURCE = 0
_TRANSACTION_SOURCE = 1


@dataclass
class _PendingEvent:
    event: DealEvent
    source: int
    position: int

    @property
    def sort_key(self) -> tuple:
        return (self.event.effective_date, self.source, self.position)


class EventInterpreter:
    """Derives the ordered DealEvent sequence of a group."""

    def __init__(self, track_changes: bool = False):
        self.track_changes = track_changes

    def interpret(self, group: RelatedRecordGroup) -> list[DealEvent]:
        """
        Interpret a group as events.

        Raises:
            TierParseError: If any record carries an unknown tier string
        """
        pending: list[_PendingEvent] = []

        for position, lic in enumerate(group.licenses):
            tier = license_tier(lic)
            kind = DealEventKind.EVAL if tier == NO_TIER else DealEventKind.PURCHASE
            pending.append(_PendingEvent(
                event=DealEvent(
                    kind=kind,
                    effective_date=lic.maintenance_start_date,
                    license_ids=(lic.addon_license_id,),
                    tier=tier,
                    hosting=lic.hosting,
                ),
                source=_LICENSE_SOURCE,
                position=position,
            ))

        for position, tx in enumerate(group.transactions):
            pending.append(_PendingEvent(
                event=DealEvent(
                    kind=SALE_TYPE_EVENTS[tx.sale_type],
                    effective_date=tx.sale_date,
                    license_ids=(tx.addon_license_id,),
                    transaction_ids=(tx.transaction_id,),
                    tier=transaction_tier(tx),
                    hosting=tx.hosting,
                ),
                source=_TRANSACTION_SOURCE,
                position=position,
            ))

        pending.sort(key=lambda p: p.sort_key)

        if not self.track_changes:
            events = [p.event for p in pending]
        else:
            events = self._with_change_markers(pending)

        logger.debug(
            'event_interpreter.interpreted',
            group_key=group.key,
            events=[e.kind.value for e in events],
        )
        return events

    @staticmethod
    def _with_change_markers(pending: list[_PendingEvent]) -> list[DealEvent]:
        events: list[DealEvent] = []
        previous: DealEvent | None = None

        for p in pending:
            event = p.event
            events.append(event)
            if not event.is_commercial:
                continue

            if previous is not None and p.source == _TRANSACTION_SOURCE:
                marker_fields = {
                    'effective_date': event.effective_date,
                    'license_ids': event.license_ids,
                    'transaction_ids': event.transaction_ids,
                    'tier': event.tier,
                    'hosting': event.hosting,
                }
                if event.tier != previous.tier:
                    events.append(DealEvent(kind=DealEventKind.TIER_CHANGE, **marker_fields))
                if event.hosting != previous.hosting:
                    events.append(DealEvent(kind=DealEventKind.HOSTING_CHANGE, **marker_fields))

            previous = event

        return events
