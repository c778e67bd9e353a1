"""
Tests for the event interpreter.

Covers event kinds per record, chronological ordering with deterministic
tie-breaks, and optional tier / hosting change markers.

Run with: pytest tests/test_events.py -v
"""

from datetime import date

import pytest

from marketplace_sync.errors import TierParseError
from marketplace_sync.models import DealEventKind, Hosting
from marketplace_sync.pipeline.events import EventInterpreter

from conftest import make_group, make_license, make_transaction


@pytest.fixture
def interpreter() -> EventInterpreter:
    return EventInterpreter()


class TestEventKinds:
    """One event per record, typed by tier or sale type."""

    def test_evaluation_license(self, interpreter):
        events = interpreter.interpret(make_group(make_license(tier='Evaluation')))

        assert [e.kind for e in events] == [DealEventKind.EVAL]
        assert events[0].license_ids == ('L-1',)
        assert events[0].transaction_ids == ()

    def test_commercial_license(self, interpreter):
        events = interpreter.interpret(make_group(make_license(tier='Unlimited Users')))

        assert [e.kind for e in events] == [DealEventKind.PURCHASE]
        assert events[0].tier == 10001

    @pytest.mark.parametrize('sale_type,kind', [
        ('New', DealEventKind.PURCHASE),
        ('Renewal', DealEventKind.RENEWAL),
        ('Upgrade', DealEventKind.UPGRADE),
        ('Refund', DealEventKind.REFUND),
    ])
    def test_transaction_sale_types(self, interpreter, sale_type, kind):
        group = make_group((
            make_license(start='2024-01-01'),
            [make_transaction(sale_type=sale_type, sale_date='2024-06-01')],
        ))

        events = interpreter.interpret(group)

        assert events[-1].kind == kind
        assert events[-1].effective_date == date(2024, 6, 1)
        assert events[-1].transaction_ids == ('TX-1',)

    def test_unknown_tier_is_fatal(self, interpreter):
        with pytest.raises(TierParseError):
            interpreter.interpret(make_group(make_license(tier='Gold Plan')))


class TestOrdering:
    """Ascending by date; license before transaction; then input order."""

    def test_sorted_by_date(self, interpreter):
        group = make_group(
            (make_license('L-2', start='2024-05-01'), [
                make_transaction('TX-2', 'L-2', sale_type='Renewal', sale_date='2025-05-01'),
            ]),
            (make_license('L-1', tier='Evaluation', start='2024-01-01'), []),
        )

        events = interpreter.interpret(group)

        assert [e.effective_date for e in events] == sorted(e.effective_date for e in events)
        assert [e.kind for e in events] == [
            DealEventKind.EVAL,
            DealEventKind.PURCHASE,
            DealEventKind.RENEWAL,
        ]

    def test_license_before_transaction_on_same_date(self, interpreter):
        group = make_group((
            make_license(start='2024-03-01'),
            [make_transaction(sale_date='2024-03-01')],
        ))

        events = interpreter.interpret(group)

        assert events[0].transaction_ids == ()
        assert events[1].transaction_ids == ('TX-1',)

    def test_input_order_breaks_ties(self, interpreter):
        group = make_group((
            make_license(start='2024-01-01'),
            [
                make_transaction('TX-B', sale_type='Upgrade', sale_date='2024-04-01'),
                make_transaction('TX-A', sale_type='Refund', sale_date='2024-04-01'),
            ],
        ))

        events = interpreter.interpret(group)

        assert [e.transaction_ids for e in events[1:]] == [('TX-B',), ('TX-A',)]

    def test_deterministic(self, interpreter):
        group = make_group((
            make_license(start='2024-01-01'),
            [make_transaction(f'TX-{i}', sale_date='2024-02-01') for i in range(5)],
        ))

        assert interpreter.interpret(group) == interpreter.interpret(group)


class TestChangeMarkers:
    """track_changes=True adds TierChange / HostingChange events."""

    def test_disabled_by_default(self, interpreter):
        group = make_group((
            make_license(tier='10 Users'),
            [make_transaction(tier='50 Users', sale_type='Upgrade', sale_date='2024-02-01')],
        ))

        kinds = [e.kind for e in interpreter.interpret(group)]

        assert DealEventKind.TIER_CHANGE not in kinds

    def test_tier_change_after_upgrade(self):
        group = make_group((
            make_license(tier='10 Users'),
            [make_transaction(tier='50 Users', sale_type='Upgrade', sale_date='2024-02-01')],
        ))

        events = EventInterpreter(track_changes=True).interpret(group)

        assert [e.kind for e in events] == [
            DealEventKind.PURCHASE,
            DealEventKind.UPGRADE,
            DealEventKind.TIER_CHANGE,
        ]
        assert events[2].tier == 50
        assert events[2].transaction_ids == ('TX-1',)

    def test_hosting_change(self):
        group = make_group((
            make_license(hosting='Server'),
            [make_transaction(hosting='Cloud', sale_type='Renewal', sale_date='2024-06-01')],
        ))

        events = EventInterpreter(track_changes=True).interpret(group)

        assert events[-1].kind == DealEventKind.HOSTING_CHANGE
        assert events[-1].hosting == Hosting.CLOUD

    def test_no_markers_when_nothing_changes(self):
        group = make_group((
            make_license(),
            [make_transaction(sale_type='Renewal', sale_date='2025-01-01')],
        ))

        events = EventInterpreter(track_changes=True).interpret(group)

        assert [e.kind for e in events] == [DealEventKind.PURCHASE, DealEventKind.RENEWAL]
