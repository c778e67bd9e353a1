"""
Tests for the audit package.

Covers the Redactor (stable, lazy, collision-checked pseudo ids), the
Tallier report, AuditLedger accumulation / merge, and the DealAuditLog
streams.

Run with: pytest tests/test_audit.py -v
"""

import io
from datetime import date

from marketplace_sync.audit import (
    AuditLedger,
    DealAuditLog,
    Redactor,
    Tallier,
    format_money,
    format_table,
)
from marketplace_sync.models import (
    CreateDealAction,
    DealEvent,
    DealEventKind,
    NoOpDealAction,
    UpdateDealAction,
)

from conftest import make_license, make_transaction


class TestRedactor:
    """Per-run pseudo-id mapping."""

    def test_same_id_maps_to_same_pseudo_id(self):
        redactor = Redactor()

        first = redactor.redact('L_', 'L-100')
        second = redactor.redact('L_', 'L-100')

        assert first == second
        assert first.startswith('L_')
        assert len(first) == len('L_') + 10

    def test_different_ids_get_different_pseudo_ids(self):
        redactor = Redactor()
        ids = {redactor.redact('TX_', f'TX-{i}') for i in range(50)}
        assert len(ids) == 50

    def test_none_passes_through(self):
        redactor = Redactor()
        assert redactor.redact('D_', None) is None
        assert len(redactor) == 0

    def test_generated_lazily(self):
        redactor = Redactor()
        assert redactor.lookup('L-1') is None

        pseudo = redactor.redact('L_', 'L-1')

        assert redactor.lookup('L-1') == pseudo
        assert len(redactor) == 1

    def test_collisions_are_regenerated(self):
        suffixes = iter(['aaaaaaaaaa', 'aaaaaaaaaa', 'bbbbbbbbbb'])
        redactor = Redactor(generate=lambda: next(suffixes))

        first = redactor.redact('L_', 'L-1')
        second = redactor.redact('L_', 'L-2')

        assert first == 'L_aaaaaaaaaa'
        assert second == 'L_bbbbbbbbbb'


class TestTallier:
    """Starting amount plus named deltas."""

    def test_report(self):
        tallier = Tallier()
        tallier.first('Transaction total', 12400.0)
        tallier.less('Amount of Transactions Ignored: Partner Domains', 1200.0)
        tallier.less('Amount of Transactions Ignored: Archived app', 200.0)

        assert tallier.total == 11000.0
        assert tallier.report() == [
            ('Transaction total', '$12,400.00'),
            ('Amount of Transactions Ignored: Partner Domains', '-$1,200.00'),
            ('Amount of Transactions Ignored: Archived app', '-$200.00'),
            ('Final total', '$11,000.00'),
        ]

    def test_first_replaces_opening(self):
        tallier = Tallier()
        tallier.first('Transaction total', 10.0)
        tallier.first('Transaction total', 20.0)

        assert tallier.total == 20.0
        assert len(tallier.entries) == 1

    def test_empty(self):
        assert Tallier().report() == [('Final total', '$0.00')]

    def test_format_money(self):
        assert format_money(1234.5) == '$1,234.50'
        assert format_money(-0.5) == '-$0.50'


class TestAuditLedger:
    """Ignored groups, amounts and partner transactions."""

    def test_record_ignored(self):
        ledger = AuditLedger()
        licenses = [make_license('L-1'), make_license('L-2')]
        transactions = [make_transaction('TX-1', amount=10.0), make_transaction('TX-2', amount=15.0)]

        amount = ledger.record_ignored('Archived app', 'com.example.retired', licenses, transactions)

        assert amount == 25.0
        assert ledger.ignored_amounts == {'Archived app': 25.0}
        [records] = ledger.ignored_groups
        assert [r.license['addon_license_id'] for r in records] == ['L-1', 'L-2']
        assert records[0].license['maintenance_start_date'] == '2024-01-01'

    def test_partner_transactions_are_unique(self):
        ledger = AuditLedger()
        tx = make_transaction('TX-1')

        ledger.add_partner_transactions([tx, tx])

        assert list(ledger.partner_transactions) == ['TX-1']

    def test_merge(self):
        a, b = AuditLedger(), AuditLedger()
        a.record_ignored('Partner Domains', 'p.com', [make_license('L-1')], [make_transaction('TX-1', amount=5.0)])
        b.record_ignored('Partner Domains', 'p.com', [make_license('L-2')], [make_transaction('TX-2', amount=7.0)])
        b.record_ignored('Archived app', 'x', [make_license('L-3')], [])
        b.add_partner_transactions([make_transaction('TX-2')])

        merged = a.merge(b)

        assert merged.ignored_amounts == {'Partner Domains': 12.0, 'Archived app': 0.0}
        assert len(merged.ignored_groups) == 3
        assert list(merged.partner_transactions) == ['TX-2']
        assert a.ignored_amounts == {'Partner Domains': 5.0}


class TestFormatTable:
    """format_table()"""

    def test_aligned_columns(self):
        lines = format_table(['Id', 'Amount'], [['TX-1', '$5.00'], ['TX-22', '$100.00']], frozenset({1}))

        assert lines == [
            'Id' + ' ' * 7 + 'Amount',
            '--' + ' ' * 7 + '------',
            'TX-1' + ' ' * 6 + '$5.00',
            'TX-22' + ' ' * 3 + '$100.00',
        ]

    def test_trailing_padding_is_stripped(self):
        lines = format_table(['Name', 'X'], [['a', '']])

        assert lines[-1] == 'a'


class TestDealAuditLog:
    """Parallel plaintext and redacted streams."""

    def _log(self):
        plain, redacted = io.StringIO(), io.StringIO()
        return DealAuditLog(plain, redacted, Redactor()), plain, redacted

    def test_records_and_events(self):
        log, plain, redacted = self._log()
        lic = make_license('L-77')
        tx = make_transaction('TX-77', 'L-77', amount=42.0)

        log.log_records([lic, tx])
        log.log_events([DealEvent(
            kind=DealEventKind.PURCHASE,
            effective_date=date(2024, 1, 1),
            license_ids=('L-77',),
            transaction_ids=('TX-77',),
        )])

        assert 'L-77' in plain.getvalue()
        assert '$42.00' in plain.getvalue()
        assert 'Purchase' in redacted.getvalue()
        assert 'L-77' not in redacted.getvalue()
        assert 'TX-77' not in redacted.getvalue()

    def test_pseudo_ids_are_stable_across_sections(self):
        log, _, redacted = self._log()

        log.log_records([make_license('L-5')])
        log.log_action(CreateDealAction(group_key='L-5', properties={'addon_license_ids': ['L-5']}))

        pseudo = log.redactor.lookup('L-5')
        assert redacted.getvalue().count(pseudo) == 2

    def test_actions(self):
        log, plain, redacted = self._log()

        log.log_action(UpdateDealAction(group_key='L-1', deal_id='deal-123', properties={'amount': 5.0}))
        log.log_action(NoOpDealAction(group_key='L-2', reason='Evaluation only'))

        assert 'Update: deal-123' in plain.getvalue()
        assert 'amount: 5.0' in plain.getvalue()
        assert 'Nothing: (no deal) (Evaluation only)' in plain.getvalue()
        assert 'deal-123' not in redacted.getvalue()
        assert 'Update: D_' in redacted.getvalue()

    def test_ignored_line(self):
        log, plain, redacted = self._log()

        log.log_ignored(['L-9'], 'Mass-Provider Domains', 'gmail.com', 99.0)

        assert 'Ignored [Mass-Provider Domains] L-9: gmail.com ($99.00)' in plain.getvalue()
        assert 'gmail.com' in redacted.getvalue()
        assert 'L-9' not in redacted.getvalue()

    def test_partner_transactions(self):
        log, plain, redacted = self._log()
        tx = make_transaction('TX-5', email='ops@partner.example', billing_email='ap@partner.example')

        log.log_partner_transactions([tx])

        assert 'TX-5' in plain.getvalue()
        assert 'ops@partner.example, ap@partner.example' in plain.getvalue()
        assert 'TX-5' not in redacted.getvalue()
