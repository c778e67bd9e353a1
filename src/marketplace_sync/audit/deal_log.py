"""
Deal-generation audit log.

Writes the same audit trail to two text streams:
- plaintext: real license / transaction / deal ids
- redacted: every id replaced through a per-run Redactor
  (L_ licenses, TX_ transactions, D_ deals)

For each processed group the log shows its records, the interpreted events,
and the resulting deal action; excluded groups get one line with the reason
and the amount removed.
"""

from collections.abc import Callable, Iterable, Sequence
from typing import Any, TextIO

from ..models.actions import (
    CreateDealAction,
    DealAction,
    DealEvent,
    NoOpDealAction,
    UpdateDealAction,
)
from ..models.records import LicenseRecord, TransactionRecord
from .redaction import Redactor, same_id
from .tally import format_money

RedactFn = Callable[[str, str | None], str | None]


def format_table(
    headers: Sequence[str],
    rows: Iterable[Sequence[str]],
    right_align: frozenset[int] = frozenset(),
) -> list[str]:
    """Render rows as aligned columns with a dashed header underline."""
    all_rows = [list(headers), ['-' * len(h) for h in headers], *(list(r) for r in rows)]
    widths = [max(len(row[i]) for row in all_rows) for i in range(len(headers))]

    lines = []
    for row in all_rows:
        cells = [
            cell.rjust(widths[i]) if i in right_align else cell.ljust(widths[i])
            for i, cell in enumerate(row)
        ]
        lines.append('   '.join(cells).rstrip())
    return lines


class DealAuditLog:
    """Parallel plaintext and redacted audit streams for one run."""

    def __init__(
        self,
        plain: TextIO,
        redacted: TextIO,
        redactor: Redactor | None = None,
    ):
        self.plain = plain
        self.redacted = redacted
        self.redactor = redactor or Redactor()

    def _write(self, render: Callable[[RedactFn], list[str]]) -> None:
        for stream, redact in (
            (self.plain, same_id),
            (self.redacted, self.redactor.redact),
        ):
            for line in render(redact):
                stream.write(line + '\n')

    # =========================================================================
    # Sections
    # =========================================================================

    def log_records(self, records: Sequence[LicenseRecord | TransactionRecord]) -> None:
        def render(redact: RedactFn) -> list[str]:
            rows = []
            for r in records:
                is_tx = isinstance(r, TransactionRecord)
                rows.append([
                    r.hosting.value,
                    redact('L_', r.addon_license_id) or '',
                    str(r.sale_date if is_tx else r.maintenance_start_date),
                    r.license_type,
                    r.sale_type.value if is_tx else '',
                    (redact('TX_', r.transaction_id) or '') if is_tx else '',
                    format_money(r.vendor_amount) if is_tx else '',
                ])
            headers = ['Hosting', 'AddonLicenseId', 'Date', 'LicenseType', 'SaleType', 'Transaction', 'Amount']
            return ['', 'Records', *('  ' + line for line in format_table(headers, rows, frozenset({6})))]

        self._write(render)

    def log_events(self, events: Sequence[DealEvent]) -> None:
        def render(redact: RedactFn) -> list[str]:
            rows = [
                [
                    event.kind.value,
                    str(event.effective_date),
                    ', '.join(redact('L_', i) or '' for i in event.license_ids),
                    ', '.join(redact('TX_', i) or '' for i in event.transaction_ids),
                ]
                for event in events
            ]
            headers = ['Type', 'Date', 'Licenses', 'Transactions']
            return ['Events', *('  ' + line for line in format_table(headers, rows))]

        self._write(render)

    def log_action(self, action: DealAction) -> None:
        def render(redact: RedactFn) -> list[str]:
            lines = ['Actions']
            if isinstance(action, CreateDealAction):
                lines.append('  Create:')
                lines.extend(self._property_lines(action.properties, redact))
            elif isinstance(action, UpdateDealAction):
                lines.append(f"  Update: {redact('D_', action.deal_id)}")
                lines.extend(self._property_lines(action.properties, redact))
            elif isinstance(action, NoOpDealAction):
                target = redact('D_', action.deal_id) if action.deal_id else '(no deal)'
                suffix = f' ({action.reason})' if action.reason else ''
                lines.append(f'  Nothing: {target}{suffix}')
            return lines

        self._write(render)

    def log_ignored(self, license_ids: Sequence[str], reason: str, details: str, amount: float) -> None:
        def render(redact: RedactFn) -> list[str]:
            ids = ', '.join(redact('L_', i) or '' for i in license_ids)
            # details name domains or product keys, never record ids
            return ['', f'Ignored [{reason}] {ids}: {details} ({format_money(amount)})']

        self._write(render)

    def log_partner_transactions(self, transactions: Iterable[TransactionRecord]) -> None:
        """Review table of transactions excluded for partner domains."""
        transactions = list(transactions)

        def render(redact: RedactFn) -> list[str]:
            rows = [
                [
                    redact('TX_', tx.transaction_id) or '',
                    str(tx.sale_date),
                    format_money(tx.vendor_amount),
                    ', '.join(dict.fromkeys(tx.emails())),
                ]
                for tx in transactions
            ]
            headers = ['Transaction', 'SaleDate', 'Amount', 'Emails']
            return ['', 'Partner amounts', *('  ' + line for line in format_table(headers, rows, frozenset({2})))]

        self._write(render)

    @staticmethod
    def _property_lines(properties: dict[str, Any], redact: RedactFn) -> list[str]:
        lines = []
        for key, value in properties.items():
            if key == 'addon_license_ids':
                value = [redact('L_', v) for v in value]
            elif key == 'transaction_ids':
                value = [redact('TX_', v) for v in value]
            lines.append(f'    {key}: {value}')
        return lines
