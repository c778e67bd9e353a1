"""
Per-run audit accumulator.

Collects everything an exclusion removes from the CRM projection: the
ignored licenses with their reason, the ignored vendor amount per reason,
and the partner transactions set aside for manual review. One ledger is
owned by one engine run; ledgers from independently processed batches can
be combined with merge().
"""

from dataclasses import dataclass, field

from ..models.actions import IgnoredGroupRecord
from ..models.records import LicenseRecord, TransactionRecord


@dataclass
class AuditLedger:
    """Append-only audit state for one reconciliation run."""

    ignored_groups: list[list[IgnoredGroupRecord]] = field(default_factory=list)
    ignored_amounts: dict[str, float] = field(default_factory=dict)
    partner_transactions: dict[str, TransactionRecord] = field(default_factory=dict)

    def record_ignored(
        self,
        reason: str,
        details: str,
        licenses: list[LicenseRecord],
        transactions: list[TransactionRecord],
    ) -> float:
        """
        Record an excluded group and tally its transaction amounts.

        Returns:
            The vendor amount removed from the CRM projection
        """
        amount = sum(t.vendor_amount for t in transactions)
        self.ignored_amounts[reason] = self.ignored_amounts.get(reason, 0.0) + amount
        self.ignored_groups.append([
            IgnoredGroupRecord(reason=reason, details=details, license=lic.snapshot())
            for lic in licenses
        ])
        return amount

    def add_partner_transactions(self, transactions: list[TransactionRecord]) -> None:
        for tx in transactions:
            self.partner_transactions.setdefault(tx.transaction_id, tx)

    @property
    def ignored_total(self) -> float:
        return sum(self.ignored_amounts.values())

    def merge(self, other: 'AuditLedger') -> 'AuditLedger':
        """Combine two ledgers into a new one."""
        merged = AuditLedger(
            ignored_groups=[*self.ignored_groups, *other.ignored_groups],
            ignored_amounts=dict(self.ignored_amounts),
            partner_transactions=dict(self.partner_transactions),
        )
        for reason, amount in other.ignored_amounts.items():
            merged.ignored_amounts[reason] = merged.ignored_amounts.get(reason, 0.0) + amount
        for tx_id, tx in other.partner_transactions.items():
            merged.partner_transactions.setdefault(tx_id, tx)
        return merged
