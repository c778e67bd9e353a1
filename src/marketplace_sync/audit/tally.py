"""
Financial tallier for end-of-run reporting.

Records a starting amount and named deltas, e.g.

    Transaction total                                    $12,400.00
    Amount of Transactions Ignored: Partner Domains      -$1,200.00
    Final total                                          $11,200.00
"""

from dataclasses import dataclass, field


def format_money(amount: float) -> str:
    sign = '-' if amount < 0 else ''
    return f'{sign}${abs(amount):,.2f}'


@dataclass
class TallyEntry:
    name: str
    amount: float


@dataclass
class Tallier:
    """A starting amount followed by named deltas."""

    opening: TallyEntry | None = None
    deltas: list[TallyEntry] = field(default_factory=list)

    def first(self, name: str, amount: float) -> None:
        """Set the starting amount, replacing any previous one."""
        self.opening = TallyEntry(name, amount)

    def less(self, name: str, amount: float) -> None:
        """Subtract a named amount."""
        self.deltas.append(TallyEntry(name, -amount))

    @property
    def entries(self) -> list[TallyEntry]:
        return ([self.opening] if self.opening else []) + self.deltas

    @property
    def total(self) -> float:
        return sum(e.amount for e in self.entries)

    def report(self) -> list[tuple[str, str]]:
        rows = [(e.name, format_money(e.amount)) for e in self.entries]
        rows.append(('Final total', format_money(self.total)))
        return rows
