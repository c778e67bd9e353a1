"""
Per-run pseudo-identifier redaction.

The redacted audit stream must be shareable without leaking marketplace or
CRM identifiers, yet still let a reader follow one record across the log.
Redactor keeps a bijective mapping real id → pseudo id for one run:
- the same real id always maps to the same pseudo id
- pseudo ids are generated on first use
- a freshly generated pseudo id is checked against every id already issued
"""

from collections.abc import Callable

from ..utils import uuid7


def _random_suffix() -> str:
    # Low-order hex of a UUIDv7 is random; the high-order part is a timestamp
    return uuid7().hex[-10:]


class Redactor:
    """Lazily built real id → pseudo id mapping."""

    def __init__(self, generate: Callable[[], str] = _random_suffix):
        self._generate = generate
        self._redactions: dict[str, str] = {}
        self._issued: set[str] = set()

    def redact(self, prefix: str, real_id: str | None) -> str | None:
        """Return the pseudo id for real_id, issuing one if needed."""
        if real_id is None:
            return None

        pseudo = self._redactions.get(real_id)
        if pseudo is None:
            pseudo = prefix + self._generate()
            while pseudo in self._issued:
                pseudo = prefix + self._generate()
            self._issued.add(pseudo)
            self._redactions[real_id] = pseudo
        return pseudo

    def lookup(self, real_id: str) -> str | None:
        """Pseudo id already issued for real_id, if any."""
        return self._redactions.get(real_id)

    def __len__(self) -> int:
        return len(self._redactions)


def same_id(prefix: str, real_id: str | None) -> str | None:
    """Identity redaction used for the plaintext stream."""
    return real_id
