"""
Audit trail for reconciliation runs: ignored-group ledger, financial
tallier, pseudo-id redaction, and the plaintext/redacted deal log.
"""

from .deal_log import DealAuditLog, format_table
from .ledger import AuditLedger
from .redaction import Redactor
from .tally import Tallier, format_money

__all__ = [
    'AuditLedger',
    'DealAuditLog',
    'Redactor',
    'Tallier',
    'format_money',
    'format_table',
]
