#!/usr/bin/env python3
"""
Run one reconciliation over a JSON export and print the mutation plan.

Input file layout:
    {
      "groups": [{"matches": [{"license": {...}, "transactions": [...]}]}],
      "crm": {"contacts": [...], "deals": [...]}
    }

The plan (deal actions, contact creates and mutations, tally) is printed as JSON.
With --audit-dir the plaintext and redacted deal audit logs are written
there; with --next-snapshot the CRM state after applying the plan is saved,
so the script can be re-run against it to confirm nothing is left to do.

Usage:
    python scripts/run_reconciliation.py examples/sample_run.json
    python scripts/run_reconciliation.py examples/sample_run.json --audit-dir out/
"""

import argparse
import json
import sys
from contextlib import ExitStack
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from dotenv import load_dotenv
env_file = Path(__file__).parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)

from marketplace_sync.audit import DealAuditLog, Redactor
from marketplace_sync.config import get_settings
from marketplace_sync.logging import configure_logging
from marketplace_sync.models import RelatedRecordGroup
from marketplace_sync.pipeline import ReconciliationEngine
from marketplace_sync.repository import CrmSnapshot


def load_input(path: Path) -> tuple[list[RelatedRecordGroup], CrmSnapshot]:
    """Load groups and the CRM snapshot from a JSON export."""
    with open(path) as f:
        data = json.load(f)

    groups = [RelatedRecordGroup.model_validate(g) for g in data.get('groups', [])]
    snapshot = CrmSnapshot.from_dict(data.get('crm', {}))
    return groups, snapshot


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description='Reconcile marketplace records against a CRM snapshot'
    )
    parser.add_argument('input', type=Path, help='JSON file with groups and CRM snapshot')
    parser.add_argument(
        '--audit-dir', '-a',
        type=Path,
        default=None,
        help='Directory for the plaintext/redacted deal audit logs (defaults to AUDIT_DIR)',
    )
    parser.add_argument(
        '--next-snapshot',
        type=Path,
        default=None,
        help='Write the CRM snapshot after applying the plan to this file',
    )
    parser.add_argument(
        '--json-logs',
        action='store_true',
        help='Emit JSON logs instead of console output',
    )
    args = parser.parse_args()

    settings = get_settings()
    # stdout carries the plan
    configure_logging(json_output=args.json_logs or settings.LOG_JSON, stream=sys.stderr)

    groups, snapshot = load_input(args.input)

    audit_dir = args.audit_dir or (Path(settings.AUDIT_DIR) if settings.AUDIT_DIR else None)

    with ExitStack() as stack:
        audit_log = None
        if audit_dir:
            audit_dir.mkdir(parents=True, exist_ok=True)
            audit_log = DealAuditLog(
                plain=stack.enter_context(open(audit_dir / 'deals.plain.txt', 'w')),
                redacted=stack.enter_context(open(audit_dir / 'deals.redacted.txt', 'w')),
                redactor=Redactor(),
            )

        engine = ReconciliationEngine(snapshot, settings=settings, audit_log=audit_log)
        result = engine.run(groups)

    if args.next_snapshot:
        with open(args.next_snapshot, 'w') as f:
            json.dump(snapshot.apply(result).to_dict(), f, indent=2)

    json.dump(result.to_dict(), sys.stdout, indent=2)
    sys.stdout.write('\n')


if __name__ == '__main__':
    main()
