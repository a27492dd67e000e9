#!/usr/bin/env python3
"""
Command-line interface for CivicTrack maintenance jobs.

Usage:
    python -m civictrack.cli reconcile                    # Overdue sweep over active incidents
    python -m civictrack.cli scan-duplicates              # Print duplicate groups
    python -m civictrack.cli merge TARGET SOURCE [...]    # Merge sources into a target
    python -m civictrack.cli seed-types                   # Seed default incident types
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from civictrack.config import setup_logging
from civictrack.services import (
    DocumentStore,
    IncidentError,
    MergePartialFailure,
    build_services,
    seed_incident_types,
    sweeps,
)


def _run(handler, store: Optional[DocumentStore] = None):
    """Run an async handler on the given store, or on the Postgres store."""
    if store is None:
        from civictrack.tasks.db import run_with_services
        return run_with_services(handler)
    return asyncio.run(handler(build_services(store)))


def cmd_reconcile(args, store=None):
    """Reconcile all active incidents."""
    stats = _run(sweeps.reconcile_open_incidents, store)
    print(f"Scanned {stats['scanned']} incidents, updated {stats['updated']}, "
          f"newly overdue {stats['overdue']}")
    return 0


def cmd_scan_duplicates(args, store=None):
    """Print duplicate groups among active incidents."""
    async def handler(services):
        return await services.duplicates.scan_groups()

    groups = _run(handler, store)
    if not groups:
        print("No duplicate groups found")
        return 0
    for group in groups:
        print(f"{group.primary.id} [{group.primary.incident_type}] {group.primary.location}")
        for dup in group.duplicates:
            print(f"  - {dup.id} ({dup.formatted_distance})")
    print(f"\n{len(groups)} groups")
    return 0


def cmd_merge(args, store=None):
    """Merge source incidents into a target."""
    async def handler(services):
        return await services.merges.merge_incidents(args.target, args.sources)

    try:
        outcome = _run(handler, store)
    except MergePartialFailure as e:
        print(f"Partial merge into {args.target}:")
        print(f"  merged: {', '.join(e.outcome.merged_ids) or '-'}")
        for source_id, reason in e.outcome.failed.items():
            print(f"  failed: {source_id} ({reason})")
        return 2
    except IncidentError as e:
        print(f"Merge failed: {e}")
        return 1

    print(f"Merged {len(outcome.merged_ids)} incidents into {args.target}")
    return 0


def cmd_seed_types(args, store=None):
    """Seed the incident-type catalog with default severities."""
    async def handler(services):
        return await seed_incident_types(services.store)

    added = _run(handler, store)
    print(f"Added {added} incident types")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="CivicTrack maintenance jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('-v', '--verbose', action='store_true', help="Verbose output")

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    subparsers.add_parser('reconcile', help='Reconcile severity, deadline and overdue state')
    subparsers.add_parser('scan-duplicates', help='List duplicate groups')

    merge_parser = subparsers.add_parser('merge', help='Merge incidents into a target')
    merge_parser.add_argument('target', help='Incident that absorbs the others')
    merge_parser.add_argument('sources', nargs='+', help='Incidents to merge')

    subparsers.add_parser('seed-types', help='Seed default incident types')
    return parser


def main(argv: Optional[List[str]] = None, store: Optional[DocumentStore] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        'reconcile': cmd_reconcile,
        'scan-duplicates': cmd_scan_duplicates,
        'merge': cmd_merge,
        'seed-types': cmd_seed_types,
    }

    return commands[args.command](args, store)


if __name__ == '__main__':
    sys.exit(main())
