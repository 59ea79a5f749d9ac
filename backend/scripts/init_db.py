#!/usr/bin/env python
"""Reconcile the database schema and seed the dev admin account.

Usage:
    python backend/scripts/init_db.py             # create tables, add missing columns, seed admin
    python backend/scripts/init_db.py --no-seed   # schema only
    python backend/scripts/init_db.py --dry-run   # print pending schema changes, write nothing
"""
from __future__ import annotations
import os, sys, argparse, textwrap, logging

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from jollybaba import create_app, init_database  # type: ignore


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Create/upgrade the JollyBaba schema and seed the dev admin",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  full init: init_db.py\n  schema only: init_db.py --no-seed\n  preview: init_db.py --dry-run\n"""),
    )
    p.add_argument('--dry-run', action='store_true', help='Only list tables/columns that would be created')
    p.add_argument('--no-seed', action='store_true', help='Skip dev admin seeding')
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s: %(message)s')
    app = create_app({'AUTO_INIT_DB': False})
    schema = app.extensions['schema']
    if args.dry_run:
        pending = schema.plan()
        if not pending:
            print('[DRY-RUN] Schema up to date')
        else:
            print('[DRY-RUN] Pending schema changes:')
            for name in pending:
                print(' -', name)
        return 0
    added, seed_result = init_database(app, seed=False if args.no_seed else None)
    print(f"[DONE] Columns added: {len(added)}{' (' + ', '.join(added) + ')' if added else ''}")
    print(f"[DONE] Dev admin: {seed_result or 'skipped'}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
