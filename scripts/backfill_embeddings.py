#!/usr/bin/env python3
"""
Embedding backfill utility.

Generates embeddings for a tenant's active knowledge items that were stored
without one, so vector search can serve them instead of keyword fallback.
"""

import argparse
import sys

from assist_core.service import build_assistant_core


def main():
    parser = argparse.ArgumentParser(description="Backfill missing knowledge item embeddings")
    parser.add_argument("--tenant", "-t", required=True, help="Tenant whose items are embedded")
    parser.add_argument("--db", help="SQLite database path (default: DB_PATH)")
    parser.add_argument(
        "--skip-degraded",
        action="store_true",
        help="Do not store hash-mode vectors when the embedding model is unavailable"
    )

    args = parser.parse_args()

    try:
        core = build_assistant_core(db_path=args.db)
    except Exception as e:
        print(f"💥 Startup failed: {e}")
        sys.exit(1)

    print(f"Starting embedding backfill for tenant '{args.tenant}'...")
    report = core.indexer.backfill(args.tenant, include_degraded=not args.skip_degraded)

    print(f"✓ Embedded {report.embedded} item(s)")
    if report.degraded:
        print(f"⚠️  {report.degraded} item(s) embedded in degraded hash mode")
    if report.failed:
        print(f"❌ {len(report.failed)} item(s) failed: {', '.join(report.failed)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
