#!/usr/bin/env python3
"""
Nightly pattern analysis runner.

Runs the weakness analysis once (for one tenant or every tenant with recent
outcomes) or keeps it scheduled on the heartbeat loop.
"""

import argparse
import sys
import time

from assist_core.core import config
from assist_core.core.heartbeat import HeartbeatScheduler
from assist_core.service import build_assistant_core


def main():
    parser = argparse.ArgumentParser(
        description="Flag intents that fail disproportionately often and raise one alert per tenant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --once                  # Analyze every tenant with outcomes in the window
  %(prog)s --once --tenant acme    # Analyze a single tenant
  %(prog)s --daemon                # Run every PATTERN_INTERVAL_SEC seconds

Environment variables:
- PATTERN_MIN_SAMPLES=3 (minimum outcomes per intent)
- PATTERN_FAILURE_RATE=0.30 (unsatisfied share that flags an intent)
- PATTERN_WINDOW_HOURS=24
- PATTERN_INTERVAL_SEC=86400
        """
    )
    parser.add_argument("--tenant", "-t", help="Only analyze this tenant")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Run a single pass and exit (default)")
    mode.add_argument("--daemon", action="store_true", help="Keep running on the heartbeat schedule")
    parser.add_argument("--db", help="SQLite database path (default: DB_PATH)")

    args = parser.parse_args()

    if not config.is_pattern_analysis_enabled():
        print("❌ Pattern analysis disabled (PATTERN_ENABLED=false)")
        sys.exit(1)

    try:
        core = build_assistant_core(db_path=args.db)
    except Exception as e:
        print(f"💥 Startup failed: {e}")
        sys.exit(1)

    if args.daemon:
        scheduler = HeartbeatScheduler()
        core.schedule_pattern_analysis(scheduler, run_immediately=True)
        scheduler.start()
        print(f"🏃 Pattern analysis scheduled every {config.PATTERN_INTERVAL_SEC}s (Ctrl+C to stop)")
        try:
            while scheduler.running:
                time.sleep(1)
        except KeyboardInterrupt:
            print("\n👋 Shutting down gracefully...")
        finally:
            scheduler.stop()
        return

    tenant_ids = [args.tenant] if args.tenant else None
    report = core.run_pattern_batch(tenant_ids)

    print(f"✓ Analyzed {report.tenants_processed} tenant(s)")
    for tenant_id in report.ok:
        findings = report.findings.get(tenant_id, [])
        if not findings:
            print(f"  {tenant_id}: no weak intents")
            continue
        print(f"  {tenant_id}: ⚠️  {len(findings)} weak intent(s)")
        for finding in findings:
            print(f"    - {finding.intent}: {finding.unsatisfied}/{finding.total} ({finding.rate:.0%})")

    for tenant_id, error in report.failed.items():
        print(f"  {tenant_id}: ❌ {error}")

    sys.exit(1 if report.failed else 0)


if __name__ == "__main__":
    main()
