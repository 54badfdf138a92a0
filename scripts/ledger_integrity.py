#!/usr/bin/env python3
"""
Ledger integrity report for plugin-produced charges.

Re-derives every matching ledger entry through its plugin and prints the
entries that no longer match: unknown plugins, entries whose configuration
is gone or disabled, verification errors, and amount/description drift.
Read-only; nothing is repaired.

Uses CHARGE_DATABASE_URL if set, otherwise the database in the runtime
settings file (CHARGE_CONFIG_PATH or charge_config/sets/charge.yaml).

Usage:
    python3 scripts/ledger_integrity.py
    python3 scripts/ledger_integrity.py --plugin hour-fixed --from 2025-01-01 --to 2025-03-31
    python3 scripts/ledger_integrity.py --json > findings.json

Exit status is 1 when any finding is reported.
"""

import argparse
import json
import sys
from dataclasses import asdict
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Verify plugin-produced ledger entries")
    p.add_argument("--config", type=Path, default=None, help="Runtime settings YAML")
    p.add_argument(
        "--plugin",
        dest="plugin_ids",
        action="append",
        default=[],
        help="Restrict to a plugin id (repeatable)",
    )
    p.add_argument("--from", dest="date_from", type=date.fromisoformat, default=None)
    p.add_argument("--to", dest="date_to", type=date.fromisoformat, default=None)
    p.add_argument("--json", action="store_true", help="Print findings as JSON")
    return p.parse_args()


def main() -> int:
    args = _parse_args()

    from charge_config import get_runtime_settings
    from charge_kernel.bootstrap import ChargeKernel
    from charge_kernel.logging_config import configure_logging

    settings = get_runtime_settings(args.config)
    configure_logging(level=settings.log_level, stream=sys.stderr)
    kernel = ChargeKernel.create(
        settings.database.url,
        settings.system_actor_id,
        enabled_components=settings.enabled_components,
        echo=settings.database.echo,
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.max_overflow,
        pool_timeout=settings.database.pool_timeout,
    )

    findings = kernel.run_integrity_check(args.plugin_ids or None, args.date_from, args.date_to)

    if args.json:
        print(json.dumps([asdict(f) for f in findings], indent=2, default=str))
    else:
        for f in findings:
            print(
                f"{f.transaction_date}  {f.plugin_id:<28} {f.entry_id}  "
                f"{f.kind.value:<20} {f.discrepancy}"
            )
        print(f"\n{len(findings)} finding(s)")

    return 1 if findings else 0


if __name__ == "__main__":
    sys.exit(main())
