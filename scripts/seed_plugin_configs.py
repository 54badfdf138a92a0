#!/usr/bin/env python3
"""
Apply plugin configuration seeds to the database.

Each seed is keyed by (plugin_id, scope, employer_id): missing configs are
created, existing ones get their enabled flag and settings replaced.
Settings are validated against the plugin's schema before anything is
written; seeds for plugins whose component is disabled are skipped.

Usage:
    python3 scripts/seed_plugin_configs.py
    python3 scripts/seed_plugin_configs.py --seeds my_configs.yaml --create-schema
    python3 scripts/seed_plugin_configs.py --dry-run
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    from charge_config import DEFAULT_SEEDS_PATH

    p = argparse.ArgumentParser(description="Create or update charge plugin configurations")
    p.add_argument("--config", type=Path, default=None, help="Runtime settings YAML")
    p.add_argument(
        "--seeds",
        type=Path,
        default=DEFAULT_SEEDS_PATH,
        help=f"Plugin config seed YAML (default: {DEFAULT_SEEDS_PATH})",
    )
    p.add_argument("--create-schema", action="store_true", help="Create missing tables first")
    p.add_argument("--dry-run", action="store_true", help="Validate and roll back")
    return p.parse_args()


def main() -> int:
    args = _parse_args()

    from sqlalchemy.orm import sessionmaker

    from charge_config import compute_checksum, get_runtime_settings, load_plugin_config_seeds
    from charge_kernel.db.engine import build_engine, create_tables
    from charge_kernel.exceptions import ChargeKernelError
    from charge_kernel.logging_config import configure_logging
    from charge_kernel.plugins import PluginRegistry, register_builtin_plugins
    from charge_kernel.services.config_resolver import PluginConfigService

    settings = get_runtime_settings(args.config)
    configure_logging(level=settings.log_level, stream=sys.stderr)
    seeds = load_plugin_config_seeds(args.seeds)
    print(f"Loaded {len(seeds)} seed(s) from {args.seeds} (checksum {compute_checksum(seeds)[:12]})")

    engine = build_engine(settings.database.url, echo=settings.database.echo)
    if args.create_schema:
        create_tables(engine)

    registry = PluginRegistry(settings.enabled_components)
    register_builtin_plugins(registry)

    session = sessionmaker(bind=engine)()
    try:
        report = PluginConfigService(session, settings.system_actor_id, registry).apply_seeds(seeds)
        if args.dry_run:
            session.rollback()
        else:
            session.commit()
    except ChargeKernelError as exc:
        session.rollback()
        print(f"ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1
    finally:
        session.close()
        engine.dispose()

    suffix = " (dry run, rolled back)" if args.dry_run else ""
    print(
        f"created={len(report.created)} updated={len(report.updated)} "
        f"skipped={len(report.skipped)}{suffix}"
    )
    for plugin_id in report.skipped:
        print(f"  skipped {plugin_id}: plugin not registered")
    return 0


if __name__ == "__main__":
    sys.exit(main())
