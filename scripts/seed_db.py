#!/usr/bin/env python3
import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

import cohort_snapshotter as snapshotter  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the Cohort Snapshotter tables with a sample snapshot.")
    parser.add_argument("--schema", default=snapshotter.DEFAULT_DB_SCHEMA, help="Postgres schema name")
    parser.add_argument("--program", default=snapshotter.DEFAULT_PROGRAM, help="Program name for the seeded roster")
    parser.add_argument("--date", help="Snapshot date for the seed run (YYYY-MM-DD)")
    parser.add_argument("--input", help="Optional roster CSV (defaults to the built-in ten scholar roster)")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables before seeding")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    snapshot_date = snapshotter.resolve_snapshot_date(args.date)
    config = snapshotter.AppConfig.from_env(args.schema)
    meta = snapshotter.SnapshotMeta(
        snapshot_date=snapshot_date,
        program=args.program,
        source="seed",
        notes="Sample roster loaded by scripts/seed_db.py",
    )
    if args.input:
        records = snapshotter.load_roster_csv(args.input, args.program)
    else:
        records = snapshotter.seed_roster(args.program, snapshot_date)

    with snapshotter.open_store(config) as conn:
        snapshotter.ensure_db(conn, config.schema, drop=args.drop)
        snapshot_id = snapshotter.capture_snapshot(conn, config.schema, meta, records)
    print(
        f"Seeded snapshot {snapshot_id} ({len(records)} scholars, "
        f"{snapshotter.format_date(snapshot_date)}) into schema '{config.schema}'."
    )


if __name__ == "__main__":
    main()
