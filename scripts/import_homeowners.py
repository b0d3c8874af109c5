#!/usr/bin/env python3
"""
Import homeowners from a CSV export.

Usage:
    python scripts/import_homeowners.py homeowners.csv
    python scripts/import_homeowners.py homeowners.csv --builder-group "Evergreen Homes"
"""

import argparse
import asyncio
import csv
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from sqlalchemy import func, select

from cascade_connect.core.database import get_db_session, init_db
from cascade_connect.core.homeowners import import_homeowner_rows
from cascade_connect.core.models import BuilderGroup


async def run_import(csv_path: Path, builder_group_name: str | None = None) -> int:
    await init_db()

    with open(csv_path, newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        headers = list(reader.fieldnames or [])
        rows = list(reader)

    if not headers:
        print(f"Error: {csv_path} has no header row")
        return 1

    async with get_db_session() as session:
        group = None
        if builder_group_name:
            result = await session.execute(
                select(BuilderGroup).where(
                    func.lower(BuilderGroup.name) == builder_group_name.strip().lower()
                )
            )
            group = result.scalar_one_or_none()
            if group is None:
                print(f"Error: Builder group '{builder_group_name}' not found")
                return 1

        summary = await import_homeowner_rows(session, rows, headers, group)

    print(f"\nImported {csv_path.name}")
    print(f"  Created: {summary.created}")
    print(f"  Skipped (already exist): {summary.skipped}")
    print(f"  Invalid: {summary.invalid}")
    for error in summary.errors:
        print(f"    {error}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Import homeowners from a CSV file")
    parser.add_argument("csv", type=Path, help="CSV file with a header row")
    parser.add_argument("--builder-group", help="Builder group to assign imported homeowners to")
    args = parser.parse_args()

    if not args.csv.exists():
        print(f"Error: {args.csv} not found")
        return 1

    return asyncio.run(run_import(args.csv, args.builder_group))


if __name__ == "__main__":
    sys.exit(main())
