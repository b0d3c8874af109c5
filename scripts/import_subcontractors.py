#!/usr/bin/env python3
"""
Import sub-contractors from a CSV export.

Existing contractors are matched by company name and updated in place.

Usage:
    python scripts/import_subcontractors.py subcontractors.csv
"""

import argparse
import asyncio
import csv
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from cascade_connect.core.contractors import import_contractor_rows
from cascade_connect.core.database import get_db_session, init_db


async def run_import(csv_path: Path) -> int:
    await init_db()

    with open(csv_path, newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        headers = list(reader.fieldnames or [])
        rows = list(reader)

    if not headers:
        print(f"Error: {csv_path} has no header row")
        return 1

    async with get_db_session() as session:
        summary = await import_contractor_rows(session, rows, headers)

    print(f"\nImported {csv_path.name}")
    print(f"  Created: {summary.created}")
    print(f"  Updated: {summary.updated}")
    print(f"  Invalid: {summary.invalid}")
    for error in summary.errors:
        print(f"    {error}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Import sub-contractors from a CSV file")
    parser.add_argument("csv", type=Path, help="CSV file with a header row")
    args = parser.parse_args()

    if not args.csv.exists():
        print(f"Error: {args.csv} not found")
        return 1

    return asyncio.run(run_import(args.csv))


if __name__ == "__main__":
    sys.exit(main())
