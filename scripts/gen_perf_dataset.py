#!/usr/bin/env python3
"""Dataset generation script for commit performance testing.

Generates a synthetic case CSV with the columns the importer expects
(case_id, applicant_name, dob, email, phone, category, priority). A share of
the rows can be made invalid or duplicated on purpose so preview, bulk fixes
and the duplicate path all get exercised:

  case-import commit data/perf.csv --actor perf --dry-run
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

FIRST_NAMES = ["john", "jane", "max", "ana", "li", "omar", "sara", "ken", "eva", "raj"]
LAST_NAMES = ["doe", "roe", "mustermann", "silva", "wei", "haddad", "berg", "sato", "novak", "patel"]
CATEGORIES = ["TAX", "LICENSE", "PERMIT"]
PRIORITIES = ["LOW", "MEDIUM", "HIGH", ""]


def generate_cases(rows: int, invalid_ratio: float = 0.0, duplicate_ratio: float = 0.0, seed: int = 42) -> pd.DataFrame:
    """Generate a DataFrame of case rows (all values as strings).

    Args:
        rows: Number of data rows to generate
        invalid_ratio: Share of rows given a validation problem
        duplicate_ratio: Share of rows that repeat an earlier case_id
        seed: Random seed for reproducible data
    """
    rng = np.random.default_rng(seed)

    first = rng.choice(FIRST_NAMES, rows)
    last = rng.choice(LAST_NAMES, rows)
    # 1930-01-01 .. 2005-12-31
    days = rng.integers(0, 27758, rows)
    dob = (pd.Timestamp("1930-01-01") + pd.to_timedelta(days, unit="D")).strftime("%Y-%m-%d")
    # 10 桁 (北米形式, 正規化で +1 付与)
    phones = [f"555{n:07d}" for n in rng.integers(0, 10_000_000, rows)]

    df = pd.DataFrame(
        {
            "case_id": [f"C-{i:07d}" for i in range(1, rows + 1)],
            "applicant_name": [f"{f} {l}" for f, l in zip(first, last)],
            "dob": list(dob),
            "email": [f"{f}.{l}{i}@example.com" for i, (f, l) in enumerate(zip(first, last))],
            "phone": phones,
            "category": rng.choice(CATEGORIES, rows),
            "priority": rng.choice(PRIORITIES, rows),
        }
    )

    n_invalid = int(rows * invalid_ratio)
    if n_invalid:
        idx = rng.choice(rows, n_invalid, replace=False)
        # 無効化パターンを順番に割り当て
        for k, i in enumerate(idx):
            column, value = [
                ("category", ""),
                ("dob", "2999-01-01"),
                ("email", "not-an-email"),
                ("phone", "0"),
            ][k % 4]
            df.at[i, column] = value

    n_dupes = int(rows * duplicate_ratio)
    if n_dupes and rows > 1:
        targets = rng.choice(np.arange(1, rows), n_dupes, replace=False)
        for i in targets:
            df.at[i, "case_id"] = df.at[int(rng.integers(0, i)), "case_id"]

    return df


def main() -> int:
    """Main CLI interface for dataset generation."""
    parser = argparse.ArgumentParser(
        description="Generate a synthetic case CSV for performance testing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 10k valid rows
  %(prog)s data/perf.csv

  # 100k rows, 5%% invalid, 1%% duplicate case_id
  %(prog)s data/big.csv --rows 100000 --invalid 0.05 --duplicates 0.01
        """,
    )
    parser.add_argument("output", type=Path, help="Output CSV file path")
    parser.add_argument("--rows", type=int, default=10_000, help="Number of data rows (default: 10,000)")
    parser.add_argument("--invalid", type=float, default=0.0, help="Share of invalid rows (0..1)")
    parser.add_argument("--duplicates", type=float, default=0.0, help="Share of duplicate case_id rows (0..1)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed for reproducible data (default: 42)")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be generated without creating files")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    for name in ("invalid", "duplicates"):
        if not 0.0 <= getattr(args, name) <= 1.0:
            print(f"Error: --{name} must be between 0 and 1", file=sys.stderr)
            return 1

    print("Dataset generation plan:")
    print(f"  Output file: {args.output}")
    print(f"  Rows: {args.rows:,} (+ 1 header row)")
    print(f"  Invalid rows: ~{int(args.rows * args.invalid):,}")
    print(f"  Duplicate case_id rows: ~{int(args.rows * args.duplicates):,}")
    print(f"  Random seed: {args.seed}")

    if args.dry_run:
        print("\n[DRY RUN] Would generate the file but not creating it.")
        return 0

    try:
        df = generate_cases(args.rows, args.invalid, args.duplicates, args.seed)
        args.output.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(args.output, index=False)
    except (OSError, ValueError) as e:
        print(f"\nError generating dataset: {e}", file=sys.stderr)
        return 1

    size_mb = args.output.stat().st_size / (1024 * 1024)
    print(f"\nWrote {args.output} ({size_mb:.1f} MB)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
