#!/usr/bin/env python3
"""
Learning Engine - build merchant statistics from confirmed history

Reads a CSV of already-categorized transactions and writes the per-merchant
category counts the classifier uses as its statistics signal.
"""
import argparse
import sys
from pathlib import Path

from expense_classifier.core.statistics import (
    MerchantStatisticsBuilder,
    export_statistics_json,
    load_history_csv,
)
from expense_classifier.core.taxonomy import CategoryRegistry
from expense_classifier.utils.logging_config import setup_logging


def print_summary(builder: MerchantStatisticsBuilder):
    """Print learned merchants grouped by consistency"""
    summary = builder.summary()

    print("\n" + "=" * 80)
    print("📈 LEARNING ENGINE SUMMARY")
    print("=" * 80)

    consistent = summary['consistent']
    print(f"\n✅ CONSISTENT MERCHANTS ({len(consistent)}):")
    print(f"   Categorized the same way ≥{builder.min_consistency*100:.0f}% of the time")
    for entry in consistent[:10]:
        print(f"   • {entry['merchant']:<30} → {entry['category_name']:<12} "
              f"({entry['occurrences']} times, {entry['consistency']*100:.0f}%)")
    if len(consistent) > 10:
        print(f"   ... and {len(consistent) - 10} more")

    mixed = summary['mixed']
    if mixed:
        print(f"\n⚠️  MIXED MERCHANTS ({len(mixed)}):")
        for entry in mixed[:5]:
            print(f"   • {entry['merchant']:<30} → {entry['category_name']:<12} "
                  f"({entry['occurrences']} times, {entry['consistency']*100:.0f}%)")

    conflicts = summary['conflicts']
    if conflicts:
        print(f"\n❌ CONFLICTS ({len(conflicts)}):")
        for entry in conflicts[:5]:
            print(f"   • {entry['merchant']:<30} ({entry['occurrences']} times)")
            print(f"     Categories: {', '.join(entry['all_categories'])}")

    untrusted = summary['untrusted']
    print(f"\n💤 Too few transactions (<{builder.min_transactions}): {len(untrusted)} merchants")
    print(f"   Skipped rows: {builder.skipped}")
    print("\n" + "=" * 80)


def main():
    parser = argparse.ArgumentParser(description='Build merchant statistics from categorized history')
    parser.add_argument('history_csv', help='CSV with date, description, merchant, category, amount')
    parser.add_argument('--output', default='merchant_statistics.json', help='Statistics JSON to write')
    parser.add_argument('--min-transactions', type=int, default=3,
                        help='Merchants below this count are reported as untrusted')
    parser.add_argument('--log-level', help='Log level (default: LOG_LEVEL env var)')

    args = parser.parse_args()
    setup_logging(args.log_level)

    history_csv = Path(args.history_csv)
    if not history_csv.exists():
        print(f"❌ File not found: {history_csv}")
        sys.exit(1)

    print("=" * 80)
    print("🧠 EXPENSE CLASSIFIER - LEARNING ENGINE")
    print("=" * 80)
    print(f"📁 Historical data: {history_csv}")
    print(f"📊 Output: {args.output}")
    print("=" * 80)

    builder = MerchantStatisticsBuilder(CategoryRegistry(), min_transactions=args.min_transactions)
    rows = load_history_csv(history_csv)
    added = builder.add_rows(rows)
    print(f"✅ Loaded {added} of {len(rows)} historical transactions")

    statistics = builder.build()
    export_statistics_json(statistics, Path(args.output))
    print_summary(builder)

    print(f"\n✅ Done! Statistics for {len(statistics)} merchants written to {args.output}")


if __name__ == "__main__":
    main()
