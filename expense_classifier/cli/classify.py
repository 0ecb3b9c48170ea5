#!/usr/bin/env python3
"""
Transaction classification CLI

Classifies every row of a transactions CSV and writes the results.
"""
import argparse
import csv
import json
import sys
from pathlib import Path

import psycopg2

from expense_classifier.config import ClassifierSettings
from expense_classifier.core.cache import StaticStatisticsSupplier
from expense_classifier.core.categorization_orchestrator import TransactionClassifier, print_stats
from expense_classifier.core.csv_parser import TransactionCSVParser
from expense_classifier.core.knowledge_store import JsonKnowledgeStore
from expense_classifier.core.models import UserProfile
from expense_classifier.core.rule_catalog import DEFAULT_USER_RULES, RuleCatalog
from expense_classifier.core.statistics import load_statistics_json
from expense_classifier.core.taxonomy import CategoryRegistry
from expense_classifier.errors import ClassifierError
from expense_classifier.utils.db_connection import connection_factory
from expense_classifier.utils.logging_config import setup_logging

OUTPUT_COLUMNS = [
    'row_id', 'date', 'description', 'merchant', 'amount',
    'category_id', 'category_name', 'is_business', 'confidence',
    'source', 'needs_review', 'reasoning',
]


def load_json(path: Path):
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def build_classifier(args, settings: ClassifierSettings) -> TransactionClassifier:
    """Wire a classifier from the CLI's file-based inputs, or from PostgreSQL with --db-user"""
    if args.db_user:
        classifier = TransactionClassifier.from_database(args.db_user, connection_factory(), settings=settings)
        print(f"   ✅ PostgreSQL backend for user {args.db_user} ({len(classifier.catalog.user_rules)} user rules)")
        return classifier

    registry = CategoryRegistry()

    rule_records = []
    if args.default_rules:
        rule_records.extend(DEFAULT_USER_RULES)
    if args.rules:
        rule_records.extend(load_json(Path(args.rules)))
    catalog = RuleCatalog.from_custom_rules(registry, rule_records)
    print(f"   ✅ {len(catalog.user_rules)} user rules")

    statistics = None
    if args.stats:
        stats_map = load_statistics_json(Path(args.stats))
        statistics = StaticStatisticsSupplier(stats_map)
        print(f"   ✅ Statistics for {len(stats_map)} merchants")

    store = None
    if args.store:
        store = JsonKnowledgeStore(Path(args.store), settings.correction_dedup_seconds)
        print(f"   ✅ {len(store.records())} learned merchants")

    return TransactionClassifier(
        registry=registry,
        store=store,
        statistics=statistics,
        user_rules=catalog.user_rules,
        settings=settings,
    )


def write_results(output_path: Path, rows):
    with open(output_path, 'w', encoding='utf-8', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=OUTPUT_COLUMNS)
        writer.writeheader()
        writer.writerows(rows)


def main():
    """Main classify function"""
    parser = argparse.ArgumentParser(description='Classify transactions into accounting categories')
    parser.add_argument('csv_file', help='Transactions CSV (date, description, amount, merchant, time, ocr_text)')
    parser.add_argument('--profile', help='User profile JSON (industry + preferences)')
    backend = parser.add_mutually_exclusive_group()
    backend.add_argument('--store', help='Learned corrections JSON file')
    backend.add_argument('--db-user', help='Use the PostgreSQL backend (DB_* env vars) for this user id')
    parser.add_argument('--stats', help='Merchant statistics JSON (from expense-learn-stats)')
    parser.add_argument('--rules', help='Custom user rules JSON')
    parser.add_argument('--default-rules', action='store_true', help='Include the built-in sample user rules')
    parser.add_argument('--llm', action='store_true', help='Enable LLM categorization (uses API credits)')
    parser.add_argument('--output', help='Write results to this CSV instead of printing')
    parser.add_argument('--log-level', help='Log level (default: LOG_LEVEL env var)')

    args = parser.parse_args()
    setup_logging(args.log_level)

    csv_path = Path(args.csv_file)
    if not csv_path.exists():
        print(f"❌ File not found: {csv_path}")
        sys.exit(1)

    try:
        settings = ClassifierSettings.from_env()
        if args.llm:
            settings = settings.with_overrides(enable_llm=True)
    except ClassifierError as e:
        print(f"❌ {e}")
        sys.exit(1)

    print("=" * 80)
    print("🏷️  TRANSACTION CLASSIFICATION")
    print("=" * 80)
    print(f"CSV File: {csv_path}")
    print(f"LLM Enabled: {settings.llm_enabled}")
    print("=" * 80)

    try:
        profile = UserProfile.from_dict(load_json(Path(args.profile))) if args.profile else None

        print("\n🧠 Initializing classifier...")
        classifier = build_classifier(args, settings)

        print(f"\n📄 Parsing CSV file...")
        parsed = TransactionCSVParser().parse(csv_path)
        print(f"   ✅ {len(parsed)} transactions")
    except (ClassifierError, OSError, ValueError, KeyError, psycopg2.Error) as e:
        print(f"❌ {e}")
        sys.exit(1)

    results, stats = classifier.classify_batch([record for _, record in parsed], profile)

    rows = []
    for (row_id, record), result in zip(parsed, results):
        rows.append({
            'row_id': row_id,
            'date': record.date.isoformat() if record.date else '',
            'description': record.description,
            'merchant': record.merchant_name or '',
            'amount': str(record.amount),
            'category_id': result.category_id,
            'category_name': result.category_name,
            'is_business': result.is_business,
            'confidence': f"{result.confidence:.2f}",
            'source': result.source,
            'needs_review': classifier.needs_review(result),
            'reasoning': result.reasoning,
        })

    if args.output:
        write_results(Path(args.output), rows)
        print(f"\n💾 Wrote {len(rows)} results to {args.output}")
    else:
        print()
        for row in rows:
            flag = '⚠️ ' if row['needs_review'] else '✅'
            kind = 'business' if row['is_business'] else 'personal'
            print(f"{flag} {row['description'][:40]:<40} → {row['category_name']} "
                  f"({kind}, {row['confidence']}, {row['source']})")

    print_stats(stats, settings.review_threshold)


if __name__ == "__main__":
    main()
