#!/usr/bin/env python3
"""
Correction CLI

Records a user's category correction in a JSON knowledge store so future
transactions from the same merchant are classified the same way.
"""
import argparse
import sys
from pathlib import Path

from expense_classifier.config import ClassifierSettings
from expense_classifier.core.feedback import CorrectionFeedbackHandler
from expense_classifier.core.knowledge_store import JsonKnowledgeStore
from expense_classifier.core.taxonomy import CategoryRegistry
from expense_classifier.errors import ClassifierError, CorrectionPersistenceError
from expense_classifier.utils.logging_config import setup_logging


def main():
    parser = argparse.ArgumentParser(description='Record a category correction')
    parser.add_argument('--store', required=True, help='Learned corrections JSON file')
    parser.add_argument('--merchant', help='Merchant name on the transaction')
    parser.add_argument('--description', help='Transaction description')
    parser.add_argument('--category', required=True, help='Corrected category (id like cat-105 or name like 会議費)')
    flag = parser.add_mutually_exclusive_group()
    flag.add_argument('--business', dest='is_business', action='store_true', default=None,
                      help='Mark as a business expense')
    flag.add_argument('--personal', dest='is_business', action='store_false', help='Mark as personal')
    parser.add_argument('--key', help='Correction key; repeating a key within the dedup window is a no-op')
    parser.add_argument('--log-level', help='Log level (default: LOG_LEVEL env var)')

    args = parser.parse_args()
    setup_logging(args.log_level)

    try:
        settings = ClassifierSettings.from_env()
        registry = CategoryRegistry()
        category = registry.resolve(args.category)
        is_business = category.is_business if args.is_business is None else args.is_business

        store = JsonKnowledgeStore(Path(args.store), settings.correction_dedup_seconds)
        handler = CorrectionFeedbackHandler(store, registry, settings.fingerprint_prefix)
        record = handler.record_correction(
            merchant_name=args.merchant,
            description=args.description,
            category_name=None,
            category_id=category.id,
            is_business=is_business,
            correction_key=args.key,
        )
    except CorrectionPersistenceError as e:
        print(f"❌ Could not save correction (safe to retry): {e}")
        sys.exit(1)
    except (ClassifierError, ValueError) as e:
        print(f"❌ {e}")
        sys.exit(1)

    kind = 'business' if record.is_business else 'personal'
    print(f"✅ Learned: {record.fingerprint}")
    print(f"   → {record.category_name} ({kind})")
    print(f"   Corrections: {record.correction_count}, confidence {record.confidence:.0%}")


if __name__ == "__main__":
    main()
