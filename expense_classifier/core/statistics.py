"""
Merchant statistics from confirmed history

Recomputes, per merchant, how often each category was confirmed. This is
the batch job behind the merchant statistics strategy; it never runs on
the classification path.
"""
import csv
import html
import json
import logging
from collections import defaultdict, Counter
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..errors import UnknownCategoryError
from .merchant_normalizer import extract_merchant_name, normalize_merchant_key
from .models import MerchantStatistics
from .taxonomy import CategoryRegistry

logger = logging.getLogger(__name__)


class MerchantStatisticsBuilder:
    """
    Aggregates confirmed transactions into MerchantStatistics
    """

    def __init__(self, registry: CategoryRegistry, min_transactions: int = 3, min_consistency: float = 0.90):
        """
        Args:
            registry: Categories rows must resolve against
            min_transactions: Merchants below this are reported as untrusted
            min_consistency: Share of the top category that counts as "consistent"
        """
        self.registry = registry
        self.min_transactions = min_transactions
        self.min_consistency = min_consistency

        self.merchant_categories: Dict[str, List[str]] = defaultdict(list)
        self.merchant_names: Dict[str, str] = {}
        self.category_totals = Counter()
        self.skipped = 0

    def add(self, merchant_name: Optional[str], category: str, description: Optional[str] = None) -> bool:
        """
        Record one confirmed transaction

        Args:
            merchant_name: Merchant; extracted from description when absent
            category: Category id or name
            description: Free-text description

        Returns:
            True if the row was counted
        """
        merchant = merchant_name or extract_merchant_name(description)
        key = normalize_merchant_key(merchant)
        if not key:
            self.skipped += 1
            return False

        try:
            category_id = self.registry.resolve(category.strip()).id
        except UnknownCategoryError:
            logger.warning("Skipping history row for %s: unknown category %r", merchant, category)
            self.skipped += 1
            return False

        self.merchant_categories[key].append(category_id)
        self.merchant_names.setdefault(key, merchant.strip())
        self.category_totals[category_id] += 1
        return True

    def add_rows(self, rows: Iterable[Dict]) -> int:
        """Add rows with 'merchant_name'/'merchant', 'description' and 'category' keys"""
        added = 0
        for row in rows:
            category = row.get('category') or row.get('category_id') or ''
            if not category:
                self.skipped += 1
                continue
            merchant = row.get('merchant_name') or row.get('merchant')
            if self.add(merchant, category, row.get('description')):
                added += 1
        return added

    def build(self) -> Dict[str, MerchantStatistics]:
        """Statistics keyed by normalized merchant name"""
        statistics = {}
        for key, categories in self.merchant_categories.items():
            stats = MerchantStatistics(merchant_name=self.merchant_names[key])
            for category_id in categories:
                stats.add(category_id)
            statistics[key] = stats

        logger.info("Built statistics for %d merchants (%d rows skipped)", len(statistics), self.skipped)
        return statistics

    def summary(self) -> Dict[str, List[Dict]]:
        """
        Split merchants by how consistently they were categorized

        Returns:
            Dict with 'consistent', 'mixed', 'conflicts' and 'untrusted' lists
        """
        result = {'consistent': [], 'mixed': [], 'conflicts': [], 'untrusted': []}

        for key, stats in self.build().items():
            top = stats.most_frequent()
            if top is None:
                continue
            category_id, count = top
            consistency = count / stats.total_transactions
            entry = {
                'merchant': stats.merchant_name,
                'category_id': category_id,
                'category_name': self.registry.get(category_id).name,
                'occurrences': stats.total_transactions,
                'consistency': consistency,
            }

            if not stats.is_trusted(self.min_transactions):
                result['untrusted'].append(entry)
            elif consistency >= self.min_consistency:
                result['consistent'].append(entry)
            elif consistency >= 0.70:
                result['mixed'].append(entry)
            else:
                entry['all_categories'] = [
                    f"{self.registry.get(cid).name} ({ct})"
                    for cid, ct in sorted(stats.category_counts.items(), key=lambda x: (-x[1], x[0]))
                ]
                result['conflicts'].append(entry)

        for entries in result.values():
            entries.sort(key=lambda x: x['occurrences'], reverse=True)
        return result


def load_history_csv(csv_path: Path) -> List[Dict]:
    """
    Parse a confirmed-transactions CSV

    Expected columns: date, description, merchant, category (id or name), amount
    """
    rows = []
    with open(csv_path, 'r', encoding='utf-8-sig') as f:
        reader = csv.DictReader(f)
        for row in reader:
            category = (row.get('category') or '').strip()
            if not category or category == 'category':
                continue
            rows.append({
                'description': html.unescape((row.get('description') or '').strip()),
                'merchant_name': (row.get('merchant') or row.get('merchant_name') or '').strip() or None,
                'category': category,
                'amount': (row.get('amount') or '').strip(),
            })

    logger.info("Loaded %d historical transactions from %s", len(rows), csv_path)
    return rows


def load_confirmed_transactions(conn, user_id: str) -> List[Dict]:
    """Load a user's confirmed transactions from the database"""
    cursor = conn.cursor()
    try:
        cursor.execute("""
            SELECT merchant_name, description, category_id
            FROM confirmed_transactions
            WHERE user_id = %s
            ORDER BY confirmed_at, txn_id
        """, (user_id,))
        return [
            {'merchant_name': row[0], 'description': row[1], 'category': row[2]}
            for row in cursor.fetchall()
        ]
    finally:
        cursor.close()


def export_statistics_json(statistics: Dict[str, MerchantStatistics], output_path: Path):
    """Write statistics to JSON for the classify CLI"""
    data = {
        'version': 1,
        'merchants': [stats.to_dict() for stats in statistics.values()],
    }
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    logger.info("Exported statistics for %d merchants to %s", len(statistics), output_path)


def load_statistics_json(path: Path) -> Dict[str, MerchantStatistics]:
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    statistics = {}
    for item in data.get('merchants', []):
        stats = MerchantStatistics.from_dict(item)
        statistics[normalize_merchant_key(stats.merchant_name)] = stats
    return statistics
