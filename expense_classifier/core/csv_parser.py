"""
CSV loader for transactions to classify

Reads the host's export format (date, description, amount, merchant,
time, ocr_text) into TransactionRecords. Header names are matched
case-insensitively and a few Japanese headers are accepted.
"""
import csv
import hashlib
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .models import TransactionRecord

logger = logging.getLogger(__name__)

# Accepted header spellings -> field name
HEADER_ALIASES = {
    'date': 'date', 'transaction date': 'date', '日付': 'date', '取引日': 'date',
    'description': 'description', '摘要': 'description', '内容': 'description',
    'amount': 'amount', '金額': 'amount',
    'merchant': 'merchant_name', 'merchant_name': 'merchant_name', '店名': 'merchant_name', '取引先': 'merchant_name',
    'time': 'time_of_day', 'time_of_day': 'time_of_day', '時刻': 'time_of_day',
    'ocr_text': 'ocr_text', 'ocr': 'ocr_text',
}

DATE_FORMATS = [
    '%Y-%m-%d',   # 2025-01-30
    '%Y/%m/%d',   # 2025/01/30
    '%Y.%m.%d',   # 2025.01.30
    '%m/%d/%Y',   # 01/30/2025
    '%Y年%m月%d日',  # 2025年1月30日
]


class TransactionCSVParser:
    """Parses a transactions CSV into TransactionRecords"""

    def compute_row_hash(self, row: Dict[str, str], row_index: int = 0) -> str:
        """
        Stable id for a row, usable as a correction key.
        Uses date, description, amount, merchant AND row index.
        """
        hash_input = (f"{row.get('date', '')}|{row.get('description', '')}|{row.get('amount', '')}|"
                      f"{row.get('merchant_name', '')}|{row_index}")
        return hashlib.sha256(hash_input.encode()).hexdigest()[:16]

    def parse_date(self, date_str: str) -> Optional[date]:
        """Parse a date in any supported format"""
        if not date_str or not date_str.strip():
            return None

        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(date_str.strip(), fmt).date()
            except ValueError:
                continue

        raise ValueError(f"Could not parse date: {date_str}")

    def parse_amount(self, amount_str: str) -> Decimal:
        """Parse amount string to Decimal; '(1,200)' is negative"""
        if not amount_str or not amount_str.strip():
            return Decimal('0')

        cleaned = amount_str.replace('¥', '').replace('￥', '').replace('円', '').replace(',', '').strip()
        negative = cleaned.startswith('(') and cleaned.endswith(')')
        if negative:
            cleaned = cleaned[1:-1]
        try:
            value = Decimal(cleaned)
        except InvalidOperation:
            raise ValueError(f"Could not parse amount: {amount_str}")
        if not value.is_finite():
            raise ValueError(f"Amount must be a finite number: {amount_str}")
        return -value if negative else value

    def normalize_row(self, row: Dict[str, str]) -> Dict[str, str]:
        normalized = {}
        for key, value in row.items():
            if key is None:
                continue
            field_name = HEADER_ALIASES.get(key.strip().lower())
            if field_name:
                normalized[field_name] = (value or '').strip()
        return normalized

    def parse(self, csv_path: Path) -> List[Tuple[str, TransactionRecord]]:
        """
        Parse a transactions CSV

        Args:
            csv_path: Path to CSV file

        Returns:
            List of (row_id, TransactionRecord); malformed rows are skipped and logged
        """
        records = []
        skipped = 0

        with open(csv_path, 'r', encoding='utf-8-sig') as f:
            reader = csv.DictReader(f)

            for i, raw in enumerate(reader):
                row = self.normalize_row(raw)
                try:
                    record = TransactionRecord(
                        description=row.get('description', ''),
                        amount=self.parse_amount(row.get('amount', '')),
                        date=self.parse_date(row.get('date', '')),
                        merchant_name=row.get('merchant_name') or None,
                        ocr_text=row.get('ocr_text') or None,
                        time_of_day=row.get('time_of_day') or None,
                    )
                except ValueError as e:
                    logger.warning("Skipping row %d: %s", i + 1, e)
                    skipped += 1
                    continue

                records.append((self.compute_row_hash(row, row_index=i), record))

        logger.info("Parsed %d transactions from %s (%d skipped)", len(records), csv_path, skipped)
        return records
