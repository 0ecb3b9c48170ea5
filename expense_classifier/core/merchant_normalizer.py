"""
Merchant Normalization Module

Turns receipt/statement text into stable keys:
- normalize_text: NFKC + lowercase + collapsed whitespace
- normalize_merchant_key: merchant name with store numbers and company suffixes removed
- fingerprint: merchant key + description prefix, used to index learned corrections
"""
import re
import unicodedata
from typing import Optional

# Noise stripped from merchant names before keying
NOISE_PATTERNS = [
    r'[#＃]\s*\d+',  # Store numbers like "#123"
    r'\bno\.?\s*\d+',  # "No.12"
    r'\d{6,}',  # Long numeric ids / card refs
    r'\*+',  # Asterisks from card processors
    r'https?://\S+',  # URLs
]

# Company-form markers, removed wherever they appear
COMPANY_MARKERS = [
    '株式会社', '(株)', '有限会社', '(有)', '合同会社',
    ' inc.', ' inc', ' llc', ' ltd.', ' ltd', ' co.,ltd.', ' corp.', ' corp',
]

# Branch suffixes like "渋谷店" / "新宿駅前店"
BRANCH_PATTERN = re.compile(r'\s+\S+店$')

# Description shapes that embed a merchant name
MERCHANT_IN_DESCRIPTION = [
    re.compile(r'^(.+?)での購入$'),
    re.compile(r'^(.+?)にて$'),
    re.compile(r'^(.+?)\s'),
]

_ASCII_WORD = re.compile(r'^[a-z0-9]+$')


def normalize_text(value: Optional[str]) -> str:
    """NFKC, lowercase, trim, collapse runs of whitespace"""
    if not value:
        return ''
    text = unicodedata.normalize('NFKC', value).lower()
    return ' '.join(text.split())


def normalize_merchant_key(merchant_name: Optional[str]) -> str:
    """
    Normalize a merchant name for statistics and fingerprint lookups.

    Args:
        merchant_name: Raw merchant name from a receipt or statement

    Returns:
        Lowercase merchant key, or '' when nothing usable remains
    """
    text = normalize_text(merchant_name)
    if not text:
        return ''

    cleaned = text
    for marker in COMPANY_MARKERS:
        cleaned = cleaned.replace(marker, ' ')
    for pattern in NOISE_PATTERNS:
        cleaned = re.sub(pattern, ' ', cleaned)
    cleaned = ' '.join(cleaned.split())
    cleaned = BRANCH_PATTERN.sub('', cleaned).strip()

    # Never normalize a name away entirely
    return cleaned or text


def fingerprint(merchant_name: Optional[str], description: Optional[str], prefix_length: int = 20) -> str:
    """
    Deterministic key for a merchant + description prefix.

    Case and surrounding whitespace never change the result, so
    ``fingerprint("Starbucks ", "coffee run")`` equals
    ``fingerprint("starbucks", "Coffee Run")``.
    """
    merchant_key = normalize_merchant_key(merchant_name)
    description_key = normalize_text(description)[:prefix_length].strip()
    return f"{merchant_key}|{description_key}"


def extract_merchant_name(description: Optional[str]) -> Optional[str]:
    """
    Best-effort merchant name from a free-text description.

    Used when historical rows have no merchant column.
    """
    text = (description or '').strip()
    if not text:
        return None

    for pattern in MERCHANT_IN_DESCRIPTION:
        match = pattern.match(text)
        if match:
            return match.group(1).strip()

    if len(text) > 3:
        return text
    return None


def contains_keyword(text: str, keyword: str) -> bool:
    """
    Substring test on already-normalized text.

    Short ASCII keywords ("au", "jr", "pc") must stand alone as a word,
    otherwise "au" would match "restaurant".
    """
    if not keyword:
        return False
    if keyword not in text:
        return False
    if len(keyword) <= 3 and _ASCII_WORD.match(keyword):
        return re.search(rf'(?<![a-z0-9]){re.escape(keyword)}(?![a-z0-9])', text) is not None
    return True
