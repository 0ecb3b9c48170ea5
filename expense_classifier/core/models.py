"""
Data structures shared by the classification cascade
"""
import re
import unicodedata
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class ExpensePolicy(str, Enum):
    """How a user treats a class of spending"""
    BUSINESS = 'business'
    PERSONAL = 'personal'
    CASE_BY_CASE = 'case_by_case'


class IndustryCategory(str, Enum):
    """Industries a user can declare in their profile"""
    IT_TECH = 'it_tech'
    CREATIVE_MEDIA = 'creative_media'
    CONSULTING_BUSINESS = 'consulting_business'
    HEALTHCARE_WELFARE = 'healthcare_welfare'
    EDUCATION_CULTURE = 'education_culture'
    CONSTRUCTION_REAL_ESTATE = 'construction_real_estate'
    RETAIL_COMMERCE = 'retail_commerce'
    FOOD_SERVICE = 'food_service'
    TRANSPORTATION_LOGISTICS = 'transportation_logistics'
    MANUFACTURING = 'manufacturing'
    FINANCE_INSURANCE = 'finance_insurance'
    AGRICULTURE_FISHERY = 'agriculture_fishery'
    OTHER_SERVICES = 'other_services'


# Preference names understood by the strategies
TAXI_POLICY = 'taxi_policy'
PUBLIC_TRANSPORT_DEFAULT = 'public_transport_default'
PARKING_DEFAULT = 'parking_default'
BUSINESS_LUNCH_POLICY = 'business_lunch_policy'
COFFEE_WORK_POLICY = 'coffee_work_policy'
ENERGY_DRINK_POLICY = 'energy_drink_policy'
CLIENT_MEETING_MEALS = 'client_meeting_meals'
TECHNICAL_BOOKS_DEFAULT = 'technical_books_default'
PHONE_BUSINESS_RATIO = 'phone_business_ratio'
DEPRECIATION_THRESHOLD = 'depreciation_threshold'

_HOUR_PATTERN = re.compile(r'^\s*(\d{1,2})(?::?(\d{2}))?(?::\d{2})?\s*$')


def _parse_decimal(value: Any) -> Decimal:
    if value is None or value == '':
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, int):
        return Decimal(value)
    cleaned = str(value).replace(',', '').replace('¥', '').replace('￥', '').replace('$', '').strip()
    try:
        return Decimal(cleaned) if cleaned else Decimal('0')
    except InvalidOperation:
        raise ValueError(f"Could not parse amount: {value!r}")


def _to_decimal(value: Any) -> Decimal:
    amount = _parse_decimal(value)
    if not amount.is_finite():
        raise ValueError(f"Amount must be a finite number: {value!r}")
    return amount


@dataclass(frozen=True)
class TransactionRecord:
    """
    One financial event to classify

    ``amount`` is signed: negative (or zero) is an expense, positive is revenue.
    """
    description: str = ''
    amount: Decimal = Decimal('0')
    date: Optional['date'] = None
    merchant_name: Optional[str] = None
    ocr_text: Optional[str] = None
    time_of_day: Optional[Union[str, time]] = None

    def __post_init__(self):
        object.__setattr__(self, 'amount', _to_decimal(self.amount))
        object.__setattr__(self, 'description', self.description or '')

    @property
    def is_revenue(self) -> bool:
        return self.amount > 0

    @property
    def abs_amount(self) -> Decimal:
        return abs(self.amount)

    @property
    def hour(self) -> Optional[int]:
        """Hour of day, or None when no usable time was given"""
        value = self.time_of_day
        if value is None:
            return None
        if isinstance(value, (time, datetime)):
            return value.hour

        text = unicodedata.normalize('NFKC', str(value))
        match = _HOUR_PATTERN.match(text)
        if not match:
            return None

        digits, minutes = match.group(1), match.group(2)
        # "1030" is matched as hour "10" + minutes "30"
        hour = int(digits)
        if hour > 23 or (minutes is not None and int(minutes) > 59):
            return None
        return hour

    def combined_text(self) -> str:
        """Lowercase, NFKC-normalized description + merchant + OCR text"""
        parts = [self.description, self.merchant_name or '', self.ocr_text or '']
        joined = ' '.join(p for p in parts if p)
        normalized = unicodedata.normalize('NFKC', joined).lower()
        return ' '.join(normalized.split())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransactionRecord':
        """Build a record from a loosely typed mapping (CSV row, JSON payload)"""
        raw_date = data.get('date')
        txn_date = None
        if isinstance(raw_date, date):
            txn_date = raw_date
        elif raw_date:
            txn_date = datetime.strptime(str(raw_date).strip()[:10], '%Y-%m-%d').date()

        return cls(
            description=(data.get('description') or '').strip(),
            amount=_to_decimal(data.get('amount')),
            date=txn_date,
            merchant_name=(data.get('merchant_name') or data.get('merchant') or '').strip() or None,
            ocr_text=(data.get('ocr_text') or '').strip() or None,
            time_of_day=(data.get('time_of_day') or data.get('time') or None),
        )


@dataclass(frozen=True)
class UserProfile:
    """
    Industry + expense preferences supplied by the host application

    Preference values are either an ExpensePolicy or a number (percentages
    for ratios, yen for thresholds). Missing or malformed values always fall
    back to the caller's default.
    """
    industry: Optional[IndustryCategory] = None
    preferences: Dict[str, Any] = field(default_factory=dict)

    def policy(self, name: str, default: ExpensePolicy) -> ExpensePolicy:
        value = self.preferences.get(name)
        if isinstance(value, ExpensePolicy):
            return value
        if isinstance(value, bool):
            return ExpensePolicy.BUSINESS if value else ExpensePolicy.PERSONAL
        if isinstance(value, str):
            try:
                return ExpensePolicy(value.strip().lower())
            except ValueError:
                return default
        return default

    def is_business(self, name: str, default: bool) -> bool:
        """Resolve a preference to a business flag; case_by_case keeps the default"""
        fallback = ExpensePolicy.BUSINESS if default else ExpensePolicy.PERSONAL
        policy = self.policy(name, fallback)
        if policy == ExpensePolicy.CASE_BY_CASE:
            return default
        return policy == ExpensePolicy.BUSINESS

    def number(self, name: str, default: float) -> float:
        value = self.preferences.get(name)
        if isinstance(value, bool) or value is None:
            return default
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    def ratio(self, name: str, default: float = 0.0) -> float:
        """Percentage preference (0-100) as a fraction in [0, 1]"""
        percent = self.number(name, default * 100)
        return max(0.0, min(1.0, percent / 100.0))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserProfile':
        industry = data.get('industry')
        try:
            industry = IndustryCategory(industry) if industry else None
        except ValueError:
            industry = None
        preferences = dict(data.get('preferences') or {})
        return cls(industry=industry, preferences=preferences)


@dataclass(frozen=True)
class ClassificationCandidate:
    """One strategy's proposal; the cascade winner is returned unchanged"""
    category_name: str
    category_id: str
    is_business: bool
    confidence: float
    matched_evidence: Tuple[str, ...] = ()
    reasoning: str = ''
    business_ratio: Optional[float] = None
    source: str = ''

    def __post_init__(self):
        object.__setattr__(self, 'confidence', round(max(0.0, min(1.0, float(self.confidence))), 4))
        object.__setattr__(self, 'matched_evidence', tuple(self.matched_evidence))
        if self.business_ratio is not None:
            object.__setattr__(self, 'business_ratio', max(0.0, min(1.0, float(self.business_ratio))))

    def needs_review(self, threshold: float = 0.5) -> bool:
        """Results below the review threshold must be confirmed by a human"""
        return self.confidence < threshold

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['matched_evidence'] = list(self.matched_evidence)
        return data


ClassificationResult = ClassificationCandidate


@dataclass
class MerchantLearningRecord:
    """What the user has taught us about one merchant fingerprint"""
    fingerprint: str
    category_id: str
    category_name: str
    is_business: bool
    correction_count: int
    last_corrected_at: datetime
    merchant_name: Optional[str] = None

    @property
    def confidence(self) -> float:
        return round(min(0.5 + 0.2 * self.correction_count, 1.0), 4)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fingerprint': self.fingerprint,
            'merchant_name': self.merchant_name,
            'category_id': self.category_id,
            'category_name': self.category_name,
            'is_business': self.is_business,
            'correction_count': self.correction_count,
            'last_corrected_at': self.last_corrected_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MerchantLearningRecord':
        return cls(
            fingerprint=data['fingerprint'],
            merchant_name=data.get('merchant_name'),
            category_id=data['category_id'],
            category_name=data['category_name'],
            is_business=bool(data['is_business']),
            correction_count=int(data['correction_count']),
            last_corrected_at=datetime.fromisoformat(data['last_corrected_at']),
        )


@dataclass
class MerchantStatistics:
    """Category frequencies for one merchant, derived from confirmed history"""
    merchant_name: str
    total_transactions: int = 0
    category_counts: Dict[str, int] = field(default_factory=dict)

    def add(self, category_id: str, count: int = 1):
        self.category_counts[category_id] = self.category_counts.get(category_id, 0) + count
        self.total_transactions += count

    def is_trusted(self, min_transactions: int = 3) -> bool:
        return self.total_transactions >= min_transactions

    def most_frequent(self) -> Optional[Tuple[str, int]]:
        """Top category; equal counts resolve to the lowest category id"""
        if not self.category_counts:
            return None
        return min(self.category_counts.items(), key=lambda item: (-item[1], item[0]))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'merchant_name': self.merchant_name,
            'total_transactions': self.total_transactions,
            'category_counts': dict(self.category_counts),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MerchantStatistics':
        counts = {k: int(v) for k, v in (data.get('category_counts') or {}).items()}
        total = int(data.get('total_transactions', sum(counts.values())))
        return cls(merchant_name=data['merchant_name'], total_transactions=total, category_counts=counts)
