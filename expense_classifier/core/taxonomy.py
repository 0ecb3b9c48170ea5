"""
Category registry

A closed chart of accounts every strategy resolves against when it is
built. Category names are the join key the host ledger uses, so a typo
must fail at construction instead of reaching persistence.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional

from ..errors import UnknownCategoryError


@dataclass(frozen=True)
class Category:
    """One account in the chart"""
    id: str
    code: str
    name: str
    label: str
    category_type: str  # 'asset', 'liability', 'equity', 'revenue', 'expense'
    is_business: bool

    @property
    def is_revenue(self) -> bool:
        return self.category_type == 'revenue'


# Ids referenced by strategies
CASH = 'cat-001'
BANK_DEPOSIT = 'cat-002'
ACCOUNTS_RECEIVABLE = 'cat-003'
OWNER_DRAWINGS = 'cat-004'
TOOLS_EQUIPMENT = 'cat-005'

TRAVEL = 'cat-101'
COMMUNICATION = 'cat-102'
SUPPLIES = 'cat-103'
ENTERTAINMENT = 'cat-104'
MEETING = 'cat-105'
ADVERTISING = 'cat-106'
UTILITIES = 'cat-107'
RENT = 'cat-108'
INSURANCE = 'cat-109'
TAXES = 'cat-110'
DEPRECIATION = 'cat-111'
WELFARE = 'cat-112'
SALARIES = 'cat-113'
OUTSOURCING = 'cat-114'
MISC_BUSINESS = 'cat-115'
TRAINING = 'cat-116'
BOOKS = 'cat-117'
REPAIRS = 'cat-118'
SOFTWARE = 'cat-119'
FEES = 'cat-120'
PURCHASES = 'cat-121'

SALES = 'cat-201'
MISC_INCOME = 'cat-202'
SERVICE_REVENUE = 'cat-203'
INTEREST_INCOME = 'cat-204'

PERSONAL_FOOD = 'cat-301'
PERSONAL_HOUSING = 'cat-302'
PERSONAL_UTILITIES = 'cat-303'
PERSONAL_TRANSPORT = 'cat-304'
PERSONAL_MEDICAL = 'cat-305'
PERSONAL_EDUCATION = 'cat-306'
PERSONAL_LEISURE = 'cat-307'
MISC_PERSONAL = 'cat-308'
PERSONAL_CLOTHING = 'cat-309'
PERSONAL_COMMUNICATION = 'cat-310'


DEFAULT_CATEGORIES: List[Category] = [
    Category(CASH, '1001', '現金', 'Cash', 'asset', True),
    Category(BANK_DEPOSIT, '1002', '普通預金', 'Bank deposit', 'asset', True),
    Category(ACCOUNTS_RECEIVABLE, '1003', '売掛金', 'Accounts receivable', 'asset', True),
    Category(OWNER_DRAWINGS, '1004', '事業主貸', "Owner's drawings", 'asset', False),
    Category(TOOLS_EQUIPMENT, '1005', '工具器具備品', 'Tools and equipment', 'asset', True),

    Category(TRAVEL, '5001', '旅費交通費', 'Travel and transport', 'expense', True),
    Category(COMMUNICATION, '5002', '通信費', 'Communication', 'expense', True),
    Category(SUPPLIES, '5003', '消耗品費', 'Supplies', 'expense', True),
    Category(ENTERTAINMENT, '5004', '接待交際費', 'Entertainment', 'expense', True),
    Category(MEETING, '5005', '会議費', 'Meeting expense', 'expense', True),
    Category(ADVERTISING, '5006', '広告宣伝費', 'Advertising', 'expense', True),
    Category(UTILITIES, '5007', '水道光熱費', 'Utilities', 'expense', True),
    Category(RENT, '5008', '地代家賃', 'Rent', 'expense', True),
    Category(INSURANCE, '5009', '損害保険料', 'Insurance', 'expense', True),
    Category(TAXES, '5010', '租税公課', 'Taxes and dues', 'expense', True),
    Category(DEPRECIATION, '5011', '減価償却費', 'Depreciation', 'expense', True),
    Category(WELFARE, '5012', '福利厚生費', 'Employee welfare', 'expense', True),
    Category(SALARIES, '5013', '給料賃金', 'Salaries', 'expense', True),
    Category(OUTSOURCING, '5014', '外注工賃', 'Outsourcing', 'expense', True),
    Category(MISC_BUSINESS, '5099', '雑費', 'Miscellaneous expense', 'expense', True),
    Category(TRAINING, '5015', '研修費', 'Training', 'expense', True),
    Category(BOOKS, '5016', '新聞図書費', 'Books and subscriptions', 'expense', True),
    Category(REPAIRS, '5017', '修繕費', 'Repairs', 'expense', True),
    Category(SOFTWARE, '5018', 'ソフトウェア費', 'Software and SaaS', 'expense', True),
    Category(FEES, '5019', '支払手数料', 'Fees', 'expense', True),
    Category(PURCHASES, '5020', '仕入高', 'Purchases', 'expense', True),

    Category(SALES, '4001', '売上高', 'Sales', 'revenue', True),
    Category(MISC_INCOME, '4002', '雑収入', 'Miscellaneous income', 'revenue', True),
    Category(SERVICE_REVENUE, '4003', '役務収益', 'Service revenue', 'revenue', True),
    Category(INTEREST_INCOME, '4004', '受取利息', 'Interest income', 'revenue', True),

    Category(PERSONAL_FOOD, '9001', '食費', 'Food (personal)', 'expense', False),
    Category(PERSONAL_HOUSING, '9002', '住居費', 'Housing (personal)', 'expense', False),
    Category(PERSONAL_UTILITIES, '9003', '光熱費', 'Utilities (personal)', 'expense', False),
    Category(PERSONAL_TRANSPORT, '9004', '交通費', 'Transport (personal)', 'expense', False),
    Category(PERSONAL_MEDICAL, '9005', '医療費', 'Medical (personal)', 'expense', False),
    Category(PERSONAL_EDUCATION, '9006', '教育費', 'Education (personal)', 'expense', False),
    Category(PERSONAL_LEISURE, '9007', '娯楽費', 'Leisure (personal)', 'expense', False),
    Category(MISC_PERSONAL, '9099', 'その他個人支出', 'Other personal spending', 'expense', False),
    Category(PERSONAL_CLOTHING, '9008', '被服費', 'Clothing (personal)', 'expense', False),
    Category(PERSONAL_COMMUNICATION, '9009', '通信費(個人)', 'Communication (personal)', 'expense', False),
]


class CategoryRegistry:
    """
    Lookup table over a closed set of categories

    Ids and names must both be unique. Any lookup of an unknown id or name
    raises UnknownCategoryError.
    """

    def __init__(self, categories: Optional[Iterable[Category]] = None):
        self._by_id: Dict[str, Category] = {}
        self._by_name: Dict[str, Category] = {}

        for category in (DEFAULT_CATEGORIES if categories is None else categories):
            if category.id in self._by_id:
                raise ValueError(f"Duplicate category id: {category.id}")
            if category.name in self._by_name:
                raise ValueError(f"Duplicate category name: {category.name}")
            self._by_id[category.id] = category
            self._by_name[category.name] = category

    def __iter__(self) -> Iterator[Category]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, reference: str) -> bool:
        return reference in self._by_id or reference in self._by_name

    def get(self, category_id: str) -> Category:
        try:
            return self._by_id[category_id]
        except KeyError:
            raise UnknownCategoryError(category_id) from None

    def by_name(self, name: str) -> Category:
        try:
            return self._by_name[name.strip()]
        except KeyError:
            raise UnknownCategoryError(name) from None

    def resolve(self, reference: str) -> Category:
        """Accept either an id (``cat-105``) or a name (``会議費``)"""
        if reference in self._by_id:
            return self._by_id[reference]
        return self.by_name(reference)

    def require(self, *category_ids: str):
        """Fail fast if any id a strategy can emit is missing"""
        for category_id in category_ids:
            self.get(category_id)

    def ids(self) -> List[str]:
        return list(self._by_id)
