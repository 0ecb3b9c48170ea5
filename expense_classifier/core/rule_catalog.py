"""
Rule Catalog

Keyword rules mapping transaction text to categories:
- System rules: fixed keyword table with a base confidence per rule
- User rules: user-authored substring patterns, always authoritative (confidence 1.0)

Each system rule holds a tuple of *terms*. A term may list alternative
spellings separated by ``|``; the term is matched when any alternative
appears in the text. Candidate confidence is
``matched_terms / total_terms * base_confidence``.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .fuzzy import best_window_similarity
from .merchant_normalizer import contains_keyword, normalize_text
from .models import ClassificationCandidate
from .taxonomy import (
    CategoryRegistry,
    BOOKS, COMMUNICATION, ENTERTAINMENT, FEES, INSURANCE, INTEREST_INCOME,
    MEETING, OUTSOURCING, PERSONAL_CLOTHING, PERSONAL_FOOD, PERSONAL_HOUSING,
    PERSONAL_LEISURE, PERSONAL_MEDICAL, RENT, REPAIRS, SALES, SOFTWARE,
    SUPPLIES, TAXES, TRAINING, TRAVEL, UTILITIES, ADVERTISING,
)

EXPENSE = 'expense'
REVENUE = 'revenue'

# Alternatives shorter than this are too ambiguous for the fuzzy pass
MIN_FUZZY_LENGTH = 4
FUZZY_PENALTY = 0.9


@dataclass(frozen=True)
class ClassificationRule:
    """System keyword rule"""
    name: str
    keywords: Tuple[str, ...]
    category_id: str
    is_business: bool
    base_confidence: float
    direction: str = EXPENSE

    def alternatives(self, term: str) -> List[str]:
        return [normalize_text(alt) for alt in term.split('|') if alt.strip()]


@dataclass(frozen=True)
class UserRule:
    """User override: any substring hit wins outright"""
    pattern: str
    category_id: str
    is_business: bool
    enabled: bool = True

    @property
    def normalized_pattern(self) -> str:
        return normalize_text(self.pattern)


SYSTEM_RULES: List[ClassificationRule] = [
    # Transport
    ClassificationRule('rail', ('電車|jr|地下鉄|メトロ|suica|pasmo|icoca|新幹線|運賃|乗車券',),
                       TRAVEL, True, 0.8),
    ClassificationRule('taxi', ('タクシー|taxi|uber|ハイヤー',), TRAVEL, True, 0.75),
    ClassificationRule('air', ('航空|飛行機|空港|airline|ana|jal|peach',), TRAVEL, True, 0.8),
    ClassificationRule('car', ('ガソリン|エネオス|eneos|出光|コスモ石油|駐車場|パーキング|parking|高速道路',),
                       TRAVEL, True, 0.7),
    ClassificationRule('lodging', ('ホテル|hotel|旅館|宿泊|東横イン|アパホテル',), TRAVEL, True, 0.75),

    # Office running costs
    ClassificationRule('communication', ('携帯|スマホ|docomo|ドコモ|softbank|ソフトバンク|au|楽天モバイル|'
                                         'インターネット|プロバイダ|wifi|wi-fi|通信|郵便|切手|レターパック',),
                       COMMUNICATION, True, 0.75),
    ClassificationRule('supplies', ('文房具|事務用品|コピー用紙|ボールペン|ノート|インク|トナー|'
                                    'アスクル|askul|ケーブル|usb|電池',),
                       SUPPLIES, True, 0.7),
    ClassificationRule('cafe_meeting', ('スターバックス|スタバ|starbucks|ドトール|タリーズ|コメダ|カフェ|cafe|喫茶',
                                        'コーヒー|coffee|珈琲|ラテ|latte|打ち合わせ|打合せ'),
                       MEETING, True, 0.7),
    ClassificationRule('meeting', ('会議|打ち合わせ|打合せ|ミーティング|meeting|商談',), MEETING, True, 0.75),
    ClassificationRule('entertainment', ('接待|懇親会|会食|お歳暮|お中元|手土産|贈答',),
                       ENTERTAINMENT, True, 0.75),
    ClassificationRule('advertising', ('広告|宣伝|google ads|チラシ|名刺|ポスター',), ADVERTISING, True, 0.75),
    ClassificationRule('utilities', ('電気料金|電力|ガス料金|水道|東京電力|東京ガス',), UTILITIES, True, 0.6),
    ClassificationRule('rent', ('家賃|賃料|レンタルオフィス|コワーキング|coworking|シェアオフィス',),
                       RENT, True, 0.75),
    ClassificationRule('insurance', ('保険料|損害保険|火災保険',), INSURANCE, True, 0.6),
    ClassificationRule('taxes', ('収入印紙|印紙|事業税|固定資産税|自動車税|消費税',), TAXES, True, 0.75),
    ClassificationRule('fees', ('手数料|fee|決済代行',), FEES, True, 0.75),
    ClassificationRule('outsourcing', ('外注|業務委託|クラウドワークス|ランサーズ|ココナラ',),
                       OUTSOURCING, True, 0.75),
    ClassificationRule('software', ('サブスク|subscription|saas|ソフトウェア|software|adobe|microsoft|'
                                    'github|aws|slack|zoom|notion|dropbox|クラウド',),
                       SOFTWARE, True, 0.75),
    ClassificationRule('books', ('書籍|書店|本屋|技術書|雑誌|新聞|kindle|紀伊國屋|丸善|ジュンク堂',),
                       BOOKS, True, 0.7),
    ClassificationRule('training', ('セミナー|研修|講座|勉強会|カンファレンス|conference|udemy|受講料',),
                       TRAINING, True, 0.75),
    ClassificationRule('repairs', ('修理|修繕|メンテナンス|repair',), REPAIRS, True, 0.7),

    # Personal spending
    ClassificationRule('groceries', ('スーパー|イオン|西友|マルエツ|食料品|食材|弁当|惣菜|'
                                     'セブンイレブン|ファミリーマート|ファミマ|ローソン|コンビニ',),
                       PERSONAL_FOOD, False, 0.65),
    ClassificationRule('dining', ('レストラン|ラーメン|居酒屋|焼肉|寿司|マクドナルド|吉野家|すき家|ファミレス',),
                       PERSONAL_FOOD, False, 0.6),
    ClassificationRule('medical', ('病院|クリニック|薬局|ドラッグストア|歯科|医院|処方',),
                       PERSONAL_MEDICAL, False, 0.75),
    ClassificationRule('leisure', ('映画|カラオケ|ゲーム|遊園地|フィットネス|netflix|spotify',),
                       PERSONAL_LEISURE, False, 0.65),
    ClassificationRule('clothing', ('ユニクロ|uniqlo|gu|しまむら|衣料|洋服|靴',),
                       PERSONAL_CLOTHING, False, 0.7),
    ClassificationRule('housing', ('住宅ローン|マンション管理費|自宅',), PERSONAL_HOUSING, False, 0.6),

    # Revenue
    ClassificationRule('sales', ('売上|報酬|入金|請求|invoice',), SALES, True, 0.8, REVENUE),
    ClassificationRule('interest', ('利息|利子|interest',), INTEREST_INCOME, True, 0.85, REVENUE),
]


class RuleCatalog:
    """
    System + user rules, validated against the category registry
    """

    def __init__(self,
                 registry: CategoryRegistry,
                 system_rules: Optional[Sequence[ClassificationRule]] = None,
                 user_rules: Iterable[UserRule] = ()):
        """
        Args:
            registry: Category registry every rule must resolve against
            system_rules: Keyword table (default: SYSTEM_RULES)
            user_rules: User override rules, checked in order

        Raises:
            UnknownCategoryError: if any rule names a category not in the registry
            ValueError: for empty rules or confidences outside [0, 1]
        """
        self.registry = registry
        self.system_rules: List[ClassificationRule] = list(SYSTEM_RULES if system_rules is None else system_rules)
        self.user_rules: List[UserRule] = []

        for rule in self.system_rules:
            registry.get(rule.category_id)
            if not rule.keywords:
                raise ValueError(f"Rule {rule.name} has no keywords")
            if not 0.0 <= rule.base_confidence <= 1.0:
                raise ValueError(f"Rule {rule.name} confidence out of range: {rule.base_confidence}")

        for rule in user_rules:
            self._add(rule)

    def _add(self, rule: UserRule):
        self.registry.get(rule.category_id)
        if not rule.normalized_pattern:
            raise ValueError("User rule pattern must not be empty")
        self.user_rules.append(rule)

    def add_user_rule(self, pattern: str, category: str, is_business: bool) -> UserRule:
        """
        Register a user rule by category id or name

        Returns:
            The stored UserRule
        """
        resolved = self.registry.resolve(category)
        rule = UserRule(pattern=pattern, category_id=resolved.id, is_business=is_business)
        self._add(rule)
        return rule

    def lookup(self, text: str, direction: Optional[str] = None) -> List[ClassificationCandidate]:
        """
        All rule candidates for the text, best first

        A user rule hit short-circuits to that single candidate. Rules with
        no matched term are left out.
        """
        normalized = normalize_text(text)
        override = self.match_user_rule(normalized)
        if override:
            return [override]
        return self.match_system_rules(normalized, direction)

    def match_user_rule(self, text: str) -> Optional[ClassificationCandidate]:
        normalized = normalize_text(text)
        if not normalized:
            return None

        for rule in self.user_rules:
            if not rule.enabled:
                continue
            pattern = rule.normalized_pattern
            if pattern in normalized:
                category = self.registry.get(rule.category_id)
                return ClassificationCandidate(
                    category_name=category.name,
                    category_id=category.id,
                    is_business=rule.is_business,
                    confidence=1.0,
                    matched_evidence=(rule.pattern,),
                    reasoning=f"User rule '{rule.pattern}' matched",
                    source='user_override',
                )
        return None

    def match_system_rules(self, text: str, direction: Optional[str] = None) -> List[ClassificationCandidate]:
        normalized = normalize_text(text)
        if not normalized:
            return []

        scored = []
        for index, rule in enumerate(self._rules_for(direction)):
            matched = []
            for term in rule.keywords:
                hit = next((alt for alt in rule.alternatives(term) if contains_keyword(normalized, alt)), None)
                if hit:
                    matched.append(hit)
            if not matched:
                continue

            ratio = len(matched) / len(rule.keywords)
            scored.append((ratio * rule.base_confidence, index, rule, matched, ratio))

        return [self._candidate(rule, matched, confidence, ratio, fuzzy=False)
                for confidence, _, rule, matched, ratio in self._ranked(scored)]

    def fuzzy_match_system_rules(self,
                                 text: str,
                                 direction: Optional[str] = None,
                                 threshold: float = 0.8) -> List[ClassificationCandidate]:
        """
        Secondary pass tolerant of OCR typos

        Only alternatives of at least MIN_FUZZY_LENGTH characters take part,
        and every candidate is discounted by FUZZY_PENALTY.
        """
        normalized = normalize_text(text)
        if not normalized:
            return []

        scored = []
        for index, rule in enumerate(self._rules_for(direction)):
            matched = []
            for term in rule.keywords:
                best_alt, best_score = None, 0.0
                for alt in rule.alternatives(term):
                    if len(alt) < MIN_FUZZY_LENGTH:
                        continue
                    score = best_window_similarity(normalized, alt)
                    if score > best_score:
                        best_alt, best_score = alt, score
                if best_alt is not None and best_score >= threshold:
                    matched.append(best_alt)
            if not matched:
                continue

            ratio = len(matched) / len(rule.keywords)
            scored.append((ratio * rule.base_confidence * FUZZY_PENALTY, index, rule, matched, ratio))

        return [self._candidate(rule, matched, confidence, ratio, fuzzy=True)
                for confidence, _, rule, matched, ratio in self._ranked(scored)]

    def _rules_for(self, direction: Optional[str]) -> List[ClassificationRule]:
        if direction is None:
            return self.system_rules
        return [r for r in self.system_rules if r.direction == direction]

    @staticmethod
    def _ranked(scored):
        # Highest confidence first; equal confidence keeps catalog order
        return sorted(scored, key=lambda item: (-item[0], item[1]))

    def _candidate(self, rule: ClassificationRule, matched: List[str], confidence: float,
                   ratio: float, fuzzy: bool) -> ClassificationCandidate:
        category = self.registry.get(rule.category_id)
        kind = 'fuzzy keyword' if fuzzy else 'keyword'
        return ClassificationCandidate(
            category_name=category.name,
            category_id=category.id,
            is_business=rule.is_business,
            confidence=confidence,
            matched_evidence=tuple(matched),
            reasoning=(f"Rule '{rule.name}' {kind} match "
                       f"({len(matched)}/{len(rule.keywords)} terms: {', '.join(matched)})"),
            source='keyword_fuzzy' if fuzzy else 'keyword',
        )

    @classmethod
    def from_custom_rules(cls,
                          registry: CategoryRegistry,
                          records: Iterable[Dict],
                          system_rules: Optional[Sequence[ClassificationRule]] = None) -> 'RuleCatalog':
        """
        Build a catalog from host "custom rule" records

        Expected dict structure:
        {
            'keyword': str,
            'category': str,  # category id or name
            'is_business' / 'isBusiness': bool,
            'enabled': bool (optional),
        }
        """
        user_rules = []
        for record in records:
            category = registry.resolve(record['category'])
            is_business = record.get('is_business', record.get('isBusiness', category.is_business))
            user_rules.append(UserRule(
                pattern=record['keyword'],
                category_id=category.id,
                is_business=bool(is_business),
                enabled=bool(record.get('enabled', True)),
            ))
        return cls(registry, system_rules=system_rules, user_rules=user_rules)


DEFAULT_USER_RULES: List[Dict] = [
    {'keyword': 'スターバックス', 'category': '会議費', 'is_business': True},
    {'keyword': 'セブンイレブン', 'category': '食費', 'is_business': False},
    {'keyword': 'エネオス', 'category': '旅費交通費', 'is_business': True},
]


def load_user_rules_from_db(conn, user_id: str) -> List[Dict]:
    """Load enabled user rules for one user from the database"""
    cursor = conn.cursor()
    try:
        cursor.execute("""
            SELECT keyword, category_id, is_business, enabled
            FROM user_rules
            WHERE user_id = %s AND enabled = TRUE
            ORDER BY priority, rule_id
        """, (user_id,))

        rules = []
        for row in cursor.fetchall():
            rules.append({
                'keyword': row[0],
                'category': row[1],
                'is_business': row[2],
                'enabled': row[3],
            })
        return rules
    finally:
        cursor.close()
