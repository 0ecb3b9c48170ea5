"""
Industry/Profile Strategy

Disambiguates spending by the user's declared industry: the same
subscription is tooling for a developer and leisure for a retailer.

Order of checks per industry:
1. Industry tools/services  -> mapped category, 0.90
2. Education keywords       -> 研修費, 0.85, flag from the technical education preference
3. Travel keywords          -> 旅費交通費, business, 0.88
"""
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from ..models import (
    ClassificationCandidate,
    IndustryCategory,
    TECHNICAL_BOOKS_DEFAULT,
    TransactionRecord,
    UserProfile,
)
from ..taxonomy import (
    CategoryRegistry,
    ADVERTISING, BOOKS, COMMUNICATION, FEES, INSURANCE, OUTSOURCING, PURCHASES,
    REPAIRS, SOFTWARE, SUPPLIES, TOOLS_EQUIPMENT, TRAINING, TRAVEL,
)
from .base import ClassificationStrategy, first_keyword

TOOL_CONFIDENCE = 0.90
EDUCATION_CONFIDENCE = 0.85
TRAVEL_CONFIDENCE = 0.88


@dataclass(frozen=True)
class IndustryKeywords:
    """Keyword table for one industry"""
    tools: Dict[str, str] = field(default_factory=dict)  # keyword -> category id
    education: Tuple[str, ...] = ()
    travel: Tuple[str, ...] = ()


INDUSTRY_KEYWORDS: Dict[IndustryCategory, IndustryKeywords] = {
    IndustryCategory.IT_TECH: IndustryKeywords(
        tools={
            'github': SOFTWARE, 'aws': COMMUNICATION, 'azure': COMMUNICATION, 'gcp': COMMUNICATION,
            'heroku': COMMUNICATION, 'vercel': COMMUNICATION, 'docker': SOFTWARE, 'kubernetes': SOFTWARE,
            'jetbrains': SOFTWARE, 'ide': SOFTWARE, 'エディター': SOFTWARE, '開発ツール': SOFTWARE,
            'postman': SOFTWARE, 'figma': SOFTWARE, 'sketch': SOFTWARE,
        },
        education=('udemy', 'coursera', '技術書', "o'reilly", 'プログラミング', '勉強会'),
        travel=('技術カンファレンス', 'ハッカソン', '勉強会', '客先'),
    ),
    IndustryCategory.CREATIVE_MEDIA: IndustryKeywords(
        tools={
            'adobe': SOFTWARE, 'creative cloud': SOFTWARE, 'photoshop': SOFTWARE, 'illustrator': SOFTWARE,
            'premiere': SOFTWARE, 'after effects': SOFTWARE, 'カメラ': TOOLS_EQUIPMENT, 'レンズ': TOOLS_EQUIPMENT,
            'マイク': SUPPLIES, '照明': SUPPLIES, '三脚': SUPPLIES, '素材サイト': SOFTWARE,
        },
        education=('デザイン書', 'アート', 'ギャラリー', '美術館'),
        travel=('撮影', '取材', 'ロケ', '展示会'),
    ),
    IndustryCategory.CONSULTING_BUSINESS: IndustryKeywords(
        tools={
            'powerpoint': SOFTWARE, 'プレゼンツール': SOFTWARE, 'スーツ': SUPPLIES,
            'ビジネスバッグ': SUPPLIES, '資料印刷': SUPPLIES, 'コンサルティング': OUTSOURCING,
        },
        education=('mba', 'ビジネス書', '経営', 'マネジメント', 'セミナー'),
        travel=('出張', '客先訪問', '商談'),
    ),
    IndustryCategory.HEALTHCARE_WELFARE: IndustryKeywords(
        tools={'医療機器': TOOLS_EQUIPMENT, '白衣': SUPPLIES, '聴診器': SUPPLIES, '器具': SUPPLIES},
        education=('医学書', '研修', '学会', '症例'),
        travel=('往診', '学会'),
    ),
    IndustryCategory.EDUCATION_CULTURE: IndustryKeywords(
        tools={'教材': SUPPLIES, 'テキスト': BOOKS, 'ホワイトボード': SUPPLIES, 'プロジェクター': TOOLS_EQUIPMENT},
        education=('専門書', '資格', '研修', '学会'),
        travel=('出張授業', '学会'),
    ),
    IndustryCategory.CONSTRUCTION_REAL_ESTATE: IndustryKeywords(
        tools={'工具': SUPPLIES, '測定器': TOOLS_EQUIPMENT, '安全用品': SUPPLIES, 'cad': SOFTWARE, '図面': SUPPLIES},
        education=('建築書', '法規', '資格'),
        travel=('現場', '物件', '工事現場'),
    ),
    IndustryCategory.RETAIL_COMMERCE: IndustryKeywords(
        tools={
            '仕入れ': PURCHASES, '仕入': PURCHASES, 'posレジ': TOOLS_EQUIPMENT, '包装材': SUPPLIES,
            'ラベル': SUPPLIES, '梱包': SUPPLIES, 'ecサイト': FEES, 'shopify': SOFTWARE,
        },
        education=('マーケティング', '商品知識'),
        travel=('展示会', '商談'),
    ),
    IndustryCategory.FOOD_SERVICE: IndustryKeywords(
        tools={'食材': PURCHASES, '調理器具': SUPPLIES, '食器': SUPPLIES, '制服': SUPPLIES, '冷蔵庫': TOOLS_EQUIPMENT},
        education=('料理', 'レシピ', '食品衛生', '調理技術'),
        travel=('食材仕入れ', '料理教室'),
    ),
    IndustryCategory.TRANSPORTATION_LOGISTICS: IndustryKeywords(
        tools={'車両': REPAIRS, 'gps': SUPPLIES, '梱包': SUPPLIES, 'ガソリン': TRAVEL, '軽油': TRAVEL},
        education=('運転', '物流', '安全講習'),
        travel=('配送', '営業所'),
    ),
    IndustryCategory.MANUFACTURING: IndustryKeywords(
        tools={'機械': TOOLS_EQUIPMENT, '工具': SUPPLIES, '部品': PURCHASES, '材料': PURCHASES},
        education=('技術書', '品質管理', '安全'),
        travel=('工場', '取引先', '展示会'),
    ),
    IndustryCategory.FINANCE_INSURANCE: IndustryKeywords(
        tools={'電卓': SUPPLIES, '契約書': SUPPLIES, 'スーツ': SUPPLIES, '保険': INSURANCE, '広告': ADVERTISING},
        education=('金融', '投資', 'fp', '資格'),
        travel=('顧客訪問', 'セミナー'),
    ),
    IndustryCategory.AGRICULTURE_FISHERY: IndustryKeywords(
        tools={'農機具': TOOLS_EQUIPMENT, '種子': PURCHASES, '肥料': PURCHASES, '農薬': PURCHASES, '餌': PURCHASES},
        education=('農業技術', '品種改良', '病害虫'),
        travel=('市場', '農協'),
    ),
    IndustryCategory.OTHER_SERVICES: IndustryKeywords(
        tools={'専用機器': TOOLS_EQUIPMENT, '工具': SUPPLIES, '材料': PURCHASES, '消耗品': SUPPLIES},
        education=('技術', '資格', '研修'),
        travel=('顧客', 'セミナー'),
    ),
}


class IndustryProfileStrategy(ClassificationStrategy):
    """
    Industry-specific keyword classification
    """

    name = 'industry_profile'

    def __init__(self, registry: CategoryRegistry, industry_keywords: Optional[Dict[IndustryCategory, IndustryKeywords]] = None):
        """
        Args:
            registry: Category registry
            industry_keywords: Table to use instead of INDUSTRY_KEYWORDS

        Raises:
            UnknownCategoryError: if a table entry maps to a missing category
        """
        super().__init__(registry)
        self.industry_keywords = INDUSTRY_KEYWORDS if industry_keywords is None else industry_keywords

        registry.require(TRAINING, TRAVEL)
        for keywords in self.industry_keywords.values():
            registry.require(*keywords.tools.values())

    def classify(self,
                 record: TransactionRecord,
                 profile: Optional[UserProfile] = None) -> Optional[ClassificationCandidate]:
        if profile is None or profile.industry is None:
            return None

        keywords = self.industry_keywords.get(profile.industry)
        if keywords is None:
            return None

        text = record.combined_text()
        if not text:
            return None
        industry = profile.industry.value

        tool = first_keyword(text, list(keywords.tools))
        if tool:
            return self.candidate(
                keywords.tools[tool],
                True,
                TOOL_CONFIDENCE,
                reasoning=f"Industry tool or service for {industry}: {tool}",
                evidence=(tool,),
            )

        topic = first_keyword(text, keywords.education)
        if topic:
            is_business = profile.is_business(TECHNICAL_BOOKS_DEFAULT, default=True)
            return self.candidate(
                TRAINING,
                is_business,
                EDUCATION_CONFIDENCE,
                reasoning=f"Professional education for {industry}: {topic}",
                evidence=(topic,),
            )

        trip = first_keyword(text, keywords.travel)
        if trip:
            return self.candidate(
                TRAVEL,
                True,
                TRAVEL_CONFIDENCE,
                reasoning=f"Business travel for {industry}: {trip}",
                evidence=(trip,),
            )

        return None
