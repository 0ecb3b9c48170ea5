"""
Fallback Strategy

Always returns a result: a miscellaneous category tagged with a best guess
at business vs personal, at a confidence low enough (0.1-0.3) that the
review UI must flag it.
"""
from typing import Optional

from ...config import ClassifierSettings
from ..models import ClassificationCandidate, TransactionRecord, UserProfile
from ..taxonomy import CategoryRegistry, MISC_BUSINESS, MISC_INCOME
from . import vocabulary
from .base import ClassificationStrategy, find_keywords

KEYWORD_CONFIDENCE = 0.3
AMOUNT_CONFIDENCE = 0.2
DEFAULT_CONFIDENCE = 0.1


class FallbackStrategy(ClassificationStrategy):

    name = 'fallback'

    def __init__(self, registry: CategoryRegistry, settings: Optional[ClassifierSettings] = None):
        super().__init__(registry)
        self.settings = settings or ClassifierSettings()
        registry.require(MISC_BUSINESS, MISC_INCOME)

    def classify(self,
                 record: TransactionRecord,
                 profile: Optional[UserProfile] = None) -> ClassificationCandidate:
        hints = find_keywords(record.combined_text(), vocabulary.BUSINESS_HINTS)

        if record.is_revenue:
            return self.candidate(
                MISC_INCOME,
                True,
                KEYWORD_CONFIDENCE if hints else DEFAULT_CONFIDENCE,
                reasoning="Unrecognized income, review required",
                evidence=hints,
            )

        if hints:
            return self.candidate(
                MISC_BUSINESS,
                True,
                KEYWORD_CONFIDENCE,
                reasoning=f"No confident match; business wording found ({', '.join(hints)})",
                evidence=hints,
            )

        if record.abs_amount > self.settings.fallback_business_amount:
            return self.candidate(
                MISC_BUSINESS,
                True,
                AMOUNT_CONFIDENCE,
                reasoning=f"No confident match; large amount {record.abs_amount:,.0f} presumed business",
                evidence=(f"{record.abs_amount:,.0f}",),
            )

        return self.candidate(
            MISC_BUSINESS,
            False,
            DEFAULT_CONFIDENCE,
            reasoning="No confident match, review required",
        )
