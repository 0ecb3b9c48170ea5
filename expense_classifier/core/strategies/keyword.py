"""
Keyword/Fuzzy Strategy

Best system-rule match from the catalog. The fuzzy pass only runs when no
rule matches exactly, to recover keywords garbled by OCR.
"""
from typing import Optional

from ..models import ClassificationCandidate, TransactionRecord, UserProfile
from ..rule_catalog import EXPENSE, REVENUE, RuleCatalog
from .base import ClassificationStrategy


class KeywordStrategy(ClassificationStrategy):

    name = 'keyword'

    def __init__(self, catalog: RuleCatalog, fuzzy_threshold: float = 0.8):
        super().__init__(catalog.registry)
        self.catalog = catalog
        self.fuzzy_threshold = fuzzy_threshold

    def classify(self,
                 record: TransactionRecord,
                 profile: Optional[UserProfile] = None) -> Optional[ClassificationCandidate]:
        text = record.combined_text()
        if not text:
            return None

        direction = REVENUE if record.is_revenue else EXPENSE
        candidates = self.catalog.match_system_rules(text, direction)
        if not candidates:
            candidates = self.catalog.fuzzy_match_system_rules(text, direction, self.fuzzy_threshold)
        return candidates[0] if candidates else None
