"""
LLM Strategy

Last resort before the fallback: a Claude suggestion, capped below the
auto-accept level and validated against the registry.
"""
from typing import Optional

from ..llm_categorizer import LLMCategorizer
from ..models import ClassificationCandidate, TransactionRecord, UserProfile
from .base import ClassificationStrategy


class LLMStrategy(ClassificationStrategy):

    name = 'llm'

    def __init__(self, categorizer: LLMCategorizer):
        super().__init__(categorizer.registry)
        self.categorizer = categorizer

    def classify(self,
                 record: TransactionRecord,
                 profile: Optional[UserProfile] = None) -> Optional[ClassificationCandidate]:
        if not self.categorizer.enabled:
            return None
        if not record.combined_text():
            return None

        suggestion = self.categorizer.categorize(record)
        if suggestion is None:
            return None

        return self.candidate(
            suggestion['category_id'],
            suggestion['is_business'],
            suggestion['confidence'],
            reasoning=f"LLM suggestion: {suggestion['rationale']}",
            evidence=(self.categorizer.model,),
        )
