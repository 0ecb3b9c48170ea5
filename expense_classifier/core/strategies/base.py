"""
Base class for classification strategies
"""
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence

from ..merchant_normalizer import contains_keyword, normalize_text
from ..models import ClassificationCandidate, TransactionRecord, UserProfile
from ..taxonomy import CategoryRegistry


class ClassificationStrategy(ABC):
    """
    One signal source in the cascade

    ``classify`` returns None when the strategy has no evidence. It must
    not raise for malformed or empty text.
    """

    name = 'strategy'

    def __init__(self, registry: CategoryRegistry):
        self.registry = registry

    @abstractmethod
    def classify(self,
                 record: TransactionRecord,
                 profile: Optional[UserProfile] = None) -> Optional[ClassificationCandidate]:
        """Propose a category for the record, or None"""

    def candidate(self,
                  category_id: str,
                  is_business: bool,
                  confidence: float,
                  reasoning: str,
                  evidence: Iterable[str] = (),
                  business_ratio: Optional[float] = None) -> ClassificationCandidate:
        category = self.registry.get(category_id)
        return ClassificationCandidate(
            category_name=category.name,
            category_id=category.id,
            is_business=is_business,
            confidence=confidence,
            matched_evidence=tuple(evidence),
            reasoning=reasoning,
            business_ratio=business_ratio,
            source=self.name,
        )


def find_keywords(text: str, keywords: Sequence[str]) -> List[str]:
    """Keywords (normalized) present in already-normalized text, in list order"""
    if not text:
        return []
    hits = []
    for keyword in keywords:
        normalized = normalize_text(keyword)
        if contains_keyword(text, normalized):
            hits.append(normalized)
    return hits


def first_keyword(text: str, keywords: Sequence[str]) -> Optional[str]:
    hits = find_keywords(text, keywords)
    return hits[0] if hits else None
