"""
Merchant Learning Strategy

Replays what the user taught us through corrections. Confidence grows with
the number of corrections: ``min(0.5 + 0.2 * count, 1.0)``.

When the exact fingerprint is unknown, a near match (OCR noise in the
merchant name or description, similarity >= 0.9) is accepted at a
confidence capped at 0.85 so it can never short-circuit the cascade.
Near matches are searched in a snapshot of the learned records held in a
TTLCache, so a miss does not scan the store on every transaction.
"""
import logging
from typing import List, Optional

from ...errors import KnowledgeStoreError
from ..cache import TTLCache
from ..fuzzy import similarity
from ..knowledge_store import MerchantKnowledgeStore
from ..merchant_normalizer import fingerprint
from ..models import ClassificationCandidate, MerchantLearningRecord, TransactionRecord, UserProfile
from ..taxonomy import CategoryRegistry
from .base import ClassificationStrategy

logger = logging.getLogger(__name__)

NEAR_MATCH_THRESHOLD = 0.9
NEAR_MATCH_CAP = 0.85


class MerchantLearningStrategy(ClassificationStrategy):

    name = 'merchant_learning'

    def __init__(self,
                 store: MerchantKnowledgeStore,
                 registry: CategoryRegistry,
                 prefix_length: int = 20,
                 near_match: bool = True,
                 cache: Optional[TTLCache] = None,
                 cache_key: str = 'learned_records'):
        """
        Args:
            store: Knowledge store holding the learned records
            registry: Learned categories must still exist here
            prefix_length: Description prefix used in fingerprints
            near_match: Fall back to the closest learned fingerprint on a miss
            cache: Holds the near-match snapshot (default: read the store each time)
            cache_key: Key of the snapshot in the cache, one per user
        """
        super().__init__(registry)
        self.store = store
        self.prefix_length = prefix_length
        self.near_match = near_match
        self.cache = cache
        self.cache_key = cache_key

    def classify(self,
                 record: TransactionRecord,
                 profile: Optional[UserProfile] = None) -> Optional[ClassificationCandidate]:
        if not ((record.merchant_name or "").strip() or record.description.strip()):
            return None

        key = fingerprint(record.merchant_name, record.description, self.prefix_length)
        try:
            learned = self.store.get(key)
            if learned is not None:
                return self._from_record(learned, learned.confidence, exact=True)
            if self.near_match:
                return self._near_match(key)
        except KnowledgeStoreError as e:
            logger.warning("Merchant knowledge unavailable, skipping learned lookup: %s", e)
        return None

    def _learned_records(self) -> List[MerchantLearningRecord]:
        if self.cache is None:
            return self.store.records()
        return self.cache.get_or_set(self.cache_key, self.store.records)

    def invalidate_snapshot(self) -> None:
        """Drop the near-match snapshot after the store changed"""
        if self.cache is not None:
            self.cache.invalidate(self.cache_key)

    def _near_match(self, key: str) -> Optional[ClassificationCandidate]:
        best, best_score = None, 0.0
        for learned in self._learned_records():
            score = similarity(key, learned.fingerprint)
            if score > best_score:
                best, best_score = learned, score

        if best is None or best_score < NEAR_MATCH_THRESHOLD:
            return None
        confidence = min(best.confidence * best_score, NEAR_MATCH_CAP)
        return self._from_record(best, confidence, exact=False)

    def _from_record(self, learned: MerchantLearningRecord, confidence: float, exact: bool) -> Optional[ClassificationCandidate]:
        if learned.category_id not in self.registry:
            logger.warning("Learned category %s for %s is no longer in the registry",
                           learned.category_id, learned.fingerprint)
            return None

        times = 'time' if learned.correction_count == 1 else 'times'
        match = 'matched' if exact else 'closely matched'
        return self.candidate(
            learned.category_id,
            learned.is_business,
            confidence,
            reasoning=(f"Merchant {match} a learned correction "
                       f"(corrected {learned.correction_count} {times})"),
            evidence=(learned.fingerprint,),
        )
