"""
Merchant Statistics Strategy

Uses how this merchant was categorized historically. Needs at least three
confirmed transactions; confidence is ``min(share * 0.8, 0.85)`` of the
most frequent category and the strategy abstains below 0.5.
"""
import logging
from typing import Optional

from ..cache import StatisticsSupplier
from ..models import ClassificationCandidate, TransactionRecord, UserProfile
from ..taxonomy import CategoryRegistry
from .base import ClassificationStrategy

logger = logging.getLogger(__name__)

SHARE_WEIGHT = 0.8
MAX_CONFIDENCE = 0.85
MIN_CONFIDENCE = 0.5


class MerchantStatisticsStrategy(ClassificationStrategy):

    name = 'merchant_statistics'

    def __init__(self, supplier: StatisticsSupplier, registry: CategoryRegistry, min_transactions: int = 3):
        super().__init__(registry)
        self.supplier = supplier
        self.min_transactions = min_transactions

    def classify(self,
                 record: TransactionRecord,
                 profile: Optional[UserProfile] = None) -> Optional[ClassificationCandidate]:
        if not record.merchant_name or not record.merchant_name.strip():
            return None

        stats = self.supplier.get(record.merchant_name)
        if stats is None or not stats.is_trusted(self.min_transactions):
            return None

        top = stats.most_frequent()
        if top is None:
            return None
        category_id, count = top

        ratio = count / stats.total_transactions
        confidence = min(ratio * SHARE_WEIGHT, MAX_CONFIDENCE)
        if confidence < MIN_CONFIDENCE:
            return None

        if category_id not in self.registry:
            logger.warning("Statistics for %s reference unknown category %s", record.merchant_name, category_id)
            return None

        category = self.registry.get(category_id)
        return self.candidate(
            category.id,
            category.is_business,
            confidence,
            reasoning=(f"{count} of {stats.total_transactions} past transactions at "
                       f"{stats.merchant_name} were {category.name}"),
            evidence=(stats.merchant_name,),
        )
