"""
Correction Feedback Handler

The only writer to the merchant knowledge store. Each distinct correction
increments the fingerprint's count; a retried write carrying the same
correction key is applied at most once.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from ..errors import CorrectionPersistenceError, KnowledgeStoreError
from .knowledge_store import CorrectionEvent, MerchantKnowledgeStore, utc_now
from .merchant_normalizer import fingerprint
from .models import MerchantLearningRecord
from .taxonomy import Category, CategoryRegistry

logger = logging.getLogger(__name__)


class CorrectionFeedbackHandler:
    """
    Applies user corrections to the merchant knowledge store
    """

    def __init__(self,
                 store: MerchantKnowledgeStore,
                 registry: CategoryRegistry,
                 prefix_length: int = 20,
                 clock: Callable[[], datetime] = utc_now):
        """
        Args:
            store: Knowledge store to update
            registry: Corrections must name a category in this registry
            prefix_length: Description prefix used in the fingerprint
            clock: Returns the correction timestamp (injectable for tests)
        """
        self.store = store
        self.registry = registry
        self.prefix_length = prefix_length
        self.clock = clock

    def resolve_category(self, category_name: Optional[str], category_id: Optional[str]) -> Category:
        """
        Id wins; a name given alongside it must agree

        Raises:
            UnknownCategoryError: unknown id or name
            ValueError: neither given, or id and name disagree
        """
        if category_id:
            category = self.registry.get(category_id)
            if category_name and category_name.strip() != category.name:
                raise ValueError(
                    f"Category name {category_name!r} does not match id {category_id} ({category.name})"
                )
            return category
        if category_name:
            return self.registry.by_name(category_name)
        raise ValueError("A correction needs a category id or name")

    def record_correction(self,
                          merchant_name: Optional[str],
                          description: Optional[str],
                          category_name: Optional[str],
                          category_id: Optional[str],
                          is_business: bool,
                          correction_key: Optional[str] = None) -> MerchantLearningRecord:
        """
        Record that the user corrected a transaction's category

        Args:
            merchant_name: Merchant shown on the transaction
            description: Transaction description
            category_name: Corrected category name
            category_id: Corrected category id
            is_business: Corrected business flag
            correction_key: Stable id of the UI action, for at-most-once semantics

        Returns:
            The learned record after the correction

        Raises:
            UnknownCategoryError: the category is not in the registry
            ValueError: no merchant or description text to learn from
            CorrectionPersistenceError: the store could not be written (retriable)
        """
        category = self.resolve_category(category_name, category_id)

        if not ((merchant_name or '').strip() or (description or '').strip()):
            raise ValueError("A correction needs a merchant name or description")

        event = CorrectionEvent(
            fingerprint=fingerprint(merchant_name, description, self.prefix_length),
            merchant_name=(merchant_name or '').strip() or None,
            category_id=category.id,
            category_name=category.name,
            is_business=bool(is_business),
            corrected_at=self.clock(),
            correction_key=correction_key,
        )

        try:
            outcome = self.store.apply_correction(event)
        except CorrectionPersistenceError:
            logger.error("Failed to persist correction for %s", event.fingerprint)
            raise
        except KnowledgeStoreError as e:
            logger.error("Failed to persist correction for %s: %s", event.fingerprint, e)
            raise CorrectionPersistenceError(str(e)) from e

        if outcome.applied:
            logger.info("Learned %s -> %s (%d corrections)",
                        event.fingerprint, category.name, outcome.record.correction_count)
        return outcome.record
