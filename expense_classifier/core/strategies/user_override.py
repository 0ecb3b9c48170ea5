"""
User Override Strategy

A user rule whose pattern appears in the transaction text wins outright.
"""
from typing import Optional

from ..models import ClassificationCandidate, TransactionRecord, UserProfile
from ..rule_catalog import RuleCatalog
from .base import ClassificationStrategy


class UserOverrideStrategy(ClassificationStrategy):

    name = 'user_override'

    def __init__(self, catalog: RuleCatalog):
        super().__init__(catalog.registry)
        self.catalog = catalog

    def classify(self,
                 record: TransactionRecord,
                 profile: Optional[UserProfile] = None) -> Optional[ClassificationCandidate]:
        return self.catalog.match_user_rule(record.combined_text())
