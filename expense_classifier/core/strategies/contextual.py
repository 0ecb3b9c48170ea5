"""
Contextual Heuristics Strategy

Signals from when and how much rather than what:
- Time: lunch-window meals, after-hours spending with no business signal
- Amount: equipment at or above the depreciation threshold, tiny purchases

The time and amount checks are independent; the stronger one is returned
and the time-based candidate wins a tie.
"""
from decimal import Decimal
from typing import Optional

from ...config import ClassifierSettings
from ..models import (
    BUSINESS_LUNCH_POLICY,
    DEPRECIATION_THRESHOLD,
    ClassificationCandidate,
    TransactionRecord,
    UserProfile,
)
from ..taxonomy import CategoryRegistry, MEETING, OWNER_DRAWINGS, SUPPLIES, TOOLS_EQUIPMENT
from . import vocabulary
from .base import ClassificationStrategy, find_keywords

LUNCH_CONFIDENCE = 0.75
AFTER_HOURS_CONFIDENCE = 0.60
EQUIPMENT_CONFIDENCE = 0.85
SMALL_AMOUNT_CONFIDENCE = 0.70


class ContextualHeuristicsStrategy(ClassificationStrategy):

    name = 'contextual'

    def __init__(self, registry: CategoryRegistry, settings: Optional[ClassifierSettings] = None):
        super().__init__(registry)
        self.settings = settings or ClassifierSettings()
        registry.require(MEETING, OWNER_DRAWINGS, SUPPLIES, TOOLS_EQUIPMENT)

    def classify(self,
                 record: TransactionRecord,
                 profile: Optional[UserProfile] = None) -> Optional[ClassificationCandidate]:
        if record.is_revenue:
            return None

        text = record.combined_text()
        by_time = self._by_time(record, text, profile)
        by_amount = self._by_amount(record, text, profile)

        if by_time is None:
            return by_amount
        if by_amount is None or by_time.confidence >= by_amount.confidence:
            return by_time
        return by_amount

    def _by_time(self, record: TransactionRecord, text: str,
                 profile: Optional[UserProfile]) -> Optional[ClassificationCandidate]:
        hour = record.hour
        if hour is None:
            return None

        s = self.settings
        food = find_keywords(text, vocabulary.FOOD_DRINK)
        if s.lunch_start <= hour <= s.lunch_end and food:
            is_business = profile.is_business(BUSINESS_LUNCH_POLICY, default=False) if profile else False
            return self.candidate(
                MEETING if is_business else OWNER_DRAWINGS,
                is_business,
                LUNCH_CONFIDENCE,
                reasoning=f"Meal during lunch hours ({hour}:00)",
                evidence=food,
            )

        in_business_hours = s.business_start <= hour <= s.business_end
        if not in_business_hours and not find_keywords(text, vocabulary.BUSINESS_INTENT):
            return self.candidate(
                OWNER_DRAWINGS,
                False,
                AFTER_HOURS_CONFIDENCE,
                reasoning=f"Spent outside business hours ({hour}:00) with no business signal",
                evidence=(f"{hour}:00",),
            )
        return None

    def _by_amount(self, record: TransactionRecord, text: str,
                   profile: Optional[UserProfile]) -> Optional[ClassificationCandidate]:
        amount = record.abs_amount
        if amount == 0:
            return None

        threshold = self.settings.depreciation_threshold
        if profile is not None:
            threshold = Decimal(str(profile.number(DEPRECIATION_THRESHOLD, float(threshold))))

        equipment = find_keywords(text, vocabulary.EQUIPMENT)
        if amount >= threshold and equipment:
            return self.candidate(
                TOOLS_EQUIPMENT,
                True,
                EQUIPMENT_CONFIDENCE,
                reasoning=f"Equipment purchase of {amount:,.0f} at or above the {threshold:,.0f} depreciation threshold",
                evidence=equipment,
            )

        if amount < self.settings.small_amount_floor:
            return self.candidate(
                SUPPLIES,
                True,
                SMALL_AMOUNT_CONFIDENCE,
                reasoning=f"Small purchase under {self.settings.small_amount_floor:,.0f}",
                evidence=(f"{amount:,.0f}",),
            )
        return None
