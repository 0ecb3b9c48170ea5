"""
Preference Policy Strategy

Applies the user's declared expense policies (taxi, cafe work, phone
business share, ...) to the spending types they cover. Every policy has a
built-in default, so a sparse profile never breaks classification.
"""
from typing import Optional

from ..models import (
    CLIENT_MEETING_MEALS,
    COFFEE_WORK_POLICY,
    ENERGY_DRINK_POLICY,
    PARKING_DEFAULT,
    PHONE_BUSINESS_RATIO,
    PUBLIC_TRANSPORT_DEFAULT,
    TAXI_POLICY,
    TECHNICAL_BOOKS_DEFAULT,
    ClassificationCandidate,
    ExpensePolicy,
    TransactionRecord,
    UserProfile,
)
from ..merchant_normalizer import normalize_text
from ..taxonomy import CategoryRegistry, COMMUNICATION, MEETING, OWNER_DRAWINGS, TRAINING, TRAVEL
from . import vocabulary
from .base import ClassificationStrategy, first_keyword

# Taxi confidence by policy: always fine, case by case, strict
TAXI_CONFIDENCE = {
    ExpensePolicy.BUSINESS: 0.90,
    ExpensePolicy.CASE_BY_CASE: 0.70,
    ExpensePolicy.PERSONAL: 0.50,
}


class PreferencePolicyStrategy(ClassificationStrategy):

    name = 'preference_policy'

    def __init__(self, registry: CategoryRegistry):
        super().__init__(registry)
        registry.require(COMMUNICATION, MEETING, OWNER_DRAWINGS, TRAINING, TRAVEL)

    def classify(self,
                 record: TransactionRecord,
                 profile: Optional[UserProfile] = None) -> Optional[ClassificationCandidate]:
        if profile is None or record.is_revenue:
            return None

        text = record.combined_text()
        if not text:
            return None

        if first_keyword(text, vocabulary.TRANSPORT):
            return self._transport(text, profile)
        if first_keyword(text, vocabulary.FOOD_DRINK):
            return self._food_drink(record, text, profile)
        if first_keyword(text, vocabulary.COMMUNICATION):
            return self._communication(text, profile)
        if first_keyword(text, vocabulary.EDUCATION):
            return self._education(text, profile)
        return None

    def _transport(self, text: str, profile: UserProfile) -> ClassificationCandidate:
        taxi = first_keyword(text, vocabulary.TAXI)
        if taxi:
            policy = profile.policy(TAXI_POLICY, ExpensePolicy.CASE_BY_CASE)
            return self.candidate(
                TRAVEL, True, TAXI_CONFIDENCE[policy],
                reasoning=f"Taxi fare under taxi policy '{policy.value}'",
                evidence=(taxi,),
            )

        parking = first_keyword(text, vocabulary.PARKING)
        if parking:
            is_business = profile.is_business(PARKING_DEFAULT, default=False)
            return self.candidate(
                TRAVEL, is_business, 0.80,
                reasoning="Parking fee per parking preference",
                evidence=(parking,),
            )

        is_business = profile.is_business(PUBLIC_TRANSPORT_DEFAULT, default=False)
        return self.candidate(
            TRAVEL, is_business, 0.85,
            reasoning="Public transport per transport preference",
            evidence=(first_keyword(text, vocabulary.TRANSPORT),),
        )

    def _food_drink(self, record: TransactionRecord, text: str, profile: UserProfile) -> ClassificationCandidate:
        # Client meals are judged on the description only
        description = normalize_text(record.description)
        meal = first_keyword(description, vocabulary.CLIENT_MEAL)
        if meal:
            is_business = profile.is_business(CLIENT_MEETING_MEALS, default=True)
            return self.candidate(
                MEETING, is_business, 0.90,
                reasoning="Meal with a client or business partner",
                evidence=(meal,),
            )

        cafe = first_keyword(normalize_text(record.merchant_name), vocabulary.CAFE)
        if cafe:
            return self._by_policy(
                profile, COFFEE_WORK_POLICY, 0.70, cafe,
                "Cafe used as a workplace per cafe policy",
            )

        drink = first_keyword(text, vocabulary.ENERGY_DRINK)
        if drink:
            return self._by_policy(
                profile, ENERGY_DRINK_POLICY, 0.75, drink,
                "Energy drink per drink policy",
            )

        return self.candidate(
            OWNER_DRAWINGS, False, 0.60,
            reasoning="Everyday meal treated as personal spending",
            evidence=(first_keyword(text, vocabulary.FOOD_DRINK),),
        )

    def _by_policy(self, profile: UserProfile, preference: str, confidence: float,
                   evidence: str, reasoning: str) -> ClassificationCandidate:
        if profile.is_business(preference, default=False):
            return self.candidate(MEETING, True, confidence, reasoning, (evidence,))
        return self.candidate(OWNER_DRAWINGS, False, confidence, reasoning, (evidence,))

    def _communication(self, text: str, profile: UserProfile) -> ClassificationCandidate:
        keyword = first_keyword(text, vocabulary.COMMUNICATION)
        ratio = profile.ratio(PHONE_BUSINESS_RATIO, default=0.0)
        if ratio > 0:
            return self.candidate(
                COMMUNICATION, True, 0.85,
                reasoning=f"Phone/internet split at {ratio:.0%} business use",
                evidence=(keyword,),
                business_ratio=ratio,
            )
        return self.candidate(
            OWNER_DRAWINGS, False, 0.70,
            reasoning="Phone/internet with no declared business share",
            evidence=(keyword,),
        )

    def _education(self, text: str, profile: UserProfile) -> ClassificationCandidate:
        is_business = profile.is_business(TECHNICAL_BOOKS_DEFAULT, default=True)
        return self.candidate(
            TRAINING, is_business, 0.85,
            reasoning="Learning expense per technical education preference",
            evidence=(first_keyword(text, vocabulary.EDUCATION),),
        )
