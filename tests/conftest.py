"""
Shared fixtures for the expense classifier test suite
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from expense_classifier.config import ClassifierSettings
from expense_classifier.core.categorization_orchestrator import TransactionClassifier
from expense_classifier.core.knowledge_store import InMemoryKnowledgeStore
from expense_classifier.core.models import TransactionRecord, UserProfile
from expense_classifier.core.taxonomy import CategoryRegistry


class FakeClock:
    """Monotonic clock the tests advance by hand"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeUtcClock:
    """datetime clock for correction timestamps"""

    def __init__(self):
        self.now = datetime(2025, 1, 30, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


def make_record(description: str = '', amount='-1000', **kwargs) -> TransactionRecord:
    """Helper to create a TransactionRecord"""
    return TransactionRecord(description=description, amount=Decimal(str(amount)), **kwargs)


@pytest.fixture
def registry():
    return CategoryRegistry()


@pytest.fixture
def settings():
    return ClassifierSettings()


@pytest.fixture
def store():
    return InMemoryKnowledgeStore()


@pytest.fixture
def classifier(registry, store, settings):
    return TransactionClassifier(registry=registry, store=store, settings=settings)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def utc_clock():
    return FakeUtcClock()


@pytest.fixture
def it_profile():
    return UserProfile.from_dict({
        'industry': 'it_tech',
        'preferences': {
            'taxi_policy': 'business',
            'coffee_work_policy': 'business',
            'phone_business_ratio': 60,
        },
    })
