"""
Expense Classifier

Classifies receipts and statement lines into accounting categories with a
business/personal flag and a confidence score, and gets smarter as users
correct it.
"""

__version__ = "1.0.0"

from .core.categorization_orchestrator import TransactionClassifier
from .core.models import (
    ClassificationResult,
    ExpensePolicy,
    IndustryCategory,
    TransactionRecord,
    UserProfile,
)

__all__ = [
    'TransactionClassifier',
    'ClassificationResult',
    'ExpensePolicy',
    'IndustryCategory',
    'TransactionRecord',
    'UserProfile',
]
