"""
Expense Classifier core

Cascade of classification strategies that routes every transaction to an
account category with a confidence score, and learns from user corrections.
"""

# Expose main classes for easy imports
from .categorization_orchestrator import CascadeOrchestrator, TransactionClassifier
from .feedback import CorrectionFeedbackHandler
from .models import ClassificationCandidate, ClassificationResult, TransactionRecord, UserProfile
from .taxonomy import CategoryRegistry

__all__ = [
    'CascadeOrchestrator',
    'TransactionClassifier',
    'CorrectionFeedbackHandler',
    'ClassificationCandidate',
    'ClassificationResult',
    'TransactionRecord',
    'UserProfile',
    'CategoryRegistry',
]
