"""
Classification strategies, listed in cascade priority order
"""
from .base import ClassificationStrategy
from .user_override import UserOverrideStrategy
from .merchant_learning import MerchantLearningStrategy
from .merchant_statistics import MerchantStatisticsStrategy
from .industry import IndustryProfileStrategy
from .preference import PreferencePolicyStrategy
from .contextual import ContextualHeuristicsStrategy
from .keyword import KeywordStrategy
from .llm import LLMStrategy
from .fallback import FallbackStrategy

__all__ = [
    'ClassificationStrategy',
    'UserOverrideStrategy',
    'MerchantLearningStrategy',
    'MerchantStatisticsStrategy',
    'IndustryProfileStrategy',
    'PreferencePolicyStrategy',
    'ContextualHeuristicsStrategy',
    'KeywordStrategy',
    'LLMStrategy',
    'FallbackStrategy',
]
