"""
Classifier settings

All thresholds used by the cascade live here so hosts can tune them from the
environment (or a ``.env`` file) without touching code.
"""
import os
from dataclasses import dataclass, field, fields, replace
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError


DEFAULT_LLM_MODEL = "claude-sonnet-4-20250514"

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off', ''}


@dataclass(frozen=True)
class ClassifierSettings:
    """Tunable thresholds for the classification cascade"""
    min_confidence: float = 0.5
    review_threshold: float = 0.5
    learning_short_circuit: float = 0.9

    # Hours are compared inclusively: start <= hour <= end
    lunch_start: int = 11
    lunch_end: int = 14
    business_start: int = 9
    business_end: int = 18

    small_amount_floor: Decimal = Decimal('500')
    depreciation_threshold: Decimal = Decimal('50000')
    fallback_business_amount: Decimal = Decimal('50000')

    fingerprint_prefix: int = 20
    fuzzy_threshold: float = 0.8
    statistics_ttl_seconds: float = 300.0
    correction_dedup_seconds: float = 600.0

    enable_llm: bool = False
    anthropic_api_key: Optional[str] = field(default=None, repr=False)
    llm_model: str = DEFAULT_LLM_MODEL

    @classmethod
    def from_env(cls, env: Optional[Dict[str, str]] = None, load_env_file: bool = True) -> 'ClassifierSettings':
        """
        Build settings from environment variables

        Every field maps to an upper-case ``CLASSIFIER_`` variable, e.g.
        ``CLASSIFIER_MIN_CONFIDENCE``. ``ENABLE_LLM`` and ``ANTHROPIC_API_KEY``
        keep their conventional names.

        Args:
            env: Mapping to read instead of ``os.environ`` (used by tests)
            load_env_file: Whether to load a ``.env`` file first

        Returns:
            ClassifierSettings

        Raises:
            ConfigurationError: if a variable cannot be parsed
        """
        if env is None:
            if load_env_file:
                load_dotenv()
            env = dict(os.environ)

        overrides = {}
        for f in fields(cls):
            variable = _variable_name(f.name)
            raw = env.get(variable)
            if raw is None:
                continue
            overrides[f.name] = _coerce(variable, raw, f.default)

        settings = cls(**overrides)
        settings.validate()
        return settings

    def validate(self):
        """Check cross-field constraints"""
        for name in ('min_confidence', 'review_threshold', 'learning_short_circuit', 'fuzzy_threshold'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(_variable_name(name), str(value), "must be between 0 and 1")

        for name in ('lunch_start', 'lunch_end', 'business_start', 'business_end'):
            value = getattr(self, name)
            if not 0 <= value <= 23:
                raise ConfigurationError(_variable_name(name), str(value), "must be an hour 0-23")

        if self.lunch_start > self.lunch_end:
            raise ConfigurationError('CLASSIFIER_LUNCH_START', str(self.lunch_start), "after lunch end")
        if self.business_start > self.business_end:
            raise ConfigurationError('CLASSIFIER_BUSINESS_START', str(self.business_start), "after business end")
        if self.fingerprint_prefix < 1:
            raise ConfigurationError('CLASSIFIER_FINGERPRINT_PREFIX', str(self.fingerprint_prefix), "must be positive")

    @property
    def llm_enabled(self) -> bool:
        """LLM strategy runs only when switched on and a key is present"""
        return self.enable_llm and bool(self.anthropic_api_key)

    def with_overrides(self, **kwargs) -> 'ClassifierSettings':
        return replace(self, **kwargs)


def _variable_name(field_name: str) -> str:
    if field_name == 'enable_llm':
        return 'ENABLE_LLM'
    if field_name == 'anthropic_api_key':
        return 'ANTHROPIC_API_KEY'
    return f"CLASSIFIER_{field_name.upper()}"


def _coerce(variable: str, raw: str, default):
    value = raw.strip()
    if isinstance(default, bool):
        lowered = value.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ConfigurationError(variable, raw, "expected a boolean")
    try:
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        if isinstance(default, Decimal):
            return Decimal(value.replace(',', ''))
    except (ValueError, InvalidOperation):
        raise ConfigurationError(variable, raw, f"expected {type(default).__name__}")
    return value or default
