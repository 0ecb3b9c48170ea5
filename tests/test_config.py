"""
Tests for environment-driven settings
"""
from decimal import Decimal

import pytest

from expense_classifier.config import DEFAULT_LLM_MODEL, ClassifierSettings
from expense_classifier.errors import ConfigurationError


def test_defaults():
    settings = ClassifierSettings.from_env(env={})

    assert settings.min_confidence == 0.5
    assert settings.learning_short_circuit == 0.9
    assert settings.depreciation_threshold == Decimal('50000')
    assert settings.llm_model == DEFAULT_LLM_MODEL
    assert not settings.llm_enabled


def test_overrides_from_env():
    settings = ClassifierSettings.from_env(env={
        'CLASSIFIER_REVIEW_THRESHOLD': '0.8',
        'CLASSIFIER_LUNCH_START': '12',
        'CLASSIFIER_DEPRECIATION_THRESHOLD': '100,000',
        'CLASSIFIER_STATISTICS_TTL_SECONDS': '60',
    })

    assert settings.review_threshold == 0.8
    assert settings.lunch_start == 12
    assert settings.depreciation_threshold == Decimal('100000')
    assert settings.statistics_ttl_seconds == 60.0


def test_llm_needs_flag_and_key():
    assert not ClassifierSettings.from_env(env={'ENABLE_LLM': 'true'}).llm_enabled
    assert not ClassifierSettings.from_env(env={'ANTHROPIC_API_KEY': 'sk-test'}).llm_enabled
    assert ClassifierSettings.from_env(env={'ENABLE_LLM': 'yes', 'ANTHROPIC_API_KEY': 'sk-test'}).llm_enabled


def test_empty_model_keeps_default():
    assert ClassifierSettings.from_env(env={'CLASSIFIER_LLM_MODEL': ''}).llm_model == DEFAULT_LLM_MODEL


@pytest.mark.parametrize('env', [
    {'CLASSIFIER_MIN_CONFIDENCE': 'high'},
    {'CLASSIFIER_MIN_CONFIDENCE': '1.5'},
    {'CLASSIFIER_LUNCH_START': '25'},
    {'CLASSIFIER_LUNCH_START': '15', 'CLASSIFIER_LUNCH_END': '13'},
    {'ENABLE_LLM': 'maybe'},
    {'CLASSIFIER_FINGERPRINT_PREFIX': '0'},
])
def test_invalid_values(env):
    with pytest.raises(ConfigurationError):
        ClassifierSettings.from_env(env=env)


def test_error_names_variable():
    with pytest.raises(ConfigurationError) as exc_info:
        ClassifierSettings.from_env(env={'CLASSIFIER_MIN_CONFIDENCE': 'high'})
    assert exc_info.value.variable == 'CLASSIFIER_MIN_CONFIDENCE'


def test_with_overrides_is_a_copy():
    base = ClassifierSettings()
    changed = base.with_overrides(enable_llm=True)
    assert changed.enable_llm and not base.enable_llm
