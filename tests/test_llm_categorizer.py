"""
Tests for the Claude-backed categorizer (client is always mocked)
"""
import json
from unittest.mock import MagicMock

import anthropic
import httpx
import pytest

from conftest import make_record
from expense_classifier.core.llm_categorizer import MAX_LLM_CONFIDENCE, LLMCategorizer
from expense_classifier.core.taxonomy import SOFTWARE


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def categorizer(registry, client):
    return LLMCategorizer(registry, client=client)


def reply(client, text):
    client.messages.create.return_value.content = [MagicMock(text=text)]


class TestPrompt:

    def test_lists_categories_and_transaction(self, categorizer):
        prompt = categorizer.build_prompt(
            make_record('Linear plan', amount='-1200', merchant_name='Linear', time_of_day='10:00'))

        assert 'cat-119: ソフトウェア費' in prompt
        assert 'Merchant: Linear' in prompt
        assert 'Amount: ¥1,200' in prompt
        assert 'Type: Expense' in prompt

    def test_income_type(self, categorizer):
        assert 'Type: Income' in categorizer.build_prompt(make_record('振込', amount='5000'))


class TestCategorize:

    def test_valid_reply(self, categorizer, client):
        reply(client, json.dumps({
            'category_id': SOFTWARE, 'is_business': 1, 'confidence': 0.6, 'rationale': 'Project tool',
        }))

        result = categorizer.categorize(make_record('Linear plan'))

        assert result['category_id'] == SOFTWARE
        assert result['is_business'] is True
        assert result['confidence'] == 0.6
        _, kwargs = client.messages.create.call_args
        assert kwargs['temperature'] == 0.0

    def test_markdown_fenced_reply(self, categorizer, client):
        reply(client, '```json\n{"category_id": "cat-119", "is_business": true, '
                      '"confidence": 0.7, "rationale": "SaaS"}\n```')
        assert categorizer.categorize(make_record('Linear plan'))['category_id'] == SOFTWARE

    def test_confidence_capped(self, categorizer):
        result = categorizer.parse_response(json.dumps({
            'category_id': SOFTWARE, 'is_business': True, 'confidence': 0.99, 'rationale': 'sure',
        }))
        assert result['confidence'] == MAX_LLM_CONFIDENCE

    @pytest.mark.parametrize('text', [
        'not json',
        '{"category_id": "cat-119"}',
        '{"category_id": "cat-999", "is_business": true, "confidence": 0.7, "rationale": "x"}',
        '{"category_id": "cat-119", "is_business": true, "confidence": "high", "rationale": "x"}',
        '[1, 2]',
    ])
    def test_unusable_replies(self, categorizer, text):
        assert categorizer.parse_response(text) is None

    def test_api_error_means_no_suggestion(self, categorizer, client):
        request = httpx.Request('POST', 'https://api.anthropic.com/v1/messages')
        client.messages.create.side_effect = anthropic.APIConnectionError(request=request)

        assert categorizer.categorize(make_record('Linear plan')) is None

    def test_disabled_without_key(self, registry, monkeypatch):
        monkeypatch.delenv('ANTHROPIC_API_KEY', raising=False)
        categorizer = LLMCategorizer(registry)

        assert not categorizer.enabled
        assert categorizer.categorize(make_record('Linear plan')) is None
