"""
LLM Categorizer

Asks Claude to pick an account category for a transaction no rule
recognized. Optional and disabled unless configured: the cascade never
depends on it, and any API or parsing failure means "no suggestion".
"""
import json
import logging
import os
from typing import Dict, Optional

import anthropic

from ..config import DEFAULT_LLM_MODEL
from .models import TransactionRecord
from .taxonomy import CategoryRegistry

logger = logging.getLogger(__name__)

# Suggestions from the model are never trusted enough to skip review-level scrutiny
MAX_LLM_CONFIDENCE = 0.85


class LLMCategorizer:
    """
    Categorizes transactions using the Claude API
    """

    def __init__(self,
                 registry: CategoryRegistry,
                 api_key: Optional[str] = None,
                 model: str = DEFAULT_LLM_MODEL,
                 client=None):
        """
        Args:
            registry: Categories the model may choose from
            api_key: Anthropic API key (or read from ANTHROPIC_API_KEY env var)
            model: Claude model name
            client: Pre-built anthropic client (tests)
        """
        self.registry = registry
        self.model = model
        self.api_key = api_key or os.environ.get('ANTHROPIC_API_KEY')

        if client is not None:
            self.client = client
            self.enabled = True
        elif not self.api_key:
            logger.warning("No ANTHROPIC_API_KEY found. LLM categorization disabled.")
            self.client = None
            self.enabled = False
        else:
            self.client = anthropic.Anthropic(api_key=self.api_key)
            self.enabled = True

        self.taxonomy_str = self._build_taxonomy_string()

    def _build_taxonomy_string(self) -> str:
        """Concise category list for the prompt"""
        lines = []
        for category in self.registry:
            if category.category_type not in ('expense', 'revenue', 'asset'):
                continue
            scope = 'business' if category.is_business else 'personal'
            lines.append(f"- {category.id}: {category.name} ({category.label}, {category.category_type}, {scope})")
        return '\n'.join(lines)

    def build_prompt(self, record: TransactionRecord) -> str:
        txn_desc = f"Description: {record.description or '(none)'}"
        if record.merchant_name:
            txn_desc += f"\nMerchant: {record.merchant_name}"
        if record.ocr_text:
            txn_desc += f"\nReceipt text: {record.ocr_text[:500]}"
        txn_desc += f"\nAmount: ¥{record.abs_amount:,.0f}"
        txn_desc += f"\nType: {'Income' if record.is_revenue else 'Expense'}"
        if record.time_of_day:
            txn_desc += f"\nTime: {record.time_of_day}"

        return f"""You are a bookkeeping assistant for a Japanese sole proprietor. Given a transaction, choose the most appropriate account category and whether it is a business or personal expense.

CATEGORIES:
{self.taxonomy_str}

TRANSACTION:
{txn_desc}

Respond with ONLY a JSON object (no markdown, no explanations):
{{
  "category_id": "cat-XXX",
  "is_business": true,
  "confidence": 0.75,
  "rationale": "Brief 1-sentence explanation"
}}

Rules:
- Choose ONLY a category_id from the list above
- confidence must be between 0.0 and 1.0
- If uncertain, use lower confidence
- rationale should be max 15 words"""

    def categorize(self, record: TransactionRecord) -> Optional[Dict]:
        """
        Suggest a category using the LLM

        Args:
            record: Transaction to categorize

        Returns:
            Dict with category_id, is_business, confidence, rationale
            or None if the LLM is disabled or fails
        """
        if not self.enabled:
            return None

        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=300,
                temperature=0.0,
                messages=[{
                    "role": "user",
                    "content": self.build_prompt(record),
                }]
            )
            response_text = message.content[0].text.strip()
        except anthropic.APIError as e:
            logger.warning("LLM categorization failed: %s", e)
            return None

        return self.parse_response(response_text)

    def parse_response(self, response_text: str) -> Optional[Dict]:
        """Validate a raw model reply; None if unusable"""
        text = response_text.strip()

        # Remove markdown code blocks if present
        if text.startswith('```'):
            lines = text.split('\n')
            text = '\n'.join(lines[1:-1])

        try:
            result = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("LLM response not valid JSON: %s", e)
            return None

        required = ['category_id', 'is_business', 'confidence', 'rationale']
        if not isinstance(result, dict) or not all(k in result for k in required):
            logger.warning("LLM response missing required fields: %s", result)
            return None

        if result['category_id'] not in self.registry.ids():
            logger.warning("LLM suggested unknown category: %s", result['category_id'])
            return None

        try:
            confidence = float(result['confidence'])
        except (TypeError, ValueError):
            logger.warning("LLM returned non-numeric confidence: %s", result['confidence'])
            return None

        result['confidence'] = max(0.0, min(MAX_LLM_CONFIDENCE, confidence))
        result['is_business'] = bool(result['is_business'])
        return result
