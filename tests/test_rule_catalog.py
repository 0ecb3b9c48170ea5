"""
Tests for system keyword rules and user override rules
"""
from unittest.mock import MagicMock

import pytest

from expense_classifier.core.rule_catalog import (
    DEFAULT_USER_RULES,
    EXPENSE,
    FUZZY_PENALTY,
    REVENUE,
    ClassificationRule,
    RuleCatalog,
    UserRule,
    load_user_rules_from_db,
)
from expense_classifier.core.taxonomy import (
    FEES, INTEREST_INCOME, MEETING, PERSONAL_FOOD, SALES, SOFTWARE, TRAVEL,
)
from expense_classifier.errors import UnknownCategoryError


@pytest.fixture
def catalog(registry):
    return RuleCatalog(registry)


class TestSystemRules:

    def test_full_match_uses_base_confidence(self, catalog):
        candidates = catalog.match_system_rules('スターバックス コーヒー')
        assert candidates[0].category_id == MEETING
        assert candidates[0].confidence == pytest.approx(0.7)
        assert candidates[0].is_business

    def test_partial_match_scales_confidence(self, catalog):
        # Only one of the two cafe_meeting terms
        candidates = catalog.match_system_rules('ドトール', EXPENSE)
        cafe = [c for c in candidates if c.category_id == MEETING][0]
        assert cafe.confidence == pytest.approx(0.35)

    def test_sorted_best_first(self, catalog):
        candidates = catalog.match_system_rules('タクシー 会議')
        confidences = [c.confidence for c in candidates]
        assert confidences == sorted(confidences, reverse=True)

    def test_direction_filters_rules(self, catalog):
        assert catalog.match_system_rules('売上 入金', EXPENSE) == []
        revenue = catalog.match_system_rules('売上 入金', REVENUE)
        assert revenue[0].category_id == SALES

    def test_interest_income(self, catalog):
        assert catalog.match_system_rules('普通預金 利息', REVENUE)[0].category_id == INTEREST_INCOME

    def test_short_keyword_needs_word_boundary(self, catalog):
        # 'fee' must not fire inside 'coffee'
        candidates = catalog.match_system_rules('coffee', EXPENSE)
        assert FEES not in [c.category_id for c in candidates]
        candidates = catalog.match_system_rules('bank transfer fee', EXPENSE)
        assert candidates[0].category_id == FEES

    def test_no_match(self, catalog):
        assert catalog.match_system_rules('zzzz qqqq') == []

    def test_empty_text(self, catalog):
        assert catalog.match_system_rules('') == []

    def test_candidate_source_and_evidence(self, catalog):
        candidate = catalog.match_system_rules('github')[0]
        assert candidate.category_id == SOFTWARE
        assert candidate.source == 'keyword'
        assert 'github' in candidate.matched_evidence


class TestFuzzyRules:

    def test_ocr_typo_recovered_with_penalty(self, catalog):
        assert catalog.match_system_rules('subscriptoin renewal', EXPENSE) == []
        candidates = catalog.fuzzy_match_system_rules('subscriptoin renewal', EXPENSE)
        assert candidates[0].category_id == SOFTWARE
        assert candidates[0].confidence == pytest.approx(0.75 * FUZZY_PENALTY)
        assert candidates[0].source == 'keyword_fuzzy'

    def test_short_alternatives_skipped(self, catalog):
        # 'jr' and 'ana' are too short to fuzz
        assert catalog.fuzzy_match_system_rules('jx', EXPENSE) == []


class TestUserRules:

    def test_user_rule_wins_outright(self, registry):
        catalog = RuleCatalog.from_custom_rules(registry, DEFAULT_USER_RULES)
        candidates = catalog.lookup('スターバックス 新宿', EXPENSE)
        assert len(candidates) == 1
        assert candidates[0].category_id == MEETING
        assert candidates[0].confidence == 1.0
        assert candidates[0].source == 'user_override'

    def test_disabled_rule_ignored(self, registry):
        catalog = RuleCatalog(registry, user_rules=[UserRule('セブンイレブン', PERSONAL_FOOD, False, enabled=False)])
        assert catalog.match_user_rule('セブンイレブン') is None

    def test_first_rule_wins(self, registry):
        catalog = RuleCatalog(registry)
        catalog.add_user_rule('タクシー', '旅費交通費', True)
        catalog.add_user_rule('タクシー', '事業主貸', False)
        assert catalog.match_user_rule('深夜 タクシー').category_id == TRAVEL

    def test_add_rule_by_unknown_name(self, registry):
        catalog = RuleCatalog(registry)
        with pytest.raises(UnknownCategoryError):
            catalog.add_user_rule('x', '存在しない科目', True)

    def test_empty_pattern_rejected(self, registry):
        catalog = RuleCatalog(registry)
        with pytest.raises(ValueError):
            catalog.add_user_rule('   ', MEETING, True)

    def test_camel_case_flag(self, registry):
        catalog = RuleCatalog.from_custom_rules(registry, [
            {'keyword': 'エネオス', 'category': TRAVEL, 'isBusiness': False},
        ])
        assert catalog.user_rules[0].is_business is False


class TestCatalogValidation:

    def test_unknown_category_rejected_eagerly(self, registry):
        bad = ClassificationRule('bad', ('x',), 'cat-999', True, 0.5)
        with pytest.raises(UnknownCategoryError):
            RuleCatalog(registry, system_rules=[bad])

    def test_confidence_out_of_range(self, registry):
        bad = ClassificationRule('bad', ('x',), MEETING, True, 1.5)
        with pytest.raises(ValueError):
            RuleCatalog(registry, system_rules=[bad])

    def test_empty_keywords(self, registry):
        with pytest.raises(ValueError):
            RuleCatalog(registry, system_rules=[ClassificationRule('bad', (), MEETING, True, 0.5)])


def test_load_user_rules_from_db():
    conn = MagicMock()
    cursor = conn.cursor.return_value
    cursor.fetchall.return_value = [('スタバ', MEETING, True, True)]

    rules = load_user_rules_from_db(conn, 'user-1')

    assert rules == [{'keyword': 'スタバ', 'category': MEETING, 'is_business': True, 'enabled': True}]
    assert cursor.execute.call_args[0][1] == ('user-1',)
    cursor.close.assert_called_once()
