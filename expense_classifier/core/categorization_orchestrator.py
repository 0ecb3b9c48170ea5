"""
Categorization Orchestrator

The main engine. Runs the strategies in priority order:
1. User override rules (short-circuit)
2. Merchant learning from corrections (short-circuit at >= 0.9)
3. Merchant statistics from confirmed history
4. Industry profile
5. Expense preference policies
6. Contextual heuristics (time of day, amount)
7. Keyword / fuzzy rules
8. LLM suggestion (optional)
9. Fallback (always succeeds, flagged for review)

Candidates at or below the minimum confidence are dropped; the highest
remaining confidence wins and ties go to the earlier strategy.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from ..config import ClassifierSettings
from .cache import CachedStatisticsSupplier, StaticStatisticsSupplier, StatisticsSupplier, TTLCache
from .feedback import CorrectionFeedbackHandler
from .knowledge_store import InMemoryKnowledgeStore, MerchantKnowledgeStore, PostgresKnowledgeStore
from .llm_categorizer import LLMCategorizer
from .models import ClassificationCandidate, ClassificationResult, MerchantLearningRecord, TransactionRecord, UserProfile
from .rule_catalog import ClassificationRule, RuleCatalog, UserRule, load_user_rules_from_db
from .statistics import MerchantStatisticsBuilder, load_confirmed_transactions
from .strategies import (
    ClassificationStrategy,
    ContextualHeuristicsStrategy,
    FallbackStrategy,
    IndustryProfileStrategy,
    KeywordStrategy,
    LLMStrategy,
    MerchantLearningStrategy,
    MerchantStatisticsStrategy,
    PreferencePolicyStrategy,
    UserOverrideStrategy,
)
from .taxonomy import CategoryRegistry

logger = logging.getLogger(__name__)


@dataclass
class CascadeStats:
    """Counts for one batch run"""
    total: int = 0
    needs_review: int = 0
    high_confidence: int = 0
    by_source: Counter = field(default_factory=Counter)

    def add(self, result: ClassificationResult, review_threshold: float):
        self.total += 1
        self.by_source[result.source] += 1
        if result.needs_review(review_threshold):
            self.needs_review += 1
        else:
            self.high_confidence += 1


class CascadeOrchestrator:
    """
    Runs strategies in priority order and applies the selection policy
    """

    def __init__(self,
                 strategies: Sequence[ClassificationStrategy],
                 fallback: FallbackStrategy,
                 min_confidence: float = 0.5,
                 short_circuit_learning_at: float = 0.9):
        """
        Args:
            strategies: Strategies in priority order (index 0 = highest)
            fallback: Strategy used when no candidate clears the floor
            min_confidence: Candidates at or below this are discarded
            short_circuit_learning_at: Learned confidence that ends the cascade early
        """
        self.strategies = list(strategies)
        self.fallback = fallback
        self.min_confidence = min_confidence
        self.short_circuit_learning_at = short_circuit_learning_at

    def _run(self, strategy: ClassificationStrategy, record: TransactionRecord,
             profile: Optional[UserProfile]) -> Optional[ClassificationCandidate]:
        try:
            return strategy.classify(record, profile)
        except Exception:
            # A broken strategy must not stop the transaction pipeline
            logger.exception("Strategy %s failed; treating as no evidence", strategy.name)
            return None

    def _short_circuits(self, strategy: ClassificationStrategy, candidate: ClassificationCandidate) -> bool:
        if strategy.name == UserOverrideStrategy.name:
            return True
        if strategy.name == MerchantLearningStrategy.name:
            return candidate.confidence >= self.short_circuit_learning_at
        return False

    def collect(self, record: TransactionRecord,
                profile: Optional[UserProfile] = None) -> Tuple[List[Tuple[int, ClassificationCandidate]], Optional[ClassificationCandidate]]:
        """
        Run the cascade

        Returns:
            (every (priority, candidate) produced, short-circuit winner or None)
        """
        collected = []
        for priority, strategy in enumerate(self.strategies):
            candidate = self._run(strategy, record, profile)
            if candidate is None:
                continue
            collected.append((priority, candidate))
            if self._short_circuits(strategy, candidate):
                return collected, candidate
        return collected, None

    def select(self, collected: Iterable[Tuple[int, ClassificationCandidate]]) -> Optional[ClassificationCandidate]:
        """Highest confidence above the floor; ties go to the lower priority index"""
        survivors = [(p, c) for p, c in collected if c.confidence > self.min_confidence]
        if not survivors:
            return None
        _, best = min(survivors, key=lambda item: (-item[1].confidence, item[0]))
        return best

    def classify(self, record: TransactionRecord, profile: Optional[UserProfile] = None) -> ClassificationResult:
        """
        Categorize a single transaction

        Never raises and never returns None.
        """
        collected, decided = self.collect(record, profile)
        return self._decide(record, profile, collected, decided)

    def _decide(self, record, profile, collected, decided) -> ClassificationResult:
        if decided is not None:
            return decided

        best = self.select(collected)
        if best is not None:
            return best
        return self.fallback.classify(record, profile)

    def explain(self, record: TransactionRecord, profile: Optional[UserProfile] = None) -> List[ClassificationCandidate]:
        """Every candidate the cascade considered, in priority order, plus the result last"""
        collected, decided = self.collect(record, profile)
        result = self._decide(record, profile, collected, decided)
        return [c for _, c in collected] + [result]

    def classify_batch(self,
                       records: Iterable[TransactionRecord],
                       profile: Optional[UserProfile] = None,
                       review_threshold: float = 0.5) -> Tuple[List[ClassificationResult], CascadeStats]:
        """
        Categorize many transactions

        Returns:
            (results in input order, batch statistics)
        """
        stats = CascadeStats()
        results = []
        for record in records:
            result = self.classify(record, profile)
            stats.add(result, review_threshold)
            results.append(result)
        return results, stats


class TransactionClassifier:
    """
    Classification engine for one user

    Wires the registry, rule catalog, knowledge store, statistics and
    strategies together and exposes the two entry points hosts call:
    ``classify`` and ``record_correction``.
    """

    def __init__(self,
                 user_id: str = 'default',
                 registry: Optional[CategoryRegistry] = None,
                 store: Optional[MerchantKnowledgeStore] = None,
                 statistics: Optional[StatisticsSupplier] = None,
                 user_rules: Iterable[UserRule] = (),
                 settings: Optional[ClassifierSettings] = None,
                 llm_categorizer: Optional[LLMCategorizer] = None,
                 system_rules: Optional[Sequence[ClassificationRule]] = None,
                 cache: Optional[TTLCache] = None):
        self.user_id = user_id
        self.settings = settings or ClassifierSettings()
        self.registry = registry or CategoryRegistry()
        self.store = store if store is not None else InMemoryKnowledgeStore(self.settings.correction_dedup_seconds)
        self.statistics = statistics if statistics is not None else StaticStatisticsSupplier({})
        self.catalog = RuleCatalog(self.registry, system_rules=system_rules, user_rules=user_rules)
        self.cache = cache if cache is not None else TTLCache(self.settings.statistics_ttl_seconds)
        self.learning = MerchantLearningStrategy(
            self.store,
            self.registry,
            self.settings.fingerprint_prefix,
            cache=self.cache,
            cache_key=f"{user_id}:learned_records",
        )

        strategies: List[ClassificationStrategy] = [
            UserOverrideStrategy(self.catalog),
            self.learning,
            MerchantStatisticsStrategy(self.statistics, self.registry),
            IndustryProfileStrategy(self.registry),
            PreferencePolicyStrategy(self.registry),
            ContextualHeuristicsStrategy(self.registry, self.settings),
            KeywordStrategy(self.catalog, self.settings.fuzzy_threshold),
        ]

        if llm_categorizer is None and self.settings.llm_enabled:
            llm_categorizer = LLMCategorizer(self.registry, self.settings.anthropic_api_key, self.settings.llm_model)
        if llm_categorizer is not None:
            strategies.append(LLMStrategy(llm_categorizer))

        self.orchestrator = CascadeOrchestrator(
            strategies,
            FallbackStrategy(self.registry, self.settings),
            min_confidence=self.settings.min_confidence,
            short_circuit_learning_at=self.settings.learning_short_circuit,
        )
        self.feedback = CorrectionFeedbackHandler(self.store, self.registry, self.settings.fingerprint_prefix)

    def classify(self, record: TransactionRecord, profile: Optional[UserProfile] = None) -> ClassificationResult:
        return self.orchestrator.classify(record, profile)

    def classify_batch(self, records: Iterable[TransactionRecord],
                       profile: Optional[UserProfile] = None) -> Tuple[List[ClassificationResult], CascadeStats]:
        return self.orchestrator.classify_batch(records, profile, self.settings.review_threshold)

    def explain(self, record: TransactionRecord, profile: Optional[UserProfile] = None) -> List[ClassificationCandidate]:
        return self.orchestrator.explain(record, profile)

    def needs_review(self, result: ClassificationResult) -> bool:
        return result.needs_review(self.settings.review_threshold)

    def record_correction(self,
                          merchant_name: Optional[str],
                          description: Optional[str],
                          category_name: Optional[str],
                          category_id: Optional[str],
                          is_business: bool,
                          correction_key: Optional[str] = None) -> MerchantLearningRecord:
        record = self.feedback.record_correction(
            merchant_name, description, category_name, category_id, is_business, correction_key
        )
        self.learning.invalidate_snapshot()
        return record

    def add_user_rule(self, pattern: str, category: str, is_business: bool) -> UserRule:
        return self.catalog.add_user_rule(pattern, category, is_business)

    @classmethod
    def from_database(cls,
                      user_id: str,
                      connection_factory: Callable,
                      settings: Optional[ClassifierSettings] = None,
                      registry: Optional[CategoryRegistry] = None,
                      cache: Optional[TTLCache] = None) -> 'TransactionClassifier':
        """
        Build a classifier backed by PostgreSQL

        Learned corrections and user rules live in the database; merchant
        statistics are recomputed from confirmed transactions and cached
        for ``statistics_ttl_seconds``.
        """
        settings = settings or ClassifierSettings.from_env()
        registry = registry or CategoryRegistry()
        cache = cache or TTLCache(settings.statistics_ttl_seconds)

        def load_statistics():
            conn = connection_factory()
            try:
                rows = load_confirmed_transactions(conn, user_id)
            finally:
                conn.close()
            builder = MerchantStatisticsBuilder(registry)
            builder.add_rows(rows)
            return builder.build()

        conn = connection_factory()
        try:
            rule_records = load_user_rules_from_db(conn, user_id)
        finally:
            conn.close()

        catalog = RuleCatalog.from_custom_rules(registry, rule_records)
        return cls(
            user_id=user_id,
            registry=registry,
            store=PostgresKnowledgeStore(connection_factory, user_id, settings.correction_dedup_seconds),
            statistics=CachedStatisticsSupplier(load_statistics, cache, user_id),
            user_rules=catalog.user_rules,
            settings=settings,
            cache=cache,
        )


def print_stats(stats: CascadeStats, review_threshold: float = 0.5):
    """Print batch categorization statistics"""
    if stats.total == 0:
        print("No transactions categorized yet")
        return

    total = stats.total

    print("\n" + "=" * 80)
    print("📊 CATEGORIZATION STATISTICS")
    print("=" * 80)
    print(f"Total transactions: {total}")
    print(f"\n✅ Decided by:")
    for source, count in stats.by_source.most_common():
        print(f"  • {source}: {count} ({count/total*100:.1f}%)")

    print(f"\n📋 Review Status:")
    print(f"  • Accepted (≥{review_threshold*100:.0f}%): {stats.high_confidence} ({stats.high_confidence/total*100:.1f}%)")
    print(f"  • Needs review: {stats.needs_review} ({stats.needs_review/total*100:.1f}%)")

    print("=" * 80)
