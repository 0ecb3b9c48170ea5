"""
Tests for merchant statistics building and the TTL cache
"""
import threading
from unittest.mock import MagicMock

import pytest

from expense_classifier.core.cache import CachedStatisticsSupplier, StaticStatisticsSupplier, TTLCache
from expense_classifier.core.models import MerchantStatistics
from expense_classifier.core.statistics import (
    MerchantStatisticsBuilder,
    export_statistics_json,
    load_confirmed_transactions,
    load_history_csv,
    load_statistics_json,
)
from expense_classifier.core.taxonomy import MEETING, PERSONAL_FOOD, TRAVEL


class TestTTLCache:

    def test_hit_within_ttl(self, clock):
        cache = TTLCache(ttl_seconds=300, clock=clock)
        cache.set('user-1:merchant_statistics', {'a': 1})
        clock.advance(299)
        assert cache.get('user-1:merchant_statistics') == {'a': 1}

    def test_expires_after_ttl(self, clock):
        cache = TTLCache(ttl_seconds=300, clock=clock)
        cache.set('k', 'v')
        clock.advance(300)
        assert cache.get('k') is None

    def test_invalidate(self, clock):
        cache = TTLCache(clock=clock)
        cache.set('k', 'v')
        assert cache.invalidate('k') is True
        assert cache.invalidate('k') is False

    def test_invalidate_prefix_isolates_users(self, clock):
        cache = TTLCache(clock=clock)
        cache.set('user-1:a', 1)
        cache.set('user-1:b', 2)
        cache.set('user-2:a', 3)

        assert cache.invalidate_prefix('user-1:') == 2
        assert cache.get('user-2:a') == 3

    def test_get_or_set_calls_factory_once(self, clock):
        cache = TTLCache(clock=clock)
        factory = MagicMock(return_value='loaded')

        assert cache.get_or_set('k', factory) == 'loaded'
        assert cache.get_or_set('k', factory) == 'loaded'
        factory.assert_called_once()

    def test_cached_none_is_a_hit(self, clock):
        cache = TTLCache(clock=clock)
        factory = MagicMock(return_value=None)
        cache.get_or_set('k', factory)
        cache.get_or_set('k', factory)
        factory.assert_called_once()

    def test_entry_ttl_overrides_default(self, clock):
        cache = TTLCache(ttl_seconds=300, clock=clock)
        cache.set('k', 'v', ttl_seconds=30)
        clock.advance(30)
        assert cache.get('k') is None

    def test_concurrent_misses_share_one_load(self):
        cache = TTLCache(300)
        release = threading.Event()
        calls = []

        def factory():
            calls.append(1)
            release.wait(5)
            return 'loaded'

        threads = [threading.Thread(target=cache.get_or_set, args=('k', factory)) for _ in range(4)]
        for t in threads:
            t.start()
        release.set()
        for t in threads:
            t.join(5)

        assert len(calls) == 1
        assert cache.get('k') == 'loaded'


class TestStatisticsSuppliers:

    def stats(self):
        stats = MerchantStatistics('Cafe Tokyo')
        stats.add(MEETING, 3)
        return {'Cafe Tokyo': stats}

    def test_static_lookup_normalizes(self):
        supplier = StaticStatisticsSupplier(self.stats())
        assert supplier.get('CAFE TOKYO #12').total_transactions == 3

    def test_cached_supplier_reloads_after_ttl(self, clock):
        loader = MagicMock(return_value=self.stats())
        supplier = CachedStatisticsSupplier(loader, TTLCache(300, clock=clock), 'user-1')

        supplier.get('Cafe Tokyo')
        supplier.get('Cafe Tokyo')
        assert loader.call_count == 1

        clock.advance(301)
        supplier.get('Cafe Tokyo')
        assert loader.call_count == 2

    def test_invalidate_forces_reload(self, clock):
        loader = MagicMock(return_value=self.stats())
        supplier = CachedStatisticsSupplier(loader, TTLCache(300, clock=clock), 'user-1')
        supplier.get('Cafe Tokyo')
        supplier.invalidate()
        supplier.get('Cafe Tokyo')
        assert loader.call_count == 2

    def test_loader_failure_means_no_statistics(self, clock):
        loader = MagicMock(side_effect=RuntimeError('db down'))
        supplier = CachedStatisticsSupplier(loader, TTLCache(300, clock=clock), 'user-1')
        assert supplier.get('Cafe Tokyo') is None

    def test_failed_load_is_not_retried_until_backoff_passes(self, clock):
        loader = MagicMock(side_effect=RuntimeError('db down'))
        supplier = CachedStatisticsSupplier(loader, TTLCache(300, clock=clock), 'user-1',
                                            retry_after_seconds=30)

        for _ in range(5):
            assert supplier.get('Cafe Tokyo') is None
        assert loader.call_count == 1

        clock.advance(30)
        supplier.get('Cafe Tokyo')
        assert loader.call_count == 2

    def test_slow_load_does_not_block_other_users(self):
        cache = TTLCache(300)
        started = threading.Event()
        release = threading.Event()

        def slow_loader():
            started.set()
            release.wait(5)
            return {}

        slow = CachedStatisticsSupplier(slow_loader, cache, 'user-1')
        fast = CachedStatisticsSupplier(self.stats, cache, 'user-2')
        worker = threading.Thread(target=slow.get, args=('Cafe Tokyo',))
        worker.start()
        assert started.wait(5)

        try:
            assert fast.get('Cafe Tokyo').total_transactions == 3
            assert worker.is_alive()
        finally:
            release.set()
            worker.join(5)


class TestMerchantStatisticsBuilder:

    def test_build_from_rows(self, registry):
        builder = MerchantStatisticsBuilder(registry)
        builder.add_rows([
            {'merchant_name': 'Cafe Tokyo', 'category': '会議費'},
            {'merchant_name': 'cafe tokyo', 'category': MEETING},
            {'merchant': 'Cafe Tokyo #2', 'category': '食費'},
        ])

        stats = builder.build()['cafe tokyo']

        assert stats.total_transactions == 3
        assert stats.category_counts == {MEETING: 2, PERSONAL_FOOD: 1}

    def test_merchant_from_description(self, registry):
        builder = MerchantStatisticsBuilder(registry)
        builder.add(None, '旅費交通費', description='日本交通 タクシー')
        assert builder.build()['日本交通'].category_counts == {TRAVEL: 1}

    def test_unknown_category_skipped(self, registry):
        builder = MerchantStatisticsBuilder(registry)
        assert builder.add('Cafe', '会議日') is False
        assert builder.skipped == 1
        assert builder.build() == {}

    def test_summary_buckets(self, registry):
        builder = MerchantStatisticsBuilder(registry)
        for _ in range(10):
            builder.add('Consistent', '会議費')
        for category in ['会議費'] * 4 + ['食費']:
            builder.add('Mixed', category)
        for category in ['会議費', '食費', '旅費交通費']:
            builder.add('Conflict', category)
        builder.add('Rare', '会議費')

        summary = builder.summary()

        assert [e['merchant'] for e in summary['consistent']] == ['Consistent']
        assert [e['merchant'] for e in summary['mixed']] == ['Mixed']
        assert [e['merchant'] for e in summary['conflicts']] == ['Conflict']
        assert [e['merchant'] for e in summary['untrusted']] == ['Rare']


class TestStatisticsFiles:

    def test_history_csv(self, tmp_path):
        path = tmp_path / 'history.csv'
        path.write_text(
            'date,description,merchant,category,amount\n'
            '2025-01-05,ランチ &amp; コーヒー,Cafe Tokyo,会議費,-800\n'
            '2025-01-06,no category,Cafe Tokyo,,-100\n',
            encoding='utf-8',
        )
        rows = load_history_csv(path)

        assert len(rows) == 1
        assert rows[0]['description'] == 'ランチ & コーヒー'
        assert rows[0]['merchant_name'] == 'Cafe Tokyo'

    def test_json_round_trip(self, registry, tmp_path):
        builder = MerchantStatisticsBuilder(registry)
        for _ in range(3):
            builder.add('Cafe Tokyo', '会議費')
        path = tmp_path / 'stats.json'

        export_statistics_json(builder.build(), path)
        loaded = load_statistics_json(path)

        assert loaded['cafe tokyo'].category_counts == {MEETING: 3}

    def test_confirmed_transactions_query(self):
        conn = MagicMock()
        cursor = conn.cursor.return_value
        cursor.fetchall.return_value = [('Cafe Tokyo', 'latte', MEETING)]

        rows = load_confirmed_transactions(conn, 'user-1')

        assert rows == [{'merchant_name': 'Cafe Tokyo', 'description': 'latte', 'category': MEETING}]
        cursor.close.assert_called_once()
