"""
Tests for correction feedback and the knowledge store backends
"""
import json
import threading
from unittest.mock import MagicMock

import psycopg2
import pytest

from expense_classifier.core.feedback import CorrectionFeedbackHandler
from expense_classifier.core.knowledge_store import (
    CorrectionEvent,
    InMemoryKnowledgeStore,
    JsonKnowledgeStore,
    PostgresKnowledgeStore,
)
from expense_classifier.core.merchant_normalizer import fingerprint
from expense_classifier.core.taxonomy import MEETING, PERSONAL_FOOD, TRAVEL
from expense_classifier.errors import (
    CorrectionPersistenceError,
    KnowledgeStoreError,
    UnknownCategoryError,
)


@pytest.fixture
def handler(store, registry, utc_clock):
    return CorrectionFeedbackHandler(store, registry, clock=utc_clock)


class TestRecordCorrection:

    def test_first_correction(self, handler, store):
        record = handler.record_correction('スターバックス', 'スターバックス コーヒー', '食費', None, False)

        assert record.correction_count == 1
        assert record.confidence == pytest.approx(0.7)
        assert record.category_id == PERSONAL_FOOD
        assert store.get(fingerprint('スターバックス', 'スターバックス コーヒー')) == record

    def test_count_is_monotonic_and_confidence_capped(self, handler):
        confidences = []
        for _ in range(5):
            confidences.append(handler.record_correction('Cafe', 'latte', None, MEETING, True).confidence)

        assert confidences == sorted(confidences)
        assert confidences[-1] == 1.0

    def test_latest_category_wins(self, handler):
        handler.record_correction('Cafe', 'latte', '食費', None, False)
        record = handler.record_correction('Cafe', 'latte', '会議費', None, True)

        assert record.category_id == MEETING
        assert record.is_business is True
        assert record.correction_count == 2

    def test_id_wins_over_name(self, handler):
        record = handler.record_correction('Cafe', 'latte', '会議費', MEETING, True)
        assert record.category_name == '会議費'

    def test_mismatched_id_and_name(self, handler):
        with pytest.raises(ValueError):
            handler.record_correction('Cafe', 'latte', '食費', MEETING, True)

    def test_unknown_category(self, handler, store):
        with pytest.raises(UnknownCategoryError):
            handler.record_correction('Cafe', 'latte', '会議日', None, True)
        assert store.records() == []

    def test_no_category(self, handler):
        with pytest.raises(ValueError):
            handler.record_correction('Cafe', 'latte', None, None, True)

    def test_no_text(self, handler):
        with pytest.raises(ValueError):
            handler.record_correction(' ', None, '食費', None, False)

    def test_description_only(self, handler):
        record = handler.record_correction(None, 'タクシー 深夜', None, TRAVEL, True)
        assert record.fingerprint == '|タクシー 深夜'


class TestCorrectionKey:

    def test_repeated_key_applied_once(self, handler):
        handler.record_correction('Cafe', 'latte', '食費', None, False, correction_key='ui-1')
        record = handler.record_correction('Cafe', 'latte', '食費', None, False, correction_key='ui-1')

        assert record.correction_count == 1

    def test_distinct_keys_both_count(self, handler):
        handler.record_correction('Cafe', 'latte', '食費', None, False, correction_key='ui-1')
        record = handler.record_correction('Cafe', 'latte', '食費', None, False, correction_key='ui-2')

        assert record.correction_count == 2

    def test_key_expires_after_window(self, registry, utc_clock):
        store = InMemoryKnowledgeStore(dedup_window_seconds=60)
        handler = CorrectionFeedbackHandler(store, registry, clock=utc_clock)

        handler.record_correction('Cafe', 'latte', '食費', None, False, correction_key='ui-1')
        utc_clock.advance(120)
        record = handler.record_correction('Cafe', 'latte', '食費', None, False, correction_key='ui-1')

        assert record.correction_count == 2


class TestConcurrency:

    def test_parallel_corrections_never_lose_a_count(self, handler, store):
        workers = 8
        per_worker = 25
        barrier = threading.Barrier(workers)

        def correct():
            barrier.wait()
            for _ in range(per_worker):
                handler.record_correction('Cafe', 'latte', '食費', None, False)

        threads = [threading.Thread(target=correct) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.get(fingerprint('Cafe', 'latte')).correction_count == workers * per_worker


class TestPersistenceErrors:

    def test_store_failure_is_retriable(self, registry, utc_clock):
        store = MagicMock()
        store.apply_correction.side_effect = KnowledgeStoreError('disk full')
        handler = CorrectionFeedbackHandler(store, registry, clock=utc_clock)

        with pytest.raises(CorrectionPersistenceError) as exc_info:
            handler.record_correction('Cafe', 'latte', '食費', None, False)
        assert exc_info.value.retriable

    def test_failed_write_leaves_memory_unchanged(self, registry, utc_clock, tmp_path):
        store = JsonKnowledgeStore(tmp_path / 'learning.json')
        handler = CorrectionFeedbackHandler(store, registry, clock=utc_clock)
        handler.record_correction('Cafe', 'latte', '食費', None, False)

        # A directory where the file should go makes the write fail
        store.path = tmp_path / 'blocked'
        (tmp_path / 'blocked').mkdir()

        with pytest.raises(CorrectionPersistenceError):
            handler.record_correction('Cafe', 'latte', '食費', None, False)
        assert store.get(fingerprint('Cafe', 'latte')).correction_count == 1


class TestJsonKnowledgeStore:

    def test_survives_reload(self, registry, utc_clock, tmp_path):
        path = tmp_path / 'learning.json'
        handler = CorrectionFeedbackHandler(JsonKnowledgeStore(path), registry, clock=utc_clock)
        handler.record_correction('スターバックス', 'コーヒー', '食費', None, False)
        handler.record_correction('スターバックス', 'コーヒー', '食費', None, False)
        handler.record_correction('日本交通', 'タクシー', '旅費交通費', None, True)

        reloaded = JsonKnowledgeStore(path)

        assert len(reloaded.records()) == 2
        assert reloaded.get(fingerprint('スターバックス', 'コーヒー')).correction_count == 2

    def test_file_is_utf8_json(self, registry, utc_clock, tmp_path):
        path = tmp_path / 'learning.json'
        CorrectionFeedbackHandler(JsonKnowledgeStore(path), registry, clock=utc_clock).record_correction(
            'スターバックス', 'コーヒー', '食費', None, False)

        data = json.loads(path.read_text(encoding='utf-8'))
        assert data['records'][0]['category_name'] == '食費'

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / 'learning.json'
        path.write_text('{not json', encoding='utf-8')
        with pytest.raises(KnowledgeStoreError):
            JsonKnowledgeStore(path)


class TestPostgresKnowledgeStore:

    def make_event(self, utc_clock, key=None):
        return CorrectionEvent(
            fingerprint='cafe|latte',
            category_id=MEETING,
            category_name='会議費',
            is_business=True,
            corrected_at=utc_clock(),
            merchant_name='Cafe',
            correction_key=key,
        )

    def test_upsert_returns_record(self, utc_clock):
        conn = MagicMock()
        cursor = conn.cursor.return_value
        cursor.fetchone.return_value = ('cafe|latte', 'Cafe', MEETING, '会議費', True, 3, utc_clock())
        store = PostgresKnowledgeStore(lambda: conn, 'user-1')

        outcome = store.apply_correction(self.make_event(utc_clock))

        assert outcome.applied
        assert outcome.record.correction_count == 3
        sql = cursor.execute.call_args[0][0]
        assert 'correction_count = merchant_learning.correction_count + 1' in sql
        conn.commit.assert_called_once()
        conn.close.assert_called_once()

    def test_duplicate_key_skips_increment(self, utc_clock):
        conn = MagicMock()
        cursor = conn.cursor.return_value
        cursor.rowcount = 0
        cursor.fetchone.return_value = ('cafe|latte', 'Cafe', MEETING, '会議費', True, 1, utc_clock())
        store = PostgresKnowledgeStore(lambda: conn, 'user-1')

        outcome = store.apply_correction(self.make_event(utc_clock, key='ui-1'))

        assert not outcome.applied
        executed = ' '.join(call[0][0] for call in cursor.execute.call_args_list)
        assert 'ON CONFLICT (user_id, fingerprint)' not in executed

    def test_database_error_rolls_back(self, utc_clock):
        conn = MagicMock()
        conn.cursor.return_value.execute.side_effect = psycopg2.OperationalError('gone')
        store = PostgresKnowledgeStore(lambda: conn, 'user-1')

        with pytest.raises(CorrectionPersistenceError):
            store.apply_correction(self.make_event(utc_clock))
        conn.rollback.assert_called_once()

    def test_unreachable_database_on_read(self):
        def factory():
            raise psycopg2.OperationalError('refused')

        with pytest.raises(KnowledgeStoreError):
            PostgresKnowledgeStore(factory, 'user-1').get('cafe|latte')
