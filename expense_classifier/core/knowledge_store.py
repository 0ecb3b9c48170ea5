"""
Merchant Knowledge Store

Persisted per-user map of merchant fingerprint -> learned category.
Only the correction feedback handler writes to it; strategies read it.

Backends:
- InMemoryKnowledgeStore: per-fingerprint locks, used in tests and embedded hosts
- JsonKnowledgeStore: in-memory store mirrored to a JSON file (CLI)
- PostgresKnowledgeStore: atomic upsert in PostgreSQL via psycopg2
"""
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

import psycopg2

from ..errors import CorrectionPersistenceError, KnowledgeStoreError
from .models import MerchantLearningRecord

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CorrectionEvent:
    """One user correction, ready to be applied to the store"""
    fingerprint: str
    category_id: str
    category_name: str
    is_business: bool
    corrected_at: datetime
    merchant_name: Optional[str] = None
    correction_key: Optional[str] = None


@dataclass(frozen=True)
class CorrectionOutcome:
    """Result of applying a correction; ``applied`` is False for a duplicate key"""
    record: Optional[MerchantLearningRecord]
    applied: bool


class MerchantKnowledgeStore(ABC):
    """Read/write interface the engine needs from host persistence"""

    @abstractmethod
    def get(self, fingerprint: str) -> Optional[MerchantLearningRecord]:
        """Learned record for a fingerprint, or None"""

    @abstractmethod
    def records(self) -> List[MerchantLearningRecord]:
        """Snapshot of every learned record"""

    @abstractmethod
    def apply_correction(self, event: CorrectionEvent) -> CorrectionOutcome:
        """
        Atomically increment the correction count for the event's fingerprint

        The newest correction overwrites category and business flag; only
        the count accumulates. A correction_key already applied inside the
        dedup window is a no-op.
        """


def _next_record(existing: Optional[MerchantLearningRecord], event: CorrectionEvent) -> MerchantLearningRecord:
    return MerchantLearningRecord(
        fingerprint=event.fingerprint,
        merchant_name=event.merchant_name or (existing.merchant_name if existing else None),
        category_id=event.category_id,
        category_name=event.category_name,
        is_business=event.is_business,
        correction_count=(existing.correction_count + 1) if existing else 1,
        last_corrected_at=event.corrected_at,
    )


class InMemoryKnowledgeStore(MerchantKnowledgeStore):
    """
    Thread-safe in-process store

    Corrections to the same fingerprint are serialized by a per-fingerprint
    lock; different fingerprints never contend.
    """

    def __init__(self, dedup_window_seconds: float = 600.0):
        self.dedup_window = timedelta(seconds=dedup_window_seconds)
        self._records: Dict[str, MerchantLearningRecord] = {}
        self._processed: Dict[str, datetime] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, fingerprint: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(fingerprint)
            if lock is None:
                lock = self._locks[fingerprint] = threading.Lock()
            return lock

    def get(self, fingerprint: str) -> Optional[MerchantLearningRecord]:
        return self._records.get(fingerprint)

    def records(self) -> List[MerchantLearningRecord]:
        with self._guard:
            return list(self._records.values())

    def _is_duplicate(self, event: CorrectionEvent) -> bool:
        if not event.correction_key:
            return False
        with self._guard:
            cutoff = event.corrected_at - self.dedup_window
            # Drop keys that fell out of the window
            for key in [k for k, seen in self._processed.items() if seen < cutoff]:
                del self._processed[key]
            return event.correction_key in self._processed

    def _mark_processed(self, event: CorrectionEvent):
        if event.correction_key:
            with self._guard:
                self._processed[event.correction_key] = event.corrected_at

    def apply_correction(self, event: CorrectionEvent) -> CorrectionOutcome:
        with self._lock_for(event.fingerprint):
            if self._is_duplicate(event):
                logger.info("Ignoring repeated correction key %s", event.correction_key)
                return CorrectionOutcome(self._records.get(event.fingerprint), applied=False)

            record = _next_record(self._records.get(event.fingerprint), event)
            self._persist(record)
            with self._guard:
                self._records[event.fingerprint] = record
            self._mark_processed(event)
            return CorrectionOutcome(record, applied=True)

    def _persist(self, record: MerchantLearningRecord):
        """Hook for durable subclasses; must raise before memory is updated"""


class JsonKnowledgeStore(InMemoryKnowledgeStore):
    """In-memory store mirrored to a JSON file after every applied correction"""

    def __init__(self, path: Path, dedup_window_seconds: float = 600.0):
        super().__init__(dedup_window_seconds)
        self.path = Path(path)
        self._file_lock = threading.Lock()
        self._written: Dict[str, MerchantLearningRecord] = {}
        self._load()

    def _load(self):
        if not self.path.exists():
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise KnowledgeStoreError(f"Could not read learning file {self.path}: {e}") from e

        for item in data.get('records', []):
            record = MerchantLearningRecord.from_dict(item)
            self._records[record.fingerprint] = record
        self._written = dict(self._records)
        logger.info("Loaded %d learned merchants from %s", len(self._records), self.path)

    def _persist(self, record: MerchantLearningRecord):
        with self._file_lock:
            # Start from the last written state, not the in-memory map
            snapshot = dict(self._written)
            snapshot[record.fingerprint] = record
            payload = {
                'version': 1,
                'records': [r.to_dict() for r in snapshot.values()],
            }
            tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(tmp_path, 'w', encoding='utf-8') as f:
                    json.dump(payload, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, self.path)
                self._written = snapshot
            except OSError as e:
                raise CorrectionPersistenceError(f"Could not write learning file {self.path}: {e}") from e


class PostgresKnowledgeStore(MerchantKnowledgeStore):
    """
    PostgreSQL-backed store

    Increments happen in a single ``INSERT ... ON CONFLICT DO UPDATE``
    statement, so concurrent corrections for one fingerprint never lose a
    count. The idempotency key is claimed in the same transaction.
    """

    def __init__(self,
                 connection_factory: Callable,
                 user_id: str,
                 dedup_window_seconds: float = 600.0):
        """
        Args:
            connection_factory: Zero-arg callable returning a psycopg2 connection
            user_id: Owner of the learned records
            dedup_window_seconds: How long a correction key stays claimed
        """
        self.connection_factory = connection_factory
        self.user_id = user_id
        self.dedup_window = timedelta(seconds=dedup_window_seconds)

    @staticmethod
    def _row_to_record(row) -> MerchantLearningRecord:
        return MerchantLearningRecord(
            fingerprint=row[0],
            merchant_name=row[1],
            category_id=row[2],
            category_name=row[3],
            is_business=row[4],
            correction_count=row[5],
            last_corrected_at=row[6],
        )

    def get(self, fingerprint: str) -> Optional[MerchantLearningRecord]:
        try:
            conn = self.connection_factory()
        except psycopg2.Error as e:
            raise KnowledgeStoreError(f"Knowledge store unavailable: {e}") from e

        cursor = conn.cursor()
        try:
            cursor.execute("""
                SELECT fingerprint, merchant_name, category_id, category_name,
                       is_business, correction_count, last_corrected_at
                FROM merchant_learning
                WHERE user_id = %s AND fingerprint = %s
            """, (self.user_id, fingerprint))
            row = cursor.fetchone()
            return self._row_to_record(row) if row else None
        except psycopg2.Error as e:
            raise KnowledgeStoreError(f"Could not read learned merchant: {e}") from e
        finally:
            cursor.close()
            conn.close()

    def records(self) -> List[MerchantLearningRecord]:
        try:
            conn = self.connection_factory()
        except psycopg2.Error as e:
            raise KnowledgeStoreError(f"Knowledge store unavailable: {e}") from e

        cursor = conn.cursor()
        try:
            cursor.execute("""
                SELECT fingerprint, merchant_name, category_id, category_name,
                       is_business, correction_count, last_corrected_at
                FROM merchant_learning
                WHERE user_id = %s
                ORDER BY fingerprint
            """, (self.user_id,))
            return [self._row_to_record(row) for row in cursor.fetchall()]
        except psycopg2.Error as e:
            raise KnowledgeStoreError(f"Could not read learned merchants: {e}") from e
        finally:
            cursor.close()
            conn.close()

    def apply_correction(self, event: CorrectionEvent) -> CorrectionOutcome:
        try:
            conn = self.connection_factory()
        except psycopg2.Error as e:
            raise CorrectionPersistenceError(f"Knowledge store unavailable: {e}") from e

        cursor = conn.cursor()
        try:
            if event.correction_key:
                cursor.execute("""
                    DELETE FROM processed_corrections
                    WHERE user_id = %s AND processed_at < %s
                """, (self.user_id, event.corrected_at - self.dedup_window))
                cursor.execute("""
                    INSERT INTO processed_corrections (user_id, correction_key, fingerprint, processed_at)
                    VALUES (%s, %s, %s, %s)
                    ON CONFLICT (user_id, correction_key) DO NOTHING
                """, (self.user_id, event.correction_key, event.fingerprint, event.corrected_at))

                if cursor.rowcount == 0:
                    conn.commit()
                    logger.info("Ignoring repeated correction key %s", event.correction_key)
                    return CorrectionOutcome(self.get(event.fingerprint), applied=False)

            cursor.execute("""
                INSERT INTO merchant_learning (
                    user_id, fingerprint, merchant_name, category_id, category_name,
                    is_business, correction_count, last_corrected_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, 1, %s)
                ON CONFLICT (user_id, fingerprint) DO UPDATE SET
                    merchant_name = COALESCE(EXCLUDED.merchant_name, merchant_learning.merchant_name),
                    category_id = EXCLUDED.category_id,
                    category_name = EXCLUDED.category_name,
                    is_business = EXCLUDED.is_business,
                    correction_count = merchant_learning.correction_count + 1,
                    last_corrected_at = EXCLUDED.last_corrected_at
                RETURNING fingerprint, merchant_name, category_id, category_name,
                          is_business, correction_count, last_corrected_at
            """, (
                self.user_id,
                event.fingerprint,
                event.merchant_name,
                event.category_id,
                event.category_name,
                event.is_business,
                event.corrected_at,
            ))
            row = cursor.fetchone()
            conn.commit()
            return CorrectionOutcome(self._row_to_record(row), applied=True)

        except psycopg2.Error as e:
            conn.rollback()
            raise CorrectionPersistenceError(f"Could not save correction: {e}") from e
        finally:
            cursor.close()
            conn.close()
