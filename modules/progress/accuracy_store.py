from __future__ import annotations

import os
import threading
from typing import Optional, List, Dict, Iterable, Tuple

from pydantic import BaseModel, Field
from tenacity import Retrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from modules.utils import get_logger

LOG = get_logger()

ACCURACY_STORE_BACKEND = os.getenv('ACCURACY_STORE_BACKEND', 'memory')
DB_RETRY_ATTEMPTS = int(os.getenv('DB_RETRY_ATTEMPTS', '3'))
DB_RETRY_MULTIPLIER = float(os.getenv('DB_RETRY_MULTIPLIER', '0.5'))
DB_RETRY_MAX_WAIT = float(os.getenv('DB_RETRY_MAX_WAIT', '4'))


class AccuracyStoreError(Exception):
    pass


class AccuracyRecord(BaseModel):
    """Stored counters for one (user, character) pair.

    Values are surfaced exactly as stored; ``accuracy`` is only recomputed
    when the store writes the record.
    """

    user_id: str
    character_id: str
    attempts: int = Field(0, ge=0)
    correct_attempts: int = Field(0, ge=0)
    accuracy: float = 0.0

    @classmethod
    def baseline(cls, user_id: str, character_id: str) -> 'AccuracyRecord':
        return cls(user_id=user_id, character_id=character_id)


def compute_accuracy(attempts: int, correct_attempts: int) -> float:
    if attempts > 0:
        return correct_attempts / attempts
    return 0.0


class AccuracyStore:
    """Per-user accuracy counters.

    ``upsert_accuracy`` must be atomic per (user, character): concurrent
    submissions for the same pair never lose an increment.
    """

    name = 'base'

    def fetch_accuracy(self, user_id: str, character_ids: Iterable[str]) -> Dict[str, AccuracyRecord]:
        raise NotImplementedError

    def upsert_accuracy(self, user_id: str, character_id: str, correct: bool) -> AccuracyRecord:
        raise NotImplementedError

    def list_records(self, user_id: str) -> List[AccuracyRecord]:
        raise NotImplementedError

    def health_check(self) -> bool:
        return True


class InMemoryAccuracyStore(AccuracyStore):
    name = 'memory'

    def __init__(self, records: Optional[Iterable[AccuracyRecord]] = None):
        self._records: Dict[Tuple[str, str], AccuracyRecord] = {}
        self._lock = threading.Lock()
        for r in records or []:
            self.put(r)

    def put(self, record: AccuracyRecord):
        """Store a record verbatim (out-of-band population, no recomputation)."""
        with self._lock:
            self._records[(record.user_id, record.character_id)] = record.model_copy()

    def fetch_accuracy(self, user_id: str, character_ids: Iterable[str]) -> Dict[str, AccuracyRecord]:
        out: Dict[str, AccuracyRecord] = {}
        with self._lock:
            for cid in character_ids:
                rec = self._records.get((user_id, cid))
                if rec is not None:
                    out[cid] = rec.model_copy()
        return out

    def upsert_accuracy(self, user_id: str, character_id: str, correct: bool) -> AccuracyRecord:
        with self._lock:
            current = self._records.get((user_id, character_id)) or AccuracyRecord.baseline(user_id, character_id)
            attempts = current.attempts + 1
            correct_attempts = current.correct_attempts + (1 if correct else 0)
            updated = AccuracyRecord(
                user_id=user_id,
                character_id=character_id,
                attempts=attempts,
                correct_attempts=correct_attempts,
                accuracy=compute_accuracy(attempts, correct_attempts),
            )
            self._records[(user_id, character_id)] = updated
            return updated.model_copy()

    def list_records(self, user_id: str) -> List[AccuracyRecord]:
        with self._lock:
            return [r.model_copy() for (uid, _), r in self._records.items() if uid == user_id]


class PostgresAccuracyStore(AccuracyStore):
    """Counters in the ``kana_progress`` table.

    The upsert is a single ``INSERT ... ON CONFLICT DO UPDATE`` statement so
    the increment and the accuracy recomputation happen atomically in the
    database. Transient connection errors are retried with tenacity.
    """

    name = 'postgres'

    FETCH_SQL = (
        'SELECT kana_id, attempts, correct_attempts, accuracy FROM kana_progress '
        'WHERE user_id = %s AND kana_id = ANY(%s)'
    )
    LIST_SQL = (
        'SELECT kana_id, attempts, correct_attempts, accuracy FROM kana_progress '
        'WHERE user_id = %s ORDER BY kana_id'
    )
    UPSERT_SQL = (
        'INSERT INTO kana_progress (user_id, kana_id, attempts, correct_attempts, accuracy) '
        'VALUES (%s, %s, 1, %s, %s) '
        'ON CONFLICT (user_id, kana_id) DO UPDATE SET '
        'attempts = kana_progress.attempts + 1, '
        'correct_attempts = kana_progress.correct_attempts + EXCLUDED.correct_attempts, '
        'accuracy = (kana_progress.correct_attempts + EXCLUDED.correct_attempts)::double precision '
        '/ (kana_progress.attempts + 1), '
        'updated_at = NOW() '
        'RETURNING attempts, correct_attempts, accuracy'
    )

    def __init__(self, pool=None):
        from modules.utils.db import ConnectionPool

        self._pool = pool or ConnectionPool.get_instance()
        self._retry_kwargs = dict(
            stop=stop_after_attempt(DB_RETRY_ATTEMPTS),
            wait=wait_exponential(multiplier=DB_RETRY_MULTIPLIER, max=DB_RETRY_MAX_WAIT),
        )

    def _execute(self, operation):
        import psycopg2

        retryer = Retrying(retry=retry_if_exception_type(psycopg2.OperationalError), reraise=True, **self._retry_kwargs)
        try:
            for attempt in retryer:
                with attempt:
                    with self._pool.cursor() as cur:
                        return operation(cur)
        except psycopg2.Error as e:
            LOG.exception('accuracy_store_query_failed', exc_info=True)
            raise AccuracyStoreError(str(e))

    def fetch_accuracy(self, user_id: str, character_ids: Iterable[str]) -> Dict[str, AccuracyRecord]:
        ids = list(character_ids)
        if not ids:
            return {}

        def op(cur):
            cur.execute(self.FETCH_SQL, (user_id, ids))
            return cur.fetchall()

        rows = self._execute(op)
        return {str(r[0]): self._record(user_id, r) for r in rows}

    def upsert_accuracy(self, user_id: str, character_id: str, correct: bool) -> AccuracyRecord:
        correct_inc = 1 if correct else 0

        def op(cur):
            cur.execute(self.UPSERT_SQL, (user_id, character_id, correct_inc, float(correct_inc)))
            return cur.fetchone()

        row = self._execute(op)
        if row is None:
            raise AccuracyStoreError('upsert returned no row')
        return AccuracyRecord(user_id=user_id, character_id=character_id, attempts=row[0], correct_attempts=row[1], accuracy=float(row[2]))

    def list_records(self, user_id: str) -> List[AccuracyRecord]:
        def op(cur):
            cur.execute(self.LIST_SQL, (user_id,))
            return cur.fetchall()

        return [self._record(user_id, r) for r in self._execute(op)]

    def health_check(self) -> bool:
        return self._pool.health_check()

    @staticmethod
    def _record(user_id: str, row) -> AccuracyRecord:
        return AccuracyRecord(user_id=user_id, character_id=str(row[0]), attempts=row[1], correct_attempts=row[2], accuracy=float(row[3]))


_store: Optional[AccuracyStore] = None
_store_lock = threading.Lock()


def get_accuracy_store() -> AccuracyStore:
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                backend = os.getenv('ACCURACY_STORE_BACKEND', ACCURACY_STORE_BACKEND).lower()
                if backend == 'postgres':
                    _store = PostgresAccuracyStore()
                else:
                    _store = InMemoryAccuracyStore()
                LOG.info('accuracy_store_initialized', extra={'backend': _store.name})
    return _store


def set_accuracy_store(store: Optional[AccuracyStore]):
    global _store
    with _store_lock:
        _store = store
