import os
import threading
from contextlib import contextmanager

from psycopg2 import pool as pg_pool

from .logger import get_logger

LOG = get_logger()


class ConnectionPool:
    """Singleton wrapper around a psycopg2 ``SimpleConnectionPool``.

    ``cursor()`` hands out a cursor on a pooled connection, commits when the
    block exits cleanly and rolls back otherwise.
    """

    _instance = None
    _lock = threading.Lock()

    def __init__(self):
        self.host = os.getenv('DB_HOST', 'localhost')
        self.port = int(os.getenv('DB_PORT', '5432'))
        self.dbname = os.getenv('DB_NAME', 'kana_flashcards')
        minconn = int(os.getenv('DB_POOL_MIN', '1'))
        maxconn = int(os.getenv('DB_POOL_MAX', '10'))
        self._pool = pg_pool.SimpleConnectionPool(
            minconn,
            maxconn,
            host=self.host,
            port=self.port,
            dbname=self.dbname,
            user=os.getenv('DB_USER', 'postgres'),
            password=os.getenv('DB_PASSWORD', ''),
            connect_timeout=int(os.getenv('DB_CONNECT_TIMEOUT', '3')),
        )
        LOG.info('db_pool_initialized', extra={'host': self.host, 'port': self.port, 'dbname': self.dbname, 'maxconn': maxconn})

    @classmethod
    def get_instance(cls) -> 'ConnectionPool':
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = ConnectionPool()
        return cls._instance

    @contextmanager
    def cursor(self):
        conn = self._pool.getconn()
        try:
            cur = conn.cursor()
            try:
                yield cur
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                cur.close()
        finally:
            self._pool.putconn(conn)

    def health_check(self) -> bool:
        try:
            with self.cursor() as cur:
                cur.execute('SELECT 1')
                cur.fetchone()
            return True
        except Exception:
            LOG.exception('db_health_failed', exc_info=True)
            return False

    def close(self):
        try:
            self._pool.closeall()
            LOG.info('db_pool_closed', extra={'host': self.host})
        except Exception:
            LOG.exception('db_pool_close_failed', exc_info=True)
