import os
import random
import pytest
from unittest.mock import MagicMock
from pathlib import Path

from dotenv import load_dotenv

# load test env first
env_path = Path(__file__).resolve().parents[1] / '.env.test'
if env_path.exists():
    load_dotenv(env_path)

os.environ.setdefault('TESTING', '1')
os.environ.setdefault('LOG_FORMAT', 'text')


@pytest.fixture(autouse=True)
def silence_logger(monkeypatch):
    # Patch any project logger acquisition to avoid noisy logs
    try:
        import modules.utils.logger as logger_mod
        monkeypatch.setattr(logger_mod, 'get_logger', lambda *a, **k: MagicMock())
    except Exception:
        pass
    yield


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def small_catalog():
    from tests.fixtures.sample_data import small_catalog as build
    return build()


@pytest.fixture
def ji_catalog():
    from tests.fixtures.sample_data import ji_catalog as build
    return build()


@pytest.fixture
def memory_store():
    from modules.progress import InMemoryAccuracyStore
    return InMemoryAccuracyStore()


@pytest.fixture
def failing_store():
    from tests.fixtures.fake_stores import FailingAccuracyStore
    return FailingAccuracyStore()


@pytest.fixture
def builtin_catalog():
    from modules.kana import BuiltinCatalog
    return BuiltinCatalog()


@pytest.fixture
def make_session(memory_store, builtin_catalog):
    from modules.flashcards import FlashcardSession

    def _make(user_id='u1', store=None, provider=None, kana_type='hiragana', mode='typing', seed=7):
        return FlashcardSession(
            user_id,
            store or memory_store,
            provider or builtin_catalog,
            kana_type=kana_type,
            interaction_mode=mode,
            rng=random.Random(seed),
        )

    return _make


@pytest.fixture
def api_backends(memory_store, builtin_catalog):
    """Wire the HTTP layer to an in-memory store, the built-in catalog and a fresh session registry."""
    from modules.progress import set_accuracy_store
    from modules.kana import set_catalog_provider
    from modules.flashcards import SessionManager

    set_accuracy_store(memory_store)
    set_catalog_provider(builtin_catalog)
    SessionManager._instance = None
    yield {'store': memory_store, 'catalog': builtin_catalog}
    set_accuracy_store(None)
    set_catalog_provider(None)
    SessionManager._instance = None


@pytest.fixture
def client(api_backends):
    from fastapi.testclient import TestClient
    import main as kana_main
    return TestClient(kana_main.app)


@pytest.fixture
def auth_headers():
    return {'X-User-ID': 'learner-1'}


@pytest.fixture
def mock_redis_client(monkeypatch):
    from tests.fixtures.mock_redis import MockRedisClient
    client = MockRedisClient()
    monkeypatch.setattr('redis.Redis', lambda *a, **k: client)
    return client


@pytest.fixture
def mock_postgres_pool(monkeypatch):
    from tests.fixtures.mock_postgres import MockPool
    pool = MockPool()
    monkeypatch.setattr('psycopg2.pool.SimpleConnectionPool', lambda *a, **k: pool)
    return pool
