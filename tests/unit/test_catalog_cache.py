import json

from modules.kana import CatalogCache
from tests.fixtures.mock_redis import MockRedisClient

ROWS = [{'id': 'u3042', 'glyph': 'あ', 'romaji': 'a'}]


def test_set_then_get(mock_redis_client, monkeypatch):
    monkeypatch.setenv('CATALOG_CACHE_TTL', '120')
    cache = CatalogCache()
    assert cache.get_catalog('postgres') is None
    cache.set_catalog('postgres', ROWS)
    assert mock_redis_client.expirations['kana_catalog:postgres'] == 120
    assert json.loads(mock_redis_client.store['kana_catalog:postgres'])[0]['glyph'] == 'あ'
    assert cache.get_catalog('postgres') == ROWS


def test_invalidate(mock_redis_client):
    cache = CatalogCache()
    cache.set_catalog('postgres', ROWS)
    cache.invalidate('postgres')
    assert cache.get_catalog('postgres') is None


def test_disabled_by_env(mock_redis_client, monkeypatch):
    monkeypatch.setenv('REDIS_CACHE_ENABLED', 'false')
    cache = CatalogCache()
    cache.set_catalog('postgres', ROWS)
    assert cache.get_catalog('postgres') is None
    assert mock_redis_client.store == {}


def test_unreachable_redis_disables_cache(monkeypatch):
    down = MockRedisClient(fail=True)
    monkeypatch.setattr('redis.Redis', lambda *a, **k: down)
    cache = CatalogCache()
    assert cache.enabled is False
    cache.set_catalog('postgres', ROWS)
    assert cache.get_catalog('postgres') is None


def test_redis_errors_after_connect_are_misses(mock_redis_client):
    cache = CatalogCache()
    mock_redis_client.fail = True
    cache.set_catalog('postgres', ROWS)
    assert cache.get_catalog('postgres') is None
