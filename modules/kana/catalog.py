from __future__ import annotations

import os
import threading
from enum import Enum
from typing import Optional, List, Dict, Any, Iterable, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modules.utils import get_logger

LOG = get_logger()

CATALOG_BACKEND = os.getenv('CATALOG_BACKEND', 'builtin')

# Unicode hiragana block; everything outside it is treated as katakana
HIRAGANA_RANGE = (0x3040, 0x309F)


class CatalogSourceError(Exception):
    pass


class KanaType(str, Enum):
    HIRAGANA = 'hiragana'
    KATAKANA = 'katakana'


def parse_kana_type(value: Any) -> Optional[KanaType]:
    """Map a user supplied selector to a KanaType. ``None``, ``''`` and ``'all'`` select both scripts."""
    if value is None or isinstance(value, KanaType):
        return value
    v = str(value).strip().lower()
    if v in ('', 'all'):
        return None
    try:
        return KanaType(v)
    except ValueError:
        raise ValueError(f"kana_type must be one of hiragana, katakana, all (got {value!r})")


class Character(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    glyph: str = Field(..., min_length=1)
    romaji: str

    @field_validator('romaji')
    @classmethod
    def _canonical_romaji(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError('romaji must be non-empty')
        return v

    @property
    def kana_type(self) -> KanaType:
        return script_of(self.glyph)


class CatalogEntry(Character):
    accuracy: float = 0.0


def script_of(glyph: str) -> KanaType:
    code = ord(glyph[0])
    if HIRAGANA_RANGE[0] <= code <= HIRAGANA_RANGE[1]:
        return KanaType.HIRAGANA
    return KanaType.KATAKANA


def filter_by_type(characters: Iterable[Character], kana_type: Optional[KanaType]) -> List[Character]:
    if kana_type is None:
        return list(characters)
    return [c for c in characters if script_of(c.glyph) == kana_type]


def character_id(glyph: str) -> str:
    return f'u{ord(glyph[0]):04x}'


# 46 basic + 25 dakuten/handakuten per script
HIRAGANA: List[Tuple[str, str]] = [
    ('あ', 'a'), ('い', 'i'), ('う', 'u'), ('え', 'e'), ('お', 'o'),
    ('か', 'ka'), ('き', 'ki'), ('く', 'ku'), ('け', 'ke'), ('こ', 'ko'),
    ('さ', 'sa'), ('し', 'shi'), ('す', 'su'), ('せ', 'se'), ('そ', 'so'),
    ('た', 'ta'), ('ち', 'chi'), ('つ', 'tsu'), ('て', 'te'), ('と', 'to'),
    ('な', 'na'), ('に', 'ni'), ('ぬ', 'nu'), ('ね', 'ne'), ('の', 'no'),
    ('は', 'ha'), ('ひ', 'hi'), ('ふ', 'fu'), ('へ', 'he'), ('ほ', 'ho'),
    ('ま', 'ma'), ('み', 'mi'), ('む', 'mu'), ('め', 'me'), ('も', 'mo'),
    ('や', 'ya'), ('ゆ', 'yu'), ('よ', 'yo'),
    ('ら', 'ra'), ('り', 'ri'), ('る', 'ru'), ('れ', 're'), ('ろ', 'ro'),
    ('わ', 'wa'), ('を', 'wo'), ('ん', 'n'),
    ('が', 'ga'), ('ぎ', 'gi'), ('ぐ', 'gu'), ('げ', 'ge'), ('ご', 'go'),
    ('ざ', 'za'), ('じ', 'ji'), ('ず', 'zu'), ('ぜ', 'ze'), ('ぞ', 'zo'),
    ('だ', 'da'), ('ぢ', 'ji'), ('づ', 'zu'), ('で', 'de'), ('ど', 'do'),
    ('ば', 'ba'), ('び', 'bi'), ('ぶ', 'bu'), ('べ', 'be'), ('ぼ', 'bo'),
    ('ぱ', 'pa'), ('ぴ', 'pi'), ('ぷ', 'pu'), ('ぺ', 'pe'), ('ぽ', 'po'),
]

KATAKANA: List[Tuple[str, str]] = [
    ('ア', 'a'), ('イ', 'i'), ('ウ', 'u'), ('エ', 'e'), ('オ', 'o'),
    ('カ', 'ka'), ('キ', 'ki'), ('ク', 'ku'), ('ケ', 'ke'), ('コ', 'ko'),
    ('サ', 'sa'), ('シ', 'shi'), ('ス', 'su'), ('セ', 'se'), ('ソ', 'so'),
    ('タ', 'ta'), ('チ', 'chi'), ('ツ', 'tsu'), ('テ', 'te'), ('ト', 'to'),
    ('ナ', 'na'), ('ニ', 'ni'), ('ヌ', 'nu'), ('ネ', 'ne'), ('ノ', 'no'),
    ('ハ', 'ha'), ('ヒ', 'hi'), ('フ', 'fu'), ('ヘ', 'he'), ('ホ', 'ho'),
    ('マ', 'ma'), ('ミ', 'mi'), ('ム', 'mu'), ('メ', 'me'), ('モ', 'mo'),
    ('ヤ', 'ya'), ('ユ', 'yu'), ('ヨ', 'yo'),
    ('ラ', 'ra'), ('リ', 'ri'), ('ル', 'ru'), ('レ', 're'), ('ロ', 'ro'),
    ('ワ', 'wa'), ('ヲ', 'wo'), ('ン', 'n'),
    ('ガ', 'ga'), ('ギ', 'gi'), ('グ', 'gu'), ('ゲ', 'ge'), ('ゴ', 'go'),
    ('ザ', 'za'), ('ジ', 'ji'), ('ズ', 'zu'), ('ゼ', 'ze'), ('ゾ', 'zo'),
    ('ダ', 'da'), ('ヂ', 'ji'), ('ヅ', 'zu'), ('デ', 'de'), ('ド', 'do'),
    ('バ', 'ba'), ('ビ', 'bi'), ('ブ', 'bu'), ('ベ', 'be'), ('ボ', 'bo'),
    ('パ', 'pa'), ('ピ', 'pi'), ('プ', 'pu'), ('ペ', 'pe'), ('ポ', 'po'),
]


def builtin_characters() -> List[Character]:
    return [Character(id=character_id(g), glyph=g, romaji=r) for g, r in HIRAGANA + KATAKANA]


class CatalogProvider:
    """Read-only source of kana characters. ``fetch_catalog`` must be idempotent."""

    name = 'base'

    def fetch_catalog(self, kana_type: Optional[KanaType] = None) -> List[Character]:
        raise NotImplementedError

    def health_check(self) -> bool:
        return True


class BuiltinCatalog(CatalogProvider):
    name = 'builtin'

    def __init__(self):
        self._characters = builtin_characters()

    def fetch_catalog(self, kana_type: Optional[KanaType] = None) -> List[Character]:
        return filter_by_type(self._characters, parse_kana_type(kana_type))


class PostgresCatalog(CatalogProvider):
    """Catalog rows from the ``kana`` table, read through the Redis catalog cache."""

    name = 'postgres'
    QUERY = 'SELECT id, character, romaji FROM kana ORDER BY sort_order, id'

    def __init__(self, pool=None, cache=None):
        from modules.utils.db import ConnectionPool
        from .cache_manager import CatalogCache

        self._pool = pool or ConnectionPool.get_instance()
        self._cache = cache or CatalogCache.get_instance()

    def _load_rows(self) -> List[Dict[str, Any]]:
        cached = self._cache.get_catalog(self.name)
        if cached is not None:
            return cached
        import psycopg2

        try:
            with self._pool.cursor() as cur:
                cur.execute(self.QUERY)
                rows = cur.fetchall()
        except psycopg2.Error as e:
            LOG.exception('catalog_query_failed', exc_info=True)
            raise CatalogSourceError(str(e))
        out = [{'id': str(r[0]), 'glyph': r[1], 'romaji': r[2]} for r in rows]
        self._cache.set_catalog(self.name, out)
        return out

    def fetch_catalog(self, kana_type: Optional[KanaType] = None) -> List[Character]:
        rows = self._load_rows()
        try:
            characters = [Character(**r) for r in rows]
        except ValueError as e:
            raise CatalogSourceError(f'invalid kana row: {e}')
        return filter_by_type(characters, parse_kana_type(kana_type))

    def health_check(self) -> bool:
        return self._pool.health_check()


_provider: Optional[CatalogProvider] = None
_provider_lock = threading.Lock()


def get_catalog_provider() -> CatalogProvider:
    global _provider
    if _provider is None:
        with _provider_lock:
            if _provider is None:
                backend = os.getenv('CATALOG_BACKEND', CATALOG_BACKEND).lower()
                if backend == 'postgres':
                    _provider = PostgresCatalog()
                else:
                    _provider = BuiltinCatalog()
                LOG.info('catalog_provider_initialized', extra={'backend': _provider.name})
    return _provider


def set_catalog_provider(provider: Optional[CatalogProvider]):
    global _provider
    with _provider_lock:
        _provider = provider
