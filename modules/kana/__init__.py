"""
Kana catalog: hiragana/katakana characters and their romaji readings.
Provides the built-in character set, script detection and catalog providers
(built-in data or PostgreSQL read through a Redis cache).
"""

from .catalog import (
	Character,
	CatalogEntry,
	KanaType,
	CatalogProvider,
	BuiltinCatalog,
	PostgresCatalog,
	CatalogSourceError,
	parse_kana_type,
	script_of,
	filter_by_type,
	builtin_characters,
	get_catalog_provider,
	set_catalog_provider,
)
from .cache_manager import CatalogCache

__all__ = [
	'Character',
	'CatalogEntry',
	'KanaType',
	'CatalogProvider',
	'BuiltinCatalog',
	'PostgresCatalog',
	'CatalogSourceError',
	'CatalogCache',
	'parse_kana_type',
	'script_of',
	'filter_by_type',
	'builtin_characters',
	'get_catalog_provider',
	'set_catalog_provider',
]
