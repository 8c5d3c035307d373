"""
Per-user accuracy tracking for kana characters.
Stores attempt/correct counters per (user, character) with atomic
increment-or-create updates, in memory or in PostgreSQL.
"""

from .accuracy_store import (
	AccuracyRecord,
	AccuracyStore,
	InMemoryAccuracyStore,
	PostgresAccuracyStore,
	AccuracyStoreError,
	compute_accuracy,
	get_accuracy_store,
	set_accuracy_store,
)

__all__ = [
	'AccuracyRecord',
	'AccuracyStore',
	'InMemoryAccuracyStore',
	'PostgresAccuracyStore',
	'AccuracyStoreError',
	'compute_accuracy',
	'get_accuracy_store',
	'set_accuracy_store',
]
