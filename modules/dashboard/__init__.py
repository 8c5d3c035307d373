"""Progress dashboard aggregation over per-user accuracy records."""

from .stats import KanaStats, DashboardSummary, build_stats, summarize, SORT_COLUMNS

__all__ = [
	'KanaStats',
	'DashboardSummary',
	'build_stats',
	'summarize',
	'SORT_COLUMNS',
]
