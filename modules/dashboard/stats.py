from __future__ import annotations

from typing import List, Dict, Iterable, Optional

from pydantic import BaseModel, Field

from modules.kana import Character, KanaType, parse_kana_type, script_of
from modules.progress import AccuracyRecord

SORT_COLUMNS = ('character', 'romaji', 'attempts', 'accuracy')
SORT_DIRECTIONS = ('asc', 'desc')


class KanaStats(BaseModel):
    id: str
    glyph: str
    romaji: str
    kana_type: KanaType
    attempts: int = 0
    correct_attempts: int = 0
    accuracy: float = 0.0


class DashboardSummary(BaseModel):
    rows: List[KanaStats] = Field(default_factory=list)
    filter: str = 'all'
    sort_column: str = 'accuracy'
    sort_direction: str = 'asc'
    average_accuracy: float = 0.0
    total_attempts: int = 0
    total_correct: int = 0
    attempted_count: int = 0
    character_count: int = 0


def build_stats(characters: Iterable[Character], records: Iterable[AccuracyRecord]) -> List[KanaStats]:
    """One row per character, zero baseline where the user has no record. Stored values are not recomputed."""
    by_id: Dict[str, AccuracyRecord] = {r.character_id: r for r in records}
    rows: List[KanaStats] = []
    for c in characters:
        rec = by_id.get(c.id)
        rows.append(KanaStats(
            id=c.id,
            glyph=c.glyph,
            romaji=c.romaji,
            kana_type=script_of(c.glyph),
            attempts=rec.attempts if rec else 0,
            correct_attempts=rec.correct_attempts if rec else 0,
            accuracy=rec.accuracy if rec else 0.0,
        ))
    return rows


def _sort_key(column: str):
    if column == 'character':
        return lambda r: r.glyph
    if column == 'romaji':
        return lambda r: r.romaji
    if column == 'attempts':
        return lambda r: r.attempts
    return lambda r: r.accuracy


def summarize(rows: Iterable[KanaStats], script_filter: Optional[str] = 'all', sort_column: str = 'accuracy', sort_direction: str = 'asc') -> DashboardSummary:
    if sort_column not in SORT_COLUMNS:
        raise ValueError(f"sort column must be one of {', '.join(SORT_COLUMNS)}")
    if sort_direction not in SORT_DIRECTIONS:
        raise ValueError("sort direction must be 'asc' or 'desc'")
    kana_type = parse_kana_type(script_filter)

    selected = [r for r in rows if kana_type is None or r.kana_type == kana_type]
    ordered = sorted(selected, key=_sort_key(sort_column), reverse=sort_direction == 'desc')

    attempted = [r for r in ordered if r.attempts > 0]
    average = sum(r.accuracy for r in attempted) / len(attempted) if attempted else 0.0
    return DashboardSummary(
        rows=ordered,
        filter=kana_type.value if kana_type else 'all',
        sort_column=sort_column,
        sort_direction=sort_direction,
        average_accuracy=average,
        total_attempts=sum(r.attempts for r in ordered),
        total_correct=sum(r.correct_attempts for r in ordered),
        attempted_count=len(attempted),
        character_count=len(ordered),
    )
