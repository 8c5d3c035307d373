"""Adaptive card selection and multiple-choice distractor generation.

Characters the learner answers less accurately get a larger sampling weight::

    weight(c) = max(1, (1 - accuracy(c)) * K)

with ``K = SELECTION_WEIGHT_SCALE`` (10 by default). With K = 10 an unseen or
never-correct character is ten times as likely as a mastered one.
"""
from __future__ import annotations

import os
import random
from typing import Optional, List, Sequence

from modules.kana import CatalogEntry, Character

from .errors import EmptyCatalog

SELECTION_WEIGHT_SCALE = float(os.getenv('SELECTION_WEIGHT_SCALE', '10'))
CHOICE_COUNT = int(os.getenv('CHOICE_COUNT', '4'))


def selection_weight(entry: CatalogEntry, scale: Optional[float] = None) -> float:
    k = SELECTION_WEIGHT_SCALE if scale is None else scale
    return max(1.0, (1.0 - float(entry.accuracy)) * k)


def select_next(catalog: Sequence[CatalogEntry], exclude_id: Optional[str] = None, rng: Optional[random.Random] = None, scale: Optional[float] = None) -> CatalogEntry:
    if not catalog:
        raise EmptyCatalog('catalog is empty')
    rng = rng or random
    candidates = list(catalog)
    if exclude_id is not None:
        # soft constraint: fall back to the full catalog rather than select nothing
        candidates = [c for c in catalog if c.id != exclude_id] or list(catalog)

    weights = [selection_weight(c, scale) for c in candidates]
    draw = rng.random() * sum(weights)
    cumulative = 0.0
    for entry, weight in zip(candidates, weights):
        cumulative += weight
        if cumulative > draw:
            return entry
    # rounding left the draw past the accumulated total
    return candidates[-1]


def generate_choices(catalog: Sequence[Character], correct: Character, count: int = CHOICE_COUNT, rng: Optional[random.Random] = None) -> List[str]:
    """Return up to ``count`` distinct romaji strings, the correct one exactly once, shuffled.

    Distractors come from the other characters' romaji with duplicates
    removed, so characters sharing a reading (じ/ぢ) never appear as two
    identical buttons. Small catalogs yield fewer choices instead of padding.
    """
    if count < 1:
        raise ValueError('count must be at least 1')
    rng = rng or random
    answer = correct.romaji
    seen = {answer}
    pool: List[str] = []
    for entry in catalog:
        if entry.romaji in seen:
            continue
        seen.add(entry.romaji)
        pool.append(entry.romaji)

    choices = [answer] + rng.sample(pool, min(count - 1, len(pool)))
    rng.shuffle(choices)
    return choices
