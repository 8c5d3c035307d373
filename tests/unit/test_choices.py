import random

import pytest

from modules.kana import BuiltinCatalog, CatalogEntry
from modules.flashcards import generate_choices


def test_choices_include_correct_once_and_are_distinct():
    catalog = [CatalogEntry(id=c.id, glyph=c.glyph, romaji=c.romaji) for c in BuiltinCatalog().fetch_catalog(None)]
    r = random.Random(3)
    for correct in catalog:
        choices = generate_choices(catalog, correct, rng=r)
        assert choices.count(correct.romaji) == 1
        assert len(choices) == len(set(choices))
        assert len(choices) == 4


def test_choices_shuffle_moves_correct_answer(small_catalog):
    correct = small_catalog[0]
    r = random.Random(11)
    positions = {generate_choices(small_catalog, correct, rng=r).index(correct.romaji) for _ in range(40)}
    assert len(positions) > 1


def test_choices_shuffle_with_module_random(small_catalog):
    correct = small_catalog[2]
    positions = {generate_choices(small_catalog, correct).index(correct.romaji) for _ in range(60)}
    assert len(positions) > 1


def test_two_character_catalog_returns_fewer_choices():
    catalog = [CatalogEntry(id='a', glyph='あ', romaji='a'), CatalogEntry(id='i', glyph='い', romaji='i')]
    choices = generate_choices(catalog, catalog[0])
    assert sorted(choices) == ['a', 'i']


def test_single_character_catalog_returns_only_answer():
    catalog = [CatalogEntry(id='a', glyph='あ', romaji='a')]
    assert generate_choices(catalog, catalog[0]) == ['a']


def test_shared_romaji_never_appears_twice(ji_catalog):
    for seed in range(50):
        for correct in ji_catalog:
            choices = generate_choices(ji_catalog, correct, rng=random.Random(seed))
            assert choices.count('ji') <= 1
            assert choices.count('zu') <= 1
            assert choices.count(correct.romaji) == 1


def test_shared_romaji_pool_is_smaller_than_requested(ji_catalog):
    # only ji, za, zu are distinct readings
    choices = generate_choices(ji_catalog, ji_catalog[0], count=4, rng=random.Random(0))
    assert sorted(choices) == ['ji', 'za', 'zu']


def test_count_one_returns_only_answer(small_catalog):
    assert generate_choices(small_catalog, small_catalog[1], count=1) == ['i']


def test_count_below_one_rejected(small_catalog):
    with pytest.raises(ValueError):
        generate_choices(small_catalog, small_catalog[0], count=0)


def test_correct_answer_outside_catalog(small_catalog):
    from modules.kana import Character
    stranger = Character(id='u3093', glyph='ん', romaji='n')
    choices = generate_choices(small_catalog, stranger, rng=random.Random(5))
    assert choices.count('n') == 1
    assert len(choices) == 4
