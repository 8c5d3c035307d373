from modules.kana import CatalogEntry


def small_catalog():
    return [
        CatalogEntry(id='u3042', glyph='あ', romaji='a', accuracy=0.0),
        CatalogEntry(id='u3044', glyph='い', romaji='i', accuracy=0.5),
        CatalogEntry(id='u3046', glyph='う', romaji='u', accuracy=0.9),
        CatalogEntry(id='u304b', glyph='か', romaji='ka', accuracy=1.0),
        CatalogEntry(id='u304d', glyph='き', romaji='ki', accuracy=0.2),
        CatalogEntry(id='u304f', glyph='く', romaji='ku', accuracy=0.0),
    ]


def ji_catalog():
    # じ and ぢ share a reading
    return [
        CatalogEntry(id='u3058', glyph='じ', romaji='ji'),
        CatalogEntry(id='u3062', glyph='ぢ', romaji='ji'),
        CatalogEntry(id='u3056', glyph='ざ', romaji='za'),
        CatalogEntry(id='u305a', glyph='ず', romaji='zu'),
        CatalogEntry(id='u3065', glyph='づ', romaji='zu'),
    ]


def stats_rows_input():
    from modules.kana import Character
    from modules.progress import AccuracyRecord

    characters = [
        Character(id='u3042', glyph='あ', romaji='a'),
        Character(id='u3044', glyph='い', romaji='i'),
        Character(id='u30a2', glyph='ア', romaji='a'),
        Character(id='u30ab', glyph='カ', romaji='ka'),
    ]
    records = [
        AccuracyRecord(user_id='u1', character_id='u3042', attempts=4, correct_attempts=3, accuracy=0.75),
        AccuracyRecord(user_id='u1', character_id='u30ab', attempts=2, correct_attempts=0, accuracy=0.0),
    ]
    return characters, records
