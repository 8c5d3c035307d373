#!/usr/bin/env python3
"""
Create the PostgreSQL tables for the kana service and seed the kana catalog.
Schema:
  - kana: catalog of hiragana/katakana characters and their romaji
  - kana_progress: per-user attempt/correct counters for each kana

Usage:
  python scripts/seed_db.py          # Create tables, insert missing kana
  python scripts/seed_db.py --reset  # Drop progress and kana data first
"""
import os
import sys
import argparse
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from modules.kana import builtin_characters  # noqa: E402

SCHEMA = """
CREATE TABLE IF NOT EXISTS kana (
    id TEXT PRIMARY KEY,
    character TEXT NOT NULL UNIQUE,
    romaji TEXT NOT NULL CHECK (romaji <> ''),
    sort_order INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS kana_progress (
    id BIGSERIAL PRIMARY KEY,
    user_id TEXT NOT NULL,
    kana_id TEXT NOT NULL REFERENCES kana(id) ON DELETE CASCADE,
    attempts INTEGER NOT NULL DEFAULT 0 CHECK (attempts >= 0),
    correct_attempts INTEGER NOT NULL DEFAULT 0 CHECK (correct_attempts >= 0),
    accuracy DOUBLE PRECISION NOT NULL DEFAULT 0,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (user_id, kana_id),
    CHECK (correct_attempts <= attempts)
);

CREATE INDEX IF NOT EXISTS idx_kana_progress_user ON kana_progress(user_id);
"""

INSERT_KANA = (
    'INSERT INTO kana (id, character, romaji, sort_order) VALUES (%s, %s, %s, %s) '
    'ON CONFLICT (id) DO NOTHING'
)


def seed(conn, reset: bool = False) -> int:
    cur = conn.cursor()
    try:
        cur.execute(SCHEMA)
        if reset:
            print('⚠ Resetting kana and progress data (--reset flag detected)...')
            cur.execute('DELETE FROM kana_progress')
            cur.execute('DELETE FROM kana')
        inserted = 0
        for order, c in enumerate(builtin_characters()):
            cur.execute(INSERT_KANA, (c.id, c.glyph, c.romaji, order))
            inserted += cur.rowcount or 0
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        cur.close()
    return inserted


def main(argv=None) -> int:
    load_dotenv(Path(__file__).parent.parent / '.env')
    parser = argparse.ArgumentParser(description='Create tables and seed the kana catalog')
    parser.add_argument('--reset', action='store_true', help='Delete existing kana and progress rows first')
    args = parser.parse_args(argv)

    import psycopg2

    dbname = os.getenv('DB_NAME', 'kana_flashcards')
    print(f'Seeding database: {dbname}')
    conn = psycopg2.connect(
        host=os.getenv('DB_HOST', 'localhost'),
        port=int(os.getenv('DB_PORT', '5432')),
        dbname=dbname,
        user=os.getenv('DB_USER', 'postgres'),
        password=os.getenv('DB_PASSWORD', ''),
    )
    try:
        inserted = seed(conn, reset=args.reset)
    finally:
        conn.close()
    print(f'✓ Seeding completed ({inserted} kana inserted)')
    return 0


if __name__ == '__main__':
    sys.exit(main())
