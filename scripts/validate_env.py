import os
import sys
import argparse
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent / '.env')

errors = []
warnings = []

parser = argparse.ArgumentParser()
parser.add_argument('--strict', '-s', action='store_true', help='Convert warnings to failures')
args = parser.parse_args()
STRICT = args.strict

store_backend = os.getenv('ACCURACY_STORE_BACKEND', 'memory').lower()
catalog_backend = os.getenv('CATALOG_BACKEND', 'builtin').lower()
uses_postgres = 'postgres' in (store_backend, catalog_backend)

required = {
    'server': ['ENVIRONMENT', 'HOST', 'PORT'],
}
if uses_postgres:
    required['database'] = ['DB_HOST', 'DB_PORT', 'DB_NAME', 'DB_USER', 'DB_PASSWORD']


def check_presence(cat, keys):
    for k in keys:
        if not os.getenv(k):
            errors.append(f"{cat}: Missing {k}")


for cat, keys in required.items():
    check_presence(cat, keys)

try:
    port = int(os.getenv('PORT', '0'))
    if port < 1 or port > 65535:
        errors.append('PORT must be integer between 1 and 65535')
except ValueError:
    errors.append('PORT must be an integer')

if store_backend not in ('memory', 'postgres'):
    errors.append("ACCURACY_STORE_BACKEND must be 'memory' or 'postgres'")
elif store_backend == 'memory' and os.getenv('ENVIRONMENT', 'development') == 'production':
    warnings.append('ACCURACY_STORE_BACKEND=memory in production; progress is lost on restart')

if catalog_backend not in ('builtin', 'postgres'):
    errors.append("CATALOG_BACKEND must be 'builtin' or 'postgres'")

try:
    scale = float(os.getenv('SELECTION_WEIGHT_SCALE', '10'))
    if scale < 1:
        errors.append('SELECTION_WEIGHT_SCALE must be >= 1')
except ValueError:
    errors.append('SELECTION_WEIGHT_SCALE must be a number')

try:
    count = int(os.getenv('CHOICE_COUNT', '4'))
    if count < 2 or count > 10:
        errors.append('CHOICE_COUNT must be between 2 and 10')
except ValueError:
    errors.append('CHOICE_COUNT must be an integer')

try:
    ttl = int(os.getenv('SESSION_TTL_SECONDS', '3600'))
    if ttl < 60:
        warnings.append('SESSION_TTL_SECONDS below 60 will expire sessions mid-practice')
except ValueError:
    errors.append('SESSION_TTL_SECONDS must be an integer')

if uses_postgres:
    try:
        import psycopg2
        conn = psycopg2.connect(host=os.getenv('DB_HOST'),
                                port=int(os.getenv('DB_PORT', '5432')),
                                dbname=os.getenv('DB_NAME'),
                                user=os.getenv('DB_USER'),
                                password=os.getenv('DB_PASSWORD'))
        cur = conn.cursor()
        cur.execute('SELECT COUNT(*) FROM kana')
        kana_count = cur.fetchone()[0]
        print(f'Postgres: OK ({kana_count} kana)')
        if kana_count == 0:
            warnings.append('kana table is empty; run scripts/seed_db.py')
        cur.close(); conn.close()
    except Exception as e:
        errors.append(f'Postgres connection failed: {e}')

if os.getenv('REDIS_HOST'):
    try:
        import redis
        r = redis.Redis(host=os.getenv('REDIS_HOST'), port=int(os.getenv('REDIS_PORT', '6379')), password=os.getenv('REDIS_PASSWORD') or None)
        if r.ping():
            print('Redis: OK')
    except Exception as e:
        warnings.append(f'Redis check failed: {e}')

if errors:
    print('\nENV validation failed:')
    for e in errors:
        print(' -', e)
    sys.exit(1)

if warnings:
    print('\nWarnings:')
    for w in warnings:
        print(' -', w)
    if STRICT:
        print('\nStrict mode enabled: treating warnings as errors')
        sys.exit(1)

print('\nAll critical validations passed')
sys.exit(0)
