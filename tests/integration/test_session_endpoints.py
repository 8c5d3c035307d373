import pytest

from modules.kana import builtin_characters

ROMAJI = {c.glyph: c.romaji for c in builtin_characters()}


def _start(client, headers, **body):
    r = client.post('/sessions', json=body or {'kana_type': 'hiragana'}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.integration
def test_practice_round_trip(client, auth_headers, api_backends):
    created = _start(client, auth_headers, kana_type='hiragana')
    sid = created['session_id']
    snap = created['session']
    assert snap['status'] == 'ready'
    assert snap['catalog_size'] == 71
    assert snap['correct_answer'] is None

    glyph = snap['current_character']['glyph']
    r = client.post(f'/sessions/{sid}/answer', json={'answer': ' ' + ROMAJI[glyph].upper()}, headers=auth_headers)
    assert r.status_code == 200
    body = r.json()
    assert body['evaluation']['is_correct'] is True
    assert body['evaluation']['persistence']['saved'] is True
    assert body['evaluation']['record']['attempts'] == 1
    assert body['session']['last_result'] == 'correct'
    assert body['session']['correct_answer'] == ROMAJI[glyph]

    # same card cannot be answered twice
    again = client.post(f'/sessions/{sid}/answer', json={'answer': 'x'}, headers=auth_headers)
    assert again.status_code == 409

    r = client.post(f'/sessions/{sid}/next', headers=auth_headers)
    assert r.status_code == 200
    nxt = r.json()['session']
    assert nxt['last_result'] is None
    assert nxt['current_character']['id'] != snap['current_character']['id']

    records = api_backends['store'].list_records('learner-1')
    assert [(r.attempts, r.correct_attempts) for r in records] == [(1, 1)]


@pytest.mark.integration
def test_wrong_and_empty_answers(client, auth_headers, api_backends):
    sid = _start(client, auth_headers)['session_id']
    empty = client.post(f'/sessions/{sid}/answer', json={'answer': '   '}, headers=auth_headers)
    assert empty.status_code == 422
    assert empty.json()['error'] == 'Validation failed'
    assert api_backends['store'].list_records('learner-1') == []

    r = client.post(f'/sessions/{sid}/answer', json={'answer': 'not-a-kana'}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()['evaluation']['result'] == 'incorrect'


@pytest.mark.integration
def test_multiple_choice_mode(client, auth_headers):
    created = _start(client, auth_headers, kana_type='katakana', mode='multiple-choice')
    snap = created['session']
    assert snap['interaction_mode'] == 'multiple-choice'
    assert ROMAJI[snap['current_character']['glyph']] in snap['choices']
    assert len(snap['choices']) == len(set(snap['choices'])) == 4

    sid = created['session_id']
    r = client.post(f'/sessions/{sid}/mode', json={'mode': 'typing'}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()['session']['choices'] == []
    assert r.json()['session']['current_character'] == snap['current_character']

    bad = client.post(f'/sessions/{sid}/mode', json={'mode': 'voice'}, headers=auth_headers)
    assert bad.status_code == 422


@pytest.mark.integration
def test_invalid_session_parameters(client, auth_headers):
    assert client.post('/sessions', json={'kana_type': 'kanji'}, headers=auth_headers).status_code == 422
    assert client.post('/sessions', json={'mode': 'voice'}, headers=auth_headers).status_code == 422


@pytest.mark.integration
def test_persistence_failure_and_retry(client, auth_headers, api_backends):
    from modules.progress import set_accuracy_store
    from tests.fixtures.fake_stores import FailingAccuracyStore

    store = FailingAccuracyStore()
    set_accuracy_store(store)
    created = _start(client, auth_headers)
    sid = created['session_id']
    glyph = created['session']['current_character']['glyph']

    r = client.post(f'/sessions/{sid}/answer', json={'answer': ROMAJI[glyph]}, headers=auth_headers)
    assert r.status_code == 200
    evaluation = r.json()['evaluation']
    assert evaluation['is_correct'] is True
    assert evaluation['persistence']['saved'] is False
    assert evaluation['persistence']['error']

    failed = client.post(f'/sessions/{sid}/retry-persistence', headers=auth_headers)
    assert failed.json()['success'] is False

    store.fail_writes = False
    ok = client.post(f'/sessions/{sid}/retry-persistence', headers=auth_headers)
    assert ok.status_code == 200
    assert ok.json()['success'] is True
    assert ok.json()['evaluation']['record']['attempts'] == 1


@pytest.mark.integration
def test_catalog_outage_returns_retryable(client, auth_headers, api_backends):
    from modules.kana import set_catalog_provider
    from tests.fixtures.fake_stores import StaticCatalog

    provider = StaticCatalog(builtin_characters(), fail=True)
    set_catalog_provider(provider)
    r = client.post('/sessions', json={'kana_type': 'hiragana'}, headers=auth_headers)
    assert r.status_code == 503
    body = r.json()
    assert body['retryable'] is True
    sid = body['session_id']

    provider.fail = False
    reloaded = client.post(f'/sessions/{sid}/load', headers=auth_headers)
    assert reloaded.status_code == 200
    assert reloaded.json()['session']['status'] == 'ready'


@pytest.mark.integration
def test_empty_catalog_returns_not_found(client, auth_headers, api_backends):
    from modules.kana import set_catalog_provider
    from tests.fixtures.fake_stores import StaticCatalog

    set_catalog_provider(StaticCatalog([]))
    created = _start(client, auth_headers)
    assert created['session']['current_character'] is None
    r = client.post(f"/sessions/{created['session_id']}/next", headers=auth_headers)
    assert r.status_code == 404
    assert r.json()['error'] == 'No content available'


@pytest.mark.integration
def test_sessions_are_private(client, auth_headers):
    sid = _start(client, auth_headers)['session_id']
    other = {'X-User-ID': 'learner-2'}
    assert client.get(f'/sessions/{sid}', headers=other).status_code == 404
    assert client.post(f'/sessions/{sid}/answer', json={'answer': 'a'}, headers=other).status_code == 404
    assert client.delete(f'/sessions/{sid}', headers=other).status_code == 404
    assert client.get(f'/sessions/{sid}', headers=auth_headers).status_code == 200


@pytest.mark.integration
def test_missing_identity_is_unauthorized(client, auth_headers):
    sid = _start(client, auth_headers)['session_id']
    assert client.post('/sessions', json={}).status_code == 401
    assert client.get(f'/sessions/{sid}').status_code == 401
    assert client.post(f'/sessions/{sid}/answer', json={'answer': 'a'}).status_code == 401
    assert client.delete(f'/sessions/{sid}', headers={'X-User-ID': '  '}).status_code == 401


@pytest.mark.integration
def test_discard_session(client, auth_headers):
    sid = _start(client, auth_headers)['session_id']
    assert client.delete(f'/sessions/{sid}', headers=auth_headers).status_code == 200
    assert client.get(f'/sessions/{sid}', headers=auth_headers).status_code == 404
