import pytest

from modules.progress import AccuracyRecord


@pytest.mark.integration
def test_list_flashcards_with_accuracy(client, auth_headers, api_backends):
    api_backends['store'].put(AccuracyRecord(user_id='learner-1', character_id='u3042', attempts=4, correct_attempts=3, accuracy=0.75))
    r = client.get('/flashcards', params={'kana_type': 'hiragana'}, headers=auth_headers)
    assert r.status_code == 200
    body = r.json()
    assert body['success'] is True
    assert len(body['kana']) == 71
    first = body['kana'][0]
    assert first == {'id': 'u3042', 'character': 'あ', 'romaji': 'a', 'accuracy': 0.75}
    assert all(k['accuracy'] == 0.0 for k in body['kana'][1:])
    assert r.headers.get('X-Request-ID')


@pytest.mark.integration
def test_list_flashcards_all_and_invalid(client, auth_headers):
    assert len(client.get('/flashcards', headers=auth_headers).json()['kana']) == 142
    bad = client.get('/flashcards', params={'kana_type': 'kanji'}, headers=auth_headers)
    assert bad.status_code == 422


@pytest.mark.integration
def test_list_flashcards_requires_identity(client):
    r = client.get('/flashcards')
    assert r.status_code == 401
    assert r.json()['success'] is False


@pytest.mark.integration
def test_list_flashcards_store_outage(client, auth_headers):
    from modules.progress import set_accuracy_store
    from tests.fixtures.fake_stores import FailingAccuracyStore

    set_accuracy_store(FailingAccuracyStore(fail_reads=True))
    r = client.get('/flashcards', headers=auth_headers)
    assert r.status_code == 503
    assert r.json()['retryable'] is True


@pytest.mark.integration
def test_submit_updates_counters(client, auth_headers, api_backends):
    r = client.post('/flashcards/submit', json={'kana_id': 'u30a2', 'is_correct': True}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()['record']['accuracy'] == 1.0
    r = client.post('/flashcards/submit', json={'kana_id': 'u30a2', 'is_correct': False}, headers=auth_headers)
    rec = r.json()['record']
    assert (rec['attempts'], rec['correct_attempts'], rec['accuracy']) == (2, 1, 0.5)


@pytest.mark.integration
def test_submit_unknown_kana(client, auth_headers, api_backends):
    r = client.post('/flashcards/submit', json={'kana_id': 'nope', 'is_correct': True}, headers=auth_headers)
    assert r.status_code == 404
    assert api_backends['store'].list_records('learner-1') == []


@pytest.mark.integration
def test_submit_store_outage(client, auth_headers):
    from modules.progress import set_accuracy_store
    from tests.fixtures.fake_stores import FailingAccuracyStore

    set_accuracy_store(FailingAccuracyStore())
    r = client.post('/flashcards/submit', json={'kana_id': 'u3042', 'is_correct': True}, headers=auth_headers)
    assert r.status_code == 503
    assert r.json()['retryable'] is True


@pytest.mark.integration
def test_submit_validation(client, auth_headers):
    r = client.post('/flashcards/submit', json={'kana_id': '', 'is_correct': True}, headers=auth_headers)
    assert r.status_code == 422
    assert client.post('/flashcards/submit', json={'kana_id': 'u3042', 'is_correct': True}).status_code == 401
