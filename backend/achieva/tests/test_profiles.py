from uuid import uuid4

from fastapi.testclient import TestClient

from achieva.main import app

client = TestClient(app)


def _register():
    r = client.post('/api/auth/register',
                    json={"email": f"p_{uuid4().hex[:8]}@example.com", "password": "Sunrise2024"})
    assert r.status_code == 200, r.text
    data = r.json()
    return {'Authorization': f"Bearer {data['token']}"}, data['user']['id']


def test_update_and_read_profile():
    headers, user_id = _register()
    r = client.put('/api/profiles/me', headers=headers,
                   json={"username": "climber", "first_name": "Ada", "last_name": "Lovelace"})
    assert r.status_code == 200, r.text
    assert r.json()['full_name'] == 'Ada Lovelace'
    r = client.get('/api/profiles/me', headers=headers)
    assert r.json()['username'] == 'climber'
    other_headers, _ = _register()
    r = client.get(f'/api/profiles/{user_id}', headers=other_headers)
    assert r.status_code == 200
    assert r.json()['first_name'] == 'Ada'


def test_username_conflict():
    a, _ = _register()
    b, _ = _register()
    assert client.put('/api/profiles/me', headers=a, json={"username": "taken"}).status_code == 200
    r = client.put('/api/profiles/me', headers=b, json={"username": "taken"})
    assert r.status_code == 409
    # re-saving your own username is fine
    assert client.put('/api/profiles/me', headers=a, json={"username": "taken"}).status_code == 200


def test_unknown_profile_is_404():
    headers, _ = _register()
    assert client.get('/api/profiles/nope', headers=headers).status_code == 404


def test_batch_lookup_skips_unknown_ids():
    headers, a = _register()
    _, b = _register()
    r = client.get('/api/profiles', headers=headers, params={"ids": f"{a},missing,{b}"})
    assert r.status_code == 200
    assert [p['id'] for p in r.json()] == [a, b]


def test_search_matches_names_and_reports_friendship():
    me, my_id = _register()
    other, other_id = _register()
    client.put('/api/profiles/me', headers=other, json={"username": "mountain_goat", "first_name": "Hilary"})
    r = client.get('/api/profiles/search', headers=me, params={"q": "MOUNTAIN"})
    assert [p['id'] for p in r.json()] == [other_id]
    assert r.json()[0]['friendship'] is None
    r = client.get('/api/profiles/search', headers=me, params={"q": "hil"})
    assert [p['id'] for p in r.json()] == [other_id]

    client.post('/api/friends/requests', headers=me, json={"user_id": other_id})
    r = client.get('/api/profiles/search', headers=me, params={"q": "goat"})
    status = r.json()[0]['friendship']
    assert status['status'] == 'pending'
    assert status['is_incoming'] is False
    r = client.get('/api/profiles/search', headers=other, params={"q": my_id[:8]})
    assert r.json()[0]['friendship']['is_incoming'] is True


def test_search_excludes_caller_and_empty_query():
    me, my_id = _register()
    client.put('/api/profiles/me', headers=me, json={"username": "solo_hiker"})
    assert client.get('/api/profiles/search', headers=me, params={"q": "solo"}).json() == []
    assert client.get('/api/profiles/search', headers=me, params={"q": "  "}).json() == []


def test_search_treats_wildcards_literally():
    me, _ = _register()
    other, other_id = _register()
    assert client.get('/api/profiles/search', headers=me, params={"q": "%"}).json() == []
    assert client.get('/api/profiles/search', headers=me, params={"q": "_"}).json() == []
    client.put('/api/profiles/me', headers=other, json={"username": "trail_runner"})
    r = client.get('/api/profiles/search', headers=me, params={"q": "l_r"})
    assert [p['id'] for p in r.json()] == [other_id]
    assert client.get('/api/profiles/search', headers=me, params={"q": "il_"}).json() == []
