from uuid import uuid4

from fastapi.testclient import TestClient

from achieva.main import app

client = TestClient(app)


def _register():
    r = client.post('/api/auth/register',
                    json={"email": f"n_{uuid4().hex[:8]}@example.com", "password": "Sunrise2024"})
    assert r.status_code == 200, r.text
    data = r.json()
    return {'Authorization': f"Bearer {data['token']}"}, data['user']['id']


def test_unread_count_splits_requests_and_notifications():
    a, _ = _register()
    b, b_id = _register()
    c, _ = _register()
    fid = client.post('/api/friends/requests', headers=a, json={"user_id": b_id}).json()['id']
    client.post('/api/friends/requests', headers=c, json={"user_id": b_id})
    counts = client.get('/api/notifications/unread-count', headers=b).json()
    # each pending request is counted once
    assert counts == {"notifications": 0, "friend_requests": 2, "total": 2}
    assert client.get('/api/notifications/unread-count', headers=a).json()['total'] == 0

    assert client.post(f'/api/friends/requests/{fid}/accept', headers=b).status_code == 200
    cid = client.post('/api/conversations/direct', headers=a, json={"user_id": b_id}).json()['id']
    client.post(f'/api/conversations/{cid}/messages', headers=a, json={"text": "hi"})
    counts = client.get('/api/notifications/unread-count', headers=b).json()
    assert counts == {"notifications": 1, "friend_requests": 1, "total": 2}


def test_mark_read_and_read_all():
    a, _ = _register()
    b, b_id = _register()
    c, _ = _register()
    client.post('/api/friends/requests', headers=a, json={"user_id": b_id})
    client.post('/api/friends/requests', headers=c, json={"user_id": b_id})
    notes = client.get('/api/notifications', headers=b).json()
    assert [n['is_read'] for n in notes] == [False, False]

    r = client.post(f"/api/notifications/{notes[0]['id']}/read", headers=b)
    assert r.status_code == 200
    assert r.json()['is_read'] is True
    first_id, first_read_at = notes[0]['id'], r.json()['read_at']
    # other users cannot touch it
    assert client.post(f"/api/notifications/{notes[1]['id']}/read", headers=a).status_code == 404

    r = client.post('/api/notifications/read-all', headers=b)
    assert r.json() == {"updated": 1}
    notes = {n['id']: n for n in client.get('/api/notifications', headers=b).json()}
    assert all(n['is_read'] for n in notes.values())
    # already-read rows keep their original timestamp
    assert notes[first_id]['read_at'] == first_read_at
    assert client.get('/api/notifications/unread-count', headers=b).json()['notifications'] == 0


def test_pagination():
    target, target_id = _register()
    for _ in range(3):
        other, _ = _register()
        client.post('/api/friends/requests', headers=other, json={"user_id": target_id})
    page = client.get('/api/notifications', headers=target, params={"limit": 2}).json()
    rest = client.get('/api/notifications', headers=target, params={"limit": 2, "offset": 2}).json()
    assert len(page) == 2 and len(rest) == 1
    assert page[0]['created_at'] >= page[1]['created_at'] >= rest[0]['created_at']
