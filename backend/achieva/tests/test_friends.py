from uuid import uuid4

from fastapi.testclient import TestClient

from achieva.main import app

client = TestClient(app)


def _register():
    r = client.post('/api/auth/register',
                    json={"email": f"f_{uuid4().hex[:8]}@example.com", "password": "Sunrise2024"})
    assert r.status_code == 200, r.text
    data = r.json()
    return {'Authorization': f"Bearer {data['token']}"}, data['user']['id']


def _request(headers, user_id):
    return client.post('/api/friends/requests', headers=headers, json={"user_id": user_id})


class TestFriendRequests:

    def test_request_accept_flow(self):
        a, a_id = _register()
        b, b_id = _register()
        r = _request(a, b_id)
        assert r.status_code == 200, r.text
        fid = r.json()['id']
        assert r.json()['status'] == 'pending'

        lists = client.get('/api/friends', headers=b).json()
        assert [row['id'] for row in lists['incoming']] == [fid]
        assert lists['incoming'][0]['profile']['id'] == a_id
        assert client.get('/api/friends', headers=a).json()['outgoing'][0]['id'] == fid

        # requester cannot accept their own request
        assert client.post(f'/api/friends/requests/{fid}/accept', headers=a).status_code == 403
        r = client.post(f'/api/friends/requests/{fid}/accept', headers=b)
        assert r.status_code == 200
        assert r.json()['status'] == 'accepted'
        assert r.json()['established_at']
        assert client.post(f'/api/friends/requests/{fid}/accept', headers=b).status_code == 409

        friends = client.get('/api/friends', headers=a).json()['friends']
        assert friends[0]['profile']['id'] == b_id
        assert client.get('/api/friends/count', headers=a).json()['count'] == 1
        assert client.get('/api/friends/count', headers=a, params={"user_id": b_id}).json()['count'] == 1

    def test_invalid_requests(self):
        a, a_id = _register()
        b, b_id = _register()
        assert _request(a, a_id).status_code == 400
        assert _request(a, "no-such-user").status_code == 404
        assert _request(a, b_id).status_code == 200
        assert _request(a, b_id).status_code == 409
        # reverse direction counts as the same relationship
        assert _request(b, a_id).status_code == 409

    def test_reject_and_cancel_delete_the_request(self):
        a, _ = _register()
        b, b_id = _register()
        fid = _request(a, b_id).json()['id']
        assert client.post(f'/api/friends/requests/{fid}/reject', headers=b).status_code == 200
        assert client.get('/api/friends', headers=a).json()['outgoing'] == []
        fid = _request(a, b_id).json()['id']
        assert client.post(f'/api/friends/requests/{fid}/reject', headers=a).status_code == 200
        assert client.get('/api/friends', headers=b).json()['incoming'] == []
        outsider, _ = _register()
        fid = _request(a, b_id).json()['id']
        assert client.post(f'/api/friends/requests/{fid}/reject', headers=outsider).status_code == 403

    def test_request_creates_notification(self):
        a, _ = _register()
        b, b_id = _register()
        fid = _request(a, b_id).json()['id']
        notes = client.get('/api/notifications', headers=b).json()
        assert notes[0]['type'] == 'friend_request'
        assert notes[0]['related_id'] == fid


class TestUnfriendAndBlock:

    def _friends(self):
        a, a_id = _register()
        b, b_id = _register()
        fid = _request(a, b_id).json()['id']
        client.post(f'/api/friends/requests/{fid}/accept', headers=b)
        return a, a_id, b, b_id

    def test_unfriend(self):
        a, a_id, b, b_id = self._friends()
        assert client.delete(f'/api/friends/{a_id}', headers=b).status_code == 200
        assert client.get('/api/friends/count', headers=a).json()['count'] == 0
        assert client.delete(f'/api/friends/{a_id}', headers=b).status_code == 404

    def test_block_hides_relationship_and_prevents_requests(self):
        a, a_id, b, b_id = self._friends()
        r = client.post(f'/api/friends/{b_id}/block', headers=a)
        assert r.status_code == 200
        assert r.json()['status'] == 'blocked'
        lists = client.get('/api/friends', headers=a).json()
        assert lists == {"friends": [], "incoming": [], "outgoing": []}
        assert _request(b, a_id).status_code == 403

    def test_block_stranger(self):
        a, _ = _register()
        _, c_id = _register()
        r = client.post(f'/api/friends/{c_id}/block', headers=a)
        assert r.status_code == 200
        assert r.json()['user_id_1'] != r.json()['user_id_2']
        assert client.post('/api/friends/missing/block', headers=a).status_code == 404
