from uuid import uuid4

from fastapi.testclient import TestClient

from achieva.main import app

client = TestClient(app)


def _register():
    r = client.post('/api/auth/register',
                    json={"email": f"s_{uuid4().hex[:8]}@example.com", "password": "Sunrise2024"})
    assert r.status_code == 200, r.text
    data = r.json()
    return {'Authorization': f"Bearer {data['token']}"}, data['user']['id']


def _goal(headers, **fields):
    r = client.post('/api/goals', headers=headers, json={"title": "Climb Kilimanjaro", **fields})
    assert r.status_code == 200, r.text
    return r.json()['id']


class TestLikes:

    def test_like_is_idempotent(self):
        owner, _ = _register()
        fan, _ = _register()
        gid = _goal(owner)
        assert client.post(f'/api/goals/{gid}/like', headers=fan).json() == {"count": 1, "is_liked": True}
        assert client.post(f'/api/goals/{gid}/like', headers=fan).json() == {"count": 1, "is_liked": True}
        assert client.get(f'/api/goals/{gid}/likes', headers=owner).json() == {"count": 1, "is_liked": False}
        assert client.delete(f'/api/goals/{gid}/like', headers=fan).json() == {"count": 0, "is_liked": False}

    def test_cannot_like_invisible_goal(self):
        owner, _ = _register()
        stranger, _ = _register()
        gid = _goal(owner, visibility="private")
        assert client.post(f'/api/goals/{gid}/like', headers=stranger).status_code == 404
        assert client.get(f'/api/goals/{gid}/likes', headers=stranger).status_code == 404

    def test_batch(self):
        owner, _ = _register()
        fan, _ = _register()
        g1 = _goal(owner)
        g2 = _goal(owner)
        hidden = _goal(owner, visibility="private")
        client.post(f'/api/goals/{g1}/like', headers=fan)
        client.post(f'/api/goals/{g1}/like', headers=owner)
        r = client.post('/api/goals/likes/batch', headers=fan, json={"goal_ids": [g1, g2, hidden]})
        assert r.json() == {g1: {"count": 2, "is_liked": True}, g2: {"count": 0, "is_liked": False}}


class TestComments:

    def test_comment_crud(self):
        owner, owner_id = _register()
        commenter, commenter_id = _register()
        gid = _goal(owner)
        r = client.post(f'/api/goals/{gid}/comments', headers=commenter, json={"content": "  You got this  "})
        assert r.status_code == 200, r.text
        comment = r.json()
        assert comment['content'] == 'You got this'
        assert comment['user_profile']['id'] == commenter_id
        assert client.post(f'/api/goals/{gid}/comments', headers=commenter, json={"content": " "}).status_code == 400

        second = client.post(f'/api/goals/{gid}/comments', headers=owner, json={"content": "Thanks"}).json()
        listed = client.get(f'/api/goals/{gid}/comments', headers=commenter).json()
        assert [c['id'] for c in listed] == [comment['id'], second['id']]

        cid = comment['id']
        assert client.patch(f'/api/comments/{cid}', headers=owner, json={"content": "Hijack"}).status_code == 403
        r = client.patch(f'/api/comments/{cid}', headers=commenter, json={"content": "Edited"})
        assert r.json()['content'] == 'Edited'

        # goal owner may remove other people's comments
        assert client.delete(f'/api/comments/{cid}', headers=owner).status_code == 200
        assert client.delete(f"/api/comments/{second['id']}", headers=commenter).status_code == 403
        assert client.delete(f'/api/comments/{cid}', headers=owner).status_code == 404

    def test_counts(self):
        owner, _ = _register()
        g1 = _goal(owner)
        g2 = _goal(owner)
        for text in ("a", "b"):
            client.post(f'/api/goals/{g1}/comments', headers=owner, json={"content": text})
        r = client.post('/api/goals/comments/counts', headers=owner, json={"goal_ids": [g1, g2]})
        assert r.json() == {g1: 2, g2: 0}

    def test_poll_reports_differences(self):
        owner, _ = _register()
        gid = _goal(owner)
        r = client.get(f'/api/goals/{gid}/comments/poll', headers=owner, params={"timeout": 0})
        assert r.status_code == 200
        assert r.json()['added'] == [] and r.json()['removed'] == []

        first = client.post(f'/api/goals/{gid}/comments', headers=owner, json={"content": "a"}).json()
        r = client.get(f'/api/goals/{gid}/comments/poll', headers=owner, params={"timeout": 0})
        assert r.json()['added'] == [first['id']]
        assert [c['id'] for c in r.json()['comments']] == [first['id']]

        client.delete(f"/api/comments/{first['id']}", headers=owner)
        r = client.get(f'/api/goals/{gid}/comments/poll', headers=owner,
                       params={"known": first['id'], "timeout": 0})
        assert r.json()['removed'] == [first['id']]
        assert r.json()['comments'] == []

    def test_poll_requires_visibility(self):
        owner, _ = _register()
        stranger, _ = _register()
        gid = _goal(owner, visibility="private")
        r = client.get(f'/api/goals/{gid}/comments/poll', headers=stranger, params={"timeout": 0})
        assert r.status_code == 404
