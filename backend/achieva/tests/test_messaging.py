"""Conversations, messages, read state and the message long-poll."""
from uuid import uuid4

from fastapi.testclient import TestClient

from achieva.main import app

client = TestClient(app)


def _register():
    r = client.post('/api/auth/register',
                    json={"email": f"m_{uuid4().hex[:8]}@example.com", "password": "Sunrise2024"})
    assert r.status_code == 200, r.text
    data = r.json()
    return {'Authorization': f"Bearer {data['token']}"}, data['user']['id']


def _befriend(a, b, b_id):
    fid = client.post('/api/friends/requests', headers=a, json={"user_id": b_id}).json()['id']
    assert client.post(f'/api/friends/requests/{fid}/accept', headers=b).status_code == 200


def _direct(a, b_id):
    r = client.post('/api/conversations/direct', headers=a, json={"user_id": b_id})
    assert r.status_code == 200, r.text
    return r.json()['id']


def _send(headers, cid, text=None, **fields):
    return client.post(f'/api/conversations/{cid}/messages', headers=headers, json={"text": text, **fields})


class TestConversations:

    def test_direct_requires_friendship(self):
        a, _ = _register()
        _, b_id = _register()
        r = client.post('/api/conversations/direct', headers=a, json={"user_id": b_id})
        assert r.status_code == 403
        assert r.json()['detail'] == 'You can only message friends'

    def test_direct_is_reused_in_both_directions(self):
        a, a_id = _register()
        b, b_id = _register()
        _befriend(a, b, b_id)
        cid = _direct(a, b_id)
        assert _direct(a, b_id) == cid
        assert _direct(b, a_id) == cid
        conv = client.get(f'/api/conversations/{cid}', headers=a).json()
        assert {p['user_id'] for p in conv['participants']} == {a_id, b_id}
        assert conv['other_participant_profile']['id'] == b_id
        assert conv['display_name'] == 'User'

    def test_group(self):
        a, a_id = _register()
        b, b_id = _register()
        c, c_id = _register()
        stranger, stranger_id = _register()
        _befriend(a, b, b_id)
        _befriend(a, c, c_id)
        r = client.post('/api/conversations/group', headers=a,
                        json={"name": "Trip crew", "participant_ids": [b_id, c_id, b_id, a_id]})
        assert r.status_code == 200, r.text
        assert sorted(p['user_id'] for p in r.json()['participants']) == sorted([a_id, b_id, c_id])
        assert client.post('/api/conversations/group', headers=a,
                           json={"name": " ", "participant_ids": [b_id]}).status_code == 400
        assert client.post('/api/conversations/group', headers=a,
                           json={"name": "Nope", "participant_ids": [stranger_id]}).status_code == 403
        convs = client.get('/api/conversations', headers=c).json()
        assert convs[0]['display_name'] == 'Trip crew'

    def test_outsider_cannot_read(self):
        a, _ = _register()
        b, b_id = _register()
        outsider, _ = _register()
        _befriend(a, b, b_id)
        cid = _direct(a, b_id)
        assert client.get(f'/api/conversations/{cid}', headers=outsider).status_code == 403
        assert _send(outsider, cid, "hi").status_code == 403
        assert client.get(f'/api/conversations/{cid}/messages', headers=outsider).status_code == 403
        assert client.get('/api/conversations/missing', headers=a).status_code == 404

    def test_list_orders_by_latest_message(self):
        a, _ = _register()
        b, b_id = _register()
        c, c_id = _register()
        _befriend(a, b, b_id)
        _befriend(a, c, c_id)
        with_b = _direct(a, b_id)
        with_c = _direct(a, c_id)
        _send(a, with_b, "first")
        convs = client.get('/api/conversations', headers=a).json()
        assert [cv['id'] for cv in convs] == [with_b, with_c]
        _send(a, with_c, "second")
        convs = client.get('/api/conversations', headers=a).json()
        assert [cv['id'] for cv in convs] == [with_c, with_b]
        assert convs[0]['last_message']['text'] == 'second'


class TestMessages:

    def _pair(self):
        a, a_id = _register()
        b, b_id = _register()
        _befriend(a, b, b_id)
        return a, a_id, b, b_id, _direct(a, b_id)

    def test_send_validation_and_types(self):
        a, _, _, _, cid = self._pair()
        assert _send(a, cid, "  ").status_code == 400
        assert _send(a, cid, None, message_type="image").status_code == 400
        r = _send(a, cid, None, message_type="image", media_url="https://cdn.example.com/p.jpg")
        assert r.status_code == 200
        assert r.json()['message_type'] == 'image'
        r = _send(a, cid, "legacy", message_type="goal_proposal")
        assert r.json()['message_type'] == 'text'
        r = _send(a, cid, "odd", message_type="sticker")
        assert r.json()['message_type'] == 'text'

    def test_unread_count_and_mark_read(self):
        a, _, b, _, cid = self._pair()
        _send(a, cid, "one")
        _send(a, cid, "two")
        conv = client.get(f'/api/conversations/{cid}', headers=b).json()
        assert conv['unread_count'] == 2
        # own messages never count as unread
        assert client.get(f'/api/conversations/{cid}', headers=a).json()['unread_count'] == 0
        assert client.post(f'/api/conversations/{cid}/read', headers=b).status_code == 200
        assert client.get(f'/api/conversations/{cid}', headers=b).json()['unread_count'] == 0
        _send(a, cid, "three")
        assert client.get(f'/api/conversations/{cid}', headers=b).json()['unread_count'] == 1

    def test_pagination_is_chronological(self):
        a, a_id, _, _, cid = self._pair()
        for i in range(5):
            _send(a, cid, f"m{i}")
        page = client.get(f'/api/conversations/{cid}/messages', headers=a, params={"limit": 2}).json()
        assert [m['text'] for m in page] == ['m3', 'm4']
        assert page[0]['sender_profile']['id'] == a_id
        older = client.get(f'/api/conversations/{cid}/messages', headers=a,
                           params={"limit": 2, "before": page[0]['created_at']}).json()
        assert [m['text'] for m in older] == ['m1', 'm2']

    def test_soft_delete(self):
        a, _, b, _, cid = self._pair()
        keep = _send(a, cid, "keep").json()
        gone = _send(a, cid, "gone").json()
        assert client.delete(f"/api/messages/{gone['id']}", headers=b).status_code == 403
        r = client.delete(f"/api/messages/{gone['id']}", headers=a)
        assert r.status_code == 200
        assert r.json()['deleted_at']
        texts = [m['text'] for m in client.get(f'/api/conversations/{cid}/messages', headers=a).json()]
        assert texts == ['keep']
        conv = client.get(f'/api/conversations/{cid}', headers=b).json()
        assert conv['last_message']['id'] == keep['id']
        assert conv['unread_count'] == 1
        assert client.delete(f"/api/messages/{gone['id']}", headers=a).status_code == 404

    def test_send_notifies_other_participants(self):
        a, _, b, _, cid = self._pair()
        client.put('/api/profiles/me', headers=a, json={"first_name": "Grace", "last_name": "Hopper"})
        _send(a, cid, "hello there")
        notes = client.get('/api/notifications', headers=b).json()
        assert notes[0]['type'] == 'message'
        assert notes[0]['title'] == 'Grace Hopper'
        assert notes[0]['body'] == 'hello there'
        assert notes[0]['related_id'] == cid
        assert [n for n in client.get('/api/notifications', headers=a).json() if n['type'] == 'message'] == []

    def test_poll(self):
        a, _, b, _, cid = self._pair()
        r = client.get(f'/api/conversations/{cid}/messages/poll', headers=b, params={"timeout": 0})
        assert r.json() == {"messages": [], "latest": None}
        first = _send(a, cid, "first").json()
        r = client.get(f'/api/conversations/{cid}/messages/poll', headers=b, params={"timeout": 0})
        assert r.json()['latest'] == first['created_at']
        cursor = r.json()['latest']
        r = client.get(f'/api/conversations/{cid}/messages/poll', headers=b,
                       params={"since": cursor, "timeout": 0})
        assert r.json() == {"messages": [], "latest": cursor}
        second = _send(a, cid, "second").json()
        r = client.get(f'/api/conversations/{cid}/messages/poll', headers=b,
                       params={"since": cursor, "timeout": 5})
        assert [m['id'] for m in r.json()['messages']] == [second['id']]
        assert r.json()['latest'] == second['created_at']


def test_poll_reads_do_not_block_the_event_loop(monkeypatch):
    import asyncio
    import time

    from achieva.services import messaging, polling

    def slow_messages_since(user_id, conversation_id, since):
        time.sleep(0.3)
        return [{"id": "m1", "created_at": "2026-01-01T00:00:00.000001+00:00"}]

    monkeypatch.setattr(messaging, 'messages_since', slow_messages_since)
    ticks = []

    async def ticker():
        for _ in range(5):
            ticks.append(time.monotonic())
            await asyncio.sleep(0.02)

    async def main():
        result, _ = await asyncio.gather(
            polling.poll_messages("u", "c", "2026-01-01T00:00:00+00:00", 1), ticker())
        return result

    result = asyncio.run(main())
    assert result['latest'] == "2026-01-01T00:00:00.000001+00:00"
    # the ticker kept running while the read was in flight
    assert len(ticks) == 5
    assert ticks[-1] - ticks[0] < 0.25
