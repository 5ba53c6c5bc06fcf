from datetime import timedelta

from circle.models.base import utcnow
from circle.models.message import Message


def _send(client, sender, recipient, content):
    resp = client.post(
        "/messages/send",
        json={
            "senderWallet": sender["walletAddress"],
            "recipientPseudonym": recipient["pseudonym"],
            "content": content,
        },
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def _get(client, viewer, other):
    resp = client.get(
        "/messages",
        params={
            "wallet_address": viewer["walletAddress"],
            "other_user_pseudonym": other["pseudonym"],
        },
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "database": True}


def test_send_get_delete_round_trip(client, register):
    alice = register("alice")
    bob = register("bob")

    sent = _send(client, alice, bob, "  hello bob  ")
    assert sent["content"] == "hello bob"
    assert sent["isOwn"] is True

    seen_by_bob = _get(client, bob, alice)
    assert [m["id"] for m in seen_by_bob] == [sent["id"]]
    assert seen_by_bob[0]["isOwn"] is False
    assert seen_by_bob[0]["senderPseudonym"] == "alice"
    assert seen_by_bob[0]["expiresAt"] is None

    resp = client.post("/messages/delete", json={"ids": [sent["id"]]})
    assert resp.json() == {"status": "deleted", "removed": 1}

    assert _get(client, bob, alice) == []
    assert _get(client, alice, bob) == []


def test_messages_are_ordered_oldest_first(client, register):
    alice = register("alice")
    bob = register("bob")

    first = _send(client, alice, bob, "one")
    second = _send(client, bob, alice, "two")
    third = _send(client, alice, bob, "three")

    ids = [m["id"] for m in _get(client, alice, bob)]
    assert ids == [first["id"], second["id"], third["id"]]


def test_send_to_unknown_recipient_is_404(client, register):
    alice = register("alice")
    resp = client.post(
        "/messages/send",
        json={"senderWallet": alice["walletAddress"], "recipientPseudonym": "nobody", "content": "hi"},
    )
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Recipient user not found"


def test_send_accepts_snake_case_fields(client, register):
    alice = register("alice")
    register("bob")
    resp = client.post(
        "/messages/send",
        json={"sender_wallet": alice["walletAddress"], "recipient_pseudonym": "bob", "content": "hi"},
    )
    assert resp.status_code == 200


def test_send_to_self_is_rejected(client, register):
    alice = register("alice")
    resp = client.post(
        "/messages/send",
        json={"senderWallet": alice["walletAddress"], "recipientPseudonym": "alice", "content": "me"},
    )
    assert resp.status_code == 400


def test_blank_content_is_rejected(client, register):
    alice = register("alice")
    bob = register("bob")
    resp = client.post(
        "/messages/send",
        json={"senderWallet": alice["walletAddress"], "recipientPseudonym": bob["pseudonym"], "content": "   "},
    )
    assert resp.status_code == 400


def test_delete_requires_ids(client):
    resp = client.post("/messages/delete", json={"ids": []})
    assert resp.status_code == 400


def test_delete_unknown_ids_removes_nothing(client):
    resp = client.post("/messages/delete", json={"ids": ["missing"]})
    assert resp.status_code == 200
    assert resp.json()["removed"] == 0


def test_mark_read_stamps_incoming_messages_once(client, register):
    alice = register("alice")
    bob = register("bob")
    incoming = _send(client, alice, bob, "for bob")
    own = _send(client, bob, alice, "from bob")

    resp = client.post(
        "/messages/read",
        json={"walletAddress": bob["walletAddress"], "ids": [incoming["id"], own["id"]], "ttlSeconds": 10},
    )
    assert resp.status_code == 200
    stamped = resp.json()
    assert [entry["id"] for entry in stamped] == [incoming["id"]]
    first_deadline = stamped[0]["expiresAt"]

    # A second read never moves the deadline
    resp = client.post(
        "/messages/read",
        json={"walletAddress": bob["walletAddress"], "ids": [incoming["id"]], "ttlSeconds": 300},
    )
    assert resp.json()[0]["expiresAt"] == first_deadline

    messages = {m["id"]: m for m in _get(client, bob, alice)}
    assert messages[incoming["id"]]["expiresAt"] == first_deadline
    assert messages[own["id"]]["expiresAt"] is None


def test_mark_read_rejects_unknown_ttl(client, register):
    bob = register("bob")
    resp = client.post(
        "/messages/read",
        json={"walletAddress": bob["walletAddress"], "ids": ["x"], "ttlSeconds": 7},
    )
    assert resp.status_code == 400


def test_expired_messages_are_purged_on_fetch(client, register, db):
    alice = register("alice")
    bob = register("bob")
    stale = _send(client, alice, bob, "gone soon")
    fresh = _send(client, alice, bob, "still here")

    message = db.get(Message, stale["id"])
    message.expires_at = utcnow() - timedelta(seconds=1)
    db.commit()

    ids = [m["id"] for m in _get(client, bob, alice)]
    assert ids == [fresh["id"]]

    db.expunge_all()
    assert db.query(Message).filter(Message.id == stale["id"]).first() is None


def test_get_messages_for_unknown_viewer_is_404(client, register):
    register("alice")
    resp = client.get(
        "/messages",
        params={"wallet_address": "0xdead", "other_user_pseudonym": "alice"},
    )
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Current user not found"


def test_timestamps_carry_utc_offset(client, register):
    alice = register("alice")
    bob = register("bob")
    assert alice["createdAt"].endswith("+00:00")

    sent = _send(client, alice, bob, "when?")
    assert sent["createdAt"].endswith("+00:00")

    resp = client.post(
        "/messages/read",
        json={"walletAddress": bob["walletAddress"], "ids": [sent["id"]], "ttlSeconds": 30},
    )
    assert resp.json()[0]["expiresAt"].endswith("+00:00")
    assert _get(client, bob, alice)[0]["expiresAt"].endswith("+00:00")

    conversations = client.get(
        "/conversations", params={"wallet_address": bob["walletAddress"]}
    ).json()
    assert conversations[0]["lastMessageTime"].endswith("+00:00")
