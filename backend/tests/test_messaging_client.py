from datetime import datetime

import pytest

from circle.clients.messaging_client import (
    MessagingClient,
    MessagingError,
    parse_timestamp,
    tor_proxies,
)
from circle.core.crypto import MessageCipher
from circle.models.message import Message


def make_client(client, wallet, cipher=None):
    return MessagingClient(wallet, server_url="http://testserver", session=client, cipher=cipher)


def test_encrypted_messages_are_opaque_to_the_server(client, db):
    alice = make_client(client, "0xa1", MessageCipher())
    bob = make_client(client, "0xb2", MessageCipher())
    alice.register("alice")
    bob.register("bob")

    sent = alice.send_message("bob", "meet at noon")

    stored = db.get(Message, sent["id"])
    assert stored.is_encrypted is True
    assert "noon" not in stored.content

    assert bob.get_messages("alice")[0]["content"] == "meet at noon"
    assert alice.get_messages("bob")[0]["content"] == "meet at noon"


def test_plaintext_when_recipient_has_no_key(client):
    alice = make_client(client, "0xa1", MessageCipher())
    bob = make_client(client, "0xb2")
    alice.register("alice")
    bob.register("bob")

    alice.send_message("bob", "in the clear")

    message = bob.get_messages("alice")[0]
    assert message["isEncrypted"] is False
    assert message["content"] == "in the clear"


def test_http_errors_raise_messaging_error(client):
    alice = make_client(client, "0xa1")
    alice.register("alice")

    with pytest.raises(MessagingError) as excinfo:
        alice.send_message("ghost", "hello?")

    assert excinfo.value.status_code == 404
    assert excinfo.value.detail == "Recipient user not found"


def test_conversations_and_killswitch(client):
    alice = make_client(client, "0xa1")
    bob = make_client(client, "0xb2")
    alice.register("alice")
    bob.register("bob")
    bob.send_message("alice", "hi")

    conversations = alice.list_conversations()
    assert conversations[0]["otherParticipant"] == "bob"
    assert conversations[0]["lastMessageTime"] is not None

    alice.delete_account()
    assert bob.list_conversations() == []


def test_conversation_preview_is_decrypted(client):
    alice = make_client(client, "0xa1", MessageCipher())
    bob = make_client(client, "0xb2", MessageCipher())
    alice.register("alice")
    bob.register("bob")
    alice.send_message("bob", "meet at noon")

    raw = client.get("/conversations", params={"wallet_address": "0xb2"}).json()
    assert raw[0]["lastMessageEncrypted"] is True
    assert "noon" not in raw[0]["lastMessage"]

    assert bob.list_conversations()[0]["lastMessage"] == "meet at noon"
    assert alice.list_conversations()[0]["lastMessage"] == "meet at noon"


def test_tor_proxies_resolve_remotely():
    proxies = tor_proxies("127.0.0.1", 9050)
    assert proxies == {"http": "socks5h://127.0.0.1:9050", "https": "socks5h://127.0.0.1:9050"}


def test_parse_timestamp():
    assert parse_timestamp(None) is None
    parsed = parse_timestamp("2026-01-01T12:00:00.500000Z")
    assert parsed.tzinfo is None
    assert parsed.microsecond == 500000


def test_parse_timestamp_normalizes_offsets_to_utc():
    assert parse_timestamp("2026-01-01T12:00:00+00:00") == datetime(2026, 1, 1, 12)
    assert parse_timestamp("2026-01-01T14:00:00+02:00") == datetime(2026, 1, 1, 12)
