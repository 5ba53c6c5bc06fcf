# circle/clients/messaging_client.py

import base64
import logging
from datetime import datetime, timezone
from typing import Optional

import requests

from circle.config import SERVER_URL, TOR_SOCKS_HOST, TOR_SOCKS_PORT
from circle.core.crypto import MessageCipher

logger = logging.getLogger(__name__)

# =========================
# TOR SESSION
# =========================

def tor_proxies(host: str = TOR_SOCKS_HOST, port: int = TOR_SOCKS_PORT) -> dict:
    # socks5h: hostnames are resolved by Tor, not locally
    proxy = f"socks5h://{host}:{port}"
    return {"http": proxy, "https": proxy}


def create_tor_session() -> requests.Session:
    """Create a requests session that routes through Tor"""
    session = requests.Session()
    session.proxies = tor_proxies()
    return session


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class MessagingError(Exception):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


# =========================
# MESSAGING CLIENT
# =========================

class MessagingClient:
    def __init__(
        self,
        wallet_address: str,
        server_url: str = SERVER_URL,
        use_tor: bool = False,
        cipher: Optional[MessageCipher] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 15.0,
    ):
        self.wallet_address = wallet_address.lower()
        self.server_url = server_url.rstrip("/")
        self.use_tor = use_tor
        self.cipher = cipher
        self.timeout = timeout
        self.session = session or (create_tor_session() if use_tor else requests.Session())
        self.pseudonym: Optional[str] = None
        self._public_keys = {}  # pseudonym -> raw public key

    def _request(self, method: str, path: str, **kwargs):
        resp = self.session.request(
            method, f"{self.server_url}{path}", timeout=self.timeout, **kwargs
        )
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("detail", resp.text)
            except ValueError:
                detail = resp.text
            raise MessagingError(resp.status_code, str(detail))
        return resp.json()

    # ---------- users ----------

    def register(self, pseudonym: str, display_name: Optional[str] = None, bio: Optional[str] = None) -> dict:
        payload = {
            "walletAddress": self.wallet_address,
            "pseudonym": pseudonym,
            "displayName": display_name,
            "bio": bio,
        }
        if self.cipher:
            payload["publicKey"] = base64.b64encode(self.cipher.public_key_bytes).decode()

        user = self._request("POST", "/users/register", json=payload)
        self.pseudonym = user["pseudonym"]
        logger.info("✅ Registered %s", self.pseudonym)
        return user

    def get_user(self, pseudonym: Optional[str] = None) -> dict:
        params = {"pseudonym": pseudonym} if pseudonym else {"wallet_address": self.wallet_address}
        user = self._request("GET", "/users", params=params)
        if pseudonym is None:
            self.pseudonym = user["pseudonym"]
        return user

    def get_public_key(self, pseudonym: str) -> Optional[bytes]:
        if pseudonym not in self._public_keys:
            data = self._request("GET", f"/users/{pseudonym}/public-key")
            key = data.get("publicKey")
            self._public_keys[pseudonym] = base64.b64decode(key) if key else None
        return self._public_keys[pseudonym]

    def delete_account(self) -> dict:
        """Killswitch: wipe this wallet's server-side data."""
        return self._request("DELETE", "/users", params={"wallet_address": self.wallet_address})

    # ---------- conversations / messages ----------

    def list_conversations(self) -> list[dict]:
        conversations = self._request(
            "GET", "/conversations", params={"wallet_address": self.wallet_address}
        )
        for conversation in conversations:
            conversation["lastMessageTime"] = parse_timestamp(conversation.get("lastMessageTime"))
            # Preview of the newest message, readable like the thread itself
            if conversation.get("lastMessageEncrypted") and self.cipher:
                conversation["lastMessage"] = self._decrypt(
                    conversation["otherParticipant"], conversation["lastMessage"]
                )
        return conversations

    def get_messages(self, other_pseudonym: str) -> list[dict]:
        messages = self._request(
            "GET",
            "/messages",
            params={
                "wallet_address": self.wallet_address,
                "other_user_pseudonym": other_pseudonym,
            },
        )
        for message in messages:
            message["createdAt"] = parse_timestamp(message.get("createdAt"))
            message["expiresAt"] = parse_timestamp(message.get("expiresAt"))
            if message.get("isEncrypted") and self.cipher:
                message["content"] = self._decrypt(other_pseudonym, message["content"])
        return messages

    def _decrypt(self, other_pseudonym: str, content: str) -> str:
        peer_key = self.get_public_key(other_pseudonym)
        if peer_key is None:
            return content
        try:
            return self.cipher.decrypt_text(peer_key, content)
        except Exception as e:
            logger.warning("Could not decrypt message from %s: %s", other_pseudonym, e)
            return content

    def send_message(self, recipient_pseudonym: str, content: str) -> dict:
        """Send a message; encrypted end-to-end when both sides have keys"""
        is_encrypted = False
        if self.cipher:
            peer_key = self.get_public_key(recipient_pseudonym)
            if peer_key:
                content = self.cipher.encrypt_text(peer_key, content)
                is_encrypted = True

        message = self._request(
            "POST",
            "/messages/send",
            json={
                "senderWallet": self.wallet_address,
                "recipientPseudonym": recipient_pseudonym,
                "content": content,
                "isEncrypted": is_encrypted,
            },
        )
        message["createdAt"] = parse_timestamp(message.get("createdAt"))
        logger.info("💬 Message sent to %s", recipient_pseudonym)
        return message

    def mark_read(self, ids: list[str], ttl_seconds: float) -> dict[str, datetime]:
        stamped = self._request(
            "POST",
            "/messages/read",
            json={
                "walletAddress": self.wallet_address,
                "ids": ids,
                "ttlSeconds": ttl_seconds,
            },
        )
        return {entry["id"]: parse_timestamp(entry["expiresAt"]) for entry in stamped}

    def delete_messages(self, ids: list[str]) -> int:
        result = self._request("POST", "/messages/delete", json={"ids": ids})
        return result.get("removed", 0)
