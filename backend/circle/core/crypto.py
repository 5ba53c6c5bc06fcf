import base64
import os

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import x25519
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

NONCE_SIZE = 12

# ---------- KEY DERIVATION ----------

def derive_shared_key(
    private_key: x25519.X25519PrivateKey,
    peer_public_key_bytes: bytes,
    salt: bytes | None = None
) -> bytes:
    """
    X25519 + HKDF → 32-byte AES-256 key
    """
    peer_public_key = x25519.X25519PublicKey.from_public_bytes(peer_public_key_bytes)
    shared_secret = private_key.exchange(peer_public_key)

    return HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        info=b"circle-dm-v1"
    ).derive(shared_secret)


# ---------- ENCRYPTION ----------

def encrypt_payload(key: bytes, plaintext: bytes) -> bytes:
    """
    AES-GCM → nonce (12) + ciphertext + tag (16)
    """
    nonce = os.urandom(NONCE_SIZE)
    return nonce + AESGCM(key).encrypt(nonce, plaintext, None)


def decrypt_payload(key: bytes, encrypted_payload: bytes) -> bytes:
    nonce = encrypted_payload[:NONCE_SIZE]
    ciphertext = encrypted_payload[NONCE_SIZE:]
    return AESGCM(key).decrypt(nonce, ciphertext, None)


# ---------- CIPHER ----------

class MessageCipher:
    """
    End-to-end encryption of direct message content.

    Both participants derive the same key from their own private key and
    the peer's public key, so either side can read the whole conversation.
    """

    def __init__(self, private_key: x25519.X25519PrivateKey | None = None):
        self.private_key = private_key or x25519.X25519PrivateKey.generate()
        self._peer_keys = {}  # peer public key bytes -> AES key

    @property
    def public_key_bytes(self) -> bytes:
        return self.private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw
        )

    def _key_for(self, peer_public_key: bytes) -> bytes:
        if peer_public_key not in self._peer_keys:
            self._peer_keys[peer_public_key] = derive_shared_key(self.private_key, peer_public_key)
        return self._peer_keys[peer_public_key]

    def encrypt_text(self, peer_public_key: bytes, text: str) -> str:
        payload = encrypt_payload(self._key_for(peer_public_key), text.encode("utf-8"))
        return base64.b64encode(payload).decode("ascii")

    def decrypt_text(self, peer_public_key: bytes, content: str) -> str:
        payload = base64.b64decode(content)
        return decrypt_payload(self._key_for(peer_public_key), payload).decode("utf-8")
