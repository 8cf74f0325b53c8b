# Cryptographic Operations Module
# Room key derivation (HKDF-SHA256) and AES-256-GCM message envelopes

import base64
import binascii
import logging
import os
from typing import Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from wishpernet.client.tokens import require_valid_token
from wishpernet.common.errors import InvalidTokenError
from wishpernet.common.result import Failure, Result, Success

logger = logging.getLogger(__name__)

DECRYPTION_FAILED_PLACEHOLDER = "[Encrypted message - decryption failed]"


class RoomKey:
    """
    AES-256-GCM key shared by every member of one room.

    Only the AEAD object is kept; the derived bytes are not stored on the
    instance and there is no accessor for them.
    """

    __slots__ = ("_aead",)

    def __init__(self, aead: AESGCM):
        self._aead = aead

    def seal(self, nonce: bytes, plaintext: bytes) -> bytes:
        """Encrypt; returns ciphertext || 16-byte tag."""
        return self._aead.encrypt(nonce, plaintext, None)

    def open(self, nonce: bytes, ciphertext_with_tag: bytes) -> bytes:
        """
        Decrypt and authenticate.

        Raises:
            cryptography.exceptions.InvalidTag: If authentication fails
        """
        return self._aead.decrypt(nonce, ciphertext_with_tag, None)

    def __repr__(self) -> str:
        return "RoomKey(<hidden>)"


class RoomKeyring:
    """
    Per-session mapping of RoomToken -> RoomKey.

    Every client derives the same key from the same token:
        key = HKDF-SHA256(ikm=utf8(token), salt=SALT, info=INFO, L=32)

    The keyring belongs to one controller: entries are inserted on first
    use and evicted when the room is left or the connection drops.
    """

    HASH_ALGORITHM = hashes.SHA256()
    KEY_SIZE = 32  # 256-bit keys
    SALT = b"wishpernet-room-salt"
    INFO = b"room-encryption"

    def __init__(self):
        self._keys: Dict[str, RoomKey] = {}

    def derive(self, room_token: str) -> RoomKey:
        """
        Return the RoomKey for `room_token`, deriving it on first use.

        Args:
            room_token: 64-char lowercase hex RoomToken

        Returns:
            The cached RoomKey (same object on repeat calls)

        Raises:
            InvalidTokenError: If the token fails the shape check
        """
        key = self._keys.get(room_token)
        if key is not None:
            return key

        require_valid_token(room_token)
        hkdf = HKDF(
            algorithm=self.HASH_ALGORITHM,
            length=self.KEY_SIZE,
            salt=self.SALT,
            info=self.INFO,
        )
        key = RoomKey(AESGCM(hkdf.derive(room_token.encode("utf-8"))))
        self._keys[room_token] = key
        return key

    def evict(self, room_token: str) -> bool:
        """Drop the key for one room. Returns True if an entry was removed."""
        return self._keys.pop(room_token, None) is not None

    def clear(self) -> None:
        """Drop every cached key."""
        self._keys.clear()

    def __contains__(self, room_token: object) -> bool:
        return room_token in self._keys

    def __len__(self) -> int:
        return len(self._keys)


class RoomCipher:
    """
    Encrypts and decrypts single chat messages under a room key.

    Envelope (base64):
        [nonce:12][ciphertext:N][auth_tag:16]

    Fixed offsets only, no length field. Failures are returned as
    `Failure` values and never raised.
    """

    NONCE_SIZE = 12     # 96-bit nonce for GCM
    AUTH_TAG_SIZE = 16  # 128-bit authentication tag

    def __init__(self, keyring: RoomKeyring):
        self.keyring = keyring

    def generate_nonce(self) -> bytes:
        """Fresh random 12-byte nonce; one per message, never reused."""
        return os.urandom(self.NONCE_SIZE)

    def encrypt(self, plaintext: str, room_token: str) -> Result[str]:
        """
        Encrypt a message for the room.

        Returns:
            Success(base64 envelope) or Failure(reason)
        """
        try:
            key = self.keyring.derive(room_token)
            nonce = self.generate_nonce()
            sealed = key.seal(nonce, plaintext.encode("utf-8"))
        except InvalidTokenError:
            return Failure("invalid room token")
        except UnicodeEncodeError:
            logger.warning("Encryption failed: plaintext is not encodable")
            return Failure("plaintext is not encodable")

        return Success(base64.b64encode(nonce + sealed).decode("ascii"))

    def decrypt(self, envelope: str, room_token: str) -> Result[str]:
        """
        Decrypt an envelope received on the room.

        Returns:
            Success(plaintext) or Failure(reason) for malformed base64,
            truncated envelopes, wrong key, tampering or invalid UTF-8
        """
        try:
            combined = base64.b64decode(envelope, validate=True)
        except (binascii.Error, ValueError, TypeError):
            return Failure("malformed envelope")

        if len(combined) < self.NONCE_SIZE + self.AUTH_TAG_SIZE:
            return Failure("envelope too short")

        nonce = combined[:self.NONCE_SIZE]
        ciphertext_with_tag = combined[self.NONCE_SIZE:]

        try:
            key = self.keyring.derive(room_token)
            plaintext = key.open(nonce, ciphertext_with_tag)
            return Success(plaintext.decode("utf-8"))
        except InvalidTokenError:
            return Failure("invalid room token")
        except InvalidTag:
            return Failure("authentication failed")
        except UnicodeDecodeError:
            return Failure("plaintext is not valid UTF-8")
