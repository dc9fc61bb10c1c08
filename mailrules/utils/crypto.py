"""AES-GCM encryption helper for OAuth token material.

Blobs are ``base64(nonce || ciphertext || tag)`` with a fresh 12-byte nonce
per call, so encrypting the same plaintext twice never yields the same blob.
The configured secret is coerced to a 32-byte AES-256 key by right-padding
with ``b"0"`` and truncating; both directions must use :func:`derive_key`.
"""

from __future__ import annotations

import base64
import binascii
import os
from typing import Final

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from mailrules.errors import DecryptionError

KEY_LENGTH: Final[int] = 32
NONCE_LENGTH: Final[int] = 12
TAG_LENGTH: Final[int] = 16
_KEY_FILLER: Final[bytes] = b"0"


def derive_key(secret: str | bytes) -> bytes:
    """Return *secret* padded/truncated to exactly :data:`KEY_LENGTH` bytes."""

    raw = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)
    return raw.ljust(KEY_LENGTH, _KEY_FILLER)[:KEY_LENGTH]


class TokenCipher:
    """Encrypt/decrypt token strings with one fixed key."""

    def __init__(self, secret: str | bytes):
        if not secret:
            raise ValueError("token encryption key must not be empty")
        self._aead = AESGCM(derive_key(secret))

    def __repr__(self) -> str:  # keep key material out of logs / tracebacks
        return "TokenCipher(<redacted>)"

    def encrypt(self, plaintext: str) -> str:  # noqa: D401 – thin wrapper
        """Encrypt *plaintext* and return a base64 blob."""

        nonce = os.urandom(NONCE_LENGTH)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, blob: str) -> str:  # noqa: D401 – thin wrapper
        """Decrypt *blob* back to the original string or raise DecryptionError."""

        try:
            combined = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError, TypeError) as exc:
            raise DecryptionError("ciphertext is not valid base64") from exc

        if len(combined) < NONCE_LENGTH + TAG_LENGTH:
            raise DecryptionError("ciphertext is truncated")

        nonce, sealed = combined[:NONCE_LENGTH], combined[NONCE_LENGTH:]
        try:
            plaintext = self._aead.decrypt(nonce, sealed, None)
        except InvalidTag as exc:
            raise DecryptionError("decryption failed – invalid key or ciphertext") from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:  # pragma: no cover – authenticated but not ours
            raise DecryptionError("decrypted payload is not UTF-8") from exc


# ---------------------------------------------------------------------------
# Functional helpers
# ---------------------------------------------------------------------------


def encrypt(plaintext: str, key: str | bytes) -> str:
    return TokenCipher(key).encrypt(plaintext)


def decrypt(blob: str, key: str | bytes) -> str:
    return TokenCipher(key).decrypt(blob)


__all__ = [
    "TokenCipher",
    "derive_key",
    "encrypt",
    "decrypt",
]
