"""Field-level authenticated encryption.

Every PII column is stored as an envelope: XChaCha20-Poly1305 (IETF) with an
empty associated-data string, a fresh 24-byte random nonce per call, and the
nonce prepended to the ciphertext. The envelope travels as one standard
base64 string.

Keys live in an ``EncryptionContext`` that is built once and passed to the
cipher and to the blind-index hasher explicitly. Rotating keys means
re-encrypting every envelope and re-hashing every index token; see
``crmvault.domain.keys.rotation``.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Hashable, Mapping
from dataclasses import dataclass
from typing import TypeVar

import nacl.bindings
import nacl.exceptions
import nacl.utils

from crmvault.shared.exceptions import (
    AuthenticationFailure,
    ConfigurationError,
    DecodingError,
)
from crmvault.shared.logging import get_logger

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)

CIPHER_KEY_BYTES = nacl.bindings.crypto_aead_xchacha20poly1305_ietf_KEYBYTES
NONCE_BYTES = nacl.bindings.crypto_aead_xchacha20poly1305_ietf_NPUBBYTES
TAG_BYTES = nacl.bindings.crypto_aead_xchacha20poly1305_ietf_ABYTES

# BLAKE2b accepts keys of 1..64 bytes; we require at least 16.
INDEX_KEY_MIN_BYTES = 16
INDEX_KEY_MAX_BYTES = 64


def _b64decode_strict(value: str | bytes) -> bytes | None:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return None


def _load_key(value: str | bytes, *, name: str, min_len: int, max_len: int) -> bytes:
    """Accept a key as raw bytes or as base64; the decoded form wins if valid."""
    if not value:
        raise ConfigurationError(f"{name} is not configured")

    decoded = _b64decode_strict(value)
    if decoded is not None and min_len <= len(decoded) <= max_len:
        return decoded

    raw = value.encode("utf-8") if isinstance(value, str) else value
    if min_len <= len(raw) <= max_len:
        return raw

    expected = f"{min_len}" if min_len == max_len else f"{min_len}-{max_len}"
    raise ConfigurationError(
        f"{name} must be {expected} bytes (or base64 encoded)",
        details={"key": name, "expected_bytes": expected},
    )


@dataclass(frozen=True, repr=False)
class EncryptionContext:
    """Immutable pair of long-term keys: one for envelopes, one for the index."""

    cipher_key: bytes
    index_key: bytes

    def __post_init__(self) -> None:
        if len(self.cipher_key) != CIPHER_KEY_BYTES:
            raise ConfigurationError(f"Cipher key must be exactly {CIPHER_KEY_BYTES} bytes")
        if not INDEX_KEY_MIN_BYTES <= len(self.index_key) <= INDEX_KEY_MAX_BYTES:
            raise ConfigurationError(
                f"Index key must be {INDEX_KEY_MIN_BYTES}-{INDEX_KEY_MAX_BYTES} bytes"
            )

    def __repr__(self) -> str:
        # Never render key material
        return "EncryptionContext(cipher_key=***, index_key=***)"

    @classmethod
    def from_keys(cls, cipher_key: str | bytes, index_key: str | bytes) -> EncryptionContext:
        """Build a context from raw or base64-encoded keys.

        Raises:
            ConfigurationError: If either key has the wrong length.
        """
        return cls(
            cipher_key=_load_key(
                cipher_key,
                name="CIPHER_KEY",
                min_len=CIPHER_KEY_BYTES,
                max_len=CIPHER_KEY_BYTES,
            ),
            index_key=_load_key(
                index_key,
                name="INDEX_KEY",
                min_len=INDEX_KEY_MIN_BYTES,
                max_len=INDEX_KEY_MAX_BYTES,
            ),
        )


def generate_keys() -> tuple[str, str]:
    """Generate a fresh (cipher_key, index_key) pair, both base64 encoded."""
    cipher_key = base64.b64encode(nacl.utils.random(CIPHER_KEY_BYTES)).decode("ascii")
    index_key = base64.b64encode(nacl.utils.random(32)).decode("ascii")
    return cipher_key, index_key


class EnvelopeCipher:
    """Encrypts and decrypts single field values."""

    def __init__(self, context: EncryptionContext) -> None:
        self._key = context.cipher_key

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a field value into a base64 envelope.

        A new nonce is drawn from the OS CSPRNG on every call; nonce reuse
        under one key would break XChaCha20-Poly1305.
        """
        nonce = nacl.utils.random(NONCE_BYTES)
        ciphertext = nacl.bindings.crypto_aead_xchacha20poly1305_ietf_encrypt(
            plaintext.encode("utf-8"),
            b"",
            nonce,
            self._key,
        )
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def decrypt(self, envelope: str) -> str:
        """Open an envelope produced by ``encrypt``.

        Raises:
            DecodingError: If the envelope is not base64 or is shorter than a nonce.
            AuthenticationFailure: If the tag check fails (tampering, truncation,
                wrong key).
        """
        data = _b64decode_strict(envelope)
        if data is None:
            raise DecodingError("Invalid base64 envelope")
        if len(data) < NONCE_BYTES:
            raise DecodingError(
                "Envelope too short",
                details={"length": len(data), "minimum": NONCE_BYTES},
            )

        nonce, ciphertext = data[:NONCE_BYTES], data[NONCE_BYTES:]
        if len(ciphertext) < TAG_BYTES:
            # Truncated below the tag: cannot authenticate
            raise AuthenticationFailure()

        try:
            plaintext = nacl.bindings.crypto_aead_xchacha20poly1305_ietf_decrypt(
                ciphertext,
                b"",
                nonce,
                self._key,
            )
        except nacl.exceptions.CryptoError as e:
            raise AuthenticationFailure() from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            # Authentic bytes that were never produced by encrypt()
            raise AuthenticationFailure() from e

    def decrypt_optional(self, envelope: str | None) -> str | None:
        """Decrypt a nullable column; ``None`` stays ``None``."""
        if envelope is None:
            return None
        return self.decrypt(envelope)

    def decrypt_many(self, envelopes: Mapping[K, str]) -> dict[K, str]:
        """Decrypt a batch, skipping (and logging) items that fail.

        One corrupted row must not abort an analytics or export run.
        """
        result: dict[K, str] = {}
        for key, envelope in envelopes.items():
            try:
                result[key] = self.decrypt(envelope)
            except (DecodingError, AuthenticationFailure) as e:
                logger.warning(
                    "envelope_decrypt_skipped",
                    item=str(key),
                    error=type(e).__name__,
                )
        return result


if __name__ == "__main__":
    new_cipher_key, new_index_key = generate_keys()
    print(f"CIPHER_KEY={new_cipher_key}")
    print(f"INDEX_KEY={new_index_key}")
