"""Unit tests for envelope encryption.

Tests round trips, tamper detection, and key loading.
"""

import base64

import pytest

from crmvault.shared.crypto import (
    CIPHER_KEY_BYTES,
    NONCE_BYTES,
    TAG_BYTES,
    EncryptionContext,
    EnvelopeCipher,
    generate_keys,
)
from crmvault.shared.exceptions import (
    AuthenticationFailure,
    ConfigurationError,
    DecodingError,
    DecryptionError,
)


class TestEnvelopeRoundTrip:
    """Test encrypt/decrypt."""

    @pytest.mark.parametrize(
        "plaintext",
        ["", "alice@example.com", "Müller & Söhne ✓", "x" * 10_000],
    )
    def test_decrypt_returns_original(self, cipher: EnvelopeCipher, plaintext: str):
        assert cipher.decrypt(cipher.encrypt(plaintext)) == plaintext

    def test_envelope_layout(self, cipher: EnvelopeCipher):
        """Envelope is base64(nonce || ciphertext || tag)."""
        raw = base64.b64decode(cipher.encrypt("hello"), validate=True)
        assert len(raw) == NONCE_BYTES + len("hello") + TAG_BYTES

    def test_fresh_nonce_per_call(self, cipher: EnvelopeCipher):
        first = cipher.encrypt("same")
        second = cipher.encrypt("same")
        assert first != second
        assert base64.b64decode(first)[:NONCE_BYTES] != base64.b64decode(second)[:NONCE_BYTES]


class TestTamperDetection:
    """Any modification must fail closed."""

    def test_every_single_byte_flip_is_rejected(self, cipher: EnvelopeCipher):
        raw = bytearray(base64.b64decode(cipher.encrypt("secret value")))
        for i in range(len(raw)):
            tampered = bytearray(raw)
            tampered[i] ^= 0x01
            envelope = base64.b64encode(bytes(tampered)).decode()
            with pytest.raises(AuthenticationFailure):
                cipher.decrypt(envelope)

    def test_truncated_ciphertext_is_rejected(self, cipher: EnvelopeCipher):
        raw = base64.b64decode(cipher.encrypt("secret value"))
        for length in (NONCE_BYTES, NONCE_BYTES + 1, len(raw) - 1):
            with pytest.raises(AuthenticationFailure):
                cipher.decrypt(base64.b64encode(raw[:length]).decode())

    def test_wrong_key_is_rejected(self, cipher: EnvelopeCipher):
        other = EnvelopeCipher(EncryptionContext.from_keys(*generate_keys()))
        with pytest.raises(AuthenticationFailure):
            other.decrypt(cipher.encrypt("secret value"))

    def test_authentication_failure_is_a_decryption_error(self):
        assert issubclass(AuthenticationFailure, DecryptionError)
        assert issubclass(DecodingError, DecryptionError)


class TestMalformedEnvelopes:
    """Transport-level garbage is a DecodingError."""

    def test_not_base64(self, cipher: EnvelopeCipher):
        with pytest.raises(DecodingError):
            cipher.decrypt("not base64 at all!")

    def test_shorter_than_nonce(self, cipher: EnvelopeCipher):
        with pytest.raises(DecodingError):
            cipher.decrypt(base64.b64encode(b"short").decode())

    def test_decrypt_optional_passes_none_through(self, cipher: EnvelopeCipher):
        assert cipher.decrypt_optional(None) is None
        assert cipher.decrypt_optional(cipher.encrypt("x")) == "x"


class TestDecryptMany:
    """Batch decryption skips failures."""

    def test_skips_bad_items(self, cipher: EnvelopeCipher):
        envelopes = {
            1: cipher.encrypt("one"),
            2: "garbage",
            3: cipher.encrypt("three"),
        }
        assert cipher.decrypt_many(envelopes) == {1: "one", 3: "three"}


class TestKeyLoading:
    """Test EncryptionContext.from_keys."""

    def test_generated_keys_are_base64(self):
        cipher_key, index_key = generate_keys()
        assert len(base64.b64decode(cipher_key)) == CIPHER_KEY_BYTES
        context = EncryptionContext.from_keys(cipher_key, index_key)
        assert len(context.cipher_key) == CIPHER_KEY_BYTES
        assert len(context.index_key) == 32

    def test_raw_keys_accepted(self):
        context = EncryptionContext.from_keys(
            "raw-cipher-key-0123456789abcdef!",
            "raw-index-key-0123",
        )
        assert context.cipher_key == b"raw-cipher-key-0123456789abcdef!"
        assert context.index_key == b"raw-index-key-0123"

    def test_bytes_keys_accepted(self):
        context = EncryptionContext.from_keys(b"k" * 32, b"i" * 16)
        assert context.cipher_key == b"k" * 32

    def test_short_cipher_key_rejected(self):
        with pytest.raises(ConfigurationError):
            EncryptionContext.from_keys("too-short", "i" * 16)

    def test_short_index_key_rejected(self):
        with pytest.raises(ConfigurationError):
            EncryptionContext.from_keys("k" * 32, "short")

    def test_missing_key_rejected(self):
        with pytest.raises(ConfigurationError):
            EncryptionContext.from_keys("", "i" * 16)

    def test_repr_hides_keys(self):
        context = EncryptionContext.from_keys(b"k" * 32, b"i" * 16)
        assert "kkkk" not in repr(context)
        assert "***" in repr(context)
