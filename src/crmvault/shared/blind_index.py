"""Blind-index hashing for searchable encrypted fields.

crmvault stores PII encrypted at rest. To look records up without decrypting
whole tables, each searchable field also gets a handful of index rows: the
edge n-grams of the plaintext (see ``crmvault.shared.tokenizer``), each hashed
with a keyed BLAKE2b under the index key.

Security properties:
- Without INDEX_KEY the hashes are indistinguishable from random.
- BLAKE2b in keyed mode is a PRF and is not subject to length extension.
- The output is byte-compatible with libsodium ``crypto_generichash`` using a
  16-byte digest, so existing index rows stay valid.

Limitations:
- Equal prefixes produce equal hashes; an observer of the index learns which
  records share a 3-6 character prefix. This is the accepted leakage.
- Matching is candidate generation only. Callers confirm matches after
  decryption.
"""

from __future__ import annotations

import base64
import hashlib
from collections.abc import Iterable

from crmvault.shared.crypto import EncryptionContext
from crmvault.shared.tokenizer import edge_ngrams, tokenize_domains

INDEX_DIGEST_BYTES = 16


class BlindIndexHasher:
    """Maps tokens to deterministic index values."""

    def __init__(self, context: EncryptionContext) -> None:
        self._key = context.index_key

    def token_hash(self, token: str) -> str:
        """Compute the index value of a single token.

        Returns 16 raw bytes as unpadded URL-safe base64 (22 characters).
        """
        digest = hashlib.blake2b(
            token.encode("utf-8"),
            digest_size=INDEX_DIGEST_BYTES,
            key=self._key,
        ).digest()
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")

    def hash_tokens(self, tokens: Iterable[str]) -> list[str]:
        """Hash tokens, keeping first-seen order and dropping duplicates."""
        hashes: dict[str, None] = {}
        for token in tokens:
            hashes.setdefault(self.token_hash(token), None)
        return list(hashes)

    def index_values_for_text(self, text: str | None) -> list[str]:
        """Index values for a free-text field (names, emails)."""
        if not text:
            return []
        return self.hash_tokens(edge_ngrams(text))

    def index_values_for_domains(self, domains: Iterable[str]) -> list[str]:
        """Index values for a list of URLs or domains."""
        return self.hash_tokens(sorted(tokenize_domains(domains)))
