"""Text normalization and edge n-gram generation for the blind index.

Only left-anchored prefixes are produced, so search supports "starts with"
queries and nothing else. A value whose normalized form is shorter than the
minimum n-gram length yields no tokens and cannot be found by prefix search.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

MIN_NGRAM = 3
MAX_NGRAM = 6
MAX_TOKENS = 6

# Anything that is not a letter, digit, or whitespace. \w also matches "_",
# which is not a letter or digit, so it is excluded explicitly.
_STRIP_RE = re.compile(r"[^\w\s]|_", flags=re.UNICODE)
_SPACE_RE = re.compile(r"\s+", flags=re.UNICODE)
_SCHEME_RE = re.compile(r"^https?://(www\.)?", flags=re.IGNORECASE)
_PATH_RE = re.compile(r"/.*$", flags=re.DOTALL)


def normalize(text: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace, trim."""
    # str.lower() uses the Unicode database, never the process locale
    lowered = text.lower()
    stripped = _STRIP_RE.sub("", lowered)
    return _SPACE_RE.sub(" ", stripped).strip()


def edge_ngrams(
    text: str,
    min_len: int = MIN_NGRAM,
    max_len: int = MAX_NGRAM,
    cap: int = MAX_TOKENS,
) -> list[str]:
    """Return the unique prefixes of ``text`` with length ``min_len..max_len``.

    The result is ordered shortest first, so each token is a strict prefix of
    the next one. At most ``cap`` tokens are returned.
    """
    normalized = normalize(text)
    length = len(normalized)
    if length < min_len:
        return []

    tokens: list[str] = []
    for i in range(min_len, min(max_len, length) + 1):
        tokens.append(normalized[:i])
        if len(tokens) >= cap:
            break
    return tokens


def strip_domain(value: str) -> str:
    """Reduce a URL or domain to its host: no scheme, no ``www.``, no path."""
    host = _SCHEME_RE.sub("", value.strip())
    return _PATH_RE.sub("", host)


def tokenize_domains(domains: Iterable[str]) -> set[str]:
    """Union of the edge n-grams of every domain in ``domains``."""
    tokens: set[str] = set()
    for domain in domains:
        tokens.update(edge_ngrams(strip_domain(domain)))
    return tokens
