"""Product name normalization."""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")
_CODE_NOISE = re.compile(r"[\W_]+")


def normalize(name: str | None) -> str:
    """Canonicalize a free-text product name for comparison.

    Strips diacritics, casefolds, removes everything that is not a letter,
    digit or whitespace, and collapses whitespace. Idempotent.
    """
    if not name:
        return ""

    # 1. Decompose, casefold, decompose again (casefold can yield composed forms)
    s = unicodedata.normalize("NFKD", name)
    s = unicodedata.normalize("NFKD", s.casefold())

    # 2. Drop combining marks ("é" -> "e")
    s = "".join(c for c in s if not unicodedata.combining(c))

    # 3. Remove punctuation and symbols
    s = "".join(c for c in s if c.isalnum() or c.isspace())

    # 4. Collapse whitespace
    return _WHITESPACE.sub(" ", s).strip()


def tokens(name: str | None, min_length: int = 1) -> list[str]:
    """Whitespace tokens of the normalized name, dropping short ones."""
    return [t for t in normalize(name).split() if len(t) >= min_length]


def clean_code(code: str | None) -> str:
    """Strip punctuation and whitespace from an ISBN/SKU ("978-84 123" -> "97884123")."""
    if not code:
        return ""
    return _CODE_NOISE.sub("", str(code)).upper()
