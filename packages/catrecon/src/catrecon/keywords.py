"""Keyword extraction for fallback catalog searches."""

from __future__ import annotations

import os
from pathlib import Path

from catrecon.config import ReconcileConfig
from catrecon.normalize import normalize

DATA_DIR = Path(os.environ.get("CATRECON_CONFIG_DATA") or Path(__file__).resolve().parent / "data")


def _load_word_list(filename: str) -> frozenset[str]:
    path = DATA_DIR / filename
    if not path.exists():
        return frozenset()
    return frozenset(normalize(line) for line in path.read_text(encoding="utf-8").splitlines() if line.strip())


STOP_WORDS: frozenset[str] = _load_word_list("stop_words.txt")


def is_stop_word(token: str, config: ReconcileConfig | None = None) -> bool:
    if token in STOP_WORDS:
        return True
    return config is not None and token in config.keywords.extra_stop_words


def keywords(name: str | None, config: ReconcileConfig | None = None) -> list[str]:
    """Salient tokens of a product name, in the order they appear.

    >>> keywords("Caja de lápices de colores largos")
    ['caja', 'lapices', 'colores', 'largos']
    """
    if config is None:
        config = ReconcileConfig()
    kw = config.keywords

    result = [
        t
        for t in normalize(name).split()
        if len(t) >= kw.min_token_length and not is_stop_word(t, config)
    ]
    return result[: kw.max_keywords]


def search_keyword(name: str | None, config: ReconcileConfig | None = None) -> str | None:
    """Longest keyword (first on ties), used as the fallback search key."""
    kws = keywords(name, config)
    if not kws:
        return None
    return max(kws, key=len)
