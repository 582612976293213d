"""Deterministic similarity scoring of catalog candidates."""

from __future__ import annotations

from typing import Callable, Iterable

from catrecon.config import ReconcileConfig
from catrecon.normalize import normalize
from catrecon.types import CatalogCandidate, ScoredCandidate

MIN_TOKEN_LENGTH = 3


def similarity(a: str | None, b: str | None, config: ReconcileConfig | None = None) -> float:
    """Score two product names in [0, 1]; the first applicable rule wins.

    1. Equal after normalization -> 1.0
    2. One contains the other -> ``thresholds.containment`` (0.9)
    3. Shared significant tokens / size of the larger token set
    """
    if config is None:
        config = ReconcileConfig()

    a_norm = normalize(a)
    b_norm = normalize(b)
    if not a_norm or not b_norm:
        return 0.0

    # 1. Exact
    if a_norm == b_norm:
        return 1.0

    # 2. Containment
    if a_norm in b_norm or b_norm in a_norm:
        return config.thresholds.containment

    # 3. Token overlap
    a_set = {t for t in a_norm.split() if len(t) >= MIN_TOKEN_LENGTH}
    b_set = {t for t in b_norm.split() if len(t) >= MIN_TOKEN_LENGTH}
    if not a_set or not b_set:
        return 0.0
    return len(a_set & b_set) / max(len(a_set), len(b_set))


def score_candidates(
    name: str,
    candidates: Iterable[CatalogCandidate],
    scorer: Callable[[str, str], float] | None = None,
) -> list[ScoredCandidate]:
    """Score every candidate against ``name``, preserving catalog order."""
    score = scorer or similarity
    return [ScoredCandidate(candidate=c, score=score(name, c.name)) for c in candidates]


def best_candidate(scored: Iterable[ScoredCandidate]) -> ScoredCandidate | None:
    """Highest-scoring candidate; on equal scores the first one seen wins."""
    # max() keeps the first maximal element
    return max(scored, key=lambda sc: sc.score, default=None)
