"""Configuration for the catrecon reconciliation engine."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Thresholds:
    name_stage: float = 0.70
    keyword_stage: float = 0.60
    containment: float = 0.9


@dataclass
class KeywordConfig:
    max_keywords: int = 5
    min_token_length: int = 3  # tokens of length <= 2 are noise
    extra_stop_words: list[str] = field(default_factory=list)


@dataclass
class ConcurrencyConfig:
    max_concurrency: int = 5
    lookup_timeout: float | None = None  # seconds per catalog call
    batch_timeout: float | None = None  # seconds for the whole batch


@dataclass
class ReconcileConfig:
    thresholds: Thresholds = field(default_factory=Thresholds)
    keywords: KeywordConfig = field(default_factory=KeywordConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
