"""Catalog lookup interface consumed by the resolver."""

from __future__ import annotations

from typing import Iterable, Protocol, Sequence

from catrecon.normalize import clean_code, normalize
from catrecon.types import CatalogCandidate


class CatalogLookupClient(Protocol):
    """Protocol for catalog backends.

    Both operations may return an empty sequence and both may raise; the
    resolver treats a raised error as "no candidates".
    """

    async def search_by_code(self, code: str) -> Sequence[CatalogCandidate]: ...

    async def search_by_text(self, query: str) -> Sequence[CatalogCandidate]: ...


class StaticCatalog:
    """In-memory catalog over a fixed list of candidates."""

    def __init__(self, candidates: Iterable[CatalogCandidate], limit: int = 10) -> None:
        self.candidates = list(candidates)
        self.limit = limit

    def __len__(self) -> int:
        return len(self.candidates)

    async def search_by_code(self, code: str) -> list[CatalogCandidate]:
        query = clean_code(code)
        if not query:
            return []
        hits = []
        for c in self.candidates:
            cand = clean_code(c.code)
            if cand and (query in cand or cand in query):
                hits.append(c)
        return hits[: self.limit]

    async def search_by_text(self, query: str) -> list[CatalogCandidate]:
        q_norm = normalize(query)
        if not q_norm:
            return []
        q_tokens = {t for t in q_norm.split() if len(t) >= 3}
        hits = []
        for c in self.candidates:
            c_norm = normalize(c.name)
            if not c_norm:
                continue
            if q_norm in c_norm or c_norm in q_norm or q_tokens & set(c_norm.split()):
                hits.append(c)
        return hits[: self.limit]
