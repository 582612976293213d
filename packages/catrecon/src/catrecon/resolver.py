"""Per-item multi-stage resolution against the catalog."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Awaitable, Callable, Sequence

import structlog

from catrecon.catalog import CatalogLookupClient
from catrecon.config import ReconcileConfig
from catrecon.keywords import search_keyword
from catrecon.normalize import clean_code
from catrecon.observer import ReconcileObserver, StructlogObserver
from catrecon.scoring import best_candidate, score_candidates, similarity
from catrecon.types import (
    Availability,
    CandidateItem,
    CatalogCandidate,
    MatchResult,
    MatchStage,
    ScoredCandidate,
    StockStatus,
)

Scorer = Callable[[str, str], float]

log = structlog.get_logger()

_ZERO = Decimal("0")


def availability_of(candidate: CatalogCandidate) -> Availability:
    """Stock verdict for a matched catalog product."""
    if not candidate.stock_managed:
        return Availability.AVAILABLE
    if candidate.stock_status in (StockStatus.IN_STOCK, StockStatus.ON_BACKORDER):
        return Availability.AVAILABLE
    if candidate.stock_quantity is not None and candidate.stock_quantity > 0:
        return Availability.AVAILABLE
    return Availability.UNAVAILABLE


def matched_result(item: CandidateItem, scored: ScoredCandidate, stage: MatchStage) -> MatchResult:
    c = scored.candidate
    if c.price > 0:
        resolved = c.price
    else:
        resolved = item.declared_price if item.declared_price is not None else _ZERO
    return MatchResult(
        item=item,
        matched=True,
        availability=availability_of(c),
        resolved_price=resolved,
        catalog_id=c.id,
        catalog_code=c.code or None,
        catalog_name=c.name,
        catalog_price=c.price,
        stock_quantity=c.stock_quantity,
        image=c.images[0] if c.images else None,
        stage=stage,
        score=scored.score,
    )


def not_found_result(item: CandidateItem) -> MatchResult:
    return MatchResult(
        item=item,
        matched=False,
        availability=Availability.NOT_FOUND,
        resolved_price=item.declared_price if item.declared_price is not None else _ZERO,
    )


def codes_match(query: str, candidate_code: str | None) -> bool:
    """Cleaned codes are equal, or one contains the other."""
    cand = clean_code(candidate_code)
    if not query or not cand:
        return False
    return query == cand or query in cand or cand in query


class Resolver:
    """Resolve one candidate item through the code, name and keyword stages."""

    def __init__(
        self,
        catalog: CatalogLookupClient,
        config: ReconcileConfig | None = None,
        observer: ReconcileObserver | None = None,
        scorer: Scorer | None = None,
    ) -> None:
        self.catalog = catalog
        self.config = config or ReconcileConfig()
        self.observer = observer or StructlogObserver()
        self.scorer: Scorer = scorer or (lambda a, b: similarity(a, b, self.config))

    async def resolve(self, item: CandidateItem) -> MatchResult:
        """Match ``item`` against the catalog.

        Only cancellation escapes: any other error (catalog, scorer or
        observer) is reported through ``item_failed`` and the item comes back
        as not found.
        """
        try:
            result = await self._run_stages(item)
            self.observer.item_resolved(result)
        except Exception as e:
            result = not_found_result(item)
            try:
                self.observer.item_failed(item, e)
            except Exception:
                log.exception("observer_failed", item=item.name)
        return result

    async def _run_stages(self, item: CandidateItem) -> MatchResult:
        result = await self._code_stage(item)
        if result is None:
            result = await self._name_stage(item)
        if result is None:
            result = await self._keyword_stage(item)
        if result is None:
            result = not_found_result(item)
        return result

    # Stage 1: identifying code (ISBN/SKU), structural match only
    async def _code_stage(self, item: CandidateItem) -> MatchResult | None:
        query = clean_code(item.code)
        if not query:
            return None

        candidates = await self._lookup(item, MatchStage.CODE, self.catalog.search_by_code, query)
        hit = next((c for c in candidates if codes_match(query, c.code)), None)
        self.observer.stage_finished(
            item, MatchStage.CODE, len(candidates), 1.0 if hit else None, hit is not None
        )
        if hit is None:
            return None
        return matched_result(item, ScoredCandidate(candidate=hit, score=1.0), MatchStage.CODE)

    # Stage 2: full name search
    async def _name_stage(self, item: CandidateItem) -> MatchResult | None:
        return await self._text_stage(
            item, MatchStage.NAME, item.name, self.config.thresholds.name_stage
        )

    # Stage 3: longest keyword search, scored against the full name
    async def _keyword_stage(self, item: CandidateItem) -> MatchResult | None:
        keyword = search_keyword(item.name, self.config)
        if keyword is None:
            return None
        return await self._text_stage(
            item, MatchStage.KEYWORD, keyword, self.config.thresholds.keyword_stage
        )

    async def _text_stage(
        self, item: CandidateItem, stage: MatchStage, query: str, threshold: float
    ) -> MatchResult | None:
        candidates = await self._lookup(item, stage, self.catalog.search_by_text, query)
        scored = score_candidates(item.name, candidates, self.scorer)
        best = best_candidate(scored)
        accepted = best is not None and best.score >= threshold
        self.observer.stage_finished(
            item, stage, len(candidates), best.score if best else None, accepted
        )
        if not accepted:
            return None
        return matched_result(item, best, stage)

    async def _lookup(
        self,
        item: CandidateItem,
        stage: MatchStage,
        call: Callable[[str], Awaitable[Sequence[CatalogCandidate]]],
        query: str,
    ) -> Sequence[CatalogCandidate]:
        self.observer.stage_started(item, stage, query)
        timeout = self.config.concurrency.lookup_timeout
        try:
            if timeout is not None:
                found = await asyncio.wait_for(call(query), timeout)
            else:
                found = await call(query)
        except Exception as e:
            # CancelledError is a BaseException and propagates
            self.observer.lookup_failed(item, stage, e)
            return []
        return list(found or [])
