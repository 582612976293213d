"""Observability hooks called by the resolver and reconciler."""

from __future__ import annotations

from typing import Protocol

import structlog

from catrecon.types import BatchSummary, CandidateItem, MatchResult, MatchStage


class ReconcileObserver(Protocol):
    """Protocol for receiving reconciliation events."""

    def batch_started(self, total: int) -> None: ...

    def stage_started(self, item: CandidateItem, stage: MatchStage, query: str) -> None: ...

    def stage_finished(
        self,
        item: CandidateItem,
        stage: MatchStage,
        candidates: int,
        best_score: float | None,
        accepted: bool,
    ) -> None: ...

    def lookup_failed(self, item: CandidateItem, stage: MatchStage, error: BaseException) -> None: ...

    def item_resolved(self, result: MatchResult) -> None: ...

    def item_failed(self, item: CandidateItem, error: BaseException) -> None: ...

    def batch_finished(self, summary: BatchSummary) -> None: ...


class NullObserver:
    """Discards every event."""

    def batch_started(self, total: int) -> None:
        pass

    def stage_started(self, item: CandidateItem, stage: MatchStage, query: str) -> None:
        pass

    def stage_finished(
        self,
        item: CandidateItem,
        stage: MatchStage,
        candidates: int,
        best_score: float | None,
        accepted: bool,
    ) -> None:
        pass

    def lookup_failed(self, item: CandidateItem, stage: MatchStage, error: BaseException) -> None:
        pass

    def item_resolved(self, result: MatchResult) -> None:
        pass

    def item_failed(self, item: CandidateItem, error: BaseException) -> None:
        pass

    def batch_finished(self, summary: BatchSummary) -> None:
        pass


class StructlogObserver:
    """Default observer: emits structlog events."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self.log = logger or structlog.get_logger()

    def batch_started(self, total: int) -> None:
        self.log.info("reconcile_start", total=total)

    def stage_started(self, item: CandidateItem, stage: MatchStage, query: str) -> None:
        self.log.debug("stage_start", item=item.name, stage=stage.value, query=query)

    def stage_finished(
        self,
        item: CandidateItem,
        stage: MatchStage,
        candidates: int,
        best_score: float | None,
        accepted: bool,
    ) -> None:
        self.log.debug(
            "stage_done",
            item=item.name,
            stage=stage.value,
            candidates=candidates,
            best_score=round(best_score, 4) if best_score is not None else None,
            accepted=accepted,
        )

    def lookup_failed(self, item: CandidateItem, stage: MatchStage, error: BaseException) -> None:
        self.log.warning(
            "lookup_failed",
            item=item.name,
            stage=stage.value,
            error=str(error) or type(error).__name__,
        )

    def item_resolved(self, result: MatchResult) -> None:
        self.log.debug(
            "item_resolved",
            item=result.name,
            matched=result.matched,
            availability=result.availability.value,
            stage=result.stage.value if result.stage else None,
            catalog_name=result.catalog_name,
        )

    def item_failed(self, item: CandidateItem, error: BaseException) -> None:
        self.log.warning(
            "item_failed",
            item=item.name,
            error=str(error) or type(error).__name__,
        )

    def batch_finished(self, summary: BatchSummary) -> None:
        self.log.info(
            "reconcile_done",
            total=summary.total,
            matched=summary.matched_count,
            unmatched=summary.unmatched_count,
            available=summary.available_count,
            unavailable=summary.unavailable_count,
        )
