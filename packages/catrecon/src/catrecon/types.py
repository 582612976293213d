"""Core types for the catrecon catalog reconciliation engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator


class StockStatus(str, Enum):
    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"
    ON_BACKORDER = "on_backorder"


class Availability(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    NOT_FOUND = "not_found"


class MatchStage(str, Enum):
    CODE = "code"
    NAME = "name"
    KEYWORD = "keyword"


@dataclass(frozen=True)
class Position:
    """Where an item was found in the source document (percent coordinates)."""

    page: int
    x: float | None = None
    y: float | None = None
    region: str | None = None

    def to_record(self) -> dict[str, Any]:
        return {"page": self.page, "x": self.x, "y": self.y, "region": self.region}


@dataclass(frozen=True)
class CandidateItem:
    """One line of a materials list, as produced by the extraction step."""

    name: str
    quantity: int = 1
    code: str | None = None
    declared_price: Decimal | None = None
    subject: str | None = None
    position: Position | None = None


@dataclass(frozen=True)
class CatalogCandidate:
    id: int | str
    code: str
    name: str
    price: Decimal
    stock_quantity: int | None = None
    stock_managed: bool = False
    stock_status: StockStatus = StockStatus.IN_STOCK
    images: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: CatalogCandidate
    score: float


@dataclass(frozen=True)
class MatchResult:
    """Reconciled item: the candidate item plus what the catalog says about it."""

    item: CandidateItem
    matched: bool
    availability: Availability
    resolved_price: Decimal
    catalog_id: int | str | None = None
    catalog_code: str | None = None
    catalog_name: str | None = None
    catalog_price: Decimal | None = None
    stock_quantity: int | None = None
    image: str | None = None
    stage: MatchStage | None = None
    score: float | None = None

    def __post_init__(self) -> None:
        if (self.availability is Availability.NOT_FOUND) == self.matched:
            raise ValueError(
                f"availability={self.availability.value} is inconsistent with matched={self.matched}"
            )

    @property
    def name(self) -> str:
        return self.item.name

    @property
    def quantity(self) -> int:
        return self.item.quantity

    @property
    def code(self) -> str | None:
        return self.item.code

    @property
    def declared_price(self) -> Decimal | None:
        return self.item.declared_price

    @property
    def subject(self) -> str | None:
        return self.item.subject

    @property
    def position(self) -> Position | None:
        return self.item.position

    def to_record(self) -> dict[str, Any]:
        """Plain JSON-serializable record for the write-back step."""
        return {
            "quantity": self.quantity,
            "name": self.name,
            "code": self.code,
            "declaredPrice": _decimal_out(self.declared_price),
            "subject": self.subject,
            "position": self.position.to_record() if self.position else None,
            "matched": self.matched,
            "catalogId": self.catalog_id,
            "catalogCode": self.catalog_code,
            "catalogName": self.catalog_name,
            "resolvedPrice": _decimal_out(self.resolved_price),
            "catalogPrice": _decimal_out(self.catalog_price),
            "stockQuantity": self.stock_quantity,
            "availability": self.availability.value,
            "image": self.image,
            "stage": self.stage.value if self.stage else None,
            "score": self.score,
        }


@dataclass(frozen=True)
class BatchSummary:
    total: int
    matched_count: int
    unmatched_count: int
    available_count: int = 0
    unavailable_count: int = 0
    not_found_count: int = 0

    @classmethod
    def from_results(cls, results: list[MatchResult] | tuple[MatchResult, ...]) -> BatchSummary:
        total = len(results)
        matched = sum(1 for r in results if r.matched)
        by_availability = {a: 0 for a in Availability}
        for r in results:
            by_availability[r.availability] += 1
        return cls(
            total=total,
            matched_count=matched,
            unmatched_count=total - matched,
            available_count=by_availability[Availability.AVAILABLE],
            unavailable_count=by_availability[Availability.UNAVAILABLE],
            not_found_count=by_availability[Availability.NOT_FOUND],
        )

    def to_record(self) -> dict[str, int]:
        return {
            "total": self.total,
            "matchedCount": self.matched_count,
            "unmatchedCount": self.unmatched_count,
            "availableCount": self.available_count,
            "unavailableCount": self.unavailable_count,
            "notFoundCount": self.not_found_count,
        }


@dataclass(frozen=True)
class ReconcileReport:
    results: tuple[MatchResult, ...]
    summary: BatchSummary = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "summary", BatchSummary.from_results(self.results))

    def __iter__(self) -> Iterator[Any]:
        # Allows `results, summary = await reconcile(...)`
        yield self.results
        yield self.summary


def _decimal_out(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None
