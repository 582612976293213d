"""Tests for per-item resolution."""

import asyncio
from decimal import Decimal

import pytest

from catrecon.config import ReconcileConfig
from catrecon.errors import CatalogLookupError
from catrecon.observer import NullObserver
from catrecon.resolver import Resolver, availability_of, codes_match
from catrecon.types import (
    Availability,
    CandidateItem,
    CatalogCandidate,
    MatchStage,
    StockStatus,
)


def make_candidate(
    id=1,
    name="Cuaderno universitario",
    code="",
    price="1990",
    stock_quantity=None,
    stock_managed=False,
    stock_status=StockStatus.IN_STOCK,
    images=(),
):
    return CatalogCandidate(
        id=id,
        code=code,
        name=name,
        price=Decimal(price),
        stock_quantity=stock_quantity,
        stock_managed=stock_managed,
        stock_status=stock_status,
        images=images,
    )


class MockCatalog:
    """Canned catalog answers keyed by query string."""

    def __init__(self, by_code=None, by_text=None, fail_on=()):
        self.by_code = by_code or {}
        self.by_text = by_text or {}
        self.fail_on = set(fail_on)
        self.calls: list[tuple[str, str]] = []

    async def search_by_code(self, code):
        self.calls.append(("code", code))
        if ("code", code) in self.fail_on:
            raise CatalogLookupError(f"lookup failed for {code}")
        return self.by_code.get(code, [])

    async def search_by_text(self, query):
        self.calls.append(("text", query))
        if ("text", query) in self.fail_on:
            raise CatalogLookupError(f"lookup failed for {query}")
        return self.by_text.get(query, [])


class SlowCatalog:
    async def search_by_code(self, code):
        await asyncio.sleep(5)
        return []

    async def search_by_text(self, query):
        await asyncio.sleep(5)
        return [make_candidate()]


class RecordingObserver(NullObserver):
    def __init__(self):
        self.events = []

    def stage_started(self, item, stage, query):
        self.events.append(("stage_started", stage, query))

    def stage_finished(self, item, stage, candidates, best_score, accepted):
        self.events.append(("stage_finished", stage, accepted))

    def lookup_failed(self, item, stage, error):
        self.events.append(("lookup_failed", stage, type(error).__name__))

    def item_resolved(self, result):
        self.events.append(("item_resolved", result.availability))

    def item_failed(self, item, error):
        self.events.append(("item_failed", type(error).__name__))


class BrokenSinkObserver(RecordingObserver):
    """Observer whose stage reporting raises."""

    def stage_finished(self, item, stage, candidates, best_score, accepted):
        raise RuntimeError("log sink down")


class SilentFailureObserver(BrokenSinkObserver):
    def item_failed(self, item, error):
        raise RuntimeError("log sink still down")


def make_resolver(catalog, config=None, scorer=None, observer=None):
    return Resolver(catalog, config, observer or NullObserver(), scorer)


class TestCodeStage:
    async def test_code_match_ignores_name(self):
        catalog = MockCatalog(
            by_code={"9781234567890": [make_candidate(id=7, code="978-1234567890", name="Matemática 5° básico")]}
        )
        item = CandidateItem(name="Libro de matemáticas", code="978-1234567890")

        result = await make_resolver(catalog).resolve(item)

        assert result.matched
        assert result.stage is MatchStage.CODE
        assert result.score == 1.0
        assert result.catalog_id == 7
        assert result.catalog_code == "978-1234567890"
        assert catalog.calls == [("code", "9781234567890")]

    async def test_code_containment(self):
        catalog = MockCatalog(by_code={"1234567890": [make_candidate(code="978-1234567890")]})
        item = CandidateItem(name="Libro", code="1234567890")

        result = await make_resolver(catalog).resolve(item)

        assert result.stage is MatchStage.CODE

    async def test_code_mismatch_falls_through_to_name(self):
        catalog = MockCatalog(
            by_code={"111": [make_candidate(id=1, code="999")]},
            by_text={"Cuaderno universitario": [make_candidate(id=2, name="Cuaderno universitario 100 hojas")]},
        )
        item = CandidateItem(name="Cuaderno universitario", code="111")

        result = await make_resolver(catalog).resolve(item)

        assert result.stage is MatchStage.NAME
        assert result.catalog_id == 2
        assert result.score == 0.9

    async def test_no_code_skips_code_stage(self):
        catalog = MockCatalog(by_text={"Cuaderno": [make_candidate(name="Cuaderno")]})

        await make_resolver(catalog).resolve(CandidateItem(name="Cuaderno"))

        assert all(kind == "text" for kind, _ in catalog.calls)


class TestTextStages:
    async def test_name_stage(self):
        catalog = MockCatalog(by_text={"Cuaderno universitario": [make_candidate(name="Cuaderno universitario")]})

        result = await make_resolver(catalog).resolve(CandidateItem(name="Cuaderno universitario"))

        assert result.stage is MatchStage.NAME
        assert result.score == 1.0
        assert catalog.calls == [("text", "Cuaderno universitario")]

    async def test_keyword_stage_accepts_below_name_threshold(self):
        name = "Cuaderno universitario cuadriculado"
        catalog = MockCatalog(
            by_text={
                name: [make_candidate(id=1, name="Name hit")],
                "universitario": [make_candidate(id=2, name="Keyword hit")],
            }
        )
        scores = {"Name hit": 0.65, "Keyword hit": 0.62}

        result = await make_resolver(catalog, scorer=lambda a, b: scores[b]).resolve(CandidateItem(name=name))

        assert result.matched
        assert result.stage is MatchStage.KEYWORD
        assert result.catalog_id == 2
        assert result.score == 0.62

    async def test_keyword_candidates_scored_against_full_name(self):
        name = "Lápices de colores largos caja 12"
        catalog = MockCatalog(
            by_text={"lapices": [make_candidate(name="Lapices colores largos caja 24 unidades")]}
        )

        result = await make_resolver(catalog).resolve(CandidateItem(name=name))

        assert result.stage is MatchStage.KEYWORD
        assert result.score == pytest.approx(0.8)
        assert catalog.calls == [("text", name), ("text", "lapices")]

    async def test_below_all_thresholds_not_found(self):
        catalog = MockCatalog(
            by_text={
                "Regla 30 cm": [make_candidate(name="x")],
                "regla": [make_candidate(name="y")],
            }
        )
        item = CandidateItem(name="Regla 30 cm", declared_price=Decimal("1500"))

        result = await make_resolver(catalog, scorer=lambda a, b: 0.40).resolve(item)

        assert not result.matched
        assert result.availability is Availability.NOT_FOUND
        assert result.resolved_price == Decimal("1500")
        assert result.catalog_id is None
        assert result.stage is None

    async def test_not_found_without_declared_price(self):
        result = await make_resolver(MockCatalog()).resolve(CandidateItem(name="Regla 30 cm"))

        assert result.availability is Availability.NOT_FOUND
        assert result.resolved_price == Decimal("0")

    async def test_no_keywords_skips_keyword_stage(self):
        catalog = MockCatalog()

        await make_resolver(catalog).resolve(CandidateItem(name="Lo de"))

        assert catalog.calls == [("text", "Lo de")]

    async def test_first_seen_wins_ties(self):
        catalog = MockCatalog(
            by_text={"Cuaderno": [make_candidate(id=1, name="Cuaderno"), make_candidate(id=2, name="cuaderno")]}
        )

        result = await make_resolver(catalog).resolve(CandidateItem(name="Cuaderno"))

        assert result.catalog_id == 1

    async def test_thresholds_configurable(self):
        config = ReconcileConfig()
        config.thresholds.name_stage = 0.95
        config.thresholds.keyword_stage = 0.95
        catalog = MockCatalog(
            by_text={"Cuaderno universitario": [make_candidate(name="Cuaderno universitario 100 hojas")]}
        )

        result = await make_resolver(catalog, config).resolve(CandidateItem(name="Cuaderno universitario"))

        assert not result.matched


class TestFailures:
    async def test_failed_name_lookup_continues_to_keyword(self):
        name = "Cuaderno universitario"
        catalog = MockCatalog(
            by_text={"universitario": [make_candidate(name="Cuaderno universitario")]},
            fail_on=[("text", name)],
        )
        observer = RecordingObserver()

        result = await make_resolver(catalog, observer=observer).resolve(CandidateItem(name=name))

        assert result.stage is MatchStage.KEYWORD
        assert ("lookup_failed", MatchStage.NAME, "CatalogLookupError") in observer.events

    async def test_every_lookup_failing_is_not_found(self):
        name = "Cuaderno universitario"
        catalog = MockCatalog(
            fail_on=[("code", "123"), ("text", name), ("text", "universitario")],
        )
        item = CandidateItem(name=name, code="123", declared_price=Decimal("990"))

        result = await make_resolver(catalog).resolve(item)

        assert result.availability is Availability.NOT_FOUND
        assert result.resolved_price == Decimal("990")
        assert len(catalog.calls) == 3

    async def test_lookup_timeout(self):
        config = ReconcileConfig()
        config.concurrency.lookup_timeout = 0.01
        observer = RecordingObserver()

        result = await make_resolver(SlowCatalog(), config, observer=observer).resolve(
            CandidateItem(name="Cuaderno", code="123")
        )

        assert result.availability is Availability.NOT_FOUND
        failures = [e for e in observer.events if e[0] == "lookup_failed"]
        assert [stage for _, stage, _ in failures] == [MatchStage.CODE, MatchStage.NAME, MatchStage.KEYWORD]
        assert all(name == "TimeoutError" for _, _, name in failures)


class TestUnexpectedErrors:
    async def test_observer_error_does_not_escape(self):
        catalog = MockCatalog(by_text={"Cuaderno": [make_candidate(name="Cuaderno")]})
        observer = BrokenSinkObserver()
        item = CandidateItem(name="Cuaderno", declared_price=Decimal("990"))

        result = await make_resolver(catalog, observer=observer).resolve(item)

        assert result.availability is Availability.NOT_FOUND
        assert result.resolved_price == Decimal("990")
        assert observer.events[-1] == ("item_failed", "RuntimeError")

    async def test_scorer_error_does_not_escape(self):
        def scorer(a, b):
            raise ValueError("bad score")

        catalog = MockCatalog(by_text={"Cuaderno": [make_candidate(name="Cuaderno")]})
        observer = RecordingObserver()

        result = await make_resolver(catalog, scorer=scorer, observer=observer).resolve(
            CandidateItem(name="Cuaderno")
        )

        assert not result.matched
        assert ("item_failed", "ValueError") in observer.events

    async def test_failing_item_failed_hook(self):
        catalog = MockCatalog(by_text={"Cuaderno": [make_candidate(name="Cuaderno")]})

        result = await make_resolver(catalog, observer=SilentFailureObserver()).resolve(
            CandidateItem(name="Cuaderno")
        )

        assert result.availability is Availability.NOT_FOUND

    async def test_cancellation_propagates(self):
        task = asyncio.create_task(make_resolver(SlowCatalog()).resolve(CandidateItem(name="Cuaderno")))
        await asyncio.sleep(0.01)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


class TestObserver:
    async def test_event_order_for_code_match(self):
        catalog = MockCatalog(by_code={"123": [make_candidate(code="123")]})
        observer = RecordingObserver()

        await make_resolver(catalog, observer=observer).resolve(CandidateItem(name="x", code="123"))

        assert observer.events == [
            ("stage_started", MatchStage.CODE, "123"),
            ("stage_finished", MatchStage.CODE, True),
            ("item_resolved", Availability.AVAILABLE),
        ]


class TestMatchedResult:
    async def test_catalog_price_wins(self):
        catalog = MockCatalog(by_text={"Cuaderno": [make_candidate(name="Cuaderno", price="2490")]})
        item = CandidateItem(name="Cuaderno", declared_price=Decimal("1990"))

        result = await make_resolver(catalog).resolve(item)

        assert result.resolved_price == Decimal("2490")
        assert result.catalog_price == Decimal("2490")

    async def test_zero_catalog_price_uses_declared(self):
        catalog = MockCatalog(by_text={"Cuaderno": [make_candidate(name="Cuaderno", price="0")]})
        item = CandidateItem(name="Cuaderno", declared_price=Decimal("1990"))

        result = await make_resolver(catalog).resolve(item)

        assert result.resolved_price == Decimal("1990")

    async def test_zero_catalog_price_no_declared(self):
        catalog = MockCatalog(by_text={"Cuaderno": [make_candidate(name="Cuaderno", price="0")]})

        result = await make_resolver(catalog).resolve(CandidateItem(name="Cuaderno"))

        assert result.resolved_price == Decimal("0")

    async def test_first_image(self):
        catalog = MockCatalog(
            by_text={"Cuaderno": [make_candidate(name="Cuaderno", images=("a.jpg", "b.jpg"))]}
        )

        result = await make_resolver(catalog).resolve(CandidateItem(name="Cuaderno"))

        assert result.image == "a.jpg"

    async def test_carries_item_fields(self):
        catalog = MockCatalog(by_text={"Cuaderno": [make_candidate(name="Cuaderno")]})
        item = CandidateItem(name="Cuaderno", quantity=3, subject="Lenguaje")

        result = await make_resolver(catalog).resolve(item)

        assert result.item is item
        assert result.quantity == 3
        assert result.subject == "Lenguaje"


class TestAvailability:
    @pytest.mark.parametrize(
        "managed, status, quantity, expected",
        [
            (False, StockStatus.OUT_OF_STOCK, 0, Availability.AVAILABLE),
            (True, StockStatus.IN_STOCK, 0, Availability.AVAILABLE),
            (True, StockStatus.ON_BACKORDER, 0, Availability.AVAILABLE),
            (True, StockStatus.OUT_OF_STOCK, 3, Availability.AVAILABLE),
            (True, StockStatus.OUT_OF_STOCK, 0, Availability.UNAVAILABLE),
            (True, StockStatus.OUT_OF_STOCK, None, Availability.UNAVAILABLE),
        ],
    )
    def test_availability_of(self, managed, status, quantity, expected):
        candidate = make_candidate(stock_managed=managed, stock_status=status, stock_quantity=quantity)
        assert availability_of(candidate) is expected


class TestCodesMatch:
    def test_equal(self):
        assert codes_match("9781234567890", "978-1234567890")

    def test_contains_either_way(self):
        assert codes_match("1234567890", "978-1234567890")
        assert codes_match("9781234567890X", "978-1234567890")

    def test_different(self):
        assert not codes_match("111", "999")

    def test_blank_candidate_code(self):
        assert not codes_match("111", "")
        assert not codes_match("111", None)
