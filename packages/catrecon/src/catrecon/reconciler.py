"""Batch orchestration: validate, fan out resolutions, join in input order."""

from __future__ import annotations

import asyncio
from typing import Any

from catrecon.adapters import parse_items
from catrecon.catalog import CatalogLookupClient
from catrecon.config import ReconcileConfig
from catrecon.observer import ReconcileObserver, StructlogObserver
from catrecon.resolver import Resolver, Scorer, not_found_result
from catrecon.types import CandidateItem, MatchResult, ReconcileReport

_UNSET: Any = object()


class Reconciler:
    """Reconcile a batch of candidate items against a catalog."""

    def __init__(
        self,
        catalog: CatalogLookupClient,
        config: ReconcileConfig | None = None,
        observer: ReconcileObserver | None = None,
        scorer: Scorer | None = None,
    ) -> None:
        self.config = config or ReconcileConfig()
        self.observer = observer or StructlogObserver()
        self.resolver = Resolver(catalog, self.config, self.observer, scorer)

    async def reconcile(
        self,
        items: Any,
        timeout: float | None = _UNSET,
        cancel: asyncio.Event | None = None,
    ) -> ReconcileReport:
        """Resolve every item concurrently; results follow input order.

        The batch is validated up front (``InvalidBatchError``). After that
        nothing fails the batch: items that error out, or are still pending
        when the batch is stopped, come back as not found.

        A batch is stopped by ``timeout`` seconds elapsing (defaults to
        ``concurrency.batch_timeout``) or by the caller setting ``cancel``.
        Cancelling the task running ``reconcile`` instead cancels every item
        and re-raises ``CancelledError`` without a report.
        """
        if timeout is _UNSET:
            timeout = self.config.concurrency.batch_timeout
        batch = parse_items(items)
        self.observer.batch_started(len(batch))

        semaphore = asyncio.Semaphore(max(1, self.config.concurrency.max_concurrency))

        async def run(item: CandidateItem) -> MatchResult:
            async with semaphore:
                return await self.resolver.resolve(item)

        tasks = [asyncio.ensure_future(run(item)) for item in batch]
        if tasks:
            try:
                pending = await _wait_batch(tasks, timeout, cancel)
            except asyncio.CancelledError:
                for t in tasks:
                    t.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
            for t in pending:
                t.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        # Join by index, not completion order
        results = tuple(self._collect(item, task) for item, task in zip(batch, tasks))
        report = ReconcileReport(results=results)
        self.observer.batch_finished(report.summary)
        return report

    def _collect(self, item: CandidateItem, task: asyncio.Future[MatchResult]) -> MatchResult:
        if task.cancelled():
            self.observer.item_failed(item, asyncio.CancelledError("batch stopped before item finished"))
            return not_found_result(item)
        error = task.exception()
        if error is not None:
            self.observer.item_failed(item, error)
            return not_found_result(item)
        return task.result()


async def _wait_batch(
    tasks: list[asyncio.Future[MatchResult]],
    timeout: float | None,
    cancel: asyncio.Event | None,
) -> set[asyncio.Future[MatchResult]]:
    """Wait for ``tasks`` until all finish, ``timeout`` expires or ``cancel`` is set.

    Returns the tasks still pending.
    """
    if cancel is None:
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        return pending

    loop = asyncio.get_running_loop()
    deadline = None if timeout is None else loop.time() + timeout
    pending = set(tasks)
    stopper = asyncio.ensure_future(cancel.wait())
    try:
        while pending and not stopper.done():
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                break
            done, _ = await asyncio.wait(
                pending | {stopper}, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
            pending -= done
    finally:
        stopper.cancel()
    return pending


async def reconcile(
    items: Any,
    catalog: CatalogLookupClient,
    config: ReconcileConfig | None = None,
    observer: ReconcileObserver | None = None,
    timeout: float | None = _UNSET,
    cancel: asyncio.Event | None = None,
) -> ReconcileReport:
    """Reconcile ``items`` against ``catalog``; unpacks as ``(results, summary)``."""
    return await Reconciler(catalog, config, observer).reconcile(items, timeout, cancel)


def reconcile_sync(
    items: Any,
    catalog: CatalogLookupClient,
    config: ReconcileConfig | None = None,
    observer: ReconcileObserver | None = None,
) -> ReconcileReport:
    """Blocking wrapper around ``reconcile`` for scripts."""
    return asyncio.run(reconcile(items, catalog, config, observer))
