"""CLI for reconciling materials lists against a product catalog."""

from __future__ import annotations

import argparse
import asyncio
import sys

import pandas as pd
import structlog

from catrecon.catalog import CatalogLookupClient
from catrecon.config import ReconcileConfig
from catrecon.errors import InvalidBatchError
from catrecon.io import load_catalog, read_items, results_frame, write_results
from catrecon.keywords import keywords, search_keyword
from catrecon.logging import configure_logging
from catrecon.normalize import normalize
from catrecon.reconciler import Reconciler
from catrecon.scoring import similarity
from catrecon.types import ReconcileReport


def _build_config(args: argparse.Namespace) -> ReconcileConfig:
    """Build a ReconcileConfig from CLI args."""
    config = ReconcileConfig()
    if getattr(args, "name_threshold", None) is not None:
        config.thresholds.name_stage = args.name_threshold
    if getattr(args, "keyword_threshold", None) is not None:
        config.thresholds.keyword_stage = args.keyword_threshold
    if getattr(args, "max_concurrency", None) is not None:
        config.concurrency.max_concurrency = args.max_concurrency
    if getattr(args, "lookup_timeout", None) is not None:
        config.concurrency.lookup_timeout = args.lookup_timeout
    if getattr(args, "timeout", None) is not None:
        config.concurrency.batch_timeout = args.timeout
    return config


async def _run_reconcile(args: argparse.Namespace, items: list, config: ReconcileConfig) -> ReconcileReport:
    log = structlog.get_logger()
    if args.catalog:
        catalog: CatalogLookupClient = load_catalog(args.catalog)
        log.info("catalog_loaded", path=args.catalog, products=len(catalog))
        return await Reconciler(catalog, config).reconcile(items)

    from catrecon.woocommerce import WooCommerceCatalog

    async with WooCommerceCatalog.from_env() as woo:
        log.info("woocommerce_catalog", base_url=woo.base_url)
        return await Reconciler(woo, config).reconcile(items)


def cmd_reconcile(args: argparse.Namespace) -> None:
    log = structlog.get_logger()
    config = _build_config(args)

    log.info("load_items_start", path=args.items)
    try:
        sheet = int(args.sheet) if str(args.sheet).isdigit() else args.sheet
        items = read_items(args.items, sheet=sheet)
        report = asyncio.run(_run_reconcile(args, items, config))
    except InvalidBatchError as e:
        print(f"Invalid materials list: {e}", file=sys.stderr)
        raise SystemExit(2) from e

    if args.show:
        _show_results(results_frame(report.results))
    _print_summary(report)

    if args.output:
        write_results(report, args.output)
        print(f"\nSaved to: {args.output}")


def _show_results(df: pd.DataFrame) -> None:
    if df.empty:
        print("\n=== No items ===")
        return
    display_cols = ["name", "quantity", "availability", "catalogName", "resolvedPrice", "stage", "score"]
    print(f"\n=== Results ({len(df)}) ===")
    print(df[display_cols].to_string(index=False))


def _print_summary(report: ReconcileReport) -> None:
    s = report.summary
    print("\n--- Summary ---")
    print(f"Items: {s.total}")
    print(f"Matched: {s.matched_count}")
    print(f"Unmatched: {s.unmatched_count}")
    print(f"Available: {s.available_count}")
    print(f"Unavailable: {s.unavailable_count}")


def cmd_normalize(args: argparse.Namespace) -> None:
    for name in args.names:
        print(f"{name!r} -> {normalize(name)!r}")


def cmd_keywords(args: argparse.Namespace) -> None:
    for name in args.names:
        print(f"{name!r}: {keywords(name)} (search: {search_keyword(name)!r})")


def cmd_score(args: argparse.Namespace) -> None:
    print(f"{similarity(args.a, args.b):.4f}")


def main(argv: list[str] | None = None) -> None:
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Set logging level (default: LOG_LEVEL or INFO)",
    )

    parser = argparse.ArgumentParser(
        description="Materials list catalog reconciliation CLI",
        parents=[parent_parser],
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    rec = subparsers.add_parser("reconcile", parents=[parent_parser], help="Reconcile a materials list")
    rec.add_argument("items", help="Items file (.json, .jsonl, .csv, .xlsx)")
    rec.add_argument("--sheet", default=0, help="Excel sheet name or index")
    rec.add_argument("--catalog", help="Catalog export (.json); default: WooCommerce via WOO_* env vars")
    rec.add_argument("--output", "-o", help="Output file (.json, .jsonl, .csv, .xlsx)")
    rec.add_argument("--show", action="store_true", help="Display results on screen")
    rec.add_argument("--max-concurrency", type=int, help="Concurrent catalog lookups")
    rec.add_argument("--lookup-timeout", type=float, help="Seconds per catalog lookup")
    rec.add_argument("--timeout", type=float, help="Seconds for the whole batch")
    rec.add_argument("--name-threshold", type=float, help="Name stage acceptance score")
    rec.add_argument("--keyword-threshold", type=float, help="Keyword stage acceptance score")
    rec.set_defaults(func=cmd_reconcile)

    norm = subparsers.add_parser("normalize", parents=[parent_parser], help="Show normalized names")
    norm.add_argument("names", nargs="+")
    norm.set_defaults(func=cmd_normalize)

    kw = subparsers.add_parser("keywords", parents=[parent_parser], help="Show search keywords")
    kw.add_argument("names", nargs="+")
    kw.set_defaults(func=cmd_keywords)

    score = subparsers.add_parser("score", parents=[parent_parser], help="Similarity of two names")
    score.add_argument("a")
    score.add_argument("b")
    score.set_defaults(func=cmd_score)

    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    args.func(args)


if __name__ == "__main__":
    main()
