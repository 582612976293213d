"""Reading materials lists and writing reconciliation results."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pandas as pd

from catrecon.adapters import candidates_from_payload, item_from_extraction
from catrecon.catalog import StaticCatalog
from catrecon.errors import InvalidBatchError
from catrecon.types import MatchResult, ReconcileReport

# Spreadsheet header (lowercased) -> input contract field
HEADER_ALIASES: dict[str, str] = {
    "name": "name",
    "nombre": "name",
    "material": "name",
    "material_nombre": "name",
    "item": "name",
    "producto": "name",
    "quantity": "quantity",
    "cantidad": "quantity",
    "qty": "quantity",
    "cant": "quantity",
    "code": "code",
    "isbn": "code",
    "sku": "code",
    "declaredprice": "declaredPrice",
    "declared_price": "declaredPrice",
    "price": "declaredPrice",
    "precio": "declaredPrice",
    "subject": "subject",
    "asignatura": "subject",
}


def read_items(path: str | Path, sheet: str | int = 0) -> list[dict[str, Any]]:
    """Read raw candidate item records from JSON, JSONL, CSV or Excel.

    Records are returned unvalidated; ``adapters.parse_items`` checks them.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".json":
        data = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data = data.get("items", data.get("productos", data))
        if not isinstance(data, list):
            raise InvalidBatchError(f"{path.name}: expected a list of items")
        return [item_from_extraction(r) if isinstance(r, dict) else r for r in data]

    if suffix == ".jsonl":
        records = []
        with path.open(encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                records.append(item_from_extraction(json.loads(line)))
        return records

    if suffix == ".xlsx":
        df = pd.read_excel(path, sheet_name=sheet, dtype=str, keep_default_na=False)
    else:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    return _records_from_frame(df, path.name)


def _records_from_frame(df: pd.DataFrame, source: str) -> list[dict[str, Any]]:
    columns: dict[str, str] = {}
    for col in df.columns:
        field = HEADER_ALIASES.get(str(col).strip().lower())
        if field and field not in columns.values():
            columns[col] = field
    if "name" not in columns.values():
        raise InvalidBatchError(
            f"{source}: no name column (expected one of: nombre, material, producto, name)"
        )

    df = df[list(columns)].rename(columns=columns)
    # Skip fully blank spreadsheet rows
    df = df[df["name"].str.strip() != ""]
    return df.to_dict(orient="records")


def load_catalog(path: str | Path, limit: int = 10) -> StaticCatalog:
    """Load a catalog export (JSON list or ``{"data": [...]}``) into memory."""
    path = Path(path)
    data = json.loads(path.read_text(encoding="utf-8"))
    return StaticCatalog(candidates_from_payload(data), limit=limit)


def _flat_record(r: MatchResult) -> dict[str, Any]:
    record = r.to_record()
    position = record.pop("position") or {}
    for key in ("page", "x", "y", "region"):
        record[key] = position.get(key)
    return record


def write_results(report: ReconcileReport, path: str | Path) -> None:
    """Write results to JSON (with summary), JSONL, CSV or Excel."""
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".json":
        body = {
            "results": [r.to_record() for r in report.results],
            "summary": report.summary.to_record(),
        }
        path.write_text(json.dumps(body, indent=2, ensure_ascii=False), encoding="utf-8")
    elif suffix == ".jsonl":
        with path.open("w", encoding="utf-8") as f:
            for r in report.results:
                f.write(json.dumps(r.to_record(), ensure_ascii=False) + "\n")
    else:
        df = results_frame(report.results)
        if suffix == ".xlsx":
            df.to_excel(path, index=False)
        else:
            df.to_csv(path, index=False)


def results_frame(results: tuple[MatchResult, ...] | list[MatchResult]) -> pd.DataFrame:
    return pd.DataFrame([_flat_record(r) for r in results])
