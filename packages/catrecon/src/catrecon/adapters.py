"""Boundary adapters: validate extraction payloads, map catalog payloads.

Everything past this module works on the strict types in ``catrecon.types``;
payload shape differences (camelCase vs snake_case keys, records wrapped in
``attributes``, storefront stock spellings) are resolved here only.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from catrecon.errors import InvalidBatchError
from catrecon.types import CandidateItem, CatalogCandidate, Position, StockStatus

log = structlog.get_logger()


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _as_number(v: Any) -> Decimal | None:
    """Parse a loose numeric value; None when it does not read as a finite number."""
    v = _blank_to_none(v)
    if v is None or isinstance(v, bool):
        return None
    try:
        n = Decimal(str(v).strip())
    except InvalidOperation:
        return None
    return n if n.is_finite() else None


class PositionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    page: int = Field(ge=1)
    x: float | None = None
    y: float | None = None
    region: str | None = None

    @field_validator("x", "y", mode="before")
    @classmethod
    def clamp_percent(cls, v: Any) -> Any:
        n = _as_number(v)
        if n is None:
            return None
        return float(min(max(n, Decimal(0)), Decimal(100)))

    @field_validator("region", mode="before")
    @classmethod
    def region_text(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        return None if v is None else str(v)

    def to_position(self) -> Position:
        return Position(page=self.page, x=self.x, y=self.y, region=self.region)


class ItemPayload(BaseModel):
    """One candidate item as sent by the extraction step.

    Only ``name`` is required. Unreadable optional fields are repaired or
    dropped instead of failing the batch.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)

    name: str = Field(min_length=1)
    quantity: int = 1
    code: str | None = None
    declared_price: Decimal | None = Field(default=None, alias="declaredPrice")
    subject: str | None = None
    position: PositionPayload | None = None

    @field_validator("name", mode="before")
    @classmethod
    def name_as_text(cls, v: Any) -> Any:
        if isinstance(v, (int, float, Decimal)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("quantity", mode="before")
    @classmethod
    def default_quantity(cls, v: Any) -> int:
        # Missing, unreadable or non-positive quantities count as one unit
        n = _as_number(v)
        q = int(n) if n is not None else 0
        return q if q >= 1 else 1

    @field_validator("code", mode="before")
    @classmethod
    def code_as_text(cls, v: Any) -> Any:
        # Spreadsheets hand ISBNs over as numbers
        if isinstance(v, bool):
            return None
        if isinstance(v, int):
            return str(v)
        if isinstance(v, float) and v.is_integer():
            return str(int(v))
        v = _blank_to_none(v)
        return None if v is None else str(v)

    @field_validator("declared_price", mode="before")
    @classmethod
    def price_or_none(cls, v: Any) -> Decimal | None:
        n = _as_number(v)
        if n is None or n < 0:
            return None
        return n

    @field_validator("subject", mode="before")
    @classmethod
    def subject_text(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        return None if v is None else str(v)

    @field_validator("position", mode="before")
    @classmethod
    def position_or_none(cls, v: Any) -> PositionPayload | None:
        if isinstance(v, PositionPayload):
            return v
        if not isinstance(v, Mapping):
            return None
        try:
            return PositionPayload.model_validate(v)
        except ValidationError:
            return None

    def to_item(self) -> CandidateItem:
        return CandidateItem(
            name=self.name,
            quantity=self.quantity,
            code=self.code,
            declared_price=self.declared_price,
            subject=self.subject,
            position=self.position.to_position() if self.position else None,
        )


def parse_items(payload: Any) -> list[CandidateItem]:
    """Validate a whole batch of candidate items.

    Accepts ``CandidateItem`` instances or mappings following the input
    contract. Only a non-mapping entry or a missing/blank ``name`` is fatal;
    ``InvalidBatchError`` then lists every offending item and nothing is
    returned for the partially valid batch.
    """
    if isinstance(payload, (str, bytes, Mapping)) or not isinstance(payload, Sequence):
        raise InvalidBatchError(
            f"candidate items must be a sequence, got {type(payload).__name__}"
        )

    items: list[CandidateItem] = []
    errors: list[str] = []
    for i, raw in enumerate(payload):
        if isinstance(raw, CandidateItem):
            if not raw.name or not raw.name.strip():
                errors.append(f"item {i}: name is required")
            items.append(raw)
            continue
        if not isinstance(raw, Mapping):
            errors.append(f"item {i}: expected a mapping, got {type(raw).__name__}")
            continue
        try:
            items.append(ItemPayload.model_validate(dict(raw)).to_item())
        except ValidationError as e:
            for err in e.errors():
                field = ".".join(str(p) for p in err["loc"]) or "item"
                errors.append(f"item {i}: {field}: {err['msg']}")

    if errors:
        raise InvalidBatchError("invalid candidate items", errors)
    return items


_EXTRACTION_KEYS = {
    "nombre": "name",
    "cantidad": "quantity",
    "isbn": "code",
    "precio": "declaredPrice",
    "asignatura": "subject",
}


def item_from_extraction(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Map a document-extraction record onto the input contract.

    The extraction model reports positions as ``pagina`` plus
    ``posicion_x_porcentaje``/``posicion_y_porcentaje``.
    """
    out: dict[str, Any] = {}
    for key, value in raw.items():
        out[_EXTRACTION_KEYS.get(key, key)] = value

    page = raw.get("pagina")
    if page is not None and "position" not in raw:
        out["position"] = {
            "page": page,
            "x": raw.get("posicion_x_porcentaje"),
            "y": raw.get("posicion_y_porcentaje"),
            "region": raw.get("region"),
        }
    return out


_STOCK_STATUS: dict[str, StockStatus] = {
    "instock": StockStatus.IN_STOCK,
    "in_stock": StockStatus.IN_STOCK,
    "outofstock": StockStatus.OUT_OF_STOCK,
    "out_of_stock": StockStatus.OUT_OF_STOCK,
    "onbackorder": StockStatus.ON_BACKORDER,
    "on_backorder": StockStatus.ON_BACKORDER,
}


def _media_url(media: Any) -> str | None:
    """Pull a URL out of a media field ({"src"}, {"url"} or {"data": {"attributes": {"url"}}})."""
    if isinstance(media, str):
        return media or None
    if not isinstance(media, Mapping):
        return None
    if media.get("src") or media.get("url"):
        return media.get("src") or media.get("url")
    data = media.get("data")
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, Mapping):
        return _media_url(data.get("attributes") or data)
    return None


class CatalogPayload(BaseModel):
    """A catalog product, flat (storefront) or wrapped in ``attributes`` (content backend)."""

    model_config = ConfigDict(extra="ignore")

    id: int | str
    code: str = Field(default="", validation_alias=AliasChoices("sku", "code", "isbn_libro"))
    name: str = Field(default="", validation_alias=AliasChoices("name", "nombre_libro"))
    price: Decimal = Field(
        default=Decimal("0"), validation_alias=AliasChoices("price", "precio", "precio_venta")
    )
    stock_quantity: int | None = None
    stock_managed: bool | None = Field(
        default=None, validation_alias=AliasChoices("manage_stock", "stock_managed")
    )
    stock_status: StockStatus | None = None
    images: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def unwrap(cls, data: Any, info: ValidationInfo) -> Any:
        if not isinstance(data, Mapping):
            return data
        if isinstance(data.get("attributes"), Mapping):
            merged = dict(data["attributes"])
            merged.setdefault("id", data.get("id"))
            data = merged
        else:
            data = dict(data)

        base = (info.context or {}).get("media_base_url")
        urls: list[str] = []
        raw_images = data.get("images")
        if isinstance(raw_images, list):
            urls.extend(u for u in (_media_url(m) for m in raw_images) if u)
        cover = _media_url(data.get("portada_libro"))
        if cover:
            urls.append(cover)
        if base:
            urls = [u if u.startswith("http") else base.rstrip("/") + "/" + u.lstrip("/") for u in urls]
        data["images"] = urls
        return data

    @field_validator("code", "name", mode="before")
    @classmethod
    def text(cls, v: Any) -> Any:
        if v is None:
            return ""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("price", mode="before")
    @classmethod
    def price_or_zero(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        return Decimal("0") if v is None else v

    @field_validator("stock_quantity", mode="before")
    @classmethod
    def blank_quantity(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("stock_status", mode="before")
    @classmethod
    def stock_spelling(cls, v: Any) -> Any:
        if isinstance(v, str):
            return _STOCK_STATUS.get(v.strip().lower())
        return v

    def to_candidate(self) -> CatalogCandidate:
        managed = self.stock_managed if self.stock_managed is not None else self.stock_quantity is not None
        status = self.stock_status
        if status is None:
            in_stock = not managed or (self.stock_quantity or 0) > 0
            status = StockStatus.IN_STOCK if in_stock else StockStatus.OUT_OF_STOCK
        return CatalogCandidate(
            id=self.id,
            code=self.code.strip(),
            name=self.name.strip(),
            price=self.price,
            stock_quantity=self.stock_quantity,
            stock_managed=managed,
            stock_status=status,
            images=tuple(self.images),
        )


def candidate_from_payload(raw: Mapping[str, Any], media_base_url: str | None = None) -> CatalogCandidate:
    """Map one catalog record. Raises ``pydantic.ValidationError`` on garbage."""
    context = {"media_base_url": media_base_url} if media_base_url else None
    return CatalogPayload.model_validate(raw, context=context).to_candidate()


def candidates_from_payload(
    raw: Any, media_base_url: str | None = None
) -> list[CatalogCandidate]:
    """Map a catalog response body, skipping records that do not validate.

    Accepts a bare list, a single record, or a ``{"data": ...}`` envelope.
    """
    if isinstance(raw, Mapping) and "data" in raw:
        raw = raw["data"]
    if raw is None:
        return []
    if isinstance(raw, Mapping):
        raw = [raw]

    candidates: list[CatalogCandidate] = []
    for record in raw:
        try:
            candidates.append(candidate_from_payload(record, media_base_url))
        except ValidationError as e:
            log.warning("catalog_record_skipped", error_count=e.error_count(), errors=e.errors()[:3])
    return candidates
