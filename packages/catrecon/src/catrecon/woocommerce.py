"""WooCommerce storefront catalog client."""

from __future__ import annotations

import os
from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from catrecon.adapters import candidates_from_payload
from catrecon.errors import CatalogLookupError
from catrecon.types import CatalogCandidate

log = structlog.get_logger()

_TRANSIENT = (httpx.ConnectError, httpx.ConnectTimeout, httpx.ReadTimeout, httpx.RemoteProtocolError)


class WooCommerceCatalog:
    """CatalogLookupClient backed by the WooCommerce REST API (v3).

    Usage:
        async with WooCommerceCatalog.from_env() as catalog:
            report = await reconcile(items, catalog)
    """

    API_PATH = "/wp-json/wc/v3/products"

    def __init__(
        self,
        base_url: str,
        consumer_key: str,
        consumer_secret: str,
        per_page: int = 10,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.per_page = per_page
        self._auth = (consumer_key, consumer_secret)
        self._timeout = httpx.Timeout(timeout, connect=5.0)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._log = log.bind(catalog="woocommerce", base_url=self.base_url)

    @classmethod
    def from_env(cls, **kwargs: Any) -> WooCommerceCatalog:
        url = os.environ.get("WOO_URL")
        key = os.environ.get("WOO_CONSUMER_KEY")
        secret = os.environ.get("WOO_CONSUMER_SECRET")
        if not (url and key and secret):
            raise RuntimeError(
                "WooCommerce credentials missing. Set WOO_URL, WOO_CONSUMER_KEY "
                "and WOO_CONSUMER_SECRET"
            )
        return cls(url, key, secret, **kwargs)

    async def __aenter__(self) -> WooCommerceCatalog:
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=self._auth,
            timeout=self._timeout,
            transport=self._transport,
            headers={"User-Agent": "catrecon/0.1"},
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise CatalogLookupError(
                "WooCommerceCatalog not initialized. Use 'async with WooCommerceCatalog(...)'"
            )
        return self._client

    async def search_by_code(self, code: str) -> list[CatalogCandidate]:
        """Exact SKU lookup, falling back to a text search for the code."""
        found = await self._products({"sku": code})
        if found:
            return found
        return await self._products({"search": code})

    async def search_by_text(self, query: str) -> list[CatalogCandidate]:
        return await self._products({"search": query})

    async def _products(self, params: dict[str, Any]) -> list[CatalogCandidate]:
        try:
            body = await self._fetch(params)
        except httpx.HTTPStatusError as e:
            raise CatalogLookupError(
                f"catalog returned HTTP {e.response.status_code} for {params}"
            ) from e
        except httpx.HTTPError as e:
            raise CatalogLookupError(f"catalog request failed: {e!r}") from e
        except ValueError as e:
            raise CatalogLookupError("catalog returned a non-JSON body") from e
        candidates = candidates_from_payload(body)
        self._log.debug("catalog_query", params=params, count=len(candidates))
        return candidates

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(_TRANSIENT),
        reraise=True,
    )
    async def _fetch(self, params: dict[str, Any]) -> Any:
        response = await self.client.get(
            self.API_PATH,
            params={**params, "status": "publish", "per_page": self.per_page},
        )
        response.raise_for_status()
        return response.json()
