"""Product catalog backed by an HTTP product service."""

from __future__ import annotations

from urllib.parse import quote

import httpx
import structlog

from bargain.catalog.models import Product
from bargain.resilience.retry import resilient_api_call

logger = structlog.get_logger()


class HttpCatalog:
    """``Catalog`` implementation that fetches ``GET {base_url}/products/{sku}``.

    A 404 means the product is unknown; transport errors are retried and
    then propagate so the engine can fall back.

    Args:
        base_url: Root URL of the product service.
        client: Optional pre-built ``httpx.Client`` (tests inject a
            ``MockTransport``-backed one).
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        client: httpx.Client | None = None,
        timeout: float = 5.0,
    ) -> None:
        self._client = client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    def get_product(self, sku: str) -> Product | None:
        data = self._fetch_product(sku)
        if data is None:
            logger.info("catalog_product_not_found", sku=sku)
            return None
        return Product.model_validate(data)

    @resilient_api_call("product_catalog", retry_on=(httpx.TransportError,), max_wait=5)
    def _fetch_product(self, sku: str) -> dict[str, object] | None:
        response = self._client.get(f"/products/{quote(sku, safe='')}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return dict(response.json())

    def close(self) -> None:
        self._client.close()
