"""Tests for the HTTP product catalog using httpx.MockTransport."""

from __future__ import annotations

from decimal import Decimal

import httpx
import pytest

from bargain.catalog.http import HttpCatalog


def _catalog(handler: httpx.MockTransport) -> HttpCatalog:
    client = httpx.Client(base_url="http://catalog.test", transport=handler)
    return HttpCatalog("http://catalog.test", client=client)


@pytest.fixture(autouse=True)
def _no_retry_wait(monkeypatch: pytest.MonkeyPatch) -> None:
    retrying = HttpCatalog._fetch_product.retry  # type: ignore[attr-defined]
    monkeypatch.setattr(retrying, "sleep", lambda _: None)


class TestHttpCatalog:
    """GET /products/{sku}."""

    def test_product_found(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/products/HEADSET-PRO"
            return httpx.Response(
                200,
                json={
                    "sku": "HEADSET-PRO",
                    "name": "Headset Pro",
                    "price": 45000.5,
                    "stock_level": 3,
                },
            )

        product = _catalog(httpx.MockTransport(handler)).get_product("HEADSET-PRO")

        assert product is not None
        assert product.price == Decimal("45000.5")
        assert product.stock_level == 3

    def test_not_found_is_none(self) -> None:
        catalog = _catalog(httpx.MockTransport(lambda request: httpx.Response(404)))
        assert catalog.get_product("NOPE") is None

    def test_sku_is_escaped_into_one_path_segment(self) -> None:
        seen: list[bytes] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.raw_path)
            return httpx.Response(404)

        _catalog(httpx.MockTransport(handler)).get_product("CASE/BLUE?x#1")

        assert seen == [b"/products/CASE%2FBLUE%3Fx%231"]

    def test_server_error_raises_without_retry(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(500)

        with pytest.raises(httpx.HTTPStatusError):
            _catalog(httpx.MockTransport(handler)).get_product("X")
        assert calls == 1

    def test_transport_errors_are_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json={"sku": "X", "name": "X", "price": "10"})

        product = _catalog(httpx.MockTransport(handler)).get_product("X")

        assert product is not None
        assert calls == 3

    def test_gives_up_after_three_attempts(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(httpx.ConnectError):
            _catalog(httpx.MockTransport(handler)).get_product("X")
