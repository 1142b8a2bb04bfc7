"""
Tests for the shopping search adapter: provider results, image backfill
cascade and internal catalog fallback.
"""
import asyncio

import httpx
import pytest

from app.settings import Settings
from app.sourcing.catalog_fallback import CatalogFallback
from app.sourcing.product_source import ProductSource

RETAILER_PAGE = "https://shop.example.com/p/42"


def make_settings(**overrides) -> Settings:
    values = {"serpapi_api_key": "test-key", "http_timeout": 5.0}
    values.update(overrides)
    return Settings(**values)


def make_handler(results, detail=None, page_html=None, search_status=200):
    """MockTransport handler emulating SerpAPI + one retailer page."""
    calls = {"search": 0, "detail": 0, "page": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "serpapi.com":
            engine = request.url.params.get("engine")
            if engine == "google_shopping_light":
                calls["search"] += 1
                if search_status != 200:
                    return httpx.Response(search_status, text="quota exceeded")
                return httpx.Response(200, json={"shopping_results": results})
            if engine == "google_shopping_product":
                calls["detail"] += 1
                if detail is None:
                    return httpx.Response(500, text="error")
                return httpx.Response(200, json=detail)
        if request.url.host == "shop.example.com":
            calls["page"] += 1
            if page_html is None:
                return httpx.Response(404)
            return httpx.Response(200, text=page_html)
        return httpx.Response(404)

    return handler, calls


def run_search(store, handler, query="linen shirt", count=15, **settings_overrides):
    source = ProductSource(
        CatalogFallback(store),
        make_settings(**settings_overrides),
        transport=httpx.MockTransport(handler),
    )
    return asyncio.run(source.search(query, count))


class TestProviderResults:

    def test_thumbnail_used_directly(self, store):
        results = [{
            "position": 1,
            "title": "Linen Shirt",
            "source": "Zara",
            "price": "$39.90",
            "extracted_price": 39.9,
            "thumbnail": "https://img.example.com/linen.jpg",
            "product_id": "111",
            "link": "https://www.google.com/shopping/product/111",
            "product_link": RETAILER_PAGE,
        }]
        handler, calls = make_handler(results)
        result = run_search(store, handler)

        assert result.source == "serpapi"
        assert result.fallback is False
        [product] = result.products
        assert product.image_url == "https://img.example.com/linen.jpg"
        assert product.price == 39.9
        assert product.currency == "USD"
        assert product.product_url == RETAILER_PAGE
        assert product.brand == "Zara"
        assert product.retailer == "Zara"
        assert product.external_id == "111"
        assert product.is_external is True
        assert product.id.startswith("serp-111-")
        assert calls["detail"] == 0
        assert calls["page"] == 0

    def test_identifiers_are_unique_across_calls(self, store):
        results = [{"title": "Tee", "product_id": "7", "thumbnail": "https://img.example.com/t.jpg"}]
        handler, _ = make_handler(results)
        first = run_search(store, handler).products[0].id
        second = run_search(store, handler).products[0].id
        assert first != second

    def test_respects_count(self, store):
        results = [{"title": f"Item {i}", "thumbnail": f"https://img.example.com/{i}.jpg"} for i in range(10)]
        handler, _ = make_handler(results)
        result = run_search(store, handler, count=3)
        assert [p.name for p in result.products] == ["Item 0", "Item 1", "Item 2"]

    def test_position_used_when_no_product_id(self, store):
        results = [{"title": "Tee", "position": 4, "thumbnail": "https://img.example.com/t.jpg"}]
        handler, _ = make_handler(results)
        assert run_search(store, handler).products[0].id.startswith("serp-4-")


class TestImageCascade:

    def test_product_detail_lookup(self, store):
        results = [{"title": "Coat", "product_id": "222", "product_link": RETAILER_PAGE}]
        detail = {"product_results": {}, "images": [{"link": "https://img.example.com/coat-large.jpg"}]}
        handler, calls = make_handler(results, detail=detail)

        product = run_search(store, handler).products[0]
        assert product.image_url == "https://img.example.com/coat-large.jpg"
        assert calls["detail"] == 1
        assert calls["page"] == 0

    def test_product_photos_string_entries(self, store):
        results = [{"title": "Coat", "product_id": "223"}]
        detail = {"product_photos": ["https://img.example.com/p.jpg"]}
        handler, _ = make_handler(results, detail=detail)
        assert run_search(store, handler).products[0].image_url == "https://img.example.com/p.jpg"

    def test_og_image_after_detail_failure(self, store):
        results = [{"title": "Boots", "product_id": "333", "product_link": RETAILER_PAGE}]
        html = '<html><head><meta property="og:image" content="/media/boots.jpg"></head></html>'
        handler, calls = make_handler(results, detail=None, page_html=html)

        product = run_search(store, handler).products[0]
        assert product.image_url == "https://shop.example.com/media/boots.jpg"
        assert calls["detail"] == 1
        assert calls["page"] == 1

    def test_all_strategies_fail_leaves_empty_string(self, store):
        results = [{"title": "Mystery", "product_id": "444", "product_link": RETAILER_PAGE}]
        handler, _ = make_handler(results, detail={"images": []}, page_html="<html></html>")

        product = run_search(store, handler).products[0]
        assert product.image_url == ""

    def test_bad_record_does_not_break_the_batch(self, store):
        results = [
            "not-a-record",
            {"title": "Good", "thumbnail": "https://img.example.com/good.jpg"},
        ]
        handler, _ = make_handler(results)
        products = run_search(store, handler).products

        assert len(products) == 2
        assert products[0].name == "Product"
        assert products[0].image_url == ""
        assert products[0].product_url == "#"
        assert products[1].image_url == "https://img.example.com/good.jpg"
        assert all(isinstance(p.image_url, str) for p in products)


class TestFallback:

    def test_no_api_key_uses_internal_catalog(self, seeded_store):
        def handler(request):
            raise AssertionError("provider must not be called without a key")

        result = run_search(seeded_store, handler, query="trending fashion apparel", count=15,
                            serpapi_api_key=None)
        assert result.source == "internal"
        assert result.fallback is True
        assert 0 < len(result.products) <= 15
        assert all(not p.is_external for p in result.products)

    @pytest.mark.parametrize("status", [401, 429, 500, 503])
    def test_provider_http_error_falls_back(self, seeded_store, status):
        handler, calls = make_handler([], search_status=status)
        result = run_search(seeded_store, handler, query="dress")

        assert calls["search"] == 1
        assert result.source == "internal"
        assert result.fallback is True
        assert [p.name for p in result.products] == ["Red Midi Dress"]

    def test_provider_exception_falls_back(self, seeded_store):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        result = run_search(seeded_store, handler, query="coat")
        assert result.source == "internal"
        assert [p.name for p in result.products] == ["Wool Coat"]

    def test_invalid_json_falls_back(self, seeded_store):
        result = run_search(seeded_store, lambda r: httpx.Response(200, text="<html>oops</html>"), query="coat")
        assert result.source == "internal"

    def test_browse_without_key_uses_flags(self, seeded_store):
        source = ProductSource(CatalogFallback(seeded_store), make_settings(serpapi_api_key=None))
        products = asyncio.run(source.browse("editorial", 5))
        assert [p.name for p in products] == ["Silk Scarf"]
