from app.sourcing.catalog_fallback import CatalogFallback, product_from_row


class TestCatalogSearch:

    def test_text_match(self, seeded_store):
        products = CatalogFallback(seeded_store).search("northside", 10)
        assert sorted(p.name for p in products) == ["Black Denim Jacket", "Wool Coat"]

    def test_description_match(self, seeded_store):
        products = CatalogFallback(seeded_store).search("hand-rolled", 10)
        assert [p.name for p in products] == ["Silk Scarf"]

    def test_no_match_uses_trending(self, seeded_store):
        products = CatalogFallback(seeded_store).search("tuxedo", 10)
        assert sorted(p.name for p in products) == ["Red Midi Dress", "White Sneakers"]
        assert all(p.trending for p in products)

    def test_no_trending_uses_random(self, store):
        store.add_catalog_product(name="Plain Tee")
        store.add_catalog_product(name="Plain Socks")
        products = CatalogFallback(store).search("tuxedo", 1)
        assert len(products) == 1

    def test_blank_query_skips_text_match(self, seeded_store):
        products = CatalogFallback(seeded_store).search("   ", 10)
        assert all(p.trending for p in products)

    def test_empty_catalog(self, store):
        assert CatalogFallback(store).search("anything", 15) == []

    def test_products_are_internal(self, seeded_store):
        products = CatalogFallback(seeded_store).search("dress", 15)
        assert products and not any(p.is_external for p in products)


class TestCatalogBrowse:

    def test_flagged(self, seeded_store):
        products = CatalogFallback(seeded_store).browse("new", 5)
        assert [p.name for p in products] == ["Black Denim Jacket"]

    def test_unflagged_filter_is_random(self, seeded_store):
        products = CatalogFallback(seeded_store).browse("random", 3)
        assert len(products) == 3

    def test_empty_flag_uses_random(self, store):
        store.add_catalog_product(name="Plain Tee")
        products = CatalogFallback(store).browse("editorial", 5)
        assert [p.name for p in products] == ["Plain Tee"]


def test_product_from_row_defaults():
    product = product_from_row({"id": 7, "price": "12.50", "image_url": None, "product_url": None})
    assert product.id == "7"
    assert product.price == 12.5
    assert product.name == "Product"
    assert product.brand == "Unknown"
    assert product.currency == "USD"
    assert product.image_url == ""
    assert product.product_url == "#"
    assert product.is_external is False
