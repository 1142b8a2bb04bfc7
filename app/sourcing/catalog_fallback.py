from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..schemas import Product

logger = logging.getLogger(__name__)

BROWSE_FILTERS = ("trending", "new", "editorial", "random")


def product_from_row(row: Dict[str, Any]) -> Product:
    """Map a products table row to the API Product shape."""
    price = row.get("price")
    return Product(
        id=str(row["id"]),
        external_id=row.get("external_id"),
        name=row.get("name") or "Product",
        brand=row.get("brand") or "Unknown",
        price=float(price) if price is not None else 0.0,
        currency=row.get("currency") or "USD",
        retailer=row.get("retailer") or "Unknown",
        category=row.get("category") or "search",
        subcategory=row.get("subcategory"),
        image_url=row.get("image_url") or "",
        product_url=row.get("product_url") or "#",
        description=row.get("description"),
        available_sizes=row.get("available_sizes"),
        colors=row.get("colors"),
        in_stock=bool(row.get("in_stock", True)),
        trending=bool(row.get("trending")),
        is_new=bool(row.get("is_new")),
        is_editorial=bool(row.get("is_editorial")),
        is_external=False,
    )


class CatalogFallback:
    """Internal product catalog used when the shopping provider is unavailable"""

    def __init__(self, store):
        self.store = store

    def search(self, query: Optional[str], count: int) -> List[Product]:
        term = (query or "").strip()
        rows: List[Dict[str, Any]] = []

        if term:
            rows = self.store.search_products(term, count)
        if not rows:
            rows = self.store.get_flagged_products("trending", count)
        if not rows:
            logger.info("No matching products, returning random products")
            rows = self.store.get_random_products(count)

        logger.info(f"Returning {len(rows)} internal products for query={term!r}")
        return [product_from_row(r) for r in rows]

    def browse(self, filter_name: Optional[str], count: int) -> List[Product]:
        rows: List[Dict[str, Any]] = []
        if filter_name in ("trending", "new", "editorial"):
            rows = self.store.get_flagged_products(filter_name, count)
        if not rows:
            rows = self.store.get_random_products(count)
        return [product_from_row(r) for r in rows]
