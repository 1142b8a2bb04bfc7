from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from ..schemas import Product, SwipeRecord, SwipeRequest
from ..sourcing.catalog_fallback import product_from_row
from ..utils import ensure_session_id, is_uuid
from .errors import InvalidRequestError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION_NAME = "Likes"


def price_to_decimal_str(price: Any) -> str:
    try:
        value = Decimal(str(price))
    except (InvalidOperation, ValueError, TypeError):
        return "0.00"
    if not value.is_finite():
        return "0.00"
    return str(value.quantize(Decimal("0.01")))


def snapshot_to_row(product: Product, external_id: str) -> Dict[str, Any]:
    return {
        "external_id": external_id,
        "name": product.name or "Product",
        "brand": product.brand or "Unknown",
        "price": price_to_decimal_str(product.price),
        "currency": product.currency or "USD",
        "retailer": product.retailer or "Unknown",
        "category": product.category or "search",
        "subcategory": product.subcategory,
        "image_url": product.image_url or "",
        "product_url": product.product_url or "#",
        "description": product.description,
        "available_sizes": product.available_sizes,
        "colors": product.colors,
        "in_stock": product.in_stock,
        "trending": False,
        "is_new": False,
        "is_editorial": False,
    }


def get_or_create_default_collection(store, user_id: str) -> Dict[str, Any]:
    collection = store.get_default_collection(user_id)
    if collection:
        return collection
    logger.info(f"Creating default collection for user {user_id}")
    return store.create_collection(user_id, DEFAULT_COLLECTION_NAME, is_default=True)


class SwipeGateway:
    """Records swipe events and keeps the default "Likes" collection in sync"""

    def __init__(self, store):
        self.store = store

    def _require_user(self, auth_id: str) -> Dict[str, Any]:
        user = self.store.get_user_by_auth_id(auth_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def resolve_product_id(self, request: SwipeRequest) -> str:
        """Map the swiped id to a catalog UUID, inserting external products on first sight."""
        if is_uuid(request.product_id):
            return request.product_id

        snapshot = request.product
        external_id = (snapshot.external_id if snapshot and snapshot.external_id else None) or request.product_id
        existing = self.store.find_product_by_external_id(external_id)
        if existing:
            return str(existing["id"])

        if snapshot is None:
            raise InvalidRequestError("Product details are required for external products")

        product_id = self.store.insert_product(snapshot_to_row(snapshot, external_id))
        logger.info(f"Upserted external product {external_id} as {product_id}")
        return product_id

    def record(self, auth_id: str, request: SwipeRequest) -> None:
        user = self._require_user(auth_id)
        user_id = str(user["id"])
        session_id = ensure_session_id(request.session_id)
        product_id = self.resolve_product_id(request)

        self.store.insert_swipe(user_id, product_id, request.direction, session_id, request.card_position)

        if request.direction == "right":
            self._add_to_likes(user_id, product_id, request.try_on_image_url)

    def _add_to_likes(self, user_id: str, product_id: str, try_on_image_url: Optional[str]) -> None:
        collection = get_or_create_default_collection(self.store, user_id)
        collection_id = str(collection["id"])

        existing = self.store.get_collection_item(collection_id, product_id)
        if not existing:
            self.store.insert_collection_item(collection_id, product_id, try_on_image_url or None)
        elif try_on_image_url and not existing.get("try_on_image_url"):
            self.store.set_collection_item_try_on(str(existing["id"]), try_on_image_url)

    def history(self, auth_id: str) -> List[SwipeRecord]:
        user = self._require_user(auth_id)
        rows = self.store.list_swipes(str(user["id"]))
        products = self.store.get_products_for_ids(list({str(r["product_id"]) for r in rows}))
        out = []
        for r in rows:
            prod_row = products.get(str(r["product_id"]))
            out.append(SwipeRecord(
                id=str(r["id"]),
                user_id=str(r["user_id"]),
                product_id=str(r["product_id"]),
                direction=r["direction"],
                session_id=str(r["session_id"]),
                card_position=r.get("card_position") or 0,
                swiped_at=r.get("swiped_at"),
                product=product_from_row(prod_row) if prod_row else None,
            ))
        return out
