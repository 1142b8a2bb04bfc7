from __future__ import annotations

from typing import List

from ..schemas import Collection, CollectionItem
from ..sourcing.catalog_fallback import product_from_row
from ..utils import is_uuid
from .errors import NotFoundError


class CollectionService:
    def __init__(self, store):
        self.store = store

    def _user_id(self, auth_id: str) -> str:
        user = self.store.get_user_by_auth_id(auth_id)
        if not user:
            raise NotFoundError("User not found")
        return str(user["id"])

    def list_for_user(self, auth_id: str) -> List[Collection]:
        """Collections with their items and products, default collection first."""
        rows = self.store.list_collections(self._user_id(auth_id))
        items = self.store.list_collection_items([str(c["id"]) for c in rows])
        products = self.store.get_products_for_ids(list({str(i["product_id"]) for i in items}))

        by_collection = {str(c["id"]): [] for c in rows}
        for item in items:
            prod_row = products.get(str(item["product_id"]))
            by_collection.setdefault(str(item["collection_id"]), []).append(CollectionItem(
                id=str(item["id"]),
                collection_id=str(item["collection_id"]),
                product_id=str(item["product_id"]),
                try_on_image_url=item.get("try_on_image_url"),
                added_at=item.get("added_at"),
                product=product_from_row(prod_row) if prod_row else None,
            ))

        return [
            Collection(
                id=str(c["id"]),
                name=c.get("name") or "Untitled",
                is_default=bool(c.get("is_default")),
                created_at=c.get("created_at"),
                items=by_collection[str(c["id"])],
            )
            for c in rows
        ]

    def create(self, auth_id: str, name: str) -> Collection:
        row = self.store.create_collection(self._user_id(auth_id), name, is_default=False)
        return Collection(id=str(row["id"]), name=row["name"], is_default=False, created_at=row.get("created_at"))

    def remove_item(self, auth_id: str, collection_id: str, item_id: str) -> None:
        user_id = self._user_id(auth_id)
        if not (is_uuid(collection_id) and is_uuid(item_id)):
            raise NotFoundError("Collection item not found")
        if not self.store.delete_collection_item(user_id, collection_id, item_id):
            raise NotFoundError("Collection item not found")
