"""
Pytest configuration and shared fixtures.

FakeStore mirrors the PostgresClient methods the services call, backed by
plain dicts, so API and gateway tests run without a database.
"""
import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from app.auth import AuthUser, require_user
from app.connectors.postgres import PRODUCT_FLAGS
from app.main import app, get_store, settings


class FakeStore:
    def __init__(self):
        self.products: Dict[str, Dict[str, Any]] = {}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.photos: Dict[str, Dict[str, Any]] = {}
        self.swipes: List[Dict[str, Any]] = []
        self.collections: Dict[str, Dict[str, Any]] = {}
        self.collection_items: Dict[str, Dict[str, Any]] = {}
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _now(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    # Catalog
    def add_catalog_product(self, **fields) -> Dict[str, Any]:
        row = {
            "id": str(uuid.uuid4()),
            "external_id": None,
            "name": "Linen Shirt",
            "brand": "Acme",
            "price": "49.00",
            "currency": "USD",
            "retailer": "Acme Store",
            "category": "tops",
            "subcategory": None,
            "image_url": "https://img.example.com/shirt.jpg",
            "product_url": "https://acme.example.com/shirt",
            "description": None,
            "available_sizes": None,
            "colors": None,
            "in_stock": True,
            "trending": False,
            "is_new": False,
            "is_editorial": False,
        }
        row.update(fields)
        self.products[row["id"]] = row
        return row

    def get_product(self, product_id):
        return self.products.get(product_id)

    def search_products(self, term, limit):
        t = term.lower()
        rows = [
            p for p in self.products.values()
            if any(t in (p.get(k) or "").lower() for k in ("name", "brand", "category", "description"))
        ]
        return rows[:limit]

    def get_flagged_products(self, flag, limit):
        column = PRODUCT_FLAGS[flag]
        return [p for p in self.products.values() if p.get(column)][:limit]

    def get_random_products(self, limit):
        rows = list(self.products.values())
        return random.sample(rows, min(limit, len(rows)))

    def find_product_by_external_id(self, external_id):
        for p in self.products.values():
            if p.get("external_id") == external_id:
                return p
        return None

    def insert_product(self, values):
        row = dict(values, id=str(uuid.uuid4()))
        self.products[row["id"]] = row
        return row["id"]

    # Users and photos
    def get_user_by_auth_id(self, auth_id):
        for u in self.users.values():
            if u["auth_id"] == auth_id:
                return dict(u)
        return None

    def create_user(self, auth_id, email, name, preferences):
        row = {
            "id": str(uuid.uuid4()),
            "auth_id": auth_id,
            "email": email,
            "name": name,
            "preferences": preferences,
            "primary_photo_id": None,
            "created_at": self._now(),
        }
        self.users[row["id"]] = row
        return dict(row)

    def update_user(self, user_id, name, preferences):
        self.users[user_id].update(name=name, preferences=preferences)
        return dict(self.users[user_id])

    def list_photos(self, user_id):
        rows = [dict(p) for p in self.photos.values() if p["user_id"] == user_id]
        return sorted(rows, key=lambda p: p["uploaded_at"])

    def get_photo(self, user_id, photo_id):
        p = self.photos.get(photo_id)
        return dict(p) if p and p["user_id"] == user_id else None

    def add_photo(self, user_id, url):
        row = {"id": str(uuid.uuid4()), "user_id": user_id, "url": url, "is_primary": False,
               "uploaded_at": self._now()}
        self.photos[row["id"]] = row
        return dict(row)

    def update_photo_url(self, user_id, photo_id, url):
        p = self.photos.get(photo_id)
        if not p or p["user_id"] != user_id:
            return None
        p["url"] = url
        return dict(p)

    def delete_photo(self, user_id, photo_id):
        p = self.photos.get(photo_id)
        if not p or p["user_id"] != user_id:
            return 0
        del self.photos[photo_id]
        if self.users[user_id]["primary_photo_id"] == photo_id:
            self.users[user_id]["primary_photo_id"] = None
        return 1

    def set_primary_photo(self, user_id, photo_id):
        for p in self.photos.values():
            if p["user_id"] == user_id:
                p["is_primary"] = p["id"] == photo_id
        self.users[user_id]["primary_photo_id"] = photo_id

    # Swipes
    def insert_swipe(self, user_id, product_id, direction, session_id, card_position):
        row = {"id": str(uuid.uuid4()), "user_id": user_id, "product_id": product_id,
               "direction": direction, "session_id": session_id, "card_position": card_position,
               "swiped_at": self._now()}
        self.swipes.append(row)
        return dict(row)

    def list_swipes(self, user_id):
        rows = [dict(s) for s in self.swipes if s["user_id"] == user_id]
        return sorted(rows, key=lambda s: s["swiped_at"], reverse=True)

    def get_products_for_ids(self, product_ids):
        return {pid: self.products[pid] for pid in product_ids if pid in self.products}

    # Collections
    def get_default_collection(self, user_id):
        for c in self.collections.values():
            if c["user_id"] == user_id and c["is_default"]:
                return dict(c)
        return None

    def create_collection(self, user_id, name, is_default=False):
        row = {"id": str(uuid.uuid4()), "user_id": user_id, "name": name, "is_default": is_default,
               "created_at": self._now()}
        self.collections[row["id"]] = row
        return dict(row)

    def list_collections(self, user_id):
        rows = [dict(c) for c in self.collections.values() if c["user_id"] == user_id]
        return sorted(rows, key=lambda c: (not c["is_default"], c["created_at"]))

    def list_collection_items(self, collection_ids):
        rows = [dict(i) for i in self.collection_items.values() if i["collection_id"] in collection_ids]
        return sorted(rows, key=lambda i: i["added_at"], reverse=True)

    def get_collection_item(self, collection_id, product_id):
        for i in self.collection_items.values():
            if i["collection_id"] == collection_id and i["product_id"] == product_id:
                return dict(i)
        return None

    def insert_collection_item(self, collection_id, product_id, try_on_image_url):
        if self.get_collection_item(collection_id, product_id):
            return None
        row = {"id": str(uuid.uuid4()), "collection_id": collection_id, "product_id": product_id,
               "try_on_image_url": try_on_image_url, "added_at": self._now()}
        self.collection_items[row["id"]] = row
        return dict(row)

    def set_collection_item_try_on(self, item_id, try_on_image_url):
        self.collection_items[item_id]["try_on_image_url"] = try_on_image_url

    def delete_collection_item(self, user_id, collection_id, item_id):
        item = self.collection_items.get(item_id)
        coll = self.collections.get(collection_id)
        if not item or not coll or coll["user_id"] != user_id or item["collection_id"] != collection_id:
            return 0
        del self.collection_items[item_id]
        return 1

    # Test helpers
    def items_for(self, user_id) -> List[Dict[str, Any]]:
        coll = self.get_default_collection(user_id)
        if not coll:
            return []
        return [i for i in self.collection_items.values() if i["collection_id"] == coll["id"]]


# ============================================================================
# Fixtures
# ============================================================================

AUTH_USER = AuthUser(id="auth|user-001", email="ada@example.com", name="Ada Lovelace")


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def seeded_store(store: FakeStore) -> FakeStore:
    store.add_catalog_product(name="Red Midi Dress", brand="Rouge", category="dresses", trending=True)
    store.add_catalog_product(name="Black Denim Jacket", brand="Northside", category="outerwear", is_new=True)
    store.add_catalog_product(name="Silk Scarf", brand="Maison Lune", category="accessories",
                              description="hand-rolled silk", is_editorial=True)
    store.add_catalog_product(name="White Sneakers", brand="Stride", category="shoes", trending=True)
    store.add_catalog_product(name="Wool Coat", brand="Northside", category="outerwear")
    return store


@pytest.fixture
def auth_user() -> AuthUser:
    return AUTH_USER


@pytest.fixture
def registered_user(store: FakeStore, auth_user: AuthUser) -> Dict[str, Any]:
    user = store.create_user(auth_user.id, auth_user.email, auth_user.name, None)
    return user


@pytest.fixture
def client(store: FakeStore, auth_user: AuthUser, monkeypatch):
    monkeypatch.setattr(settings, "serpapi_api_key", None)
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[require_user] = lambda: auth_user
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anon_client(store: FakeStore):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def seen_user_id(store: FakeStore, auth_id: str = AUTH_USER.id) -> Optional[str]:
    user = store.get_user_by_auth_id(auth_id)
    return user["id"] if user else None
