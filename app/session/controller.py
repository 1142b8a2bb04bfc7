"""
Client-side swipe session state machine.

One SwipeSession per browsing session. It owns the card deck, the position in
it, the left-swipe streak and the try-on cache, and talks to the API through a
SessionBackend (ApiSessionBackend over HTTP, or a fake in tests).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Set

import httpx

from ..schemas import Photo, Product, SearchResponse, SwipeRequest, TryOnResponse
from ..utils import new_session_id

logger = logging.getLogger(__name__)

DIRECTIONS = ("left", "right", "up")


class SessionBackend(Protocol):
    async def fetch_products(self, query: str, count: int) -> List[Product]: ...

    async def record_swipe(self, payload: SwipeRequest) -> None: ...

    async def fetch_user_photo(self) -> Optional[str]: ...

    async def generate_try_on(self, product: Product, user_photo_url: str) -> Optional[str]: ...


@dataclass
class SwipeOutcome:
    product: Product
    direction: str
    card_position: int
    refine_prompt: bool = False
    persisted: bool = True


class SwipeSession:
    def __init__(
        self,
        backend: SessionBackend,
        default_query: str = "trending fashion apparel",
        batch_size: int = 15,
        refine_threshold: int = 15,
        low_water_mark: int = 5,
    ):
        self.backend = backend
        self.default_query = default_query
        self.batch_size = batch_size
        self.refine_threshold = refine_threshold
        self.low_water_mark = low_water_mark

        self.products: List[Product] = []
        self.current_index = 0
        self.session_id: Optional[str] = None
        self.consecutive_left_swipes = 0
        self.try_on_cache: Dict[str, str] = {}
        self.in_flight_try_ons: Set[str] = set()
        self.query = default_query
        self.user_photo_url: Optional[str] = None

        # Bumped by every load; responses from an older generation are dropped
        self._generation = 0
        self._batch_pending = False

    @property
    def current_product(self) -> Optional[Product]:
        if self.current_index < len(self.products):
            return self.products[self.current_index]
        return None

    @property
    def remaining(self) -> int:
        return max(len(self.products) - self.current_index, 0)

    @property
    def is_exhausted(self) -> bool:
        return self.current_index >= len(self.products)

    @property
    def has_photo(self) -> bool:
        return bool(self.user_photo_url)

    async def start(self, query: Optional[str] = None) -> bool:
        self.session_id = new_session_id()
        self.consecutive_left_swipes = 0
        try:
            self.user_photo_url = await self.backend.fetch_user_photo()
        except Exception as e:
            logger.error(f"Failed to fetch user photo: {e}")
            self.user_photo_url = None
        return await self.load(query)

    async def reload(self, query: Optional[str] = None) -> bool:
        """Manual reload from the terminal state; keeps the session id."""
        if self.session_id is None:
            return await self.start(query)
        return await self.load(query)

    async def load(self, query: Optional[str] = None) -> bool:
        """Replace the deck with a fresh batch. Returns False if the response was dropped."""
        text = (query or "").strip()
        self.query = text or self.default_query
        self._generation += 1
        generation = self._generation

        try:
            products = await self.backend.fetch_products(self.query, self.batch_size)
        except Exception as e:
            logger.error(f"Failed to load products: {e}")
            return False

        if generation != self._generation:
            logger.info(f"Discarding stale product batch for q={self.query!r}")
            return False

        self.products = list(products)
        self.current_index = 0
        self.try_on_cache = {}
        return True

    async def swipe(self, direction: str) -> Optional[SwipeOutcome]:
        if direction not in DIRECTIONS:
            raise ValueError(f"Unknown swipe direction: {direction}")
        product = self.current_product
        if product is None:
            return None

        position = self.current_index
        refine = False
        if direction == "left":
            self.consecutive_left_swipes += 1
            if self.consecutive_left_swipes >= self.refine_threshold:
                refine = True
                self.consecutive_left_swipes = 0
        else:
            self.consecutive_left_swipes = 0

        payload = SwipeRequest(
            product_id=product.id,
            direction=direction,
            session_id=self.session_id,
            card_position=position,
            product=product,
            try_on_image_url=self.try_on_cache.get(product.id),
        )
        # Advance before any await so overlapping swipes never reuse a card
        self.current_index += 1

        persisted = True
        try:
            await self.backend.record_swipe(payload)
        except Exception as e:
            logger.error(f"Failed to save swipe: {e}")
            persisted = False

        if self.remaining < self.low_water_mark:
            await self._append_batch()

        return SwipeOutcome(product, direction, position, refine_prompt=refine, persisted=persisted)

    async def _append_batch(self) -> None:
        if self._batch_pending:
            return
        self._batch_pending = True
        generation = self._generation
        try:
            more = await self.backend.fetch_products(self.query, self.batch_size)
        except Exception as e:
            logger.error(f"Failed to load more products: {e}")
            return
        finally:
            self._batch_pending = False

        if generation != self._generation:
            return
        self.products.extend(more)

    async def ensure_try_on(self) -> Optional[str]:
        """
        Generate the try-on for the visible card only; upcoming cards are never
        prefetched. At most one generation per product id is in flight.
        """
        product = self.current_product
        if product is None or not self.user_photo_url:
            return None
        if product.id in self.try_on_cache:
            return self.try_on_cache[product.id]
        if product.id in self.in_flight_try_ons:
            return None

        in_flight = self.in_flight_try_ons
        in_flight.add(product.id)
        generation = self._generation
        try:
            image_url = await self.backend.generate_try_on(product, self.user_photo_url)
        except Exception as e:
            logger.error(f"Failed to generate try-on for product {product.id}: {e}")
            image_url = None
        finally:
            in_flight.discard(product.id)

        if image_url and generation == self._generation:
            self.try_on_cache[product.id] = image_url
        return image_url


class ApiSessionBackend:
    """SessionBackend over the HTTP API"""

    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    @classmethod
    def connect(cls, base_url: str, token: str, timeout: float = 30.0,
                transport: Optional[httpx.AsyncBaseTransport] = None) -> "ApiSessionBackend":
        http = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )
        return cls(http)

    async def aclose(self) -> None:
        await self.http.aclose()

    async def fetch_products(self, query: str, count: int) -> List[Product]:
        resp = await self.http.get("/api/search/products", params={"q": query, "count": count})
        resp.raise_for_status()
        return SearchResponse.model_validate(resp.json()).products

    async def record_swipe(self, payload: SwipeRequest) -> None:
        resp = await self.http.post(
            "/api/swipes",
            json=payload.model_dump(by_alias=True, exclude_none=True, mode="json"),
        )
        resp.raise_for_status()

    async def fetch_user_photo(self) -> Optional[str]:
        resp = await self.http.get("/api/user/photo/primary")
        if not resp.is_success:
            return None
        data = resp.json()
        if data.get("success") and data.get("photo"):
            return Photo.model_validate(data["photo"]).url
        return None

    async def generate_try_on(self, product: Product, user_photo_url: str) -> Optional[str]:
        if product.is_external:
            body = {
                "userPhotoUrl": user_photo_url,
                "productImageUrl": product.image_url,
                "productName": product.name,
                "productDescription": product.description,
            }
            resp = await self.http.post("/api/tryon", json=body)
        else:
            resp = await self.http.post("/api/tryon/generate", json={"productId": product.id})

        if not resp.is_success:
            logger.warning(f"Try-on API error {resp.status_code}: {resp.text[:200]}")
            return None
        result = TryOnResponse.model_validate(resp.json())
        return result.image_url if result.success else None
