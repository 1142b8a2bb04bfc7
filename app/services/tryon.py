from __future__ import annotations

import asyncio
import logging
from typing import Optional, Tuple

from ..connectors.redis_client import cache_try_on, get_cached_try_on
from ..connectors.tryon_client import TryOnClient
from ..schemas import TryOnRequest
from ..utils import is_uuid
from .errors import InvalidRequestError, NotFoundError

logger = logging.getLogger(__name__)


class TryOnService:
    def __init__(self, store, client: TryOnClient, redis_client=None, cache_ttl_seconds: int = 604800):
        self.store = store
        self.client = client
        self.redis = redis_client
        self.cache_ttl_seconds = cache_ttl_seconds

    async def generate_direct(self, request: TryOnRequest) -> str:
        """Try-on for an external product where the caller supplies both image URLs."""
        return await self.client.generate(
            request.user_photo_url,
            request.product_image_url,
            request.product_name,
            request.product_description,
        )

    async def generate_for_product(self, auth_id: str, product_id: str) -> Tuple[str, bool]:
        """
        Try-on for a catalog product using the user's primary photo.
        Returns (image_url, served_from_cache).
        """
        user = await asyncio.to_thread(self.store.get_user_by_auth_id, auth_id)
        if not user:
            raise NotFoundError("User not found")
        user_id = str(user["id"])

        product = await asyncio.to_thread(self.store.get_product, product_id) if is_uuid(product_id) else None
        if not product:
            raise NotFoundError("Product not found")

        cached = await asyncio.to_thread(get_cached_try_on, self.redis, user_id, product_id)
        if cached:
            return cached, True

        photo_url = await self._primary_photo_url(user_id)
        if not photo_url:
            raise InvalidRequestError("Please upload at least one photo to enable virtual try-on.")

        logger.info(f"Generating try-on for product {product_id}")
        image_url = await self.client.generate(
            photo_url,
            product.get("image_url") or "",
            product.get("name"),
            product.get("description"),
        )
        await asyncio.to_thread(cache_try_on, self.redis, user_id, product_id, image_url, self.cache_ttl_seconds)
        return image_url, False

    async def _primary_photo_url(self, user_id: str) -> Optional[str]:
        photos = await asyncio.to_thread(self.store.list_photos, user_id)
        for p in photos:
            if p.get("is_primary"):
                return p["url"]
        return None
