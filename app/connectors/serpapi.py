"""
SerpAPI Google Shopping client used by the product source adapter
"""

from typing import Any, Dict, List, Optional
import logging

import httpx

from ..settings import Settings

logger = logging.getLogger(__name__)


class SearchProviderError(RuntimeError):
    """Raised when the shopping search call itself fails."""


class SerpApiClient:
    """Thin async wrapper over the SerpAPI search.json endpoint"""

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        base_url: str = "https://serpapi.com/search.json",
        engine: str = "google_shopping_light",
        product_engine: str = "google_shopping_product",
    ):
        self.http = http
        self.api_key = api_key
        self.base_url = base_url
        self.engine = engine
        self.product_engine = product_engine

    @classmethod
    def from_settings(cls, http: httpx.AsyncClient, settings: Settings) -> "SerpApiClient":
        return cls(
            http,
            api_key=settings.serpapi_api_key or "",
            base_url=settings.serpapi_base_url,
            engine=settings.serpapi_engine,
            product_engine=settings.serpapi_product_engine,
        )

    async def search_shopping(self, query: str) -> List[Any]:
        """
        Run a shopping search and return the raw shopping_results records.

        Raises:
            SearchProviderError: on transport errors, non-2xx or undecodable replies
        """
        params = {"engine": self.engine, "q": query, "api_key": self.api_key}
        try:
            resp = await self.http.get(self.base_url, params=params)
        except httpx.HTTPError as e:
            raise SearchProviderError(f"SerpAPI request failed: {e}") from e

        if not resp.is_success:
            raise SearchProviderError(f"SerpAPI HTTP {resp.status_code}: {resp.text[:120]}")

        try:
            data = resp.json()
        except ValueError as e:
            raise SearchProviderError(f"SerpAPI returned invalid JSON: {e}") from e

        results = data.get("shopping_results") if isinstance(data, dict) else None
        return results if isinstance(results, list) else []

    async def product_image(self, product_id: str) -> Optional[str]:
        """First image of the product-detail record, or None."""
        params = {"engine": self.product_engine, "product_id": product_id, "api_key": self.api_key}
        try:
            resp = await self.http.get(self.base_url, params=params)
            if not resp.is_success:
                return None
            data: Dict[str, Any] = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Product image lookup failed for {product_id}: {e}")
            return None

        if not isinstance(data, dict):
            return None
        images = data.get("images") or data.get("product_photos") or []
        if not isinstance(images, list) or not images:
            return None
        first = images[0]
        if isinstance(first, str):
            return first or None
        if isinstance(first, dict):
            link = first.get("link") or first.get("thumbnail") or first.get("image")
            return link if isinstance(link, str) and link else None
        return None
