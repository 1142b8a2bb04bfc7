from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from ..connectors.page_scraper import PageImageScraper
from ..connectors.serpapi import SearchProviderError, SerpApiClient
from ..schemas import Product, ShoppingResult
from ..settings import Settings
from ..utils import random_suffix
from .catalog_fallback import CatalogFallback
from .normalize import parse_price, pick_retailer_url

logger = logging.getLogger(__name__)

# Provider queries used for categorical feed requests
BROWSE_QUERIES = {
    "trending": "trending fashion apparel",
    "new": "new arrivals fashion",
    "editorial": "editor's picks fashion",
    "random": "fashion apparel",
}


@dataclass
class SearchResult:
    products: List[Product]
    source: str  # "serpapi" | "internal"
    fallback: bool = False


class ProductSource:
    """
    Shopping search with internal catalog fallback.

    Every returned product has a string image_url; per-record image lookups
    cascade thumbnail -> product-detail call -> og:image scrape and end in "".
    """

    def __init__(self, catalog: CatalogFallback, settings: Settings,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.catalog = catalog
        self.settings = settings
        self._transport = transport

    @property
    def provider_enabled(self) -> bool:
        return bool(self.settings.serpapi_api_key)

    async def search(self, query: str, count: int) -> SearchResult:
        products = await self._search_provider(query, count)
        if products is None:
            products = await asyncio.to_thread(self.catalog.search, query, count)
            return SearchResult(products, "internal", fallback=True)
        return SearchResult(products, "serpapi")

    async def browse(self, filter_name: str, count: int) -> List[Product]:
        query = BROWSE_QUERIES.get(filter_name, BROWSE_QUERIES["random"])
        products = await self._search_provider(query, count)
        if products is None:
            products = await asyncio.to_thread(self.catalog.browse, filter_name, count)
        return products

    async def _search_provider(self, query: str, count: int) -> Optional[List[Product]]:
        """Provider products, or None when the caller should fall back to the catalog."""
        if not self.provider_enabled:
            logger.warning("SERPAPI_API_KEY not configured, falling back to internal products")
            return None

        try:
            async with httpx.AsyncClient(timeout=self.settings.http_timeout, transport=self._transport) as http:
                serp = SerpApiClient.from_settings(http, self.settings)
                raw_results = await serp.search_shopping(query)
                logger.info(f"SerpAPI returned {len(raw_results)} results for q={query!r}")

                scraper = PageImageScraper(http, self.settings.scrape_user_agent)
                picked = raw_results[:count]
                return list(await asyncio.gather(
                    *(self._to_product(serp, scraper, raw, idx) for idx, raw in enumerate(picked))
                ))
        except SearchProviderError as e:
            logger.warning(f"{e}; falling back to internal products")
            return None
        except Exception as e:
            logger.error(f"SerpAPI search error: {e}; falling back to internal products")
            return None

    async def _to_product(self, serp: SerpApiClient, scraper: PageImageScraper, raw: Any, idx: int) -> Product:
        try:
            record = ShoppingResult.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Unreadable shopping result at {idx}: {e}")
            record = ShoppingResult()

        price, currency = parse_price(record.price)
        product_url = pick_retailer_url(record)
        image_url = await self._resolve_image(serp, scraper, record, product_url)
        seller = record.source or record.store or "Unknown"

        return Product(
            id=f"serp-{record.product_id or record.position or idx}-{random_suffix()}",
            external_id=record.product_id,
            name=record.title or "Product",
            brand=seller,
            price=price,
            currency=currency,
            retailer=seller,
            category="search",
            image_url=image_url,
            product_url=product_url,
            description=f"{record.extracted_price:g}" if record.extracted_price is not None else None,
            in_stock=True,
            is_external=True,
        )

    async def _resolve_image(self, serp: SerpApiClient, scraper: PageImageScraper,
                             record: ShoppingResult, product_url: str) -> str:
        image = record.thumbnail or record.image
        if image:
            return image

        if record.product_id:
            try:
                image = await serp.product_image(record.product_id)
            except Exception as e:
                logger.warning(f"Product image fetch failed for {record.product_id}: {e}")
                image = None
            if image:
                logger.info(f"Filled image via product API for {record.product_id}")
                return image

        try:
            image = await scraper.fetch_og_image(product_url)
        except Exception as e:
            logger.warning(f"og:image fetch failed for {product_url}: {e}")
            image = None
        if image:
            logger.info(f"Filled image via og:image for {product_url}")
            return image

        logger.warning(f"No image found for result {record.title!r}")
        return ""
