from __future__ import annotations

import asyncio
from typing import Iterable, List

from ..schemas import Product
from ..settings import Settings

FEED_FILTERS = ("all", "trending", "new", "editorial")


def dedupe_products(products: Iterable[Product]) -> List[Product]:
    """
    De-duplicate by product identity while preserving order; the first occurrence wins.
    Provider ids carry a per-search suffix, so the provider product id is the key when present.
    """
    seen = set()
    unique: List[Product] = []
    for p in products:
        key = p.external_id or p.id
        if key in seen:
            continue
        seen.add(key)
        unique.append(p)
    return unique


class FeedAggregator:
    def __init__(self, source, settings: Settings):
        self.source = source
        self.settings = settings

    async def load(self, filter_name: str = "all") -> List[Product]:
        if filter_name != "all":
            return await self.source.browse(filter_name, self.settings.feed_filter_count)

        counts = self.settings.feed_all_counts
        # Bucket order decides which duplicate survives: trending first
        buckets = await asyncio.gather(
            self.source.browse("trending", counts.trending),
            self.source.browse("new", counts.new),
            self.source.browse("editorial", counts.editorial),
            self.source.browse("random", counts.random),
        )
        return dedupe_products(p for bucket in buckets for p in bucket)
