"""Open Graph / Twitter card image lookup for retailer product pages."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# (attribute, value) pairs checked in order
_IMAGE_META_KEYS = [
    ("property", "og:image"),
    ("name", "og:image"),
    ("name", "twitter:image"),
    ("property", "twitter:image"),
]


def _is_http_url(url: Optional[str]) -> bool:
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def normalize_image_url(img: str, page_url: str) -> str:
    img = img.strip()
    if img.startswith("//"):
        return "https:" + img
    if not urlparse(img).scheme:
        return urljoin(page_url, img)
    return img


def extract_meta_image(html: str, page_url: str) -> Optional[str]:
    """Return the og:image (or twitter:image) of a page, absolutized, or None."""
    if not html:
        return None
    soup = BeautifulSoup(html, "html.parser")
    for attr, key in _IMAGE_META_KEYS:
        tag = soup.find("meta", attrs={attr: key})
        content = tag.get("content") if tag else None
        if isinstance(content, str) and content.strip():
            return normalize_image_url(content, page_url)
    return None


class PageImageScraper:
    def __init__(self, http: httpx.AsyncClient, user_agent: str = "Mozilla/5.0 VesakiBot"):
        self.http = http
        self.headers = {"User-Agent": user_agent, "Accept": "text/html"}

    async def fetch_og_image(self, page_url: Optional[str]) -> Optional[str]:
        if not _is_http_url(page_url):
            return None
        try:
            resp = await self.http.get(page_url, headers=self.headers, follow_redirects=True)
        except httpx.HTTPError as e:
            logger.warning(f"og:image fetch failed for {page_url}: {e}")
            return None
        if not resp.is_success:
            logger.info(f"og:image fetch got HTTP {resp.status_code} for {page_url}")
            return None
        try:
            return extract_meta_image(resp.text, str(resp.url))
        except Exception as e:
            # Uncontrolled third-party markup
            logger.warning(f"og:image parse failed for {page_url}: {e}")
            return None
