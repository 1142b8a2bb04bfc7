from __future__ import annotations

import math
import re
from typing import Optional, Tuple
from urllib.parse import urlparse

from ..schemas import ShoppingResult

PRICE_RE = re.compile(r"([A-Z$£€₹]{0,3})\s*([0-9,.]+)")

CURRENCY_SYMBOLS = [("$", "USD"), ("€", "EUR"), ("£", "GBP"), ("₹", "INR")]


def parse_price(raw: Optional[str]) -> Tuple[float, str]:
    """
    Best-effort parse of a display price like "$1,299.00" or "€45".
    Returns (0.0, "USD") for anything it cannot read.
    """
    if not isinstance(raw, str):
        return 0.0, "USD"
    m = PRICE_RE.search(raw)
    if not m:
        return 0.0, "USD"

    symbol = m.group(1) or ""
    currency = "USD"
    for sym, code in CURRENCY_SYMBOLS:
        if sym in symbol:
            currency = code
            break

    try:
        amount = float(m.group(2).replace(",", ""))
    except ValueError:
        return 0.0, currency
    if not math.isfinite(amount):
        amount = 0.0
    return amount, currency


def is_external_retailer_url(url: Optional[str]) -> bool:
    if not url or not isinstance(url, str):
        return False
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return False
    if not host:
        return False
    return not ("google." in host or "serpapi.com" in host)


def pick_retailer_url(record: ShoppingResult) -> str:
    offer = record.offer
    candidates = [
        record.link,
        record.product_link,
        record.product_page_url,
        offer.link if offer else None,
        offer.product_link if offer else None,
    ]
    for c in candidates:
        if is_external_retailer_url(c):
            return c
    return record.link or record.product_link or "#"
