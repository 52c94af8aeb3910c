from __future__ import annotations
from typing import Iterable, Optional
import httpx

from polymarket_vulture.models import BookQuote


def _level_price(lvl) -> float:
    # levels arrive as dicts over REST and as objects from py-clob-client
    raw = lvl.get("price", 0.0) if isinstance(lvl, dict) else getattr(lvl, "price", 0.0)
    try:
        return float(raw or 0.0)
    except (TypeError, ValueError):
        return 0.0


def best_ask(levels: Optional[Iterable]) -> Optional[float]:
    vals = [px for px in (_level_price(lvl) for lvl in (levels or [])) if px > 0]
    return min(vals) if vals else None


def best_bid(levels: Optional[Iterable]) -> Optional[float]:
    vals = [px for px in (_level_price(lvl) for lvl in (levels or [])) if px > 0]
    return max(vals) if vals else None


def quote_from_levels(bids: Optional[Iterable], asks: Optional[Iterable]) -> BookQuote:
    return BookQuote(best_bid=best_bid(bids), best_ask=best_ask(asks))


class ClobAdapter:
    def __init__(self, base_url: str, timeout: float = 10.0, transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.call_count = 0

    def _fetch_book(self, token_id: str) -> Optional[dict]:
        url = f"{self.base_url}/book"
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            self.call_count += 1
            r = client.get(url, params={"token_id": token_id})
            if r.status_code == 404:
                # CLOB answers 404 for tokens without a book
                return None
            r.raise_for_status()
            return r.json()

    def fetch_quote(self, token_id: str) -> BookQuote:
        book = self._fetch_book(token_id)
        if not book:
            return BookQuote()
        return quote_from_levels(book.get("bids", []), book.get("asks", []))
