from typing import Dict, Optional

import pytest

from polymarket_vulture.config import StrategySettings
from polymarket_vulture.feeds.base import PriceSource
from polymarket_vulture.models import BookQuote, MarketDescriptor, MarketInfo
from polymarket_vulture.sim.paper import PaperExecutor

# 2024-01-01 00:07:30 UTC, halfway into the 00:00 window
NOW_S = 1704067650
WINDOW = 1704067200


class FakeBooks:
    """Stands in for the CLOB REST adapter."""

    def __init__(self, quotes: Optional[Dict[str, BookQuote]] = None):
        self.quotes = dict(quotes or {})

    def set(self, token_id: str, bid: Optional[float], ask: Optional[float]):
        self.quotes[token_id] = BookQuote(best_bid=bid, best_ask=ask)

    def fetch_quote(self, token_id: str) -> BookQuote:
        return self.quotes.get(token_id, BookQuote())


class FakePriceSource(PriceSource):
    def __init__(self, price: Optional[float] = None):
        super().__init__()
        self.hints = []
        if price is not None:
            self.cell.put(price, source="test")

    def start(self):
        self._running = True

    def set_instrument_hint(self, slug: str) -> None:
        self.hints.append(slug)


class FakeMetadata:
    """In-memory market metadata client; values may be exceptions to raise."""

    def __init__(self, markets=None, opening_price=None):
        self.markets = dict(markets or {})
        self.opening_price = opening_price
        self.lookups = []
        self.price_calls = []

    def lookup(self, slug: str):
        self.lookups.append(slug)
        v = self.markets.get(slug)
        if isinstance(v, Exception):
            raise v
        return v

    def fetch_opening_price(self, start_ts: int, end_ts: int):
        self.price_calls.append((start_ts, end_ts))
        if isinstance(self.opening_price, Exception):
            raise self.opening_price
        return self.opening_price


def descriptor(window_start: int, tradable: bool = True) -> MarketDescriptor:
    return MarketDescriptor(
        slug=f"btc-updown-15m-{window_start}",
        token_ids=(f"up-{window_start}", f"down-{window_start}"),
        end_ts_ms=(window_start + 900) * 1000,
        active=tradable,
        accepting_orders=tradable,
        closed=not tradable,
    )


class Clock:
    def __init__(self, ms: int):
        self.ms = ms

    def __call__(self) -> int:
        return self.ms


@pytest.fixture
def clock():
    return Clock(NOW_S * 1000)


@pytest.fixture
def books():
    return FakeBooks()


@pytest.fixture
def paper(books):
    return PaperExecutor(books, starting_cash=100.0)


@pytest.fixture
def strategy_settings():
    return StrategySettings()


@pytest.fixture
def market():
    return MarketInfo(
        slug=f"btc-updown-15m-{WINDOW}",
        token_id_up="up-tok",
        token_id_down="down-tok",
        strike_price=98500.0,
        expiry_ts_ms=(WINDOW + 900) * 1000,
        window_start_ts=WINDOW,
        strike_source="api",
    )
