import asyncio
import json
import time
from typing import Optional

import httpx
import websockets
from rich import print

from polymarket_vulture.feeds.base import Backoff, PriceCell, PriceSource


def parse_trade(raw) -> Optional[float]:
    try:
        obj = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(obj, dict):
        return None
    try:
        return float(obj.get("p"))
    except (TypeError, ValueError):
        return None


class BinancePriceFeed(PriceSource):
    """BTCUSDT trade stream with a periodic REST poll as fallback.

    Both tasks write the same cell; whichever wrote last wins.
    """

    def __init__(
        self,
        ws_url: str = "wss://stream.binance.com:9443/ws/btcusdt@trade",
        rest_url: str = "https://api.binance.com/api/v3/ticker/price",
        rest_interval: float = 5.0,
        timeout: float = 10.0,
        cell: Optional[PriceCell] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(cell)
        self.ws_url = ws_url
        self.rest_url = rest_url
        self.rest_interval = rest_interval
        self.timeout = timeout
        self.transport = transport
        self.ws_backoff = Backoff(initial=5.0)

    def start(self):
        if self._running:
            return
        self._running = True
        self._spawn(self._run_ws, "binance-ws")
        self._spawn(self._run_rest, "binance-rest")
        print("[blue]price feed[/blue] binance ws + rest fallback")

    def fetch_rest_price(self) -> Optional[float]:
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            r = client.get(self.rest_url, params={"symbol": "BTCUSDT"})
            r.raise_for_status()
            data = r.json()
        if not isinstance(data, dict):
            return None
        try:
            return float(data.get("price"))
        except (TypeError, ValueError):
            return None

    def _run_rest(self):
        backoff = Backoff(initial=self.rest_interval, cap=60.0)
        while self._running:
            delay = self.rest_interval
            try:
                self.cell.put(self.fetch_rest_price(), source="binance_rest")
                backoff.reset()
            except (httpx.HTTPError, ValueError) as e:
                delay = backoff.next_delay()
                print(f"[yellow]binance rest fallback failed[/yellow] {e!r}")
            time.sleep(delay)

    def _run_ws(self):
        asyncio.run(self._run_ws_async())

    async def _run_ws_async(self):
        while self._running:
            try:
                async with websockets.connect(self.ws_url, ping_interval=20, ping_timeout=20) as ws:
                    while self._running:
                        msg = await ws.recv()
                        if self.cell.put(parse_trade(msg), source="binance_ws"):
                            self.ws_backoff.reset()
            except Exception as e:
                delay = self.ws_backoff.next_delay()
                print(f"[yellow]binance ws error[/yellow] {e!r}; reconnect in {delay:.0f}s")
                await asyncio.sleep(delay)
