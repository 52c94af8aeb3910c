import asyncio
import json
from typing import Optional

import websockets
from rich import print

from polymarket_vulture.feeds.base import Backoff, PriceCell, PriceSource

SYMBOL = "btc/usd"


def parse_message(raw) -> Optional[float]:
    try:
        obj = json.loads(raw)
    except (TypeError, ValueError):
        return None
    payload = obj.get("payload") if isinstance(obj, dict) else None
    if not isinstance(payload, dict):
        return None
    if str(payload.get("symbol", "")).lower() != SYMBOL:
        return None

    # Subscription snapshot carries the recent history as payload.data.
    data = payload.get("data")
    if isinstance(data, list):
        if not data or not isinstance(data[-1], dict):
            return None
        raw_px = data[-1].get("value")
    else:
        raw_px = payload.get("value")
    try:
        px = float(raw_px)
    except (TypeError, ValueError):
        return None
    return px if px > 0 else None


class RtdsPriceFeed(PriceSource):
    """Chainlink BTC/USD from Polymarket's real-time data socket.

    The 15m markets resolve on Chainlink, so this is the default source.
    """

    def __init__(self, url: str = "wss://ws-live-data.polymarket.com", cell: Optional[PriceCell] = None):
        super().__init__(cell)
        self.url = url
        self.backoff = Backoff()

    def start(self):
        if self._running:
            return
        self._running = True
        self._spawn(self._run, "rtds-feed")
        print(f"[blue]price feed[/blue] rtds {self.url}")

    def _run(self):
        asyncio.run(self._run_async())

    async def _run_async(self):
        sub_msg = {
            "action": "subscribe",
            "subscriptions": [
                {
                    "topic": "crypto_prices_chainlink",
                    "type": "*",
                    "filters": json.dumps({"symbol": SYMBOL}),
                },
            ],
        }

        while self._running:
            try:
                async with websockets.connect(self.url, ping_interval=20, ping_timeout=20) as ws:
                    await ws.send(json.dumps(sub_msg))
                    while self._running:
                        msg = await ws.recv()
                        if self.cell.put(parse_message(msg), source="rtds"):
                            self.backoff.reset()
            except Exception as e:
                delay = self.backoff.next_delay()
                print(f"[yellow]rtds feed error[/yellow] {e!r}; reconnect in {delay:.0f}s")
                await asyncio.sleep(delay)
