from __future__ import annotations
import json
from datetime import datetime, timezone
from typing import Optional
import httpx

from polymarket_vulture.models import MarketDescriptor

CRYPTO_PRICE_URL = "https://polymarket.com/api/crypto/crypto-price"
_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


def _iso_utc(ts: int) -> str:
    return datetime.fromtimestamp(int(ts), tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _iso_to_ms(s: str) -> Optional[int]:
    try:
        dt = datetime.fromisoformat((s or "").replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


class GammaAdapter:
    """Market metadata: slug lookups on Gamma plus the window opening price."""

    def __init__(
        self,
        base_url: str,
        crypto_price_url: str = CRYPTO_PRICE_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.crypto_price_url = crypto_price_url
        self.timeout = timeout
        self.transport = transport
        self.call_count = 0

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self.transport, headers={"User-Agent": _UA})

    def _counted_get(self, client: httpx.Client, url: str, **kwargs):
        self.call_count += 1
        return client.get(url, **kwargs)

    @staticmethod
    def _to_descriptor(m: dict, slug: str = "") -> MarketDescriptor | None:
        token_ids = m.get("clobTokenIds")
        if isinstance(token_ids, str):
            try:
                token_ids = json.loads(token_ids)
            except ValueError:
                return None
        if not isinstance(token_ids, list) or len(token_ids) < 2:
            return None

        ev0 = {}
        if isinstance(m.get("events"), list) and m.get("events"):
            ev0 = m.get("events")[0] or {}

        end_ms = _iso_to_ms(str(m.get("endDate") or ev0.get("endDate") or ""))
        if end_ms is None:
            return None

        return MarketDescriptor(
            slug=str(m.get("slug") or ev0.get("slug") or slug),
            token_ids=(str(token_ids[0]), str(token_ids[1])),
            end_ts_ms=end_ms,
            event_start=str(m.get("eventStartTime") or ev0.get("startTime") or m.get("startDate") or ""),
            active=bool(m.get("active", False)),
            accepting_orders=bool(m.get("acceptingOrders", False)),
            closed=bool(m.get("closed", True)),
        )

    def lookup(self, slug: str) -> Optional[MarketDescriptor]:
        with self._client() as client:
            r = self._counted_get(client, f"{self.base_url}/markets", params={"slug": slug})
            if r.status_code != 200:
                return None
            arr = r.json()
        if not isinstance(arr, list) or not arr:
            return None
        return self._to_descriptor(arr[0], slug=slug)

    def fetch_opening_price(self, window_start_ts: int, window_end_ts: int) -> Optional[float]:
        params = {
            "symbol": "BTC",
            "eventStartTime": _iso_utc(window_start_ts),
            "variant": "fifteen",
            "endDate": _iso_utc(window_end_ts),
        }
        with self._client() as client:
            r = self._counted_get(client, self.crypto_price_url, params=params)
            if r.status_code != 200:
                return None
            data = r.json()
        px = (data or {}).get("openPrice") if isinstance(data, dict) else None
        try:
            px = float(px) if px is not None else None
        except (TypeError, ValueError):
            return None
        return px if px and px > 0 else None
