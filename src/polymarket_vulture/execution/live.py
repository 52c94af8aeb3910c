from __future__ import annotations

from typing import List, Optional

from rich import print

from polymarket_vulture.adapters.clob import quote_from_levels
from polymarket_vulture.config import BotSettings, ConfigError
from polymarket_vulture.execution.base import ExecutionError, OrderExecutor, OrderNotFound
from polymarket_vulture.models import BookQuote, Order, OrderSide, Position


class LiveExecutor(OrderExecutor):
    """Live Polymarket CLOB executor.

    Every call forwards to py-clob-client; nothing is retried here. Fills
    happen on the exchange, so the open position is derived from the
    matched size of the entry and exit orders this executor submitted.
    """

    mode = "live"
    simulates_fills = False

    def __init__(self, settings: BotSettings, client=None):
        live = settings.live
        self.secrets = settings.secrets
        self.host = live.clob_host
        self.chain_id = int(live.chain_id)
        self.signature_type = int(live.signature_type)
        self.market_order_type = str(live.market_order_type).upper()

        self._client = client
        self._entry: Optional[Order] = None
        self._entry_filled: Optional[float] = None  # known size for immediate fills
        self._exit_ids: List[str] = []
        self._sold = 0.0

    def connect(self):
        if self._client is not None:
            return self._client
        if not self.secrets.private_key:
            raise ConfigError("POLYMARKET_PRIVATE_KEY is missing")

        from py_clob_client.client import ClobClient
        from py_clob_client.clob_types import ApiCreds

        try:
            c = ClobClient(
                self.host,
                key=self.secrets.private_key,
                chain_id=self.chain_id,
                signature_type=self.signature_type,
                funder=self.secrets.funder or None,
            )
            # Prefer provided API creds; fallback to derive/create.
            if self.secrets.api_key and self.secrets.api_secret and self.secrets.api_passphrase:
                c.set_api_creds(ApiCreds(
                    api_key=self.secrets.api_key,
                    api_secret=self.secrets.api_secret,
                    api_passphrase=self.secrets.api_passphrase,
                ))
            else:
                c.set_api_creds(c.create_or_derive_api_creds())
        except Exception as e:
            raise ExecutionError(f"clob_init_failed: {e}") from e
        self._client = c
        return c

    def _submit(self, token_id: str, side: OrderSide, price: float, size: float, order_type_name: str) -> dict:
        if not token_id:
            raise ExecutionError("token_id_missing")
        if price <= 0 or size <= 0:
            raise ExecutionError("invalid_price_or_size")
        client = self.connect()

        from py_clob_client.clob_types import OrderArgs, OrderType

        order_type = getattr(OrderType, order_type_name, getattr(OrderType, "GTC"))
        try:
            signed = client.create_order(OrderArgs(token_id=token_id, price=float(price), size=float(size), side=side.value))
            resp = client.post_order(signed, order_type)
        except Exception as e:
            raise ExecutionError(f"post_order_failed: {e}") from e

        resp = resp if isinstance(resp, dict) else {"resp": str(resp)}
        if resp.get("success") is False:
            raise ExecutionError(f"order_rejected: {resp.get('errorMsg') or resp}")
        print(f"[yellow][LIVE][/yellow] {side.value} {order_type_name} @ {price:.4f} | token {token_id[:8]}... | size {size:g} -> {resp.get('status')}")
        return resp

    @staticmethod
    def _order_id(resp: dict) -> str:
        oid = resp.get("orderID") or resp.get("id")
        if not oid:
            raise ExecutionError(f"order_id_missing: {resp}")
        return str(oid)

    def buy(self, token_id: str, price: float, size: float) -> str:
        oid = self._order_id(self._submit(token_id, OrderSide.BUY, price, size, "GTC"))
        self._track_entry(Order(id=oid, token_id=token_id, side=OrderSide.BUY, price=price, size=size), filled=None)
        return oid

    def sell(self, token_id: str, price: float, size: float) -> str:
        oid = self._order_id(self._submit(token_id, OrderSide.SELL, price, size, "GTC"))
        self._exit_ids.append(oid)
        return oid

    def cancel(self, order_id: str) -> None:
        client = self.connect()
        try:
            resp = client.cancel_orders([order_id])
        except Exception as e:
            raise ExecutionError(f"cancel_failed: {e}") from e
        not_canceled = {}
        if isinstance(resp, dict):
            not_canceled = resp.get("not_canceled") or {}
        if order_id in not_canceled:
            raise OrderNotFound(f"{order_id}: {not_canceled[order_id]}")

    def market_order(self, token_id: str, side: OrderSide, price: float, size: float) -> bool:
        # No market primitive on the venue: an aggressive limit with an immediate order type.
        resp = self._submit(token_id, side, price, size, self.market_order_type)
        filled = str(resp.get("status") or "").lower() == "matched"
        if filled and side == OrderSide.BUY:
            oid = str(resp.get("orderID") or "market")
            self._track_entry(Order(id=oid, token_id=token_id, side=side, price=price, size=size), filled=float(size))
        elif filled:
            self._sold += float(size)
        return filled

    def _track_entry(self, order: Order, filled: Optional[float]):
        self._entry = order
        self._entry_filled = filled
        self._exit_ids = []
        self._sold = 0.0

    def _matched(self, order_id: str) -> float:
        try:
            o = self.connect().get_order(order_id)
        except Exception as e:
            raise ExecutionError(f"get_order_failed: {e}") from e
        try:
            return float((o or {}).get("size_matched") or 0.0)
        except (TypeError, ValueError):
            return 0.0

    def get_position(self) -> Optional[Position]:
        entry = self._entry
        if entry is None:
            return None
        bought = self._entry_filled if self._entry_filled is not None else self._matched(entry.id)
        if bought <= 0:
            return None
        sold = self._sold + sum(self._matched(oid) for oid in self._exit_ids)
        remaining = bought - sold
        if remaining <= 1e-9:
            self._entry = None
            self._entry_filled = None
            self._exit_ids = []
            self._sold = 0.0
            return None
        return Position(token_id=entry.token_id, shares=remaining, entry_price=entry.price, entry_time_ms=entry.created_ms)

    def cash_balance(self) -> Optional[float]:
        return None

    def fetch_order_book(self, token_id: str) -> BookQuote:
        try:
            book = self.connect().get_order_book(token_id)
        except Exception as e:
            raise ExecutionError(f"get_order_book_failed: {e}") from e
        if isinstance(book, dict):
            return quote_from_levels(book.get("bids"), book.get("asks"))
        return quote_from_levels(getattr(book, "bids", None), getattr(book, "asks", None))
