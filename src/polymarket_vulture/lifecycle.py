from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

import httpx
from rich import print

from polymarket_vulture.config import MarketSettings
from polymarket_vulture.execution.base import ExecutionError, OrderExecutor, OrderNotFound
from polymarket_vulture.models import MarketDescriptor, MarketInfo, OrderSide, now_ms
from polymarket_vulture.utils.storage import append_event

WINDOW_SECONDS = 900
SLUG_PREFIX = "btc-updown-15m-"


class LifecyclePhase(str, Enum):
    NO_MARKET = "NO_MARKET"
    DISCOVERING = "DISCOVERING"
    ACTIVE = "ACTIVE"
    EXPIRING_SOON = "EXPIRING_SOON"
    ROTATING = "ROTATING"


class DiscoveryError(RuntimeError):
    pass


def window_start(now_s: float) -> int:
    return int(now_s // WINDOW_SECONDS) * WINDOW_SECONDS


def candidate_window_starts(now_s: float) -> List[int]:
    """Current window first, then next, then the two previous ones."""
    base = window_start(now_s)
    return [base, base + WINDOW_SECONDS, base - WINDOW_SECONDS, base - 2 * WINDOW_SECONDS]


def slug_for(window_start_ts: int) -> str:
    return f"{SLUG_PREFIX}{int(window_start_ts)}"


def manual_market(m: MarketSettings, now_s: float) -> MarketInfo:
    start = window_start(now_s)
    expiry = m.expiry_ts_ms if m.expiry_ts_ms is not None else (start + WINDOW_SECONDS) * 1000
    return MarketInfo(
        slug=m.slug,
        token_id_up=m.token_id_up,
        token_id_down=m.token_id_down,
        strike_price=float(m.strike_price),
        expiry_ts_ms=int(expiry),
        window_start_ts=start,
        strike_source="manual",
    )


class MarketLifecycleManager:
    """Finds the live 15m BTC market, watches its expiry and rotates out of it.

    Only one market is held at a time. Discovery looks up the four candidate
    windows in parallel and picks by candidate order, so a slow response for
    the current window still wins over a fast one for the next window.
    """

    def __init__(
        self,
        metadata,
        rotation_threshold_s: int = 30,
        emergency_exit_price: float = 0.50,
        manual_strike_price: Optional[float] = None,
        fixed_market: Optional[MarketInfo] = None,
        clock: Callable[[], int] = now_ms,
        max_workers: int = 4,
        events_path: Optional[str] = None,
    ):
        self.metadata = metadata
        self.rotation_threshold_s = int(rotation_threshold_s)
        self.emergency_exit_price = float(emergency_exit_price)
        self.manual_strike_price = manual_strike_price
        self.clock = clock
        self.max_workers = max_workers
        self.events_path = events_path

        # With a fixed market there is nothing to discover once it rotates out.
        self._fixed = fixed_market
        self.auto_discover = fixed_market is None

        self.market: Optional[MarketInfo] = None
        self.phase = LifecyclePhase.NO_MARKET

    def _safe_lookup(self, slug: str) -> Optional[MarketDescriptor]:
        try:
            return self.metadata.lookup(slug)
        except (httpx.HTTPError, ValueError) as e:
            print(f"[yellow]lookup failed[/yellow] {slug}: {e!r}")
            return None

    def _lookup_all(self, starts: List[int]) -> Dict[int, Optional[MarketDescriptor]]:
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {ts: pool.submit(self._safe_lookup, slug_for(ts)) for ts in starts}
            return {ts: f.result() for ts, f in futures.items()}

    def _resolve_strike(self, start_ts: int, end_ts: int) -> Tuple[Optional[float], str]:
        if self.manual_strike_price is not None:
            return float(self.manual_strike_price), "manual"
        try:
            px = self.metadata.fetch_opening_price(start_ts, end_ts)
        except (httpx.HTTPError, ValueError) as e:
            print(f"[yellow]opening price unavailable[/yellow] {e!r}")
            px = None
        if px is None:
            return None, "pending"
        return px, "api"

    def discover(self) -> MarketInfo:
        self.phase = LifecyclePhase.DISCOVERING
        if not self.auto_discover:
            if self._fixed is None:
                self.phase = LifecyclePhase.NO_MARKET
                raise DiscoveryError("manual market already rotated out")
            self.market, self._fixed = self._fixed, None
            self.phase = LifecyclePhase.ACTIVE
            print(f"[bold green]market[/bold green] {self.market.slug} (manual) strike={self.market.strike_price}")
            return self.market

        starts = candidate_window_starts(self.clock() / 1000.0)
        found = self._lookup_all(starts)
        chosen = next(((ts, found[ts]) for ts in starts if found[ts] is not None and found[ts].is_tradable), None)
        if chosen is None:
            self.phase = LifecyclePhase.NO_MARKET
            raise DiscoveryError(f"no active market among {[slug_for(ts) for ts in starts]}")

        start_ts, desc = chosen
        strike, source = self._resolve_strike(start_ts, desc.end_ts_ms // 1000)
        self.market = MarketInfo(
            slug=desc.slug,
            token_id_up=desc.token_ids[0],
            token_id_down=desc.token_ids[1],
            strike_price=strike,
            expiry_ts_ms=desc.end_ts_ms,
            window_start_ts=start_ts,
            strike_source=source,
        )
        self.phase = LifecyclePhase.ACTIVE
        append_event(self.events_path, {
            "type": "market_discovered",
            "slug": self.market.slug,
            "expiry_ts_ms": self.market.expiry_ts_ms,
            "strike_price": strike,
            "strike_source": source,
        })
        strike_txt = f"{strike:,.2f}" if strike is not None else "pending"
        print(f"[bold green]market[/bold green] {self.market.slug} strike={strike_txt} ({source})")
        return self.market

    def backfill_strike(self, spot: float) -> MarketInfo:
        if self.market is None:
            raise DiscoveryError("no market to backfill")
        if self.market.strike_pending:
            self.market = self.market.with_strike(spot, "spot")
            print(f"[yellow]strike from spot[/yellow] {self.market.slug} strike={spot:,.2f}")
        return self.market

    def is_expiring_soon(self, now: Optional[int] = None) -> bool:
        if self.market is None:
            return False
        soon = self.market.is_expiring_soon(self.rotation_threshold_s, now if now is not None else self.clock())
        if soon:
            self.phase = LifecyclePhase.EXPIRING_SOON
        return soon

    def rotate(self, executor: OrderExecutor, active_order_id: Optional[str] = None) -> Tuple[bool, float]:
        """Flatten, cancel the resting order and drop the market.

        Returns (completed, realized P&L of the emergency exit). When the exit
        does not fill, the market is kept and nothing else changes, so the
        next tick retries.
        """
        self.phase = LifecyclePhase.ROTATING
        slug = self.market.slug if self.market else None
        pnl = 0.0

        pos = executor.get_position()
        if pos is not None:
            exit_px = self.emergency_exit_price
            try:
                filled = executor.market_order(pos.token_id, OrderSide.SELL, exit_px, pos.shares)
            except ExecutionError as e:
                print(f"[red]emergency exit failed[/red] {e!r}")
                filled = False
            if not filled:
                self.phase = LifecyclePhase.EXPIRING_SOON
                append_event(self.events_path, {"type": "rotation_failed", "slug": slug, "shares": pos.shares})
                print(f"[red]rotation held[/red] {slug}: position still open, retrying next tick")
                return False, 0.0
            pnl = pos.pnl(exit_px)

        if active_order_id:
            try:
                executor.cancel(active_order_id)
            except OrderNotFound:
                pass  # already filled or cancelled
            except ExecutionError as e:
                print(f"[red]cancel failed[/red] {active_order_id}: {e!r}")

        append_event(self.events_path, {
            "type": "rotation",
            "slug": slug,
            "had_position": pos is not None,
            "cancelled": active_order_id,
            "realized_pnl": round(pnl, 4),
        })
        print(f"[magenta]rotated out of[/magenta] {slug} pnl=${pnl:.2f}")
        self.market = None
        self.phase = LifecyclePhase.NO_MARKET
        return True, pnl
