from __future__ import annotations

from typing import Callable, Optional

from rich import print

from polymarket_vulture.engine.fair_value import entry_target, select_direction, spread_acceptable
from polymarket_vulture.execution.base import OrderExecutor
from polymarket_vulture.feeds.base import PriceSource
from polymarket_vulture.lifecycle import DiscoveryError, MarketLifecycleManager
from polymarket_vulture.models import MarketInfo, TickRecord, TradeSide, now_ms
from polymarket_vulture.session import SessionRecorder
from polymarket_vulture.strategy import StrategyStateMachine
from polymarket_vulture.utils.storage import append_event


class TickOrchestrator:
    """One decision cycle per call to `tick`.

    Any missing input (no market, no spot, one-sided book, wide spread) ends
    the tick early without touching strategy or ledger state. Collaborator
    errors are not caught here; the loop reports them.
    """

    def __init__(
        self,
        lifecycle: MarketLifecycleManager,
        strategy: StrategyStateMachine,
        executor: OrderExecutor,
        price_source: PriceSource,
        recorder: SessionRecorder,
        clock: Callable[[], int] = now_ms,
        events_path: Optional[str] = None,
    ):
        self.lifecycle = lifecycle
        self.strategy = strategy
        self.executor = executor
        self.price_source = price_source
        self.recorder = recorder
        self.clock = clock
        self.events_path = events_path

        self.tick_count = 0
        self.markets_traded = 0
        self.total_pnl = 0.0

    def _ensure_market(self) -> Optional[MarketInfo]:
        if self.lifecycle.market is not None:
            return self.lifecycle.market
        try:
            market = self.lifecycle.discover()
        except DiscoveryError as e:
            print(f"[dim]no market: {e}[/dim]")
            return None
        self.markets_traded += 1
        self.recorder.increment_markets_traded()
        self.price_source.set_instrument_hint(market.slug)
        return market

    def tick(self) -> Optional[TickRecord]:
        self.tick_count += 1
        now = self.clock()

        market = self._ensure_market()
        if market is None:
            return None

        if self.lifecycle.is_expiring_soon(now):
            done, pnl = self.lifecycle.rotate(self.executor, self.strategy.active_order_id)
            self.total_pnl += pnl
            if done:
                self.strategy.reset()
            return None

        if market.strike_pending:
            spot = self.price_source.get_price()
            if spot is None:
                return None
            market = self.lifecycle.backfill_strike(spot)

        spot = self.price_source.get_price()
        if spot is None:
            return None

        minutes = market.minutes_remaining(now)
        side, fair = select_direction(spot, market.strike_price, minutes)

        up = self.executor.fetch_order_book(market.token_id_up)
        down = self.executor.fetch_order_book(market.token_id_down)
        if not (up.two_sided and down.two_sided):
            return None
        quote = up if side == TradeSide.UP else down
        settings = self.strategy.settings
        if not spread_acceptable(quote.spread, settings.max_spread):
            return None

        token_id = market.token_for(side)
        pnl = self.strategy.step(token_id, fair, quote)
        if pnl is not None:
            self.total_pnl += pnl

        if self.executor.simulates_fills:
            fill = self.executor.check_fills(token_id, quote.best_ask, quote.best_bid)
            if fill is not None:
                if fill.realized_pnl is not None:
                    self.total_pnl += fill.realized_pnl
                append_event(self.events_path, {
                    "type": "paper_fill",
                    "order_id": fill.order.id,
                    "side": fill.order.side.value,
                    "price": fill.order.price,
                    "size": fill.order.size,
                    "realized_pnl": fill.realized_pnl,
                })

        record = TickRecord(
            timestamp_ms=now,
            tick_number=self.tick_count,
            market_slug=market.slug,
            side=side,
            spot_price=spot,
            strike_price=market.strike_price,
            fair_value=fair,
            target_buy_price=entry_target(fair, settings.panic_discount),
            best_bid=quote.best_bid,
            best_ask=quote.best_ask,
            spread=quote.spread,
            minutes_remaining=minutes,
            state=self.strategy.state.value,
        )
        self.recorder.record(record)
        if self.tick_count % 20 == 0:
            print(
                f"[dim]#{self.tick_count}[/dim] {market.slug} {side.value} spot={spot:,.2f} "
                f"strike={market.strike_price:,.2f} fair={fair:.3f} bid={quote.best_bid:.3f} "
                f"ask={quote.best_ask:.3f} {minutes:.1f}m {self.strategy.state.value} pnl=${self.total_pnl:.2f}"
            )
        return record
