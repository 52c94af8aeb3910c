from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Tuple

from rich import print

from polymarket_vulture.config import StrategySettings
from polymarket_vulture.engine.fair_value import entry_target, position_size, stop_loss_target, take_profit_target
from polymarket_vulture.execution.base import ExecutionError, OrderExecutor
from polymarket_vulture.models import BookQuote, OrderSide, StrategyState
from polymarket_vulture.utils.storage import append_event


class StrategyEvent(str, Enum):
    ENTRY_PLACED = "entry_placed"
    TAKE_PROFIT = "take_profit"
    STOP_LOSS = "stop_loss"
    RESET = "reset"


TRANSITIONS: Dict[Tuple[StrategyState, StrategyEvent], StrategyState] = {
    (StrategyState.SCANNING, StrategyEvent.ENTRY_PLACED): StrategyState.IN_POSITION,
    (StrategyState.IN_POSITION, StrategyEvent.TAKE_PROFIT): StrategyState.SCANNING,
    (StrategyState.IN_POSITION, StrategyEvent.STOP_LOSS): StrategyState.SCANNING,
}


def next_state(state: StrategyState, event: StrategyEvent) -> StrategyState:
    if event == StrategyEvent.RESET:
        return StrategyState.SCANNING
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise ValueError(f"illegal transition: {state.value} on {event.value}") from None


class StrategyStateMachine:
    """Single-position scalper: buy at a discount to fair, exit on a small profit or a stop.

    `step` returns realized P&L when an exit completed this tick, else None.
    A take-profit exit is a resting limit order, so its P&L shows up later as
    a fill, not here.
    """

    def __init__(self, executor: OrderExecutor, settings: StrategySettings, events_path: Optional[str] = None):
        self.executor = executor
        self.settings = settings
        self.events_path = events_path
        self.state = StrategyState.SCANNING
        self.active_order_id: Optional[str] = None

    def _fire(self, event: StrategyEvent):
        self.state = next_state(self.state, event)

    def reset(self):
        self._fire(StrategyEvent.RESET)
        self.active_order_id = None

    def step(self, token_id: str, fair: float, quote: BookQuote) -> Optional[float]:
        if not quote.two_sided:
            return None
        if self.state == StrategyState.SCANNING:
            self._scan(token_id, fair, quote)
            return None
        if self.state == StrategyState.IN_POSITION:
            return self._manage(token_id, quote)
        return None

    def _scan(self, token_id: str, fair: float, quote: BookQuote):
        if self.executor.has_position():
            return
        target = entry_target(fair, self.settings.panic_discount)
        ask = quote.best_ask
        if ask > target:
            return
        size = position_size(self.settings.max_capital_per_trade, ask)
        if size <= 0:
            return
        try:
            order_id = self.executor.buy(token_id, ask, size)
        except ExecutionError as e:
            print(f"[red]entry failed[/red] {e!r}")
            return

        self.active_order_id = order_id
        self._fire(StrategyEvent.ENTRY_PLACED)
        append_event(self.events_path, {
            "type": "order_placed",
            "order_id": order_id,
            "side": "BUY",
            "token_id": token_id,
            "price": ask,
            "size": size,
            "fair": round(fair, 4),
            "target": target,
        })
        print(f"[green]ENTRY[/green] BUY {size} @ {ask:.4f} fair={fair:.4f} target={target:.4f}")

    def _manage(self, token_id: str, quote: BookQuote) -> Optional[float]:
        pos = self.executor.get_position()
        if pos is None:
            return None  # entry still resting
        if pos.token_id != token_id:
            return None  # quote is for the other side's book

        take_profit = take_profit_target(pos.entry_price, self.settings.scalp_profit)
        stop_loss = stop_loss_target(pos.entry_price, self.settings.stop_loss_threshold)
        bid = quote.best_bid

        if bid >= take_profit:
            try:
                order_id = self.executor.sell(pos.token_id, bid, pos.shares)
            except ExecutionError as e:
                print(f"[red]take-profit order failed[/red] {e!r}")
                return None
            self.active_order_id = order_id
            self._fire(StrategyEvent.TAKE_PROFIT)
            append_event(self.events_path, {
                "type": "order_placed",
                "order_id": order_id,
                "side": "SELL",
                "token_id": pos.token_id,
                "price": bid,
                "size": pos.shares,
                "reason": "take_profit",
            })
            print(f"[green]TAKE PROFIT[/green] SELL {pos.shares:g} @ {bid:.4f} (entry {pos.entry_price:.4f})")
            return None

        if bid <= stop_loss:
            try:
                filled = self.executor.market_order(pos.token_id, OrderSide.SELL, bid, pos.shares)
            except ExecutionError as e:
                print(f"[red]stop-loss exit failed[/red] {e!r}")
                return None
            if not filled:
                print(f"[yellow]stop-loss not filled[/yellow] bid={bid:.4f}; holding")
                return None
            pnl = pos.pnl(bid)
            self.active_order_id = None
            self._fire(StrategyEvent.STOP_LOSS)
            append_event(self.events_path, {
                "type": "stop_loss",
                "token_id": pos.token_id,
                "price": bid,
                "size": pos.shares,
                "realized_pnl": round(pnl, 4),
            })
            print(f"[red]STOP LOSS[/red] SELL {pos.shares:g} @ {bid:.4f} pnl=${pnl:.2f}")
            return pnl
        return None
