from typing import Dict, Optional

from rich import print

from polymarket_vulture.adapters.clob import ClobAdapter
from polymarket_vulture.execution.base import ExecutionError, OrderExecutor, OrderNotFound
from polymarket_vulture.models import BookQuote, Fill, Order, OrderSide, Position


def _short(token_id: str) -> str:
    return token_id[:8]


class PaperExecutor(OrderExecutor):
    """In-memory ledger that fills resting orders against observed quotes.

    Capital moves only at fill time. One tick thread owns the ledger, so cash
    and position are updated together without extra locking.
    """

    mode = "paper"
    simulates_fills = True

    def __init__(self, book_source: ClobAdapter, starting_cash: float = 100.0):
        self.book_source = book_source
        self.cash = float(starting_cash)
        self.position: Optional[Position] = None
        self.orders: Dict[str, Order] = {}
        self._counter = 0

    def _place(self, token_id: str, side: OrderSide, price: float, size: float) -> str:
        if price <= 0 or size <= 0:
            raise ExecutionError("invalid_price_or_size")
        order_id = f"PAPER_{self._counter}"
        self._counter += 1
        self.orders[order_id] = Order(id=order_id, token_id=token_id, side=side, price=float(price), size=float(size))
        print(f"[dim][PAPER][/dim] {side.value} LIMIT @ {price:.4f} | token {_short(token_id)}... | size {size:g}")
        return order_id

    def buy(self, token_id: str, price: float, size: float) -> str:
        return self._place(token_id, OrderSide.BUY, price, size)

    def sell(self, token_id: str, price: float, size: float) -> str:
        return self._place(token_id, OrderSide.SELL, price, size)

    def cancel(self, order_id: str) -> None:
        if self.orders.pop(order_id, None) is None:
            raise OrderNotFound(order_id)
        print(f"[dim][PAPER][/dim] cancelled {order_id}")

    def market_order(self, token_id: str, side: OrderSide, price: float, size: float) -> bool:
        price, size = float(price), float(size)
        print(f"[dim][PAPER][/dim] MARKET {side.value} @ {price:.4f} | token {_short(token_id)}... | size {size:g}")
        if side == OrderSide.BUY:
            cost = price * size
            if self.cash < cost:
                print(f"[red][PAPER] insufficient cash[/red] need=${cost:.2f} have=${self.cash:.2f}")
                return False
            self.cash -= cost
            self.position = Position(token_id=token_id, shares=size, entry_price=price)
            print(f"[green][PAPER] bought[/green] {size:g} @ {price:.4f} cash=${self.cash:.2f}")
            return True

        pos = self.position
        if pos is None or pos.token_id != token_id or pos.shares < size:
            print("[red][PAPER] no position to sell or wrong token[/red]")
            return False
        self.cash += price * size
        pnl = (price - pos.entry_price) * size
        remaining = pos.shares - size
        self.position = pos.model_copy(update={"shares": remaining}) if remaining > 1e-9 else None
        print(f"[green][PAPER] sold[/green] {size:g} @ {price:.4f} pnl=${pnl:.2f} cash=${self.cash:.2f}")
        return True

    def get_position(self) -> Optional[Position]:
        return self.position

    def cash_balance(self) -> Optional[float]:
        return self.cash

    def fetch_order_book(self, token_id: str) -> BookQuote:
        return self.book_source.fetch_quote(token_id)

    def check_fills(self, token_id: str, best_ask: float, best_bid: float) -> Optional[Fill]:
        for order_id, order in self.orders.items():
            if order.token_id != token_id:
                continue
            if order.side == OrderSide.BUY and best_ask <= order.price:
                self.cash -= order.price * order.size
                self.position = Position(token_id=order.token_id, shares=order.size, entry_price=order.price)
                del self.orders[order_id]
                print(f"[cyan][PAPER] BUY filled[/cyan] {order_id} @ {order.price:.4f} cash=${self.cash:.2f}")
                return Fill(order=order)
            if order.side == OrderSide.SELL and best_bid >= order.price:
                self.cash += order.price * order.size
                pnl = self.position.pnl(order.price) if self.position is not None else None
                self.position = None
                del self.orders[order_id]
                print(f"[cyan][PAPER] SELL filled[/cyan] {order_id} @ {order.price:.4f} pnl=${(pnl or 0.0):.2f} cash=${self.cash:.2f}")
                return Fill(order=order, realized_pnl=pnl)
        return None
