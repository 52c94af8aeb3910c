from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from polymarket_vulture.models import BookQuote, Fill, OrderSide, Position


class ExecutionError(RuntimeError):
    pass


class OrderNotFound(ExecutionError):
    pass


class OrderExecutor(ABC):
    """Order execution port shared by the paper and live backends.

    Callers hold this type only. Limit orders return an order id, market
    orders report whether they filled, and failures raise ExecutionError.
    """

    mode: str = ""
    simulates_fills: bool = False

    @abstractmethod
    def buy(self, token_id: str, price: float, size: float) -> str: ...

    @abstractmethod
    def sell(self, token_id: str, price: float, size: float) -> str: ...

    @abstractmethod
    def cancel(self, order_id: str) -> None:
        """Raises OrderNotFound when the order is unknown or already gone."""

    @abstractmethod
    def market_order(self, token_id: str, side: OrderSide, price: float, size: float) -> bool: ...

    @abstractmethod
    def get_position(self) -> Optional[Position]: ...

    def has_position(self) -> bool:
        return self.get_position() is not None

    @abstractmethod
    def cash_balance(self) -> Optional[float]: ...

    @abstractmethod
    def fetch_order_book(self, token_id: str) -> BookQuote: ...

    def check_fills(self, token_id: str, best_ask: float, best_bid: float) -> Optional[Fill]:
        return None
