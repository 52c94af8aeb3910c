import time
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


def now_ms() -> int:
    return int(time.time() * 1000)


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class TradeSide(str, Enum):
    UP = "UP"
    DOWN = "DOWN"


class StrategyState(str, Enum):
    SCANNING = "SCANNING"
    IN_POSITION = "IN_POSITION"
    # Representable but never produced by the reference transition table.
    EXITING_PROFIT = "EXITING_PROFIT"
    EXITING_STOP_LOSS = "EXITING_STOP_LOSS"
    ROTATING = "ROTATING"


class BookQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    best_bid: Optional[float] = None
    best_ask: Optional[float] = None

    @property
    def two_sided(self) -> bool:
        return self.best_bid is not None and self.best_ask is not None

    @property
    def spread(self) -> Optional[float]:
        if not self.two_sided:
            return None
        return self.best_ask - self.best_bid


class MarketDescriptor(BaseModel):
    slug: str
    token_ids: Tuple[str, str]
    end_ts_ms: int
    event_start: str = ""
    active: bool = False
    accepting_orders: bool = False
    closed: bool = True

    @property
    def is_tradable(self) -> bool:
        return self.active and self.accepting_orders and not self.closed


class MarketInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    slug: str
    token_id_up: str
    token_id_down: str
    strike_price: Optional[float] = None  # None while the opening price is unknown
    expiry_ts_ms: int
    window_start_ts: int = 0
    strike_source: str = "pending"  # api / manual / spot / pending

    @property
    def strike_pending(self) -> bool:
        return self.strike_price is None

    def with_strike(self, price: float, source: str) -> "MarketInfo":
        return self.model_copy(update={"strike_price": float(price), "strike_source": source})

    def token_for(self, side: TradeSide) -> str:
        return self.token_id_up if side == TradeSide.UP else self.token_id_down

    def minutes_remaining(self, now: Optional[int] = None) -> float:
        ts = now_ms() if now is None else now
        return (self.expiry_ts_ms - ts) / 60_000.0

    def is_expiring_soon(self, threshold_seconds: int, now: Optional[int] = None) -> bool:
        ts = now_ms() if now is None else now
        return (self.expiry_ts_ms - ts) < int(threshold_seconds) * 1000


class Order(BaseModel):
    id: str
    token_id: str
    side: OrderSide
    price: float
    size: float
    created_ms: int = Field(default_factory=now_ms)


class Position(BaseModel):
    token_id: str
    shares: float
    entry_price: float
    entry_time_ms: int = Field(default_factory=now_ms)

    def pnl(self, exit_price: float) -> float:
        return (float(exit_price) - self.entry_price) * self.shares


class Fill(BaseModel):
    order: Order
    realized_pnl: Optional[float] = None  # set on SELL fills


class TickRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp_ms: int
    tick_number: int
    market_slug: str
    side: TradeSide
    spot_price: float
    strike_price: float
    fair_value: float
    target_buy_price: float
    best_bid: Optional[float] = None
    best_ask: Optional[float] = None
    spread: Optional[float] = None
    minutes_remaining: float
    state: str


class SessionSummary(BaseModel):
    session_id: str
    start_time_ms: int
    end_time_ms: int
    duration_seconds: int
    total_ticks: int
    markets_traded: int
    total_pnl: float
    final_cash: Optional[float] = None  # None in live mode; balance lives on-chain
    ticks: List[TickRecord] = Field(default_factory=list)
