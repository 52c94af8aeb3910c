import threading
import time
from abc import ABC, abstractmethod
from typing import Optional


class PriceCell:
    """Single-slot mailbox for the latest spot price.

    Feed threads write, the tick loop reads. Only the most recent write is
    visible; there is no history and writers never block on readers.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._price: Optional[float] = None
        self._ts = 0.0
        self._source = ""

    def put(self, price: float, source: str = "") -> bool:
        try:
            px = float(price)
        except (TypeError, ValueError):
            return False
        if not px > 0:
            return False
        with self._lock:
            self._price = px
            self._ts = time.time()
            self._source = source
        return True

    def get(self) -> Optional[float]:
        with self._lock:
            return self._price

    def snapshot(self) -> dict:
        with self._lock:
            return {"price": self._price, "ts": self._ts, "source": self._source}

    @property
    def ready(self) -> bool:
        with self._lock:
            return self._price is not None


class Backoff:
    def __init__(self, initial: float = 1.0, factor: float = 2.0, cap: float = 30.0):
        self.initial = initial
        self.factor = factor
        self.cap = cap
        self._next = initial

    def next_delay(self) -> float:
        d = self._next
        self._next = min(self.cap, self._next * self.factor)
        return d

    def reset(self):
        self._next = self.initial


class PriceSource(ABC):
    def __init__(self, cell: Optional[PriceCell] = None):
        self.cell = cell or PriceCell()
        self._running = False
        self._threads = []

    def get_price(self) -> Optional[float]:
        return self.cell.get()

    def is_ready(self) -> bool:
        return self.cell.ready

    def set_instrument_hint(self, slug: str) -> None:
        pass

    def _spawn(self, target, name: str):
        t = threading.Thread(target=target, name=name, daemon=True)
        self._threads.append(t)
        t.start()

    @abstractmethod
    def start(self): ...

    def stop(self):
        self._running = False

    def wait_ready(self, timeout: float, poll: float = 0.1) -> bool:
        deadline = time.time() + timeout
        while time.time() < deadline:
            if self.is_ready():
                return True
            time.sleep(poll)
        return self.is_ready()
