import threading
import time
from typing import Optional

from rich import print

from polymarket_vulture.orchestrator import TickOrchestrator
from polymarket_vulture.utils.storage import append_event


def next_deadline(deadline: float, interval_s: float, now: float) -> float:
    """Advance one interval; if already late, skip to the next boundary after now."""
    deadline += interval_s
    if deadline <= now:
        missed = int((now - deadline) // interval_s) + 1
        deadline += missed * interval_s
    return deadline


def run_forever(
    orchestrator: TickOrchestrator,
    interval_s: float,
    stop_event: threading.Event,
    events_path: Optional[str] = None,
):
    deadline = time.monotonic()
    while not stop_event.is_set():
        try:
            orchestrator.tick()
        except Exception as e:
            print(f"[red]tick {orchestrator.tick_count} failed[/red] {e!r}")
            append_event(events_path, {"type": "tick_error", "tick": orchestrator.tick_count, "error": str(e)})

        now = time.monotonic()
        deadline = next_deadline(deadline, interval_s, now)
        stop_event.wait(deadline - now)
