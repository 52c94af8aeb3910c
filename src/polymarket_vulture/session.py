from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from polymarket_vulture.models import SessionSummary, TickRecord, now_ms
from polymarket_vulture.utils.storage import append_event, save_model


class SessionRecorder:
    def __init__(self, session_dir: str = "data/sessions", events_path: Optional[str] = None, console: Optional[Console] = None):
        self.session_dir = Path(session_dir)
        self.events_path = events_path
        self.console = console or Console()
        self.session_id = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        self.start_time_ms = now_ms()
        self.ticks: List[TickRecord] = []
        self.markets_traded = 0

    def record(self, tick: TickRecord) -> None:
        self.ticks.append(tick)

    def increment_markets_traded(self) -> None:
        self.markets_traded += 1

    @property
    def path(self) -> Path:
        return self.session_dir / f"session_{self.session_id}.json"

    def flush(self, total_pnl: float, final_cash: Optional[float]) -> SessionSummary:
        end = now_ms()
        summary = SessionSummary(
            session_id=self.session_id,
            start_time_ms=self.start_time_ms,
            end_time_ms=end,
            duration_seconds=(end - self.start_time_ms) // 1000,
            total_ticks=len(self.ticks),
            markets_traded=self.markets_traded,
            total_pnl=float(total_pnl),
            final_cash=final_cash,
            ticks=list(self.ticks),
        )
        p = save_model(str(self.path), summary)
        append_event(self.events_path, {
            "type": "session_flushed",
            "session_id": self.session_id,
            "path": str(p),
            "total_ticks": summary.total_ticks,
            "markets_traded": summary.markets_traded,
            "total_pnl": round(summary.total_pnl, 4),
            "final_cash": summary.final_cash,
        })
        self.console.print(summary_table(summary))
        self.console.print(f"session saved to {p}")
        return summary


def summary_table(summary: SessionSummary) -> Table:
    t = Table(title=f"Session {summary.session_id}")
    t.add_column("Metric", style="cyan")
    t.add_column("Value", justify="right")
    t.add_row("Duration", f"{summary.duration_seconds}s")
    t.add_row("Total ticks", str(summary.total_ticks))
    t.add_row("Markets traded", str(summary.markets_traded))
    t.add_row("Total P&L", f"${summary.total_pnl:.2f}")
    t.add_row("Final cash", "n/a" if summary.final_cash is None else f"${summary.final_cash:.2f}")
    return t
