#!/usr/bin/env python3
import argparse
import json
from collections import Counter, defaultdict
from pathlib import Path

from rich.console import Console
from rich.table import Table

EVENTS = Path(__file__).resolve().parents[1] / "data" / "events.jsonl"


def _stats(values):
    if not values:
        return {"n": 0, "min": 0.0, "max": 0.0, "avg": 0.0}
    return {"n": len(values), "min": min(values), "max": max(values), "avg": sum(values) / len(values)}


def analyze(session: dict) -> dict:
    ticks = session.get("ticks") or []
    states = Counter(t.get("state") or "-" for t in ticks)
    sides = Counter(t.get("side") or "-" for t in ticks)

    # How far the ask sat from fair; negative means the book was cheap.
    edge = [float(t["best_ask"]) - float(t["fair_value"]) for t in ticks if t.get("best_ask") is not None]
    spreads = [float(t["spread"]) for t in ticks if t.get("spread") is not None]

    ticks_per_market = defaultdict(int)
    for t in ticks:
        ticks_per_market[t.get("market_slug") or "-"] += 1

    return {
        "session_id": session.get("session_id"),
        "duration_seconds": int(session.get("duration_seconds") or 0),
        "total_ticks": int(session.get("total_ticks") or len(ticks)),
        "markets_traded": int(session.get("markets_traded") or 0),
        "total_pnl": float(session.get("total_pnl") or 0.0),
        "final_cash": session.get("final_cash"),
        "states": dict(states),
        "sides": dict(sides),
        "ask_minus_fair": _stats(edge),
        "spread": _stats(spreads),
        "ticks_per_market": dict(ticks_per_market),
    }


def order_events(path: Path) -> Counter:
    out = Counter()
    if not path.exists():
        return out
    with path.open() as f:
        for line in f:
            try:
                e = json.loads(line)
            except ValueError:
                continue
            typ = e.get("type")
            if typ in {"order_placed", "paper_fill", "stop_loss", "rotation", "tick_error"}:
                out[typ] += 1
    return out


def render(report: dict, events: Counter, console: Console):
    t = Table(title=f"Session {report['session_id']}")
    t.add_column("Metric", style="cyan")
    t.add_column("Value", justify="right")
    t.add_row("Duration", f"{report['duration_seconds']}s")
    t.add_row("Total ticks", str(report["total_ticks"]))
    t.add_row("Markets traded", str(report["markets_traded"]))
    t.add_row("Total P&L", f"${report['total_pnl']:.2f}")
    fc = report["final_cash"]
    t.add_row("Final cash", "n/a" if fc is None else f"${float(fc):.2f}")
    console.print(t)

    dist = Table(title="State / side distribution")
    dist.add_column("Bucket")
    dist.add_column("Ticks", justify="right")
    for k, v in sorted(report["states"].items()):
        dist.add_row(f"state {k}", str(v))
    for k, v in sorted(report["sides"].items()):
        dist.add_row(f"side {k}", str(v))
    console.print(dist)

    px = Table(title="Book vs fair")
    px.add_column("Series")
    for col in ("n", "min", "avg", "max"):
        px.add_column(col, justify="right")
    for name in ("ask_minus_fair", "spread"):
        s = report[name]
        px.add_row(name, str(s["n"]), f"{s['min']:.4f}", f"{s['avg']:.4f}", f"{s['max']:.4f}")
    console.print(px)

    if events:
        ev = Table(title="Events")
        ev.add_column("Type")
        ev.add_column("Count", justify="right")
        for k, v in events.most_common():
            ev.add_row(k, str(v))
        console.print(ev)


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("session", help="session_<id>.json written by the bot")
    parser.add_argument("--events", default=str(EVENTS))
    parser.add_argument("--json", action="store_true", help="print the report as JSON instead of tables")
    args = parser.parse_args()

    report = analyze(json.loads(Path(args.session).read_text()))
    if args.json:
        print(json.dumps(report, indent=2, sort_keys=True))
        return
    render(report, order_events(Path(args.events)), Console())


if __name__ == "__main__":
    main()
