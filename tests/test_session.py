"""
Tests for the session recorder flush.
"""

import json

import pytest

from polymarket_vulture.models import TickRecord, TradeSide
from polymarket_vulture.session import SessionRecorder


def tick(n):
    return TickRecord(
        timestamp_ms=1704067650000 + n * 500,
        tick_number=n,
        market_slug="btc-updown-15m-1704067200",
        side=TradeSide.UP,
        spot_price=99000.0,
        strike_price=98500.0,
        fair_value=0.99,
        target_buy_price=0.91,
        best_bid=0.60,
        best_ask=0.61,
        spread=0.01,
        minutes_remaining=7.5,
        state="SCANNING",
    )


class TestFlush:
    def test_writes_session_file(self, tmp_path):
        events = tmp_path / "events.jsonl"
        rec = SessionRecorder(str(tmp_path / "sessions"), events_path=str(events))
        rec.record(tick(1))
        rec.record(tick(2))
        rec.increment_markets_traded()

        summary = rec.flush(total_pnl=1.25, final_cash=101.25)

        path = tmp_path / "sessions" / f"session_{rec.session_id}.json"
        assert path.exists()
        data = json.loads(path.read_text())
        assert data["total_ticks"] == 2
        assert data["markets_traded"] == 1
        assert data["total_pnl"] == pytest.approx(1.25)
        assert data["final_cash"] == pytest.approx(101.25)
        assert [t["tick_number"] for t in data["ticks"]] == [1, 2]
        assert data["ticks"][0]["side"] == "UP"
        assert summary.total_ticks == 2

        lines = [json.loads(x) for x in events.read_text().splitlines()]
        assert lines[-1]["type"] == "session_flushed"

    def test_live_session_has_no_cash(self, tmp_path):
        rec = SessionRecorder(str(tmp_path))
        summary = rec.flush(total_pnl=0.0, final_cash=None)
        assert summary.final_cash is None
        assert json.loads(rec.path.read_text())["final_cash"] is None

    def test_session_id_format(self, tmp_path):
        sid = SessionRecorder(str(tmp_path)).session_id
        assert len(sid) == 15
        assert sid[8] == "_"
