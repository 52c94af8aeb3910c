"""
Tests for the price cell, backoff and feed message parsing.
"""

import json
import threading
import time

import httpx
import pytest

from polymarket_vulture.feeds.base import Backoff, PriceCell
from polymarket_vulture.feeds.binance import BinancePriceFeed, parse_trade
from polymarket_vulture.feeds.rtds import parse_message


class TestPriceCell:
    def test_empty(self):
        cell = PriceCell()
        assert cell.get() is None
        assert not cell.ready

    def test_last_write_wins(self):
        cell = PriceCell()
        cell.put(98000.0, source="a")
        cell.put(98001.5, source="b")
        assert cell.get() == 98001.5
        assert cell.ready
        assert cell.snapshot()["source"] == "b"

    @pytest.mark.parametrize("bad", [None, "abc", 0, -5, float("nan")])
    def test_rejects_invalid(self, bad):
        cell = PriceCell()
        cell.put(98000.0)
        assert cell.put(bad) is False
        assert cell.get() == 98000.0

    def test_concurrent_writers(self):
        cell = PriceCell()
        threads = [threading.Thread(target=lambda v=v: [cell.put(v) for _ in range(200)]) for v in (1.0, 2.0, 3.0)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert cell.get() in {1.0, 2.0, 3.0}


class TestBackoff:
    def test_doubles_and_caps(self):
        b = Backoff()
        assert [b.next_delay() for _ in range(7)] == [1, 2, 4, 8, 16, 30, 30]

    def test_reset(self):
        b = Backoff()
        b.next_delay()
        b.next_delay()
        b.reset()
        assert b.next_delay() == 1


class TestRtdsParsing:
    def test_update(self):
        msg = {"topic": "crypto_prices_chainlink", "payload": {"symbol": "btc/usd", "timestamp": 1, "value": 98123.45}}
        assert parse_message(json.dumps(msg)) == 98123.45

    def test_snapshot_uses_latest(self):
        msg = {"payload": {"symbol": "BTC/USD", "data": [{"value": 98000}, {"value": 98010}]}}
        assert parse_message(json.dumps(msg)) == 98010

    @pytest.mark.parametrize("raw", [
        "",
        "not json",
        json.dumps([1, 2]),
        json.dumps({"payload": {"symbol": "eth/usd", "value": 3000}}),
        json.dumps({"payload": {"symbol": "btc/usd", "value": 0}}),
        json.dumps({"payload": {"symbol": "btc/usd", "data": []}}),
    ])
    def test_ignored(self, raw):
        assert parse_message(raw) is None


class TestBinance:
    def test_parse_trade(self):
        assert parse_trade(json.dumps({"e": "trade", "s": "BTCUSDT", "p": "98000.10"})) == 98000.10

    @pytest.mark.parametrize("raw", ["{}", "[]", "oops", json.dumps({"p": "x"})])
    def test_parse_trade_ignored(self, raw):
        assert parse_trade(raw) is None

    def test_rest_fallback(self):
        def handler(request):
            assert request.url.params.get("symbol") == "BTCUSDT"
            return httpx.Response(200, json={"symbol": "BTCUSDT", "price": "98111.00"})

        feed = BinancePriceFeed(rest_url="https://binance.test/api/v3/ticker/price", transport=httpx.MockTransport(handler))
        assert feed.fetch_rest_price() == 98111.0
        assert not feed.is_ready()

    @pytest.mark.parametrize("body", ["<html>maintenance</html>", "[1, 2]"])
    def test_rest_loop_survives_bad_body(self, body):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, text=body)

        feed = BinancePriceFeed(rest_url="https://binance.test/api/v3/ticker/price", rest_interval=0.01,
                                transport=httpx.MockTransport(handler))
        feed._running = True
        th = threading.Thread(target=feed._run_rest, daemon=True)
        th.start()
        time.sleep(0.3)
        try:
            assert th.is_alive()
            assert len(calls) >= 2
            assert feed.get_price() is None
        finally:
            feed.stop()
            th.join(timeout=2)

    def test_hint_is_noop(self):
        feed = BinancePriceFeed()
        feed.set_instrument_hint("btc-updown-15m-0")
        assert feed.get_price() is None
        assert feed.wait_ready(0.05, poll=0.01) is False
