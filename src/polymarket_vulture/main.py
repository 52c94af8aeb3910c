import argparse
import signal
import sys
import threading
import time
from typing import Optional

import httpx
from rich import print

from polymarket_vulture.adapters.clob import ClobAdapter
from polymarket_vulture.adapters.gamma import GammaAdapter
from polymarket_vulture.config import BotSettings, ConfigError, load_settings
from polymarket_vulture.execution.base import ExecutionError, OrderExecutor
from polymarket_vulture.execution.live import LiveExecutor
from polymarket_vulture.feeds.base import PriceSource
from polymarket_vulture.feeds.binance import BinancePriceFeed
from polymarket_vulture.feeds.rtds import RtdsPriceFeed
from polymarket_vulture.lifecycle import MarketLifecycleManager, manual_market
from polymarket_vulture.loop import run_forever
from polymarket_vulture.orchestrator import TickOrchestrator
from polymarket_vulture.session import SessionRecorder
from polymarket_vulture.sim.paper import PaperExecutor
from polymarket_vulture.strategy import StrategyStateMachine
from polymarket_vulture.wallet import WalletChecker


def build_executor(settings: BotSettings) -> OrderExecutor:
    if settings.paper_trade:
        books = ClobAdapter(settings.data.clob_rest_base, timeout=settings.data.http_timeout_s)
        return PaperExecutor(books, starting_cash=settings.paper.starting_cash_usd)
    return LiveExecutor(settings)


def build_price_source(settings: BotSettings) -> PriceSource:
    d = settings.data
    if d.price_source == "binance":
        return BinancePriceFeed(
            ws_url=d.binance_ws_url,
            rest_url=d.binance_rest_url,
            rest_interval=d.rest_fallback_seconds,
            timeout=d.http_timeout_s,
        )
    return RtdsPriceFeed(d.rtds_ws_url)


def build_lifecycle(settings: BotSettings) -> MarketLifecycleManager:
    m = settings.market
    d = settings.data
    fixed = None if m.auto_discover else manual_market(m, time.time())
    return MarketLifecycleManager(
        GammaAdapter(d.gamma_rest_base, crypto_price_url=d.crypto_price_url, timeout=d.http_timeout_s),
        rotation_threshold_s=m.rotation_threshold_s,
        emergency_exit_price=settings.strategy.emergency_exit_price,
        manual_strike_price=m.manual_strike_price,
        fixed_market=fixed,
        events_path=settings.storage.events_path,
    )


def _prepare_live(settings: BotSettings, executor: LiveExecutor) -> bool:
    wallet = WalletChecker(settings.live.polygon_rpc_url, settings.secrets.funder, timeout=settings.data.http_timeout_s)
    try:
        if not wallet.validate_trading_balance(settings.strategy.max_capital_per_trade):
            return False
    except (httpx.HTTPError, RuntimeError, ValueError) as e:
        print(f"[red]wallet check failed[/red] {e!r}")
        return False
    try:
        executor.connect()
    except ExecutionError as e:
        print(f"[red]CLOB client init failed[/red] {e!r}")
        return False
    return True


def _install_signal_handlers(stop_event: threading.Event):
    def _handler(signum, frame):
        print(f"[yellow]signal {signum}, stopping after this tick[/yellow]")
        stop_event.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def run(settings: BotSettings, once: bool = False) -> int:
    mode = "PAPER" if settings.paper_trade else "LIVE"
    print(f"[bold]polymarket-vulture[/bold] mode={mode} source={settings.data.price_source} "
          f"capital/trade=${settings.strategy.max_capital_per_trade:.2f}")

    executor = build_executor(settings)
    if isinstance(executor, LiveExecutor) and not _prepare_live(settings, executor):
        return 1

    source = build_price_source(settings)
    source.start()
    try:
        if not source.wait_ready(settings.app.startup_timeout_s):
            print(f"[red]no spot price after {settings.app.startup_timeout_s:.0f}s[/red]")
            return 1

        events_path = settings.storage.events_path
        recorder = SessionRecorder(settings.storage.session_dir, events_path=events_path)
        orchestrator = TickOrchestrator(
            build_lifecycle(settings),
            StrategyStateMachine(executor, settings.strategy, events_path=events_path),
            executor,
            source,
            recorder,
            events_path=events_path,
        )

        stop_event = threading.Event()
        _install_signal_handlers(stop_event)
        try:
            if once:
                orchestrator.tick()
            else:
                run_forever(orchestrator, settings.app.tick_interval_ms / 1000.0, stop_event, events_path=events_path)
        finally:
            recorder.flush(orchestrator.total_pnl, executor.cash_balance())
    finally:
        source.stop()
    return 0


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="15m BTC up/down trader for Polymarket")
    parser.add_argument("--config", default="config/default.yaml")
    parser.add_argument("--once", action="store_true")
    parser.add_argument("--mode", choices=["paper", "live"], default=None)
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config, mode=args.mode)
    except ConfigError as e:
        print(f"[red]{e}[/red]")
        return 2
    return run(settings, once=args.once)


if __name__ == "__main__":
    sys.exit(main())
