import os
from pathlib import Path
from typing import List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError


class ConfigError(Exception):
    pass


def load_config(path: str) -> dict:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)
    return yaml.safe_load(p.read_text()) or {}


class AppSettings(BaseModel):
    mode: str = "paper"  # paper / live
    tick_interval_ms: int = 500
    startup_timeout_s: float = 30.0


class MarketSettings(BaseModel):
    auto_discover: bool = True
    rotation_threshold_s: int = 30
    manual_strike_price: Optional[float] = None  # overrides any discovered strike
    # manual market (auto_discover: false)
    slug: str = "manual"
    token_id_up: str = ""
    token_id_down: str = ""
    strike_price: float = 0.0
    expiry_ts_ms: Optional[int] = None


class StrategySettings(BaseModel):
    max_capital_per_trade: float = 20.0
    panic_discount: float = 0.08
    scalp_profit: float = 0.01
    stop_loss_threshold: float = 0.10
    max_spread: float = 0.50
    emergency_exit_price: float = 0.50


class PaperSettings(BaseModel):
    starting_cash_usd: float = 100.0


class DataSettings(BaseModel):
    gamma_rest_base: str = "https://gamma-api.polymarket.com"
    clob_rest_base: str = "https://clob.polymarket.com"
    crypto_price_url: str = "https://polymarket.com/api/crypto/crypto-price"
    price_source: str = "rtds"  # rtds / binance
    rtds_ws_url: str = "wss://ws-live-data.polymarket.com"
    binance_ws_url: str = "wss://stream.binance.com:9443/ws/btcusdt@trade"
    binance_rest_url: str = "https://api.binance.com/api/v3/ticker/price"
    rest_fallback_seconds: float = 5.0
    http_timeout_s: float = 10.0


class LiveSettings(BaseModel):
    clob_host: str = "https://clob.polymarket.com"
    chain_id: int = 137
    signature_type: int = 1
    market_order_type: str = "FAK"
    polygon_rpc_url: str = "https://polygon-rpc.com"


class StorageSettings(BaseModel):
    events_path: str = "data/events.jsonl"
    session_dir: str = "data/sessions"


class Secrets(BaseModel):
    private_key: str = ""
    funder: str = ""
    api_key: str = ""
    api_secret: str = ""
    api_passphrase: str = ""


class BotSettings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    market: MarketSettings = Field(default_factory=MarketSettings)
    strategy: StrategySettings = Field(default_factory=StrategySettings)
    paper: PaperSettings = Field(default_factory=PaperSettings)
    data: DataSettings = Field(default_factory=DataSettings)
    live: LiveSettings = Field(default_factory=LiveSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    secrets: Secrets = Field(default_factory=Secrets)

    @property
    def paper_trade(self) -> bool:
        return self.app.mode.lower() == "paper"


def secrets_from_env(env: Mapping[str, str]) -> Secrets:
    return Secrets(
        private_key=env.get("POLYMARKET_PRIVATE_KEY", "").strip(),
        funder=env.get("POLYMARKET_FUNDER", "").strip(),
        api_key=env.get("POLYMARKET_API_KEY", "").strip(),
        api_secret=env.get("POLYMARKET_API_SECRET", "").strip(),
        api_passphrase=env.get("POLYMARKET_API_PASSPHRASE", "").strip(),
    )


def _in_unit(v: float) -> bool:
    return 0.0 <= v <= 1.0


def validate_settings(s: BotSettings) -> List[str]:
    errors: List[str] = []

    if s.app.mode.lower() not in {"paper", "live"}:
        errors.append(f"app.mode must be 'paper' or 'live', got {s.app.mode!r}")
    if not s.paper_trade:
        if not s.secrets.private_key:
            errors.append("POLYMARKET_PRIVATE_KEY is required for live trading")
        if not s.secrets.funder:
            errors.append("POLYMARKET_FUNDER (proxy address) is required for live trading")

    m = s.market
    if not m.auto_discover:
        if not m.token_id_up:
            errors.append("market.token_id_up must be set when auto_discover is disabled")
        if not m.token_id_down:
            errors.append("market.token_id_down must be set when auto_discover is disabled")
        if m.strike_price <= 0:
            errors.append("market.strike_price must be positive when auto_discover is disabled")
    if not 10 <= m.rotation_threshold_s <= 300:
        errors.append("market.rotation_threshold_s must be between 10 and 300 seconds")
    if m.manual_strike_price is not None and m.manual_strike_price <= 0:
        errors.append("market.manual_strike_price must be positive")

    st = s.strategy
    if st.max_capital_per_trade <= 0:
        errors.append("strategy.max_capital_per_trade must be positive")
    for name in ("panic_discount", "scalp_profit", "stop_loss_threshold", "max_spread", "emergency_exit_price"):
        if not _in_unit(getattr(st, name)):
            errors.append(f"strategy.{name} must be between 0 and 1")

    if s.app.tick_interval_ms <= 0:
        errors.append("app.tick_interval_ms must be positive")
    if s.paper.starting_cash_usd <= 0:
        errors.append("paper.starting_cash_usd must be positive")
    if s.data.price_source not in {"rtds", "binance"}:
        errors.append(f"data.price_source must be 'rtds' or 'binance', got {s.data.price_source!r}")
    return errors


def load_settings(path: str, env: Optional[Mapping[str, str]] = None, mode: Optional[str] = None) -> BotSettings:
    env = os.environ if env is None else env
    try:
        cfg = load_config(path)
    except (FileNotFoundError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e

    cfg.pop("secrets", None)  # secrets only come from the environment
    if mode:
        cfg.setdefault("app", {})["mode"] = mode
    if env.get("POLYGON_RPC_URL"):
        cfg.setdefault("live", {})["polygon_rpc_url"] = env["POLYGON_RPC_URL"]

    try:
        settings = BotSettings.model_validate({**cfg, "secrets": secrets_from_env(env).model_dump()})
    except ValidationError as e:
        lines = [f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ConfigError("Configuration validation failed:\n" + "\n".join(lines)) from e

    errors = validate_settings(settings)
    if errors:
        raise ConfigError("Configuration validation failed:\n" + "\n".join(errors))
    return settings
