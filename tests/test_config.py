"""
Tests for YAML settings loading and validation.
"""

import pytest
import yaml

from polymarket_vulture.config import ConfigError, load_settings

LIVE_ENV = {"POLYMARKET_PRIVATE_KEY": "0xabc", "POLYMARKET_FUNDER": "0xdef"}


def write(tmp_path, cfg):
    p = tmp_path / "config.yaml"
    p.write_text(yaml.safe_dump(cfg))
    return str(p)


class TestDefaults:
    def test_empty_file_gives_defaults(self, tmp_path):
        p = tmp_path / "empty.yaml"
        p.write_text("")
        s = load_settings(str(p), env={})
        assert s.paper_trade
        assert s.strategy.panic_discount == 0.08
        assert s.strategy.scalp_profit == 0.01
        assert s.strategy.stop_loss_threshold == 0.10
        assert s.strategy.max_capital_per_trade == 20.0
        assert s.market.rotation_threshold_s == 30
        assert s.app.tick_interval_ms == 500
        assert s.paper.starting_cash_usd == 100.0

    def test_shipped_default_config(self):
        from pathlib import Path
        path = Path(__file__).resolve().parents[1] / "config" / "default.yaml"
        s = load_settings(str(path), env={})
        assert s.data.price_source == "rtds"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_settings(str(tmp_path / "nope.yaml"), env={})


class TestLiveMode:
    def test_requires_key_and_proxy(self, tmp_path):
        with pytest.raises(ConfigError) as e:
            load_settings(write(tmp_path, {"app": {"mode": "live"}}), env={})
        assert "POLYMARKET_PRIVATE_KEY" in str(e.value)
        assert "POLYMARKET_FUNDER" in str(e.value)

    def test_secrets_from_env(self, tmp_path):
        s = load_settings(write(tmp_path, {"app": {"mode": "live"}}), env=LIVE_ENV)
        assert not s.paper_trade
        assert s.secrets.private_key == "0xabc"

    def test_yaml_secrets_ignored(self, tmp_path):
        cfg = {"app": {"mode": "live"}, "secrets": {"private_key": "0xyaml", "funder": "0xyaml"}}
        with pytest.raises(ConfigError):
            load_settings(write(tmp_path, cfg), env={})

    def test_mode_override(self, tmp_path):
        s = load_settings(write(tmp_path, {"app": {"mode": "live"}}), env={}, mode="paper")
        assert s.paper_trade

    def test_rpc_url_from_env(self, tmp_path):
        s = load_settings(write(tmp_path, {}), env={"POLYGON_RPC_URL": "https://rpc.example"})
        assert s.live.polygon_rpc_url == "https://rpc.example"


class TestValidation:
    def test_manual_market_needs_tokens_and_strike(self, tmp_path):
        with pytest.raises(ConfigError) as e:
            load_settings(write(tmp_path, {"market": {"auto_discover": False}}), env={})
        msg = str(e.value)
        assert "token_id_up" in msg
        assert "token_id_down" in msg
        assert "strike_price" in msg

    def test_manual_market_ok(self, tmp_path):
        cfg = {"market": {"auto_discover": False, "token_id_up": "u", "token_id_down": "d", "strike_price": 98000}}
        s = load_settings(write(tmp_path, cfg), env={})
        assert s.market.strike_price == 98000.0

    @pytest.mark.parametrize("threshold", [9, 301])
    def test_rotation_threshold_bounds(self, tmp_path, threshold):
        with pytest.raises(ConfigError, match="rotation_threshold_s"):
            load_settings(write(tmp_path, {"market": {"rotation_threshold_s": threshold}}), env={})

    @pytest.mark.parametrize("threshold", [10, 300])
    def test_rotation_threshold_edges_ok(self, tmp_path, threshold):
        s = load_settings(write(tmp_path, {"market": {"rotation_threshold_s": threshold}}), env={})
        assert s.market.rotation_threshold_s == threshold

    def test_all_problems_reported_together(self, tmp_path):
        cfg = {
            "strategy": {"max_capital_per_trade": 0, "panic_discount": 1.5, "max_spread": -0.1},
            "app": {"tick_interval_ms": 0},
            "data": {"price_source": "carrier-pigeon"},
        }
        with pytest.raises(ConfigError) as e:
            load_settings(write(tmp_path, cfg), env={})
        msg = str(e.value)
        for key in ("max_capital_per_trade", "panic_discount", "max_spread", "tick_interval_ms", "price_source"):
            assert key in msg

    def test_type_errors_become_config_errors(self, tmp_path):
        with pytest.raises(ConfigError):
            load_settings(write(tmp_path, {"strategy": {"scalp_profit": "lots"}}), env={})
