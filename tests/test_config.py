"""Config loading: defaults, profile overlay, invalid TOML."""

from pathlib import Path

import pytest

from skewmarket.config import Settings, get_settings, load_config
from skewmarket.exceptions import ConfigError


def test_empty_config_uses_defaults(tmp_path):
    settings = get_settings(config_dir=tmp_path)
    assert settings.poll_interval_sec == 60.0
    assert settings.event_limit == 200
    assert settings.spot_symbols == ["BTC", "ETH", "SOL"]
    assert settings.reconnect_max_attempts == 10
    assert settings.logging_level == "INFO"


def test_profile_is_deep_merged(tmp_path):
    (tmp_path / "default.toml").write_text(
        '[polling]\ninterval_sec = 60\nevent_limit = 200\n\n[feeds.spot]\nsymbols = ["btc", "eth"]\ninitial_delay_sec = 0.3\n'
    )
    (tmp_path / "dev.toml").write_text('[polling]\ninterval_sec = 5\n\n[feeds.spot]\ninitial_delay_sec = 0\n\n[logging]\nlevel = "debug"\n')

    base = get_settings(config_dir=tmp_path)
    assert base.poll_interval_sec == 60.0
    assert base.spot_symbols == ["BTC", "ETH"]

    dev = get_settings("dev", tmp_path)
    assert dev.poll_interval_sec == 5.0
    assert dev.event_limit == 200
    assert dev.spot_feed == {"symbols": ["btc", "eth"], "initial_delay_sec": 0}
    assert dev.logging_level == "DEBUG"

    assert load_config("missing", tmp_path) == load_config(None, tmp_path)


def test_invalid_toml_raises_config_error(tmp_path):
    (tmp_path / "default.toml").write_text("[polling\ninterval_sec = ")
    with pytest.raises(ConfigError):
        load_config(config_dir=tmp_path)


def test_shipped_defaults_load():
    settings = get_settings()
    assert settings.clob_ws_url.startswith("wss://")
    assert settings.alpha_storage_key == "skewmarket_alpha_log"
    assert Settings().min_edge_percent == settings.min_edge_percent


def test_shipped_news_section_only_holds_read_keys():
    settings = get_settings(config_dir=Path(__file__).resolve().parents[1] / "config")
    assert set(settings.news) == {"base_url", "min_refetch_sec"}
    assert settings.news_min_refetch_sec == 30.0
