"""TOML config loading and profiles."""

from __future__ import annotations

import logging
import sys
import tomllib
from pathlib import Path
from typing import Any

from skewmarket.exceptions import ConfigError

# Default config search path (project root or cwd)
_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent.parent / "config"
_CWD_CONFIG = Path.cwd() / "config"


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override values take precedence."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _find_config_dir(config_dir: Path | None = None) -> Path:
    if config_dir is not None:
        return config_dir
    if _CWD_CONFIG.exists():
        return _CWD_CONFIG
    return _CONFIG_DIR


def load_config(profile: str | None = None, config_dir: Path | None = None) -> dict[str, Any]:
    """Load merged config from default.toml and optional profile overlay."""
    config_dir = _find_config_dir(config_dir)
    default_path = config_dir / "default.toml"
    if not default_path.exists():
        return {}
    base = _load_toml(default_path)
    if profile:
        profile_path = config_dir / f"{profile}.toml"
        if profile_path.exists():
            overlay = _load_toml(profile_path)
            base = _deep_merge(base, overlay)
    return base


def get_settings(profile: str | None = None, config_dir: Path | None = None) -> Settings:
    """Return Settings instance from merged config."""
    raw = load_config(profile, config_dir)
    return Settings.from_dict(raw)


class Settings:
    """Application settings from TOML config. Every accessor has a default, so an empty config works."""

    def __init__(
        self,
        *,
        polling: dict[str, Any] | None = None,
        gamma: dict[str, Any] | None = None,
        feeds: dict[str, Any] | None = None,
        reconnect: dict[str, Any] | None = None,
        scoring: dict[str, Any] | None = None,
        alpha: dict[str, Any] | None = None,
        lag: dict[str, Any] | None = None,
        news: dict[str, Any] | None = None,
        storage: dict[str, Any] | None = None,
        logging: dict[str, Any] | None = None,
    ):
        self.polling = polling or {}
        self.gamma = gamma or {}
        self.feeds = feeds or {}
        self.reconnect = reconnect or {}
        self.scoring = scoring or {}
        self.alpha = alpha or {}
        self.lag = lag or {}
        self.news = news or {}
        self.storage = storage or {}
        self.logging = logging or {}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Settings:
        return cls(
            polling=raw.get("polling"),
            gamma=raw.get("gamma"),
            feeds=raw.get("feeds"),
            reconnect=raw.get("reconnect"),
            scoring=raw.get("scoring"),
            alpha=raw.get("alpha"),
            lag=raw.get("lag"),
            news=raw.get("news"),
            storage=raw.get("storage"),
            logging=raw.get("logging"),
        )

    # Polling / orchestrator
    @property
    def poll_interval_sec(self) -> float:
        return float(self.polling.get("interval_sec", 60.0))

    @property
    def event_limit(self) -> int:
        return int(self.polling.get("event_limit", 200))

    @property
    def min_confidence(self) -> int:
        return int(self.polling.get("min_confidence", 50))

    @property
    def verified_confidence(self) -> int:
        return int(self.polling.get("verified_confidence", 80))

    @property
    def gamma_api_base(self) -> str:
        return self.gamma.get("api_base", "https://gamma-api.polymarket.com")

    @property
    def gamma_timeout_sec(self) -> float:
        return float(self.gamma.get("timeout_sec", 30.0))

    # Feeds
    @property
    def odds_feed(self) -> dict[str, Any]:
        return dict(self.feeds.get("odds") or {})

    @property
    def spot_feed(self) -> dict[str, Any]:
        return dict(self.feeds.get("spot") or {})

    @property
    def clob_ws_url(self) -> str:
        return self.odds_feed.get("url", "wss://ws-subscriptions-clob.polymarket.com/ws/market")

    @property
    def binance_ws_base(self) -> str:
        return self.spot_feed.get("url", "wss://stream.binance.com:9443/stream")

    @property
    def spot_symbols(self) -> list[str]:
        return [s.upper() for s in (self.spot_feed.get("symbols") or ["BTC", "ETH", "SOL"])]

    @property
    def reconnect_base_delay_sec(self) -> float:
        return float(self.reconnect.get("base_delay_sec", 1.0))

    @property
    def reconnect_max_delay_sec(self) -> float:
        return float(self.reconnect.get("max_delay_sec", 30.0))

    @property
    def reconnect_max_attempts(self) -> int:
        return int(self.reconnect.get("max_attempts", 10))

    # Scoring
    @property
    def multi_max_deviation(self) -> float:
        return float(self.scoring.get("multi_max_deviation", 15.0))

    @property
    def min_edge_percent(self) -> float:
        return float(self.scoring.get("min_edge", 0.5))

    # Alpha ledger
    @property
    def alpha_max_entries(self) -> int:
        return int(self.alpha.get("max_entries", 50))

    @property
    def alpha_max_age_days(self) -> int:
        return int(self.alpha.get("max_age_days", 30))

    @property
    def alpha_storage_key(self) -> str:
        return self.alpha.get("storage_key", "skewmarket_alpha_log")

    # Lag
    @property
    def lag_max_days(self) -> float:
        return float(self.lag.get("max_days", 30.0))

    # News
    @property
    def news_base_url(self) -> str:
        return self.news.get("base_url", "https://news.google.com/rss")

    @property
    def news_min_refetch_sec(self) -> float:
        return float(self.news.get("min_refetch_sec", 30.0))

    # Storage
    @property
    def db_path(self) -> str:
        return self.storage.get("db_path", "data/skewmarket.duckdb")

    # Logging
    @property
    def logging_level(self) -> str:
        return self.logging.get("level", "INFO").upper()

    @property
    def logging_format(self) -> str:
        return self.logging.get("format", "console")

    @property
    def logging_level_num(self) -> int:
        return getattr(logging, self.logging_level, logging.INFO)


def _stderr_logger(*args: Any) -> Any:
    import structlog

    return structlog.PrintLogger(sys.stderr)


def configure_logging(settings: Settings) -> None:
    """Configure structlog once at entry. Logs go to stderr so command output on stdout stays clean."""
    import structlog

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if settings.logging_format == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.logging_level_num),
        context_class=dict,
        logger_factory=_stderr_logger,
        # uncached, so each logger picks up the current sys.stderr
        cache_logger_on_first_use=False,
    )
