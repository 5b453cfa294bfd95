"""Exception hierarchy. Only transport and configuration problems raise; malformed data degrades to None."""

from __future__ import annotations


class SkewMarketError(Exception):
    """Base class for errors raised by skewmarket."""


class UpstreamError(SkewMarketError):
    """An upstream HTTP source (Gamma, news) could not be reached or answered with an error status."""

    def __init__(self, source: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
        self.status_code = status_code


class ConfigError(SkewMarketError):
    """Invalid configuration value or unknown option (e.g. an unknown filter name)."""
