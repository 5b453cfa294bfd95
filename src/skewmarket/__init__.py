"""SkewMarket - real-time prediction market analytics."""

__version__ = "0.1.0"
