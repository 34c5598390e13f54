"""Portfolio Pulse: scheduled, portfolio-aware news digests."""

__version__ = "0.1.0"
