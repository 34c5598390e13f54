"""Portfolio input handling and state storage."""

from .portfolio_store import PortfolioStore, calculate_exposures, parse_holding_line
from .storage import DigestHistory, StateStore

__all__ = [
    "PortfolioStore",
    "calculate_exposures",
    "parse_holding_line",
    "DigestHistory",
    "StateStore",
]
