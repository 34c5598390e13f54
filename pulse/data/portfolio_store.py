"""Portfolio input parsing, exposure math and persistence."""

import logging
import math
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd

from ..contracts import Holding, Portfolio
from ..errors import ValidationError
from .storage import StateStore

logger = logging.getLogger(__name__)

INPUT_FORMAT_HINT = "Use format: TICKER QUANTITY DOLLAR_VALUE"


def _parse_positive(token: str) -> Optional[float]:
    try:
        value = float(token.replace('$', '').replace(',', ''))
    except ValueError:
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def parse_holding_line(line: str) -> Optional[Holding]:
    """Parse one ``TICKER QUANTITY DOLLARVALUE`` row, or return None if malformed."""
    parts = line.split()
    if len(parts) < 3:
        return None
    ticker = parts[0].strip().upper()
    quantity = _parse_positive(parts[1])
    dollar_value = _parse_positive(parts[2])
    if not ticker or quantity is None or dollar_value is None:
        return None
    return Holding(ticker=ticker, quantity=quantity, dollar_value=dollar_value)


def calculate_exposures(holdings: List[Holding]) -> Tuple[List[Holding], float]:
    """Return holdings with exposure recomputed, plus the total value."""
    total_value = sum(h.dollar_value for h in holdings)
    recomputed = [
        Holding(
            ticker=h.ticker,
            quantity=h.quantity,
            dollar_value=h.dollar_value,
            exposure=(h.dollar_value / total_value) * 100 if total_value > 0 else 0.0,
        )
        for h in holdings
    ]
    return recomputed, total_value


class PortfolioStore:
    """Validates holdings input and owns the saved portfolio.

    Example:
        >>> store = PortfolioStore(StateStore("sqlite://"))
        >>> portfolio = store.parse_and_save("NVDA 10 5000\\nPLTR 5 1000")
        >>> round(portfolio.holdings[0].exposure, 2)
        83.33
    """

    def __init__(self,
                 state: StateStore,
                 key: str = "pulse_portfolio",
                 clock: Callable[[], datetime] = datetime.now):
        self.state = state
        self.key = key
        self.clock = clock

    def parse_and_save(self, raw_text: str) -> Portfolio:
        """Parse manual input and replace the saved portfolio.

        Args:
            raw_text: One holding per line.

        Returns:
            The newly saved portfolio.

        Raises:
            ValidationError: If no row is valid.
        """
        holdings = []
        rejected = 0
        for line in (raw_text or "").splitlines():
            if not line.strip():
                continue
            holding = parse_holding_line(line)
            if holding is None:
                rejected += 1
                logger.debug(f"Dropping malformed holding row: {line!r}")
                continue
            holdings.append(holding)

        if not holdings:
            raise ValidationError(f"No valid holdings found. {INPUT_FORMAT_HINT}")

        holdings, total_value = calculate_exposures(holdings)
        portfolio = Portfolio(
            holdings=holdings,
            total_value=total_value,
            last_updated=self.clock(),
            input_method="manual",
        )
        self.state.set(self.key, portfolio.to_dict())
        logger.info(f"Portfolio saved: {len(holdings)} holdings, ${total_value:,.2f} total"
                    + (f" ({rejected} rows dropped)" if rejected else ""))
        return portfolio

    def load(self) -> Optional[Portfolio]:
        payload = self.state.get(self.key)
        if not payload:
            return None
        return Portfolio.from_dict(payload)

    def has_portfolio(self) -> bool:
        portfolio = self.load()
        return portfolio is not None and len(portfolio.holdings) > 0

    def clear(self) -> None:
        self.state.delete(self.key)

    def exposure_for(self, ticker: str) -> Optional[float]:
        portfolio = self.load()
        if portfolio is None:
            return None
        for holding in portfolio.holdings:
            if holding.ticker == ticker.upper():
                return holding.exposure
        return None

    def to_frame(self) -> pd.DataFrame:
        """Holdings as a DataFrame sorted by exposure (largest first)."""
        portfolio = self.load()
        columns = ['ticker', 'quantity', 'dollar_value', 'exposure']
        if portfolio is None:
            return pd.DataFrame(columns=columns)
        df = pd.DataFrame([h.to_dict() for h in portfolio.holdings], columns=columns)
        return df.sort_values('exposure', ascending=False, kind='stable').reset_index(drop=True)

    def summary(self, top_n: int = 5) -> Optional[Dict]:
        """Display summary: totals plus the ``top_n`` holdings by exposure."""
        portfolio = self.load()
        if portfolio is None:
            return None
        df = self.to_frame()
        return {
            'total_value': portfolio.total_value,
            'holding_count': len(portfolio.holdings),
            'top_holdings': df.head(top_n).to_dict('records'),
            'last_updated': portfolio.last_updated.strftime('%Y-%m-%d %H:%M:%S'),
        }
