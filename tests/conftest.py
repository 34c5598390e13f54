"""Shared fixtures for the Portfolio Pulse test suite."""

from datetime import datetime

import pytest

from pulse.data import DigestHistory, PortfolioStore, StateStore


@pytest.fixture
def state():
    """In-memory state store, isolated per test."""
    return StateStore("sqlite://")


@pytest.fixture
def portfolio_store(state):
    return PortfolioStore(state, clock=lambda: datetime(2026, 10, 19, 7, 30))


@pytest.fixture
def history(state):
    return DigestHistory(state, max_history=3)


@pytest.fixture
def sample_digest_text():
    """Generated digest text in the numbered-heading layout."""
    return (
        "# Scout Pulse Portfolio Digest\n"
        "\n"
        "1. NVIDIA: Data Center Revenue Hits Record on AI Demand\n"
        "- Quarterly data center revenue rose 112% year over year\n"
        "- Guidance for next quarter came in above consensus\n"
        "Sources:\n"
        "- Reuters (https://www.reuters.com/nvda-earnings)\n"
        "- Bloomberg (https://www.bloomberg.com/nvda)\n"
        "\n"
        "2. Palantir: Regulatory Scrutiny Concerns Weigh on Shares\n"
        "- European regulators opened a data-handling inquiry\n"
        "- Shares fell 6% in two sessions\n"
        "Sources:\n"
        "- Financial Times (https://www.ft.com/pltr)\n"
        "\n"
        "3. Market Context: Fed Holds Rates Steady\n"
        "- The Federal Reserve left its policy rate unchanged\n"
    )
