"""Test fixtures for LP ratio dashboard tests."""

from unittest.mock import MagicMock

import ccxt
import pytest


@pytest.fixture
def live_quotes() -> dict[str, float]:
    """Live quotes with round ratios."""
    return {"HYPE": 30.0, "SUI": 3.0, "SOL": 150.0}


@pytest.fixture
def flat_reference() -> dict[str, float]:
    """Reference quotes with every token at the same price."""
    return {"HYPE": 100.0, "SUI": 100.0, "SOL": 100.0}


@pytest.fixture
def sample_tickers_response() -> dict:
    """Sample CCXT fetch_tickers response."""
    return {
        "HYPE/USDT": {"symbol": "HYPE/USDT", "last": 30.0, "quoteVolume": 900_000_000},
        "SUI/USDT": {"symbol": "SUI/USDT", "last": 3.0, "quoteVolume": 400_000_000},
        "SOL/USDT": {"symbol": "SOL/USDT", "last": 150.0, "quoteVolume": 2_000_000_000},
    }


@pytest.fixture
def reference_opens() -> dict[str, float]:
    """Daily open prices returned by the mock exchange for any date."""
    return {"HYPE/USDT": 25.0, "SUI/USDT": 5.0, "SOL/USDT": 100.0}


@pytest.fixture
def mock_exchange(sample_tickers_response, reference_opens):
    """Mock CCXT exchange returning tickers and one daily candle per request."""
    exchange = MagicMock(spec=ccxt.bybit)
    exchange.fetch_tickers.return_value = sample_tickers_response

    def fetch_ohlcv(pair, timeframe, since=None, limit=None):
        open_p = reference_opens[pair]
        return [[since, open_p, open_p * 1.05, open_p * 0.95, open_p * 1.01, 1000.0]]

    exchange.fetch_ohlcv.side_effect = fetch_ohlcv
    return exchange


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Disable sleeps in the fetcher and record requested waits."""
    waits: list[float] = []
    monkeypatch.setattr("src.quote_fetcher.time.sleep", waits.append)
    return waits
