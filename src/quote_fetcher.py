"""Fetch current and historical token quotes via CCXT.

This module is the only place that talks to the exchange:
- Live last-trade prices for every tracked token
- Historical daily open prices for a reference date
- Normalising raw prices into quote maps (missing or invalid -> 0.0)
- A small CLI that prints the ratio matrix and insights
"""

import argparse
import logging
import math
import time
from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime, timezone
from typing import Any

import ccxt
from tqdm import tqdm

from src.config import (
    EXCHANGE_ID,
    LOG_DIR,
    MAX_RETRIES,
    QUOTE_CURRENCY,
    RATE_LIMIT_DELAY,
    RETRY_BACKOFF_BASE,
    TOKENS,
)
from src.quote_state import default_reference_date
from src.ratios import change_matrix, format_ratio, generate_insights, ratio_matrix

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Configure logging to both console and file."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = LOG_DIR / "quotes.log"

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(formatter)
    file_handler.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    # Avoid duplicate handlers on repeated calls (Streamlit reruns)
    if not root_logger.handlers:
        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)


def create_exchange(exchange_id: str = EXCHANGE_ID) -> ccxt.Exchange:
    """Instantiate a rate-limited CCXT exchange by id (e.g. 'bybit')."""
    exchange_class = getattr(ccxt, exchange_id)
    return exchange_class({"enableRateLimit": True})


def pair_for(symbol: str) -> str:
    """Trading pair for a token, e.g. 'SOL' -> 'SOL/USDT'."""
    return f"{symbol}/{QUOTE_CURRENCY}"


def _call_with_retries(call: Callable[[], Any], description: str) -> Any:
    for attempt in range(MAX_RETRIES):
        try:
            return call()
        except (ccxt.NetworkError, ccxt.ExchangeNotAvailable) as e:
            wait = RETRY_BACKOFF_BASE ** attempt * 5
            logger.warning(
                "CCXT error fetching %s: %s. Retrying in %ds (attempt %d/%d)",
                description, e, wait, attempt + 1, MAX_RETRIES,
            )
            time.sleep(wait)
    raise RuntimeError(f"Failed after {MAX_RETRIES} retries fetching {description}")


def normalize_quotes(
    raw: Mapping[str, Any], symbols: Sequence[str] = TOKENS
) -> dict[str, float]:
    """Turn raw prices into a quote map covering every symbol.

    Args:
        raw: Symbol to price mapping, possibly partial or holding junk.
        symbols: Symbols the map must cover.

    Returns:
        Dict with one float per symbol. Missing, None, NaN, infinite and
        negative prices become 0.0.
    """
    quotes: dict[str, float] = {}
    for symbol in symbols:
        value = raw.get(symbol)
        try:
            price = float(value) if value is not None else 0.0
        except (TypeError, ValueError):
            logger.warning("Non-numeric quote for %s: %r", symbol, value)
            price = 0.0

        if math.isnan(price) or math.isinf(price) or price < 0:
            logger.warning("Invalid quote for %s: %r, using 0", symbol, value)
            price = 0.0

        quotes[symbol] = price
    return quotes


def fetch_current_quotes(
    exchange: ccxt.Exchange, symbols: Sequence[str] = TOKENS
) -> dict[str, float]:
    """Fetch live last-trade prices for all tokens in one request.

    Args:
        exchange: CCXT exchange instance.
        symbols: Token symbols to price.

    Returns:
        Quote map; tokens the exchange did not return are 0.0.

    Raises:
        RuntimeError: If the exchange stays unreachable after retries.
    """
    pairs = [pair_for(s) for s in symbols]
    tickers = _call_with_retries(
        lambda: exchange.fetch_tickers(pairs), ", ".join(pairs)
    )

    raw = {}
    for symbol in symbols:
        ticker = tickers.get(pair_for(symbol)) or {}
        raw[symbol] = ticker.get("last")
        if raw[symbol] is None:
            logger.warning("No live price returned for %s", pair_for(symbol))

    quotes = normalize_quotes(raw, symbols)
    logger.debug("Current quotes: %s", quotes)
    return quotes


def parse_reference_date(value: str | date) -> date:
    """Parse a YYYY-MM-DD string (or pass a date through).

    Raises:
        ValueError: If the string is not a valid date.
    """
    if isinstance(value, date):
        return value
    return datetime.strptime(value, "%Y-%m-%d").date()


def fetch_historical_quote(
    exchange: ccxt.Exchange, symbol: str, reference_date: date | str
) -> float:
    """Fetch the opening price of a token on a given UTC day.

    Args:
        exchange: CCXT exchange instance.
        symbol: Token symbol (e.g. "SOL").
        reference_date: Calendar day, date or YYYY-MM-DD string.

    Returns:
        Open of the daily candle starting at 00:00 UTC, or 0.0 if the
        exchange has no candle for that day.
    """
    day = parse_reference_date(reference_date)
    day_start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    since_ms = int(day_start.timestamp() * 1000)
    pair = pair_for(symbol)

    candles = _call_with_retries(
        lambda: exchange.fetch_ohlcv(pair, "1d", since=since_ms, limit=1), pair
    )
    if not candles:
        logger.warning("No candle for %s on %s", pair, day)
        return 0.0

    ts_ms, open_p = candles[0][0], candles[0][1]
    if ts_ms != since_ms:
        # Exchange returned the first candle after the date (token not listed yet)
        logger.warning("No candle for %s on %s (first is %d)", pair, day, ts_ms)
        return 0.0
    return float(open_p)


def fetch_historical_quotes(
    exchange: ccxt.Exchange,
    reference_date: date | str,
    symbols: Sequence[str] = TOKENS,
    progress: bool = False,
) -> dict[str, float]:
    """Fetch reference quotes for every token on a given day.

    A token that cannot be fetched is logged and recorded as 0.0 so the
    rest of the map is still usable.

    Args:
        exchange: CCXT exchange instance.
        reference_date: Calendar day, date or YYYY-MM-DD string.
        symbols: Token symbols to price.
        progress: Show a tqdm progress bar (CLI use).

    Returns:
        Quote map covering every symbol.
    """
    raw: dict[str, float] = {}
    for symbol in tqdm(symbols, desc="Fetching reference quotes", disable=not progress):
        try:
            raw[symbol] = fetch_historical_quote(exchange, symbol, reference_date)
        except Exception as e:
            logger.error("Failed to fetch %s: %s", pair_for(symbol), e)
            raw[symbol] = 0.0
            continue
        time.sleep(RATE_LIMIT_DELAY)

    quotes = normalize_quotes(raw, symbols)
    logger.info("Reference quotes for %s: %s", reference_date, quotes)
    return quotes


def main(reference_date: str | None = None, exchange_id: str = EXCHANGE_ID) -> None:
    """Print the live ratio matrix, changes and insights to the terminal.

    Args:
        reference_date: Comparison day (YYYY-MM-DD); no comparison if None.
        exchange_id: CCXT exchange id.
    """
    setup_logging()
    exchange = create_exchange(exchange_id)
    logger.info("Fetching quotes from %s via CCXT", exchange_id)

    current = fetch_current_quotes(exchange)
    reference: dict[str, float] = {}
    if reference_date:
        reference = fetch_historical_quotes(exchange, reference_date, progress=True)

    print("\nPrices:")
    for symbol, price in current.items():
        print(f"  {symbol:>6s}  ${price:,.2f}")

    print("\nRatio matrix (row priced in column units):")
    print(ratio_matrix(current).to_string(float_format=format_ratio))

    if reference:
        print(f"\nRatio change since {reference_date} (%):")
        print(change_matrix(current, reference).to_string(float_format="{:+.2f}".format))

        print("\nInsights:")
        for insight in generate_insights(current, reference, reference_date):
            print(f"  - {insight}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Print token price ratios and insights")
    parser.add_argument("--date", default=default_reference_date().isoformat(),
                        type=lambda s: parse_reference_date(s).isoformat(),
                        help="Reference date to compare with (YYYY-MM-DD)")
    parser.add_argument("--no-compare", action="store_true",
                        help="Only print live ratios")
    parser.add_argument("--exchange", default=EXCHANGE_ID,
                        help="CCXT exchange id (default from EXCHANGE_ID)")
    args = parser.parse_args()
    main(reference_date=None if args.no_compare else args.date,
         exchange_id=args.exchange)
