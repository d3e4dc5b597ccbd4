"""Compute pairwise price ratios, ratio changes and LP rotation insights.

Everything in this module is a pure function of its inputs:
- Ratio matrix for a set of token quotes
- Percent change of each ratio against a reference snapshot
- Rule-based insight strings derived from token and pair changes
- Formatting helpers used when rendering the matrices

A quote missing from a quote map counts as 0.0. Division by a zero quote
or a zero reference ratio yields 0.0 rather than raising.
"""

from collections.abc import Mapping, Sequence
from datetime import date

import pandas as pd

from src.config import (
    DIP_THRESHOLD,
    PAIR_ROTATION_THRESHOLD,
    ROTATE_GAIN_THRESHOLD,
    ROTATION_PAIRS,
    TAKE_PROFIT_THRESHOLD,
    TOKENS,
)

STABLE_INSIGHT = (
    "📊 Markets are relatively stable. All pairs showing minimal volatility"
    " - good time to hold current LP positions."
)


def calculate_ratio(base: str, quote: str, quotes: Mapping[str, float]) -> float:
    """Price of one `base` unit expressed in `quote` units.

    Args:
        base: Row token symbol.
        quote: Column token symbol.
        quotes: Token symbol to price mapping.

    Returns:
        1.0 on the diagonal, 0.0 when the quote price is zero or missing,
        otherwise quotes[base] / quotes[quote].
    """
    if base == quote:
        return 1.0
    base_price = quotes.get(base, 0) or 0
    quote_price = quotes.get(quote, 0) or 0
    if quote_price == 0:
        return 0.0
    return base_price / quote_price


def ratio_matrix(
    quotes: Mapping[str, float], symbols: Sequence[str] = TOKENS
) -> pd.DataFrame:
    """Build the full N x N ratio matrix, rows and columns in symbol order."""
    return pd.DataFrame(
        [[calculate_ratio(row, col, quotes) for col in symbols] for row in symbols],
        index=list(symbols),
        columns=list(symbols),
    )


def calculate_change(
    base: str,
    quote: str,
    current: Mapping[str, float],
    reference: Mapping[str, float],
) -> float:
    """Percent change of the base/quote ratio from reference to current.

    Args:
        base: Row token symbol.
        quote: Column token symbol.
        current: Live quotes.
        reference: Historical quotes for the comparison date.

    Returns:
        Signed percentage, 0.0 on the diagonal, for an empty reference,
        or when the reference ratio is zero.
    """
    if base == quote or not reference:
        return 0.0

    current_ratio = calculate_ratio(base, quote, current)
    reference_ratio = calculate_ratio(base, quote, reference)

    if reference_ratio == 0:
        return 0.0
    return (current_ratio - reference_ratio) / reference_ratio * 100


def change_matrix(
    current: Mapping[str, float],
    reference: Mapping[str, float],
    symbols: Sequence[str] = TOKENS,
) -> pd.DataFrame:
    """Build the N x N matrix of ratio changes, rows and columns in symbol order."""
    return pd.DataFrame(
        [
            [calculate_change(row, col, current, reference) for col in symbols]
            for row in symbols
        ],
        index=list(symbols),
        columns=list(symbols),
    )


def token_changes(
    current: Mapping[str, float],
    reference: Mapping[str, float],
    symbols: Sequence[str] = TOKENS,
) -> list[tuple[str, float]]:
    """Percent change of each token's own price, in symbol order."""
    changes = []
    for symbol in symbols:
        now = current.get(symbol, 0) or 0
        then = reference.get(symbol, 0) or 0
        if then == 0:
            changes.append((symbol, 0.0))
        else:
            changes.append((symbol, (now - then) / then * 100))
    return changes


def _format_date(reference_date: date | str | None) -> str:
    if reference_date is None:
        return "the reference date"
    if hasattr(reference_date, "strftime"):
        return reference_date.strftime("%Y-%m-%d")
    return str(reference_date)


def _pair_insight(base: str, quote: str, change: float) -> str:
    if change > 0:
        expensive, cheap = base, quote
    else:
        expensive, cheap = quote, base
    return (
        f"🔄 {expensive}/{cheap}: Ratio up {abs(change):.1f}%. "
        f"{expensive} is expensive relative to {cheap}"
        f" - consider rotating {expensive} LP → {cheap} LP."
    )


def generate_insights(
    current: Mapping[str, float],
    reference: Mapping[str, float],
    reference_date: date | str | None = None,
    symbols: Sequence[str] = TOKENS,
) -> list[str]:
    """Generate LP strategy insights from token and pair changes.

    Rules are evaluated in a fixed order. Rotation and take-profit are
    mutually exclusive; every other rule is independent. When nothing
    fires, a single "stable" insight is returned.

    Args:
        current: Live quotes.
        reference: Historical quotes for the comparison date.
        reference_date: Comparison date, only used for wording.
        symbols: Ordered token symbols.

    Returns:
        Insight strings, empty when there is no reference data.
    """
    insights: list[str] = []

    if not reference or not symbols:
        return insights

    # Stable sort keeps symbol order among ties
    ranked = sorted(
        token_changes(current, reference, symbols),
        key=lambda item: item[1],
        reverse=True,
    )
    best_symbol, best_change = ranked[0]
    worst_symbol, worst_change = ranked[-1]

    if best_change > ROTATE_GAIN_THRESHOLD and worst_change < 0:
        insights.append(
            f"🎯 LP Strategy: {best_symbol} gained {best_change:.1f}% while "
            f"{worst_symbol} declined {abs(worst_change):.1f}%. Consider taking "
            f"profit from {best_symbol} LP and moving to {worst_symbol} LP to "
            f"buy the dip."
        )
    elif best_change > TAKE_PROFIT_THRESHOLD:
        insights.append(
            f"💰 Take Profit: {best_symbol} surged {best_change:.1f}% since "
            f"{_format_date(reference_date)}. Consider rebalancing LP to lock "
            f"in gains."
        )

    if worst_change < DIP_THRESHOLD:
        insights.append(
            f"📉 Buy Opportunity: {worst_symbol} dropped {abs(worst_change):.1f}%. "
            f"Good entry point for LP position - buy low, sell high strategy."
        )

    for base, quote in ROTATION_PAIRS:
        if base not in symbols or quote not in symbols:
            continue
        change = calculate_change(base, quote, current, reference)
        if abs(change) > PAIR_ROTATION_THRESHOLD:
            insights.append(_pair_insight(base, quote, change))

    if not insights:
        insights.append(STABLE_INSIGHT)

    return insights


def format_ratio(value: float) -> str:
    """Format a ratio with four fractional digits."""
    return f"{value:.4f}"


def format_change(value: float) -> str:
    """Format a change as a direction glyph plus absolute percentage."""
    if value > 0:
        return f"▲ {abs(value):.2f}%"
    if value < 0:
        return f"▼ {abs(value):.2f}%"
    return "0.00%"


def change_shade(value: float) -> int:
    """Bucket a change into a shade level from -3 (deep red) to 3 (deep green)."""
    magnitude = abs(value)
    if magnitude > 20:
        level = 3
    elif magnitude > 10:
        level = 2
    elif magnitude > 0:
        level = 1
    else:
        level = 0
    return level if value >= 0 else -level
