"""Main Streamlit dashboard entry point for the LP Ratio Dashboard.

Run with: streamlit run src/dashboard.py
"""

import logging
import sys
from datetime import date
from pathlib import Path

import pandas as pd
import plotly.express as px
import streamlit as st

# Ensure src is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import EXCHANGE_ID, POLL_INTERVAL, QUOTE_CURRENCY, TOKENS
from src.quote_fetcher import (
    create_exchange,
    fetch_current_quotes,
    fetch_historical_quotes,
    setup_logging,
)
from src.quote_state import (
    apply_reference,
    clear_reference,
    default_reference_date,
    has_comparison,
    init_state,
    needs_reference,
    request_reference,
    update_current,
)
from src.ratios import (
    calculate_ratio,
    change_matrix,
    change_shade,
    format_change,
    format_ratio,
    generate_insights,
    ratio_matrix,
)

logger = logging.getLogger(__name__)

SHADE_COLORS = {
    3: "background-color: #bbf7d0",
    2: "background-color: #dcfce7",
    1: "background-color: #f0fdf4",
    0: "",
    -1: "background-color: #fef2f2",
    -2: "background-color: #fee2e2",
    -3: "background-color: #fecaca",
}
DIAGONAL_STYLE = "background-color: #e5e7eb; color: #6b7280"

HEADLINE_PAIRS = (("HYPE", "SUI"), ("SOL", "HYPE"), ("SOL", "SUI"))

st.set_page_config(
    page_title="LP Ratio Dashboard",
    page_icon="⚖️",
    layout="wide",
    initial_sidebar_state="expanded",
)

setup_logging()
init_state(st.session_state)


@st.cache_resource
def get_exchange():
    """Shared CCXT exchange instance."""
    return create_exchange()


def build_matrix_table(
    ratios: pd.DataFrame, changes: pd.DataFrame, compare: bool
) -> pd.DataFrame:
    """Ratio cells as text, with the change glyph appended when comparing."""
    table = ratios.map(format_ratio)
    if compare:
        for row in ratios.index:
            for col in ratios.columns:
                if row != col:
                    table.loc[row, col] += f"  {format_change(changes.loc[row, col])}"
    return table


def shade_cells(changes: pd.DataFrame, compare: bool) -> pd.DataFrame:
    """CSS for each matrix cell based on its change bucket."""
    styles = pd.DataFrame("", index=changes.index, columns=changes.columns)
    for row in changes.index:
        for col in changes.columns:
            if row == col:
                styles.loc[row, col] = DIAGONAL_STYLE
            elif compare:
                styles.loc[row, col] = SHADE_COLORS[change_shade(changes.loc[row, col])]
    return styles


# Sidebar
st.sidebar.title("⚖️ LP Ratio Dashboard")
st.sidebar.markdown("---")

if st.sidebar.button("🔄 Refresh Now"):
    st.rerun()

st.sidebar.markdown(f"Live prices refresh every **{POLL_INTERVAL}s**.")
st.sidebar.markdown("---")
st.sidebar.caption(f"Data source: {EXCHANGE_ID.title()} via CCXT ({QUOTE_CURRENCY} pairs)")

st.title("Crypto Comparison for LP-ing")

# Reference date picker
col_toggle, col_date = st.columns([1, 2])
compare_enabled = col_toggle.checkbox("Compare with a past date", value=True)
selected_date = col_date.date_input(
    "Compare with:",
    value=default_reference_date(),
    max_value=date.today(),
    disabled=not compare_enabled,
    key="reference_picker",
)

if not compare_enabled or selected_date is None:
    if (st.session_state["reference_date"] is not None
            or st.session_state["reference_loaded_date"] is not None):
        clear_reference(st.session_state)
elif needs_reference(st.session_state, selected_date):
    generation = request_reference(st.session_state, selected_date)
    try:
        with st.spinner(f"Loading prices for {selected_date:%b %d, %Y}..."):
            reference_quotes = fetch_historical_quotes(get_exchange(), selected_date)
    except Exception as e:
        logger.error("Failed to fetch reference quotes for %s: %s", selected_date, e)
        st.warning(f"Could not load prices for {selected_date}: {e}")
    else:
        apply_reference(st.session_state, generation, reference_quotes)


@st.fragment(run_every=POLL_INTERVAL)
def live_view() -> None:
    """Poll live quotes and render everything derived from them."""
    try:
        quotes = fetch_current_quotes(get_exchange())
    except Exception as e:
        logger.error("Failed to fetch live quotes: %s", e)
        st.warning(f"Could not refresh live prices: {e}")
    else:
        update_current(st.session_state, quotes)

    current = dict(st.session_state["current_quotes"])
    reference = dict(st.session_state["reference_quotes"])
    reference_date = st.session_state["reference_loaded_date"]
    compare = has_comparison(st.session_state)
    last_update = st.session_state["last_update"]

    if last_update is None:
        st.info("Loading prices...")
        return
    st.caption(f"Last updated: {last_update:%H:%M:%S}")

    # Spot prices and headline ratios
    price_cols = st.columns(len(TOKENS))
    for col, symbol in zip(price_cols, TOKENS):
        col.metric(symbol, f"${current.get(symbol, 0):,.2f}")

    ratio_cols = st.columns(len(HEADLINE_PAIRS))
    for col, (base, quote) in zip(ratio_cols, HEADLINE_PAIRS):
        col.metric(f"{base}/{quote}", format_ratio(calculate_ratio(base, quote, current)))

    st.markdown("---")

    ratios = ratio_matrix(current)
    changes = change_matrix(current, reference)

    st.subheader("Pair Ratio Matrix")
    if compare:
        st.caption(f"Comparing current prices with {reference_date:%a %b %d %Y}")
    table = build_matrix_table(ratios, changes, compare)
    st.dataframe(
        table.style.apply(lambda _: shade_cells(changes, compare), axis=None),
        width="stretch",
    )
    st.caption("Matrix shows how many units of the column coin equal 1 unit "
               "of the row coin")

    if compare:
        st.subheader("Ratio Change Heatmap")
        bound = max(float(changes.abs().to_numpy().max()), 1.0)
        fig = px.imshow(
            changes,
            text_auto=".2f",
            color_continuous_scale="RdYlGn",
            zmin=-bound,
            zmax=bound,
            labels={"x": "Quote", "y": "Base", "color": "% change"},
        )
        fig.update_layout(height=400)
        st.plotly_chart(fig, width="stretch")

    insights = generate_insights(current, reference, reference_date)
    if insights:
        st.subheader("💡 Market Insights")
        for insight in insights:
            st.info(insight)


live_view()
