"""Per-session dashboard state.

The dashboard owns a mutable mapping (``st.session_state`` in the app, a
plain dict in tests) holding the latest quote maps. The ratio engine only
ever receives copies of these maps.

Reference fetches are tagged with a generation number so that a fetch
started for a previously selected date is discarded when it completes
after a newer date was picked.
"""

import logging
from collections.abc import Mapping, MutableMapping
from datetime import date, datetime
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)


def init_state(state: MutableMapping[str, Any]) -> None:
    """Seed missing keys without touching existing values."""
    state.setdefault("current_quotes", {})
    state.setdefault("reference_quotes", {})
    state.setdefault("reference_date", None)
    state.setdefault("reference_loaded_date", None)
    state.setdefault("reference_generation", 0)
    state.setdefault("last_update", None)


def default_reference_date(today: date | None = None) -> date:
    """One calendar month before today (clamped to month end)."""
    today = pd.Timestamp(today) if today is not None else pd.Timestamp.today()
    return (today.normalize() - pd.DateOffset(months=1)).date()


def update_current(
    state: MutableMapping[str, Any],
    quotes: Mapping[str, float],
    now: datetime | None = None,
) -> None:
    """Replace the live quote map and stamp the update time."""
    state["current_quotes"] = dict(quotes)
    state["last_update"] = now or datetime.now()


def request_reference(state: MutableMapping[str, Any], reference_date: date) -> int:
    """Record a newly selected reference date.

    Returns:
        Generation number to hand back to apply_reference().
    """
    generation = state.get("reference_generation", 0) + 1
    state["reference_generation"] = generation
    state["reference_date"] = reference_date
    logger.debug("Requested reference quotes for %s (generation %d)",
                 reference_date, generation)
    return generation


def apply_reference(
    state: MutableMapping[str, Any],
    generation: int,
    quotes: Mapping[str, float],
) -> bool:
    """Store fetched reference quotes if they are still wanted.

    Args:
        state: Session state mapping.
        generation: Value returned by the matching request_reference().
        quotes: Fetched reference quote map.

    Returns:
        True if applied, False if a newer request superseded this one.
    """
    if generation != state.get("reference_generation"):
        logger.info(
            "Discarding stale reference quotes (generation %d, latest %d)",
            generation, state.get("reference_generation", 0),
        )
        return False
    state["reference_quotes"] = dict(quotes)
    state["reference_loaded_date"] = state.get("reference_date")
    return True


def clear_reference(state: MutableMapping[str, Any]) -> None:
    """Drop the comparison; also invalidates any in-flight reference fetch."""
    state["reference_generation"] = state.get("reference_generation", 0) + 1
    state["reference_date"] = None
    state["reference_loaded_date"] = None
    state["reference_quotes"] = {}


def has_comparison(state: Mapping[str, Any]) -> bool:
    """True when reference quotes are loaded."""
    return bool(state.get("reference_quotes"))


def needs_reference(state: Mapping[str, Any], selected_date: date | None) -> bool:
    """True when the selected date has no applied reference quotes yet.

    Compares against the date of the last applied fetch, not the last
    requested one, so a fetch that never completed is retried.
    """
    if selected_date is None:
        return False
    return selected_date != state.get("reference_loaded_date")
