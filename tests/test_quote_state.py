"""Unit tests for quote_state module."""

from datetime import date, datetime

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


class TestInitState:
    """Tests for init_state function."""

    def test_seeds_defaults(self) -> None:
        """Test an empty mapping gets every key."""
        state: dict = {}
        init_state(state)
        assert state == {
            "current_quotes": {},
            "reference_quotes": {},
            "reference_date": None,
            "reference_loaded_date": None,
            "reference_generation": 0,
            "last_update": None,
        }

    def test_keeps_existing_values(self) -> None:
        """Test a rerun does not wipe loaded quotes."""
        state = {"current_quotes": {"SOL": 150.0}, "reference_generation": 4}
        init_state(state)
        assert state["current_quotes"] == {"SOL": 150.0}
        assert state["reference_generation"] == 4


class TestDefaultReferenceDate:
    """Tests for default_reference_date function."""

    def test_one_month_back(self) -> None:
        """Test the same day of the previous month."""
        assert default_reference_date(date(2025, 10, 19)) == date(2025, 9, 19)

    def test_clamps_to_month_end(self) -> None:
        """Test March 31 maps to the end of February."""
        assert default_reference_date(date(2025, 3, 31)) == date(2025, 2, 28)

    def test_defaults_to_today(self) -> None:
        """Test the result is in the past when no date is given."""
        assert default_reference_date() < date.today()


class TestUpdateCurrent:
    """Tests for update_current function."""

    def test_replaces_quotes(self) -> None:
        """Test the live map is replaced wholesale and time stamped."""
        state: dict = {}
        init_state(state)
        now = datetime(2025, 10, 19, 12, 0, 0)
        update_current(state, {"SOL": 150.0, "SUI": 3.0}, now=now)
        update_current(state, {"SOL": 151.0}, now=now)
        assert state["current_quotes"] == {"SOL": 151.0}
        assert state["last_update"] == now

    def test_stores_a_copy(self) -> None:
        """Test later changes to the source map do not leak into state."""
        state: dict = {}
        quotes = {"SOL": 150.0}
        update_current(state, quotes)
        quotes["SOL"] = 0.0
        assert state["current_quotes"] == {"SOL": 150.0}


class TestReferenceRequests:
    """Tests for request_reference / apply_reference / clear_reference."""

    def test_applies_latest_request(self) -> None:
        """Test quotes for the current request are stored."""
        state: dict = {}
        init_state(state)
        generation = request_reference(state, date(2025, 9, 1))
        assert apply_reference(state, generation, {"SOL": 100.0})
        assert state["reference_quotes"] == {"SOL": 100.0}
        assert state["reference_date"] == date(2025, 9, 1)
        assert has_comparison(state)

    def test_discards_stale_result(self) -> None:
        """Test a slow fetch for an older date does not overwrite the newer one."""
        state: dict = {}
        init_state(state)
        old = request_reference(state, date(2025, 8, 1))
        new = request_reference(state, date(2025, 9, 1))

        assert apply_reference(state, new, {"SOL": 100.0})
        assert not apply_reference(state, old, {"SOL": 180.0})
        assert state["reference_quotes"] == {"SOL": 100.0}
        assert state["reference_date"] == date(2025, 9, 1)

    def test_clear_invalidates_in_flight(self) -> None:
        """Test clearing the date drops data and rejects pending fetches."""
        state: dict = {}
        init_state(state)
        generation = request_reference(state, date(2025, 9, 1))
        clear_reference(state)
        assert not apply_reference(state, generation, {"SOL": 100.0})
        assert state["reference_quotes"] == {}
        assert state["reference_date"] is None
        assert not has_comparison(state)

    def test_stale_result_keeps_loaded_date(self) -> None:
        """Test a discarded fetch does not mark its date as loaded."""
        state: dict = {}
        init_state(state)
        old = request_reference(state, date(2025, 8, 1))
        request_reference(state, date(2025, 9, 1))
        apply_reference(state, old, {"SOL": 180.0})
        assert state["reference_loaded_date"] is None


class TestNeedsReference:
    """Tests for needs_reference function."""

    def test_fresh_state_needs_fetch(self) -> None:
        """Test the first selected date triggers a fetch."""
        state: dict = {}
        init_state(state)
        assert needs_reference(state, date(2025, 9, 1))

    def test_no_date_selected(self) -> None:
        """Test nothing is fetched without a selected date."""
        state: dict = {}
        init_state(state)
        assert not needs_reference(state, None)

    def test_loaded_date_skips_fetch(self) -> None:
        """Test reruns with the same applied date do not refetch."""
        state: dict = {}
        init_state(state)
        generation = request_reference(state, date(2025, 9, 1))
        apply_reference(state, generation, {"SOL": 100.0})
        assert state["reference_loaded_date"] == date(2025, 9, 1)
        assert not needs_reference(state, date(2025, 9, 1))

    def test_interrupted_fetch_is_retried(self) -> None:
        """Test a request that never applied is fetched again on the next run."""
        state: dict = {}
        init_state(state)
        first = request_reference(state, date(2025, 9, 1))
        apply_reference(state, first, {"SOL": 100.0})

        # New date requested, run stopped before the fetch completed
        request_reference(state, date(2025, 8, 1))
        assert state["reference_quotes"] == {"SOL": 100.0}
        assert state["reference_loaded_date"] == date(2025, 9, 1)
        assert needs_reference(state, date(2025, 8, 1))

        retry = request_reference(state, date(2025, 8, 1))
        assert apply_reference(state, retry, {"SOL": 120.0})
        assert state["reference_quotes"] == {"SOL": 120.0}
        assert not needs_reference(state, date(2025, 8, 1))

    def test_failed_first_fetch_is_retried(self) -> None:
        """Test a first fetch that raised leaves the date pending."""
        state: dict = {}
        init_state(state)
        request_reference(state, date(2025, 9, 1))
        assert state["reference_quotes"] == {}
        assert needs_reference(state, date(2025, 9, 1))

    def test_clear_resets_loaded_date(self) -> None:
        """Test clearing the comparison makes the next selection fetch again."""
        state: dict = {}
        init_state(state)
        generation = request_reference(state, date(2025, 9, 1))
        apply_reference(state, generation, {"SOL": 100.0})
        clear_reference(state)
        assert state["reference_loaded_date"] is None
        assert needs_reference(state, date(2025, 9, 1))
