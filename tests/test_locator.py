"""
Unit tests for bracketing and range lookups
"""
import pytest

from nztides.locator import in_range, locate, timestamps_of
from tests.tdat import BASIC_TIDES, make_records


@pytest.fixture
def records():
    return make_records(BASIC_TIDES)


def stamps(interval):
    return (
        interval.previous.timestamp if interval.previous else None,
        interval.next.timestamp if interval.next else None,
    )


class TestLocate:
    """Tests for finding the extrema around a time."""

    def test_between_records(self, records):
        """A time between two records is bracketed by them."""
        interval = locate(records, 1500)
        assert stamps(interval) == (1000, 2000)
        assert interval.is_valid
        assert interval.duration_seconds == 1000

    def test_exact_match_skips_pivot(self, records):
        """A time on a record is bracketed by that record's neighbours."""
        assert stamps(locate(records, 2000)) == (1000, 3000)

    def test_before_first_record(self, records):
        """Should have no previous tide before the first record."""
        interval = locate(records, 500)
        assert stamps(interval) == (None, 1000)
        assert not interval.is_valid
        assert interval.duration_seconds == 0

    def test_after_last_record(self, records):
        """Should have no next tide after the last record."""
        assert stamps(locate(records, 4500)) == (4000, None)

    def test_exact_match_on_first_record(self, records):
        """Should have no previous tide on the first record."""
        assert stamps(locate(records, 1000)) == (None, 2000)

    def test_exact_match_on_last_record(self, records):
        """Should have no next tide on the last record."""
        assert stamps(locate(records, 4000)) == (3000, None)

    def test_one_second_either_side(self, records):
        """Times next to a record bracket against that record."""
        assert stamps(locate(records, 1999)) == (1000, 2000)
        assert stamps(locate(records, 2001)) == (2000, 3000)

    def test_precomputed_timestamps(self, records):
        """Passing the timestamp array gives the same answer."""
        timestamps = timestamps_of(records)
        for t in (500, 1000, 1500, 2000, 4000, 4500):
            assert locate(records, t, timestamps) == locate(records, t)


class TestInRange:
    """Tests for inclusive range queries."""

    def test_inclusive_bounds(self, records):
        """Should include records on both ends of the window."""
        result = in_range(records, 1000, 3000)
        assert [r.timestamp for r in result] == [1000, 2000, 3000]

    def test_empty_window(self, records):
        """Should return nothing for a window between two records."""
        assert in_range(records, 1500, 1900) == ()

    def test_single_point(self, records):
        """Should return the one record in a zero-length window."""
        assert [r.timestamp for r in in_range(records, 2000, 2000)] == [2000]

    def test_reversed_bounds(self, records):
        """An end before the start gives nothing."""
        assert in_range(records, 3000, 1000) == ()

    def test_window_beyond_data(self, records):
        """Should clip a window to the records that exist."""
        assert [r.timestamp for r in in_range(records, 0, 10_000)] == [1000, 2000, 3000, 4000]
        assert in_range(records, 5000, 6000) == ()
