"""
Unit tests for the plain-text report
"""
from zoneinfo import ZoneInfo

import pytest

from nztides.formatter import (
    GRAPH_COLS,
    GRAPH_ROWS,
    format_duration,
    format_full_date,
    format_height,
    format_listing,
    format_report,
    format_tide_line,
    tide_graph,
)
from nztides.port_cache import PortCache
from nztides.tide_record import TideRecord
from tests.tdat import BASIC_TIDES, make_records

UTC = ZoneInfo('UTC')
LOW = TideRecord(timestamp=1000, height=1.0, is_high_tide=False)
HIGH = TideRecord(timestamp=2000, height=3.0, is_high_tide=True)

# 2024-01-31 10:00 UTC and 2024-02-01 04:00 UTC
END_OF_JANUARY = 1706695200
START_OF_FEBRUARY = 1706760000


@pytest.fixture
def cache():
    return PortCache.build('Testport', make_records(BASIC_TIDES))


def tide_lines(text):
    return text.count(' HIGH ') + text.count('  low ')


class TestFormatting:
    """Tests for the small formatting helpers."""

    def test_duration(self):
        """Should format durations as hours and zero-padded minutes, dropping seconds."""
        assert format_duration(3 * 3600 + 5 * 60) == '3h05m'
        assert format_duration(59) == '0h00m'
        assert format_duration(12 * 3600 + 59 * 60 + 59) == '12h59m'

    def test_height_keeps_sign_column(self):
        """Should leave a column for the sign so positive and negative heights line up."""
        assert format_height(1.5) == ' 1.50'
        assert format_height(-0.3) == '-0.30'

    def test_full_date(self):
        """Should format a timestamp as time, weekday, date and zone name."""
        assert format_full_date(4000, UTC) == '01:06 Thu 01/01/70 UTC'

    def test_tide_lines(self):
        """Should label high tides HIGH and low tides low, aligned to the same width."""
        assert format_tide_line(HIGH, UTC) == '  HIGH 00:33 3.00m\n'
        assert format_tide_line(LOW, UTC) == '   low 00:16 1.00m\n'


class TestGraph:
    """Tests for the ASCII tide graph."""

    def test_dimensions(self):
        """Should draw a fixed-size grid followed by a blank line."""
        lines = tide_graph(LOW, HIGH, 1500).split('\n')
        assert len(lines) == GRAPH_ROWS + 2
        assert all(len(line) == GRAPH_COLS for line in lines[:GRAPH_ROWS])
        assert lines[GRAPH_ROWS:] == ['', '']

    def test_cursor_position(self):
        """The cursor sits near the middle column halfway through the cycle."""
        lines = tide_graph(LOW, HIGH, 1550).split('\n')[:GRAPH_ROWS]
        assert all(line[20] == '|' for line in lines)

    def test_cursor_at_previous_tide(self):
        """Should place the cursor a quarter of the way across at the previous tide."""
        lines = tide_graph(LOW, HIGH, 1000).split('\n')[:GRAPH_ROWS]
        assert all(line[10] == '|' for line in lines)

    def test_curve_drawn(self):
        """Should mark the curve in every column."""
        graph = tide_graph(LOW, HIGH, 1500)
        assert graph.count('*') >= GRAPH_COLS - 1


class TestListing:
    """Tests for the day-grouped tide listing."""

    def test_day_headings_and_month_banner(self):
        """Should head each day and add a banner when the month changes."""
        records = make_records([(END_OF_JANUARY, 2.5), (START_OF_FEBRUARY, 0.5)])
        listing = format_listing(records, UTC)
        assert listing.startswith('Wed 31\n')
        assert '\n---==== Feb 2024 ====---\n' in listing
        assert 'Jan 2024' not in listing
        assert 'Thu 01\n' in listing
        assert tide_lines(listing) == 2

    def test_same_day_grouped(self, cache):
        """Should list tides on the same day under one heading."""
        listing = format_listing(cache.records, UTC)
        assert listing.count('Thu 01\n') == 1
        assert tide_lines(listing) == 4

    def test_empty(self):
        """Should render nothing for no records."""
        assert format_listing((), UTC) == ''


class TestReport:
    """Tests for the full report."""

    def test_header_line(self, cache):
        """Should start with the port, height, direction and rate."""
        report = format_report(cache, 1500, UTC)
        first_line = report.split('\n')[0]
        assert first_line.startswith('[Testport]  2.0m ↑')
        assert first_line.endswith(' cm/hr')

    def test_timing_line(self, cache):
        """Should say how long until the next tide when it is closer."""
        report = format_report(cache, 1500, UTC)
        assert 'HIGH tide 00:33 (3.0m) in 0h08m\n' in report

    def test_timing_line_after_tide(self, cache):
        """Closer to the previous tide, the report says how long ago it was."""
        report = format_report(cache, 2100, UTC)
        assert 'HIGH tide 00:33 (3.0m) 0h01m ago\n' in report
        assert '↓' in report.split('\n')[0]

    def test_ends_with_last_tide(self, cache):
        """Should end with the time of the last tide in the data."""
        report = format_report(cache, 1500, UTC)
        assert report.endswith('The last tide in this datafile occurs at:\n01:06 Thu 01/01/70 UTC')

    def test_on_a_record(self, cache):
        """At an extremum the report uses it as the previous tide."""
        report = format_report(cache, 2000, UTC)
        assert report.split('\n')[0].startswith('[Testport]  3.0m ↓')

    def test_before_data(self, cache):
        """Should explain when the data starts for a time before the first tide."""
        report = format_report(cache, 500, UTC)
        assert report.startswith("The first tide in this datafile doesn't occur until 00:16 Thu 01/01/70 UTC")

    def test_on_last_tide(self, cache):
        """Should still report at the moment of the last tide, using the final interval."""
        report = format_report(cache, 4000, UTC)
        assert report.split('\n')[0].startswith('[Testport]  3.0m ')
        assert 'HIGH tide 01:06 (3.0m) in 0h00m\n' in report
        assert tide_lines(report) == 2

    def test_after_data(self, cache):
        """Should return None after the last tide."""
        assert format_report(cache, 4001, UTC) is None
        assert format_report(cache, 9000, UTC) is None

    def test_records_to_display(self, cache):
        """The listing shows the previous tide plus the requested number of upcoming ones."""
        report = format_report(cache, 1500, UTC, records_to_display=1)
        assert tide_lines(report) == 2
