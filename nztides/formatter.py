"""
Plain-text rendering of tide data: durations, listings, the ASCII graph
and the full port report.
"""
from datetime import datetime
from typing import List, Optional, Sequence
from zoneinfo import ZoneInfo

import numpy as np

from .interpolator import interpolate
from .port_cache import PortCache
from .tide_record import TideRecord

GRAPH_ROWS = 10
GRAPH_COLS = 40
RECORDS_TO_DISPLAY = 35 * 4  # about 35 days of tides


def _local(timestamp: int, tz: ZoneInfo) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=tz)


def format_duration(seconds: int) -> str:
    """Format a duration as hours and zero-padded minutes, e.g. '3h05m'."""
    hours = seconds // 3600
    minutes = (seconds // 60) % 60
    return f"{hours}h{minutes:02d}m"


def format_height(height: float) -> str:
    # Positive values keep a leading space so columns line up with negatives
    return f"{height: .2f}"


def format_full_date(timestamp: int, tz: ZoneInfo) -> str:
    return _local(timestamp, tz).strftime('%H:%M %a %d/%m/%y %Z')


def format_tide_line(record: TideRecord, tz: ZoneInfo) -> str:
    label = ' HIGH ' if record.is_high_tide else '  low '
    return f" {label}{_local(record.timestamp, tz).strftime('%H:%M')}{format_height(record.height)}m\n"


def tide_graph(previous: TideRecord, next_tide: TideRecord, timestamp: int) -> str:
    """
    Draw one half tide cycle as ASCII art with a '|' marking ``timestamp``.

    The curve runs over a full cosine period so the current position sits
    between the two extrema drawn in the middle of the graph.
    """
    graph = np.full((GRAPH_ROWS, GRAPH_COLS), ' ', dtype='<U1')

    direction = -1 if previous.height > next_tide.height else 1
    cols = np.arange(GRAPH_COLS)
    x = (1.0 + direction * np.sin(cols * 2 * np.pi / (GRAPH_COLS - 1))) / 2.0
    rows = ((GRAPH_ROWS - 1) * x + 0.5).astype(int)
    graph[rows, cols] = '*'

    omega = np.pi / (next_tide.timestamp - previous.timestamp)
    phase = omega * (timestamp - previous.timestamp)
    position = (phase + np.pi / 2) / (2.0 * np.pi)
    cursor = int((GRAPH_COLS - 1) * position + 0.5)
    graph[:, min(max(cursor, 0), GRAPH_COLS - 1)] = '|'

    return ''.join(''.join(row) + '\n' for row in graph) + '\n'


def format_listing(records: Sequence[TideRecord], tz: ZoneInfo) -> str:
    """Tide lines grouped under day headings, with a banner at each new month."""
    lines: List[str] = []
    last_day = ''
    last_month = _local(records[0].timestamp, tz).strftime('%b %Y') if records else ''

    for record in records:
        when = _local(record.timestamp, tz)
        day_label = when.strftime('%a %d')
        if day_label != last_day:
            last_day = day_label
            month_label = when.strftime('%b %Y')
            if month_label != last_month:
                lines.append(f"\n---==== {month_label} ====---\n")
                last_month = month_label
            lines.append(f"{day_label}\n")
        lines.append(format_tide_line(record, tz))

    return ''.join(lines)


def _timing_line(previous: TideRecord, next_tide: TideRecord, timestamp: int, tz: ZoneInfo) -> str:
    since_previous = timestamp - previous.timestamp
    until_next = next_tide.timestamp - timestamp

    if since_previous < until_next:
        label = 'HIGH tide' if previous.is_high_tide else 'Low tide'
        when = _local(previous.timestamp, tz).strftime('%H:%M')
        return f"{label} {when} ({previous.height}m) {format_duration(since_previous)} ago\n"

    label = 'HIGH tide' if next_tide.is_high_tide else 'Low tide'
    when = _local(next_tide.timestamp, tz).strftime('%H:%M')
    return f"{label} {when} ({next_tide.height}m) in {format_duration(until_next)}\n"


def format_report(
    cache: PortCache,
    timestamp: int,
    tz: ZoneInfo,
    records_to_display: int = RECORDS_TO_DISPLAY,
) -> Optional[str]:
    """
    Render the full text report for a port at ``timestamp``.

    Returns a short explanation instead of a report when ``timestamp`` is
    before the first tide, and None when it is after the last one.
    """
    if timestamp < cache.valid_from:
        return (
            "The first tide in this datafile doesn't occur until "
            f"{format_full_date(cache.valid_from, tz)}. "
            "The app should start working properly about then."
        )

    if timestamp > cache.valid_until:
        return None

    # Strictly after the previous tide, so a query landing on a record is handled too
    upcoming = cache.range(timestamp + 1, cache.valid_until)
    if upcoming:
        next_tide = upcoming[0]
        previous = cache.range(cache.valid_from, timestamp)[-1]
    else:
        # Exactly on the last tide: report the final interval
        previous, next_tide = cache.records[-2], cache.records[-1]
        upcoming = (next_tide,)

    state = interpolate(previous, next_tide, timestamp)
    arrow = '↑' if next_tide.height > previous.height else '↓'

    parts = [
        f"[{cache.port}] {state.height: .1f}m {arrow}{abs(state.rate_per_hour * 100):.0f} cm/hr\n",
        "---------------\n",
        _timing_line(previous, next_tide, timestamp, tz),
        "\n",
        tide_graph(previous, next_tide, timestamp),
        format_listing((previous,) + upcoming[:records_to_display], tz),
        "The last tide in this datafile occurs at:\n",
        format_full_date(cache.valid_until, tz),
    ]
    return ''.join(parts)
