"""
Tide Service - point-in-time tide queries for named ports

This module is the query API used by the HTTP layer and any other consumer.
It answers questions about a port from that port's pre-computed table of
high and low tides:

- Current height and rise/fall rate (cosine interpolation between the
  bracketing extrema)
- Next high or low tide and the time remaining until it
- Listings of high/low tides over a number of days
- Tide heights sampled at regular intervals (curve data)
- Whether the data still covers a given time

Every query accepts either a port name or a PortCache. A port name is
resolved through the TideRepository without blocking: if the port has not
been loaded yet a background load is started and the query returns an
empty answer (None, an empty sequence or False). Callers must treat that
as "data unavailable" and try again later.

Queries after the last tide in a port's data also return an empty answer;
there is no extrapolation past the end of the table.
"""
import logging
from datetime import datetime, timedelta
from typing import BinaryIO, Dict, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo

import numpy as np

from .byte_source import ByteSource
from .formatter import format_report
from .interpolator import cosine_heights, interpolate
from .port_cache import PortCache
from .repository import PortState, TideRepository
from .tide_codec import decode_port
from .tide_record import NextTide, TideRecord, TideState

logger = logging.getLogger(__name__)

METERS_TO_FEET = 3.28084

PortOrCache = Union[str, PortCache]


def load(
    byte_source: ByteSource,
    port_name: str,
    allow_partial: bool = True,
    byte_order: str = 'big',
) -> List[TideRecord]:
    """
    Read and decode one port's tide records directly from a byte source.

    Args:
        byte_source: Source providing the port's file
        port_name: Port to read
        allow_partial: Accept files that end mid-record (at least 2 records)
        byte_order: 'big' or 'little'

    Returns:
        Tide records in file order

    Raises:
        PortNotFoundError: The source has no file for this port
        DecodeError: The file could not be decoded
    """
    stream: BinaryIO
    with byte_source.open(port_name) as stream:
        decoded = decode_port(stream, allow_partial=allow_partial, byte_order=byte_order)
    return list(decoded.records)


def _get_timezone(timezone_str: str) -> ZoneInfo:
    try:
        return ZoneInfo(timezone_str)
    except (ValueError, KeyError):
        logger.warning(f"Unknown timezone '{timezone_str}', using UTC")
        return ZoneInfo('UTC')


class TideService:
    """
    Query API over a TideRepository.

    Args:
        repository: Repository holding per-port caches
        timezone_str: Timezone used for day boundaries and displayed times
    """

    def __init__(self, repository: TideRepository, timezone_str: str = 'Pacific/Auckland'):
        self.repository = repository
        self.tz = _get_timezone(timezone_str)

    def resolve(self, port_or_cache: PortOrCache) -> Optional[PortCache]:
        """
        Get the cache for a port without blocking.

        Starts a background load for a port that has never been loaded.
        Names the byte source does not list are not tracked.
        """
        if isinstance(port_or_cache, PortCache):
            return port_or_cache

        port = port_or_cache
        cache = self.repository.get(port)
        if cache is None and self.repository.state(port) is PortState.ABSENT:
            if self.repository.byte_source is not None:
                self.repository.ensure_loaded(port)
        return cache

    def interval_at(self, port_or_cache: PortOrCache, timestamp: int) -> Optional[Tuple[TideRecord, TideRecord]]:
        """The (previous, next) extrema bracketing ``timestamp``, if both exist."""
        cache = self.resolve(port_or_cache)
        if cache is None:
            return None
        interval = cache.interval_at(timestamp)
        if not interval.is_valid:
            return None
        return interval.previous, interval.next

    def next_extremum(self, port_or_cache: PortOrCache, timestamp: int) -> Optional[NextTide]:
        """The next high or low tide strictly after ``timestamp``."""
        cache = self.resolve(port_or_cache)
        if cache is None:
            return None
        return cache.next_tide(timestamp)

    def current_state(self, port_or_cache: PortOrCache, timestamp: int) -> Optional[TideState]:
        """
        Interpolated height and rate of change at ``timestamp``.

        Returns None outside the bracketed part of the data. A query landing
        exactly on an extremum reports that extremum's height with a rate of
        zero rather than interpolating across it.
        """
        cache = self.resolve(port_or_cache)
        if cache is None:
            return None

        interval = cache.interval_at(timestamp)
        if not interval.is_valid:
            return None

        exact = cache.range(timestamp, timestamp)
        if exact:
            return TideState(height=exact[0].height, rate_per_hour=0.0)

        return interpolate(interval.previous, interval.next, timestamp)

    def records_in_range(self, port_or_cache: PortOrCache, start: int, end: int) -> Tuple[TideRecord, ...]:
        cache = self.resolve(port_or_cache)
        if cache is None:
            return ()
        return cache.range(start, end)

    def is_fresh(self, port_or_cache: PortOrCache, timestamp: int) -> bool:
        cache = self.resolve(port_or_cache)
        return cache is not None and cache.is_valid_at(timestamp)

    def _day_start(self, start_date: Optional[datetime]) -> datetime:
        # Use the date portion in local timezone (ignore time/tz from input)
        if start_date is not None:
            return datetime(
                start_date.year, start_date.month, start_date.day,
                hour=0, minute=0, second=0, microsecond=0, tzinfo=self.tz
            )
        now = datetime.now(self.tz)
        return now.replace(hour=0, minute=0, second=0, microsecond=0)

    def reading(self, timestamp: int, height_m: float) -> Dict:
        """Timestamped height in the row format shared by listings and curves."""
        return {
            'datetime': datetime.fromtimestamp(timestamp, tz=self.tz).isoformat(),
            'timestamp': timestamp,
            'height_m': round(height_m, 3),
            'height_ft': round(height_m * METERS_TO_FEET, 3),
        }

    def tides_for_days(
        self,
        port_or_cache: PortOrCache,
        days: int = 7,
        start_date: Optional[datetime] = None,
    ) -> List[Dict]:
        """
        List high and low tides for a number of days.

        Args:
            port_or_cache: Port name or cache
            days: Number of days to list, starting at local midnight
            start_date: Day to start on; defaults to today

        Returns:
            List of tide event dictionaries with keys:
            - type: 'high' or 'low'
            - datetime: ISO 8601 datetime string in the service timezone
            - timestamp: Seconds since epoch
            - height_m: Height in meters
            - height_ft: Height in feet
        """
        if days < 1:
            raise ValueError("days must be at least 1")

        start_time = self._day_start(start_date)
        end_time = start_time + timedelta(days=days)
        start_ts = int(start_time.timestamp())
        end_ts = int(end_time.timestamp()) - 1

        events = []
        for record in self.records_in_range(port_or_cache, start_ts, end_ts):
            events.append({'type': record.tide_type, **self.reading(record.timestamp, record.height)})
        return events

    def tide_heights(
        self,
        port_or_cache: PortOrCache,
        days: int = 1,
        interval_minutes: int = 30,
        start_date: Optional[datetime] = None,
    ) -> List[Dict]:
        """
        Get tide heights at regular intervals (tide curve data).

        Each sample is interpolated between the extrema around it. Samples
        outside the span covered by the data are left out.

        Args:
            port_or_cache: Port name or cache
            days: Number of days to sample
            interval_minutes: Time between readings (15, 30, or 60 minutes)
            start_date: Day to start on; defaults to today

        Returns:
            List of dictionaries with keys datetime, timestamp, height_m, height_ft
        """
        if interval_minutes not in (15, 30, 60):
            raise ValueError("interval_minutes must be 15, 30, or 60")
        if days < 1:
            raise ValueError("days must be at least 1")

        cache = self.resolve(port_or_cache)
        if cache is None:
            return []

        start_time = self._day_start(start_date)
        start_ts = int(start_time.timestamp())
        end_ts = int((start_time + timedelta(days=days)).timestamp())
        times = np.arange(start_ts, end_ts + 1, interval_minutes * 60, dtype=np.int64)

        # Index of the first record strictly after each sample; a sample that
        # lands on a record takes that record as its earlier anchor
        timestamps = cache.timestamps
        following = np.searchsorted(timestamps, times, side='right')
        inside = (following > 0) & (following < len(timestamps))
        inside |= times == timestamps[-1]
        following = np.clip(following, 1, len(timestamps) - 1)
        previous = following - 1

        heights = cosine_heights(
            timestamps[previous], cache.heights[previous],
            timestamps[following], cache.heights[following],
            times,
        )

        return [
            self.reading(int(t), float(h))
            for t, h, ok in zip(times.tolist(), heights.tolist(), inside.tolist())
            if ok
        ]

    def report(self, port_or_cache: PortOrCache, timestamp: int) -> Optional[str]:
        """Plain-text report: current level, graph and upcoming tides."""
        cache = self.resolve(port_or_cache)
        if cache is None:
            return None
        return format_report(cache, timestamp, self.tz)
