"""
Immutable per-port tide cache.

A PortCache is built once from a decoded record sequence and never changes
afterwards; reloading a port means building a new cache and swapping it in.
All query methods are pure reads, so one instance can be shared freely
between threads.
"""
import logging
from typing import Iterable, Optional, Tuple

import numpy as np

from .errors import InsufficientRecordsError
from .locator import in_range, locate, timestamps_of
from .tide_record import NextTide, TideInterval, TideRecord

logger = logging.getLogger(__name__)

# Rough per-record footprint: 8 byte timestamp + 4 byte height + flag + overhead
_BYTES_PER_RECORD = 20


class PortCache:
    """Sorted tide records for one port plus their validity horizon."""

    __slots__ = ('_port', '_station_name', '_records', '_timestamps', '_heights')

    def __init__(self, port: str, records: Tuple[TideRecord, ...], station_name: Optional[str] = None):
        # Use PortCache.build(); this assumes records are already sorted and validated
        self._port = port
        self._station_name = station_name or port
        self._records = records

        timestamps = timestamps_of(records)
        timestamps.flags.writeable = False
        self._timestamps = timestamps

        heights = np.fromiter((r.height for r in records), dtype=np.float64, count=len(records))
        heights.flags.writeable = False
        self._heights = heights

    @classmethod
    def build(
        cls,
        port: str,
        records: Iterable[TideRecord],
        station_name: Optional[str] = None,
    ) -> "PortCache":
        """
        Sort records by timestamp and freeze them into a cache.

        Args:
            port: Port name the records belong to
            records: Tide records in any order
            station_name: Display name from the data file, if known

        Returns:
            A new PortCache

        Raises:
            InsufficientRecordsError: Fewer than two records were given
        """
        ordered = tuple(sorted(records, key=lambda r: r.timestamp))
        if len(ordered) < 2:
            raise InsufficientRecordsError(
                f"Port '{port}' has {len(ordered)} tide records, at least 2 are required"
            )

        for prev, curr in zip(ordered, ordered[1:]):
            if curr.timestamp == prev.timestamp:
                logger.warning(f"Port '{port}' has duplicate tide records at {curr.timestamp}")
                break
            if curr.is_high_tide == prev.is_high_tide:
                logger.warning(f"Port '{port}' has consecutive {curr.tide_type} tides at {curr.timestamp}")
                break

        return cls(port, ordered, station_name)

    @property
    def port(self) -> str:
        return self._port

    @property
    def station_name(self) -> str:
        return self._station_name

    @property
    def records(self) -> Tuple[TideRecord, ...]:
        return self._records

    @property
    def timestamps(self) -> np.ndarray:
        """Read-only int64 array of record timestamps."""
        return self._timestamps

    @property
    def heights(self) -> np.ndarray:
        """Read-only float64 array of record heights."""
        return self._heights

    @property
    def valid_from(self) -> int:
        return self._records[0].timestamp

    @property
    def valid_until(self) -> int:
        """Timestamp of the last known tide; later queries have no answer."""
        return self._records[-1].timestamp

    def record_count(self) -> int:
        return len(self._records)

    def estimated_memory_bytes(self) -> int:
        return len(self._records) * _BYTES_PER_RECORD + self._timestamps.nbytes + self._heights.nbytes

    def is_valid_at(self, timestamp: int) -> bool:
        return timestamp <= self.valid_until

    def interval_at(self, timestamp: int) -> TideInterval:
        return locate(self._records, timestamp, self._timestamps)

    def range(self, start: int, end: int) -> Tuple[TideRecord, ...]:
        return in_range(self._records, start, end, self._timestamps)

    def next_tide(self, timestamp: int) -> Optional[NextTide]:
        """
        The first extremum strictly after ``timestamp``.

        Before the data starts this is the first record; at or after the last
        record there is no answer.
        """
        following = self.interval_at(timestamp).next
        if following is None:
            return None
        return NextTide(record=following, seconds_until=following.timestamp - timestamp)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return (
            f"PortCache(port={self._port!r}, records={len(self._records)}, "
            f"valid_until={self.valid_until})"
        )
