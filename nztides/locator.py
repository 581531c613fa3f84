"""
Binary-search lookups over a timestamp-sorted sequence of tide records.
"""
from typing import Optional, Sequence, Tuple

import numpy as np

from .tide_record import TideInterval, TideRecord


def timestamps_of(records: Sequence[TideRecord]) -> np.ndarray:
    """Build the int64 timestamp array used for searching."""
    return np.fromiter((r.timestamp for r in records), dtype=np.int64, count=len(records))


def locate(
    records: Sequence[TideRecord],
    t: int,
    timestamps: Optional[np.ndarray] = None,
) -> TideInterval:
    """
    Find the records bracketing time ``t``.

    If ``t`` falls exactly on a record, that record is treated as the pivot
    and left out: the interval spans its two neighbours. Otherwise the
    interval is the last record before ``t`` and the first one after it.
    Missing neighbours at either end of the data are returned as None.

    Args:
        records: Records sorted by timestamp
        t: Query time in seconds since epoch
        timestamps: Precomputed timestamps of ``records``; built on the fly
            when omitted

    Returns:
        TideInterval, which may be invalid at the data boundaries
    """
    if timestamps is None:
        timestamps = timestamps_of(records)
    count = len(timestamps)

    index = int(np.searchsorted(timestamps, t, side='left'))
    if index < count and timestamps[index] == t:
        previous = records[index - 1] if index > 0 else None
        following = records[index + 1] if index + 1 < count else None
        return TideInterval(previous, following)

    previous = records[index - 1] if index > 0 else None
    following = records[index] if index < count else None
    return TideInterval(previous, following)


def in_range(
    records: Sequence[TideRecord],
    start: int,
    end: int,
    timestamps: Optional[np.ndarray] = None,
) -> Tuple[TideRecord, ...]:
    """Return records with ``start <= timestamp <= end``, in order."""
    if end < start:
        return ()
    if timestamps is None:
        timestamps = timestamps_of(records)

    lo = int(np.searchsorted(timestamps, start, side='left'))
    hi = int(np.searchsorted(timestamps, end, side='right'))
    if hi <= lo:
        return ()
    return tuple(records[lo:hi])
