"""
Value types shared across the tide engine.

A port's data is a sequence of tide extrema (high and low water events).
Everything else in this package either produces these values (the codec),
stores them (the port cache) or derives answers from pairs of them (the
locator and interpolator).
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TideRecord:
    """
    A single predicted high or low tide.

    Attributes:
        timestamp: Seconds since the Unix epoch (UTC)
        height: Height in meters, with one decimal place of real precision
        is_high_tide: True for high water, False for low water
    """
    timestamp: int
    height: float
    is_high_tide: bool

    @property
    def tide_type(self) -> str:
        return 'high' if self.is_high_tide else 'low'

    def with_tide_type(self, is_high_tide: bool) -> "TideRecord":
        return TideRecord(self.timestamp, self.height, is_high_tide)


@dataclass(frozen=True)
class TideInterval:
    """The pair of extrema bracketing a query time. Either side may be missing."""
    previous: Optional[TideRecord]
    next: Optional[TideRecord]

    @property
    def is_valid(self) -> bool:
        return self.previous is not None and self.next is not None

    @property
    def duration_seconds(self) -> int:
        if not self.is_valid:
            return 0
        return self.next.timestamp - self.previous.timestamp


@dataclass(frozen=True)
class TideState:
    """Interpolated water level at a point in time."""
    height: float
    rate_per_hour: float

    @property
    def rising(self) -> bool:
        return self.rate_per_hour > 0


@dataclass(frozen=True)
class NextTide:
    """The next extremum after a query time and how long until it occurs."""
    record: TideRecord
    seconds_until: int

    @property
    def is_high(self) -> bool:
        return self.record.is_high_tide

    @property
    def timestamp(self) -> int:
        return self.record.timestamp

    @property
    def height(self) -> float:
        return self.record.height
