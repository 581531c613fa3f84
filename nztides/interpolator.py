"""
Cosine interpolation of water level between two consecutive extrema.

Between a high and the following low (or the reverse) the tide is taken to
follow half a cosine cycle, as described in the NZ Nautical Almanac:

    h(t) = A * cos(w * (t - t0)) + M

where t0 is the earlier extremum, w = pi / (t1 - t0), A is half the
difference between the two heights and M is their mean. This is only a
two-point approximation and gets less accurate away from the anchors, so
callers should always interpolate from the tightest bracketing pair.
"""
from typing import Tuple

import numpy as np

from .tide_record import TideInterval, TideRecord, TideState

SECONDS_PER_HOUR = 3600


def _wave_parameters(previous: TideRecord, next_tide: TideRecord) -> Tuple[float, float, float]:
    duration = TideInterval(previous, next_tide).duration_seconds
    if duration <= 0:
        raise ValueError(
            f"Next tide ({next_tide.timestamp}) must come after previous tide ({previous.timestamp})"
        )
    omega = np.pi / duration
    amplitude = (previous.height - next_tide.height) / 2.0
    mean = (previous.height + next_tide.height) / 2.0
    return omega, amplitude, mean


def interpolate(previous: TideRecord, next_tide: TideRecord, t: int) -> TideState:
    """
    Estimate height and rate of change at time ``t``.

    Args:
        previous: Earlier extremum
        next_tide: Later extremum
        t: Time in seconds since epoch

    Returns:
        TideState with height in meters and rate in meters per hour
        (positive while the tide is rising)
    """
    omega, amplitude, mean = _wave_parameters(previous, next_tide)
    phase = omega * (t - previous.timestamp)

    height = amplitude * np.cos(phase) + mean
    rate = -amplitude * omega * np.sin(phase) * SECONDS_PER_HOUR

    return TideState(height=float(height), rate_per_hour=float(rate))


def cosine_heights(
    t0: np.ndarray,
    h0: np.ndarray,
    t1: np.ndarray,
    h1: np.ndarray,
    times: np.ndarray,
) -> np.ndarray:
    """
    Vectorized form of the height model.

    All arguments broadcast together, so each query time can carry its own
    bracketing pair. Every ``t1`` must be greater than its ``t0``.
    """
    t0 = np.asarray(t0, dtype=np.float64)
    h0 = np.asarray(h0, dtype=np.float64)
    t1 = np.asarray(t1, dtype=np.float64)
    h1 = np.asarray(h1, dtype=np.float64)

    omega = np.pi / (t1 - t0)
    amplitude = (h0 - h1) / 2.0
    mean = (h0 + h1) / 2.0
    return amplitude * np.cos(omega * (np.asarray(times, dtype=np.float64) - t0)) + mean

