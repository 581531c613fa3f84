"""
Helpers for building tide records and .tdat fixture data in tests.
"""
from pathlib import Path
from typing import List, Sequence, Tuple

from nztides.tide_codec import encode_port
from nztides.tide_record import TideRecord

# Alternating high/low pairs used throughout the tests
BASIC_TIDES = [(1000, 1.0), (2000, 3.0), (3000, 1.0), (4000, 3.0)]

# 2024-01-15 00:00 NZDT
JAN_15_2024_NZ = 1705230000

# Semi-diurnal spacing: about 6h12m between a high and the next low
HALF_CYCLE = 22350


def make_records(pairs: Sequence[Tuple[int, float]]) -> List[TideRecord]:
    """Records from (timestamp, height) pairs with alternating types, as the decoder assigns them."""
    first_is_high = len(pairs) > 1 and pairs[0][1] > pairs[1][1]
    return [
        TideRecord(timestamp=ts, height=h, is_high_tide=((i % 2 == 0) == first_is_high))
        for i, (ts, h) in enumerate(pairs)
    ]


def make_tdat(pairs: Sequence[Tuple[int, float]], station_name: bytes = b'Test Port', byte_order: str = 'big') -> bytes:
    return encode_port(make_records(pairs), station_name, byte_order)


def semidiurnal(start: int, count: int, high: float = 2.8, low: float = 0.4) -> List[Tuple[int, float]]:
    """A regular run of ``count`` extrema starting with a low tide."""
    return [
        (start + i * HALF_CYCLE, high if i % 2 else low)
        for i in range(count)
    ]


def write_port(directory: Path, port: str, pairs: Sequence[Tuple[int, float]], **kwargs) -> Path:
    path = directory / f"{port}.tdat"
    path.write_bytes(make_tdat(pairs, **kwargs))
    return path
