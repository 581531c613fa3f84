"""
Reader and writer for the binary ``.tdat`` tide file format.

Each port ships as one file laid out as:

    station name    bytes up to and including b"\\n"
    last timestamp  int32, seconds since epoch of the final record
    record count    int32, N
    N records       int32 timestamp + int8 height in tenths of a meter

There is no high/low flag in the file. The first record is a high tide when
it is higher than the second, and every later record takes the opposite
type of the one before it, so a decoded sequence always alternates.

All integers share one declared byte order, big-endian unless told
otherwise. The existing NZ tide tables were written by a generator on
little-endian hosts, so those files must be read with ``byte_order="little"``
(``NZTIDES_BYTE_ORDER=little`` for the service). Reading them big-endian gives
nonsense timestamps and heights or a decode error.
"""
import logging
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Tuple, Union

import numpy as np

from .errors import InsufficientRecordsError, PartialReadError, TruncatedHeaderError
from .tide_record import TideRecord

logger = logging.getLogger(__name__)

BYTE_ORDERS = {'big': '>', 'little': '<'}
HEADER_SIZE = 8
RECORD_SIZE = 5
MIN_RECORDS = 2


@dataclass(frozen=True)
class DecodedPort:
    """Everything read from one port file."""
    station_name: bytes
    last_timestamp: int
    declared_count: int
    records: Tuple[TideRecord, ...]
    partial: bool = False

    @property
    def station_label(self) -> str:
        # The name field has no fixed encoding; decode leniently for display only
        return self.station_name.decode('utf-8', errors='replace').strip()


def _byte_order_prefix(byte_order: str) -> str:
    try:
        return BYTE_ORDERS[byte_order]
    except KeyError:
        raise ValueError(f"byte_order must be one of {sorted(BYTE_ORDERS)}, got {byte_order!r}")


def record_dtype(byte_order: str = 'big') -> np.dtype:
    """Packed numpy dtype matching one 5-byte record on disk."""
    prefix = _byte_order_prefix(byte_order)
    return np.dtype([('timestamp', prefix + 'i4'), ('tenths', 'i1')])


def _read_exactly(stream: BinaryIO, size: int) -> bytes:
    """Read up to ``size`` bytes, looping over short reads until EOF."""
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b''.join(chunks)


def _to_records(raw: np.ndarray) -> Tuple[TideRecord, ...]:
    """Convert decoded rows to TideRecords, assigning alternating tide types."""
    count = len(raw)
    if count == 0:
        return ()

    timestamps = raw['timestamp'].astype(np.int64).tolist()
    heights = (raw['tenths'].astype(np.float64) / 10.0).tolist()

    first_is_high = count > 1 and heights[0] > heights[1]
    is_high = ((np.arange(count) % 2) == 0) == first_is_high

    return tuple(
        TideRecord(timestamp=ts, height=h, is_high_tide=bool(high))
        for ts, h, high in zip(timestamps, heights, is_high.tolist())
    )


def decode_port(
    stream: BinaryIO,
    allow_partial: bool = True,
    byte_order: str = 'big',
) -> DecodedPort:
    """
    Decode one port's tide file.

    Args:
        stream: Binary stream positioned at the start of the file
        allow_partial: Accept a file that ends mid-record as long as at least
            two complete records were read
        byte_order: 'big' or 'little'

    Returns:
        DecodedPort with records in file order

    Raises:
        TruncatedHeaderError: The stream ended inside the header
        InsufficientRecordsError: Fewer than two usable records
        PartialReadError: The stream ended mid-record and partial data
            was not accepted
    """
    dtype = record_dtype(byte_order)

    station_name = stream.readline()
    if not station_name.endswith(b'\n'):
        raise TruncatedHeaderError("Stream ended inside the station name field")

    header = _read_exactly(stream, HEADER_SIZE)
    if len(header) < HEADER_SIZE:
        raise TruncatedHeaderError(
            f"Expected {HEADER_SIZE} header bytes after station name, got {len(header)}"
        )
    last_timestamp, declared_count = (
        int(v) for v in np.frombuffer(header, dtype=_byte_order_prefix(byte_order) + 'i4')
    )

    if declared_count < MIN_RECORDS:
        raise InsufficientRecordsError(
            f"File declares {declared_count} records, at least {MIN_RECORDS} are required"
        )

    body = _read_exactly(stream, declared_count * RECORD_SIZE)
    complete = len(body) // RECORD_SIZE
    raw = np.frombuffer(body[:complete * RECORD_SIZE], dtype=dtype)
    records = _to_records(raw)

    partial = complete < declared_count
    if partial:
        if complete < MIN_RECORDS:
            raise InsufficientRecordsError(
                f"Stream ended after {complete} of {declared_count} records"
            )
        if not allow_partial:
            raise PartialReadError(
                f"Stream ended after {complete} of {declared_count} records", records
            )
        logger.warning(
            f"Expected {declared_count} records but read {complete}; using partial data"
        )

    return DecodedPort(
        station_name=station_name,
        last_timestamp=last_timestamp,
        declared_count=declared_count,
        records=records,
        partial=partial,
    )


def encode_port(
    records: Iterable[TideRecord],
    station_name: Union[str, bytes] = b'',
    byte_order: str = 'big',
) -> bytes:
    """
    Encode records into the ``.tdat`` layout.

    Heights are stored as signed tenths of a meter, so they must lie within
    -12.8m to 12.7m. The high/low flag is not written.
    """
    records = list(records)
    if isinstance(station_name, str):
        station_name = station_name.encode('utf-8')
    if b'\n' in station_name:
        raise ValueError("Station name must not contain a newline")

    tenths = [int(round(r.height * 10)) for r in records]
    if any(t < -128 or t > 127 for t in tenths):
        raise ValueError("Tide heights must lie between -12.8m and 12.7m")

    rows = np.zeros(len(records), dtype=record_dtype(byte_order))
    rows['timestamp'] = [r.timestamp for r in records]
    rows['tenths'] = tenths

    last_timestamp = records[-1].timestamp if records else 0
    header = np.array(
        [last_timestamp, len(records)], dtype=_byte_order_prefix(byte_order) + 'i4'
    )
    return station_name + b'\n' + header.tobytes() + rows.tobytes()
