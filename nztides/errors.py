"""Exceptions raised by the tide data engine."""
from typing import Sequence


class TideDataError(Exception):
    """Base exception for tide data errors."""
    pass


class DecodeError(TideDataError):
    """Raised when a port's tide file cannot be decoded."""
    pass


class TruncatedHeaderError(DecodeError):
    """Raised when the stream ends before the header is fully read."""
    pass


class InsufficientRecordsError(DecodeError):
    """Raised when fewer than two usable tide records are available."""
    pass


class PartialReadError(DecodeError):
    """Raised when the stream ends in the middle of a record.

    The records decoded before the truncation are kept on ``records`` so a
    caller can still inspect them.
    """

    def __init__(self, message: str, records: Sequence = ()):
        super().__init__(message)
        self.records = tuple(records)


class PortNotFoundError(TideDataError, KeyError):
    """Raised when no tide data source exists for a port."""

    def __init__(self, port: str):
        super().__init__(port)
        self.port = port

    def __str__(self) -> str:
        return f"No tide data for port '{self.port}'"


class DataExpiredError(TideDataError):
    """Raised when a query falls after the last known tide for a port."""

    def __init__(self, port: str, valid_until: int):
        super().__init__(f"Tide data for '{port}' ends at {valid_until}")
        self.port = port
        self.valid_until = valid_until
