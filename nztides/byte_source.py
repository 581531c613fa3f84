"""
Where port tide files come from.

The engine only needs to open a binary stream per port name. Files on disk
and in-memory blobs are provided here; anything with the same two methods
(an archive, a packaged resource) works as well.
"""
import io
import logging
import os
from pathlib import Path
from typing import BinaryIO, Dict, List, Mapping, Protocol, Union

from .errors import PortNotFoundError

logger = logging.getLogger(__name__)

TDAT_SUFFIX = '.tdat'


class ByteSource(Protocol):
    """Read interface for per-port tide data."""

    def open(self, port: str) -> BinaryIO:
        ...

    def ports(self) -> List[str]:
        ...


class DirectoryByteSource:
    """
    Serves ``<port>.tdat`` files from a directory.

    Args:
        data_path: Directory containing the tide files
        suffix: File extension of tide files
    """

    def __init__(self, data_path: Union[str, os.PathLike], suffix: str = TDAT_SUFFIX):
        self.data_path = Path(data_path)
        self.suffix = suffix

    def _path_for(self, port: str) -> Path:
        # Port names come from users; keep them inside data_path
        if not port or '\x00' in port or Path(port).name != port or port in ('.', '..'):
            raise PortNotFoundError(port)
        return self.data_path / f"{port}{self.suffix}"

    def open(self, port: str) -> BinaryIO:
        path = self._path_for(port)
        try:
            return open(path, 'rb')
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            raise PortNotFoundError(port)

    def ports(self) -> List[str]:
        if not self.data_path.is_dir():
            logger.warning(f"Tide data directory not found: {self.data_path}")
            return []
        return sorted(
            p.name[:-len(self.suffix)] for p in self.data_path.glob(f"*{self.suffix}") if p.is_file()
        )

    def __repr__(self) -> str:
        return f"DirectoryByteSource({str(self.data_path)!r})"


class MemoryByteSource:
    """Serves tide files held in memory, keyed by port name."""

    def __init__(self, blobs: Mapping[str, bytes]):
        self._blobs: Dict[str, bytes] = dict(blobs)

    def open(self, port: str) -> BinaryIO:
        try:
            return io.BytesIO(self._blobs[port])
        except KeyError:
            raise PortNotFoundError(port)

    def ports(self) -> List[str]:
        return sorted(self._blobs)
