"""
Lazily populated, thread-safe store of per-port tide caches.

Every port moves through a small state machine:

    ABSENT -> LOADING -> READY | FAILED
    READY / FAILED -> ABSENT        (evict / clear)
    any state -> LOADING            (reload)

Loads run on a background thread pool and report completion through a
``concurrent.futures.Future``; nothing here blocks the caller unless it
chooses to wait on that future.

Each port's slot holds an immutable ``_Entry`` snapshot. Transitions for a
port are serialized by that port's own lock and published by replacing the
slot in one assignment, so readers never take a lock and never see a
half-built cache. Every load carries the generation number it was started
for; if the port was evicted or reloaded in the meantime the finished load
is discarded instead of published.
"""
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from .byte_source import ByteSource
from .errors import PortNotFoundError
from .port_cache import PortCache
from .tide_codec import decode_port

logger = logging.getLogger(__name__)


class PortState(str, Enum):
    """Load state of a single port."""
    ABSENT = "absent"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class _Entry:
    state: PortState
    generation: int
    cache: Optional[PortCache] = None
    error: Optional[BaseException] = None
    future: Optional[Future] = None


_ABSENT = _Entry(PortState.ABSENT, generation=0)


def _resolved(result=None, error: Optional[BaseException] = None) -> Future:
    future: Future = Future()
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)
    return future


def _format_ts(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime('%Y-%m-%d %H:%M UTC')


class TideRepository:
    """
    Per-port tide cache manager.

    Args:
        byte_source: Default source used when ``ensure_loaded`` is not given one
        allow_partial: Accept files that end mid-record (at least 2 records)
        byte_order: Byte order of the tide files, 'big' or 'little'
        max_workers: Number of background loader threads
    """

    def __init__(
        self,
        byte_source: Optional[ByteSource] = None,
        allow_partial: bool = True,
        byte_order: str = 'big',
        max_workers: int = 2,
    ):
        self.byte_source = byte_source
        self.allow_partial = allow_partial
        self.byte_order = byte_order

        self._entries: Dict[str, _Entry] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix='tide-loader'
        )

    def _lock_for(self, port: str) -> threading.Lock:
        lock = self._locks.get(port)
        if lock is None:
            with self._locks_guard:
                lock = self._locks.setdefault(port, threading.Lock())
        return lock

    def _entry(self, port: str) -> _Entry:
        return self._entries.get(port, _ABSENT)

    # Reads: lock free

    def get(self, port: str) -> Optional[PortCache]:
        """
        Return the published cache for a port without blocking.

        While a reload is in flight the previously published cache stays
        visible until the new one replaces it.
        """
        return self._entry(port).cache

    def state(self, port: str) -> PortState:
        return self._entry(port).state

    def error(self, port: str) -> Optional[BaseException]:
        """The exception that put a port into FAILED, if any."""
        return self._entry(port).error

    def is_ready(self, port: str) -> bool:
        return self._entry(port).state is PortState.READY

    def ports(self) -> Dict[str, PortState]:
        """States of every port the repository has seen."""
        return {port: entry.state for port, entry in self._entries.copy().items()}

    # Transitions

    def ensure_loaded(
        self,
        port: str,
        byte_source: Optional[ByteSource] = None,
        reload: bool = False,
    ) -> Future:
        """
        Start loading a port if it is not loaded yet.

        Args:
            port: Port name
            byte_source: Source for this load; defaults to the repository's
            reload: Start a fresh load even if the port is READY, FAILED or
                already LOADING

        Returns:
            Future resolving to the PortCache, or raising the load error.
            A port that is already LOADING returns the in-flight future; a
            READY or FAILED port returns an already completed one. A port
            the source does not list fails with PortNotFoundError and leaves
            no entry behind.
        """
        source = byte_source or self.byte_source
        if source is not None and port not in self._entries and port not in source.ports():
            return _resolved(error=PortNotFoundError(port))

        with self._lock_for(port):
            entry = self._entry(port)

            if not reload:
                if entry.state is PortState.LOADING:
                    return entry.future
                if entry.state is PortState.READY:
                    return _resolved(entry.cache)
                if entry.state is PortState.FAILED:
                    return _resolved(error=entry.error)

            source = byte_source or self.byte_source
            if source is None:
                raise ValueError(f"No byte source available to load port '{port}'")

            generation = entry.generation + 1
            logger.debug(f"Scheduling load of '{port}' (generation {generation})")
            future = self._executor.submit(self._load, port, source, generation)
            # The loader thread needs this lock to publish, so it cannot finish
            # before the LOADING entry below is in place
            self._entries[port] = _Entry(
                PortState.LOADING, generation, cache=entry.cache, future=future
            )
            return future

    def reload(self, port: str, byte_source: Optional[ByteSource] = None) -> Future:
        return self.ensure_loaded(port, byte_source, reload=True)

    def load_now(
        self,
        port: str,
        byte_source: Optional[ByteSource] = None,
        timeout: Optional[float] = None,
    ) -> PortCache:
        """Load a port and wait for the result. Raises the load error on failure."""
        return self.ensure_loaded(port, byte_source).result(timeout=timeout)

    def evict(self, port: str) -> bool:
        """
        Return a port to ABSENT and drop its cache.

        Returns:
            True if the port had an entry
        """
        if port not in self._entries:
            return False
        with self._lock_for(port):
            entry = self._entries.get(port)
            if entry is None or entry.state is PortState.ABSENT:
                return False
            self._entries[port] = _Entry(PortState.ABSENT, entry.generation + 1)
        logger.info(f"Evicted tide data for '{port}'")
        return True

    def clear(self) -> None:
        for port in list(self._entries.copy()):
            self.evict(port)

    def shutdown(self, wait: bool = True) -> None:
        self.clear()
        self._executor.shutdown(wait=wait)
        logger.debug("Tide repository shut down")

    def __enter__(self) -> "TideRepository":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # Loader thread

    def _load(self, port: str, source: ByteSource, generation: int) -> PortCache:
        started = time.perf_counter()
        try:
            with source.open(port) as stream:
                decoded = decode_port(
                    stream, allow_partial=self.allow_partial, byte_order=self.byte_order
                )
            cache = PortCache.build(port, decoded.records, decoded.station_label or port)
        except Exception as e:
            logger.error(f"Failed to load tide data for '{port}': {e}")
            self._publish(port, generation, _Entry(PortState.FAILED, generation, error=e))
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        published = self._publish(port, generation, _Entry(PortState.READY, generation, cache=cache))
        if published:
            logger.info(
                f"Loaded {cache.record_count()} tide records for '{port}' in {elapsed_ms:.1f}ms "
                f"(valid {_format_ts(cache.valid_from)} to {_format_ts(cache.valid_until)})"
            )
            if not cache.is_valid_at(int(time.time())):
                logger.warning(f"Tide data for '{port}' expired at {_format_ts(cache.valid_until)}")
        return cache

    def _publish(self, port: str, generation: int, entry: _Entry) -> bool:
        with self._lock_for(port):
            current = self._entry(port)
            if current.generation != generation:
                logger.warning(
                    f"Discarding load of '{port}' (generation {generation}, "
                    f"current {current.generation})"
                )
                return False
            self._entries[port] = entry
            return True
