from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Optional, Sequence

from idns.cache.record_cache import RecordCache
from idns.errors import CacheFileError

_STOP = object()


class CacheWriter(threading.Thread):
    """
    Background daemon thread that applies cache updates one at a time.

    Inputs (constructor):
        cache: RecordCache receiving the updates
        on_fatal: Optional callable invoked with the CacheFileError that
            stopped the writer
        logger_name: Logger name to use (default "idns.cache.writer")

    Outputs:
        CacheWriter thread instance (call start() to begin)

    The query path calls submit() and returns immediately. A single consumer
    drains the FIFO queue and calls RecordCache.set(), so whole-file rewrites
    never overlap and a slow disk never delays a response. A persistence
    failure is fatal: the writer logs it, stops consuming, and reports it via
    on_fatal.

    Example:
        >>> cache = RecordCache()
        >>> writer = CacheWriter(cache)
        >>> writer.start()
        >>> writer.submit("example.com.", ["93.184.216.34"])
        >>> writer.flush()
        True
        >>> cache.get("example.com.")
        ['93.184.216.34']
        >>> writer.stop()
    """

    def __init__(
        self,
        cache: RecordCache,
        on_fatal: Optional[Callable[[CacheFileError], None]] = None,
        logger_name: str = "idns.cache.writer",
    ) -> None:
        super().__init__(daemon=True, name="CacheWriter")
        self.cache = cache
        self.on_fatal = on_fatal
        self.logger = logging.getLogger(logger_name)
        self.error: Optional[CacheFileError] = None
        self._queue: "queue.Queue[object]" = queue.Queue()

    def submit(
        self,
        name: str,
        addresses: Sequence[str],
        on_applied: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Queue a cache update without waiting for it to be applied.

        Inputs:
            name: Fully-qualified domain name
            addresses: Non-empty address list; empty lists are dropped here
            on_applied: Optional callable run on the writer thread once the
                update has been handled (stored, failed, or discarded).
                Dropped updates run it immediately.

        Outputs:
            None
        """
        if not addresses or self.error is not None:
            if addresses:
                self.logger.debug("Cache writer stopped; dropping update for %s", name)
            if on_applied is not None:
                on_applied()
            return
        self._queue.put((name, list(addresses), on_applied))

    def run(self) -> None:
        """
        Writer main loop (called by start()).

        Exits on stop() or after the first CacheFileError.
        """
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                name, addresses, on_applied = item
                try:
                    self.cache.set(name, addresses)
                    self.logger.debug("Cached %s -> %s", name, " ".join(addresses))
                except CacheFileError as e:
                    self.error = e
                    self.logger.critical("%s", e)
                    self._drain()
                    if self.on_fatal is not None:
                        self.on_fatal(e)
                    return
                finally:
                    if on_applied is not None:
                        on_applied()
            finally:
                self._queue.task_done()

    def _drain(self) -> None:
        """Discard pending updates so flush() callers are released."""
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return
            try:
                if item is not _STOP and item[2] is not None:
                    item[2]()
            finally:
                self._queue.task_done()

    def flush(self, timeout: float = 5.0) -> bool:
        """
        Wait until every queued update has been processed.

        Inputs:
            timeout: Maximum seconds to wait

        Outputs:
            bool: True when the queue drained within timeout
        """
        done = threading.Event()

        def _join() -> None:
            self._queue.join()
            done.set()

        threading.Thread(target=_join, name="CacheWriterFlush", daemon=True).start()
        return done.wait(timeout)

    def stop(self, timeout: float = 5.0) -> None:
        """
        Apply pending updates, then stop the thread.

        Inputs:
            timeout: Maximum seconds to wait for thread join (default 5.0)

        Outputs:
            None
        """
        if self.is_alive():
            self._queue.put(_STOP)
            self.join(timeout=timeout)
