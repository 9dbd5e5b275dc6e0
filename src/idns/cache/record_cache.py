"""Name -> address cache with optional whole-file persistence.

Brief:
  Thread-safe mapping from fully-qualified domain name to the IPv4 addresses
  last resolved for it. Entries never expire; a later successful resolution
  overwrites them.

Notes:
  - Every read and write of the mapping happens under one RLock owned by the
    cache. Persistence runs under the same lock so the file is always a
    consistent snapshot.
  - Persistence rewrites the whole file in place. It is not atomic; a crash
    mid-write can leave a truncated file.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Sequence

from idns.errors import CacheFileError

logger = logging.getLogger("idns.cache")


class RecordCache:
    """Thread-safe FQDN -> address list cache.

    Brief:
        Stores only non-empty address lists. When constructed with a
        persistence path, every successful set() rewrites that file.

    Inputs:
        - path: Optional persistence file path. Empty/None disables
          persistence.

    Outputs:
        RecordCache instance

    Example use:
        >>> from idns.cache.record_cache import RecordCache
        >>> cache = RecordCache()
        >>> cache.set("example.com.", ["93.184.216.34"])
        >>> cache.get("example.com.")
        ['93.184.216.34']
        >>> cache.set("empty.example.", [])
        >>> cache.get("empty.example.") is None
        True
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self.path: Optional[str] = path or None
        self._store: Dict[str, List[str]] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._store

    def get(self, name: str) -> Optional[List[str]]:
        """Brief: Return the cached addresses for an exact name match.

        Inputs:
          - name: Fully-qualified domain name.

        Outputs:
          - list[str] copy of the cached addresses, or None when absent.
        """

        with self._lock:
            ips = self._store.get(name)
            return list(ips) if ips is not None else None

    def set(self, name: str, addresses: Sequence[str]) -> None:
        """Brief: Store addresses for name and persist when configured.

        Inputs:
          - name: Fully-qualified domain name.
          - addresses: Resolved IPv4 strings in response order.

        Outputs:
          - None. An empty list is ignored so negative results never land in
            the cache. Raises CacheFileError if persistence fails.
        """

        if not addresses:
            return
        with self._lock:
            self._store[name] = list(addresses)
            if self.path:
                self.save_to(self.path)

    def snapshot(self) -> Dict[str, List[str]]:
        """Brief: Return a deep copy of the current mapping."""

        with self._lock:
            return {name: list(ips) for name, ips in self._store.items()}

    def load_from(self, path: str) -> int:
        """Brief: Populate the cache from a persisted file.

        Inputs:
          - path: File with one "<fqdn> <ip1> [ip2 ...]" record per line.

        Outputs:
          - int: Number of entries loaded.

        Notes:
          - A missing file is created empty and the cache starts empty.
          - Lines with fewer than two fields are skipped with a warning.
          - Any other I/O failure raises CacheFileError.
        """

        try:
            fh = open(path, "r", encoding="utf-8")
        except FileNotFoundError:
            logger.info("Cache file %s not found; creating a new one", path)
            try:
                open(path, "w", encoding="utf-8").close()
            except OSError as e:
                raise CacheFileError(f"Failed to create cache file {path}: {e}") from e
            return 0
        except OSError as e:
            raise CacheFileError(f"Failed to read cache file {path}: {e}") from e

        loaded = 0
        try:
            with fh, self._lock:
                for lineno, line in enumerate(fh, 1):
                    parts = line.split()
                    if not parts:
                        continue
                    if len(parts) < 2:
                        logger.warning(
                            "Invalid line %d in cache file %s: %r",
                            lineno,
                            path,
                            line.rstrip("\n"),
                        )
                        continue
                    self._store[parts[0]] = parts[1:]
                    loaded += 1
        except (OSError, UnicodeDecodeError) as e:
            raise CacheFileError(f"Error reading cache file {path}: {e}") from e

        logger.debug("Loaded %d cache entries from %s", loaded, path)
        return loaded

    def save_to(self, path: str) -> None:
        """Brief: Overwrite path with every entry of the cache.

        Inputs:
          - path: Destination file path.

        Outputs:
          - None. Raises CacheFileError on any write failure.
        """

        with self._lock:
            try:
                with open(path, "w", encoding="utf-8") as fh:
                    for name, ips in self._store.items():
                        fh.write(f"{name} {' '.join(ips)}\n")
            except OSError as e:
                raise CacheFileError(f"Failed to write cache file {path}: {e}") from e
