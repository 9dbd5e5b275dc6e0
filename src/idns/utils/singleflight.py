from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Callable, Dict, Generic, Hashable, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Collapse concurrent calls for the same key into one execution.

    Brief:
      The first caller for a key runs the work; callers arriving while it is
      running block on the same Future and receive its result (or exception).
      By default the key is released as soon as the work finishes, so a later
      call runs again. With hold=True a successful result stays shared until
      release(key) is called, which lets the owner keep the key claimed until
      the result is visible elsewhere (for example, stored in a cache).

    Inputs:
      - None.

    Outputs:
      - SingleFlight instance.

    Example:
      >>> flight = SingleFlight()
      >>> flight.do("example.com.", lambda: ["93.184.216.34"])
      ['93.184.216.34']
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: Dict[Hashable, "Future[T]"] = {}

    def in_flight(self) -> int:
        """Brief: Number of keys currently claimed."""

        with self._lock:
            return len(self._pending)

    def _discard(self, key: Hashable, fut: "Future[T]") -> None:
        with self._lock:
            if self._pending.get(key) is fut:
                del self._pending[key]

    def do(self, key: Hashable, work: Callable[[], T], *, hold: bool = False) -> T:
        """Brief: Run work for key unless a call for key is already claimed.

        Inputs:
          - key: Hashable identifier shared by equivalent calls.
          - work: Zero-argument callable producing the result.
          - hold: Keep a successful result claimed until release(key).

        Outputs:
          - The result of the single execution of work.
        """

        with self._lock:
            fut = self._pending.get(key)
            leader = fut is None
            if leader:
                fut = Future()
                self._pending[key] = fut

        if not leader:
            return fut.result()

        try:
            result = work()
        except BaseException as e:
            self._discard(key, fut)
            fut.set_exception(e)
            raise
        if not hold:
            self._discard(key, fut)
        fut.set_result(result)
        return result

    def release(self, key: Hashable) -> None:
        """Brief: Drop a held key once its work has finished.

        Inputs:
          - key: Key previously run with hold=True.

        Outputs:
          - None. Safe to call before the work returns; the key is dropped
            when its result is set.
        """

        with self._lock:
            fut = self._pending.get(key)
        if fut is None:
            return
        # Runs immediately when fut is already done.
        fut.add_done_callback(lambda f: self._discard(key, f))
