"""Brief: Unit tests for idns.utils.singleflight.SingleFlight.

Inputs:
  - None

Outputs:
  - None
"""

from __future__ import annotations

import threading
from typing import List

import pytest

from idns.utils.singleflight import SingleFlight


def test_do_returns_work_result_and_releases_key() -> None:
    flight: SingleFlight[int] = SingleFlight()
    assert flight.do("k", lambda: 42) == 42
    assert flight.in_flight() == 0
    # A later call runs the work again.
    assert flight.do("k", lambda: 7) == 7


def test_followers_share_leader_result() -> None:
    """Brief: Callers arriving mid-flight wait for the leader's result.

    Inputs:
      - None.

    Outputs:
      - None; asserts one execution and identical results.
    """

    flight: SingleFlight[str] = SingleFlight()
    started = threading.Event()
    release = threading.Event()
    runs: List[int] = []
    results: List[str] = []
    lock = threading.Lock()

    def work() -> str:
        runs.append(1)
        started.set()
        release.wait(5)
        return "done"

    entered = threading.Semaphore(0)

    def call() -> None:
        entered.release()
        value = flight.do("same", work)
        with lock:
            results.append(value)

    leader = threading.Thread(target=call)
    leader.start()
    assert started.wait(5)
    followers = [threading.Thread(target=call) for _ in range(5)]
    for t in followers:
        t.start()
    for _ in range(6):
        assert entered.acquire(timeout=5)
    threading.Event().wait(0.1)
    release.set()
    for t in [leader, *followers]:
        t.join()

    assert runs == [1]
    assert results == ["done"] * 6


def test_exception_propagates_to_leader_and_clears_key() -> None:
    flight: SingleFlight[int] = SingleFlight()

    def boom() -> int:
        raise RuntimeError("nope")

    with pytest.raises(RuntimeError):
        flight.do("k", boom)
    assert flight.in_flight() == 0


def test_distinct_keys_do_not_share() -> None:
    flight: SingleFlight[str] = SingleFlight()
    assert flight.do("a", lambda: "A") == "A"
    assert flight.do("b", lambda: "B") == "B"


def test_held_result_is_shared_until_released() -> None:
    flight: SingleFlight[str] = SingleFlight()
    runs: List[str] = []

    def work() -> str:
        runs.append("run")
        return "v1"

    assert flight.do("k", work, hold=True) == "v1"
    assert flight.in_flight() == 1
    # Later callers get the held result without running work.
    assert flight.do("k", lambda: "v2") == "v1"
    assert runs == ["run"]

    flight.release("k")
    assert flight.in_flight() == 0
    assert flight.do("k", lambda: "v3") == "v3"


def test_release_during_work_drops_key_when_done() -> None:
    flight: SingleFlight[str] = SingleFlight()

    def work() -> str:
        flight.release("k")
        # Still claimed until the result is published.
        assert flight.in_flight() == 1
        return "v"

    assert flight.do("k", work, hold=True) == "v"
    assert flight.in_flight() == 0


def test_held_failure_is_not_kept() -> None:
    flight: SingleFlight[int] = SingleFlight()

    def boom() -> int:
        raise RuntimeError("nope")

    with pytest.raises(RuntimeError):
        flight.do("k", boom, hold=True)
    assert flight.in_flight() == 0


def test_release_unknown_key_is_noop() -> None:
    SingleFlight().release("missing")
