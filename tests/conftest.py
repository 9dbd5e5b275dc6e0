"""
Brief: Global pytest configuration enforcing per-test 10s timeout and shared
DNS fakes.

Inputs:
  - None

Outputs:
  - None
"""

import os
import signal
import sys
import threading

import pytest
from dnslib import QTYPE, RR, A, CNAME, DNSRecord

# Ensure 'src' is on sys.path so 'idns' package is importable in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)


def _alarm_handler(signum, frame):
    """
    Brief: Signal handler that raises TimeoutError when alarm triggers.

    Inputs:
      - signum: signal number (int)
      - frame: current frame (ignored)

    Outputs:
      - None: Raises TimeoutError to fail the test
    """
    raise TimeoutError("Test exceeded 10 seconds")


if hasattr(signal, "SIGALRM"):
    signal.signal(signal.SIGALRM, _alarm_handler)


@pytest.fixture(autouse=True)
def enforce_test_timeout():
    """
    Brief: Enforce a hard 10-second timeout for each test.

    Inputs:
      - None

    Outputs:
      - None: Cancels alarm after test
    """
    if hasattr(signal, "SIGALRM"):
        signal.alarm(10)
        try:
            yield
        finally:
            signal.alarm(0)
    else:
        yield


def build_reply(query_wire, ips=(), cnames=(), rcode=0):
    """
    Brief: Build a wire-format reply to query_wire.

    Inputs:
      - query_wire: packed DNS query
      - ips: A-record addresses for the answer section, in order
      - cnames: CNAME targets prepended to the answer section
      - rcode: response code

    Outputs:
      - bytes: packed reply with the query's ID
    """
    q = DNSRecord.parse(query_wire)
    r = q.reply()
    r.header.rcode = rcode
    for target in cnames:
        r.add_answer(RR(q.q.qname, QTYPE.CNAME, rdata=CNAME(target), ttl=60))
    for ip in ips:
        r.add_answer(RR(q.q.qname, QTYPE.A, rdata=A(ip), ttl=60))
    return r.pack()


class FakeExchange:
    """
    Brief: Scripted stand-in for udp_query recording every endpoint asked.

    Inputs:
      - script: mapping "host:port" -> list of IPs, an Exception instance to
        raise, or a callable(query_wire) -> bytes

    Outputs:
      - Callable with the udp_query signature
    """

    def __init__(self, script=None):
        self.script = dict(script or {})
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, host, port, wire, timeout_ms=2000):
        key = f"{host}:{port}"
        with self._lock:
            self.calls.append(key)
        action = self.script.get(key)
        if action is None:
            from idns.servers.transports.udp import UDPError

            raise UDPError(f"no route to {key}")
        if isinstance(action, Exception):
            raise action
        if callable(action):
            return action(wire)
        return build_reply(wire, action)


class FakeDoH:
    """
    Brief: Scripted stand-in for doh_query.

    Inputs:
      - script: mapping url -> list of IPs, Exception instance, or
        callable(query_wire) -> bytes

    Outputs:
      - Callable with the doh_query signature
    """

    def __init__(self, script=None):
        self.script = dict(script or {})
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, url, wire, timeout_ms=10000, **_kw):
        with self._lock:
            self.calls.append(url)
        action = self.script.get(url)
        if action is None:
            from idns.servers.transports.doh import DoHError

            raise DoHError(f"no provider at {url}")
        if isinstance(action, Exception):
            raise action
        if callable(action):
            return action(wire), {}
        return build_reply(wire, action), {"content-type": "application/dns-message"}


@pytest.fixture
def reply_builder():
    return build_reply


@pytest.fixture
def fake_exchange():
    return FakeExchange


@pytest.fixture
def fake_doh():
    return FakeDoH
