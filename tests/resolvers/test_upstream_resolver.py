"""
Brief: Tests for the sequential UDP upstream chain.

Inputs:
  - None

Outputs:
  - None
"""

from dnslib import DNSRecord

from idns.resolvers.upstream import (
    UpstreamResolver,
    extract_a_records,
    is_transport_success,
)
from idns.servers.transports.udp import UDPError


def test_fallback_to_second_upstream_in_order(fake_exchange):
    """
    Brief: A errors, B answers: result is B's records and A was tried first.

    Inputs:
      - None

    Outputs:
      - None
    """
    exchange = fake_exchange(
        {"10.0.0.1:53": UDPError("timeout"), "10.0.0.2:53": ["1.2.3.4"]}
    )
    resolver = UpstreamResolver(exchange=exchange)
    assert resolver.resolve("example.com", ["10.0.0.1:53", "10.0.0.2:53"]) == [
        "1.2.3.4"
    ]
    assert exchange.calls == ["10.0.0.1:53", "10.0.0.2:53"]


def test_empty_answer_stops_chain(fake_exchange):
    exchange = fake_exchange({"10.0.0.1:53": [], "10.0.0.2:53": ["1.2.3.4"]})
    resolver = UpstreamResolver(exchange=exchange)
    assert resolver.resolve("example.com", ["10.0.0.1:53", "10.0.0.2:53"]) == []
    assert exchange.calls == ["10.0.0.1:53"]


def test_nxdomain_counts_as_transport_success(fake_exchange, reply_builder):
    exchange = fake_exchange(
        {
            "10.0.0.1:53": lambda wire: reply_builder(wire, rcode=3),
            "10.0.0.2:53": ["1.2.3.4"],
        }
    )
    resolver = UpstreamResolver(exchange=exchange)
    assert resolver.resolve("nope.example", ["10.0.0.1:53", "10.0.0.2:53"]) == []
    assert exchange.calls == ["10.0.0.1:53"]


def test_all_upstreams_fail_returns_empty(fake_exchange):
    exchange = fake_exchange()
    resolver = UpstreamResolver(exchange=exchange)
    assert resolver.resolve("example.com", ["10.0.0.1:53", "10.0.0.2:53"]) == []
    assert exchange.calls == ["10.0.0.1:53", "10.0.0.2:53"]


def test_each_upstream_tried_once(fake_exchange):
    exchange = fake_exchange()
    UpstreamResolver(exchange=exchange).resolve("example.com", ["10.0.0.1:53"])
    assert exchange.calls == ["10.0.0.1:53"]


def test_no_upstreams_returns_empty(fake_exchange):
    exchange = fake_exchange()
    assert UpstreamResolver(exchange=exchange).resolve("example.com", []) == []
    assert exchange.calls == []


def test_non_a_records_are_discarded(fake_exchange, reply_builder):
    exchange = fake_exchange(
        {
            "10.0.0.1:53": lambda wire: reply_builder(
                wire, ips=["10.1.1.1", "10.1.1.2"], cnames=["edge.example.net."]
            )
        }
    )
    resolver = UpstreamResolver(exchange=exchange)
    assert resolver.resolve("www.example.com", ["10.0.0.1:53"]) == [
        "10.1.1.1",
        "10.1.1.2",
    ]


def test_malformed_reply_moves_to_next(fake_exchange):
    exchange = fake_exchange(
        {"10.0.0.1:53": lambda wire: b"\x00\x01garbage", "10.0.0.2:53": ["1.2.3.4"]}
    )
    resolver = UpstreamResolver(exchange=exchange)
    assert resolver.resolve("example.com", ["10.0.0.1:53", "10.0.0.2:53"]) == [
        "1.2.3.4"
    ]


def test_mismatched_reply_id_moves_to_next(fake_exchange, reply_builder):
    def wrong_id(wire):
        q = DNSRecord.parse(wire)
        q.header.id = (q.header.id + 1) % 65536
        return reply_builder(q.pack(), ips=["6.6.6.6"])

    exchange = fake_exchange({"10.0.0.1:53": wrong_id, "10.0.0.2:53": ["1.2.3.4"]})
    resolver = UpstreamResolver(exchange=exchange)
    assert resolver.resolve("example.com", ["10.0.0.1:53", "10.0.0.2:53"]) == [
        "1.2.3.4"
    ]


def test_bad_endpoint_is_skipped(fake_exchange):
    exchange = fake_exchange({"10.0.0.2:53": ["1.2.3.4"]})
    resolver = UpstreamResolver(exchange=exchange)
    assert resolver.resolve("example.com", ["10.0.0.1:notaport", "10.0.0.2"]) == [
        "1.2.3.4"
    ]
    assert exchange.calls == ["10.0.0.2:53"]


def test_query_is_type_a_for_fqdn(fake_exchange, reply_builder):
    seen = []

    def capture(wire):
        seen.append(DNSRecord.parse(wire))
        return reply_builder(wire, ips=["1.2.3.4"])

    UpstreamResolver(exchange=fake_exchange({"10.0.0.1:53": capture})).resolve(
        "example.com", ["10.0.0.1:53"]
    )
    q = seen[0].q
    assert str(q.qname) == "example.com."
    assert q.qtype == 1


def test_success_predicate_and_extraction(reply_builder):
    query = DNSRecord.question("example.com.", "A")
    reply = DNSRecord.parse(reply_builder(query.pack(), ips=["1.1.1.1", "2.2.2.2"]))
    assert is_transport_success(query, reply)
    assert extract_a_records(reply) == ["1.1.1.1", "2.2.2.2"]
    # A query echoed back (QR=0) is not an answer.
    assert not is_transport_success(query, query)
