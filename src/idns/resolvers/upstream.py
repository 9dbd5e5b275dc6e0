from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from dnslib import QTYPE, DNSRecord
from dnslib.dns import DNSError

from idns.names import normalize_name, parse_hostport
from idns.servers.transports.udp import DEFAULT_TIMEOUT_MS, UDPError, udp_query

logger = logging.getLogger("idns.resolvers.upstream")

# exchange(host, port, query_wire, timeout_ms=...) -> reply_wire
Exchange = Callable[..., bytes]

# Fallback pool for DoH failures on PAC-listed names. Not configurable.
PAC_UPSTREAMS = ("8.8.8.8:53", "8.8.4.4:53", "1.1.1.1:53", "114.114.114.114:53")

# Default chain for names that are not in the PAC list.
DEFAULT_UPSTREAMS = ("114.114.114.114:53", "8.8.8.8:53")


def is_transport_success(query: DNSRecord, reply: DNSRecord) -> bool:
    """
    Brief: Decide whether an upstream exchange counts as answered.

    Inputs:
      - query: DNSRecord that was sent
      - reply: DNSRecord parsed from the upstream datagram

    Outputs:
      - bool: True for any reply to this query, whatever its rcode and
        whether or not it carries A records. An empty answer is a valid
        (negative) answer and stops the chain.
    """
    return bool(reply.header.qr) and reply.header.id == query.header.id


def extract_a_records(reply: DNSRecord) -> List[str]:
    """
    Brief: Return the A-record addresses of the answer section in order.

    Inputs:
      - reply: parsed DNS response

    Outputs:
      - list[str]: IPv4 strings; non-A records (CNAME etc.) are discarded
    """
    return [str(rr.rdata) for rr in reply.rr if rr.rtype == QTYPE.A]


class UpstreamResolver:
    """
    Sequential plain-UDP resolver over an ordered endpoint list.

    Inputs (constructor):
      - exchange: Callable performing one UDP exchange; defaults to
        idns.servers.transports.udp.udp_query
      - timeout_ms: Per-exchange timeout handed to exchange

    Outputs:
      - UpstreamResolver instance

    Example:
      >>> resolver = UpstreamResolver()
      >>> resolver.resolve("example.com", ["127.0.0.1:9"])  # doctest: +SKIP
      []
    """

    def __init__(
        self,
        exchange: Optional[Exchange] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.exchange = exchange or udp_query
        self.timeout_ms = int(timeout_ms)

    def _query_one(self, query: DNSRecord, upstream: str) -> DNSRecord:
        """Send query to one endpoint; raise UDPError unless it answered."""
        try:
            host, port = parse_hostport(upstream)
        except ValueError as e:
            raise UDPError(str(e)) from e
        wire = self.exchange(host, port, query.pack(), timeout_ms=self.timeout_ms)
        try:
            reply = DNSRecord.parse(wire)
        except DNSError as e:
            raise UDPError(f"Malformed reply from {upstream}: {e}") from e
        if not is_transport_success(query, reply):
            raise UDPError(f"Reply from {upstream} does not match query")
        return reply

    def resolve(self, name: str, upstreams: Sequence[str]) -> List[str]:
        """
        Resolve the A records of name through upstreams, in order.

        Inputs:
          - name: domain name (normalized to FQDN)
          - upstreams: ordered "host:port" endpoints; each is tried once

        Outputs:
          - list[str]: addresses from the first endpoint that answered, or
            [] when every endpoint failed or the answer held no A records
        """
        fqdn = normalize_name(name)
        query = DNSRecord.question(fqdn, "A")
        last = len(upstreams) - 1
        for i, upstream in enumerate(upstreams):
            try:
                reply = self._query_one(query, upstream)
            except UDPError as e:
                if i == last:
                    logger.warning("Error querying %s from upstreams: %s", fqdn, e)
                    return []
                logger.debug("Upstream %s failed for %s: %s", upstream, fqdn, e)
                continue
            ips = extract_a_records(reply)
            logger.debug("udp[%s] %s -> %s", upstream, fqdn, ips)
            return ips

        logger.info("No upstreams configured to resolve %s", fqdn)
        return []
