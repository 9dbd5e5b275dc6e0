from __future__ import annotations

import ipaddress
import logging
from typing import List, Optional, Sequence

from dnslib import OPCODE, QTYPE, RR, A, DNSRecord
from dnslib.dns import DNSError

from idns.cache.record_cache import RecordCache
from idns.cache.writer import CacheWriter
from idns.names import normalize_name
from idns.policy import RoutingPolicy
from idns.resolvers.doh import DoHResolver
from idns.resolvers.upstream import DEFAULT_UPSTREAMS, PAC_UPSTREAMS, UpstreamResolver
from idns.utils.singleflight import SingleFlight

logger = logging.getLogger("idns.server")


class QueryHandler:
    """Answer A queries from the cache or the routed resolver.

    Brief:
      Per A question: cache lookup, then on a miss a PAC decision picks DoH
      (falling back to the fixed public UDP pool) or the configured UDP
      chain. Non-empty results are queued for the cache writer and never
      delay the reply. Concurrent misses for one name share one resolution.

    Inputs:
      - cache: RecordCache consulted first and updated after misses.
      - policy: RoutingPolicy selecting names for DoH.
      - upstream_resolver: UpstreamResolver for non-PAC names.
      - doh_resolver: DoHResolver for PAC names.
      - writer: Started CacheWriter applying updates. The caller owns it and
        stops it on shutdown.
      - upstreams: Non-PAC UDP chain (operator configured).
      - pac_upstreams: UDP pool used when DoH fails for a PAC name.

    Outputs:
      - QueryHandler instance; safe to call from many threads at once.

    Example:
      >>> handler = QueryHandler(cache, policy, upstream, doh, writer)  # doctest: +SKIP
      >>> reply = handler.handle(DNSRecord.question("example.com", "A"))  # doctest: +SKIP
    """

    def __init__(
        self,
        cache: RecordCache,
        policy: RoutingPolicy,
        upstream_resolver: UpstreamResolver,
        doh_resolver: DoHResolver,
        writer: CacheWriter,
        upstreams: Sequence[str] = DEFAULT_UPSTREAMS,
        pac_upstreams: Sequence[str] = PAC_UPSTREAMS,
    ) -> None:
        self.cache = cache
        self.policy = policy
        self.upstream_resolver = upstream_resolver
        self.doh_resolver = doh_resolver
        self.upstreams = tuple(upstreams)
        self.pac_upstreams = tuple(pac_upstreams)
        self.writer = writer
        self._flight: SingleFlight[List[str]] = SingleFlight()

    def _resolve(self, name: str) -> List[str]:
        """Brief: Route a cache miss to DoH or the UDP chain."""

        if self.policy.matches(name):
            logger.debug("hit pac rule %s", name)
            return self.doh_resolver.resolve(name, self.pac_upstreams)
        return self.upstream_resolver.resolve(name, self.upstreams)

    def _resolve_and_store(self, name: str) -> List[str]:
        """Brief: Resolve a miss and hand non-empty results to the writer.

        Notes:
          - Runs as the single-flight leader with the key held. The key is
            released once the writer has stored the result, so a caller whose
            cache miss raced this resolution either joins it or, once the key
            is released, finds the stored entry here. Cache hits, empty and
            failed results release the key right away.
        """

        def release() -> None:
            self._flight.release(name)

        cached = self.cache.get(name)
        if cached:
            release()
            return cached
        try:
            ips = self._resolve(name)
        except Exception:
            logger.error("Resolver failed for %s", name, exc_info=True)
            release()
            return []
        if ips:
            self.writer.submit(name, ips, on_applied=release)
        else:
            logger.info("No record found for %s", name)
            release()
        return ips

    def lookup(self, name: str) -> List[str]:
        """Brief: Return the addresses known for name, resolving on a miss.

        Inputs:
          - name: Query name; matched exactly after trailing-dot
            normalization.

        Outputs:
          - list[str]: Addresses in cache/response order, possibly empty.
        """

        fqdn = normalize_name(name)
        ips = self.cache.get(fqdn)
        if ips:
            logger.debug("cache hit %s -> %s", fqdn, ips)
            return ips
        return list(
            self._flight.do(fqdn, lambda: self._resolve_and_store(fqdn), hold=True)
        )

    def handle(self, request: DNSRecord) -> DNSRecord:
        """Brief: Build the reply for a decoded request.

        Inputs:
          - request: Parsed DNS message.

        Outputs:
          - DNSRecord reply with rcode NOERROR echoing every question. Only
            A questions of QUERY messages get answers; everything else is
            echoed back with an empty answer section.
        """

        reply = request.reply(ra=1, aa=0)
        reply.questions = list(request.questions)
        if request.header.opcode != OPCODE.QUERY:
            return reply

        for q in reply.questions:
            if q.qtype != QTYPE.A:
                continue
            qname = str(q.qname)
            logger.debug("query %s", qname)
            for ip in self.lookup(qname):
                try:
                    addr = ipaddress.IPv4Address(ip)
                except ValueError:
                    logger.debug("Skipping non-IPv4 address %r for %s", ip, qname)
                    continue
                reply.add_answer(RR(q.qname, QTYPE.A, rdata=A(str(addr))))
        return reply

    def handle_bytes(self, data: bytes) -> Optional[bytes]:
        """Brief: Wire-format wrapper around handle().

        Inputs:
          - data: Raw DNS request datagram.

        Outputs:
          - bytes reply, or None when the request cannot be parsed.
        """

        try:
            request = DNSRecord.parse(data)
        except DNSError as e:
            logger.debug("Dropping malformed request: %s", e)
            return None
        return self.handle(request).pack()
