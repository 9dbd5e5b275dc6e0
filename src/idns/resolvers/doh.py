from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from dnslib import RCODE, DNSRecord
from dnslib.dns import DNSError

from idns.names import normalize_name
from idns.resolvers.upstream import UpstreamResolver, extract_a_records
from idns.servers.transports.doh import DoHError, doh_query

logger = logging.getLogger("idns.resolvers.doh")

# query_fn(url, query_wire, timeout_ms=...) -> (body, headers)
DoHQuery = Callable[..., Tuple[bytes, Dict[str, str]]]

DEFAULT_DOH_PROVIDERS = (
    "https://dns.quad9.net/dns-query",
    "https://cloudflare-dns.com/dns-query",
    "https://dns.google/dns-query",
)

DOH_TIMEOUT_S = 10.0


class DoHResolver:
    """
    DNS-over-HTTPS resolver racing a provider pool, with UDP fallback.

    Inputs (constructor):
      - fallback: UpstreamResolver used when DoH fails
      - providers: DoH endpoint URLs queried concurrently
      - timeout: Seconds bounding the whole DoH attempt
      - query_fn: Callable performing one DoH exchange; defaults to
        idns.servers.transports.doh.doh_query

    Outputs:
      - DoHResolver instance

    Notes:
      - Every provider is asked at once and the first usable reply wins.
        Slower providers are abandoned, not awaited.
      - The fallback chain is chosen by the caller. For PAC-listed names it
        is the fixed public pool, never the operator's non-PAC chain.
    """

    def __init__(
        self,
        fallback: UpstreamResolver,
        providers: Sequence[str] = DEFAULT_DOH_PROVIDERS,
        timeout: float = DOH_TIMEOUT_S,
        query_fn: Optional[DoHQuery] = None,
    ) -> None:
        self.fallback = fallback
        self.providers = tuple(providers)
        self.timeout = float(timeout)
        self.query_fn = query_fn or doh_query

    def _ask(self, url: str, query: DNSRecord) -> DNSRecord:
        """Send query to one provider; raise DoHError unless it answered."""
        body, _headers = self.query_fn(
            url, query.pack(), timeout_ms=int(self.timeout * 1000)
        )
        try:
            reply = DNSRecord.parse(body)
        except DNSError as e:
            raise DoHError(f"Malformed DoH reply from {url}: {e}") from e
        if reply.header.rcode != RCODE.NOERROR:
            raise DoHError(
                f"{url} returned {RCODE.get(reply.header.rcode, reply.header.rcode)}"
            )
        return reply

    def query(self, name: str) -> List[str]:
        """
        Resolve name over DoH only.

        Inputs:
          - name: domain name (normalized to FQDN)

        Outputs:
          - list[str]: A-record addresses from the fastest provider

        Raises:
          - DoHError when no provider answered within the timeout
        """
        fqdn = normalize_name(name)
        if not self.providers:
            raise DoHError("no DoH providers configured")

        query = DNSRecord.question(fqdn, "A")
        errors: List[str] = []
        executor = ThreadPoolExecutor(
            max_workers=len(self.providers), thread_name_prefix="idns-doh"
        )
        try:
            futures = {
                executor.submit(self._ask, url, query): url for url in self.providers
            }
            try:
                for fut in as_completed(futures, timeout=self.timeout):
                    url = futures[fut]
                    try:
                        reply = fut.result()
                    except DoHError as e:
                        errors.append(str(e))
                        continue
                    ips = extract_a_records(reply)
                    logger.debug("doh[%s] %s -> %s", url, fqdn, ips)
                    return ips
            except FuturesTimeout:
                raise DoHError(
                    f"DoH query for {fqdn} timed out after {self.timeout:g}s"
                ) from None
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        raise DoHError("all DoH providers failed: " + "; ".join(errors))

    def resolve(self, name: str, fallback_upstreams: Sequence[str]) -> List[str]:
        """
        Resolve name over DoH, falling back to plain UDP on failure.

        Inputs:
          - name: domain name
          - fallback_upstreams: UDP chain used when DoH fails

        Outputs:
          - list[str]: addresses, possibly empty
        """
        try:
            return self.query(name)
        except DoHError as e:
            logger.debug("%s %s; falling back to UDP", normalize_name(name), e)
            return self.fallback.resolve(name, fallback_upstreams)
