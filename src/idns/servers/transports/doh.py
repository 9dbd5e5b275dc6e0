import http.client
import importlib.metadata
import ssl
import urllib.parse
from typing import Dict, Tuple

try:
    IDNS_VERSION = importlib.metadata.version("idns")
except importlib.metadata.PackageNotFoundError:  # pragma: no cover - source checkout
    IDNS_VERSION = "unknown"

DNS_MESSAGE = "application/dns-message"


class DoHError(Exception):
    """
    Brief: DNS-over-HTTPS transport error.

    Inputs:
    - message: Description of the error

    Outputs:
    - Exception instance
    """

    pass


def doh_query(
    url: str,
    query: bytes,
    *,
    timeout_ms: int = 10000,
) -> Tuple[bytes, Dict[str, str]]:
    """
    Brief: POST one wire-format DNS query to a DoH endpoint (RFC 8484).

    Inputs:
    - url: Target DoH endpoint, e.g. https://dns.google/dns-query
    - query: Wire-format DNS query bytes
    - timeout_ms: Socket timeout for connect and read

    Outputs:
    - (body, resp_headers): response body bytes and lower-cased headers

    Notes:
    - Raises DoHError for non-200 responses, unsupported schemes, and
      network/TLS errors. Plain http:// is accepted so tests can run a local
      stub server.

    Example:
        >>> try:
        ...     doh_query('https://example.invalid/dns-query', b'\x00\x01')
        ... except DoHError:
        ...     pass
    """
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in ("https", "http"):
        raise DoHError(f"Unsupported URL scheme: {parsed.scheme}")
    if not parsed.hostname:
        raise DoHError(f"Missing host in DoH URL: {url}")

    timeout = timeout_ms / 1000.0
    path = parsed.path or "/dns-query"
    target = path + ("?" + parsed.query if parsed.query else "")
    hdrs = {
        "Content-Type": DNS_MESSAGE,
        "Accept": DNS_MESSAGE,
        "User-Agent": f"idns/{IDNS_VERSION}",
    }

    try:
        if parsed.scheme == "https":
            conn = http.client.HTTPSConnection(
                parsed.hostname,
                parsed.port or 443,
                timeout=timeout,
                context=ssl.create_default_context(),
            )
        else:
            conn = http.client.HTTPConnection(
                parsed.hostname,
                parsed.port or 80,
                timeout=timeout,
            )
        try:
            conn.request("POST", target, body=query, headers=hdrs)
            resp = conn.getresponse()
            data = resp.read()
            if resp.status != 200:
                raise DoHError(f"HTTP {resp.status}: {resp.reason}")
            headers_out = {k.lower(): v for k, v in resp.getheaders()}
            return data, headers_out
        finally:
            conn.close()
    except ssl.SSLError as e:
        raise DoHError(f"TLS error: {e}") from e
    except (OSError, http.client.HTTPException) as e:
        raise DoHError(f"Network error: {e}") from e
