import socket

DEFAULT_TIMEOUT_MS = 2000

# Replies are read into a buffer sized for the largest possible UDP message.
MAX_UDP_MESSAGE = 65535


class UDPError(Exception):
    """
    Brief: DNS-over-UDP transport error.

    Inputs:
    - message: description

    Outputs:
    - Exception instance
    """

    pass


def _family_for(host: str) -> int:
    """
    Brief: Pick the socket family for a literal upstream host.

    Inputs:
    - host: IPv4/IPv6 literal or hostname

    Outputs:
    - int: socket.AF_INET6 for IPv6 literals, otherwise socket.AF_INET

    Example:
        >>> _family_for('::1') == socket.AF_INET6
        True
    """
    return socket.AF_INET6 if ":" in host else socket.AF_INET


def udp_query(
    host: str,
    port: int,
    query: bytes,
    *,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> bytes:
    """
    Brief: Perform a single UDP DNS exchange.

    Inputs:
    - host: upstream resolver host/IP
    - port: upstream UDP port
    - query: wire-format DNS query bytes
    - timeout_ms: socket timeout in milliseconds

    Outputs:
    - bytes: wire-format DNS response

    Notes:
    - One datagram out, one datagram back; there is no retry. Socket errors
      and timeouts are raised as UDPError.

    Example:
        >>> try:
        ...     udp_query('127.0.0.1', 53, b'\x00\x01')
        ... except UDPError:
        ...     pass
    """
    try:
        s = socket.socket(_family_for(host), socket.SOCK_DGRAM)
        try:
            s.settimeout(timeout_ms / 1000.0)
            s.sendto(query, (host, int(port)))
            data, _ = s.recvfrom(MAX_UDP_MESSAGE)
            return data
        finally:
            s.close()
    except OSError as e:
        raise UDPError(f"UDP error from {host}:{port}: {e}") from e
