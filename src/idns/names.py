from __future__ import annotations

from typing import Iterable, List, Tuple, Union

DEFAULT_DNS_PORT = 53


def normalize_name(name: str) -> str:
    """
    Brief: Return the fully-qualified (trailing-dot) form of a domain name.

    Inputs:
      - name: domain name with or without a trailing dot

    Outputs:
      - str: name with exactly one trailing dot; case is preserved

    Example:
      >>> normalize_name("example.com")
      'example.com.'
      >>> normalize_name("example.com.")
      'example.com.'
    """
    name = str(name).strip()
    if not name.endswith("."):
        name += "."
    return name


def parse_hostport(text: str, default_port: int = DEFAULT_DNS_PORT) -> Tuple[str, int]:
    """
    Brief: Split a "host:port" endpoint into its parts.

    Inputs:
      - text: "host:port", "host", ":port", or "[v6addr]:port"
      - default_port: port used when none is given

    Outputs:
      - (host, port): host may be "" meaning all interfaces

    Raises:
      - ValueError when the port is not an integer in 0..65535

    Example:
      >>> parse_hostport("8.8.8.8:53")
      ('8.8.8.8', 53)
      >>> parse_hostport(":5353")
      ('', 5353)
      >>> parse_hostport("[::1]:5300")
      ('::1', 5300)
    """
    text = str(text).strip()
    if text.startswith("["):
        end = text.find("]")
        if end < 0:
            raise ValueError(f"unterminated IPv6 literal in {text!r}")
        host = text[1:end]
        rest = text[end + 1 :]
        port_s = rest[1:] if rest.startswith(":") else ""
    elif text.count(":") == 1:
        host, port_s = text.split(":", 1)
    else:
        # Bare hostname/IPv4, or an unbracketed IPv6 literal without a port.
        host, port_s = text, ""

    if not port_s:
        return host, int(default_port)
    try:
        port = int(port_s)
    except ValueError:
        raise ValueError(f"invalid port in endpoint {text!r}") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range in endpoint {text!r}")
    return host, port


def parse_upstreams(value: Union[str, Iterable[str], None]) -> List[str]:
    """
    Brief: Normalize an upstream chain given as a comma string or a list.

    Inputs:
      - value: "a:53,b:53", ["a:53", "b:53"], or None

    Outputs:
      - list[str]: endpoints in configured order, blanks dropped

    Example:
      >>> parse_upstreams("114.114.114.114:53, 8.8.8.8:53")
      ['114.114.114.114:53', '8.8.8.8:53']
    """
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else list(value)
    out = [str(item).strip() for item in items]
    return [item for item in out if item]
