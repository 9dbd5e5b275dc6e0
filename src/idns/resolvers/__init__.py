"""Upstream resolution strategies: plain UDP chain and DNS-over-HTTPS."""

from .doh import DEFAULT_DOH_PROVIDERS, DoHResolver
from .upstream import DEFAULT_UPSTREAMS, PAC_UPSTREAMS, UpstreamResolver

__all__ = [
    "DEFAULT_DOH_PROVIDERS",
    "DEFAULT_UPSTREAMS",
    "DoHResolver",
    "PAC_UPSTREAMS",
    "UpstreamResolver",
]
