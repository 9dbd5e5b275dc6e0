"""idns: caching DNS forwarder with PAC-routed DNS-over-HTTPS."""
