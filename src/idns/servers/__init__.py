"""DNS serving: query handling, UDP listener and upstream transports."""
