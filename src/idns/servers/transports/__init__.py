"""Upstream transports used by the idns resolvers."""
