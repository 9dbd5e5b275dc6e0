"""Configuration and logging setup for idns."""
