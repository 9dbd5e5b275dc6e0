"""Exception types shared across idns.

Transport-level failures live next to their transports
(`idns.servers.transports.udp.UDPError`, `idns.servers.transports.doh.DoHError`);
the errors here cover startup and persistence problems that end the process.
"""


class IDNSError(Exception):
    """Base class for idns errors."""


class CacheFileError(IDNSError):
    """
    Brief: The persisted cache file could not be read or written.

    Inputs:
    - message: description including the path and the underlying error

    Outputs:
    - Exception instance

    Notes:
    - A missing file on load is not an error; everything else is fatal.
    """


class ConfigError(IDNSError, ValueError):
    """
    Brief: Invalid configuration file contents or flag value.

    Inputs:
    - message: human-readable description

    Outputs:
    - Exception instance
    """
