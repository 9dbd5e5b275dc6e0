import logging
import socket
import socketserver

from idns.servers.handler import QueryHandler

logger = logging.getLogger("idns.server")

# Advertised/accepted DNS message size over UDP.
UDP_MESSAGE_SIZE = 65535


class DNSUDPHandler(socketserver.BaseRequestHandler):
    """
    Handles one UDP DNS datagram.

    Example use:
        This handler is used internally by DNSServer and is not
        typically instantiated directly by users.
    """

    def handle(self) -> None:
        data, sock = self.request
        query_handler: QueryHandler = self.server.query_handler  # type: ignore[attr-defined]
        try:
            wire = query_handler.handle_bytes(data)
        except Exception:
            logger.exception("Unhandled error answering %s", self.client_address[0])
            return
        if wire is None:
            return
        try:
            sock.sendto(wire, self.client_address)
        except OSError as e:
            logger.debug("Failed to send reply to %s: %s", self.client_address, e)


class _ReusableUDPServer(socketserver.ThreadingUDPServer):
    """ThreadingUDPServer with address/port reuse and 64 KiB datagrams."""

    allow_reuse_address = True
    daemon_threads = True
    max_packet_size = UDP_MESSAGE_SIZE

    def server_bind(self) -> None:
        # Several processes may share the port where SO_REUSEPORT exists.
        if hasattr(socket, "SO_REUSEPORT"):
            try:
                self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
            except OSError:
                logger.debug("SO_REUSEPORT not supported on this platform")
        super().server_bind()


class DNSServer:
    """A basic UDP DNS server wrapper.

    Example use:
        >>> import threading
        >>> server = DNSServer("127.0.0.1", 5355, handler)  # doctest: +SKIP
        >>> threading.Thread(target=server.serve_forever, daemon=True).start()  # doctest: +SKIP
        >>> server.stop()  # doctest: +SKIP
    """

    def __init__(self, host: str, port: int, query_handler: QueryHandler) -> None:
        """Initialize a UDP DNSServer.

        Inputs:
            host: The host to listen on ("" for all interfaces).
            port: The port to listen on (0 picks a free port).
            query_handler: QueryHandler answering each datagram.
        """
        try:
            self.server = _ReusableUDPServer((host, port), DNSUDPHandler)
        except PermissionError as e:
            logger.error(
                "Permission denied when binding to %s:%d. Try a port >1024 or run with elevated privileges. Original error: %s",
                host,
                port,
                e,
            )
            raise
        self.server.query_handler = query_handler  # type: ignore[attr-defined]
        logger.debug("DNS UDP server bound to %s:%d", *self.address)

    @property
    def address(self):
        return self.server.server_address[:2]

    def serve_forever(self) -> None:
        """Start the UDP server loop; returns after stop() or KeyboardInterrupt."""
        try:
            self.server.serve_forever()
        except KeyboardInterrupt:
            pass

    def stop(self) -> None:
        """Request graceful shutdown and close the underlying UDP socket.

        Inputs:
          - None
        Outputs:
          - None; best-effort shutdown suitable for use from signal handlers.
        """
        try:
            self.server.shutdown()
        except Exception:
            logger.exception("Error while shutting down UDP server")
        try:
            self.server.server_close()
        except Exception:
            logger.exception("Error while closing UDP server socket")
