from __future__ import annotations

import argparse
import logging
import signal
import threading
from typing import List

from .cache.record_cache import RecordCache
from .cache.writer import CacheWriter
from .config.config_parser import ResolverConfig, build_config
from .config.logging_config import init_logging
from .errors import CacheFileError, ConfigError
from .policy import RoutingPolicy
from .resolvers.doh import DoHResolver
from .resolvers.upstream import PAC_UPSTREAMS, UpstreamResolver
from .servers.handler import QueryHandler
from .servers.udp_server import DNSServer


def build_parser() -> argparse.ArgumentParser:
    """
    Brief: Build the CLI parser.

    Outputs:
      - argparse.ArgumentParser accepting -addr, -pac, -cache, -upstreams and
        -config (each also spelled with a double dash). Unset flags parse as
        None so the YAML config and defaults can fill them in.
    """
    parser = argparse.ArgumentParser(
        prog="idns",
        description="Caching DNS forwarder with PAC-routed DNS-over-HTTPS",
    )
    parser.add_argument(
        "-addr", "--addr", default=None, help="Address for DNS server (default :5353)"
    )
    parser.add_argument("-pac", "--pac", default=None, help="The file path to pac")
    parser.add_argument(
        "-cache", "--cache", default=None, help="The file path to the record cache"
    )
    parser.add_argument(
        "-upstreams",
        "--upstreams",
        default=None,
        help=(
            "Comma-separated DNS upstreams for domains not in pac "
            "(default 114.114.114.114:53,8.8.8.8:53)"
        ),
    )
    parser.add_argument(
        "-config", "--config", default=None, help="Optional YAML config file"
    )
    return parser


def build_handler(
    cfg: ResolverConfig, cache: RecordCache, writer: CacheWriter
) -> QueryHandler:
    """
    Brief: Wire resolvers, policy and cache into a QueryHandler.

    Inputs:
      - cfg: effective ResolverConfig
      - cache: loaded RecordCache
      - writer: started CacheWriter for that cache

    Outputs:
      - QueryHandler
    """
    policy = RoutingPolicy.load_from(cfg.pac_file)
    upstream = UpstreamResolver(timeout_ms=cfg.upstream_timeout_ms)
    doh = DoHResolver(
        upstream, providers=cfg.doh_providers, timeout=cfg.doh_timeout_s
    )
    return QueryHandler(
        cache,
        policy,
        upstream,
        doh,
        writer,
        upstreams=cfg.upstreams,
        pac_upstreams=PAC_UPSTREAMS,
    )


def main(argv: List[str] | None = None) -> int:
    """
    Main entry point for the DNS server.

    Args:
        argv: Command-line arguments.

    Returns:
        An exit code: 0 on clean shutdown, 1 on startup or cache-file
        failure, 2 on SIGTERM/SIGINT.

    Example use:
        CLI:
            IDNS_DEBUG=1 idns -addr 127.0.0.1:5353 -pac pac.txt -cache cache.txt
    """
    args = build_parser().parse_args(argv)

    try:
        cfg = build_config(args)
    except ConfigError as exc:
        print(str(exc))
        return 1

    init_logging(cfg.logging, debug=cfg.debug)
    logger = logging.getLogger("idns.main")

    cache = RecordCache(cfg.cache_file or None)
    if cfg.cache_file:
        try:
            cache.load_from(cfg.cache_file)
        except CacheFileError as exc:
            logger.critical("%s", exc)
            return 1

    shutdown_event = threading.Event()
    exit_code = 0

    def _on_cache_fatal(exc: CacheFileError) -> None:
        nonlocal exit_code
        exit_code = 1
        shutdown_event.set()

    writer = CacheWriter(cache, on_fatal=_on_cache_fatal)
    writer.start()
    handler = build_handler(cfg, cache, writer)
    logger.debug("non-PAC upstreams: %s", cfg.upstreams)

    host, port = cfg.listen_address
    try:
        server = DNSServer(host, port, handler)
    except OSError as exc:
        logger.critical("Failed to start server on %s: %s", cfg.listen, exc)
        writer.stop()
        return 1

    def _request_shutdown(reason: str, code: int) -> None:
        nonlocal exit_code
        if shutdown_event.is_set():
            return
        exit_code = code
        logger.info("Received %s, initiating shutdown (exit code=%d)", reason, code)
        shutdown_event.set()

    for signame, code in (("SIGHUP", 0), ("SIGTERM", 2), ("SIGINT", 2)):
        signum = getattr(signal, signame, None)
        if signum is None:
            continue
        try:
            signal.signal(
                signum, lambda _s, _f, n=signame, c=code: _request_shutdown(n, c)
            )
        except ValueError:
            # signal.signal only works from the main thread.
            logger.debug("Could not install %s handler", signame)

    udp_thread = threading.Thread(
        target=server.serve_forever, name="idns-udp", daemon=True
    )
    udp_thread.start()
    logger.info("Starting at %s", cfg.listen)

    try:
        while not shutdown_event.wait(1.0):
            if not udp_thread.is_alive():
                logger.error("UDP server thread exited unexpectedly")
                exit_code = exit_code or 1
                break
    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down")
    finally:
        server.stop()
        udp_thread.join(timeout=5.0)
        writer.stop()

    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())  # pragma: no cover
