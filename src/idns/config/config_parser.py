"""Configuration parsing and normalization helpers for idns.

Brief:
  Combines the three configuration sources used by the CLI entrypoint:
    - command-line flags (highest precedence)
    - an optional YAML config file, validated with JSON Schema
    - built-in defaults

  The IDNS_DEBUG environment variable is read here, once, and carried as
  ResolverConfig.debug so nothing else consults the environment.

Inputs:
  - argparse namespaces, YAML config paths, environment mappings

Outputs:
  - ResolverConfig instances
"""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from idns.errors import ConfigError
from idns.names import parse_hostport, parse_upstreams
from idns.resolvers.doh import DEFAULT_DOH_PROVIDERS, DOH_TIMEOUT_S
from idns.resolvers.upstream import DEFAULT_UPSTREAMS
from idns.servers.transports.udp import DEFAULT_TIMEOUT_MS

from .config_schema import validate_config

DEBUG_ENV = "IDNS_DEBUG"
DEFAULT_LISTEN = ":5353"


@dataclass
class ResolverConfig:
    """Effective runtime configuration.

    Example:
      >>> cfg = ResolverConfig()
      >>> cfg.listen_address
      ('', 5353)
      >>> cfg.upstreams
      ['114.114.114.114:53', '8.8.8.8:53']
    """

    listen: str = DEFAULT_LISTEN
    pac_file: str = ""
    cache_file: str = ""
    upstreams: List[str] = field(default_factory=lambda: list(DEFAULT_UPSTREAMS))
    upstream_timeout_ms: int = DEFAULT_TIMEOUT_MS
    doh_providers: List[str] = field(
        default_factory=lambda: list(DEFAULT_DOH_PROVIDERS)
    )
    doh_timeout_s: float = DOH_TIMEOUT_S
    logging: Dict[str, Any] = field(default_factory=dict)
    debug: bool = False

    @property
    def listen_address(self) -> Tuple[str, int]:
        return parse_hostport(self.listen)


def is_debug_env(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Brief: True when IDNS_DEBUG is set to "1".

    Inputs:
      - environ: Optional environment mapping (defaults to os.environ).

    Outputs:
      - bool.
    """

    env = os.environ if environ is None else environ
    return env.get(DEBUG_ENV) == "1"


def load_config_file(config_path: str) -> Dict[str, Any]:
    """Brief: Read and schema-validate a YAML config file.

    Inputs:
      - config_path: Path to the YAML file.

    Outputs:
      - dict: Parsed mapping (empty for an empty file).

    Raises:
      - ConfigError when the file cannot be read, is not valid YAML, or
        fails validation.
    """

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Failed to read config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(cfg, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")
    validate_config(cfg, config_path=config_path)
    return cfg


def _pick(flag: Optional[Any], file_cfg: Mapping[str, Any], key: str, default: Any) -> Any:
    if flag is not None:
        return flag
    return file_cfg.get(key, default)


def build_config(
    args: argparse.Namespace,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> ResolverConfig:
    """Brief: Merge CLI flags, the optional YAML file, and defaults.

    Inputs:
      - args: Parsed CLI namespace with addr/pac/cache/upstreams/config
        attributes; flags left at None fall through to the file/defaults.
      - environ: Optional environment mapping for IDNS_DEBUG.

    Outputs:
      - ResolverConfig.

    Raises:
      - ConfigError for unreadable/invalid config files, an invalid listen
        address, or an empty upstream chain.

    Example:
      >>> ns = argparse.Namespace(addr="127.0.0.1:5300", pac=None, cache=None,
      ...                         upstreams="9.9.9.9:53", config=None)
      >>> build_config(ns, environ={}).upstreams
      ['9.9.9.9:53']
    """

    file_cfg: Dict[str, Any] = {}
    if getattr(args, "config", None):
        file_cfg = load_config_file(args.config)
    doh_cfg = file_cfg.get("doh") or {}

    cfg = ResolverConfig(
        listen=str(_pick(args.addr, file_cfg, "listen", DEFAULT_LISTEN)),
        pac_file=str(_pick(args.pac, file_cfg, "pac_file", "")),
        cache_file=str(_pick(args.cache, file_cfg, "cache_file", "")),
        upstreams=parse_upstreams(
            _pick(args.upstreams, file_cfg, "upstreams", list(DEFAULT_UPSTREAMS))
        ),
        upstream_timeout_ms=int(
            file_cfg.get("upstream_timeout_ms", DEFAULT_TIMEOUT_MS)
        ),
        doh_providers=list(doh_cfg.get("providers", DEFAULT_DOH_PROVIDERS)),
        doh_timeout_s=float(doh_cfg.get("timeout_s", DOH_TIMEOUT_S)),
        logging=dict(file_cfg.get("logging") or {}),
        debug=is_debug_env(environ),
    )

    try:
        parse_hostport(cfg.listen)
        for up in cfg.upstreams:
            parse_hostport(up)
    except ValueError as e:
        raise ConfigError(str(e)) from e
    if not cfg.upstreams:
        raise ConfigError("at least one upstream is required")
    return cfg
