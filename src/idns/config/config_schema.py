"""JSON Schema-based validation for the optional idns YAML configuration."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from jsonschema import Draft202012Validator, ValidationError

from idns.errors import ConfigError

logger = logging.getLogger(__name__)

_ENDPOINT = {"type": "string", "minLength": 1}

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "idns configuration",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "listen": {"type": "string"},
        "pac_file": {"type": "string"},
        "cache_file": {"type": "string"},
        "upstreams": {
            "oneOf": [
                {"type": "string"},
                {"type": "array", "items": _ENDPOINT},
            ]
        },
        "upstream_timeout_ms": {"type": "integer", "minimum": 1},
        "doh": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "providers": {
                    "type": "array",
                    "items": {"type": "string", "pattern": "^https?://"},
                    "minItems": 1,
                },
                "timeout_s": {"type": "number", "exclusiveMinimum": 0},
            },
        },
        "logging": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "level": {
                    "type": "string",
                    "enum": [
                        "debug",
                        "info",
                        "warn",
                        "warning",
                        "error",
                        "crit",
                        "critical",
                    ],
                },
                "stderr": {"type": "boolean"},
                "file": {"type": "string"},
                "syslog": {"type": ["boolean", "object"]},
            },
        },
    },
}


def _format_errors(errors: List[ValidationError], *, config_path: Optional[str]) -> str:
    """Brief: Format jsonschema validation errors into a human-readable string.

    Inputs:
      - errors: List of jsonschema.ValidationError instances.
      - config_path: Optional path to the YAML config being validated.

    Outputs:
      - String suitable for display in logs or CLI output.
    """

    lines: List[str] = [f"Invalid configuration in {config_path or '<config dict>'}:"]
    for err in errors:
        instance_path = "/".join(str(p) for p in err.path) or "<root>"
        schema_path = "/".join(str(p) for p in err.schema_path)
        lines.append(f"- {instance_path}: {err.message} (schema: {schema_path})")
    return "\n".join(lines)


def validate_config(cfg: Dict[str, Any], *, config_path: Optional[str] = None) -> None:
    """Brief: Validate a parsed YAML configuration mapping against CONFIG_SCHEMA.

    Inputs:
      - cfg: Dict loaded from YAML (top-level configuration mapping).
      - config_path: Optional path to the YAML file, used only in messages.

    Outputs:
      - None on success.

    Raises:
      - ConfigError listing every validation error.

    Example:
      >>> validate_config({"listen": ":5353", "upstreams": ["1.1.1.1:53"]})
    """

    validator = Draft202012Validator(CONFIG_SCHEMA)
    errors = sorted(validator.iter_errors(cfg), key=lambda e: list(e.path))
    if errors:
        raise ConfigError(_format_errors(errors, config_path=config_path))
