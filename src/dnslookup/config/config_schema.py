"""JSON Schema-based validation for dnslookup YAML configuration.

The schema is small enough to live next to the code that reads it; it is
validated with jsonschema's Draft 2020-12 validator.
"""

from __future__ import annotations

import ipaddress
import logging
from typing import Any, Dict, List, Optional

from jsonschema import Draft202012Validator, ValidationError

logger = logging.getLogger(__name__)

_LEVEL_NAMES = ["debug", "info", "warn", "warning", "error", "crit", "critical"]

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "dnslookup configuration",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "root_server": {"type": "string", "minLength": 1},
        "port": {"type": "integer", "minimum": 1, "maximum": 65535},
        "timeout_ms": {"type": "integer", "minimum": 1},
        "retries": {"type": "integer", "minimum": 0, "maximum": 10},
        "max_indirection": {"type": "integer", "minimum": 0},
        "verbose": {"type": "boolean"},
        "source_ip": {"type": ["string", "null"]},
        "logging": {
            "type": ["object", "null"],
            "additionalProperties": False,
            "properties": {
                "level": {"type": "string", "enum": _LEVEL_NAMES},
                "stderr": {"type": "boolean"},
                "file": {"type": ["string", "null"]},
                "syslog": {
                    "oneOf": [
                        {"type": "boolean"},
                        {
                            "type": "object",
                            "additionalProperties": False,
                            "properties": {
                                "address": {
                                    "oneOf": [
                                        {"type": "string"},
                                        {
                                            "type": "array",
                                            "prefixItems": [
                                                {"type": "string"},
                                                {"type": "integer"},
                                            ],
                                            "minItems": 2,
                                            "maxItems": 2,
                                        },
                                    ]
                                },
                                "facility": {"type": "string"},
                                "tag": {"type": "string"},
                            },
                        },
                    ]
                },
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

    header = f"Invalid configuration in {config_path or '<config dict>'}:"
    lines: List[str] = [header]
    for err in errors:
        instance_path = "/".join(str(p) for p in err.path) or "<root>"
        schema_path = "/".join(str(p) for p in err.schema_path)
        lines.append(f"- {instance_path}: {err.message} (schema: {schema_path})")
    return "\n".join(lines)


def _check_addresses(cfg: Dict[str, Any]) -> List[str]:
    problems: List[str] = []
    for key in ("root_server", "source_ip"):
        value = cfg.get(key)
        if not isinstance(value, str):
            continue
        try:
            ipaddress.IPv4Address(value)
        except ValueError:
            problems.append(f"- {key}: {value!r} is not an IPv4 address")
    return problems


def validate_config(
    cfg: Dict[str, Any],
    *,
    config_path: Optional[str] = None,
) -> None:
    """Brief: Validate a parsed YAML configuration mapping.

    Inputs:
      - cfg: Dict loaded from YAML (top-level configuration mapping).
      - config_path: Optional path to the YAML file, used only for messages.

    Outputs:
      - None on success.

    Raises:
      - ValueError: when validation fails; the message lists every problem
        with its instance path.

    Example:
      >>> validate_config({"root_server": "198.41.0.4", "timeout_ms": 5000})
    """

    if not isinstance(cfg, dict):
        raise ValueError(
            f"Invalid configuration in {config_path or '<config dict>'}: "
            "top level must be a mapping"
        )

    validator = Draft202012Validator(CONFIG_SCHEMA)
    errors = sorted(validator.iter_errors(cfg), key=lambda e: list(e.path))
    if errors:
        raise ValueError(_format_errors(errors, config_path=config_path))

    # The schema only checks types; addresses must also parse, because the
    # transport is IPv4-only.
    problems = _check_addresses(cfg)
    if problems:
        header = f"Invalid configuration in {config_path or '<config dict>'}:"
        raise ValueError("\n".join([header] + problems))
    logger.debug("configuration %s is valid", config_path or "<config dict>")
