"""Configuration loading for the dnslookup CLI.

Brief:
  Reads the YAML config file, validates it against the JSON Schema in
  config_schema, layers command-line overrides on top and produces an
  immutable ResolverSettings snapshot.

Inputs:
  - YAML config paths and override mappings

Outputs:
  - ResolverSettings instances
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

import yaml

from ..resolver import DEFAULT_PORT, DEFAULT_RETRIES, DEFAULT_TIMEOUT_MS, MAX_INDIRECTION_LEVEL
from .config_schema import validate_config

logger = logging.getLogger(__name__)

# a.root-servers.net
DEFAULT_ROOT_SERVER = "198.41.0.4"
DEFAULT_CONFIG_PATH = "dnslookup.yaml"


@dataclass(frozen=True)
class ResolverSettings:
    """Validated settings used to build a Resolver and configure logging.

    Inputs:
      - Values from the YAML file and the command line.

    Outputs:
      - Immutable snapshot; see to_resolver_kwargs().
    """

    root_server: str = DEFAULT_ROOT_SERVER
    port: int = DEFAULT_PORT
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    retries: int = DEFAULT_RETRIES
    max_indirection: int = MAX_INDIRECTION_LEVEL
    verbose: bool = False
    source_ip: Optional[str] = None
    logging: Dict[str, Any] = field(default_factory=dict)

    def to_resolver_kwargs(self) -> Dict[str, Any]:
        """Brief: Keyword arguments accepted by Resolver (except transport).

        Inputs:
          - None.

        Outputs:
          - dict with port, timeout_ms, retries, max_indirection, verbose.
        """

        return {
            "port": self.port,
            "timeout_ms": self.timeout_ms,
            "retries": self.retries,
            "max_indirection": self.max_indirection,
            "verbose": self.verbose,
        }


def settings_from_mapping(
    cfg: Dict[str, Any], *, config_path: Optional[str] = None
) -> ResolverSettings:
    """Brief: Validate a config mapping and turn it into ResolverSettings.

    Inputs:
      - cfg: Parsed YAML mapping (may be empty).
      - config_path: Used only in error messages.

    Outputs:
      - ResolverSettings with defaults for omitted keys.

    Raises:
      - ValueError: invalid configuration.
    """

    validate_config(cfg, config_path=config_path)
    known = {k: v for k, v in cfg.items() if v is not None}
    if "logging" in known:
        known["logging"] = dict(known["logging"] or {})
    return ResolverSettings(**known)


def load_config(
    path: Optional[str] = None,
    *,
    overrides: Optional[Dict[str, Any]] = None,
) -> ResolverSettings:
    """Brief: Load settings from YAML, then apply command-line overrides.

    Inputs:
      - path: YAML file. When omitted, DEFAULT_CONFIG_PATH is read if it
        exists and defaults are used otherwise; an explicit path must exist.
      - overrides: Mapping of setting names to values; None values are
        ignored so unset CLI flags do not clobber the file.

    Outputs:
      - ResolverSettings.

    Raises:
      - FileNotFoundError: an explicit path does not exist.
      - ValueError: invalid YAML content or settings.

    Example:
      >>> load_config(None, overrides={"root_server": "192.0.2.53"}).root_server
      '192.0.2.53'
    """

    cfg: Dict[str, Any] = {}
    effective_path = path or DEFAULT_CONFIG_PATH
    if path is not None or os.path.isfile(effective_path):
        with open(effective_path, "r", encoding="utf-8") as f:
            try:
                cfg = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ValueError(f"Invalid YAML in {effective_path}: {exc}")
        logger.debug("loaded config from %s", effective_path)
    else:
        effective_path = None

    if not isinstance(cfg, dict):
        raise ValueError(f"Invalid configuration in {effective_path}: top level must be a mapping")

    settings = settings_from_mapping(cfg, config_path=effective_path)
    extra = {k: v for k, v in (overrides or {}).items() if v is not None}
    if extra:
        merged = {**cfg, **extra}
        validate_config(merged, config_path="command line")
        settings = replace(settings, **extra)
    return settings
