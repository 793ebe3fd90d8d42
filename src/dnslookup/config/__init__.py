"""Configuration and logging setup for dnslookup."""

from .config_parser import ResolverSettings, load_config
from .logging_config import init_logging

__all__ = ["ResolverSettings", "init_logging", "load_config"]
