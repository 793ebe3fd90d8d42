from __future__ import annotations

import argparse
import logging
import sys
from typing import List

from .config.config_parser import load_config
from .config.logging_config import init_logging
from .errors import TransportError
from .resolver import Resolver
from .shell import Shell
from .transports.udp import UDPTransport


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dnslookup",
        description="Iterative DNS resolver with an interactive lookup shell",
    )
    parser.add_argument(
        "root_server",
        nargs="?",
        default=None,
        help="IPv4 address of the root DNS server to start every search at",
    )
    parser.add_argument("--config", default=None, help="Path to YAML config")
    parser.add_argument(
        "--trace",
        action="store_const",
        const=True,
        default=None,
        help="Start with verbose tracing on",
    )
    parser.add_argument(
        "--timeout-ms", type=int, default=None, help="Receive timeout per attempt"
    )
    parser.add_argument("--port", type=int, default=None, help="Name-server UDP port")
    return parser


def main(argv: List[str] | None = None) -> int:
    """
    Main entry point for the lookup shell.
    Parses arguments, loads configuration, binds the UDP socket and runs the
    command loop until end of input or 'quit'.

    Args:
        argv: Command-line arguments.

    Returns:
        An exit code.

    Example use:
        CLI:
            PYTHONPATH=src python -m dnslookup.main 198.41.0.4
    """
    args = build_parser().parse_args(argv)

    overrides = {
        "root_server": args.root_server,
        "verbose": args.trace,
        "timeout_ms": args.timeout_ms,
        "port": args.port,
    }
    try:
        settings = load_config(args.config, overrides=overrides)
    except (OSError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        return 1

    init_logging(settings.logging)
    logger = logging.getLogger("dnslookup.main")

    transport = UDPTransport(source_ip=settings.source_ip)
    try:
        # Bind once up front so socket problems surface before the prompt.
        transport.bind()
    except TransportError as exc:
        logger.error("cannot open UDP socket: %s", exc)
        return 1

    resolver = Resolver(
        settings.root_server, transport=transport, **settings.to_resolver_kwargs()
    )
    print(f"Root DNS server is: {resolver.root_server}")
    try:
        Shell(resolver).run()
    except KeyboardInterrupt:
        pass
    finally:
        transport.close()
    print("Goodbye!")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
