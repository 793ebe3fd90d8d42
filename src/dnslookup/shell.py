from __future__ import annotations

import ipaddress
import logging
import sys
from typing import Callable, Dict, List, Optional, TextIO

from .formatting import format_results
from .records import DNSNode, RecordType
from .resolver import Resolver

"""Interactive command loop.

Brief:
  A thin wrapper over Resolver: every command either changes a resolver
  setting or prints results through dnslookup.formatting.
"""

logger = logging.getLogger("dnslookup.shell")

PROMPT = "DNSLOOKUP> "

USAGE = "\n".join(
    [
        "Invalid command. Valid commands are:",
        "\tlookup fqdn [type]",
        "\ttrace on|off",
        "\tserver IP",
        "\tdump",
        "\tquit",
    ]
)


class Shell:
    """Brief: Line-oriented command interpreter bound to one Resolver.

    Inputs (constructor):
      - resolver: Resolver to drive.
      - stdin / stdout / stderr: Text streams (process streams by default).
      - prompt: Print PROMPT before each line (defaults to stdin.isatty()).

    Outputs:
      - run() returns when input ends or on quit/exit.
    """

    def __init__(
        self,
        resolver: Resolver,
        *,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
        prompt: Optional[bool] = None,
    ) -> None:
        self.resolver = resolver
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr
        if prompt is None:
            isatty = getattr(self.stdin, "isatty", None)
            prompt = bool(isatty()) if callable(isatty) else False
        self.prompt = prompt
        self._commands: Dict[str, Callable[[List[str]], None]] = {
            "lookup": self.do_lookup,
            "l": self.do_lookup,
            "trace": self.do_trace,
            "server": self.do_server,
            "dump": self.do_dump,
        }

    def _out(self, line: str) -> None:
        self.stdout.write(line + "\n")

    def _err(self, line: str) -> None:
        self.stderr.write(line + "\n")

    def run(self) -> None:
        while True:
            if self.prompt:
                self.stdout.write(PROMPT)
                self.stdout.flush()
            line = self.stdin.readline()
            if not line:
                break
            if not self.execute(line):
                break

    def execute(self, line: str) -> bool:
        """Brief: Run one command line.

        Inputs:
          - line: Raw input; text after '#' is a comment.

        Outputs:
          - False when the shell should stop, True otherwise.
        """

        line = line.strip().split("#", 1)[0].strip()
        if not line:
            return True
        args = line.split()
        command = args[0].lower()
        if command in ("quit", "exit"):
            return False
        handler = self._commands.get(command)
        if handler is None:
            self._err(USAGE)
            return True
        handler(args[1:])
        return True

    def do_lookup(self, args: List[str]) -> None:
        if len(args) not in (1, 2):
            self._err("Invalid call. Format:\n\tlookup hostName [type]")
            return
        rtype = RecordType.A
        if len(args) == 2:
            try:
                rtype = RecordType.from_name(args[1])
            except ValueError:
                self._err("Invalid query type. Must be one of:\n\tA, AAAA, NS, MX, CNAME")
                return
        result = self.resolver.lookup(args[0], rtype)
        if result.indirection_exceeded:
            self._err("Maximum number of indirection levels reached.")
        for line in format_results(result.node, result.records):
            self._out(line)

    def do_trace(self, args: List[str]) -> None:
        setting = args[0].lower() if len(args) == 1 else ""
        if setting not in ("on", "off"):
            self._err("Invalid call. Format:\n\ttrace on|off")
            return
        self.resolver.verbose = setting == "on"
        self._out("Verbose tracing is now: %s" % ("ON" if self.resolver.verbose else "OFF"))

    def do_server(self, args: List[str]) -> None:
        if len(args) != 1:
            self._out("Invalid call. Format:\n\tserver IP")
            return
        try:
            address = ipaddress.IPv4Address(args[0])
        except ValueError as exc:
            self._out(f"Invalid root server ({exc}).")
            return
        self.resolver.root_server = str(address)
        logger.info("root server set to %s", address)
        self._out(f"Root DNS server is now: {address}")

    def do_dump(self, args: List[str]) -> None:
        def _print(node: DNSNode, records) -> None:
            for line in format_results(node, records):
                self._out(line)

        self.resolver.cache.for_each(_print)
