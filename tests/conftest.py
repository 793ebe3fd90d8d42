"""
Brief: Shared pytest configuration: src/ on sys.path, a per-test 10s timeout
and an in-memory stand-in for the UDP transport.

Inputs:
  - None

Outputs:
  - None
"""

import os
import signal
import socket
import sys
from collections import deque

import pytest

# Ensure 'src' is on sys.path so 'dnslookup' package is importable in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from dnslib import DNSRecord  # noqa: E402


def _alarm_handler(signum, frame):
    """
    Brief: Signal handler that raises TimeoutError when alarm triggers.

    Inputs:
      - signum: signal number (int)
      - frame: current frame (ignored)

    Outputs:
      - None: Raises TimeoutError to fail the test
    """
    raise TimeoutError("Test exceeded 10 seconds")


# Install handler if supported on this platform
if hasattr(signal, "SIGALRM"):
    signal.signal(signal.SIGALRM, _alarm_handler)


@pytest.fixture(autouse=True)
def enforce_test_timeout():
    """
    Brief: Enforce a hard 10-second timeout for each test.

    Inputs:
      - None

    Outputs:
      - None: Cancels alarm after test
    """
    if hasattr(signal, "SIGALRM"):
        signal.alarm(10)
        try:
            yield
        finally:
            signal.alarm(0)
    else:
        # Fallback: no-op on platforms without SIGALRM
        yield


class FakeNameServers:
    """
    Brief: Transport double that routes queries to per-address handlers.

    Inputs:
      - handlers registered with add(host, handler); a handler receives the
        parsed dnslib query and returns reply bytes, a list of reply bytes,
        or None to drop the query.

    Outputs:
      - sent: list of (host, port, wire) for every datagram sent.
      - receive() pops queued replies and raises socket.timeout when none.
    """

    def __init__(self):
        self.handlers = {}
        self.sent = []
        self._pending = deque()

    def add(self, host, handler):
        self.handlers[host] = handler

    def send(self, payload, host, port=53):
        self.sent.append((host, port, bytes(payload)))
        handler = self.handlers.get(host)
        if handler is None:
            return
        result = handler(DNSRecord.parse(payload))
        if result is None:
            return
        if isinstance(result, (bytes, bytearray)):
            result = [result]
        self._pending.extend(bytes(r) for r in result)

    def receive(self, timeout):
        if not self._pending:
            raise socket.timeout("timed out")
        return self._pending.popleft(), ("192.0.2.250", 53)

    @property
    def hosts(self):
        return [host for host, _port, _wire in self.sent]

    def questions(self):
        out = []
        for host, _port, wire in self.sent:
            q = DNSRecord.parse(wire).q
            out.append((host, str(q.qname).rstrip("."), q.qtype))
        return out


@pytest.fixture
def name_servers():
    """
    Brief: Fresh FakeNameServers for one test.

    Inputs:
      - None

    Outputs:
      - FakeNameServers instance
    """
    return FakeNameServers()
