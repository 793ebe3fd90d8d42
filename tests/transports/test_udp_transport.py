"""
Brief: Unit tests for the UDP transport and the resolver over a real socket,
using a local UDP stub server.

Inputs:
  - None

Outputs:
  - None
"""

import socket
import threading
import time

import pytest
from dnslib import A, QTYPE, RR, DNSRecord

from dnslookup.records import RecordType
from dnslookup.resolver import Resolver
from dnslookup.transports.udp import UDPError, UDPTransport


class _UDPStub:
    """Localhost UDP server; `respond(data)` returns a list of datagrams to send back."""

    def __init__(self, respond):
        self.respond = respond
        self.received = []
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.addr = self.sock.getsockname()
        self._stop = False
        self.thread = threading.Thread(target=self._loop, daemon=True)

    def start(self):
        self.thread.start()
        time.sleep(0.02)

    def _loop(self):
        while not self._stop:
            try:
                self.sock.settimeout(0.2)
                data, peer = self.sock.recvfrom(4096)
            except Exception:
                continue
            self.received.append(data)
            for reply in self.respond(data):
                try:
                    self.sock.sendto(reply, peer)
                except Exception:
                    pass

    def close(self):
        self._stop = True
        try:
            self.sock.close()
        except Exception:
            pass


@pytest.fixture
def stub_factory():
    stubs = []

    def make(respond):
        s = _UDPStub(respond)
        s.start()
        stubs.append(s)
        return s

    try:
        yield make
    finally:
        for s in stubs:
            s.close()


def test_send_receive_roundtrip(stub_factory):
    stub = stub_factory(lambda data: [data])
    with UDPTransport() as t:
        t.send(b"\x12\x34hello", *stub.addr)
        data, peer = t.receive(1.0)
    assert data == b"\x12\x34hello"
    assert peer == stub.addr


def test_socket_is_bound_once_and_reused(stub_factory):
    stub = stub_factory(lambda data: [data])
    with UDPTransport() as t:
        local = t.bind()
        for payload in (b"one", b"two"):
            t.send(payload, *stub.addr)
            t.receive(1.0)
        assert t.bind() == local


def test_receive_timeout_raises_socket_timeout():
    with UDPTransport() as t:
        t.bind()
        with pytest.raises(socket.timeout):
            t.receive(0.05)


def test_send_errors_are_wrapped():
    with UDPTransport() as t:
        with pytest.raises(UDPError):
            t.send(b"x", "not-an-address.invalid", 53)


def test_bad_source_ip_is_wrapped():
    t = UDPTransport(source_ip="203.0.113.254")
    with pytest.raises(UDPError):
        t.bind()
    t.close()


def test_resolver_over_real_socket(stub_factory):
    """
    Brief: Resolver talks to a localhost authoritative stub over UDP.

    Inputs:
      - stub answering every A query with 192.0.2.7, after first sending a
        reply carrying the wrong transaction id.

    Outputs:
      - None: Asserts the correct answer is returned and only one query sent
    """

    def respond(data):
        q = DNSRecord.parse(data)
        stray = q.reply()
        stray.header.id = (q.header.id + 1) % 0x10000
        good = q.reply()
        good.add_answer(RR(q.q.qname, QTYPE.A, rdata=A("192.0.2.7"), ttl=60))
        return [stray.pack(), good.pack()]

    stub = stub_factory(respond)
    with UDPTransport() as t:
        resolver = Resolver(stub.addr[0], port=stub.addr[1], transport=t, timeout_ms=1000)
        records = resolver.resolve("real.example", RecordType.A)

    assert [str(rr.value) for rr in records] == ["192.0.2.7"]
    assert len(stub.received) == 1


def test_resolver_gives_up_on_silent_server(stub_factory):
    stub = stub_factory(lambda data: [])
    with UDPTransport() as t:
        resolver = Resolver(stub.addr[0], port=stub.addr[1], transport=t, timeout_ms=100)
        assert resolver.resolve("silent.example", RecordType.A) == frozenset()
    time.sleep(0.05)
    assert len(stub.received) == 2
