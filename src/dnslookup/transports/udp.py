from __future__ import annotations

import logging
import socket
import threading
from typing import Optional, Tuple

from ..errors import TransportError

logger = logging.getLogger("dnslookup.transport")

DEFAULT_RECV_SIZE = 1024


class UDPError(TransportError):
    """
    Brief: DNS-over-UDP transport error.

    Inputs:
    - message: description

    Outputs:
    - Exception instance
    """

    pass


class UDPTransport:
    """
    Brief: One UDP socket, bound once and reused for every exchange.

    Inputs:
    - source_ip: optional source address to bind
    - recv_size: largest datagram accepted (1024 bytes by default)

    Outputs:
    - Transport with send()/receive(); socket.timeout propagates from
      receive() so the caller can retry, every other OSError becomes UDPError.

    Example:
        >>> with UDPTransport() as t:
        ...     t.send(query_wire, '198.41.0.4', 53)
        ...     reply, peer = t.receive(5.0)
    """

    def __init__(
        self, *, source_ip: Optional[str] = None, recv_size: int = DEFAULT_RECV_SIZE
    ) -> None:
        self._source_ip = source_ip
        self._recv_size = int(recv_size)
        self._sock: Optional[socket.socket] = None
        self._lock = threading.Lock()

    def bind(self) -> Tuple[str, int]:
        """Open and bind the socket now; returns the local address."""
        return self._socket().getsockname()

    def _socket(self) -> socket.socket:
        with self._lock:
            if self._sock is None:
                try:
                    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
                    s.bind((self._source_ip or "", 0))
                except OSError as e:
                    raise UDPError(f"UDP error: {e}")
                logger.debug("bound UDP socket %s", s.getsockname())
                self._sock = s
            return self._sock

    def send(self, payload: bytes, host: str, port: int = 53) -> None:
        """
        Brief: Send one datagram.

        Inputs:
        - payload: wire-format DNS query bytes
        - host: server IP address
        - port: server UDP port

        Outputs:
        - None
        """
        s = self._socket()
        try:
            s.sendto(payload, (host, int(port)))
        except OSError as e:
            raise UDPError(f"UDP error: {e}")

    def receive(self, timeout: float) -> Tuple[bytes, Tuple[str, int]]:
        """
        Brief: Wait for one datagram.

        Inputs:
        - timeout: seconds to wait (must be positive)

        Outputs:
        - (data, peer) tuple

        Raises:
        - socket.timeout when nothing arrives in time
        - UDPError for any other socket failure
        """
        s = self._socket()
        try:
            s.settimeout(max(0.001, float(timeout)))
            data, peer = s.recvfrom(self._recv_size)
            return data, peer
        except socket.timeout:
            raise
        except OSError as e:
            raise UDPError(f"UDP error: {e}")

    def close(self) -> None:
        with self._lock:
            if self._sock is not None:
                try:
                    self._sock.close()
                finally:
                    self._sock = None

    def __enter__(self) -> "UDPTransport":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
