from __future__ import annotations

import logging
import random
import socket
import sys
import threading
import time
from dataclasses import dataclass, replace
from typing import FrozenSet, List, Optional, Protocol, TextIO, Tuple, Union

from .cache import RecordCache
from .codec import (
    ResponseEnvelope,
    decode_response,
    encode_query,
    read_header,
)
from .errors import (
    DNSLookupError,
    IndirectionLimitError,
    MalformedResponseError,
    QueryTimeoutError,
)
from .formatting import (
    format_query_line,
    format_response_header,
    format_section_lines,
)
from .records import DNSNode, RecordType, ResourceRecord

"""Iterative resolver engine.

Inputs:
  - A configured root server address, a RecordCache and a datagram transport.

Outputs:
  - Sets of ResourceRecord for (hostname, type) lookups.

Brief:
  Each lookup walks root -> TLD -> authoritative servers by following
  referrals, resolves glueless name-server addresses through nested lookups,
  and chases CNAME chains. The server being queried lives in an immutable
  ResolutionContext handed down the call chain; nested lookups get their own
  context, so an inner lookup can never move the outer one's server pointer.
  Every per-query failure becomes an empty result for that step; only the
  indirection ceiling is reported back distinctly.
"""

logger = logging.getLogger("dnslookup.resolver")

DEFAULT_PORT = 53
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_RETRIES = 1
MAX_INDIRECTION_LEVEL = 10

RecordTypeLike = Union[RecordType, str, int]


class Transport(Protocol):
    """Protocol for the datagram transport used by Resolver.

    Inputs:
      - send(payload, host, port): transmit one query datagram.
      - receive(timeout): wait up to timeout seconds for one datagram.

    Outputs:
      - receive returns (data, peer) and raises socket.timeout when nothing
        arrives; other failures raise TransportError.
    """

    def send(self, payload: bytes, host: str, port: int = 53) -> None:
        ...

    def receive(self, timeout: float) -> Tuple[bytes, Tuple[str, int]]:
        ...


@dataclass(frozen=True)
class ResolutionContext:
    """Per-lookup state: the server to query next and the indirection level.

    Inputs:
      - server: IP address of the name server to query.
      - indirection: CNAME hops plus nested sub-resolutions taken so far.

    Outputs:
      - Immutable value; derive new contexts with with_server()/descend().
    """

    server: str
    indirection: int = 0

    def with_server(self, server: str) -> "ResolutionContext":
        return replace(self, server=server)

    def descend(self, server: str) -> "ResolutionContext":
        """Context for an alias hop or nested lookup starting at server."""

        return ResolutionContext(server=server, indirection=self.indirection + 1)


@dataclass(frozen=True)
class LookupResult:
    """Outcome of a top-level lookup.

    Inputs:
      - node: The key that was looked up.
      - records: Records found (empty when there is no answer).
      - error: IndirectionLimitError when the lookup gave up on depth,
        otherwise None.
    """

    node: DNSNode
    records: FrozenSet[ResourceRecord]
    error: Optional[DNSLookupError] = None

    @property
    def indirection_exceeded(self) -> bool:
        return isinstance(self.error, IndirectionLimitError)


def coerce_record_type(rtype: RecordTypeLike) -> RecordType:
    """Brief: Accept a RecordType, a mnemonic or a numeric code.

    Inputs:
      - rtype: RecordType member, 'AAAA'-style name, or integer code.

    Outputs:
      - RecordType member.

    Raises:
      - ValueError: unknown mnemonics or codes.
    """

    if isinstance(rtype, str):
        return RecordType.from_name(rtype)
    member = RecordType(int(rtype))
    if member is RecordType.OTHER:
        raise ValueError("cannot look up record type OTHER")
    return member


class Resolver:
    """Brief: Iterative DNS resolver backed by a TTL record cache.

    Inputs (constructor):
      - root_server: IP address every top-level lookup starts from. Settable.
      - cache: RecordCache to use (a fresh one when omitted).
      - transport: Transport implementation (a UDPTransport when omitted).
      - port: Name-server UDP port.
      - timeout_ms: Receive timeout per attempt.
      - retries: Extra attempts after a timeout (1 means two sends in total).
      - max_indirection: Ceiling on CNAME hops and nested sub-resolutions.
      - verbose: Emit the human-readable trace. Settable.
      - trace_stream: Where trace lines go (sys.stdout when omitted).
      - rng: Optional random.Random used for transaction IDs.

    Outputs:
      - Resolver exposing resolve(), lookup() and cache_snapshot().
    """

    def __init__(
        self,
        root_server: str,
        *,
        cache: Optional[RecordCache] = None,
        transport: Optional[Transport] = None,
        port: int = DEFAULT_PORT,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        retries: int = DEFAULT_RETRIES,
        max_indirection: int = MAX_INDIRECTION_LEVEL,
        verbose: bool = False,
        trace_stream: Optional[TextIO] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.root_server = str(root_server)
        self.cache = cache if cache is not None else RecordCache()
        if transport is None:
            from .transports.udp import UDPTransport

            transport = UDPTransport()
        self.transport = transport
        self.port = int(port)
        self.timeout_ms = max(1, int(timeout_ms))
        self.retries = max(0, int(retries))
        self.max_indirection = max(0, int(max_indirection))
        self.verbose = bool(verbose)
        self._trace_stream = trace_stream
        self._rng = rng or random.Random()
        # One outstanding request at a time on the shared transport.
        self._io_lock = threading.Lock()

    # Public API -----------------------------------------------------------

    def resolve(self, hostname: str, rtype: RecordTypeLike) -> FrozenSet[ResourceRecord]:
        """Return every record found for (hostname, rtype); empty when none."""

        return self.lookup(hostname, rtype).records

    def lookup(self, hostname: str, rtype: RecordTypeLike) -> LookupResult:
        """Brief: Resolve (hostname, rtype) and report why it came back empty.

        Inputs:
          - hostname: Name to resolve.
          - rtype: RecordType, mnemonic or numeric code.

        Outputs:
          - LookupResult; error is set only when the indirection ceiling was hit.
        """

        node = DNSNode(hostname, coerce_record_type(rtype))
        context = ResolutionContext(server=self.root_server)
        try:
            records = self._resolve(node, context)
        except IndirectionLimitError as exc:
            logger.warning("%s: %s", node, exc)
            return LookupResult(node=node, records=frozenset(), error=exc)
        return LookupResult(node=node, records=records)

    def cache_snapshot(self) -> List[Tuple[DNSNode, FrozenSet[ResourceRecord]]]:
        return self.cache.snapshot()

    # Resolution -----------------------------------------------------------

    def _resolve(
        self, node: DNSNode, context: ResolutionContext
    ) -> FrozenSet[ResourceRecord]:
        if context.indirection > self.max_indirection:
            raise IndirectionLimitError(context.indirection, self.max_indirection)

        cached = self.cache.lookup(node)
        if cached:
            logger.debug("%s: answered from cache", node)
            return cached
        alias = self._cached_alias(node)
        if alias is not None:
            return self._follow_alias(node, alias, context)

        queried = set()
        while True:
            queried.add(context.server)
            try:
                envelope = self._query(node, context.server)
            except DNSLookupError as exc:
                logger.info("%s: no answer from %s: %s", node, context.server, exc)
                return frozenset()

            if envelope.authoritative:
                return self._authoritative_answer(node, context)

            if not envelope.referral_servers:
                # Non-authoritative reply without a delegation; use whatever
                # it put in the cache.
                return self.cache.lookup(node)

            next_server = self._referral_address(envelope.referral_servers, context)
            if next_server is None:
                logger.info(
                    "%s: none of the referred servers %s could be resolved",
                    node,
                    envelope.referral_servers,
                )
                return frozenset()
            if next_server in queried:
                logger.info("%s: referral from %s made no progress", node, context.server)
                return frozenset()
            logger.debug("%s: referred from %s to %s", node, context.server, next_server)
            context = context.with_server(next_server)

    def _authoritative_answer(
        self, node: DNSNode, context: ResolutionContext
    ) -> FrozenSet[ResourceRecord]:
        records = self.cache.lookup(node)
        if records:
            return records
        alias = self._cached_alias(node)
        if alias is None:
            return frozenset()
        return self._follow_alias(node, alias, context)

    def _cached_alias(self, node: DNSNode) -> Optional[str]:
        """Return the CNAME target cached for node's hostname, if any."""

        if node.rtype is RecordType.CNAME:
            return None
        aliases = self.cache.lookup(DNSNode(node.hostname, RecordType.CNAME))
        if not aliases:
            return None
        first = min(aliases, key=lambda rr: rr.text_value)
        return str(first.value)

    def _follow_alias(
        self, node: DNSNode, target: str, context: ResolutionContext
    ) -> FrozenSet[ResourceRecord]:
        logger.debug("%s: alias for %s", node, target)
        return self._resolve(
            DNSNode(target, node.rtype), context.descend(self.root_server)
        )

    def _referral_address(
        self, names: List[str], context: ResolutionContext
    ) -> Optional[str]:
        """Brief: Find an IPv4 address for the first resolvable referred server.

        Inputs:
          - names: NS target names in the order the server listed them.
          - context: The referring lookup's context (left untouched).

        Outputs:
          - Address string, or None when no name resolves.

        Raises:
          - IndirectionLimitError: no name resolved and a nested lookup hit
            the ceiling.

        Names with cached addresses win over names that need a nested lookup.
        """

        ns_nodes = [DNSNode(name, RecordType.A) for name in names]
        for ns_node in ns_nodes:
            address = self._first_ipv4(self.cache.lookup(ns_node))
            if address is not None:
                return address

        limit_error: Optional[IndirectionLimitError] = None
        for ns_node in ns_nodes:
            try:
                addresses = self._resolve(ns_node, context.descend(self.root_server))
            except IndirectionLimitError as exc:
                logger.info("%s: %s; trying the next referred server", ns_node, exc)
                limit_error = exc
                continue
            address = self._first_ipv4(addresses)
            if address is not None:
                return address
        if limit_error is not None:
            raise limit_error
        return None

    @staticmethod
    def _first_ipv4(records: FrozenSet[ResourceRecord]) -> Optional[str]:
        ipv4 = sorted(rr.text_value for rr in records if rr.rtype is RecordType.A)
        return ipv4[0] if ipv4 else None

    # Query/response -------------------------------------------------------

    def _query(self, node: DNSNode, server: str) -> ResponseEnvelope:
        """Brief: Send one query (with retry on timeout) and decode the reply.

        Inputs:
          - node: Question to ask.
          - server: Name-server address.

        Outputs:
          - ResponseEnvelope; its records are already in the cache.

        Raises:
          - QueryTimeoutError after every attempt timed out.
          - TransportError, MalformedResponseError, ServerResponseError from
            the transport and codec.
        """

        transaction_id = self._rng.randrange(0x10000)
        wire = encode_query(node, transaction_id)
        attempts = 1 + self.retries

        with self._io_lock:
            data = None
            for attempt in range(attempts):
                self._trace(format_query_line(transaction_id, node, server), blank=True)
                self.transport.send(wire, server, self.port)
                data = self._await_reply(transaction_id)
                if data is not None:
                    break
                logger.debug(
                    "%s: attempt %d/%d to %s timed out",
                    node,
                    attempt + 1,
                    attempts,
                    server,
                )
            if data is None:
                raise QueryTimeoutError(
                    f"no reply from {server} after {attempts} attempts"
                )

        self._trace(format_response_header(read_header(data)))
        try:
            envelope = decode_response(data, self.cache)
        except MalformedResponseError as exc:
            if exc.envelope is not None:
                self._trace_sections(exc.envelope)
            raise
        self._trace_sections(envelope)
        return envelope

    def _await_reply(self, transaction_id: int) -> Optional[bytes]:
        """Wait for a reply carrying transaction_id; None on timeout."""

        deadline = time.monotonic() + self.timeout_ms / 1000.0
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            try:
                data, peer = self.transport.receive(remaining)
            except socket.timeout:
                return None
            try:
                header = read_header(data)
            except MalformedResponseError:
                logger.debug("discarding runt datagram from %s", peer)
                continue
            if header.transaction_id != transaction_id:
                logger.debug(
                    "discarding reply id %d from %s (expected %d)",
                    header.transaction_id,
                    peer,
                    transaction_id,
                )
                continue
            return data

    def _trace(self, line: str, *, blank: bool = False) -> None:
        if not self.verbose:
            return
        stream = self._trace_stream or sys.stdout
        if blank:
            stream.write("\n\n")
        stream.write(line + "\n")

    def _trace_sections(self, envelope: ResponseEnvelope) -> None:
        if not self.verbose:
            return
        for line in format_section_lines(envelope):
            self._trace(line)
