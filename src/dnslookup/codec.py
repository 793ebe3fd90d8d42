from __future__ import annotations

import ipaddress
import struct
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, FrozenSet, Iterator, List, Optional, Tuple

from .errors import (
    MalformedResponseError,
    QueryEncodingError,
    TruncatedResponseError,
    error_for_rcode,
)
from .records import DNSNode, RecordType, ResourceRecord

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .cache import RecordCache

"""Binary DNS message codec.

Inputs:
  - DNSNode query keys and transaction IDs (encoding).
  - Raw response datagrams (decoding).

Outputs:
  - Wire-format query bytes, and ResponseEnvelope objects whose records are
    also inserted into a RecordCache when one is supplied.

Brief:
  Names are parsed with an explicit offset in / offset out helper rather than
  a shared cursor. Compression pointers must point strictly backwards and may
  not revisit an offset already followed while parsing the same name, so a
  hostile message cannot make read_name loop.
"""

HEADER = struct.Struct("!HHHHHH")
QUESTION_TAIL = struct.Struct("!HH")
RR_FIXED = struct.Struct("!HHIH")
MX_PREFERENCE = struct.Struct("!H")

MAX_QUERY_SIZE = 256
MAX_RESPONSE_SIZE = 1024
MAX_LABEL_LENGTH = 63
CLASS_IN = 1

_FLAG_QR = 0x8000
_FLAG_AA = 0x0400
_FLAG_TC = 0x0200
_FLAG_RD = 0x0100
_FLAG_RA = 0x0080
_POINTER_MASK = 0xC0

_ADDRESS_LENGTHS = {RecordType.A: 4, RecordType.AAAA: 16}


@dataclass(frozen=True)
class MessageHeader:
    """Brief: Decoded 12-byte DNS header.

    Inputs:
      - Field values unpacked from the first 12 bytes of a message.

    Outputs:
      - Immutable header; flags are exposed as booleans.
    """

    transaction_id: int
    is_response: bool
    opcode: int
    authoritative: bool
    truncated: bool
    recursion_desired: bool
    recursion_available: bool
    rcode: int
    qdcount: int
    ancount: int
    nscount: int
    arcount: int


@dataclass(frozen=True)
class Question:
    hostname: str
    rtype: RecordType
    type_code: int
    qclass: int


@dataclass
class ResponseEnvelope:
    """Brief: Everything decoded from one response datagram.

    Inputs:
      - header: MessageHeader.
      - questions: Parsed question entries.
      - answers / authorities / additionals: Records per section, in order.
      - referral_servers: Target names of NS records in the authority section.

    Outputs:
      - Mutable container; discarded once its records are in the cache.
    """

    header: MessageHeader
    questions: List[Question] = field(default_factory=list)
    answers: List[ResourceRecord] = field(default_factory=list)
    authorities: List[ResourceRecord] = field(default_factory=list)
    additionals: List[ResourceRecord] = field(default_factory=list)
    referral_servers: List[str] = field(default_factory=list)

    @property
    def transaction_id(self) -> int:
        return self.header.transaction_id

    @property
    def authoritative(self) -> bool:
        return self.header.authoritative

    def sections(self) -> Iterator[Tuple[str, List[ResourceRecord]]]:
        """Yield (title, records) for the three record sections in wire order."""

        yield "Answers", self.answers
        yield "Nameservers", self.authorities
        yield "Additional Information", self.additionals

    def records(self) -> Iterator[ResourceRecord]:
        for _title, records in self.sections():
            yield from records


def encode_name(hostname: str) -> bytes:
    """Brief: Encode a hostname as length-prefixed labels plus a zero byte.

    Inputs:
      - hostname: Normalized name; '' encodes the root.

    Outputs:
      - bytes in DNS label-sequence format (no compression).

    Raises:
      - QueryEncodingError: empty, non-ASCII or over-long labels.
    """

    out = bytearray()
    if hostname:
        for label in hostname.split("."):
            try:
                raw = label.encode("ascii")
            except UnicodeEncodeError:
                raise QueryEncodingError(f"non-ASCII label in {hostname!r}")
            if not raw:
                raise QueryEncodingError(f"empty label in {hostname!r}")
            if len(raw) > MAX_LABEL_LENGTH:
                raise QueryEncodingError(
                    f"label longer than {MAX_LABEL_LENGTH} bytes in {hostname!r}"
                )
            out.append(len(raw))
            out += raw
    out.append(0)
    return bytes(out)


def encode_query(node: DNSNode, transaction_id: int) -> bytes:
    """Brief: Build a standard, non-recursive query for a single question.

    Inputs:
      - node: DNSNode with the hostname and record type to ask for.
      - transaction_id: 16-bit message ID.

    Outputs:
      - Wire-format query of at most MAX_QUERY_SIZE bytes.

    Example:
      >>> encode_query(DNSNode("a.b", RecordType.A), 1).hex()
      '000100000001000000000000016101620000010001'
    """

    if not 0 <= int(transaction_id) <= 0xFFFF:
        raise QueryEncodingError(f"transaction id out of range: {transaction_id}")
    if node.rtype is RecordType.OTHER:
        raise QueryEncodingError("cannot query for record type OTHER")

    message = (
        HEADER.pack(int(transaction_id), 0, 1, 0, 0, 0)
        + encode_name(node.hostname)
        + QUESTION_TAIL.pack(int(node.rtype), CLASS_IN)
    )
    if len(message) > MAX_QUERY_SIZE:
        raise QueryEncodingError(
            f"query for {node.hostname!r} exceeds {MAX_QUERY_SIZE} bytes"
        )
    return message


def _unpack(fmt: struct.Struct, buffer: bytes, offset: int) -> Tuple[int, ...]:
    try:
        return fmt.unpack_from(buffer, offset)
    except struct.error:
        raise MalformedResponseError(
            f"message ends at {len(buffer)} bytes, needed {fmt.size} at offset {offset}"
        )


def read_header(buffer: bytes) -> MessageHeader:
    """Brief: Parse only the fixed header without interpreting TC or RCODE.

    Inputs:
      - buffer: Raw message bytes.

    Outputs:
      - MessageHeader.
    """

    tid, flags, qd, an, ns, ar = _unpack(HEADER, buffer, 0)
    return MessageHeader(
        transaction_id=tid,
        is_response=bool(flags & _FLAG_QR),
        opcode=(flags >> 11) & 0x0F,
        authoritative=bool(flags & _FLAG_AA),
        truncated=bool(flags & _FLAG_TC),
        recursion_desired=bool(flags & _FLAG_RD),
        recursion_available=bool(flags & _FLAG_RA),
        rcode=flags & 0x0F,
        qdcount=qd,
        ancount=an,
        nscount=ns,
        arcount=ar,
    )


def read_name(
    buffer: bytes, offset: int, _followed: FrozenSet[int] = frozenset()
) -> Tuple[str, int]:
    """Brief: Parse a possibly compressed domain name.

    Inputs:
      - buffer: Whole message (pointers are absolute offsets into it).
      - offset: Where the name starts.

    Outputs:
      - (name, next_offset): dot-joined name ('' for the root) and the offset
        just past the name's own bytes. When the name ends in a pointer,
        next_offset is just past the two pointer bytes.

    Raises:
      - MalformedResponseError: out-of-range reads, reserved label types,
        forward/self pointers or a pointer revisiting a followed offset.
    """

    labels: List[str] = []
    pos = offset
    while True:
        if pos >= len(buffer):
            raise MalformedResponseError(f"name runs past end of message at {pos}")
        length = buffer[pos]
        kind = length & _POINTER_MASK

        if kind == _POINTER_MASK:
            if pos + 1 >= len(buffer):
                raise MalformedResponseError(f"truncated compression pointer at {pos}")
            target = ((length & 0x3F) << 8) | buffer[pos + 1]
            if target >= pos or target in _followed:
                raise MalformedResponseError(
                    f"compression pointer loop at offset {pos} -> {target}"
                )
            suffix, _ = read_name(buffer, target, _followed | {target})
            if suffix:
                labels.append(suffix)
            return ".".join(labels), pos + 2

        if kind:
            raise MalformedResponseError(
                f"reserved label type 0x{kind:02x} at offset {pos}"
            )

        if length == 0:
            return ".".join(labels), pos + 1

        end = pos + 1 + length
        if end > len(buffer):
            raise MalformedResponseError(f"label at {pos} runs past end of message")
        labels.append(buffer[pos + 1 : end].decode("ascii", errors="backslashreplace"))
        pos = end


def read_record(buffer: bytes, offset: int) -> Tuple[ResourceRecord, int]:
    """Brief: Parse one resource record starting at offset.

    Inputs:
      - buffer: Whole message.
      - offset: Start of the record's owner name.

    Outputs:
      - (record, next_offset); next_offset always skips exactly RDLENGTH bytes
        of RDATA whatever the type.
    """

    owner, pos = read_name(buffer, offset)
    type_code, _rclass, ttl, rdlength = _unpack(RR_FIXED, buffer, pos)
    pos += RR_FIXED.size
    end = pos + rdlength
    if end > len(buffer):
        raise MalformedResponseError(
            f"RDATA for {owner or '.'} runs past end of message"
        )

    rtype = RecordType.from_code(type_code)
    value = None
    if rtype in _ADDRESS_LENGTHS:
        if rdlength != _ADDRESS_LENGTHS[rtype]:
            raise MalformedResponseError(
                f"{rtype.name} record for {owner} has RDLENGTH {rdlength}"
            )
        raw = bytes(buffer[pos:end])
        if rtype is RecordType.A:
            value = ipaddress.IPv4Address(raw)
        else:
            value = ipaddress.IPv6Address(raw)
    elif rtype in (RecordType.NS, RecordType.CNAME):
        value, _ = read_name(buffer, pos)
    elif rtype is RecordType.MX:
        _unpack(MX_PREFERENCE, buffer, pos)
        value, _ = read_name(buffer, pos + MX_PREFERENCE.size)

    record = ResourceRecord(
        hostname=owner, rtype=rtype, ttl=ttl, value=value, type_code=type_code
    )
    return record, end


def decode_response(
    buffer: bytes, cache: Optional["RecordCache"] = None
) -> ResponseEnvelope:
    """Brief: Decode a response and absorb its records into the cache.

    Inputs:
      - buffer: One response datagram.
      - cache: Optional RecordCache; every A/AAAA/NS/CNAME/MX record is
        inserted under (record owner, record type) as soon as it is parsed.

    Outputs:
      - ResponseEnvelope.

    Raises:
      - MalformedResponseError: not a response, or undecodable.
      - TruncatedResponseError: TC bit set.
      - ServerResponseError subclass: non-zero RCODE.
    """

    header = read_header(buffer)
    if not header.is_response:
        raise MalformedResponseError("message is a query, not a response")
    if header.truncated:
        raise TruncatedResponseError()
    if header.rcode:
        raise error_for_rcode(header.rcode)

    envelope = ResponseEnvelope(header=header)
    pos = HEADER.size
    for _ in range(header.qdcount):
        qname, pos = read_name(buffer, pos)
        type_code, qclass = _unpack(QUESTION_TAIL, buffer, pos)
        pos += QUESTION_TAIL.size
        envelope.questions.append(
            Question(qname, RecordType.from_code(type_code), type_code, qclass)
        )

    try:
        for count, section in (
            (header.ancount, envelope.answers),
            (header.nscount, envelope.authorities),
            (header.arcount, envelope.additionals),
        ):
            for _ in range(count):
                record, pos = read_record(buffer, pos)
                section.append(record)
                if cache is not None and record.rtype is not RecordType.OTHER:
                    cache.insert(record)
    except MalformedResponseError as exc:
        exc.envelope = envelope
        raise

    envelope.referral_servers = [
        str(rr.value) for rr in envelope.authorities if rr.rtype is RecordType.NS
    ]
    return envelope
