from __future__ import annotations

import enum
import ipaddress
from dataclasses import dataclass, field
from typing import Optional, Union

"""Record types, query keys and resource records.

Inputs:
  - Hostnames and record type names/codes supplied by callers or decoded
    from DNS responses.

Outputs:
  - Immutable value objects shared by the codec, cache and resolver.
"""

Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
RecordValue = Union[Address, str, None]


class RecordType(enum.IntEnum):
    """Brief: Record types the resolver understands, keyed by wire code.

    Inputs:
      - Numeric codes from the IANA resource-record type registry.

    Outputs:
      - IntEnum members; OTHER (0) stands in for every unsupported code.
    """

    OTHER = 0
    A = 1
    NS = 2
    CNAME = 5
    MX = 15
    AAAA = 28

    @classmethod
    def from_code(cls, code: int) -> "RecordType":
        """Brief: Map a wire type code to a member, OTHER when unknown.

        Inputs:
          - code: Integer TYPE field from a resource record.

        Outputs:
          - RecordType member.
        """

        try:
            return cls(int(code))
        except ValueError:
            return cls.OTHER

    @classmethod
    def from_name(cls, name: str) -> "RecordType":
        """Brief: Parse a user-supplied type mnemonic (case-insensitive).

        Inputs:
          - name: Mnemonic such as 'a', 'AAAA' or 'mx'.

        Outputs:
          - RecordType member.

        Raises:
          - ValueError: for OTHER or any unknown mnemonic.
        """

        key = str(name).strip().upper()
        member = cls.__members__.get(key)
        if member is None or member is cls.OTHER:
            raise ValueError(f"unsupported record type: {name!r}")
        return member


def normalize_hostname(hostname: str) -> str:
    """Brief: Lower-case a hostname and strip surrounding dots/whitespace.

    Inputs:
      - hostname: Presentation-format name ('WWW.Example.com.').

    Outputs:
      - Normalized name ('www.example.com'); the root is ''.
    """

    return str(hostname).strip().rstrip(".").lower()


@dataclass(frozen=True)
class DNSNode:
    """Brief: Query key made of a hostname and a record type.

    Inputs:
      - hostname: Any presentation-format name; normalized on construction.
      - rtype: RecordType of interest.

    Outputs:
      - Hashable key; two nodes differing only in hostname case are equal.
    """

    hostname: str
    rtype: RecordType

    def __post_init__(self) -> None:
        object.__setattr__(self, "hostname", normalize_hostname(self.hostname))
        object.__setattr__(self, "rtype", RecordType(self.rtype))

    def __str__(self) -> str:
        return f"{self.hostname or '.'} {self.rtype.name}"


@dataclass(frozen=True)
class ResourceRecord:
    """Brief: One decoded resource record.

    Inputs:
      - hostname: Owner name as it appeared in the response.
      - rtype: RecordType (OTHER for unsupported codes).
      - ttl: Time-to-live in seconds from the wire.
      - value: Address for A/AAAA, domain name for NS/CNAME/MX, None for OTHER.
      - type_code: Raw TYPE field, kept so OTHER records can still be shown.

    Outputs:
      - Immutable record; never mutated after decoding.
    """

    hostname: str
    rtype: RecordType
    ttl: int
    value: RecordValue = None
    type_code: Optional[int] = field(default=None, compare=False)

    @property
    def node(self) -> DNSNode:
        """Cache key for this record: (owner name, record type)."""

        return DNSNode(self.hostname, self.rtype)

    @property
    def text_value(self) -> str:
        """Presentation form of the value ('----' when there is none)."""

        if self.value is None:
            return "----"
        return str(self.value)

    @property
    def type_label(self) -> str:
        """Type mnemonic, or the numeric code for unsupported types."""

        if self.rtype is RecordType.OTHER and self.type_code is not None:
            return str(self.type_code)
        return self.rtype.name
