"""Error taxonomy for the resolver.

Every failure the codec, transport or resolver can hit is a subclass of
DNSLookupError. The resolver absorbs all of them per query and turns them into
empty results; IndirectionLimitError is the one reported back to callers.
"""

from __future__ import annotations

from typing import Dict, Type

from dnslib import RCODE


class DNSLookupError(Exception):
    """Base class for all resolver errors."""


class QueryEncodingError(DNSLookupError):
    """A query could not be encoded (bad label, oversized name, bad ID)."""


class MalformedResponseError(DNSLookupError):
    """A response buffer could not be decoded.

    envelope holds whatever decode_response had parsed before the failure,
    when the failure happened in the record sections.
    """

    envelope = None


class TruncatedResponseError(MalformedResponseError):
    """The response had the TC bit set; TCP fallback is not attempted."""

    def __init__(self, message: str = "response truncated") -> None:
        super().__init__(message)


class ServerResponseError(DNSLookupError):
    """Brief: The server answered with a non-zero RCODE.

    Inputs:
      - rcode: Numeric response code from the header.

    Outputs:
      - Exception carrying rcode and its mnemonic (via dnslib's RCODE table).
    """

    rcode: int = -1

    def __init__(self, rcode: int | None = None, message: str | None = None) -> None:
        if rcode is not None:
            self.rcode = int(rcode)
        self.rcode_name = str(RCODE.get(self.rcode, self.rcode))
        super().__init__(message or f"server returned {self.rcode_name}")


class FormatError(ServerResponseError):
    rcode = 1


class ServerFailure(ServerResponseError):
    rcode = 2


class NameErrorResponse(ServerResponseError):
    """The queried name does not exist (NXDOMAIN)."""

    rcode = 3


class NotImplementedResponse(ServerResponseError):
    rcode = 4


class RefusedResponse(ServerResponseError):
    rcode = 5


_RCODE_ERRORS: Dict[int, Type[ServerResponseError]] = {
    cls.rcode: cls
    for cls in (
        FormatError,
        ServerFailure,
        NameErrorResponse,
        NotImplementedResponse,
        RefusedResponse,
    )
}


def error_for_rcode(rcode: int) -> ServerResponseError:
    """Brief: Build the exception matching a non-zero RCODE.

    Inputs:
      - rcode: Header RCODE (1..15).

    Outputs:
      - ServerResponseError subclass instance; unknown codes get the base class.
    """

    cls = _RCODE_ERRORS.get(int(rcode))
    if cls is None:
        return ServerResponseError(rcode)
    return cls()


class TransportError(DNSLookupError):
    """Socket setup, send or receive failed for a reason other than timeout."""


class QueryTimeoutError(DNSLookupError):
    """No matching reply arrived within the timeout on any attempt."""


class IndirectionLimitError(DNSLookupError):
    """Brief: Too many CNAME hops or nested sub-resolutions in one lookup.

    Inputs:
      - level: Indirection counter value that tripped the limit.
      - limit: Configured ceiling.
    """

    def __init__(self, level: int, limit: int) -> None:
        self.level = int(level)
        self.limit = int(limit)
        super().__init__(
            f"maximum number of indirection levels reached ({self.level} > {self.limit})"
        )
