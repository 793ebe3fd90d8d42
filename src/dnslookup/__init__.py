"""dnslookup package: an iterative DNS resolver with a TTL record cache."""

from .cache import RecordCache
from .records import DNSNode, RecordType, ResourceRecord
from .resolver import LookupResult, ResolutionContext, Resolver

__all__ = [
    "DNSNode",
    "LookupResult",
    "RecordCache",
    "RecordType",
    "ResolutionContext",
    "Resolver",
    "ResourceRecord",
]
