"""Text formatting for results, cache dumps and the verbose trace."""

from __future__ import annotations

from typing import Iterable, List

from .codec import MessageHeader, ResponseEnvelope
from .records import DNSNode, ResourceRecord

NO_ANSWER_TTL = -1
NO_ANSWER_VALUE = "0.0.0.0"


def format_results(node: DNSNode, records: Iterable[ResourceRecord]) -> List[str]:
    """Brief: Render the result lines printed for a lookup or a dump entry.

    Inputs:
      - node: The queried key; its hostname and type head every line.
      - records: Records found for it (any order).

    Outputs:
      - One line per record, sorted by value. An empty result yields a single
        line with TTL -1 and address 0.0.0.0.

    Example:
      >>> from dnslookup.records import RecordType
      >>> format_results(DNSNode("nothing.test", RecordType.A), [])[0].split()
      ['nothing.test', 'A', '-1', '0.0.0.0']
    """

    ordered = sorted(records, key=lambda rr: rr.text_value)
    name = node.hostname or "."
    if not ordered:
        return [
            "%-30s %-5s %-8d %s"
            % (name, node.rtype.name, NO_ANSWER_TTL, NO_ANSWER_VALUE)
        ]
    return [
        "%-30s %-5s %-8d %s" % (name, node.rtype.name, rr.ttl, rr.text_value)
        for rr in ordered
    ]


def format_record_line(record: ResourceRecord) -> str:
    return "       %-30s %-10d %-4s %s" % (
        record.hostname or ".",
        record.ttl,
        record.type_label,
        record.text_value,
    )


def format_query_line(transaction_id: int, node: DNSNode, server: str) -> str:
    return "Query ID     %d %s  %s --> %s" % (
        transaction_id,
        node.hostname or ".",
        node.rtype.name,
        server,
    )


def format_response_header(header: MessageHeader) -> str:
    return "Response ID: %d Authoritative = %s" % (
        header.transaction_id,
        str(header.authoritative).lower(),
    )


def format_section_lines(envelope: ResponseEnvelope) -> List[str]:
    lines: List[str] = []
    for title, records in envelope.sections():
        lines.append("  %s (%d)" % (title, len(records)))
        lines.extend(format_record_line(rr) for rr in records)
    return lines


def format_response_lines(envelope: ResponseEnvelope) -> List[str]:
    """Brief: Render a decoded response for the verbose trace.

    Inputs:
      - envelope: ResponseEnvelope from the codec.

    Outputs:
      - Response header line, then a count line per section followed by one
        line per record in that section.
    """

    return [format_response_header(envelope.header)] + format_section_lines(envelope)
