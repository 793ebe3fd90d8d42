"""
Brief: Tests for dnslookup.formatting result and trace lines.

Inputs:
  - None

Outputs:
  - None
"""

import ipaddress

from dnslookup.codec import MessageHeader, ResponseEnvelope
from dnslookup.formatting import (
    format_query_line,
    format_record_line,
    format_response_lines,
    format_results,
)
from dnslookup.records import DNSNode, RecordType, ResourceRecord


def _a(name, address, ttl=300):
    return ResourceRecord(name, RecordType.A, ttl, ipaddress.IPv4Address(address))


def test_results_are_sorted_by_value():
    node = DNSNode("www.example.com", RecordType.A)
    lines = format_results(node, [_a("www.example.com", "192.0.2.9"), _a("www.example.com", "192.0.2.10")])
    assert [line.split()[-1] for line in lines] == ["192.0.2.10", "192.0.2.9"]
    assert lines[0] == "%-30s %-5s %-8d %s" % ("www.example.com", "A", 300, "192.0.2.10")


def test_empty_result_line():
    line = format_results(DNSNode("nothing.test", RecordType.AAAA), [])
    assert line == ["%-30s %-5s %-8d %s" % ("nothing.test", "AAAA", -1, "0.0.0.0")]


def test_result_lines_use_queried_name_for_alias_answers():
    node = DNSNode("alias.test", RecordType.A)
    lines = format_results(node, [_a("target.test", "198.51.100.4")])
    assert lines[0].split()[:2] == ["alias.test", "A"]


def test_query_and_record_lines():
    node = DNSNode("example.com", RecordType.NS)
    assert format_query_line(4711, node, "192.0.2.1") == "Query ID     4711 example.com  NS --> 192.0.2.1"
    other = ResourceRecord("example.com", RecordType.OTHER, 30, None, type_code=16)
    assert format_record_line(other) == "       %-30s %-10d %-4s %s" % ("example.com", 30, "16", "----")


def test_response_lines_list_every_section():
    header = MessageHeader(
        transaction_id=7,
        is_response=True,
        opcode=0,
        authoritative=True,
        truncated=False,
        recursion_desired=False,
        recursion_available=False,
        rcode=0,
        qdcount=0,
        ancount=1,
        nscount=0,
        arcount=0,
    )
    env = ResponseEnvelope(
        header=header,
        questions=[],
        answers=[_a("a.test", "192.0.2.1", ttl=60)],
        authorities=[],
        additionals=[],
        referral_servers=[],
    )
    lines = format_response_lines(env)
    assert lines[0] == "Response ID: 7 Authoritative = true"
    assert lines[1] == "  Answers (1)"
    assert lines[2].strip().split() == ["a.test", "60", "A", "192.0.2.1"]
    assert lines[3:] == ["  Nameservers (0)", "  Additional Information (0)"]
