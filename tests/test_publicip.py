import struct
from ipaddress import IPv4Address, IPv6Address
from unittest import mock

import pytest

from meshclient.publicip import (
    CLASS_CH,
    TYPE_TXT,
    DnsResponseError,
    Preference,
    build_query,
    get_any,
    get_both,
    parse_response,
)

QID = b"\x12\x34"


def make_response(
    query_id=QID,
    txt=b"203.0.113.5",
    flags=0x8180,
    questions=1,
    answers=1,
    rtype=TYPE_TXT,
    rclass=CLASS_CH,
    data_len=None,
    qname=b"\xc0\x0c",
):
    question = build_query(query_id)[12:] if questions else b""
    header = query_id + struct.pack(">HHHHH", flags, questions, answers, 0, 0)
    if data_len is None:
        data_len = len(txt) + 1
    answer = (
        qname
        + struct.pack(">HH", rtype, rclass)
        + b"\x00\x00\x00\x00"
        + struct.pack(">HB", data_len, len(txt))
        + txt
    )
    return header + question + answer


def test_build_query_wire_format():
    assert build_query(QID) == (
        b"\x12\x34\x01\x00\x00\x01\x00\x00\x00\x00\x00\x00"
        b"\x06whoami\x0acloudflare\x00"
        b"\x00\x10\x00\x03"
    )


def test_build_query_rejects_bad_id():
    with pytest.raises(ValueError):
        build_query(b"\x01")


def test_parse_ipv4():
    assert parse_response(make_response(), QID, IPv4Address) == IPv4Address("203.0.113.5")


def test_parse_ipv6():
    data = make_response(txt=b"2001:db8::1")
    assert parse_response(data, QID, IPv6Address) == IPv6Address("2001:db8::1")


def test_parse_without_question_section():
    data = make_response(questions=0)
    assert parse_response(data, QID, IPv4Address) == IPv4Address("203.0.113.5")


def test_parse_non_pointer_qname_is_skipped():
    data = make_response(qname=b"\x00\x03abc")
    assert parse_response(data, QID, IPv4Address) == IPv4Address("203.0.113.5")


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"flags": 0x0100}, "not a response"),
        ({"flags": 0x8183}, "non-zero DNS error code"),
        ({"questions": 2}, "unexpected number of questions"),
        ({"answers": 2}, "unexpected number of answers"),
        ({"rtype": 0x0001}, "answer is not TXT type"),
        ({"rclass": 0x0001}, "answer is not CH class"),
        ({"data_len": 40}, "unexpected txt and data lengths"),
        ({"txt": b"not-an-ip"}, "TXT not IP address"),
    ],
)
def test_parse_errors(kwargs, message):
    with pytest.raises(DnsResponseError, match=message):
        parse_response(make_response(**kwargs), QID, IPv4Address)


def test_parse_id_mismatch():
    with pytest.raises(DnsResponseError, match="IDs don't match"):
        parse_response(make_response(), b"\x00\x00", IPv4Address)


def test_parse_wrong_family():
    data = make_response(txt=b"2001:db8::1")
    with pytest.raises(DnsResponseError, match="TXT not IP address"):
        parse_response(data, QID, IPv4Address)


def test_parse_truncated_answer():
    data = make_response()[:-3]
    with pytest.raises(DnsResponseError):
        parse_response(data, QID, IPv4Address)


def test_parse_truncated_header():
    with pytest.raises(DnsResponseError):
        parse_response(QID + b"\x81", QID, IPv4Address)


class FakeSocket:
    reachable_families: set = set()
    answers: dict = {}

    def __init__(self, family, kind):
        self.family = family
        self.query_id = None

    def settimeout(self, timeout):
        pass

    def connect(self, address):
        if self.family not in self.reachable_families:
            raise OSError("network unreachable")

    def send(self, data):
        self.query_id = data[:2]
        return len(data)

    def recv(self, size):
        return make_response(query_id=self.query_id, txt=self.answers[self.family])

    def close(self):
        pass


def _fake(reachable):
    import socket

    FakeSocket.reachable_families = set(reachable)
    FakeSocket.answers = {
        socket.AF_INET: b"198.51.100.7",
        socket.AF_INET6: b"2001:db8::7",
    }
    return mock.patch("socket.socket", FakeSocket)


def test_get_both_with_both_families():
    import socket

    with _fake({socket.AF_INET, socket.AF_INET6}):
        assert get_both() == (IPv4Address("198.51.100.7"), IPv6Address("2001:db8::7"))


def test_get_any_prefers_requested_family():
    import socket

    with _fake({socket.AF_INET, socket.AF_INET6}):
        assert get_any(Preference.IPV6) == IPv6Address("2001:db8::7")
        assert get_any(Preference.IPV4) == IPv4Address("198.51.100.7")


def test_get_any_falls_back():
    import socket

    with _fake({socket.AF_INET}):
        assert get_both() == (IPv4Address("198.51.100.7"), None)
        assert get_any(Preference.IPV6) == IPv4Address("198.51.100.7")


def test_get_any_nothing_reachable():
    with _fake(set()):
        assert get_both() == (None, None)
        assert get_any(Preference.IPV4) is None