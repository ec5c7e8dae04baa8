"""Discover this host's public IP addresses with a CHAOS-class DNS TXT query."""

from __future__ import annotations

import enum
import os
import socket
import struct
from ipaddress import IPv4Address, IPv6Address
from typing import Optional, Type, Union

IPAddress = Union[IPv4Address, IPv6Address]

TYPE_TXT = 0x0010
CLASS_CH = 0x0003

QNAME = ("whoami", "cloudflare")
RESOLVER_IPV4 = IPv4Address("1.1.1.1")
RESOLVER_IPV6 = IPv6Address("2606:4700:4700::1111")

DNS_PORT = 53
READ_TIMEOUT = 0.5
MAX_DATAGRAM = 1500


class Preference(enum.Enum):
    """Which address family to prefer when both are available."""

    IPV4 = "ipv4"
    IPV6 = "ipv6"


class DnsResponseError(ValueError):
    """The resolver's answer could not be used."""


def build_query(query_id: bytes) -> bytes:
    """Build the DNS query packet asking for our public address."""
    if len(query_id) != 2:
        raise ValueError("query id must be two bytes")
    header = query_id + struct.pack(">HHHHH", 0x0100, 1, 0, 0, 0)
    qname = b"".join(bytes([len(atom)]) + atom.encode("ascii") for atom in QNAME) + b"\x00"
    return header + qname + struct.pack(">HH", TYPE_TXT, CLASS_CH)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.position = 0

    def _take(self, size: int) -> bytes:
        chunk = self.data[self.position : self.position + size]
        if len(chunk) != size:
            raise DnsResponseError("unexpected end of response")
        self.position += size
        return chunk

    def u8(self) -> int:
        return self._take(1)[0]

    def u16(self) -> int:
        return struct.unpack(">H", self._take(2))[0]

    def skip(self, count: int) -> None:
        self.position += count


def _ensure(condition: bool, message: str) -> None:
    if not condition:
        raise DnsResponseError(message)


def parse_response(data: bytes, query_id: bytes, family: Type[IPAddress]) -> IPAddress:
    """Extract the address of ``family`` from a resolver's answer to our query."""
    _ensure(data[:2] == query_id, "question/answer IDs don't match")
    reader = _Reader(data)
    reader.u16()

    flags = reader.u16()
    _ensure(flags & 0x8000 != 0, "not a response")
    _ensure(flags & 0x000F == 0, "non-zero DNS error code")

    questions = reader.u16()
    _ensure(questions <= 1, "unexpected number of questions")
    _ensure(reader.u16() == 1, "unexpected number of answers")
    _ensure(reader.u16() == 0, "unexpected NS value")
    _ensure(reader.u16() == 0, "unexpected AR value")

    if questions:
        while (length := reader.u8()) != 0:
            reader.skip(length)
        reader.skip(4)  # type and class

    qname_len = reader.u16()
    if qname_len & 0xC000 != 0xC000:
        reader.skip(qname_len)
    _ensure(reader.u16() == TYPE_TXT, "answer is not TXT type")
    _ensure(reader.u16() == CLASS_CH, "answer is not CH class")
    reader.skip(4)  # TTL

    data_len = reader.u16()
    txt_len = reader.u8()
    _ensure(txt_len == data_len - 1, "unexpected txt and data lengths.")

    start = reader.position
    end = start + txt_len
    _ensure(len(data) >= end, "unexpected txt answer lengths")

    try:
        return family(data[start:end].decode("utf-8"))
    except ValueError as exc:
        raise DnsResponseError("TXT not IP address") from exc


class _Request:
    """One query in flight to a resolver."""

    def __init__(self, resolver: IPAddress) -> None:
        self.family: Type[IPAddress] = type(resolver)
        self.query_id = os.urandom(2)
        address_family = socket.AF_INET if resolver.version == 4 else socket.AF_INET6
        self.sock = socket.socket(address_family, socket.SOCK_DGRAM)
        try:
            self.sock.settimeout(READ_TIMEOUT)
            self.sock.connect((str(resolver), DNS_PORT))
            self.sock.send(build_query(self.query_id))
        except OSError:
            self.sock.close()
            raise

    def read_response(self) -> IPAddress:
        try:
            data = self.sock.recv(MAX_DATAGRAM)
        finally:
            self.sock.close()
        return parse_response(data, self.query_id, self.family)


def _start(resolver: IPAddress) -> Optional[_Request]:
    try:
        return _Request(resolver)
    except OSError:
        return None


def _finish(request: Optional[_Request]) -> Optional[IPAddress]:
    if request is None:
        return None
    try:
        return request.read_response()
    except (OSError, DnsResponseError):
        return None


def get_both() -> tuple[Optional[IPv4Address], Optional[IPv6Address]]:
    """Return the public IPv4 and IPv6 addresses, each ``None`` if unavailable."""
    v4_request = _start(RESOLVER_IPV4)
    v6_request = _start(RESOLVER_IPV6)
    return _finish(v4_request), _finish(v6_request)  # type: ignore[return-value]


def get_any(preference: Preference) -> Optional[IPAddress]:
    """Return a public address, preferring the given family and falling back to the other."""
    v4, v6 = get_both()
    if preference is Preference.IPV4:
        return v4 if v4 is not None else v6
    return v6 if v6 is not None else v4