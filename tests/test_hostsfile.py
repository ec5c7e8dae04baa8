from pathlib import Path
from unittest import mock

import pytest

from meshclient.hostsfile import HostsBuilder

BEGIN = "# DO NOT EDIT dns BEGIN"
END = "# DO NOT EDIT dns END"


def test_new_section_in_empty_file(tmp_path):
    hosts = tmp_path / "hosts"
    builder = HostsBuilder("dns")
    builder.add_hostname("8.8.8.8", "google-dns1")
    builder.add_hostname("8.8.4.4", "google-dns2")
    builder.write_to(hosts)
    assert hosts.read_text() == (
        "# DO NOT EDIT dns BEGIN\n"
        "8.8.8.8 google-dns1\n"
        "8.8.4.4 google-dns2\n"
        "# DO NOT EDIT dns END\n"
    )


def test_section_is_replaced(tmp_path):
    hosts = tmp_path / "hosts"
    first = HostsBuilder("dns")
    first.add_hostname("8.8.8.8", "google-dns1")
    first.write_to(hosts)

    second = HostsBuilder("dns")
    second.add_hostnames("1.1.1.1", ["cloudflare-dns", "apnic-dns"])
    second.write_to(hosts)

    assert hosts.read_text().splitlines() == [
        BEGIN,
        "1.1.1.1 cloudflare-dns apnic-dns",
        END,
    ]


def test_blank_line_before_new_section(tmp_path):
    hosts = tmp_path / "hosts"
    hosts.write_text("127.0.0.1 localhost\n")
    builder = HostsBuilder("dns")
    builder.add_hostname("10.0.0.1", "peer")
    builder.write_to(hosts)
    assert hosts.read_text().splitlines() == [
        "127.0.0.1 localhost",
        "",
        BEGIN,
        "10.0.0.1 peer",
        END,
    ]


def test_no_extra_blank_line_when_last_line_empty(tmp_path):
    hosts = tmp_path / "hosts"
    hosts.write_text("127.0.0.1 localhost\n\n")
    builder = HostsBuilder("dns")
    builder.add_hostname("10.0.0.1", "peer")
    builder.write_to(hosts)
    assert hosts.read_text().splitlines() == [
        "127.0.0.1 localhost",
        "",
        BEGIN,
        "10.0.0.1 peer",
        END,
    ]


def test_lines_around_section_are_kept(tmp_path):
    hosts = tmp_path / "hosts"
    hosts.write_text(f"before\n  {BEGIN}  \n10.0.0.9 old\n{END}\nafter\n")
    builder = HostsBuilder("dns")
    builder.add_hostname("10.0.0.1", "peer")
    builder.write_to(hosts)
    assert hosts.read_text().splitlines() == ["before", BEGIN, "10.0.0.1 peer", END, "after"]


def test_other_tags_untouched(tmp_path):
    hosts = tmp_path / "hosts"
    other = HostsBuilder("other")
    other.add_hostname("10.0.0.2", "x")
    other.write_to(hosts)
    builder = HostsBuilder("dns")
    builder.add_hostname("10.0.0.1", "peer")
    builder.write_to(hosts)
    lines = hosts.read_text().splitlines()
    assert "10.0.0.2 x" in lines
    assert "10.0.0.1 peer" in lines
    assert lines.index("# DO NOT EDIT other END") < lines.index(BEGIN)


def test_empty_builder_removes_section(tmp_path):
    hosts = tmp_path / "hosts"
    hosts.write_text(f"keep\n{BEGIN}\n10.0.0.9 old\n{END}\n")
    HostsBuilder("dns").write_to(hosts)
    assert hosts.read_text() == "keep\n"


def test_missing_end_marker_raises(tmp_path):
    hosts = tmp_path / "hosts"
    original = f"{BEGIN}\n10.0.0.9 old\n"
    hosts.write_text(original)
    builder = HostsBuilder("dns")
    builder.add_hostname("10.0.0.1", "peer")
    with pytest.raises(ValueError, match="marker missing"):
        builder.write_to(hosts)
    assert hosts.read_text() == original


def test_missing_begin_marker_raises(tmp_path):
    hosts = tmp_path / "hosts"
    hosts.write_text(f"{END}\n")
    with pytest.raises(ValueError):
        HostsBuilder("dns").write_to(hosts)


def test_same_ip_accumulates_hostnames(tmp_path):
    from ipaddress import IPv4Address

    hosts = tmp_path / "hosts"
    builder = HostsBuilder("dns")
    builder.add_hostname(IPv4Address("10.0.0.1"), "a")
    builder.add_hostnames("10.0.0.1", ["b", "c"])
    builder.write_to(hosts)
    assert hosts.read_text().splitlines() == [BEGIN, "10.0.0.1 a b c", END]


def test_crlf_lines_are_read(tmp_path):
    hosts = tmp_path / "hosts"
    hosts.write_bytes(b"127.0.0.1 localhost\r\n")
    builder = HostsBuilder("dns")
    builder.add_hostname("::1", "v6peer")
    builder.write_to(hosts)
    assert hosts.read_bytes() == (
        b"127.0.0.1 localhost\n\n# DO NOT EDIT dns BEGIN\n::1 v6peer\n# DO NOT EDIT dns END\n"
    )


def test_default_path_missing_file():
    with mock.patch("pathlib.Path.exists", return_value=False):
        with pytest.raises(FileNotFoundError):
            HostsBuilder.default_path()


def test_default_path_posix():
    with mock.patch("pathlib.Path.exists", return_value=True):
        assert HostsBuilder.default_path() == Path("/etc/hosts")