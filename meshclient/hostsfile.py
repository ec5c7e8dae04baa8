"""Manage a tagged section of IP-to-hostname mappings in a hosts file."""

from __future__ import annotations

import errno
import os
from ipaddress import IPv4Address, IPv6Address, ip_address
from pathlib import Path
from typing import Iterable, Union

IPAddress = Union[IPv4Address, IPv6Address]


def _split_lines(text: str) -> list[str]:
    """Split text into lines, dropping line terminators ("\\n" or "\\r\\n")."""
    if not text:
        return []
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


def _position(lines: list[str], marker: str) -> int | None:
    return next((index for index, line in enumerate(lines) if line.strip() == marker), None)


class HostsBuilder:
    """A tagged section of a hosts file holding IP-to-hostname mappings.

    A hosts file can hold several sections, told apart by their tags. Writing
    a builder replaces any existing section with the same tag.
    """

    def __init__(self, tag) -> None:
        self.tag = str(tag)
        self._hostnames: dict[IPAddress, list[str]] = {}

    def add_hostname(self, ip, hostname) -> None:
        """Map ``ip`` to ``hostname``, appending to any hostnames it already has."""
        self._hostnames.setdefault(ip_address(ip), []).append(str(hostname))

    def add_hostnames(self, ip, hostnames: Iterable) -> None:
        """Map ``ip`` to each of ``hostnames``, appending to any it already has."""
        self._hostnames.setdefault(ip_address(ip), []).extend(str(name) for name in hostnames)

    def write(self) -> None:
        """Write the section into the system's default hosts file."""
        self.write_to(self.default_path())

    @staticmethod
    def default_path() -> Path:
        """Return the hosts file path for the current operating system."""
        if os.name == "posix":
            hosts_file = Path("/etc/hosts")
        elif os.name == "nt":
            windir = os.environ.get("WinDir")
            if windir is None:
                raise OSError("WinDir environment variable missing")
            hosts_file = Path(f"{windir}\\System32\\Drivers\\Etc\\hosts")
        else:
            raise OSError("unsupported operating system.")

        if not hosts_file.exists():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(hosts_file))
        return hosts_file

    def write_to(self, hosts_path) -> None:
        """Write the section into ``hosts_path``, replacing a section with the same tag.

        On Windows one hostname is written per line; elsewhere all hostnames
        of an address share one line.
        """
        path = Path(hosts_path)
        begin_marker = f"# DO NOT EDIT {self.tag} BEGIN"
        end_marker = f"# DO NOT EDIT {self.tag} END"

        path.touch(exist_ok=True)
        lines = _split_lines(path.read_bytes().decode("utf-8"))

        begin = _position(lines, begin_marker)
        end = _position(lines, end_marker)

        if begin is not None and end is not None:
            if end < begin:
                raise ValueError(f"end marker precedes start marker in {str(path)!r}")
            del lines[begin : end + 1]
            insert = begin
        elif begin is None and end is None:
            # Separate a new section from existing content by a blank line.
            if lines and lines[-1]:
                lines.append("")
            insert = len(lines)
        else:
            raise ValueError(f"start or end marker missing in {str(path)!r}")

        section: list[str] = []
        if self._hostnames:
            section.append(begin_marker)
            for ip, hostnames in self._hostnames.items():
                if os.name == "nt":
                    section.extend(f"{ip} {hostname}" for hostname in hostnames)
                else:
                    section.append(f"{ip} {' '.join(hostnames)}")
            section.append(end_marker)

        output = lines[:insert] + section + lines[insert:]
        path.write_bytes("".join(f"{line}\n" for line in output).encode("utf-8"))