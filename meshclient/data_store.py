"""Local, pinned record of the peers and CIDRs of one network interface."""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from dataclasses import dataclass, field
from ipaddress import IPv4Address, IPv4Network, IPv6Address, IPv6Network, ip_address, ip_network
from pathlib import Path
from typing import Any, BinaryIO, Iterable, Optional, Union

log = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path("/var/lib/meshclient")
FORMAT_VERSION = "1"

IPAddress = Union[IPv4Address, IPv6Address]
IPNetwork = Union[IPv4Network, IPv6Network]


@dataclass
class Peer:
    """A peer of the network as reported by the server."""

    id: int
    name: str
    ip: IPAddress
    cidr_id: int
    public_key: str
    endpoint: Optional[str] = None
    is_admin: bool = False
    is_disabled: bool = False
    is_redeemed: bool = False
    persistent_keepalive_interval: Optional[int] = None
    invite_expires: Optional[int] = None
    candidates: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.ip = ip_address(self.ip)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "ip": str(self.ip),
            "cidr_id": self.cidr_id,
            "public_key": self.public_key,
            "endpoint": self.endpoint,
            "is_admin": self.is_admin,
            "is_disabled": self.is_disabled,
            "is_redeemed": self.is_redeemed,
            "persistent_keepalive_interval": self.persistent_keepalive_interval,
            "invite_expires": self.invite_expires,
            "candidates": list(self.candidates),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Peer":
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            ip=data["ip"],
            cidr_id=int(data["cidr_id"]),
            public_key=str(data["public_key"]),
            endpoint=data.get("endpoint"),
            is_admin=bool(data.get("is_admin", False)),
            is_disabled=bool(data.get("is_disabled", False)),
            is_redeemed=bool(data.get("is_redeemed", False)),
            persistent_keepalive_interval=data.get("persistent_keepalive_interval"),
            invite_expires=data.get("invite_expires"),
            candidates=list(data.get("candidates") or []),
        )


@dataclass
class Cidr:
    """A named address range of the network."""

    id: int
    name: str
    cidr: IPNetwork
    parent: Optional[int] = None

    def __post_init__(self) -> None:
        self.cidr = ip_network(self.cidr, strict=False)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "cidr": str(self.cidr), "parent": self.parent}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Cidr":
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            cidr=data["cidr"],
            parent=data.get("parent"),
        )


class PinningError(ValueError):
    """A known peer's IP was reported with a different public key."""


def _load_contents(text: str) -> tuple[list[Peer], list[Cidr]]:
    try:
        data = json.loads(text)
        if data.get("version") != FORMAT_VERSION:
            raise ValueError("unknown data store version")
        peers = [Peer.from_dict(item) for item in data["peers"]]
        cidrs = [Cidr.from_dict(item) for item in data["cidrs"]]
    except (ValueError, KeyError, TypeError, AttributeError):
        return [], []
    return peers, cidrs


def _warn_on_dangerous_mode(path: Path) -> None:
    mode = path.stat().st_mode & 0o777
    if mode & 0o077:
        log.warning("%s is accessible to other users (mode %o); consider chmod 600.", path, mode)


class DataStore:
    """The peers and CIDRs last seen for an interface, backed by a JSON file."""

    def __init__(self, file: BinaryIO, peers: list[Peer], cidrs: list[Cidr]) -> None:
        self._file = file
        self._peers = peers
        self._cidrs = cidrs

    @classmethod
    def open_with_path(cls, path, create: bool) -> "DataStore":
        """Open the store at ``path``, creating the file if ``create`` is true."""
        path = Path(path)
        existed = path.exists()
        flags = os.O_RDWR | (os.O_CREAT if create else 0)
        fd = os.open(path, flags, 0o600)
        file = os.fdopen(fd, "r+b")
        try:
            if existed:
                _warn_on_dangerous_mode(path)
            else:
                os.chmod(path, 0o600)
            text = file.read().decode("utf-8")
        except BaseException:
            file.close()
            raise
        peers, cidrs = _load_contents(text)
        return cls(file, peers, cidrs)

    @classmethod
    def get_path(cls, interface, data_dir=DEFAULT_DATA_DIR) -> Path:
        """Return the store file path for ``interface`` inside ``data_dir``."""
        return Path(data_dir, str(interface)).with_suffix(".json")

    @classmethod
    def _open(cls, interface, data_dir, create: bool) -> "DataStore":
        Path(data_dir).mkdir(parents=True, exist_ok=True)
        return cls.open_with_path(cls.get_path(interface, data_dir), create)

    @classmethod
    def open(cls, interface, data_dir=DEFAULT_DATA_DIR) -> "DataStore":
        """Open an existing store; raises ``FileNotFoundError`` if there is none."""
        return cls._open(interface, data_dir, False)

    @classmethod
    def open_or_create(cls, interface, data_dir=DEFAULT_DATA_DIR) -> "DataStore":
        """Open the store for ``interface``, creating an empty one if needed."""
        return cls._open(interface, data_dir, True)

    def peers(self) -> list[Peer]:
        return list(self._peers)

    def cidrs(self) -> list[Cidr]:
        return list(self._cidrs)

    def update_peers(self, current_peers: Iterable[Peer]) -> None:
        """Merge newly reported peers into the store, never deleting old ones.

        The (IP, public key) pair of every known peer is pinned: a peer reported
        with a known IP but a different key raises ``PinningError``. Known peers
        missing from ``current_peers`` are marked disabled.
        """
        current_peers = list(current_peers)
        for new_peer in current_peers:
            position = next(
                (index for index, peer in enumerate(self._peers) if peer.ip == new_peer.ip),
                None,
            )
            if position is None:
                self._peers.append(dataclasses.replace(new_peer, candidates=list(new_peer.candidates)))
            elif self._peers[position].public_key != new_peer.public_key:
                raise PinningError("PINNING ERROR: New peer has same IP but different public key.")
            else:
                self._peers[position] = dataclasses.replace(
                    new_peer, candidates=list(new_peer.candidates)
                )

        current_keys = {peer.public_key for peer in current_peers}
        for peer in self._peers:
            if peer.public_key not in current_keys:
                peer.is_disabled = True

    def set_cidrs(self, new_cidrs: Iterable[Cidr]) -> None:
        self._cidrs = list(new_cidrs)

    def write(self) -> None:
        """Replace the file's contents with the current state."""
        contents = {
            "version": FORMAT_VERSION,
            "peers": [peer.to_dict() for peer in self._peers],
            "cidrs": [cidr.to_dict() for cidr in self._cidrs],
        }
        self._file.seek(0)
        self._file.truncate()
        self._file.write(json.dumps(contents, indent=2).encode("utf-8"))
        self._file.flush()

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> "DataStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"DataStore(peers={self._peers!r}, cidrs={self._cidrs!r})"