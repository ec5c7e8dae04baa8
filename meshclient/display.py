"""Plain-text rendering of interfaces, peers and CIDR trees."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, Iterator, Optional, Sequence, Union

from meshclient.data_store import Cidr, Peer
from meshclient.util import human_duration, human_size


@dataclass
class PeerState:
    """A known peer together with what the interface reports about it.

    ``is_you`` marks the local peer, for which the interface reports nothing.
    """

    peer: Peer
    is_you: bool = False
    connected: bool = False
    endpoint: Optional[str] = None
    last_handshake: Optional[Union[int, float, timedelta]] = None
    rx_bytes: int = 0
    tx_bytes: int = 0


def _network_key(cidr: Cidr) -> tuple[int, int, int]:
    network = cidr.cidr
    return network.version, int(network.network_address), network.prefixlen


class CidrTree:
    """A view of one CIDR within the full list, with access to its children."""

    def __init__(self, cidrs: Iterable[Cidr], root: Optional[Cidr] = None) -> None:
        self._cidrs = list(cidrs)
        if root is None:
            root = next((cidr for cidr in self._cidrs if cidr.parent is None), None)
            if root is None:
                raise ValueError("no root CIDR (one without a parent) in the list")
        self.root = root

    @property
    def id(self) -> int:
        return self.root.id

    @property
    def name(self) -> str:
        return self.root.name

    @property
    def cidr(self):
        return self.root.cidr

    @property
    def parent(self) -> Optional[int]:
        return self.root.parent

    def children(self) -> Iterator["CidrTree"]:
        """Yield a tree for every CIDR whose parent is this one."""
        for cidr in self._cidrs:
            if cidr.parent == self.root.id:
                yield CidrTree(self._cidrs, cidr)

    def __lt__(self, other: "CidrTree") -> bool:
        return _network_key(self.root) < _network_key(other.root)

    def __repr__(self) -> str:
        return f"CidrTree({self.cidr} {self.name!r})"


def format_interface(name, listen_port: Optional[int], short: bool) -> str:
    """Describe an interface in one line (short) or as a small block."""
    if short:
        listen_port_str = f"(:{listen_port}) " if listen_port is not None else ""
        return f"{name} {listen_port_str}"
    lines = [f"network: {name}"]
    if listen_port is not None:
        lines.append(f"  listening port: {listen_port}")
    return "\n".join(lines)


def _peer_lines(state: PeerState, short: bool, level: int) -> list[str]:
    pad = " " * (level * 2)
    peer = state.peer
    if short:
        mark = "◉" if state.connected or state.is_you else "◯"
        you = "you, " if state.is_you else ""
        return [f"{pad}| {mark} {peer.ip}: {peer.name} ({you}{peer.public_key[:6]}…)"]

    lines = [
        f"{pad}peer: {peer.name} ({peer.public_key[:10]}...)",
        f"{pad}  ip: {peer.ip}",
    ]
    if not state.is_you:
        if state.endpoint is not None:
            lines.append(f"{pad}  endpoint: {state.endpoint}")
        if state.last_handshake is not None:
            lines.append(f"{pad}  last handshake: {human_duration(state.last_handshake)}")
        if state.tx_bytes > 0 or state.rx_bytes > 0:
            lines.append(
                f"{pad}  transfer: {human_size(state.rx_bytes)} received, "
                f"{human_size(state.tx_bytes)} sent"
            )
    return lines


def format_peer(peer_state: PeerState, short: bool, level: int) -> str:
    """Describe a peer, indented by two spaces per ``level``."""
    return "\n".join(_peer_lines(peer_state, short, level))


def _tree_lines(tree: CidrTree, peer_states: Sequence[PeerState], level: int) -> list[str]:
    lines = [f"{' ' * (level * 2)}{tree.cidr} {tree.name}"]
    for child in sorted(tree.children()):
        lines.extend(_tree_lines(child, peer_states, level + 1))
    for state in peer_states:
        if state.peer.cidr_id == tree.id:
            lines.extend(_peer_lines(state, True, level))
    return lines


def format_tree(cidr_tree: CidrTree, peer_states: Iterable[PeerState] = (), level: int = 0) -> str:
    """Render the CIDR tree with each peer listed under its CIDR."""
    return "\n".join(_tree_lines(cidr_tree, list(peer_states), level))