"""Command-line entry point and the commands that work on local state."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional, Sequence

from meshclient.data_store import DEFAULT_DATA_DIR, DataStore, Peer
from meshclient.display import CidrTree, format_tree
from meshclient.hostsfile import HostsBuilder
from meshclient.util import init_logger, permissions_helptext

log = logging.getLogger(__name__)

PROGRAM = "meshclient"


def update_hosts_file(interface, hosts_path, peers: Iterable[Peer]) -> None:
    """Write one ``<name>.<interface>.wg`` entry per peer into the hosts file.

    Failing to write the file is logged as a warning, not raised.
    """
    log.info("updating %s with the latest peers.", hosts_path)
    builder = HostsBuilder(f"{PROGRAM} {interface}")
    for peer in peers:
        builder.add_hostname(peer.ip, f"{peer.name}.{interface}.wg")
    try:
        builder.write_to(hosts_path)
    except (OSError, ValueError, UnicodeDecodeError) as exc:
        log.warning("failed to update hosts (%s: %s)", hosts_path, exc)


def list_cidrs(store: DataStore, tree: bool) -> str:
    """Render the store's CIDRs, one per line or as a tree."""
    cidrs = store.cidrs()
    if tree:
        return format_tree(CidrTree(cidrs), [], 0)
    return "\n".join(f"{cidr.cidr} {cidr.name}" for cidr in cidrs)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=PROGRAM, description="Manage mesh network interfaces.")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Verbose output, use -vv for even higher verbosity.",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=DEFAULT_DATA_DIR,
        help="Directory holding the per-interface data stores.",
    )
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    cidrs = commands.add_parser("list-cidrs", help="List CIDRs.")
    cidrs.add_argument("interface")
    cidrs.add_argument("-t", "--tree", action="store_true", help="Display CIDRs in tree format")
    return parser


def _run(args: argparse.Namespace) -> None:
    if args.command == "list-cidrs":
        with DataStore.open(args.interface, args.data_dir) as store:
            text = list_cidrs(store, args.tree)
        if text:
            print(text)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse ``argv`` and run the chosen command; return the exit status."""
    args = _build_parser().parse_args(argv)
    init_logger(args.verbose)
    try:
        _run(args)
    except Exception as exc:  # noqa: BLE001 - every failure becomes an exit status
        print()
        log.error("%s\n", exc)
        helptext = permissions_helptext(exc, data_dir=args.data_dir)
        if helptext is not None:
            print(helptext, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())