# meshclient

Client-side tools for a WireGuard-based mesh network. The package provides:

- a local JSON record of the peers and CIDRs of an interface, with public-key pinning;
- management of a tagged section of the hosts file, so peers can be reached by name;
- discovery of your public IPv4 and IPv6 addresses;
- plain-text rendering of peers, interfaces and CIDR trees;
- a small JSON HTTP client for the coordination server;
- a `meshclient` command that lists the CIDRs held in a local store.

It has no third-party dependencies.

## Installation

```
pip install .
```

To run the tests, install the `test` extra and run `pytest`.

## Command line

```
meshclient --help
meshclient list-cidrs INTERFACE
meshclient list-cidrs --tree INTERFACE
meshclient --data-dir ./data -vv list-cidrs INTERFACE
```

`list-cidrs` opens the store for `INTERFACE` in the data directory. The default directory is `/var/lib/meshclient`, and `--data-dir` changes it. The command prints one `<cidr> <name>` line per CIDR. With `-t`/`--tree`, it prints the CIDRs as a tree, starting from the first CIDR that has no parent. Each child is indented by two spaces.

Each `-v` raises the log level: the default is info, `-v` gives debug and `-vv` gives trace. Log lines go to stdout with markers such as `[*]`, `[!]` and `[E]`.

The exit status is 0 on success and 1 on failure. A failure is, for example, a store that does not exist for that interface. When the failure is a permission error, advice on fixing permissions is printed to stderr.

## Library

### Hosts file sections — `meshclient.hostsfile`

`HostsBuilder(tag)` collects IP-to-hostname mappings. It writes them as a block between marker lines:

```python
from meshclient.hostsfile import HostsBuilder

hosts = HostsBuilder("dns")
hosts.add_hostname("10.0.0.1", "server.mynet.wg")
hosts.add_hostnames("10.0.0.2", ["laptop.mynet.wg", "laptop"])
hosts.write_to("/tmp/hosts")
```

```
# DO NOT EDIT dns BEGIN
10.0.0.1 server.mynet.wg
10.0.0.2 laptop.mynet.wg laptop
# DO NOT EDIT dns END
```

Writing works as follows:

- **Existing block.** Writing again with the same tag replaces the existing block in place.
- **New block.** A new block is appended at the end of the file, after a blank line if the file does not already end with one.
- **No mappings.** A builder with no mappings removes the block.
- **Windows.** On Windows, each hostname is written on its own line.
- **Errors.** If only one of the two markers is present, or the end marker comes before the begin marker, `ValueError` is raised.

`write()` writes to `HostsBuilder.default_path()`. That is `/etc/hosts` on POSIX systems and `%WinDir%\System32\Drivers\Etc\hosts` on Windows. If the file does not exist, `FileNotFoundError` is raised.

### Pinned peer store — `meshclient.data_store`

`Peer` and `Cidr` are dataclasses. Both have `to_dict()` and `from_dict()`.

`DataStore` holds the peers and CIDRs of one interface in a JSON file with `"version": "1"`. You can open a store in three ways:

- `DataStore.open(interface, data_dir)` opens an existing store. It raises `FileNotFoundError` if there is none.
- `DataStore.open_or_create(interface, data_dir)` opens the store and creates the file if it is missing.
- `DataStore.open_with_path(path, create)` opens a file at an explicit path.

New files get mode 600. A warning is logged for existing files that other users can read. A file that cannot be parsed is read as an empty store.

- `update_peers(current_peers)` merges in the peers the server reports. It never deletes peers.
  - A peer with a known IP but a different public key raises `PinningError`.
  - Known peers that are missing from the report are marked `is_disabled`.
- `set_cidrs(cidrs)` replaces the CIDR list.
- `write()` rewrites the file.
- `close()` closes it. The store can also be used as a context manager.

### Public IP discovery — `meshclient.publicip`

- **`get_both()`** sends a CHAOS-class TXT query for `whoami` to public DNS resolvers over IPv4 and IPv6. It returns `(ipv4, ipv6)`, with `None` for any family that did not answer within 0.5 seconds or gave an unusable answer.
- **`get_any(Preference.IPV4)`** returns the preferred family's address, or falls back to the other family. `get_any(Preference.IPV6)` does the same with IPv6 preferred.
- **`build_query(query_id)` and `parse_response(data, query_id, family)`** build and decode the packets. `parse_response` raises `DnsResponseError` for bad answers.

### Rendering — `meshclient.display`

- **`PeerState`** pairs a `Peer` with what the interface reports about it: whether it is you, whether it is connected, its endpoint, its last handshake, and the bytes received and sent.
- **`CidrTree(cidrs, root=None)`** gives a tree view of a CIDR list. Its `children()` method returns the child CIDRs.
- **`format_interface`, `format_peer` and `format_tree`** return the text as strings. They do not print it.

### Helpers — `meshclient.util`

- `human_duration(seconds)` formats a duration, for example `"3 minutes, 2 seconds ago"`.
- `human_size(size)` formats a byte count, for example `"1.50 MiB"`.
- `init_logger(verbosity)` sets up logging.
- `permissions_helptext(error, config_dir, data_dir)` returns advice for permission errors, or `None`.
- `Api(internal_endpoint, public_key, timeout=5.0)` is a JSON client for `http://<endpoint>/v1...`:
  - It sends the server's public key in the `X-Mesh-Server-Key` header.
  - It does not follow redirects.
  - `http(verb, endpoint)` sends a request without a body, and `http_form(verb, endpoint, form)` sends a JSON body. An empty response body is returned as `None`.
  - Failures raise `ApiError`, with the HTTP status in `status` when there was one.

## What this package does not do

The package does not create, configure or bring up WireGuard interfaces. It has no commands to install a network from an invitation, fetch peers from the server, bring interfaces up or down, or manage peers, CIDRs, associations, listen ports or endpoints. It does not perform NAT traversal. The only command is `list-cidrs`, which reads a store. Stores are filled through the `DataStore` library API.