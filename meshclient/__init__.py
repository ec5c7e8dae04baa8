"""Client-side tools for a WireGuard mesh network: pinned peer store, hosts file sections, public IP discovery, rendering and a CIDR listing command."""

__version__ = "0.1.0"
__all__ = ["cli", "data_store", "display", "hostsfile", "publicip", "util"]