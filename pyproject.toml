[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "meshclient"
version = "0.1.0"
description = "Client-side tools for a WireGuard mesh network: pinned peer store, hosts file sections, public IP discovery and a CIDR listing command"
requires-python = ">=3.10"
dependencies = []
keywords = ["wireguard", "mesh", "vpn", "hosts", "peers", "cidr", "networking"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
meshclient = "meshclient.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["meshclient"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
