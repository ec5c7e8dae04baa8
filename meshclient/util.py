"""Logging setup, human-readable formatting and the HTTP client for the server API."""

from __future__ import annotations

import dataclasses
import errno
import json
import logging
import sys
import urllib.error
import urllib.request
from datetime import timedelta
from ipaddress import IPv4Address, IPv4Network, IPv6Address, IPv6Network
from pathlib import Path
from typing import Any, Optional, Union

from meshclient.data_store import DEFAULT_DATA_DIR

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

BASE_MODULES = ("meshclient",)
PUBKEY_HEADER = "X-Mesh-Server-Key"
DEFAULT_CONFIG_DIR = Path("/etc/meshclient")
DEFAULT_TIMEOUT = 5.0

_KB = 1024
_MB = 1024 * _KB
_GB = 1024 * _MB
_TB = 1024 * _GB


def _target_is_base(target: str) -> bool:
    return any(target == module or target.startswith(f"{module}.") for module in BASE_MODULES)


def _prefix(levelno: int) -> tuple[str, str]:
    if levelno >= logging.ERROR:
        return "[E]", "31"
    if levelno >= logging.WARNING:
        return "[!]", "33"
    if levelno >= logging.INFO:
        return "[*]", "2"
    if levelno >= logging.DEBUG:
        return "[D]", "34"
    return "[T]", "35"


class _ConsoleHandler(logging.Handler):
    """Prints records to stdout with a short level marker."""

    def __init__(self, max_level: int) -> None:
        super().__init__(max_level)
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno < self.max_level:
            return False
        return self.max_level <= TRACE or _target_is_base(record.name)

    def emit(self, record: logging.LogRecord) -> None:
        stream = sys.stdout
        colour = getattr(stream, "isatty", lambda: False)()

        def paint(text: str, code: str) -> str:
            return f"\x1b[{code}m{text}\x1b[0m" if colour else text

        marker, code = _prefix(record.levelno)
        try:
            message = record.getMessage()
        except Exception:  # noqa: BLE001 - a broken format string must not kill the program
            self.handleError(record)
            return
        if record.levelno >= logging.DEBUG and not _target_is_base(record.name):
            line = f"{paint(marker, code)} {paint(f'[{record.name}]', '2')} {message}"
        else:
            line = f"{paint(marker, code)} {message}"
        print(line, file=stream)


def init_logger(verbosity: int) -> None:
    """Route logging to stdout: info by default, debug at 1, trace at 2 or more."""
    if verbosity <= 0:
        level = logging.INFO
    elif verbosity == 1:
        level = logging.DEBUG
    else:
        level = TRACE
    root = logging.getLogger()
    for handler in [h for h in root.handlers if isinstance(h, _ConsoleHandler)]:
        root.removeHandler(handler)
    root.setLevel(level)
    root.addHandler(_ConsoleHandler(level))


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


def human_duration(seconds: Union[int, float, timedelta]) -> str:
    """Describe how long ago something happened, e.g. ``"3 minutes, 2 seconds ago"``."""
    if isinstance(seconds, timedelta):
        seconds = seconds.total_seconds()
    n = int(seconds)
    if n < 1:
        return "just now"
    if n < 60:
        return f"{n} seconds ago"
    if n < 60 * 60:
        mins, secs = divmod(n, 60)
        return (
            f"{mins} {_plural(mins, 'minute', 'minutes')}, "
            f"{secs} {_plural(secs, 'second', 'seconds')} ago"
        )
    hours = n // (60 * 60)
    mins = (n // 60) % 60
    return (
        f"{hours} {_plural(hours, 'hour', 'hours')}, "
        f"{mins} {_plural(mins, 'minute', 'minutes')} ago"
    )


def human_size(size: int) -> str:
    """Format a byte count using binary units."""
    if size < 2 * _KB:
        return f"{size} B"
    for limit, divisor, unit in ((2 * _MB, _KB, "KiB"), (2 * _GB, _MB, "MiB"), (2 * _TB, _GB, "GiB")):
        if size < limit:
            return f"{size / divisor:.2f} {unit}"
    return f"{size / _TB:.2f} TiB"


def _current_executable() -> str:
    if sys.argv and sys.argv[0]:
        try:
            return str(Path(sys.argv[0]).resolve())
        except OSError:
            pass
    return "<meshclient path>"


def permissions_helptext(
    error: BaseException,
    config_dir: Union[str, Path, None] = None,
    data_dir: Union[str, Path, None] = None,
) -> Optional[str]:
    """Return advice for a permission problem, or ``None`` if ``error`` is not one."""
    config = str(config_dir if config_dir is not None else DEFAULT_CONFIG_DIR)
    data = str(data_dir if data_dir is not None else DEFAULT_DATA_DIR)
    if isinstance(error, OSError) and error.errno == errno.EPERM:
        return (
            "ERROR: meshclient can't access the device info.\n"
            "\n"
            "You either need to run meshclient as root, or give meshclient "
            "CAP_NET_ADMIN capabilities:\n"
            "\n"
            f"    sudo setcap cap_net_admin+eip {_current_executable()}\n"
        )
    if isinstance(error, PermissionError):
        return (
            "ERROR: meshclient can't access its config/data folders.\n"
            "\n"
            "You either need to run meshclient as root, or give the user/group running "
            "meshclient permissions\n"
            f"to access {config} and {data}.\n"
            "\n"
            'For non-root permissions, it\'s recommended to create a "meshclient" group, '
            "and run for example:\n"
            "\n"
            f"    sudo chgrp -R meshclient {config} {data}\n"
            f"    sudo chmod -R g+rwX {config} {data}\n"
        )
    return None


class ApiError(Exception):
    """A request to the server failed; ``status`` holds the HTTP status if there was one."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class _NoRedirect(urllib.request.HTTPRedirectHandler):
    """Refuses to follow redirects, reporting them as HTTP errors instead."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        raise urllib.error.HTTPError(req.full_url, code, msg, headers, fp)


def _encode(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (IPv4Address, IPv6Address, IPv4Network, IPv6Network, Path)):
        return str(value)
    raise TypeError(f"object of type {type(value).__name__} is not JSON serializable")


class Api:
    """JSON client for the server's ``/v1`` HTTP API."""

    def __init__(self, internal_endpoint, public_key: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.internal_endpoint = str(internal_endpoint)
        self.public_key = public_key
        self.timeout = timeout
        self._opener = urllib.request.build_opener(
            urllib.request.ProxyHandler({}), _NoRedirect()
        )

    def http(self, verb: str, endpoint: str) -> Any:
        """Send a request without a body and return the decoded JSON answer."""
        return self._request(verb, endpoint, None, has_form=False)

    def http_form(self, verb: str, endpoint: str, form: Any) -> Any:
        """Send ``form`` as a JSON body and return the decoded JSON answer."""
        return self._request(verb, endpoint, form, has_form=True)

    def _request(self, verb: str, endpoint: str, form: Any, has_form: bool) -> Any:
        url = f"http://{self.internal_endpoint}/v1{endpoint}"
        headers = {PUBKEY_HEADER: self.public_key}
        body = None
        if has_form:
            try:
                body = json.dumps(form, default=_encode).encode("utf-8")
            except (TypeError, ValueError) as exc:
                raise ApiError(f"failed to serialize JSON request: {exc}") from exc
            headers["Content-Type"] = "application/json"

        request = urllib.request.Request(url, data=body, headers=headers, method=verb)
        try:
            with self._opener.open(request, timeout=self.timeout) as response:
                raw = response.read()
        except urllib.error.HTTPError as exc:
            exc.close()
            raise ApiError(f"{url}: status code {exc.code}", status=exc.code) from exc
        except (urllib.error.URLError, OSError) as exc:
            raise ApiError(f"{url}: {exc}") from exc

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ApiError(f"failed to decode response from the server: {exc}") from exc
        if not text:
            text = "null"
        try:
            return json.loads(text)
        except ValueError as exc:
            raise ApiError(
                f"failed to deserialize JSON response from the server: {exc}, response={text}"
            ) from exc