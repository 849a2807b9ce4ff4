from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address

_PORT_RE = re.compile(r"^[0-9]{1,5}$")
_SCOPE_RE = re.compile(r"^[A-Za-z0-9_.:\-]{1,15}$")


@dataclass(frozen=True)
class ServerAddress:
    """A nameserver address: IP, optional port, optional IPv6 interface scope."""

    ip: IPAddress
    port: int | None = None
    scope: str | None = None

    @property
    def family(self) -> int:
        return self.ip.version

    @property
    def identity(self) -> tuple[int, bytes, int | None, str | None]:
        return (self.ip.version, self.ip.packed, self.port, self.scope)


def _parse_port(raw: str) -> int:
    if not _PORT_RE.match(raw):
        raise ValueError(f"Invalid port '{raw}'.")
    port = int(raw)
    if not 1 <= port <= 65535:
        raise ValueError(f"Port out of range: {port}.")
    return port


def _parse_host(raw: str) -> tuple[IPAddress, str | None]:
    host, sep, scope = raw.partition("%")
    if sep and not _SCOPE_RE.match(scope):
        raise ValueError(f"Invalid interface scope '{scope}'.")
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        raise ValueError(f"Invalid IP address '{host}'.") from None
    if sep and ip.version != 6:
        raise ValueError("Interface scope is only valid for IPv6 addresses.")
    return ip, (scope if sep else None)


def parse_address(text: str) -> ServerAddress:
    """Parse a nameserver address.

    Accepted forms:
      1.2.3.4          1.2.3.4:53
      fe80::1          fe80::1%eth0
      [::1]:53         [fe80::1%eth0]:53
    """
    s = text.strip()
    if not s:
        raise ValueError("Empty address.")

    port: int | None = None
    if s.startswith("["):
        end = s.find("]")
        if end < 0:
            raise ValueError(f"Unterminated '[' in address '{s}'.")
        host, rest = s[1:end], s[end + 1:]
        if rest:
            if not rest.startswith(":"):
                raise ValueError(f"Unexpected trailing data in address '{s}'.")
            port = _parse_port(rest[1:])
        ip, scope = _parse_host(host)
        if ip.version != 6:
            raise ValueError("Brackets are only valid around IPv6 addresses.")
    elif s.count(":") == 1:
        host, _, raw_port = s.partition(":")
        port = _parse_port(raw_port)
        ip, scope = _parse_host(host)
    else:
        ip, scope = _parse_host(s)

    return ServerAddress(ip=ip, port=port, scope=scope)


def format_address(addr: ServerAddress) -> str:
    host = str(addr.ip)
    if addr.scope:
        host = f"{host}%{addr.scope}"
    if addr.port is None:
        return host
    if addr.ip.version == 6:
        return f"[{host}]:{addr.port}"
    return f"{host}:{addr.port}"
