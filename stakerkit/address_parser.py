"""Parsing and normalisation of listen addresses.

Addresses may be given as ``network://address:port``, ``network:address:port``,
``address:port`` or just ``port``. Only TCP and unix socket addresses are
accepted.
"""

from __future__ import annotations

import ipaddress
import re
import socket
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_TCP_NETWORKS = frozenset({"tcp", "tcp4", "tcp6"})
_UNIX_NETWORKS = frozenset({"unix", "unixpacket"})
_UNSUPPORTED_NETWORKS = frozenset(
    {"ip", "ip4", "ip6", "udp", "udp4", "udp6", "unixgram"}
)
_TOR_UNREACHABLE = "tor host is unreachable"
_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


class AddressError(ValueError):
    """Raised when an address cannot be parsed or resolved."""


@dataclass(frozen=True)
class TCPAddress:
    """A resolved TCP endpoint. ``ip`` is None for the all-interfaces address."""

    ip: Optional[IPAddress]
    port: int
    zone: str = ""

    def __str__(self) -> str:
        host = "" if self.ip is None else _ip_string(self.ip)
        if self.zone:
            host = f"{host}%{self.zone}"
        return _join_host_port(host, str(self.port))


@dataclass(frozen=True)
class UnixAddress:
    """A unix domain socket address."""

    name: str
    net: str = "unix"

    def __str__(self) -> str:
        return self.name


Address = Union[TCPAddress, UnixAddress]
TCPResolver = Callable[[str, str], Address]


def _parse_ip(text: str) -> Optional[IPAddress]:
    if not text or "%" in text:
        return None
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        return None


def _to4(ip: IPAddress) -> Optional[ipaddress.IPv4Address]:
    if isinstance(ip, ipaddress.IPv4Address):
        return ip
    return ip.ipv4_mapped


def _ip_string(ip: IPAddress) -> str:
    v4 = _to4(ip)
    return str(v4) if v4 is not None else str(ip)


def _atoi(text: str) -> Optional[int]:
    if not _INT_RE.fullmatch(text):
        return None
    value = int(text)
    if value < _INT64_MIN or value > _INT64_MAX:
        return None
    return value


def _join_host_port(host: str, port: str) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _split_host_port(hostport: str) -> Tuple[str, str]:
    def fail(reason: str) -> AddressError:
        return AddressError(f"address {hostport}: {reason}")

    i = hostport.rfind(":")
    if i < 0:
        raise fail("missing port in address")

    start, end_bracket = 0, 0
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise fail("missing ']' in address")
        if end + 1 == len(hostport):
            raise fail("missing port in address")
        if end + 1 != i:
            if hostport[end + 1] == ":":
                raise fail("too many colons in address")
            raise fail("missing port in address")
        host = hostport[1:end]
        start, end_bracket = 1, end + 1
    else:
        host = hostport[:i]
        if ":" in host:
            raise fail("too many colons in address")

    if "[" in hostport[start:]:
        raise fail("unexpected '[' in address")
    if "]" in hostport[end_bracket:]:
        raise fail("unexpected ']' in address")
    return host, hostport[i + 1:]


def _raw_host(hostport: str) -> str:
    try:
        return _split_host_port(hostport)[0]
    except AddressError:
        return ""


def _lookup_port(service: str) -> int:
    if not service:
        return 0
    if _INT_RE.fullmatch(service):
        port = int(service)
        if port < 0 or port > 0xFFFF:
            raise AddressError(f"address {service}: invalid port")
        return port
    try:
        return socket.getservbyname(service, "tcp")
    except OSError as exc:
        raise AddressError(f"unknown port tcp/{service}") from exc


def _host_addresses(host: str) -> List[Tuple[IPAddress, str]]:
    ip_text, _, zone = host.rpartition("%") if "%" in host else (host, "", "")
    literal = _parse_ip(ip_text)
    if literal is not None:
        if isinstance(literal, ipaddress.IPv4Address):
            zone = ""
        return [(literal, zone)]

    try:
        infos = socket.getaddrinfo(host, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except OSError as exc:
        raise AddressError(f"lookup {host}: {exc}") from exc

    found: List[Tuple[IPAddress, str]] = []
    for info in infos:
        text = str(info[4][0])
        text, _, scope = text.partition("%")
        ip = _parse_ip(text)
        if ip is not None and (ip, scope) not in found:
            found.append((ip, scope))
    return found


def _choose(
    network: str, addr: str, candidates: List[Tuple[IPAddress, str]]
) -> Tuple[IPAddress, str]:
    if network == "tcp4":
        pool = [c for c in candidates if _to4(c[0]) is not None]
    elif network == "tcp6":
        pool = [c for c in candidates if _to4(c[0]) is None]
    else:
        pool = list(candidates)
    if not pool:
        raise AddressError(f"no suitable address found for {addr}")

    if network == "tcp":
        want6 = "[" in addr
        for candidate in pool:
            if (_to4(candidate[0]) is None) == want6:
                return candidate
    return pool[0]


def resolve_tcp_address(network: str, addr: str) -> TCPAddress:
    """Resolve ``host:port`` on a TCP network using the system resolver."""
    if network not in _TCP_NETWORKS:
        raise AddressError(f"unknown network {network}")
    host, port_text = _split_host_port(addr)
    port = _lookup_port(port_text)
    if not host:
        return TCPAddress(None, port)
    ip, zone = _choose(network, addr, _host_addresses(host))
    return TCPAddress(ip, port, zone)


def verify_port(address: str, default_port: str) -> str:
    """Make sure ``address`` carries a port, appending the default if missing.

    A bare number is taken as a port on localhost.
    """
    try:
        host, port = _split_host_port(address)
    except AddressError:
        if _atoi(address) is not None:
            return _join_host_port("localhost", address)
        if address.startswith("["):
            return f"{address}:{default_port}"
        return _join_host_port(address, default_port)

    if host == "" and port == "":
        return ":" + default_port
    return address


def is_loopback(host: str) -> bool:
    """Report whether ``host`` (a ``host:port`` string) is a loopback address."""
    if "localhost" in host:
        return True
    ip = _parse_ip(_raw_host(host))
    if ip is None:
        return False
    v4 = _to4(ip)
    if v4 is not None:
        return v4.packed[0] == 127
    return ip == ipaddress.IPv6Address("::1")


def is_ipv6_host(host: str) -> bool:
    """Report whether ``host`` is an IPv6 address that is not an IPv4 one."""
    ip = _parse_ip(host)
    if ip is None:
        return False
    return _to4(ip) is None


def is_unspecified_host(host: str) -> bool:
    """Report whether ``host`` is the unspecified (all-interfaces) address."""
    ip = _parse_ip(host)
    if ip is None:
        return False
    v4 = _to4(ip)
    if v4 is not None:
        return v4 == ipaddress.IPv4Address("0.0.0.0")
    return ip == ipaddress.IPv6Address("::")


def parse_address_string(
    str_address: str, default_port: str, tcp_resolver: TCPResolver
) -> Address:
    """Parse one address string into a TCP or unix socket address."""
    parsed_network, parsed_addr = "", ""
    if "://" in str_address:
        parts = str_address.split("://")
        parsed_network, parsed_addr = parts[0], parts[1]
    elif ":" in str_address:
        parts = str_address.split(":")
        parsed_network = parts[0]
        parsed_addr = ":".join(parts[1:])

    if parsed_network in _UNIX_NETWORKS:
        return UnixAddress(parsed_addr, parsed_network)

    if parsed_network in _TCP_NETWORKS:
        return tcp_resolver(parsed_network, verify_port(parsed_addr, default_port))

    if parsed_network in _UNSUPPORTED_NETWORKS:
        raise AddressError(
            f"only TCP or unix socket addresses are supported: {parsed_addr}"
        )

    addr_with_port = verify_port(str_address, default_port)
    raw_host = _raw_host(addr_with_port)

    if (
        raw_host == ""
        or is_loopback(raw_host)
        or is_ipv6_host(raw_host)
        or is_unspecified_host(raw_host)
    ):
        return resolve_tcp_address("tcp", addr_with_port)

    try:
        return tcp_resolver("tcp", addr_with_port)
    except Exception as exc:
        if _TOR_UNREACHABLE in str(exc):
            return resolve_tcp_address("tcp", addr_with_port)
        raise


def normalize_addresses(
    addrs: List[str], default_port: str, tcp_resolver: TCPResolver
) -> List[Address]:
    """Parse every address, dropping duplicates while keeping the order."""
    result: List[Address] = []
    seen = set()
    for addr in addrs:
        try:
            parsed = parse_address_string(addr, default_port, tcp_resolver)
        except Exception as exc:
            raise AddressError(f"parse address {addr} failed: {exc}") from exc
        key = str(parsed)
        if key not in seen:
            seen.add(key)
            result.append(parsed)
    return result