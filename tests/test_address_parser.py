import ipaddress

import pytest

from stakerkit.address_parser import (
    AddressError,
    TCPAddress,
    UnixAddress,
    is_ipv6_host,
    is_loopback,
    is_unspecified_host,
    normalize_addresses,
    parse_address_string,
    resolve_tcp_address,
    verify_port,
)

DEFAULT_PORT = "15812"


class RecordingResolver:
    def __init__(self):
        self.calls = []

    def __call__(self, network, addr):
        self.calls.append((network, addr))
        return UnixAddress(addr, network)


def failing_resolver(network, addr):
    raise AssertionError("resolver must not be used")


def tor_resolver(network, addr):
    raise AddressError("tor host is unreachable")


def broken_resolver(network, addr):
    raise AddressError("resolver exploded")


def test_verify_port_bare_number_is_localhost():
    assert verify_port("9000", DEFAULT_PORT) == "localhost:9000"


def test_verify_port_appends_default():
    host = "example.com"
    assert verify_port(host, DEFAULT_PORT) == f"{host}:{DEFAULT_PORT}"


def test_verify_port_bracketed_ipv6():
    assert verify_port("[::1]", DEFAULT_PORT) == f"[::1]:{DEFAULT_PORT}"


def test_verify_port_unbracketed_ipv6_gets_brackets():
    assert verify_port("::1", DEFAULT_PORT) == f"[::1]:{DEFAULT_PORT}"


def test_verify_port_keeps_existing_port():
    assert verify_port("example.com:80", DEFAULT_PORT) == "example.com:80"


def test_verify_port_empty_host_and_port():
    assert verify_port(":", DEFAULT_PORT) == f":{DEFAULT_PORT}"


def test_is_loopback():
    assert is_loopback("localhost") is True
    assert is_loopback("127.0.0.1:80") is True
    assert is_loopback("[::1]:80") is True
    assert is_loopback("10.0.0.1:80") is False
    # without a port the host cannot be split, so only the name check applies
    assert is_loopback("127.0.0.1") is False


def test_is_ipv6_host():
    assert is_ipv6_host("::1") is True
    assert is_ipv6_host("127.0.0.1") is False
    assert is_ipv6_host("::ffff:10.0.0.1") is False
    assert is_ipv6_host("not-an-ip") is False


def test_is_unspecified_host():
    assert is_unspecified_host("0.0.0.0") is True
    assert is_unspecified_host("::") is True
    assert is_unspecified_host("1.2.3.4") is False
    assert is_unspecified_host("") is False


def test_resolve_ipv4_literal():
    addr = resolve_tcp_address("tcp", "127.0.0.1:8080")
    assert addr == TCPAddress(ipaddress.ip_address("127.0.0.1"), 8080)
    assert str(addr) == "127.0.0.1:8080"


def test_resolve_ipv6_literal():
    addr = resolve_tcp_address("tcp", "[::1]:80")
    assert str(addr) == "[::1]:80"


def test_resolve_empty_host():
    addr = resolve_tcp_address("tcp", ":80")
    assert addr.ip is None
    assert str(addr) == ":80"


def test_resolve_mapped_address_prints_as_ipv4():
    assert str(resolve_tcp_address("tcp", "[::ffff:10.0.0.1]:80")) == "10.0.0.1:80"


def test_resolve_rejects_other_networks():
    with pytest.raises(AddressError):
        resolve_tcp_address("udp", "127.0.0.1:80")


def test_resolve_rejects_missing_port():
    with pytest.raises(AddressError, match="missing port"):
        resolve_tcp_address("tcp", "127.0.0.1")


def test_resolve_rejects_out_of_range_port():
    with pytest.raises(AddressError, match="invalid port"):
        resolve_tcp_address("tcp", "127.0.0.1:99999")


def test_resolve_tcp4_rejects_ipv6():
    with pytest.raises(AddressError, match="no suitable address"):
        resolve_tcp_address("tcp4", "[::1]:80")


def test_parse_tcp_scheme_uses_resolver_with_default_port():
    resolver = RecordingResolver()
    result = parse_address_string("tcp://example.com", DEFAULT_PORT, resolver)
    assert resolver.calls == [("tcp", f"example.com:{DEFAULT_PORT}")]
    assert result == UnixAddress(f"example.com:{DEFAULT_PORT}", "tcp")


def test_parse_network_colon_form():
    resolver = RecordingResolver()
    parse_address_string("tcp4:10.1.2.3:80", DEFAULT_PORT, resolver)
    assert resolver.calls == [("tcp4", "10.1.2.3:80")]


def test_parse_unix_socket():
    result = parse_address_string("unix:///tmp/staker.sock", DEFAULT_PORT, failing_resolver)
    assert result == UnixAddress("/tmp/staker.sock", "unix")
    assert str(result) == "/tmp/staker.sock"


@pytest.mark.parametrize("network", ["udp", "ip4", "unixgram"])
def test_parse_rejects_unsupported_networks(network):
    with pytest.raises(AddressError, match="only TCP or unix socket"):
        parse_address_string(f"{network}://host:1", DEFAULT_PORT, failing_resolver)


def test_parse_unspecified_uses_system_resolver():
    result = parse_address_string("0.0.0.0:9000", DEFAULT_PORT, failing_resolver)
    assert str(result) == "0.0.0.0:9000"


def test_parse_ipv6_uses_system_resolver():
    result = parse_address_string("[::1]:9000", DEFAULT_PORT, failing_resolver)
    assert str(result) == "[::1]:9000"


def test_parse_other_host_uses_given_resolver():
    resolver = RecordingResolver()
    parse_address_string("10.9.8.7:80", DEFAULT_PORT, resolver)
    assert resolver.calls == [("tcp", "10.9.8.7:80")]


def test_parse_falls_back_when_tor_unreachable():
    result = parse_address_string("10.9.8.7:80", DEFAULT_PORT, tor_resolver)
    assert result == TCPAddress(ipaddress.ip_address("10.9.8.7"), 80)


def test_parse_propagates_other_resolver_errors():
    with pytest.raises(AddressError, match="resolver exploded"):
        parse_address_string("10.9.8.7:80", DEFAULT_PORT, broken_resolver)


def test_normalize_removes_duplicates_in_order():
    result = normalize_addresses(
        ["0.0.0.0:80", "[::1]:81", "0.0.0.0:80"], DEFAULT_PORT, failing_resolver
    )
    assert [str(a) for a in result] == ["0.0.0.0:80", "[::1]:81"]


def test_normalize_wraps_errors():
    with pytest.raises(AddressError, match="parse address udp://x:1 failed"):
        normalize_addresses(["udp://x:1"], DEFAULT_PORT, failing_resolver)