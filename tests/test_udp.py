import select
import socket

import pytest

from icekit.udp import (
    UdpSocketConfig,
    create_socket,
    get_addrs,
    get_bound_addr,
    get_local_addr,
    get_port,
    is_link_local,
    is_loopback,
    is_site_local,
    is_v4_mapped,
    next_port_in_range,
    recvfrom,
    sendto,
    sendto_self,
    set_diffserv,
)

LOCALHOST = "127.0.0.1"


@pytest.fixture
def sock():
    s = create_socket(UdpSocketConfig(bind_address=LOCALHOST))
    yield s
    s.close()


def _wait_readable(s, timeout=2.0):
    readable, _, _ = select.select([s], [], [], timeout)
    return bool(readable)


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as tmp:
        tmp.bind((LOCALHOST, 0))
        return tmp.getsockname()[1]


def test_create_socket_binds_system_port(sock):
    port = get_port(sock)
    assert sock.family == socket.AF_INET
    assert 0 < port <= 0xFFFF
    assert get_bound_addr(sock) == (LOCALHOST, port)


def test_socket_is_non_blocking(sock):
    assert sock.getblocking() is False
    with pytest.raises(BlockingIOError):
        recvfrom(sock, 1500)


def test_sendto_self_round_trip(sock):
    assert sendto_self(sock, b"hello") == 5
    assert _wait_readable(sock)
    data, src = recvfrom(sock, 1500)
    assert data == b"hello"
    assert src == get_bound_addr(sock)


def test_sendto_between_sockets(sock):
    other = create_socket(UdpSocketConfig(bind_address=LOCALHOST))
    try:
        assert sendto(sock, b"Hello from 1", get_bound_addr(other)) == len(b"Hello from 1")
        assert _wait_readable(other)
        data, src = recvfrom(other, 4096)
        assert data == b"Hello from 1"
        assert src == get_bound_addr(sock)
    finally:
        other.close()


def test_recvfrom_truncates_to_size(sock):
    sendto_self(sock, b"abcdef")
    assert _wait_readable(sock)
    data, _ = recvfrom(sock, 3)
    assert data == b"abc"


def test_fixed_port():
    port = _free_port()
    s = create_socket(UdpSocketConfig(bind_address=LOCALHOST, port_begin=port, port_end=port))
    try:
        assert get_port(s) == port
    finally:
        s.close()


def test_port_range():
    s = create_socket(UdpSocketConfig(bind_address=LOCALHOST, port_begin=60000, port_end=61000))
    try:
        assert 60000 <= get_port(s) <= 61000
    finally:
        s.close()


def test_invalid_bind_address_raises():
    with pytest.raises(OSError):
        create_socket(UdpSocketConfig(bind_address="256.1.1.1"))


def test_config_rejects_out_of_range_port():
    with pytest.raises(ValueError):
        UdpSocketConfig(port_begin=70000)


def test_get_local_addr_bound_address(sock):
    assert get_local_addr(sock, socket.AF_INET) == get_bound_addr(sock)
    assert get_local_addr(sock, socket.AF_UNSPEC) == get_bound_addr(sock)


def test_get_local_addr_maps_for_ipv6_hint(sock):
    port = get_port(sock)
    assert get_local_addr(sock, socket.AF_INET6) == ("::ffff:127.0.0.1", port, 0, 0)


def test_get_local_addr_wildcard_gives_localhost():
    s = create_socket(UdpSocketConfig(bind_address="0.0.0.0"))
    try:
        assert get_local_addr(s, socket.AF_INET) == (LOCALHOST, get_port(s))
    finally:
        s.close()


def test_get_addrs_bound_address(sock):
    assert get_addrs(sock) == [get_bound_addr(sock)]


def test_get_addrs_wildcard_invariants():
    s = create_socket(UdpSocketConfig(bind_address="0.0.0.0"))
    try:
        port = get_port(s)
        addrs = get_addrs(s)
        hosts = [addr[0] for addr in addrs]
        assert all(addr[1] == port for addr in addrs)
        assert LOCALHOST not in hosts
        assert len(set(hosts)) == len(hosts)
    finally:
        s.close()


def test_get_port_on_closed_socket_is_zero():
    s = create_socket(UdpSocketConfig(bind_address=LOCALHOST))
    s.close()
    assert get_port(s) == 0


def test_set_diffserv_sets_tos(sock):
    set_diffserv(sock, 32)
    assert sock.getsockopt(socket.IPPROTO_IP, socket.IP_TOS) == 32


def test_set_diffserv_closed_socket_raises():
    s = create_socket(UdpSocketConfig(bind_address=LOCALHOST))
    s.close()
    with pytest.raises(OSError):
        set_diffserv(s, 32)


def test_next_port_equal_bounds():
    assert next_port_in_range(5000, 5000) == 5000
    assert next_port_in_range(0, 1024) == 1024


def test_next_port_stays_in_range_and_cycles():
    ports = {next_port_in_range(5000, 5003) for _ in range(8)}
    assert ports == {5000, 5001, 5002, 5003}


def test_next_port_default_bounds():
    for _ in range(20):
        assert 1024 <= next_port_in_range(0, 0) <= 0xFFFF


def test_next_port_inverted_range_gives_begin():
    assert next_port_in_range(6000, 5000) == 6000


@pytest.mark.parametrize(
    "address, loopback, link_local, site_local, mapped",
    [
        ("::1", True, False, False, False),
        ("fe80::1", False, True, False, False),
        ("febf::1", False, True, False, False),
        ("fec0::1", False, False, True, False),
        ("::ffff:127.0.0.1", False, False, False, True),
        ("2001:db8::1", False, False, False, False),
    ],
)
def test_address_predicates(address, loopback, link_local, site_local, mapped):
    assert is_loopback(address) is loopback
    assert is_link_local(address) is link_local
    assert is_site_local(address) is site_local
    assert is_v4_mapped(address) is mapped


def test_address_predicates_accept_packed_bytes():
    assert is_loopback(bytes(15) + b"\x01") is True
    assert is_v4_mapped(bytes(10) + b"\xff\xff" + bytes([10, 0, 0, 1])) is True


def test_address_predicates_reject_ipv4():
    with pytest.raises(ValueError):
        is_loopback("127.0.0.1")