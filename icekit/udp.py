"""Non-blocking UDP sockets for ICE: creation, binding, send/receive and address discovery."""

from __future__ import annotations

import errno
import ipaddress
import logging
import secrets
import socket
import sys
import threading
from dataclasses import dataclass
from typing import Optional, Union

import psutil

logger = logging.getLogger(__name__)

Address = tuple
AddressLike = Union[str, bytes, ipaddress.IPv6Address]

_PORT_MAX = 0xFFFF
_DEFAULT_PORT_BEGIN = 1024
_BUFFER_SIZE = 1024 * 1024

_LOOPBACK6 = ipaddress.IPv6Address("::1")
_LINK_LOCAL6 = ipaddress.IPv6Network("fe80::/10")
_SITE_LOCAL6 = ipaddress.IPv6Network("fec0::/10")
_V4_MAPPED6 = ipaddress.IPv6Network("::ffff:0:0/96")

# Linux values, used when the socket module does not expose them.
_IP_MTU_DISCOVER = getattr(socket, "IP_MTU_DISCOVER", 10)
_IP_PMTUDISC_DO = getattr(socket, "IP_PMTUDISC_DO", 2)
_IPV6_MTU_DISCOVER = getattr(socket, "IPV6_MTU_DISCOVER", 23)

_IGNORED_RECV_ERRNOS = {errno.ECONNRESET, errno.ENETRESET, errno.ECONNREFUSED}
_RETRY_BIND_ERRNOS = {errno.EADDRINUSE, errno.EACCES}
_IGNORED_INTERFACES = {"docker0"}


@dataclass
class UdpSocketConfig:
    """Where a UDP socket binds: an address (None for any) and a local port range.

    A range of 0..0 lets the system pick the port; equal bounds ask for that
    exact port.
    """

    bind_address: Optional[str] = None
    port_begin: int = 0
    port_end: int = 0

    def __post_init__(self) -> None:
        for name in ("port_begin", "port_end"):
            value = getattr(self, name)
            if not 0 <= value <= _PORT_MAX:
                raise ValueError(f"{name} must be between 0 and {_PORT_MAX}, got {value}")


# --- IPv6 address classification -------------------------------------------------


def _as_ipv6(address: AddressLike) -> ipaddress.IPv6Address:
    if isinstance(address, ipaddress.IPv6Address):
        return address
    if isinstance(address, (bytes, bytearray)):
        return ipaddress.IPv6Address(bytes(address))
    return ipaddress.IPv6Address(str(address).split("%", 1)[0])


def is_loopback(address: AddressLike) -> bool:
    """Whether an IPv6 address is the loopback address ``::1``."""
    return _as_ipv6(address) == _LOOPBACK6


def is_link_local(address: AddressLike) -> bool:
    """Whether an IPv6 address is in ``fe80::/10``."""
    return _as_ipv6(address) in _LINK_LOCAL6


def is_site_local(address: AddressLike) -> bool:
    """Whether an IPv6 address is in the deprecated ``fec0::/10``."""
    return _as_ipv6(address) in _SITE_LOCAL6


def is_v4_mapped(address: AddressLike) -> bool:
    """Whether an IPv6 address is an IPv4-mapped address (``::ffff:a.b.c.d``)."""
    return _as_ipv6(address) in _V4_MAPPED6


# --- socket address tuples --------------------------------------------------------


def _ip(addr: Address):
    return ipaddress.ip_address(str(addr[0]).split("%", 1)[0])


def _family(addr: Address) -> int:
    return socket.AF_INET6 if _ip(addr).version == 6 else socket.AF_INET


def _is_any(addr: Address) -> bool:
    return _ip(addr).is_unspecified


def _with_port(addr: Address, port: int) -> Address:
    return (addr[0], port) + tuple(addr[2:])


def _map_v4(addr: Address) -> Address:
    """Turn an IPv4 socket address into its IPv4-mapped IPv6 form."""
    ip = _ip(addr)
    if ip.version != 4:
        return addr
    return (f"::ffff:{ip}", addr[1], 0, 0)


def _unmap_v4(addr: Address) -> Address:
    """Turn an IPv4-mapped IPv6 socket address back into an IPv4 one."""
    try:
        ip = _ip(addr)
    except ValueError:
        return addr
    if ip.version == 6 and ip.ipv4_mapped is not None:
        return (str(ip.ipv4_mapped), addr[1])
    return addr


def _is_local(addr: Address) -> bool:
    ip = _ip(addr)
    if ip.version == 6 and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return ip.is_loopback or ip.is_link_local


def _has_duplicate(addr: Address, records: list) -> bool:
    """Whether a similar address is already listed, ignoring the port.

    IPv4 addresses are compared whole, IPv6 addresses on their 64-bit prefix.
    """
    ip = _ip(addr)
    for record in records:
        other = _ip(record)
        if other.version != ip.version:
            continue
        if ip.version == 4 and other.packed == ip.packed:
            return True
        if ip.version == 6 and other.packed[:8] == ip.packed[:8]:
            return True
    return False


# --- port selection ---------------------------------------------------------------

_counter = 0
_counter_lock = threading.Lock()


def next_port_in_range(begin: int, end: int) -> int:
    """Return the next port to try in ``[begin, end]``, cycling from a random start.

    A zero ``begin`` means 1024 and a zero ``end`` means 65535.
    """
    global _counter
    if begin == 0:
        begin = _DEFAULT_PORT_BEGIN
    if end == 0:
        end = _PORT_MAX
    if begin == end:
        return begin
    with _counter_lock:
        if _counter == 0:
            _counter = secrets.randbits(32)
        diff = end - begin if end > begin else 0
        port = (begin + _counter % (diff + 1)) & _PORT_MAX
        _counter = (_counter + 1) & 0xFFFFFFFF
    return port


# --- socket creation --------------------------------------------------------------


def _try_setsockopt(sock: socket.socket, level: int, option: int, value: int) -> None:
    try:
        sock.setsockopt(level, option, value)
    except OSError as exc:
        logger.debug("setsockopt(%d, %d) failed: %s", level, option, exc)


def _configure(sock: socket.socket, family: int) -> None:
    if family == socket.AF_INET6:
        _try_setsockopt(sock, socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)

    # Set the DF flag
    if sys.platform.startswith("linux"):
        _try_setsockopt(sock, socket.IPPROTO_IP, _IP_MTU_DISCOVER, _IP_PMTUDISC_DO)
        if family == socket.AF_INET6:
            _try_setsockopt(sock, socket.IPPROTO_IPV6, _IPV6_MTU_DISCOVER, _IP_PMTUDISC_DO)
    else:
        dontfrag = getattr(socket, "IP_DONTFRAG", getattr(socket, "IP_DONTFRAGMENT", None))
        if dontfrag is not None:
            _try_setsockopt(sock, socket.IPPROTO_IP, dontfrag, 1)
        dontfrag6 = getattr(socket, "IPV6_DONTFRAG", None)
        if dontfrag6 is not None and family == socket.AF_INET6:
            _try_setsockopt(sock, socket.IPPROTO_IPV6, dontfrag6, 1)

    _try_setsockopt(sock, socket.SOL_SOCKET, socket.SO_RCVBUF, _BUFFER_SIZE)
    _try_setsockopt(sock, socket.SOL_SOCKET, socket.SO_SNDBUF, _BUFFER_SIZE)
    sock.setblocking(False)


def _bind(sock: socket.socket, config: UdpSocketConfig, sockaddr: Address) -> int:
    begin, end = config.port_begin, config.port_end
    if begin == 0 and end == 0:
        sock.bind(sockaddr)
        return sock.getsockname()[1]
    if begin == end:
        sock.bind(_with_port(sockaddr, begin))
        return begin
    retries = end - begin
    while True:
        port = next_port_in_range(begin, end)
        try:
            sock.bind(_with_port(sockaddr, port))
            return port
        except OSError as exc:
            if exc.errno not in _RETRY_BIND_ERRNOS or retries <= 0:
                raise
            retries -= 1


def _create_for_addrinfo(config: UdpSocketConfig, family, socktype, proto, sockaddr) -> socket.socket:
    sock = socket.socket(family, socktype, proto)
    try:
        _configure(sock, family)
        port = _bind(sock, config, sockaddr)
    except OSError as exc:
        logger.warning("UDP socket binding failed: %s", exc)
        sock.close()
        raise
    logger.debug("UDP socket bound to %s:%d", config.bind_address or "any", port)
    return sock


def create_socket(config: UdpSocketConfig) -> socket.socket:
    """Open a non-blocking UDP socket bound as ``config`` asks, preferring IPv6.

    Raises OSError if no address family can be opened and bound.
    """
    try:
        infos = socket.getaddrinfo(
            config.bind_address,
            "0",
            socket.AF_UNSPEC,
            socket.SOCK_DGRAM,
            socket.IPPROTO_UDP,
            socket.AI_PASSIVE | socket.AI_NUMERICSERV,
        )
    except OSError as exc:
        logger.error("getaddrinfo for binding address failed: %s", exc)
        raise

    last_error: Optional[OSError] = None
    for family, name in ((socket.AF_INET6, "IPv6"), (socket.AF_INET, "IPv4")):
        info = next((ai for ai in infos if ai[0] == family), None)
        if info is None:
            continue
        logger.debug("Opening UDP socket for %s family", name)
        family, socktype, proto, _, sockaddr = info
        try:
            return _create_for_addrinfo(config, family, socktype, proto, sockaddr)
        except OSError as exc:
            last_error = exc

    logger.error("UDP socket opening failed")
    raise OSError(
        last_error.errno if last_error else errno.EADDRNOTAVAIL, "UDP socket opening failed"
    ) from last_error


# --- sending and receiving --------------------------------------------------------


def recvfrom(sock: socket.socket, size: int) -> tuple[bytes, Address]:
    """Receive one datagram, returning its data and its (unmapped) source address.

    Errors left over from ICMP unreachable messages are skipped; a socket
    with nothing to read raises BlockingIOError.
    """
    while True:
        try:
            data, src = sock.recvfrom(size)
        except OSError as exc:
            if exc.errno in _IGNORED_RECV_ERRNOS:
                logger.debug("Ignoring %s returned by recvfrom", errno.errorcode.get(exc.errno))
                continue
            raise
        return data, _unmap_v4(src)


def _destination_for(sock: socket.socket, dst: Address) -> Address:
    if sock.family == socket.AF_INET6:
        try:
            return _map_v4(dst)
        except ValueError:
            return dst
    return dst


def sendto(sock: socket.socket, data, dst: Address) -> int:
    """Send a datagram to ``dst``, mapping IPv4 destinations on IPv6 sockets."""
    return sock.sendto(data, _destination_for(sock, dst))


def sendto_self(sock: socket.socket, data) -> int:
    """Send a datagram to the socket's own local address."""
    local = get_local_addr(sock, socket.AF_UNSPEC)
    try:
        return sock.sendto(data, local)
    except OSError:
        if _family(local) != socket.AF_INET6:
            raise
    # IPv6 may be disabled on the loopback interface
    local = get_local_addr(sock, socket.AF_INET)
    return sock.sendto(data, _destination_for(sock, local))


def set_diffserv(sock: socket.socket, ds: int) -> None:
    """Set the Differentiated Services field on outgoing datagrams.

    Raises OSError when the system does not support it or refuses it.
    """
    if sys.platform == "win32":
        logger.info("IP Differentiated Services are not supported on Windows")
        raise OSError(errno.EOPNOTSUPP, "IP Differentiated Services are not supported")

    get_bound_addr(sock)
    ip_tos = getattr(socket, "IP_TOS", None)
    if sock.family == socket.AF_INET:
        if ip_tos is None:
            raise OSError(errno.EOPNOTSUPP, "setting IP ToS is not supported")
        sock.setsockopt(socket.IPPROTO_IP, ip_tos, ds)
        return
    if sock.family == socket.AF_INET6:
        tclass = getattr(socket, "IPV6_TCLASS", None)
        if tclass is None:
            raise OSError(errno.EOPNOTSUPP, "setting IPv6 traffic class is not supported")
        sock.setsockopt(socket.IPPROTO_IPV6, tclass, ds)
        if ip_tos is not None:
            _try_setsockopt(sock, socket.IPPROTO_IP, ip_tos, ds)
        return
    raise OSError(errno.EAFNOSUPPORT, "unsupported address family")


# --- local addresses --------------------------------------------------------------


def get_bound_addr(sock: socket.socket) -> Address:
    """Return the address the socket is bound to."""
    try:
        return sock.getsockname()
    except OSError as exc:
        logger.warning("getsockname failed: %s", exc)
        raise


def get_port(sock: socket.socket) -> int:
    """Return the bound port, or 0 if it cannot be read."""
    try:
        return get_bound_addr(sock)[1]
    except OSError:
        return 0


def get_local_addr(sock: socket.socket, family_hint: int = socket.AF_UNSPEC) -> Address:
    """Return an address through which the socket can reach itself.

    A socket bound to a specific address gives that address; a wildcard
    socket gives the loopback address of the matching family. With an IPv6
    hint, IPv4 results are returned in IPv4-mapped form.
    """
    record = get_bound_addr(sock)
    family = _family(record)

    if not _is_any(record):
        if family == socket.AF_INET and family_hint == socket.AF_INET6:
            return _map_v4(record)
        return record

    if family == socket.AF_INET6 and family_hint == socket.AF_INET:
        # Listening on any IPv4 or IPv6: give an IPv4 address instead
        port = record[1]
        if port == 0:
            raise OSError(errno.EINVAL, "socket is not bound to a port")
        record = ("0.0.0.0", port)
        family = socket.AF_INET

    if family == socket.AF_INET:
        record = ("127.0.0.1", record[1])
    else:
        record = ("::1",) + tuple(record[1:])

    if family == socket.AF_INET and family_hint == socket.AF_INET6:
        record = _map_v4(record)
    return record


def get_addrs(sock: socket.socket) -> list:
    """List the host addresses the socket can be reached at, with its port.

    Loopback and link-local addresses are left out, as are addresses that
    duplicate one already listed (same IPv4 address or same IPv6 prefix).
    """
    try:
        bound = get_bound_addr(sock)
    except OSError:
        logger.error("Getting UDP bound address failed")
        raise

    if not _is_any(bound):
        return [bound]

    port = bound[1]
    bound_family = _family(bound)
    stats = psutil.net_if_stats()
    records: list = []
    for name, nics in psutil.net_if_addrs().items():
        stat = stats.get(name)
        if stat is None or not stat.isup:
            continue
        if "loopback" in getattr(stat, "flags", "").split(","):
            continue
        if name in _IGNORED_INTERFACES:
            continue
        for nic in nics:
            if nic.family == socket.AF_INET:
                addr = (nic.address, port)
            elif nic.family == socket.AF_INET6 and bound_family == socket.AF_INET6:
                addr = (nic.address.split("%", 1)[0], port, 0, 0)
            else:
                continue
            try:
                if _is_local(addr) or _has_duplicate(addr, records):
                    continue
            except ValueError:
                continue
            records.append(addr)
    return records