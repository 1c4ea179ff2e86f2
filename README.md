# icekit

Building blocks for Interactive Connectivity Establishment (ICE) agents and
servers. The package has four modules:

- `icekit.digest`: MD5, SHA-1, SHA-224 and SHA-256 written in pure Python. Each
  one has an incremental `update` / `final` / `reset` interface.
- `icekit.keyed_digest`: HMAC built on those hashes.
- `icekit.config`: enums and dataclasses that describe an agent or a server.
- `icekit.udp`: helpers for non-blocking UDP sockets. They bind within a port
  range, send to the socket itself, set DiffServ values and list the host's
  addresses.

## Installation

```
pip install icekit
```

To run the test suite, install with the `test` extra:

```
pip install "icekit[test]"
pytest
```

## Hashing

`Md5`, `Sha1`, `Sha224` and `Sha256` share the `HashContext` interface. Calling
`final()` returns the digest and resets the context, so you can use the same
context for the next message. `new(name)` takes `"md5"`, `"sha1"`, `"sha224"`
or `"sha256"` and raises `ValueError` for any other name.

```python
from icekit.digest import Sha256, new

ctx = Sha256()
ctx.update(b"hello ")
ctx.update(b"world")
print(ctx.final().hex())

md5 = new("md5")
md5.update(b"abc")
print(md5.final().hex())
```

## HMAC

`Hmac` accepts either a hash class or an algorithm name. A key longer than the
block size is hashed first. After `final()` the same key is ready to
authenticate a new message.

```python
from icekit.digest import Sha1
from icekit.keyed_digest import Hmac, hmac_digest

mac = hmac_digest(Sha1, b"key", b"message")

h = Hmac("sha1", b"key")
h.update(b"mess")
h.update(b"age")
assert h.final() == mac
```

## Configuration

`icekit.config` defines the following:

- the enums `ErrorCode`, `State`, `ConcurrencyMode` and `LogLevel`;
- the dataclasses `TurnServer`, `AgentConfig`, `ServerCredentials` and
  `ServerConfig`;
- the length limits `MAX_ADDRESS_STRING_LEN`, `MAX_CANDIDATE_SDP_STRING_LEN`
  and `MAX_SDP_STRING_LEN`.

A port field outside 0–65535 raises `ValueError`.

```python
from icekit.config import AgentConfig, ConcurrencyMode, TurnServer

password = "password"
config = AgentConfig(
    concurrency_mode=ConcurrencyMode.MUX,
    stun_server_host="stun.example.com",
    stun_server_port=3478,
    turn_servers=[TurnServer(host="turn.example.com", username="user", password=password, port=3478)],
    local_port_range_begin=60000,
    local_port_range_end=60000,
)
print(config.turn_servers_count)
```

## UDP sockets

`create_socket(UdpSocketConfig(...))` opens a non-blocking UDP socket. It
prefers IPv6 and falls back to IPv4. The port range works as follows:

- `0..0` lets the system choose the port;
- equal bounds ask for that exact port;
- any other range tries ports from the range, starting at a random point.
  After `EADDRINUSE` or `EACCES` it tries the next one, until the range is
  used up.

If no socket can be opened and bound, `create_socket` raises `OSError`.

```python
import select

from icekit.udp import UdpSocketConfig, create_socket, get_addrs, get_port, recvfrom, sendto_self

sock = create_socket(UdpSocketConfig(bind_address="127.0.0.1"))
print(get_port(sock))
print(get_addrs(sock))

sendto_self(sock, b"ping")
select.select([sock], [], [], 1.0)
data, source = recvfrom(sock, 1500)
sock.close()
```

The module also provides these functions:

- `sendto`: sends a datagram. On an IPv6 socket it maps IPv4 destinations to
  their IPv6 form.
- `recvfrom`: returns the data and the source address, with IPv4-mapped
  addresses unmapped. It skips leftover ICMP errors. If nothing is waiting it
  raises `BlockingIOError`.
- `set_diffserv`: sets IP ToS or the IPv6 traffic class. It raises `OSError`
  where the system does not support this.
- `get_bound_addr`, `get_port` and `get_local_addr`: `get_local_addr` returns an
  address through which the socket can reach itself.
- `get_addrs`: lists the interface addresses of the host with the socket's
  port. It leaves out loopback and link-local addresses, interfaces that are
  down, and `docker0`. It also leaves out duplicates: IPv4 addresses compared
  whole, IPv6 addresses compared on their first 64 bits.
- `next_port_in_range`: returns the next port to try in a range.
- `is_loopback`, `is_link_local`, `is_site_local` and `is_v4_mapped`: classify
  IPv6 addresses.

## What this package does not do

The package holds building blocks only. It has no ICE agent: it does not
gather candidates, check connectivity or nominate candidate pairs. It does not
read or write STUN or TURN messages, and it has no STUN/TURN server. The types
in `icekit.config` describe an agent or a server, but nothing in the package
runs one. The package has no command-line program.