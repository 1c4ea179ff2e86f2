"""Public configuration types, states and constants of the ICE agent and server."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Optional

MAX_ADDRESS_STRING_LEN = 64
MAX_CANDIDATE_SDP_STRING_LEN = 256
MAX_SDP_STRING_LEN = 4096

_PORT_MAX = 0xFFFF


class ErrorCode(IntEnum):
    """Result codes reported by agent and server operations."""

    SUCCESS = 0
    INVALID = -1
    FAILED = -2
    NOT_AVAIL = -3


class State(IntEnum):
    """Connection state of an ICE agent."""

    DISCONNECTED = 0
    GATHERING = 1
    CONNECTING = 2
    CONNECTED = 3
    COMPLETED = 4
    FAILED = 5


class ConcurrencyMode(IntEnum):
    """How agents share threads and sockets."""

    POLL = 0
    MUX = 1
    THREAD = 2


class LogLevel(IntEnum):
    """Log verbosity, from most to least verbose."""

    VERBOSE = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4
    FATAL = 5
    NONE = 6


def _check_port(name: str, value: int) -> None:
    if not 0 <= value <= _PORT_MAX:
        raise ValueError(f"{name} must be between 0 and {_PORT_MAX}, got {value}")


@dataclass
class TurnServer:
    """A TURN relay server with its credentials."""

    host: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    port: int = 0

    def __post_init__(self) -> None:
        _check_port("port", self.port)


StateCallback = Callable[[Any, State, Any], None]
CandidateCallback = Callable[[Any, str, Any], None]
GatheringDoneCallback = Callable[[Any, Any], None]
RecvCallback = Callable[[Any, bytes, Any], None]


@dataclass
class AgentConfig:
    """Settings and callbacks for an ICE agent."""

    concurrency_mode: ConcurrencyMode = ConcurrencyMode.POLL
    stun_server_host: Optional[str] = None
    stun_server_port: int = 0
    turn_servers: list[TurnServer] = field(default_factory=list)
    bind_address: Optional[str] = None
    local_port_range_begin: int = 0
    local_port_range_end: int = 0
    cb_state_changed: Optional[StateCallback] = None
    cb_candidate: Optional[CandidateCallback] = None
    cb_gathering_done: Optional[GatheringDoneCallback] = None
    cb_recv: Optional[RecvCallback] = None
    user_data: Any = None

    def __post_init__(self) -> None:
        self.concurrency_mode = ConcurrencyMode(self.concurrency_mode)
        _check_port("stun_server_port", self.stun_server_port)
        _check_port("local_port_range_begin", self.local_port_range_begin)
        _check_port("local_port_range_end", self.local_port_range_end)

    @property
    def turn_servers_count(self) -> int:
        """Number of configured TURN servers."""
        return len(self.turn_servers)


@dataclass
class ServerCredentials:
    """A username and password the server accepts, with its allocation quota."""

    username: Optional[str] = None
    password: Optional[str] = None
    allocations_quota: int = 0


@dataclass
class ServerConfig:
    """Settings for an ICE (STUN/TURN) server."""

    credentials: list[ServerCredentials] = field(default_factory=list)
    max_allocations: int = 0
    max_peers: int = 0
    bind_address: Optional[str] = None
    external_address: Optional[str] = None
    port: int = 0
    relay_port_range_begin: int = 0
    relay_port_range_end: int = 0
    realm: Optional[str] = None

    def __post_init__(self) -> None:
        _check_port("port", self.port)
        _check_port("relay_port_range_begin", self.relay_port_range_begin)
        _check_port("relay_port_range_end", self.relay_port_range_end)

    @property
    def credentials_count(self) -> int:
        """Number of configured credentials."""
        return len(self.credentials)