import pytest

from icekit.config import (
    AgentConfig,
    ConcurrencyMode,
    ErrorCode,
    LogLevel,
    ServerConfig,
    ServerCredentials,
    State,
    TurnServer,
)


def test_error_codes_match_documented_values():
    assert ErrorCode(0) is ErrorCode.SUCCESS
    assert ErrorCode(-1) is ErrorCode.INVALID
    assert ErrorCode(-2) is ErrorCode.FAILED
    assert ErrorCode(-3) is ErrorCode.NOT_AVAIL
    with pytest.raises(ValueError):
        ErrorCode(-4)


def test_state_order():
    assert [State(i).name for i in range(6)] == [
        "DISCONNECTED",
        "GATHERING",
        "CONNECTING",
        "CONNECTED",
        "COMPLETED",
        "FAILED",
    ]
    with pytest.raises(ValueError):
        State(6)


def test_log_levels_ordered_by_severity():
    levels = [LogLevel(i) for i in range(7)]
    assert [level.name for level in levels] == [
        "VERBOSE",
        "DEBUG",
        "INFO",
        "WARN",
        "ERROR",
        "FATAL",
        "NONE",
    ]
    assert levels == sorted(levels)


def test_agent_config_defaults_are_zero():
    config = AgentConfig()
    assert config.concurrency_mode is ConcurrencyMode.POLL
    assert config.stun_server_host is None
    assert config.stun_server_port == 0
    assert config.turn_servers_count == 0
    assert (config.local_port_range_begin, config.local_port_range_end) == (0, 0)
    assert config.cb_recv is None


def test_agent_config_accepts_mode_value():
    config = AgentConfig(concurrency_mode=1)
    assert config.concurrency_mode is ConcurrencyMode.MUX


def test_agent_config_turn_servers_count():
    password = "password"
    servers = [TurnServer(host="turn.example.com", username="user", password=password, port=3478)]
    config = AgentConfig(turn_servers=servers)
    assert config.turn_servers_count == 1
    assert config.turn_servers[0].host == "turn.example.com"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"stun_server_port": 70000},
        {"local_port_range_begin": -1},
        {"local_port_range_end": 65536},
    ],
)
def test_agent_config_rejects_bad_ports(kwargs):
    with pytest.raises(ValueError):
        AgentConfig(**kwargs)


def test_agent_config_rejects_bad_mode():
    with pytest.raises(ValueError):
        AgentConfig(concurrency_mode=9)


def test_turn_server_rejects_bad_port():
    with pytest.raises(ValueError):
        TurnServer(port=65536)


def test_server_config_defaults_and_count():
    password = "password"
    config = ServerConfig(credentials=[ServerCredentials(username="user", password=password)])
    assert config.credentials_count == 1
    assert config.credentials[0].allocations_quota == 0
    assert config.port == 0
    assert config.realm is None


def test_server_config_rejects_bad_relay_port():
    with pytest.raises(ValueError):
        ServerConfig(relay_port_range_end=100000)