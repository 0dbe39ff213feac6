import pytest

from liframe.proto import ServerInfo, ServerState, ServerType
from liframe.registry import MasterRegistry, OnlineCounter, ServerRegistry


def make_registry():
    registry = ServerRegistry()
    registry.update(
        {
            "a": ServerInfo(id="a", name="login-a", ip="10.0.0.1", port=9000,
                            server_type=ServerType.LOGIN, online_cnt=50, proxy_name="p1"),
            "b": ServerInfo(id="b", name="login-b", ip="10.0.0.2", port=9001,
                            server_type=ServerType.LOGIN, online_cnt=5, proxy_name="p2"),
            "c": ServerInfo(id="c", name="login-c", ip="10.0.0.3", port=9002,
                            server_type=ServerType.LOGIN, online_cnt=1,
                            state=ServerState.DEAD, proxy_name="p3"),
            "g": ServerInfo(id="g", name="game-g", ip="10.0.0.4", port=9003,
                            server_type=ServerType.GAME, online_cnt=0, proxy_name="p4"),
            "h": ServerInfo(id="h", name="game-h", server_type=ServerType.GAME,
                            state=ServerState.DEAD, proxy_name="p5"),
        }
    )
    return registry


def test_distribute_picks_least_loaded_live_server():
    assert make_registry().distribute(ServerType.LOGIN).id == "b"


def test_distribute_without_candidates_raises():
    with pytest.raises(LookupError, match="not found server"):
        make_registry().distribute(ServerType.WORLD)


def test_game_servers_only_live_games():
    games = make_registry().game_servers()
    assert list(games) == ["g"]
    assert games["g"].name == "game-g"
    assert games["g"].proxy_name == "p4"


def test_has_server():
    registry = make_registry()
    assert registry.has_server("a")
    assert not registry.has_server("zz")


def test_proxy_address():
    registry = make_registry()
    assert registry.proxy_address("p2") == "10.0.0.2:9001"
    with pytest.raises(LookupError, match="not found proxy:nope"):
        registry.proxy_address("nope")


def test_server_map_is_a_copy():
    registry = make_registry()
    snapshot = registry.server_map()
    snapshot.clear()
    assert len(registry.server_map()) == 5


def test_online_counter_counts():
    counter = OnlineCounter()
    counter.inc()
    counter.inc()
    counter.dec()
    assert counter.count == 1
    counter.set(40)
    assert counter.count == 40


def test_online_counter_wraps_below_zero():
    counter = OnlineCounter()
    counter.dec()
    assert counter.count == 4294967295


def test_master_assigns_proxy_names_in_order():
    master = MasterRegistry()
    first = master.report(ServerInfo(id="s1"), "10.0.0.5:4000", now=100)
    second = master.report(ServerInfo(id="s2"), "10.0.0.6:4001", now=100)
    assert first.proxy_name == "0"
    assert second.proxy_name == "1"
    assert first.ip == "10.0.0.5"
    assert first.last_time == 100


def test_master_keeps_proxy_name_on_repeat_report():
    master = MasterRegistry()
    first = master.report(ServerInfo(id="s1", online_cnt=3), "10.0.0.5:4000", now=100)
    again = master.report(ServerInfo(id="s1", online_cnt=8), "10.0.0.7:4000", now=150)
    assert again.proxy_name == first.proxy_name
    assert master.server_map()["s1"].online_cnt == 8
    assert master.server_map()["s1"].ip == "10.0.0.7"


def test_master_ignores_malformed_address():
    master = MasterRegistry()
    assert master.report(ServerInfo(id="s1"), "nocolon", now=1) is None
    assert master.server_map() == {}


def test_live_check_marks_stale_servers_dead():
    master = MasterRegistry()
    master.report(ServerInfo(id="old"), "10.0.0.5:4000", now=100)
    master.report(ServerInfo(id="edge"), "10.0.0.6:4000", now=140)
    master.live_check(now=200)
    servers = master.server_map()
    assert servers["old"].state == ServerState.DEAD
    assert servers["edge"].state == ServerState.NORMAL