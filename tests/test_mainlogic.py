import json
import random

import pytest

from liframe.gamestate import SceneData, SceneListAck, UserStatus
from liframe.mainlogic import GameLogic, GameService
from liframe.proto import Code


class FakeConn:
    def __init__(self):
        self.props = {}
        self.pushes = []
        self.calls = []

    def get_property(self, key):
        return self.props[key]

    def set_property(self, key, value):
        self.props[key] = value

    def remove_property(self, key):
        self.props.pop(key, None)

    def rpc_push(self, name, data):
        self.pushes.append((name, data))

    def rpc_call(self, name, data):
        self.calls.append((name, data))


class RecordingGame:
    def __init__(self):
        self.events = []

    def user_offline(self, user_id):
        self.events.append(("offline", user_id))
        return True

    def user_online(self, user_id):
        self.events.append(("online", user_id))

    def user_logout(self, user_id):
        self.events.append(("logout", user_id))
        return True

    def shut_down(self):
        self.events.append(("shutdown",))


@pytest.fixture
def logic():
    return GameLogic(rng=random.Random(1))


def test_scene_list(logic):
    ack = logic.game_message(1, "sceneListReq", b"", None)
    assert ack == SceneListAck(scene_id=[0, 1], scene_name=["场景1", "场景2"])


def test_enter_unknown_scene(logic):
    ok, ack = logic.enter_scene(1, 9, None)
    assert ok is False
    assert ack.code == Code.ENTER_SCENE_ERROR


def test_enter_scene_marks_user_online(logic):
    conn = FakeConn()
    ok, ack = logic.enter_scene(1, 0, conn)
    assert ok is True
    assert ack.code == Code.SUCCESS
    assert ack.scene_name == "场景1"
    state = logic.user_manager.lookup(1)
    assert (state.status, state.scene_id, state.conn) == (UserStatus.ONLINE, 0, conn)


def test_switching_scenes_leaves_the_old_one(logic):
    logic.enter_scene(1, 0, FakeConn())
    logic.enter_scene(1, 1, FakeConn())
    assert logic.scenes[0].find_user(1) is None
    assert logic.scenes[1].find_user(1) is not None
    assert logic.user_manager.lookup(1).scene_id == 1


def test_exit_scene(logic):
    logic.enter_scene(1, 0, FakeConn())
    assert logic.exit_scene(1, 1, None).code == Code.EXIT_SCENE_ERROR
    assert logic.exit_scene(1, 0, None).code == Code.SUCCESS
    assert logic.user_manager.lookup(1) is None
    assert logic.exit_scene(1, 0, None).code == Code.EXIT_SCENE_ERROR


def test_enter_scene_by_message(logic):
    ack = logic.game_message(2, "enterSceneReq", b'{"sceneId":1}', FakeConn())
    assert ack.code == Code.SUCCESS
    assert ack.scene_id == 1


def test_scene_messages_routed(logic):
    logic.enter_scene(1, 0, FakeConn())
    data = logic.game_message(1, "sceneReq", b"", None)
    assert isinstance(data, SceneData)
    assert set(data.players) == {1}


def test_message_for_user_not_in_scene(logic):
    assert logic.game_message(5, "sceneReq", b"", None) is None


def test_user_offline_leaves(logic):
    logic.enter_scene(1, 0, FakeConn())
    assert logic.user_offline(1) is True
    assert logic.user_manager.lookup(1) is None
    assert logic.scenes[0].find_user(1) is None


def test_enter_game_sets_user_id(logic):
    service = GameService(logic)
    conn = FakeConn()
    reply = service.handle("enterGameReq", b'{"UserId":8}', conn)
    assert json.loads(reply) == {"Code": 0}
    assert conn.props["userId"] == 8


def test_enter_game_bad_body(logic):
    service = GameService(logic)
    conn = FakeConn()
    reply = service.handle("enterGameReq", b"not json", conn)
    assert json.loads(reply)["Code"] == Code.ILLEGAL
    assert "userId" not in conn.props


def test_heartbeat_stamps_server_time(logic):
    service = GameService(logic, clock=lambda: 12.5)
    reply = json.loads(service.handle("heartBeatReq", b'{"clientTimeStamp":3}', FakeConn()))
    assert reply == {"clientTimeStamp": 3, "serverTimeStamp": 12500}


def test_unauthorised_request(logic):
    service = GameService(logic)
    conn = FakeConn()
    assert service.handle("sceneReq", b"", conn) is None
    assert conn.calls == [("authError", None)]


def test_authorised_request_without_reply(logic):
    service = GameService(logic)
    conn = FakeConn()
    conn.props["userId"] = 4
    assert service.handle("sceneReq", b"", conn) == b"null"


def test_logout_removes_user():
    game = RecordingGame()
    service = GameService(game)
    conn = FakeConn()
    conn.props["userId"] = 6
    assert service.handle("logoutReq", b"", conn) == b""
    assert "userId" not in conn.props
    assert game.events == [("logout", 6)]


def test_shut_down_once_and_stop_handling():
    game = RecordingGame()
    service = GameService()
    service.set_game(game)
    service.shut_down()
    service.shut_down()
    assert game.events == [("shutdown",)]
    assert service.is_shut_down is True
    assert service.handle("heartBeatReq", b"{}", FakeConn()) is None


def test_user_on_or_off():
    game = RecordingGame()
    service = GameService(game)
    reply = service.user_on_or_off(b'{"Type":1,"UserId":5}')
    assert json.loads(reply) == {"Type": 1, "UserId": 5}
    service.user_on_or_off(b'{"Type":0,"UserId":5}')
    assert game.events == [("offline", 5), ("online", 5)]


def test_handle_without_game():
    with pytest.raises(RuntimeError):
        GameService().handle("sceneReq", b"", FakeConn())