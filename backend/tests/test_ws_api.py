from concurrent.futures import ThreadPoolExecutor

import pytest
from starlette.websockets import WebSocketDisconnect

from conftest import color_question

DEFAULT_STATE = {
    "questions": [],
    "participants": [],
    "currentQuestionIndex": -1,
    "isQuizStarted": False,
    "isQuizFinished": False,
    "answers": {},
}

HOST_ONLY_ERROR = {
    "type": "error",
    "code": "HOST_ONLY",
    "message": "Only the host can perform this action.",
}


def receive_within(ws, timeout=5.0):
    """Read one JSON frame, failing instead of blocking forever."""
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        return executor.submit(ws.receive_json).result(timeout=timeout)
    finally:
        executor.shutdown(wait=False)


def identify(ws, name, is_host):
    ws.send_json({"type": "identify", "name": name, "isHost": is_host})
    identified = ws.receive_json()
    assert identified["type"] == "identified"
    sync = ws.receive_json()
    assert sync["type"] == "sync"
    return identified, sync["state"]


def test_fresh_connection_gets_snapshot(client):
    with client.websocket_connect("/api/ws/FRESH1") as ws:
        assert ws.receive_json() == {"type": "sync", "state": DEFAULT_STATE}


def test_full_quiz_flow(client):
    url = "/api/ws/QUIZ01"
    with client.websocket_connect(url) as host:
        host.receive_json()
        identified, _ = identify(host, "H", True)
        assert identified["isHost"] is True

        host.send_json({"type": "addQuestion", "question": color_question()})
        state = host.receive_json()["state"]
        assert [q["id"] for q in state["questions"]] == ["q1"]

        with client.websocket_connect(url) as player:
            late_join = player.receive_json()
            assert late_join["state"]["questions"] == state["questions"]

            identified, state = identify(player, "Ana", False)
            player_id = identified["participantId"]
            assert identified["isHost"] is False
            assert state["participants"] == [{"id": player_id, "name": "Ana"}]
            assert host.receive_json()["state"] == state

            host.send_json({"type": "startQuiz"})
            state = host.receive_json()["state"]
            assert state["isQuizStarted"] is True
            assert state["currentQuestionIndex"] == 0
            assert player.receive_json()["state"] == state

            player.send_json({"type": "submitAnswer", "answer": {"questionId": "q1", "answers": ["Red"]}})
            state = player.receive_json()["state"]
            assert state["answers"] == {"q1": {player_id: ["Red"]}}
            assert host.receive_json()["state"] == state

            player.send_json({"type": "finishQuiz"})
            assert player.receive_json() == HOST_ONLY_ERROR

            host.send_json({"type": "finishQuiz"})
            state = host.receive_json()["state"]
            assert state["isQuizFinished"] is True
            assert player.receive_json()["state"] == state

        state = receive_within(host)["state"]
        assert state["participants"] == []
        assert state["answers"] == {"q1": {player_id: ["Red"]}}


def test_malformed_message_only_reaches_sender(client):
    url = "/api/ws/BAD001"
    with client.websocket_connect(url) as other:
        other.receive_json()
        with client.websocket_connect(url) as sender:
            sender.receive_json()
            sender.send_text("not json")
            assert sender.receive_json() == {
                "type": "error",
                "code": "INVALID_MESSAGE",
                "message": "Invalid message",
            }

            # The next frame "other" sees is its own error, so nothing was broadcast.
            other.send_json({"type": "startQuiz"})
            assert other.receive_json() == HOST_ONLY_ERROR


def test_host_disconnect_frees_role(client):
    url = "/api/ws/HOST01"
    with client.websocket_connect(url) as player:
        player.receive_json()
        with client.websocket_connect(url) as host:
            host.receive_json()
            identify(host, "H", True)
            player.receive_json()

        assert receive_within(player) == {"type": "hostDisconnected"}
        state = receive_within(player)["state"]
        assert state["participants"] == []

        identified, _ = identify(player, "New host", True)
        assert identified["isHost"] is True
        player.send_json({"type": "startQuiz"})
        assert player.receive_json()["state"]["isQuizStarted"] is True


def test_reconnect_with_same_connection_id_hands_off(client):
    url = "/parties/main/HAND01?_pk=player-1"
    with client.websocket_connect(url) as first:
        first.receive_json()
        identified, _ = identify(first, "Ana", False)
        assert identified["participantId"] == "player-1"

        with client.websocket_connect(url) as second:
            state = second.receive_json()["state"]
            assert state["participants"] == [{"id": "player-1", "name": "Ana"}]

            with pytest.raises(WebSocketDisconnect) as exc_info:
                first.receive_json()
            assert exc_info.value.code == 4002

            second.send_json({"type": "identify", "name": "Ana B", "isHost": False})
            assert second.receive_json()["participantId"] == "player-1"
            state = second.receive_json()["state"]
            assert state["participants"] == [{"id": "player-1", "name": "Ana B"}]


def test_room_id_without_alphanumerics_is_rejected(client):
    with client.websocket_connect("/ws/---") as ws:
        assert ws.receive_json()["code"] == "INVALID_ROOM_ID"
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()
        assert exc_info.value.code == 1008
