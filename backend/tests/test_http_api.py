import csv
import io

from conftest import color_question


def test_service_info(client):
    for path in ("/", "/test"):
        response = client.get(path)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "running"
        assert body["version"] == "1.0.0"
        assert "timestamp" in body


def test_global_health(client):
    body = client.get("/api/health").json()
    assert body["status"] == "ok"
    assert "activeRooms" in body
    assert "activeConnections" in body["websocket"]


def test_unknown_room_is_404(client):
    assert client.get("/api/rooms/NOPE99/health").status_code == 404
    assert client.get("/api/rooms/NOPE99/export").status_code == 404


def test_created_room_is_reachable(client):
    room_id = client.post("/api/rooms").json()["roomId"]
    body = client.get(f"/api/rooms/{room_id}/health").json()
    assert body["participants"] == 0
    assert body["questions"] == 0


def test_room_health_state_and_exports(client):
    url = "/api/ws/HTTP01"
    with client.websocket_connect(url) as host, client.websocket_connect(url) as player:
        host.receive_json()
        player.receive_json()
        host.send_json({"type": "identify", "name": "H", "isHost": True})
        host.receive_json()
        host.receive_json()
        player.receive_json()
        host.send_json({"type": "addQuestion", "question": color_question()})
        host.receive_json()
        player.receive_json()
        player.send_json({"type": "identify", "name": "Ana", "isHost": False})
        player_id = player.receive_json()["participantId"]
        player.receive_json()
        host.receive_json()
        host.send_json({"type": "startQuiz"})
        host.receive_json()
        player.receive_json()
        player.send_json({"type": "submitAnswer", "answer": {"questionId": "q1", "answers": ["Blue"]}})
        player.receive_json()
        host.receive_json()

        health = client.get("/api/rooms/http01/health").json()
        assert health["status"] == "ok"
        assert health["participants"] == 1
        assert health["questions"] == 1

        state = client.get("/api/rooms/HTTP01/state").json()
        assert state["answers"] == {"q1": {player_id: ["Blue"]}}

        exported = client.get("/api/rooms/HTTP01/export", params={"format": "json"})
        assert exported.headers["content-type"].startswith("application/json")
        data = exported.json()
        assert data["questions"][0]["statistics"]["optionCounts"] == {"Red": 0, "Blue": 1}
        assert data["quizSummary"]["totalAnswers"] == 1

        exported_csv = client.get("/api/rooms/HTTP01/export", params={"format": "csv"})
        assert "attachment" in exported_csv.headers["content-disposition"]
        rows = [row for row in csv.reader(io.StringIO(exported_csv.text)) if row and not row[0].startswith("#")]
        assert rows[1] == ["q1", "1", "Color?", "single-choice", player_id, "Ana", "Blue"]

        exported_text = client.get("/api/rooms/HTTP01/export", params={"format": "text"})
        assert "QUIZ RESULTS REPORT" in exported_text.text

        assert client.get("/api/rooms/HTTP01/export", params={"format": "pdf"}).status_code == 422


def test_ws_stats_lists_rooms(client):
    with client.websocket_connect("/api/ws/STATS1") as ws:
        ws.receive_json()
        body = client.get("/api/ws-stats").json()
        rooms = {room["roomId"]: room for room in body["rooms"]}
        assert rooms["STATS1"]["connections"] == 1
        assert rooms["STATS1"]["hasHost"] is False
