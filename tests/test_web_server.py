from __future__ import annotations

import unittest

from fastapi.testclient import TestClient

from housie.game.controller import GameController
from housie.game.models import GameStatus, RuleType
from housie.game.rooms import RoomHub
from housie.game.store import MemoryStore
from housie.web_server import HousieWebServer

from support import TICKET_A, make_game, make_rule, make_ticket


class WebServerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = MemoryStore()
        self.store.add_game(make_game([make_rule(RuleType.TOP_LINE)], status=GameStatus.WAITING))
        self.store.add_game(make_game([], game_id="finished", status=GameStatus.CLOSED))
        self.store.add_ticket(make_ticket(1, TICKET_A))
        self.hub = RoomHub()
        self.controller = GameController(self.store, self.store, self.store, self.hub, auto_play_interval=60)
        server = HousieWebServer({"server": {"cors_origins": "http://localhost:3000"}}, self.controller, self.hub)
        self.client = TestClient(server.app)
        self.client.__enter__()
        self.addCleanup(self.client.__exit__, None, None, None)

    def test_health(self) -> None:
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "ok")
        self.assertEqual(body["components"]["controller"]["auto_play_interval"], 60)

    def test_status(self) -> None:
        body = self.client.get("/api/status").json()
        self.assertEqual(body["websocket_connections"], 0)

    def test_get_game(self) -> None:
        body = self.client.get("/api/games/game-1").json()
        self.assertEqual(body["status"], "WAITING")
        self.assertEqual(body["drawnNumbers"], [])
        self.assertEqual(self.client.get("/api/games/nope").status_code, 404)

    def test_start_route(self) -> None:
        first = self.client.post("/api/games/game-1/start")
        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.json()["message"], "Game started successfully")
        self.assertEqual(first.json()["game"]["status"], "LIVE")

        again = self.client.post("/api/games/game-1/start")
        self.assertEqual(again.json()["message"], "Game is already live")

        self.assertEqual(self.client.post("/api/games/nope/start").status_code, 404)
        closed = self.client.post("/api/games/finished/start")
        self.assertEqual(closed.status_code, 409)
        self.assertIn("CLOSED", closed.json()["detail"])

    def test_websocket_session(self) -> None:
        with self.client.websocket_connect("/ws/game") as ws:
            ws.send_json({"event": "join-game", "data": "game-1"})
            state = ws.receive_json()
            self.assertEqual(state["event"], "game-state")
            self.assertEqual(state["data"]["id"], "game-1")

            ws.send_json({"event": "start-game", "data": {"gameId": "game-1"}})
            self.assertEqual(ws.receive_json()["event"], "game-started")
            self.assertEqual(ws.receive_json()["event"], "game-notification")
            self.assertEqual(ws.receive_json()["data"], {"status": "LIVE"})

            ws.send_json({"event": "admin-call-number", "data": {"gameId": "game-1", "number": 43}})
            called = ws.receive_json()
            self.assertEqual(called["event"], "number-called")
            self.assertEqual(called["data"]["drawnNumbers"], [43])
            self.assertTrue(called["data"]["isManual"])

            ws.send_json({"event": "admin-call-number", "data": {"gameId": "game-1", "number": 43}})
            self.assertEqual(ws.receive_json(), {"event": "error", "data": {"message": "Number 43 already called"}})

            ws.send_text("{not json")
            self.assertEqual(ws.receive_json(), {"event": "error", "data": {"message": "Message is not valid JSON"}})

    def test_binary_frames(self) -> None:
        with self.client.websocket_connect("/ws/game") as ws:
            ws.send_bytes(b'{"event": "join-game", "data": "game-1"}')
            state = ws.receive_json()
            self.assertEqual(state["event"], "game-state")
            self.assertEqual(state["data"]["id"], "game-1")

            ws.send_bytes(b"\x80\x81\x82")
            self.assertEqual(ws.receive_json(), {"event": "error", "data": {"message": "Message is not valid JSON"}})

            ws.send_bytes(b'{"event": "join-game", "data": "unknown"}')
            self.assertEqual(ws.receive_json(), {"event": "error", "data": {"message": "Game not found"}})

            ws.send_json({"event": "pause-game", "data": {"gameId": "game-1"}})
            self.assertEqual(ws.receive_json()["data"]["message"], "Cannot pause a game that is WAITING")


if __name__ == "__main__":
    unittest.main()
