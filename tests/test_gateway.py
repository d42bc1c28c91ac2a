from __future__ import annotations

import unittest
from unittest import mock

from housie.game import events
from housie.game.controller import GameController
from housie.game.gateway import GameGateway
from housie.game.models import GameStatus, RuleType
from housie.game.rooms import RoomHub
from housie.game.store import MemoryStore

from support import FakeConnection, make_game, make_rule


class GatewayTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = MemoryStore()
        self.store.add_game(make_game([make_rule(RuleType.TOP_LINE)], status=GameStatus.WAITING))
        self.hub = RoomHub()
        self.controller = GameController(self.store, self.store, self.store, self.hub, auto_play_interval=60)
        self.gateway = GameGateway(self.controller, self.hub)
        self.admin = FakeConnection("admin")
        self.player = FakeConnection("player")

    async def asyncTearDown(self) -> None:
        await self.controller.shutdown()

    async def send(self, connection, event, data) -> None:
        await self.gateway.handle(connection, {"event": event, "data": data})

    async def test_join_sends_state_and_announces(self) -> None:
        await self.send(self.player, events.JOIN_GAME, "game-1")
        await self.send(self.admin, events.JOIN_GAME, {"gameId": "game-1", "userId": "admin-1", "name": "Host"})

        state = self.player.payloads(events.GAME_STATE)[0]
        self.assertEqual(state["id"], "game-1")
        self.assertEqual(state["status"], "WAITING")
        self.assertFalse(state["autoPlaying"])
        self.assertEqual(self.player.payloads(events.PLAYER_JOINED), [{"userId": "admin-1", "name": "Host"}])
        self.assertEqual(self.admin.payloads(events.PLAYER_JOINED), [])
        self.assertEqual(len(self.admin.payloads(events.GAME_STATE)), 1)

    async def test_join_unknown_game_is_rejected_before_entering_a_room(self) -> None:
        await self.send(self.player, events.JOIN_GAME, "game-1")
        await self.send(self.admin, events.JOIN_GAME, {"gameId": "ghost", "userId": "admin-1"})

        self.assertEqual(self.admin.messages, [{"event": "error", "data": {"message": "Game not found"}}])
        self.assertEqual(self.hub.room_size("ghost"), 0)
        self.assertEqual(self.hub.connection_count, 1)
        self.assertEqual(self.player.payloads(events.PLAYER_JOINED), [])

    async def test_anonymous_join(self) -> None:
        await self.send(self.admin, events.JOIN_GAME, "game-1")
        await self.send(self.player, events.JOIN_GAME, "game-1")
        self.assertEqual(self.admin.payloads(events.PLAYER_JOINED), [{"userId": "Anonymous", "name": "A player"}])

    async def test_admin_flow_reaches_the_room(self) -> None:
        await self.send(self.player, events.JOIN_GAME, "game-1")
        await self.send(self.admin, events.START_GAME, {"gameId": "game-1"})
        await self.send(self.admin, events.ADMIN_CALL_NUMBER, {"gameId": "game-1", "number": 21})
        await self.send(self.admin, events.PAUSE_GAME, {"gameId": "game-1"})

        self.assertEqual(self.player.payloads(events.NUMBER_CALLED)[0]["number"], 21)
        self.assertEqual(
            self.player.payloads(events.GAME_STATUS_CHANGED),
            [{"status": "LIVE"}, {"status": "PAUSED"}],
        )
        self.assertEqual(self.admin.payloads(events.ERROR), [])

    async def test_errors_go_to_the_caller_only(self) -> None:
        await self.send(self.player, events.JOIN_GAME, "game-1")
        await self.send(self.admin, events.START_GAME, {"gameId": "game-1"})
        await self.send(self.admin, events.ADMIN_CALL_NUMBER, {"gameId": "game-1", "number": 5})
        before = list(self.player.messages)

        await self.send(self.admin, events.ADMIN_CALL_NUMBER, {"gameId": "game-1", "number": 5})
        await self.send(self.admin, events.ADMIN_CALL_NUMBER, {"gameId": "game-1", "number": 95})
        await self.send(self.admin, events.RESUME_GAME, {"gameId": "game-1"})
        await self.send(self.admin, events.START_GAME, {"gameId": "unknown"})

        errors = [p["message"] for p in self.admin.payloads(events.ERROR)]
        self.assertEqual(errors[0], "Number 5 already called")
        self.assertIn("out of range", errors[1])
        self.assertIn("Cannot resume", errors[2])
        self.assertEqual(errors[3], "Game not found")
        self.assertEqual(self.player.messages, before)

    async def test_malformed_event_gets_error(self) -> None:
        await self.gateway.handle(self.admin, {"event": "explode", "data": {}})
        await self.gateway.handle(self.admin, ["not", "an", "envelope"])
        errors = self.admin.payloads(events.ERROR)
        self.assertEqual(len(errors), 2)
        self.assertEqual(errors[0]["message"], "Unknown event: explode")

    async def test_unexpected_failure_is_reported_generically(self) -> None:
        with mock.patch.object(self.controller, "end", side_effect=RuntimeError("db down")):
            await self.send(self.admin, events.END_GAME, {"gameId": "game-1"})
        self.assertEqual(self.admin.payloads(events.ERROR), [{"message": "Failed to end game"}])

    async def test_leave_stops_room_messages(self) -> None:
        await self.send(self.player, events.JOIN_GAME, "game-1")
        await self.send(self.player, events.LEAVE_GAME, "game-1")
        await self.send(self.admin, events.START_GAME, {"gameId": "game-1"})
        self.assertEqual(self.player.payloads(events.GAME_STARTED), [])

    async def test_auto_play_events(self) -> None:
        await self.send(self.player, events.JOIN_GAME, "game-1")
        await self.send(self.admin, events.START_AUTO_PLAY, {"gameId": "game-1"})
        self.assertTrue(self.controller.is_auto_playing("game-1"))
        await self.send(self.admin, events.STOP_AUTO_PLAY, {"gameId": "game-1"})
        self.assertFalse(self.controller.is_auto_playing("game-1"))
        await self.send(self.admin, events.END_GAME, {"gameId": "game-1"})

        self.assertEqual(
            [e for e in self.player.events() if e.startswith("auto-play")],
            [events.AUTO_PLAY_STARTED, events.AUTO_PLAY_STOPPED],
        )
        self.assertEqual(self.player.payloads(events.GAME_CLOSED), [{"reason": "manual_end", "totalWinners": 0}])


if __name__ == "__main__":
    unittest.main()
