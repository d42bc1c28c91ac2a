"""Routes inbound channel events to the game controller.

This is the error boundary for client requests: engine errors become an
``error`` event sent to the requesting connection only and never reach the
rest of the room.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from housie.game import events
from housie.game.controller import GameController
from housie.game.errors import HousieError
from housie.game.rooms import Connection, RoomHub
from housie.utils.logger import get_logger

logger = get_logger(__name__)

Handler = Callable[[Connection, Any], Awaitable[None]]


class GameGateway:
    def __init__(self, controller: GameController, hub: RoomHub) -> None:
        self.controller = controller
        self.hub = hub
        self._handlers: Dict[str, Handler] = {
            events.JOIN_GAME: self._join_game,
            events.LEAVE_GAME: self._leave_game,
            events.START_GAME: self._start_game,
            events.START_AUTO_PLAY: self._start_auto_play,
            events.STOP_AUTO_PLAY: self._stop_auto_play,
            events.PAUSE_GAME: self._pause_game,
            events.RESUME_GAME: self._resume_game,
            events.END_GAME: self._end_game,
            events.ADMIN_CALL_NUMBER: self._admin_call_number,
        }

    async def handle(self, connection: Connection, message: Any) -> None:
        """Process one inbound envelope from ``connection``."""
        try:
            name, payload = events.parse_inbound(message)
        except HousieError as exc:
            logger.warning("Rejected inbound message: %s", exc.message)
            await self.reply_error(connection, exc.message)
            return

        logger.debug("Handling %s for game-%s", name, payload.gameId)
        try:
            await self._handlers[name](connection, payload)
        except HousieError as exc:
            logger.warning("%s failed for game-%s: %s", name, payload.gameId, exc.message)
            await self.reply_error(connection, exc.message)
        except Exception:
            logger.exception("Unexpected error handling %s for game-%s", name, payload.gameId)
            await self.reply_error(connection, f"Failed to {name.replace('-', ' ')}")

    async def reply_error(self, connection: Connection, message: str) -> None:
        await self.hub.send(connection, events.ERROR, events.ErrorMessage(message=message))

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------
    async def _join_game(self, connection: Connection, payload: events.JoinGame) -> None:
        # raises GameNotFound before the caller is placed in a room
        state = await self.controller.snapshot(payload.gameId)
        await self.hub.join(payload.gameId, connection)
        await self.hub.publish(
            payload.gameId,
            events.PLAYER_JOINED,
            events.PlayerJoined(userId=payload.userId or "Anonymous", name=payload.name or "A player"),
            exclude=connection,
        )
        await self.hub.send(connection, events.GAME_STATE, state)

    async def _leave_game(self, connection: Connection, payload: events.GameRef) -> None:
        await self.hub.leave(payload.gameId, connection)

    async def _start_game(self, connection: Connection, payload: events.GameRef) -> None:
        await self.controller.start(payload.gameId)

    async def _start_auto_play(self, connection: Connection, payload: events.GameRef) -> None:
        await self.controller.start_auto_play(payload.gameId)

    async def _stop_auto_play(self, connection: Connection, payload: events.GameRef) -> None:
        await self.controller.stop_auto_play(payload.gameId)

    async def _pause_game(self, connection: Connection, payload: events.GameRef) -> None:
        await self.controller.pause(payload.gameId)

    async def _resume_game(self, connection: Connection, payload: events.GameRef) -> None:
        await self.controller.resume(payload.gameId)

    async def _end_game(self, connection: Connection, payload: events.GameRef) -> None:
        await self.controller.end(payload.gameId)

    async def _admin_call_number(self, connection: Connection, payload: events.CallNumber) -> None:
        await self.controller.manual_draw(payload.gameId, payload.number)
