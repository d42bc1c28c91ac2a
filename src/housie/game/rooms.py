"""Pub/sub rooms keyed by game id."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any, Dict, List, Optional, Protocol, Set

from housie.game.events import OutboundPayload, envelope
from housie.utils.logger import get_logger

logger = get_logger(__name__)


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


class RoomHub:
    """Tracks connections and their rooms and fans events out to them.

    Messages for a room are sent in publish order; a connection whose send
    fails is dropped everywhere and the fan-out carries on.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._connections: Set[Connection] = set()
        self._rooms: Dict[str, Set[Connection]] = defaultdict(set)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def room_size(self, game_id: str) -> int:
        return len(self._rooms.get(game_id, ()))

    async def connect(self, connection: Connection) -> None:
        async with self._lock:
            self._connections.add(connection)
        logger.info("Client connected (%s total)", len(self._connections))

    async def disconnect(self, connection: Connection) -> None:
        async with self._lock:
            self._drop(connection)
        logger.info("Client disconnected (%s remaining)", len(self._connections))

    async def join(self, game_id: str, connection: Connection) -> None:
        async with self._lock:
            self._connections.add(connection)
            self._rooms[game_id].add(connection)
        logger.info("Client joined game-%s (%s in room)", game_id, self.room_size(game_id))

    async def leave(self, game_id: str, connection: Connection) -> None:
        async with self._lock:
            members = self._rooms.get(game_id)
            if members is not None:
                members.discard(connection)
                if not members:
                    del self._rooms[game_id]
        logger.info("Client left game-%s", game_id)

    async def publish(
        self,
        game_id: str,
        event: str,
        data: OutboundPayload | Dict[str, Any] | None,
        *,
        exclude: Optional[Connection] = None,
    ) -> int:
        """Send ``event`` to every member of the room; returns deliveries."""
        async with self._lock:
            targets = [c for c in self._rooms.get(game_id, ()) if c is not exclude]
        delivered = await self._fan_out(targets, envelope(event, data))
        logger.debug("Published %s to game-%s (%s clients)", event, game_id, delivered)
        return delivered

    async def broadcast_all(self, event: str, data: OutboundPayload | Dict[str, Any] | None) -> int:
        async with self._lock:
            targets = list(self._connections)
        return await self._fan_out(targets, envelope(event, data))

    async def send(self, connection: Connection, event: str, data: OutboundPayload | Dict[str, Any] | None) -> bool:
        try:
            await connection.send_json(envelope(event, data))
            return True
        except Exception as exc:
            logger.debug("Send to client failed: %s", exc)
            async with self._lock:
                self._drop(connection)
            return False

    async def _fan_out(self, targets: List[Connection], message: Dict[str, Any]) -> int:
        delivered = 0
        failed: List[Connection] = []
        for connection in targets:
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as exc:
                logger.debug("WebSocket send failed: %s", exc)
                failed.append(connection)
        if failed:
            async with self._lock:
                for connection in failed:
                    self._drop(connection)
        return delivered

    def _drop(self, connection: Connection) -> None:
        self._connections.discard(connection)
        for game_id in [g for g, members in self._rooms.items() if connection in members]:
            self._rooms[game_id].discard(connection)
            if not self._rooms[game_id]:
                del self._rooms[game_id]
