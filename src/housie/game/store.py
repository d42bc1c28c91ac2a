"""Game record, ticket and user collaborators.

The engine talks to storage only through the three protocols below. MemoryStore
implements all of them in-process; documents are copied on the way in and out
so callers never hold a live reference to stored state.
"""

from __future__ import annotations

import copy
from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Protocol

from housie.game.errors import PersistenceFailure
from housie.game.models import Game, Ticket, TicketStatus
from housie.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class UserProfile:
    user_id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""


@dataclass
class DisplayName:
    name: str
    email: str = ""


def fallback_display_name(user_id: str) -> DisplayName:
    return DisplayName(name=f"User {user_id[-6:]}", email="")


class GameRepository(Protocol):
    async def find_by_id(self, game_id: str) -> Optional[Game]: ...

    async def update_fields(self, game_id: str, **fields: Any) -> Optional[Game]: ...

    async def save(self, game: Game) -> None: ...


class TicketRepository(Protocol):
    async def find_active_by_game(self, game_id: str) -> List[Ticket]: ...

    async def distinct_holders(self, game_id: str) -> List[str]: ...


class UserDirectory(Protocol):
    async def find_display_name(self, user_id: str) -> Optional[DisplayName]: ...


class MemoryStore:
    """Volatile document store for games, tickets and user profiles."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._listeners: Dict[str, List[Callable[[dict | None], None]]] = defaultdict(list)
        self._games: Dict[str, Game] = {}
        self._tickets: Dict[str, Ticket] = {}
        self._users: Dict[str, UserProfile] = {}
        self._fail_saves = 0
        self._fail_loads = 0

    # ------------------------------------------------------------------
    # Listener management
    # ------------------------------------------------------------------
    def add_listener(self, event_type: str, callback: Callable[[dict | None], None]) -> None:
        with self._lock:
            self._listeners[event_type].append(callback)
            logger.debug(f"[MemoryStore] Adding listener for event_type={event_type}, callback={callback}")

    def _emit(self, event_type: str, payload: dict | None) -> None:
        listeners = list(self._listeners.get(event_type, []))
        for callback in listeners:
            try:
                callback(payload)
            except Exception as exc:  # pragma: no cover
                logger.error("Listener for %s failed: %s", event_type, exc)

    # ------------------------------------------------------------------
    # Fault injection
    # ------------------------------------------------------------------
    def fail_next_save(self, count: int = 1) -> None:
        self._fail_saves = count

    def fail_next_load(self, count: int = 1) -> None:
        self._fail_loads = count

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------
    def add_game(self, game: Game) -> Game:
        with self._lock:
            self._games[game.id] = copy.deepcopy(game)
        logger.info(f"[MemoryStore] add_game id={game.id} status={game.status.value}")
        return game

    def add_ticket(self, ticket: Ticket) -> Ticket:
        with self._lock:
            self._tickets[ticket.id] = copy.deepcopy(ticket)
        return ticket

    def add_user(self, profile: UserProfile) -> UserProfile:
        with self._lock:
            self._users[profile.user_id] = copy.deepcopy(profile)
        return profile

    def set_ticket_status(self, ticket_id: str, status: TicketStatus) -> None:
        """Admin approval workflow; the engine itself never calls this."""
        with self._lock:
            self._tickets[ticket_id].status = status

    # ------------------------------------------------------------------
    # GameRepository
    # ------------------------------------------------------------------
    async def find_by_id(self, game_id: str) -> Optional[Game]:
        with self._lock:
            if self._fail_loads:
                self._fail_loads -= 1
                raise PersistenceFailure(f"Failed to load game {game_id}")
            game = self._games.get(game_id)
            return copy.deepcopy(game) if game else None

    async def update_fields(self, game_id: str, **fields: Any) -> Optional[Game]:
        with self._lock:
            if self._fail_saves:
                self._fail_saves -= 1
                raise PersistenceFailure(f"Failed to update game {game_id}")
            game = self._games.get(game_id)
            if game is None:
                return None
            for name, value in fields.items():
                if not hasattr(game, name):
                    raise AttributeError(f"Game has no field {name!r}")
                setattr(game, name, copy.deepcopy(value))
            snapshot = copy.deepcopy(game)
        self._emit("game_update", snapshot.to_dict())
        return snapshot

    async def save(self, game: Game) -> None:
        with self._lock:
            if self._fail_saves:
                self._fail_saves -= 1
                raise PersistenceFailure(f"Failed to save game {game.id}")
            self._games[game.id] = copy.deepcopy(game)
        self._emit("game_update", game.to_dict())

    # ------------------------------------------------------------------
    # TicketRepository
    # ------------------------------------------------------------------
    async def find_active_by_game(self, game_id: str) -> List[Ticket]:
        with self._lock:
            tickets = [
                copy.deepcopy(t)
                for t in self._tickets.values()
                if t.game_id == game_id and t.status == TicketStatus.ACTIVE
            ]
        return sorted(tickets, key=lambda t: t.ticket_number)

    async def distinct_holders(self, game_id: str) -> List[str]:
        holders: List[str] = []
        for ticket in await self.find_active_by_game(game_id):
            if ticket.user_id not in holders:
                holders.append(ticket.user_id)
        return holders

    def tickets_for_game(self, game_id: str) -> List[Ticket]:
        with self._lock:
            return sorted(
                (copy.deepcopy(t) for t in self._tickets.values() if t.game_id == game_id),
                key=lambda t: t.ticket_number,
            )

    # ------------------------------------------------------------------
    # UserDirectory
    # ------------------------------------------------------------------
    async def find_display_name(self, user_id: str) -> Optional[DisplayName]:
        with self._lock:
            profile = self._users.get(user_id)
        if profile is None:
            return None
        full_name = f"{profile.first_name} {profile.last_name}".strip()
        if not full_name:
            return None
        return DisplayName(name=full_name, email=profile.email)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------
    def counts(self) -> Dict[str, int]:
        with self._lock:
            return {"games": len(self._games), "tickets": len(self._tickets), "users": len(self._users)}

