"""Wire schemas for the per-game real-time channel.

Every message in either direction is an envelope ``{"event": name, "data": payload}``.
Inbound payloads are validated against a fixed model per event name; outbound
payloads are built through the models below so each event always has the
same shape.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from housie.game.errors import MalformedEvent


# ----------------------------------------------------------------------
# Inbound
# ----------------------------------------------------------------------
class GameRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    gameId: str

    @field_validator("gameId")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("gameId must not be empty")
        return value.strip()


class CallNumber(GameRef):
    number: int


class JoinGame(GameRef):
    userId: Optional[str] = None
    name: Optional[str] = None


JOIN_GAME = "join-game"
LEAVE_GAME = "leave-game"
START_GAME = "start-game"
START_AUTO_PLAY = "start-auto-play"
STOP_AUTO_PLAY = "stop-auto-play"
PAUSE_GAME = "pause-game"
RESUME_GAME = "resume-game"
END_GAME = "end-game"
ADMIN_CALL_NUMBER = "admin-call-number"

INBOUND_EVENTS: Dict[str, Type[GameRef]] = {
    JOIN_GAME: JoinGame,
    LEAVE_GAME: GameRef,
    START_GAME: GameRef,
    START_AUTO_PLAY: GameRef,
    STOP_AUTO_PLAY: GameRef,
    PAUSE_GAME: GameRef,
    RESUME_GAME: GameRef,
    END_GAME: GameRef,
    ADMIN_CALL_NUMBER: CallNumber,
}


def parse_inbound(message: Any) -> Tuple[str, GameRef]:
    """Validate an inbound envelope and return ``(event, payload)``."""
    if not isinstance(message, dict):
        raise MalformedEvent("Message must be an object with 'event' and 'data'")
    name = message.get("event")
    model = INBOUND_EVENTS.get(name) if isinstance(name, str) else None
    if model is None:
        raise MalformedEvent(f"Unknown event: {name}")

    data = message.get("data")
    # room membership events accept a bare game id
    if name in (JOIN_GAME, LEAVE_GAME) and isinstance(data, str):
        data = {"gameId": data}
    if not isinstance(data, dict):
        raise MalformedEvent(f"Invalid payload for {name}")
    try:
        return name, model.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise MalformedEvent(f"Invalid payload for {name}: {fields}") from exc


# ----------------------------------------------------------------------
# Outbound
# ----------------------------------------------------------------------
NUMBER_CALLED = "number-called"
GAME_STATUS_CHANGED = "game-status-changed"
AUTO_PLAY_STARTED = "auto-play-started"
AUTO_PLAY_STOPPED = "auto-play-stopped"
WINNER_DETECTED = "winner-detected"
GAME_CLOSED = "game-closed"
PLAYER_JOINED = "player-joined"
GAME_STARTED = "game-started"
GAME_NOTIFICATION = "game-notification"
GAME_STATE = "game-state"
ERROR = "error"


class NumberCalled(BaseModel):
    number: int
    drawnNumbers: List[int]
    timestamp: int
    isManual: Optional[bool] = None


class GameStatusChanged(BaseModel):
    status: str


class AutoPlayChanged(BaseModel):
    gameId: str


class WinnerDetected(BaseModel):
    winnerName: str
    winnerEmail: str
    winnerId: str
    ticketId: str
    ticketNumber: int
    prizeName: str
    prizeAmount: int
    xpPoints: int
    ruleType: str


class GameClosed(BaseModel):
    reason: str
    totalWinners: Optional[int] = None
    totalNumbers: Optional[int] = None


class PlayerJoined(BaseModel):
    userId: str
    name: str


class GameStarted(BaseModel):
    gameId: str
    message: str


class GameNotification(BaseModel):
    type: str
    gameId: str
    message: str
    ticketHolders: List[str]


class ErrorMessage(BaseModel):
    message: str


OutboundPayload = Union[
    NumberCalled,
    GameStatusChanged,
    AutoPlayChanged,
    WinnerDetected,
    GameClosed,
    PlayerJoined,
    GameStarted,
    GameNotification,
    ErrorMessage,
]


def now_ms() -> int:
    return int(time.time() * 1000)


def envelope(event: str, data: Union[OutboundPayload, Dict[str, Any], None]) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_none=True)
    return {"event": event, "data": data}
