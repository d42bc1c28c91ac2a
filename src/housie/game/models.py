"""Core data models for the live Tambola engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

MIN_NUMBER = 1
MAX_NUMBER = 90
TICKET_ROWS = 3
TICKET_COLUMNS = 9
NUMBERS_PER_ROW = 5

# Grid cell: an integer or None for a blank.
Grid = List[List[Optional[int]]]


class GameStatus(str, Enum):
    """Game lifecycle: WAITING -> LIVE <-> PAUSED -> CLOSED."""

    WAITING = "WAITING"
    LIVE = "LIVE"
    PAUSED = "PAUSED"
    CLOSED = "CLOSED"


class TicketStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    REJECTED = "REJECTED"


class PrizeStatus(str, Enum):
    OPEN = "OPEN"
    WON = "WON"


class RuleType(str, Enum):
    EARLY_FIVE = "EARLY_FIVE"
    TOP_LINE = "TOP_LINE"
    MIDDLE_LINE = "MIDDLE_LINE"
    BOTTOM_LINE = "BOTTOM_LINE"
    FULL_HOUSE = "FULL_HOUSE"
    CORNERS = "CORNERS"


class CloseReason(str, Enum):
    ALL_NUMBERS_DRAWN = "all_numbers_drawn"
    ALL_PRIZES_WON = "all_prizes_won"
    WINNER_LIMIT_REACHED = "winner_limit_reached"
    MANUAL_END = "manual_end"


def column_range(column: int) -> range:
    """Values allowed in a ticket column: 1-9, 10-19, ..., 70-79, 80-90."""
    low = 1 if column == 0 else column * 10
    high = 90 if column == TICKET_COLUMNS - 1 else column * 10 + 9
    return range(low, high + 1)


def validate_ticket_grid(numbers: Sequence[Sequence[Optional[int]]]) -> Grid:
    """Check the 3x9 layout, 5 numbers per row and column ranges.

    Returns the grid as a list of lists. Raises ValueError on any violation.
    """
    if len(numbers) != TICKET_ROWS:
        raise ValueError(f"ticket must have {TICKET_ROWS} rows, got {len(numbers)}")

    grid: Grid = []
    seen = set()
    for row_index, row in enumerate(numbers):
        if len(row) != TICKET_COLUMNS:
            raise ValueError(f"row {row_index} must have {TICKET_COLUMNS} cells, got {len(row)}")
        cells = [None if cell is None else int(cell) for cell in row]
        filled = [cell for cell in cells if cell is not None]
        if len(filled) != NUMBERS_PER_ROW:
            raise ValueError(f"row {row_index} must have {NUMBERS_PER_ROW} numbers, got {len(filled)}")
        for column, cell in enumerate(cells):
            if cell is None:
                continue
            if cell not in column_range(column):
                raise ValueError(f"{cell} is not valid in column {column}")
            if cell in seen:
                raise ValueError(f"{cell} appears more than once")
            seen.add(cell)
        grid.append(cells)
    return grid


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass
class Prize:
    """One awardable slot of a winning rule."""

    name: str
    position: int
    rule_type: RuleType
    amount: int = 0
    xp_points: int = 0
    status: PrizeStatus = PrizeStatus.OPEN
    winner: Optional[str] = None
    winner_ticket_id: Optional[str] = None
    winner_name: Optional[str] = None
    winner_email: Optional[str] = None
    won_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status == PrizeStatus.OPEN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "position": self.position,
            "ruleType": self.rule_type.value,
            "amount": self.amount,
            "xpPoints": self.xp_points,
            "status": self.status.value,
            "winner": self.winner,
            "winnerTicketId": self.winner_ticket_id,
            "winnerName": self.winner_name,
            "winnerEmail": self.winner_email,
            "wonAt": _iso(self.won_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Prize":
        return cls(
            name=data["name"],
            position=int(data["position"]),
            rule_type=RuleType(data["ruleType"]),
            amount=int(data.get("amount", 0) or 0),
            xp_points=int(data.get("xpPoints", 0) or 0),
            status=PrizeStatus(data.get("status", PrizeStatus.OPEN.value)),
            winner=data.get("winner"),
            winner_ticket_id=data.get("winnerTicketId"),
            winner_name=data.get("winnerName"),
            winner_email=data.get("winnerEmail"),
            won_at=_parse_dt(data.get("wonAt")),
        )


@dataclass
class WinningRule:
    """Pattern type plus its ordered prize slots."""

    type: RuleType
    max_winners: int
    prizes: List[Prize] = field(default_factory=list)
    current_winners: int = 0
    is_completed: bool = False

    def first_open_prize(self) -> Optional[Prize]:
        for prize in sorted(self.prizes, key=lambda p: p.position):
            if prize.is_open:
                return prize
        return None

    def has_winner_ticket(self, ticket_id: str) -> bool:
        return any(p.winner_ticket_id == ticket_id for p in self.prizes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "maxWinners": self.max_winners,
            "currentWinners": self.current_winners,
            "isCompleted": self.is_completed,
            "prizes": [p.to_dict() for p in self.prizes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WinningRule":
        return cls(
            type=RuleType(data["type"]),
            max_winners=int(data["maxWinners"]),
            prizes=[Prize.from_dict(p) for p in data.get("prizes", [])],
            current_winners=int(data.get("currentWinners", 0)),
            is_completed=bool(data.get("isCompleted", False)),
        )


@dataclass
class AutoClose:
    enabled: bool = False
    after_winners: int = 1
    current_total_winners: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "afterWinners": self.after_winners,
            "currentTotalWinners": self.current_total_winners,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AutoClose":
        data = data or {}
        return cls(
            enabled=bool(data.get("enabled", False)),
            after_winners=int(data.get("afterWinners", 1)),
            current_total_winners=int(data.get("currentTotalWinners", 0)),
        )


@dataclass
class Game:
    """Authoritative per-game document."""

    id: str
    name: str = ""
    status: GameStatus = GameStatus.WAITING
    drawn_numbers: List[int] = field(default_factory=list)
    winning_rules: List[WinningRule] = field(default_factory=list)
    auto_close: AutoClose = field(default_factory=AutoClose)
    total_tickets: int = 0
    created_by: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        return self.status == GameStatus.CLOSED

    @property
    def is_exhausted(self) -> bool:
        return len(self.drawn_numbers) >= MAX_NUMBER

    def all_prizes(self) -> List[Prize]:
        """Flat prize list across rules, in configured rule order."""
        return [prize for rule in self.winning_rules for prize in rule.prizes]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "drawnNumbers": list(self.drawn_numbers),
            "winningRules": [r.to_dict() for r in self.winning_rules],
            "prizes": [p.to_dict() for p in self.all_prizes()],
            "autoClose": self.auto_close.to_dict(),
            "totalTickets": self.total_tickets,
            "createdBy": self.created_by,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Game":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            status=GameStatus(data.get("status", GameStatus.WAITING.value)),
            drawn_numbers=[int(n) for n in data.get("drawnNumbers", [])],
            winning_rules=[WinningRule.from_dict(r) for r in data.get("winningRules", [])],
            auto_close=AutoClose.from_dict(data.get("autoClose")),
            total_tickets=int(data.get("totalTickets", 0)),
            created_by=data.get("createdBy"),
        )


@dataclass
class Ticket:
    """A booked ticket; read-only from the engine's point of view."""

    id: str
    game_id: str
    ticket_number: int
    user_id: str
    numbers: Grid
    status: TicketStatus = TicketStatus.PENDING

    @property
    def is_active(self) -> bool:
        return self.status == TicketStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "gameId": self.game_id,
            "ticketNumber": self.ticket_number,
            "userId": self.user_id,
            "numbers": [list(row) for row in self.numbers],
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ticket":
        return cls(
            id=str(data["id"]),
            game_id=str(data["gameId"]),
            ticket_number=int(data["ticketNumber"]),
            user_id=str(data["userId"]),
            numbers=validate_ticket_grid(data["numbers"]),
            status=TicketStatus(data.get("status", TicketStatus.PENDING.value)),
        )


@dataclass
class WinnerAnnouncement:
    """A prize slot claimed during one evaluation pass."""

    ticket_id: str
    ticket_number: int
    user_id: str
    rule_type: RuleType
    prize_name: str
    prize_position: int
    prize_amount: int = 0
    xp_points: int = 0
    winner_name: str = ""
    winner_email: str = ""

    def to_event(self) -> Dict[str, Any]:
        return {
            "winnerName": self.winner_name,
            "winnerEmail": self.winner_email,
            "winnerId": self.user_id,
            "ticketId": self.ticket_id,
            "ticketNumber": self.ticket_number,
            "prizeName": self.prize_name,
            "prizeAmount": self.prize_amount,
            "xpPoints": self.xp_points,
            "ruleType": self.rule_type.value,
        }


@dataclass
class EvaluationResult:
    """Outcome of one winner evaluation pass."""

    rules: List[WinningRule]
    announcements: List[WinnerAnnouncement] = field(default_factory=list)
    total_winners: int = 0
    close_reason: Optional[CloseReason] = None

    @property
    def should_close(self) -> bool:
        return self.close_reason is not None
