"""Shared fixtures for the housie test-suite."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from housie.game.models import (
    AutoClose,
    Game,
    GameStatus,
    Prize,
    RuleType,
    Ticket,
    TicketStatus,
    WinningRule,
)
from housie.game.store import MemoryStore

TICKET_A = [
    [1, None, 21, None, 43, None, 62, None, 80],
    [None, 11, None, 34, None, 55, None, 71, 84],
    [5, None, 27, 38, None, 58, None, 77, None],
]

TICKET_B = [
    [2, 14, None, 31, None, 50, None, 70, None],
    [None, 16, 24, None, 44, None, 66, None, 88],
    [9, None, 29, None, 47, None, 69, 79, None],
]


def numbers_of(grid, row: Optional[int] = None) -> List[int]:
    rows = grid if row is None else [grid[row]]
    return [n for r in rows for n in r if n is not None]


def make_rule(rule_type: RuleType, slots: int = 1) -> WinningRule:
    return WinningRule(
        type=rule_type,
        max_winners=slots,
        prizes=[
            Prize(name=f"{rule_type.value.title()} #{i}", position=i, rule_type=rule_type, amount=100 * i, xp_points=10 * i)
            for i in range(1, slots + 1)
        ],
    )


def make_ticket(ticket_number: int, grid, *, user_id: Optional[str] = None,
                status: TicketStatus = TicketStatus.ACTIVE, game_id: str = "game-1") -> Ticket:
    return Ticket(
        id=f"ticket-{ticket_number}",
        game_id=game_id,
        ticket_number=ticket_number,
        user_id=user_id or f"user_00000{ticket_number}",
        numbers=[list(row) for row in grid],
        status=status,
    )


def make_game(
    rules: List[WinningRule],
    *,
    game_id: str = "game-1",
    status: GameStatus = GameStatus.WAITING,
    auto_close: Optional[AutoClose] = None,
    drawn: Optional[List[int]] = None,
) -> Game:
    return Game(
        id=game_id,
        name="Test game",
        status=status,
        drawn_numbers=list(drawn or []),
        winning_rules=rules,
        auto_close=auto_close or AutoClose(),
        total_tickets=2,
        created_by="admin",
    )


class FakeConnection:
    """Records every JSON message sent to it."""

    def __init__(self, name: str = "client", fail: bool = False) -> None:
        self.name = name
        self.fail = fail
        self.messages: List[Dict[str, Any]] = []

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.messages.append(data)

    def events(self) -> List[str]:
        return [m["event"] for m in self.messages]

    def payloads(self, event: str) -> List[Dict[str, Any]]:
        return [m["data"] for m in self.messages if m["event"] == event]

    def __repr__(self) -> str:
        return f"FakeConnection({self.name})"


class SlowStore(MemoryStore):
    """MemoryStore that yields to the loop on every read and write."""

    def __init__(self, delay: float = 0.005) -> None:
        super().__init__()
        self.delay = delay

    async def find_by_id(self, game_id):
        game = await super().find_by_id(game_id)
        await asyncio.sleep(self.delay)
        return game

    async def save(self, game):
        await asyncio.sleep(self.delay)
        await super().save(game)
