"""Ticket generation and demo game seeding.

The generator places five numbers per row, keeps each column inside its
decade and sorts column values top to bottom. It makes no claim about the
formal Tambola ticket distribution.
"""

from __future__ import annotations

import random
import uuid
from typing import Iterable, List, Optional, Sequence, Tuple

from housie.game.models import (
    NUMBERS_PER_ROW,
    TICKET_COLUMNS,
    TICKET_ROWS,
    AutoClose,
    Game,
    GameStatus,
    Grid,
    Prize,
    RuleType,
    Ticket,
    TicketStatus,
    WinningRule,
    column_range,
)
from housie.game.store import MemoryStore, UserProfile
from housie.utils.logger import get_logger

logger = get_logger(__name__)

# (rule, prize name, xp points) per prize slot of the demo game
DEFAULT_PRIZES: Sequence[Tuple[RuleType, str, int]] = (
    (RuleType.EARLY_FIVE, "Early Five", 50),
    (RuleType.TOP_LINE, "Top Line", 100),
    (RuleType.MIDDLE_LINE, "Middle Line", 100),
    (RuleType.BOTTOM_LINE, "Bottom Line", 100),
    (RuleType.CORNERS, "Four Corners", 150),
    (RuleType.FULL_HOUSE, "Full House", 500),
)


def generate_ticket(rng: Optional[random.Random] = None) -> Grid:
    rng = rng or random.Random()
    grid: Grid = [[None] * TICKET_COLUMNS for _ in range(TICKET_ROWS)]
    row_columns = [sorted(rng.sample(range(TICKET_COLUMNS), NUMBERS_PER_ROW)) for _ in range(TICKET_ROWS)]

    for column in range(TICKET_COLUMNS):
        rows = [r for r in range(TICKET_ROWS) if column in row_columns[r]]
        if not rows:
            continue
        values = sorted(rng.sample(list(column_range(column)), len(rows)))
        for row, value in zip(rows, values):
            grid[row][column] = value
    return grid


def build_rules(prizes: Iterable[Tuple[RuleType, str, int]] = DEFAULT_PRIZES) -> List[WinningRule]:
    """One rule per distinct type, in first-seen order; repeats add slots."""
    rules: List[WinningRule] = []
    by_type = {}
    for rule_type, name, xp in prizes:
        rule = by_type.get(rule_type)
        if rule is None:
            rule = WinningRule(type=rule_type, max_winners=0)
            by_type[rule_type] = rule
            rules.append(rule)
        rule.max_winners += 1
        rule.prizes.append(
            Prize(name=name, position=rule.max_winners, rule_type=rule_type, xp_points=xp)
        )
    return rules


def seed_demo_game(
    store: MemoryStore,
    *,
    tickets: int = 6,
    rng: Optional[random.Random] = None,
    auto_close: Optional[AutoClose] = None,
    game_id: Optional[str] = None,
) -> Game:
    """Create a WAITING game with the standard rules and ACTIVE tickets."""
    rng = rng or random.Random()
    game = Game(
        id=game_id or uuid.uuid4().hex[:24],
        name="Demo Housie",
        status=GameStatus.WAITING,
        winning_rules=build_rules(),
        auto_close=auto_close or AutoClose(enabled=True, after_winners=len(DEFAULT_PRIZES)),
        total_tickets=tickets,
        created_by="demo-admin",
    )
    store.add_game(game)

    for number in range(1, tickets + 1):
        user_id = f"demo_user_{number:06d}"
        store.add_user(UserProfile(user_id=user_id, first_name="Player", last_name=str(number)))
        store.add_ticket(
            Ticket(
                id=f"{game.id}-t{number}",
                game_id=game.id,
                ticket_number=number,
                user_id=user_id,
                numbers=generate_ticket(rng),
                status=TicketStatus.ACTIVE,
            )
        )

    logger.info(f"Seeded demo game {game.id} with {tickets} tickets")
    return game
