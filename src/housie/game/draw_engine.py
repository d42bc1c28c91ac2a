"""
Draw Engine - picks the next number to call for a game
"""

from __future__ import annotations

import random
from typing import Collection, Optional

from housie.game.errors import DuplicateNumber, OutOfRange
from housie.game.models import MAX_NUMBER, MIN_NUMBER

# Returned by draw_next when every number has been called.
EXHAUSTED = None


class DrawEngine:
    """Random draw without replacement over 1..90.

    Pass a seeded ``random.Random`` for reproducible sequences.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    def draw_next(self, drawn_numbers: Collection[int]) -> Optional[int]:
        """Return an undrawn number, or EXHAUSTED once all 90 are called."""
        drawn = set(drawn_numbers)
        if len(drawn) >= MAX_NUMBER:
            return EXHAUSTED
        while True:
            candidate = self._rng.randint(MIN_NUMBER, MAX_NUMBER)
            if candidate not in drawn:
                return candidate

    @staticmethod
    def validate_manual(number: object, drawn_numbers: Collection[int]) -> int:
        """Validate an admin-specified number and return it as an int."""
        if isinstance(number, bool) or not isinstance(number, int):
            raise OutOfRange(number)
        if not MIN_NUMBER <= number <= MAX_NUMBER:
            raise OutOfRange(number)
        if number in drawn_numbers:
            raise DuplicateNumber(number)
        return number
