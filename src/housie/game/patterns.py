"""Win-pattern predicates over a ticket grid and the called numbers.

All checks are pure and take the full set of drawn numbers; blanks (None)
never count towards or against a pattern.
"""

from __future__ import annotations

from typing import Callable, Collection, Dict, List, Optional, Sequence

from housie.game.models import RuleType

Row = Sequence[Optional[int]]
GridLike = Sequence[Row]


def _filled(row: Row) -> List[int]:
    return [n for n in row if n is not None]


def _row_complete(row: Row, drawn: Collection[int]) -> bool:
    return all(n in drawn for n in _filled(row))


def _row_corners(row: Row) -> List[int]:
    filled = _filled(row)
    if not filled:
        return []
    return [filled[0], filled[-1]]


def check_early_five(numbers: GridLike, drawn: Collection[int]) -> bool:
    """At least five marked numbers anywhere on the ticket."""
    count = sum(1 for row in numbers for n in _filled(row) if n in drawn)
    return count >= 5


def check_top_line(numbers: GridLike, drawn: Collection[int]) -> bool:
    return _row_complete(numbers[0], drawn)


def check_middle_line(numbers: GridLike, drawn: Collection[int]) -> bool:
    return _row_complete(numbers[1], drawn)


def check_bottom_line(numbers: GridLike, drawn: Collection[int]) -> bool:
    return _row_complete(numbers[2], drawn)


def check_full_house(numbers: GridLike, drawn: Collection[int]) -> bool:
    return all(_row_complete(row, drawn) for row in numbers)


def check_corners(numbers: GridLike, drawn: Collection[int]) -> bool:
    """First and last number of the top and bottom rows.

    A row with a single number contributes that number twice.
    """
    corners = _row_corners(numbers[0]) + _row_corners(numbers[2])
    return all(n in drawn for n in corners)


PATTERN_CHECKS: Dict[RuleType, Callable[[GridLike, Collection[int]], bool]] = {
    RuleType.EARLY_FIVE: check_early_five,
    RuleType.TOP_LINE: check_top_line,
    RuleType.MIDDLE_LINE: check_middle_line,
    RuleType.BOTTOM_LINE: check_bottom_line,
    RuleType.FULL_HOUSE: check_full_house,
    RuleType.CORNERS: check_corners,
}


def check_win_for_rule(numbers: GridLike, drawn: Collection[int], rule_type: RuleType) -> bool:
    """Dispatch to the predicate for ``rule_type``; unknown types never win."""
    check = PATTERN_CHECKS.get(rule_type)
    if check is None:
        return False
    drawn_set = drawn if isinstance(drawn, (set, frozenset)) else set(drawn)
    return check(numbers, drawn_set)
