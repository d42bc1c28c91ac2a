"""Errors raised by the live game engine.

Every error carries a human readable message that is forwarded verbatim to the
requesting client as an ``error`` event.
"""

from __future__ import annotations


class HousieError(Exception):
    """Base class for failures local to a single game operation."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidTransition(HousieError):
    """Operation attempted in a status that forbids it."""


class DuplicateNumber(HousieError):
    """Manual draw of a number that has already been called."""

    def __init__(self, number: int) -> None:
        super().__init__(f"Number {number} already called")
        self.number = number


class OutOfRange(HousieError):
    """Manual draw of a number outside 1..90."""

    def __init__(self, number: object) -> None:
        super().__init__(f"Number {number} is out of range (1-90)")
        self.number = number


class GameNotFound(HousieError):
    def __init__(self, game_id: str) -> None:
        super().__init__("Game not found")
        self.game_id = game_id


class PersistenceFailure(HousieError):
    """A game record store read or write failed."""


class EvaluatorInconsistency(HousieError):
    """A rule claims an open slot that does not exist."""


class MalformedEvent(HousieError):
    """Inbound event with an unknown name or an invalid payload."""
