"""Winner evaluation over the full set of called numbers.

Iteration order is part of the contract: rules in their configured order,
tickets by ascending ticket number. Given the same tickets, rules and drawn
numbers the evaluator always assigns the same prize slots.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence

from housie.game.errors import EvaluatorInconsistency
from housie.game.models import (
    AutoClose,
    CloseReason,
    EvaluationResult,
    PrizeStatus,
    Ticket,
    WinnerAnnouncement,
    WinningRule,
)
from housie.game.patterns import check_win_for_rule
from housie.utils.logger import get_logger

logger = get_logger(__name__)


def close_reason_for(rules: Sequence[WinningRule], auto_close: AutoClose) -> Optional[CloseReason]:
    """Decide whether the auto-close policy ends the game."""
    if not auto_close.enabled:
        return None
    if rules and all(r.is_completed for r in rules):
        return CloseReason.ALL_PRIZES_WON
    if auto_close.current_total_winners >= auto_close.after_winners:
        return CloseReason.WINNER_LIMIT_REACHED
    return None


class WinnerEvaluator:
    """Allocates open prize slots to tickets whose pattern is complete."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def evaluate(
        self,
        tickets: Iterable[Ticket],
        rules: Sequence[WinningRule],
        drawn_numbers: Iterable[int],
        auto_close: Optional[AutoClose] = None,
    ) -> EvaluationResult:
        """Scan active tickets against every incomplete rule.

        Inputs are not mutated; ``EvaluationResult.rules`` holds the updated
        copies and ``auto_close`` totals are reported via ``total_winners``.
        """
        drawn = set(drawn_numbers)
        updated_rules: List[WinningRule] = copy.deepcopy(list(rules))
        policy = copy.deepcopy(auto_close) if auto_close else AutoClose()
        ordered = sorted(
            (t for t in tickets if t.is_active),
            key=lambda t: (t.ticket_number, t.id),
        )
        announcements: List[WinnerAnnouncement] = []

        for rule in updated_rules:
            if rule.is_completed:
                continue
            for ticket in ordered:
                if rule.is_completed:
                    break
                if rule.has_winner_ticket(ticket.id):
                    continue
                if not check_win_for_rule(ticket.numbers, drawn, rule.type):
                    continue
                try:
                    announcement = self._claim(rule, ticket)
                except EvaluatorInconsistency as exc:
                    logger.warning("Skipping %s for ticket #%s: %s", rule.type.value, ticket.ticket_number, exc.message)
                    break
                policy.current_total_winners += 1
                announcements.append(announcement)
                logger.info(
                    "Ticket #%s (%s) won %s (%s)",
                    ticket.ticket_number, ticket.user_id, announcement.prize_name, rule.type.value,
                )

        return EvaluationResult(
            rules=updated_rules,
            announcements=announcements,
            total_winners=policy.current_total_winners,
            close_reason=close_reason_for(updated_rules, policy),
        )

    def _claim(self, rule: WinningRule, ticket: Ticket) -> WinnerAnnouncement:
        prize = rule.first_open_prize()
        if prize is None:
            raise EvaluatorInconsistency(
                f"rule {rule.type.value} has {rule.current_winners}/{rule.max_winners} winners but no open prize"
            )

        prize.status = PrizeStatus.WON
        prize.winner = ticket.user_id
        prize.winner_ticket_id = ticket.id
        prize.won_at = self._clock()

        rule.current_winners += 1
        if rule.current_winners >= rule.max_winners:
            rule.is_completed = True

        return WinnerAnnouncement(
            ticket_id=ticket.id,
            ticket_number=ticket.ticket_number,
            user_id=ticket.user_id,
            rule_type=rule.type,
            prize_name=prize.name,
            prize_position=prize.position,
            prize_amount=prize.amount,
            xp_points=prize.xp_points,
        )


def attach_winner_identity(
    result: EvaluationResult, announcement: WinnerAnnouncement, name: str, email: str
) -> None:
    """Record the winner's display name on the announcement and its prize."""
    announcement.winner_name = name
    announcement.winner_email = email
    for rule in result.rules:
        if rule.type != announcement.rule_type:
            continue
        for prize in rule.prizes:
            if prize.winner_ticket_id == announcement.ticket_id and prize.position == announcement.prize_position:
                prize.winner_name = name
                prize.winner_email = email
                return
