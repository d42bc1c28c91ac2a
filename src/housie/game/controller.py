"""
Game Session Controller - drives the live state machine of every game

Each game gets a GameSession holding its lock and its auto-play timer. Every
operation that reads and rewrites a game record runs under that lock, so a
manual call and an auto-play tick for the same game never interleave, while
different games proceed independently.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable, List, Optional

from housie.game import events
from housie.game.draw_engine import EXHAUSTED, DrawEngine
from housie.game.errors import GameNotFound, InvalidTransition, PersistenceFailure
from housie.game.evaluator import WinnerEvaluator, attach_winner_identity
from housie.game.models import (
    MAX_NUMBER,
    CloseReason,
    EvaluationResult,
    Game,
    GameStatus,
    WinnerAnnouncement,
)
from housie.game.rooms import RoomHub
from housie.game.store import (
    GameRepository,
    TicketRepository,
    UserDirectory,
    fallback_display_name,
)
from housie.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_AUTO_PLAY_INTERVAL = 3.0

Tick = Callable[[], Awaitable[bool]]


class GameSession:
    """Per-game actor: the draw lock plus at most one auto-play timer."""

    def __init__(self, game_id: str, interval: float) -> None:
        self.game_id = game_id
        self.interval = interval
        self.lock = asyncio.Lock()
        self.next_tick_at: Optional[float] = None
        # operations holding or waiting for the lock
        self.users = 0
        self._timer_task: Optional[asyncio.Task[None]] = None

    @property
    def auto_playing(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def start_timer(self, tick: Tick) -> None:
        """Start the periodic tick, replacing any running timer.

        The first tick fires a full interval from now.
        """
        restarted = self.cancel_timer()
        self._timer_task = asyncio.create_task(self._run(tick), name=f"auto-play-{self.game_id}")
        logger.info(
            "%s auto-play timer for game-%s (every %.2fs)",
            "Restarted" if restarted else "Started", self.game_id, self.interval,
        )

    def cancel_timer(self) -> bool:
        """Stop the timer if one is running. Safe to call repeatedly.

        When called from inside the timer's own tick the task is detached
        rather than cancelled and its loop exits after the tick returns.
        """
        task = self._timer_task
        if task is None:
            return False
        self._timer_task = None
        self.next_tick_at = None
        if task is not asyncio.current_task() and not task.done():
            task.cancel()
        return True

    async def _run(self, tick: Tick) -> None:
        loop = asyncio.get_running_loop()
        me = asyncio.current_task()
        while self._timer_task is me:
            self.next_tick_at = loop.time() + self.interval
            await asyncio.sleep(self.interval)
            try:
                keep_running = await tick()
            except Exception:
                logger.exception("Auto-play tick failed for game-%s; continuing", self.game_id)
                continue
            if not keep_running:
                if self._timer_task is me:
                    self._timer_task = None
                    self.next_tick_at = None
                logger.info("Auto-play timer for game-%s finished", self.game_id)
                break


class SessionRegistry:
    """Live sessions keyed by game id.

    A session stays registered only while an operation is using it or its
    auto-play timer is running; idle sessions are dropped on release.
    """

    def __init__(self, interval: float) -> None:
        self.interval = interval
        self._sessions: Dict[str, GameSession] = {}

    def get(self, game_id: str) -> Optional[GameSession]:
        return self._sessions.get(game_id)

    def get_or_create(self, game_id: str) -> GameSession:
        session = self._sessions.get(game_id)
        if session is None:
            session = GameSession(game_id, self.interval)
            self._sessions[game_id] = session
        return session

    @asynccontextmanager
    async def acquire(self, game_id: str) -> AsyncIterator[GameSession]:
        """Hold the game's session lock for the duration of the block."""
        session = self.get_or_create(game_id)
        session.users += 1
        try:
            async with session.lock:
                yield session
        finally:
            session.users -= 1
            if session.users == 0 and not session.auto_playing:
                self.discard(game_id, session)

    def discard(self, game_id: str, session: Optional[GameSession] = None) -> None:
        if session is None or self._sessions.get(game_id) is session:
            self._sessions.pop(game_id, None)

    def all(self) -> List[GameSession]:
        return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)


@dataclass
class DrawOutcome:
    """What one successful draw did to the game."""

    number: int
    drawn_numbers: List[int]
    announcements: List[WinnerAnnouncement] = field(default_factory=list)
    close_reason: Optional[CloseReason] = None


class GameController:
    """Authoritative state machine for live games."""

    def __init__(
        self,
        games: GameRepository,
        tickets: TicketRepository,
        users: UserDirectory,
        hub: RoomHub,
        *,
        engine: Optional[DrawEngine] = None,
        evaluator: Optional[WinnerEvaluator] = None,
        auto_play_interval: float = DEFAULT_AUTO_PLAY_INTERVAL,
    ) -> None:
        self._games = games
        self._tickets = tickets
        self._users = users
        self._hub = hub
        self._engine = engine or DrawEngine()
        self._evaluator = evaluator or WinnerEvaluator()
        self.sessions = SessionRegistry(auto_play_interval)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def is_auto_playing(self, game_id: str) -> bool:
        session = self.sessions.get(game_id)
        return bool(session and session.auto_playing)

    async def snapshot(self, game_id: str) -> Dict[str, Any]:
        game = await self._load(game_id)
        state = game.to_dict()
        state["autoPlaying"] = self.is_auto_playing(game_id)
        return state

    def get_status(self) -> Dict[str, Any]:
        return {
            "sessions": len(self.sessions),
            "auto_playing": sorted(s.game_id for s in self.sessions.all() if s.auto_playing),
            "auto_play_interval": self.sessions.interval,
        }

    # ------------------------------------------------------------------
    # State machine operations
    # ------------------------------------------------------------------
    async def start(self, game_id: str) -> Game:
        async with self.sessions.acquire(game_id) as session:
            game = await self._load(game_id)
            self._require(game, (GameStatus.WAITING,), "start")
            game.status = GameStatus.LIVE
            await self._persist_status(game)

            holders = await self._tickets.distinct_holders(game_id)
            await self._hub.publish(game_id, events.GAME_STARTED, events.GameStarted(
                gameId=game_id, message="Game has started! Join now to play.",
            ))
            await self._hub.broadcast_all(events.GAME_NOTIFICATION, events.GameNotification(
                type="GAME_STARTED",
                gameId=game_id,
                message="A game you have tickets for has started!",
                ticketHolders=holders,
            ))
            await self._publish_status(game)
            logger.info(f"Game {game_id} started, notified {len(holders)} ticket holders")
            return game

    async def start_auto_play(self, game_id: str) -> Game:
        async with self.sessions.acquire(game_id) as session:
            game = await self._load(game_id)
            self._require(game, (GameStatus.WAITING, GameStatus.LIVE, GameStatus.PAUSED), "start auto-play for")
            if game.status != GameStatus.LIVE:
                game.status = GameStatus.LIVE
                await self._persist_status(game)
                await self._publish_status(game)

            session.start_timer(lambda: self.auto_draw_tick(game_id))
            await self._hub.publish(game_id, events.AUTO_PLAY_STARTED, events.AutoPlayChanged(gameId=game_id))
            return game

    async def stop_auto_play(self, game_id: str) -> bool:
        """Cancel the timer; a no-op when auto-play is not running."""
        async with self.sessions.acquire(game_id) as session:
            stopped = session.cancel_timer()
        if stopped:
            logger.info("Auto-play stopped for game-%s", game_id)
        await self._hub.publish(game_id, events.AUTO_PLAY_STOPPED, events.AutoPlayChanged(gameId=game_id))
        return stopped

    async def pause(self, game_id: str) -> Game:
        # the timer keeps running; ticks see PAUSED and skip
        return await self._transition(game_id, GameStatus.PAUSED, (GameStatus.LIVE,), "pause")

    async def resume(self, game_id: str) -> Game:
        return await self._transition(game_id, GameStatus.LIVE, (GameStatus.PAUSED,), "resume")

    async def end(self, game_id: str) -> Game:
        async with self.sessions.acquire(game_id) as session:
            game = await self._load(game_id)
            self._require(game, (GameStatus.LIVE, GameStatus.PAUSED), "end")
            game.status = GameStatus.CLOSED
            await self._persist_status(game)
            await self._close_session(session, game, CloseReason.MANUAL_END)
            return game

    async def manual_draw(self, game_id: str, number: Any) -> DrawOutcome:
        """Call an admin-chosen number.

        If auto-play is running its timer is restarted so the next automatic
        number comes a full interval after this one.
        """
        async with self.sessions.acquire(game_id) as session:
            game = await self._load(game_id)
            if game.status not in (GameStatus.LIVE, GameStatus.PAUSED):
                raise InvalidTransition("Game is not live")
            number = self._engine.validate_manual(number, game.drawn_numbers)
            outcome = await self._draw_locked(session, game, number, manual=True)

            if outcome.close_reason is None and session.auto_playing:
                logger.info(f"Admin manual call: restarting auto-play timer for game-{game_id}")
                session.start_timer(lambda: self.auto_draw_tick(game_id))
            return outcome

    async def auto_draw_tick(self, game_id: str) -> bool:
        """One auto-play step. Returns False when the timer should stop."""
        async with self.sessions.acquire(game_id) as session:
            try:
                game = await self._load(game_id)
            except (GameNotFound, PersistenceFailure) as exc:
                logger.error(f"Auto-play cannot load game-{game_id} ({exc.message}); stopping its timer")
                session.cancel_timer()
                return False

            if game.is_closed:
                logger.info(f"Game {game_id} is closed, stopping auto-play")
                session.cancel_timer()
                return False
            if game.status != GameStatus.LIVE:
                return True

            if game.is_exhausted:
                game.status = GameStatus.CLOSED
                await self._persist_status(game)
                await self._close_session(session, game, CloseReason.ALL_NUMBERS_DRAWN)
                return False

            number = self._engine.draw_next(game.drawn_numbers)
            if number is EXHAUSTED:  # pragma: no cover - guarded by is_exhausted
                return False
            try:
                outcome = await self._draw_locked(session, game, number, manual=False)
            except PersistenceFailure as exc:
                logger.error(f"Draw aborted for game-{game_id}: {exc.message}; retrying on next tick")
                return True
            return outcome.close_reason is None

    async def shutdown(self) -> None:
        """Cancel every auto-play timer."""
        for session in self.sessions.all():
            async with self.sessions.acquire(session.game_id) as current:
                current.cancel_timer()
        logger.info("Game controller stopped all auto-play timers")

    # ------------------------------------------------------------------
    # Draw transaction
    # ------------------------------------------------------------------
    async def _draw_locked(self, session: GameSession, game: Game, number: int, *, manual: bool) -> DrawOutcome:
        """Append, evaluate, persist, then broadcast. Caller holds the lock.

        Nothing is broadcast unless the single save of the updated game
        succeeds.
        """
        game.drawn_numbers.append(number)

        tickets = await self._tickets.find_active_by_game(game.id)
        result = self._evaluator.evaluate(tickets, game.winning_rules, game.drawn_numbers, game.auto_close)
        await self._resolve_identities(result)

        game.winning_rules = result.rules
        game.auto_close.current_total_winners = result.total_winners

        close_reason = result.close_reason
        if close_reason is None and len(game.drawn_numbers) >= MAX_NUMBER:
            close_reason = CloseReason.ALL_NUMBERS_DRAWN
        if close_reason is not None:
            game.status = GameStatus.CLOSED

        await self._games.save(game)

        logger.info(
            f"{'Admin called' if manual else 'Number'} {number} in game-{game.id} "
            f"({len(game.drawn_numbers)}/{MAX_NUMBER})"
        )
        await self._hub.publish(game.id, events.NUMBER_CALLED, events.NumberCalled(
            number=number,
            drawnNumbers=list(game.drawn_numbers),
            timestamp=events.now_ms(),
            isManual=True if manual else None,
        ))
        for announcement in result.announcements:
            await self._hub.publish(game.id, events.WINNER_DETECTED, events.WinnerDetected(**announcement.to_event()))

        if close_reason is not None:
            await self._close_session(session, game, close_reason)

        return DrawOutcome(
            number=number,
            drawn_numbers=list(game.drawn_numbers),
            announcements=result.announcements,
            close_reason=close_reason,
        )

    async def _resolve_identities(self, result: EvaluationResult) -> None:
        names: Dict[str, Any] = {}
        for announcement in result.announcements:
            user_id = announcement.user_id
            if user_id not in names:
                try:
                    names[user_id] = await self._users.find_display_name(user_id) or fallback_display_name(user_id)
                except Exception as exc:
                    logger.warning("User lookup failed for %s: %s", user_id, exc)
                    names[user_id] = fallback_display_name(user_id)
            display = names[user_id]
            attach_winner_identity(result, announcement, display.name, display.email)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _load(self, game_id: str) -> Game:
        game = await self._games.find_by_id(game_id)
        if game is None:
            raise GameNotFound(game_id)
        return game

    @staticmethod
    def _require(game: Game, allowed: Iterable[GameStatus], action: str) -> None:
        if game.status not in tuple(allowed):
            raise InvalidTransition(f"Cannot {action} a game that is {game.status.value}")

    async def _transition(
        self, game_id: str, target: GameStatus, allowed: Iterable[GameStatus], action: str
    ) -> Game:
        async with self.sessions.acquire(game_id) as session:
            game = await self._load(game_id)
            self._require(game, allowed, action)
            game.status = target
            await self._persist_status(game)
            await self._publish_status(game)
            logger.info(f"Game {game_id} is now {target.value}")
            return game

    async def _persist_status(self, game: Game) -> None:
        updated = await self._games.update_fields(game.id, status=game.status)
        if updated is None:
            raise GameNotFound(game.id)

    async def _publish_status(self, game: Game) -> None:
        await self._hub.publish(game.id, events.GAME_STATUS_CHANGED, events.GameStatusChanged(status=game.status.value))

    async def _close_session(self, session: GameSession, game: Game, reason: CloseReason) -> None:
        """Tear down the session of a game already persisted as CLOSED."""
        session.cancel_timer()

        payload = events.GameClosed(reason=reason.value, totalWinners=game.auto_close.current_total_winners)
        if reason == CloseReason.ALL_NUMBERS_DRAWN:
            payload.totalNumbers = len(game.drawn_numbers)
        await self._hub.publish(game.id, events.GAME_CLOSED, payload)
        logger.info(f"Game {game.id} closed ({reason.value})")
