"""Per-frame driver for a game session.

``GameSession`` owns the single committed ``GameState`` and the two scheduled
tasks that move it forward on their own: the frame loop (timer, projectiles,
collisions) and the reveal delay that loads the next problem after a wrong
hit. Both are ``ScheduledCall`` handles on a ``FrameScheduler`` and are
re-synchronised after every dispatch, so neither can fire once the condition
that armed it is gone.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable

from .clock import Clock
from .engine import (
    Action,
    AdvanceAfterReveal,
    MovePlayer,
    ResolveHit,
    ReturnToMenu,
    Shoot,
    StartGame,
    TickGame,
    TickProjectiles,
    TickTimer,
    initial_state,
    transition,
)
from .game_core import (
    FRAME_BASELINE_S,
    HIT_RADIUS,
    REVEAL_DELAY_S,
    Candidate,
    GameConfiguration,
    GameState,
    GameStatus,
    Projectile,
)
from .problems import ProblemGenerator
from .scheduler import FrameScheduler, ScheduledCall
from .scores import ScoreStore
from .settings import validate_configuration

logger = logging.getLogger(__name__)

KEYBOARD_STEP = 20.0


def detect_collisions(
    projectiles: Iterable[Projectile],
    candidates: Iterable[Candidate],
    *,
    hit_radius: float = HIT_RADIUS,
) -> list[str]:
    """Return ids of hit candidates in the order they should be resolved.

    Each projectile hits at most one candidate (the first in list order within
    range) and each candidate is hit at most once per frame.
    """

    targets = list(candidates)
    hit: list[str] = []
    for projectile in projectiles:
        for candidate in targets:
            if candidate.id in hit:
                continue
            if math.hypot(projectile.x - candidate.x, projectile.y - candidate.y) < hit_radius:
                hit.append(candidate.id)
                break
    return hit


class GameSession:
    def __init__(
        self,
        *,
        clock: Clock,
        scheduler: FrameScheduler | None = None,
        problems: ProblemGenerator | None = None,
        scores: ScoreStore | None = None,
        seed: int | None = None,
    ) -> None:
        self._clock = clock
        self._scheduler = scheduler if scheduler is not None else FrameScheduler(clock)
        self._problems = problems if problems is not None else ProblemGenerator(seed=seed)
        self._scores = scores

        self._state: GameState = initial_state()
        self._frame_call: ScheduledCall | None = None
        self._reveal_call: ScheduledCall | None = None
        self._last_frame_s: float | None = None
        self._in_frame = False

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def scheduler(self) -> FrameScheduler:
        return self._scheduler

    @property
    def frame_loop_active(self) -> bool:
        return self._in_frame or (self._frame_call is not None and self._frame_call.active)

    @property
    def reveal_pending(self) -> bool:
        return self._reveal_call is not None and self._reveal_call.active

    # -- Intents ------------------------------------------------------------
    def start_game(self, configuration: GameConfiguration) -> GameState:
        validate_configuration(configuration)
        logger.info(
            "Starting %s game (%s, %ds)",
            configuration.operation.value,
            configuration.practice_mode.value,
            configuration.duration_s,
        )
        return self.dispatch(StartGame(configuration))

    def move_player(self, x: float) -> GameState:
        return self.dispatch(MovePlayer(x))

    def nudge_player(self, dx: float) -> GameState:
        if self._state.status is not GameStatus.PLAYING:
            return self._state
        return self.dispatch(MovePlayer(self._state.player_x + dx))

    def shoot(self) -> GameState:
        return self.dispatch(Shoot())

    def return_to_menu(self) -> GameState:
        return self.dispatch(ReturnToMenu())

    def best_score(self, configuration: GameConfiguration | None = None) -> int:
        cfg = configuration if configuration is not None else self._state.configuration
        if cfg is None or self._scores is None:
            return 0
        return self._scores.lookup(cfg)

    # -- Dispatch -----------------------------------------------------------
    def dispatch(self, action: Action) -> GameState:
        prev = self._state
        self._state = transition(prev, action, problems=self._problems, scores=self._scores)
        if self._state is not prev:
            self._sync_tasks(prev)
        return self._state

    def close(self) -> None:
        """Cancel the frame loop and any pending reveal."""

        self._cancel_frame_loop()
        self._cancel_reveal()

    def _sync_tasks(self, prev: GameState) -> None:
        state = self._state

        if state.status is GameStatus.PLAYING:
            if prev.status is not GameStatus.PLAYING:
                self._last_frame_s = None
            if not self.frame_loop_active:
                self._frame_call = self._scheduler.request_frame(self._on_frame)
        else:
            self._cancel_frame_loop()
            if prev.status is GameStatus.PLAYING and state.status is GameStatus.GAME_OVER:
                logger.info("Game over: score=%d level=%d new_best=%s", state.score, state.level, state.new_best)

        want_reveal = state.revealing_answer and state.status is GameStatus.PLAYING
        had_reveal = (
            prev.revealing_answer
            and prev.status is GameStatus.PLAYING
            and prev.configuration is state.configuration
        )
        if not want_reveal:
            self._cancel_reveal()
        elif not had_reveal or not self.reveal_pending:
            self._cancel_reveal()
            self._reveal_call = self._scheduler.call_later(REVEAL_DELAY_S, self._on_reveal_elapsed)

    def _cancel_frame_loop(self) -> None:
        if self._frame_call is not None:
            self._frame_call.cancel()
            self._frame_call = None

    def _cancel_reveal(self) -> None:
        if self._reveal_call is not None:
            self._reveal_call.cancel()
            self._reveal_call = None

    # -- Scheduled callbacks -----------------------------------------------
    def _on_reveal_elapsed(self) -> None:
        self._reveal_call = None
        logger.debug("Reveal elapsed, dealing next problem")
        self.dispatch(AdvanceAfterReveal())

    def _on_frame(self) -> None:
        self._frame_call = None
        if self._state.status is not GameStatus.PLAYING:
            return

        now_s = self._clock.now()
        elapsed_s = 0.0 if self._last_frame_s is None else max(0.0, now_s - self._last_frame_s)
        self._last_frame_s = now_s
        delta_frames = elapsed_s / FRAME_BASELINE_S

        self._in_frame = True
        try:
            self.dispatch(TickTimer(delta_frames * FRAME_BASELINE_S))
            self.dispatch(TickGame(delta_frames))
            self.dispatch(TickProjectiles())
            for candidate_id in detect_collisions(self._state.projectiles, self._state.candidates):
                logger.debug("Projectile hit %s", candidate_id)
                self.dispatch(ResolveHit(candidate_id))
        finally:
            self._in_frame = False

        if self._state.status is GameStatus.PLAYING:
            self._frame_call = self._scheduler.request_frame(self._on_frame)
