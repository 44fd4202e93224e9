"""Game state machine: a pure ``(state, action) -> state`` transition function.

Actions are small frozen records; ``transition`` matches on the action type
and always returns a fresh ``GameState`` (or the very same object when the
action does not apply). There are no timers in here. Time only moves when
the update loop dispatches ``TickTimer`` and ``TickProjectiles``, which keeps
every rule testable without a clock.

The only side effect is recording the final score through the injected
``ScoreStore`` when a game ends.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TypeAlias

from .game_core import (
    PLAY_HEIGHT,
    PLAY_WIDTH,
    PLAYER_SIZE,
    POINTS_PER_CORRECT,
    GameConfiguration,
    GameState,
    GameStatus,
    Projectile,
    clamp,
    level_for_score,
)
from .problems import ProblemGenerator
from .scores import ScoreStore

PROJECTILE_SPAWN_Y = PLAY_HEIGHT - PLAYER_SIZE - 10


@dataclass(frozen=True, slots=True)
class StartGame:
    configuration: GameConfiguration


@dataclass(frozen=True, slots=True)
class MovePlayer:
    x: float


@dataclass(frozen=True, slots=True)
class Shoot:
    pass


@dataclass(frozen=True, slots=True)
class TickProjectiles:
    pass


@dataclass(frozen=True, slots=True)
class TickGame:
    """Per-frame game tick. Candidates are stationary, so nothing moves yet."""

    delta_frames: float


@dataclass(frozen=True, slots=True)
class TickTimer:
    delta_s: float


@dataclass(frozen=True, slots=True)
class ResolveHit:
    candidate_id: str


@dataclass(frozen=True, slots=True)
class AdvanceAfterReveal:
    pass


@dataclass(frozen=True, slots=True)
class ReturnToMenu:
    pass


Action: TypeAlias = (
    StartGame
    | MovePlayer
    | Shoot
    | TickProjectiles
    | TickGame
    | TickTimer
    | ResolveHit
    | AdvanceAfterReveal
    | ReturnToMenu
)


def initial_state() -> GameState:
    return GameState()


def transition(
    state: GameState,
    action: Action,
    *,
    problems: ProblemGenerator,
    scores: ScoreStore | None = None,
) -> GameState:
    match action:
        case StartGame(configuration=configuration):
            problem, candidates = problems.next_round(configuration)
            return replace(
                initial_state(),
                status=GameStatus.PLAYING,
                configuration=configuration,
                current_problem=problem,
                candidates=candidates,
                time_remaining_s=float(configuration.duration_s),
                projectile_serial=state.projectile_serial,
            )

        case MovePlayer(x=x):
            half = PLAYER_SIZE / 2
            return replace(state, player_x=clamp(x, half, PLAY_WIDTH - half))

        case Shoot():
            if state.status is not GameStatus.PLAYING:
                return state
            serial = state.projectile_serial + 1
            projectile = Projectile(id=f"bullet-{serial}", x=state.player_x, y=PROJECTILE_SPAWN_Y)
            return replace(
                state,
                projectiles=(*state.projectiles, projectile),
                projectile_serial=serial,
            )

        case TickProjectiles():
            if not state.projectiles:
                return state
            moved = (replace(p, y=p.y - p.speed) for p in state.projectiles)
            return replace(state, projectiles=tuple(p for p in moved if p.y > 0))

        case TickGame():
            return state

        case TickTimer(delta_s=delta_s):
            return _tick_timer(state, delta_s, scores)

        case ResolveHit(candidate_id=candidate_id):
            return _resolve_hit(state, candidate_id, problems, scores)

        case AdvanceAfterReveal():
            if not state.revealing_answer or state.status is not GameStatus.PLAYING:
                return state
            if state.configuration is None:
                return state
            problem, candidates = problems.next_round(state.configuration)
            return replace(
                state,
                current_problem=problem,
                candidates=candidates,
                revealing_answer=False,
                projectiles=(),
            )

        case ReturnToMenu():
            return initial_state()

    return state


def _tick_timer(state: GameState, delta_s: float, scores: ScoreStore | None) -> GameState:
    if state.status is not GameStatus.PLAYING:
        return state
    remaining = max(0.0, state.time_remaining_s - max(0.0, delta_s))
    if remaining == 0.0 and state.time_remaining_s > 0.0:
        return _game_over(replace(state, time_remaining_s=0.0), scores)
    return replace(state, time_remaining_s=remaining)


def _resolve_hit(
    state: GameState,
    candidate_id: str,
    problems: ProblemGenerator,
    scores: ScoreStore | None,
) -> GameState:
    if state.status is not GameStatus.PLAYING or state.configuration is None:
        return state
    candidate = next((c for c in state.candidates if c.id == candidate_id), None)
    if candidate is None:
        return state

    if candidate.is_correct:
        score = state.score + POINTS_PER_CORRECT
        problem, candidates = problems.next_round(state.configuration)
        return replace(
            state,
            score=score,
            level=level_for_score(score),
            current_problem=problem,
            candidates=candidates,
            projectiles=(),
            revealing_answer=False,
        )

    lives = state.lives - 1
    if lives <= 0:
        return _game_over(replace(state, lives=0, revealing_answer=True), scores)
    return replace(state, lives=lives, revealing_answer=True, projectiles=())


def _game_over(state: GameState, scores: ScoreStore | None) -> GameState:
    new_best = False
    if scores is not None and state.configuration is not None:
        new_best = scores.record_if_higher(state.configuration, state.score)
    return replace(state, status=GameStatus.GAME_OVER, new_best=new_best)
