"""Unit tests for the pure transition function.

No clock or scheduler is involved: every step is an explicit action.
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from calc_conquer.engine import (
    PROJECTILE_SPAWN_Y,
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
from calc_conquer.game_core import (
    PLAY_WIDTH,
    PLAYER_SIZE,
    GameConfiguration,
    GameState,
    GameStatus,
    Operation,
)
from calc_conquer.problems import ProblemGenerator
from calc_conquer.scores import MemoryScoreStore
from calc_conquer.update_loop import detect_collisions

CFG = GameConfiguration(operation=Operation.MULTIPLICATION, duration_s=60)


class CountingStore(MemoryScoreStore):
    def __init__(self) -> None:
        super().__init__()
        self.calls: list[int] = []

    def record_if_higher(self, configuration: GameConfiguration, score: int) -> bool:
        self.calls.append(score)
        return super().record_if_higher(configuration, score)


@pytest.fixture
def problems() -> ProblemGenerator:
    return ProblemGenerator(seed=31)


def _step(state: GameState, action, problems: ProblemGenerator, scores=None) -> GameState:
    return transition(state, action, problems=problems, scores=scores)


def _started(problems: ProblemGenerator) -> GameState:
    return _step(initial_state(), StartGame(CFG), problems)


def _wrong_id(state: GameState) -> str:
    return next(c.id for c in state.candidates if not c.is_correct)


def _correct_id(state: GameState) -> str:
    correct = state.correct_candidate
    assert correct is not None
    return correct.id


def test_start_resets_counters_and_deals_a_round(problems: ProblemGenerator) -> None:
    dirty = replace(initial_state(), score=90, lives=1, level=2, revealing_answer=True)
    state = _step(dirty, StartGame(CFG), problems)

    assert state.status is GameStatus.PLAYING
    assert state.configuration == CFG
    assert (state.score, state.lives, state.level) == (0, 3, 1)
    assert state.time_remaining_s == 60.0
    assert state.revealing_answer is False
    assert state.current_problem is not None
    assert len(state.candidates) == 4
    assert sum(1 for c in state.candidates if c.is_correct) == 1


def test_transitions_do_not_mutate_input(problems: ProblemGenerator) -> None:
    state = _started(problems)
    before = state.candidates
    shot = _step(state, Shoot(), problems)
    assert state.projectiles == ()
    assert shot is not state
    assert state.candidates is before


@pytest.mark.parametrize(
    ("target", "expected"),
    [(-500.0, PLAYER_SIZE / 2), (10_000.0, PLAY_WIDTH - PLAYER_SIZE / 2), (250.0, 250.0)],
)
def test_move_clamps_to_play_area(problems: ProblemGenerator, target: float, expected: float) -> None:
    state = _step(_started(problems), MovePlayer(target), problems)
    assert state.player_x == expected


def test_shoot_is_ignored_outside_play(problems: ProblemGenerator) -> None:
    menu = initial_state()
    assert _step(menu, Shoot(), problems) is menu


def test_shoot_spawns_projectile_above_player(problems: ProblemGenerator) -> None:
    state = _step(_started(problems), MovePlayer(300.0), problems)
    state = _step(state, Shoot(), problems)
    state = _step(state, Shoot(), problems)

    assert len(state.projectiles) == 2
    first, second = state.projectiles
    assert first.x == 300.0
    assert first.y == PROJECTILE_SPAWN_Y
    assert first.id != second.id


def test_projectiles_move_up_and_leave_play_area(problems: ProblemGenerator) -> None:
    state = _step(_started(problems), Shoot(), problems)
    state = _step(state, TickProjectiles(), problems)
    assert state.projectiles[0].y == PROJECTILE_SPAWN_Y - 8

    for _ in range(200):
        state = _step(state, TickProjectiles(), problems)
    assert state.projectiles == ()


def test_game_tick_is_a_placeholder(problems: ProblemGenerator) -> None:
    state = _started(problems)
    assert _step(state, TickGame(1.0), problems) is state


def test_correct_hits_score_and_level(problems: ProblemGenerator) -> None:
    state = _started(problems)
    for n in range(1, 13):
        previous_problem = state.current_problem
        state = _step(state, Shoot(), problems)
        state = _step(state, ResolveHit(_correct_id(state)), problems)
        assert state.score == 10 * n
        assert state.level == (10 * n) // 50 + 1
        assert state.projectiles == ()
        assert state.current_problem is not previous_problem
    assert state.lives == 3


def test_three_wrong_hits_end_the_game_on_the_third(problems: ProblemGenerator) -> None:
    store = CountingStore()
    state = _started(problems)

    state = _step(state, ResolveHit(_wrong_id(state)), problems, store)
    assert (state.lives, state.status, state.revealing_answer) == (2, GameStatus.PLAYING, True)
    state = _step(state, AdvanceAfterReveal(), problems, store)
    assert state.revealing_answer is False

    state = _step(state, ResolveHit(_wrong_id(state)), problems, store)
    assert (state.lives, state.status) == (1, GameStatus.PLAYING)
    state = _step(state, AdvanceAfterReveal(), problems, store)

    state = _step(state, ResolveHit(_wrong_id(state)), problems, store)
    assert state.lives == 0
    assert state.status is GameStatus.GAME_OVER
    assert state.revealing_answer is True
    assert store.calls == [0]


def test_wrong_hit_clears_projectiles_and_keeps_candidates(problems: ProblemGenerator) -> None:
    state = _step(_started(problems), Shoot(), problems)
    hit = _step(state, ResolveHit(_wrong_id(state)), problems)
    assert hit.projectiles == ()
    assert hit.candidates == state.candidates


def test_correct_hit_twice_is_a_no_op(problems: ProblemGenerator) -> None:
    state = _started(problems)

    correct_id = _correct_id(state)
    once = _step(state, ResolveHit(correct_id), problems)
    assert once.score == 10
    assert _step(once, ResolveHit(correct_id), problems) is once


def test_three_wrong_hits_in_a_row_end_the_game(problems: ProblemGenerator) -> None:
    store = CountingStore()
    state = _started(problems)
    wrong_ids = [c.id for c in state.candidates if not c.is_correct]
    assert len(wrong_ids) == 3

    for wrong_id in wrong_ids:
        state = _step(state, ResolveHit(wrong_id), problems, store)

    assert state.lives == 0
    assert state.status is GameStatus.GAME_OVER
    assert store.calls == [0]


def test_repeated_wrong_hit_costs_a_life_each_time(problems: ProblemGenerator) -> None:
    state = _started(problems)
    wrong_id = _wrong_id(state)

    state = _step(state, ResolveHit(wrong_id), problems)
    state = _step(state, ResolveHit(wrong_id), problems)
    assert state.lives == 1
    assert state.status is GameStatus.PLAYING
    assert state.revealing_answer is True


def test_lives_stay_at_zero_after_game_over(problems: ProblemGenerator) -> None:
    state = replace(_started(problems), lives=1)
    over = _step(state, ResolveHit(_wrong_id(state)), problems)
    assert over.lives == 0
    assert _step(over, ResolveHit(_wrong_id(over)), problems) is over


def test_correct_hit_during_reveal_scores_and_ends_reveal(problems: ProblemGenerator) -> None:
    state = _started(problems)
    revealed = _step(state, ResolveHit(_wrong_id(state)), problems)
    assert revealed.revealing_answer is True

    scored = _step(revealed, ResolveHit(_correct_id(revealed)), problems)
    assert scored.score == 10
    assert scored.lives == 2
    assert scored.revealing_answer is False
    assert scored.current_problem is not revealed.current_problem
    # Nothing left to reveal, so a late advance keeps the round just dealt.
    assert _step(scored, AdvanceAfterReveal(), problems) is scored


def test_resolve_hit_unknown_candidate_is_ignored(problems: ProblemGenerator) -> None:
    state = _started(problems)
    assert _step(state, ResolveHit("answer-999-0"), problems) is state


def test_timer_expiry_ends_game_exactly_once(problems: ProblemGenerator) -> None:
    store = CountingStore()
    state = _started(problems)
    state = _step(state, ResolveHit(_correct_id(state)), problems, store)

    state = _step(state, TickTimer(59.5), problems, store)
    assert state.status is GameStatus.PLAYING
    assert state.time_remaining_s == pytest.approx(0.5)

    state = _step(state, TickTimer(5.0), problems, store)
    assert state.status is GameStatus.GAME_OVER
    assert state.time_remaining_s == 0.0
    assert state.new_best is True

    for _ in range(3):
        state = _step(state, TickTimer(1.0), problems, store)
    assert state.time_remaining_s == 0.0
    assert store.calls == [10]
    assert store.lookup(CFG) == 10


def test_timer_is_ignored_outside_play(problems: ProblemGenerator) -> None:
    menu = initial_state()
    assert _step(menu, TickTimer(1.0), problems) is menu


def test_last_life_lost_persists_high_score(problems: ProblemGenerator) -> None:
    store = MemoryScoreStore()
    store.record_if_higher(CFG, 20)

    state = replace(_started(problems), lives=1, score=30, level=1)
    state = _step(state, ResolveHit(_wrong_id(state)), problems, store)

    assert state.lives == 0
    assert state.status is GameStatus.GAME_OVER
    assert state.new_best is True
    assert store.lookup(CFG) == 30


def test_lower_score_does_not_replace_best(problems: ProblemGenerator) -> None:
    store = MemoryScoreStore()
    store.record_if_higher(CFG, 50)

    state = replace(_started(problems), lives=1, score=10)
    state = _step(state, ResolveHit(_wrong_id(state)), problems, store)
    assert state.new_best is False
    assert store.lookup(CFG) == 50


def test_advance_after_reveal_only_when_revealing(problems: ProblemGenerator) -> None:
    state = _started(problems)
    assert _step(state, AdvanceAfterReveal(), problems) is state

    revealed = _step(state, ResolveHit(_wrong_id(state)), problems)
    advanced = _step(revealed, AdvanceAfterReveal(), problems)
    assert advanced.revealing_answer is False
    assert advanced.current_problem is not revealed.current_problem
    assert {c.id for c in advanced.candidates}.isdisjoint({c.id for c in revealed.candidates})


def test_advance_after_reveal_ignored_after_game_over(problems: ProblemGenerator) -> None:
    state = replace(_started(problems), lives=1)
    over = _step(state, ResolveHit(_wrong_id(state)), problems)
    assert _step(over, AdvanceAfterReveal(), problems) is over


def test_return_to_menu_resets_everything(problems: ProblemGenerator) -> None:
    state = _step(_started(problems), Shoot(), problems)
    menu = _step(state, ReturnToMenu(), problems)
    assert menu == initial_state()
    assert menu.configuration is None


def test_scenario_shoot_the_correct_answer(problems: ProblemGenerator) -> None:
    state = _started(problems)
    assert state.status is GameStatus.PLAYING
    assert len(state.candidates) == 4
    assert sum(1 for c in state.candidates if c.is_correct) == 1

    target = state.correct_candidate
    assert target is not None
    state = _step(state, MovePlayer(target.x), problems)
    state = _step(state, Shoot(), problems)
    first_problem = state.current_problem

    for _ in range(200):
        state = _step(state, TickProjectiles(), problems)
        hits = detect_collisions(state.projectiles, state.candidates)
        if hits:
            assert hits == [target.id]
            state = _step(state, ResolveHit(hits[0]), problems)
            break
    else:
        pytest.fail("projectile never reached the answer row")

    assert state.score == 10
    assert state.projectiles == ()
    assert state.current_problem is not first_problem
