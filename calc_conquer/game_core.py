"""Pure game model for Calculate and Conquer.

Everything here is plain immutable data plus a seeded RNG wrapper. Nothing in
this module touches pygame, the clock or the score store, so the engine built
on top of it can be driven entirely from tests.

Coordinates are reported in a fixed logical play area of ``PLAY_WIDTH`` by
``PLAY_HEIGHT`` units with ``y`` growing downwards; the ship sits near the
bottom edge and the answer candidates hang near the top.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import StrEnum
from collections.abc import MutableSequence
from typing import TypeVar

T = TypeVar("T")

PLAY_WIDTH = 800
PLAY_HEIGHT = 600
PLAYER_SIZE = 60
CANDIDATE_SIZE = 50

PROJECTILE_SPEED = 8.0  # units per projectile tick, towards y=0
CANDIDATE_Y = 100.0
CANDIDATE_COUNT = 4
HIT_RADIUS = CANDIDATE_SIZE / 2

STARTING_LIVES = 3
POINTS_PER_CORRECT = 10
POINTS_PER_LEVEL = 50

REVEAL_DELAY_S = 2.0
FRAME_BASELINE_S = 1.0 / 60.0
ALLOWED_DURATIONS_S = (30, 60, 90)


class Operation(StrEnum):
    ADDITION = "addition"
    SUBTRACTION = "subtraction"
    MULTIPLICATION = "multiplication"
    DIVISION = "division"

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]

    @property
    def operand_max(self) -> int:
        # Times tables run to 12, sums and differences to 10.
        if self in (Operation.MULTIPLICATION, Operation.DIVISION):
            return 12
        return 10

    @property
    def label(self) -> str:
        return self.value.capitalize()


_SYMBOLS = {
    Operation.ADDITION: "+",
    Operation.SUBTRACTION: "−",
    Operation.MULTIPLICATION: "×",
    Operation.DIVISION: "÷",
}


class PracticeMode(StrEnum):
    ALL = "all"
    SPECIFIC = "specific"


class GameStatus(StrEnum):
    MENU = "menu"
    PLAYING = "playing"
    GAME_OVER = "game_over"


@dataclass(frozen=True, slots=True)
class GameConfiguration:
    """Settings chosen on the menu. Also the key for the best-score table."""

    operation: Operation
    practice_mode: PracticeMode = PracticeMode.ALL
    fixed_operand: int | None = None
    duration_s: int = 60


@dataclass(frozen=True, slots=True)
class MathProblem:
    operand_a: int
    operand_b: int
    operation: Operation
    correct_answer: int

    @property
    def display(self) -> str:
        return f"{self.operand_a} {self.operation.symbol} {self.operand_b} = ?"


@dataclass(frozen=True, slots=True)
class Candidate:
    id: str
    value: int
    x: float
    y: float
    is_correct: bool


@dataclass(frozen=True, slots=True)
class Projectile:
    id: str
    x: float
    y: float
    speed: float = PROJECTILE_SPEED


@dataclass(frozen=True, slots=True)
class PlayArea:
    """Coordinate space the engine reports positions in."""

    play_width: int = PLAY_WIDTH
    play_height: int = PLAY_HEIGHT
    player_size: int = PLAYER_SIZE
    candidate_size: int = CANDIDATE_SIZE


PLAY_AREA = PlayArea()


@dataclass(frozen=True, slots=True)
class GameState:
    status: GameStatus = GameStatus.MENU
    configuration: GameConfiguration | None = None
    current_problem: MathProblem | None = None
    candidates: tuple[Candidate, ...] = ()
    projectiles: tuple[Projectile, ...] = ()
    player_x: float = PLAY_WIDTH / 2
    score: int = 0
    lives: int = STARTING_LIVES
    level: int = 1
    revealing_answer: bool = False
    time_remaining_s: float = 0.0
    projectile_serial: int = 0
    new_best: bool = False

    @property
    def correct_candidate(self) -> Candidate | None:
        for candidate in self.candidates:
            if candidate.is_correct:
                return candidate
        return None


def level_for_score(score: int) -> int:
    return score // POINTS_PER_LEVEL + 1


def clamp(value: float, lo: float, hi: float) -> float:
    return float(lo) if value < lo else float(hi) if value > hi else float(value)


class SeededRng:
    """Seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def coin(self) -> bool:
        return self._rng.random() < 0.5

    def shuffle(self, items: MutableSequence[T]) -> None:
        """Fisher-Yates shuffle in place."""

        for i in range(len(items) - 1, 0, -1):
            j = self._rng.randint(0, i)
            items[i], items[j] = items[j], items[i]
