from __future__ import annotations

from .game_core import (
    CANDIDATE_COUNT,
    CANDIDATE_Y,
    PLAY_WIDTH,
    Candidate,
    GameConfiguration,
    MathProblem,
    Operation,
    PracticeMode,
    SeededRng,
)

DISTRACTOR_SPREAD = 5
DISTRACTOR_MAX_ATTEMPTS = 100


def apply_operation(operation: Operation, a: int, b: int) -> int:
    if operation is Operation.ADDITION:
        return a + b
    if operation is Operation.SUBTRACTION:
        return a - b
    if operation is Operation.MULTIPLICATION:
        return a * b
    return a // b


class ProblemGenerator:
    """Generates arithmetic problems and the four answer candidates shown for each.

    Every random choice (operands, distractors, shuffle) comes from one seeded
    stream, so two generators built with the same seed deal identical rounds.
    Division problems are built backwards from divisor and quotient so the
    answer is always a whole number.
    """

    def __init__(self, *, seed: int | None = None, rng: SeededRng | None = None) -> None:
        self._rng = rng if rng is not None else SeededRng(seed)
        self._batch = 0

    def generate(self, operation: Operation, fixed_operand: int | None = None) -> MathProblem:
        hi = operation.operand_max

        if operation is Operation.DIVISION:
            divisor = self._rng.randint(1, hi) if fixed_operand is None else max(1, fixed_operand)
            quotient = self._rng.randint(0, hi)
            return MathProblem(divisor * quotient, divisor, operation, quotient)

        drawn = self._rng.randint(0, hi)
        if fixed_operand is None:
            a, b = self._rng.randint(0, hi), drawn
        elif operation is Operation.SUBTRACTION or self._rng.coin():
            a, b = drawn, fixed_operand
        else:
            a, b = fixed_operand, drawn

        if operation is Operation.SUBTRACTION and a < b:
            a, b = b, a

        return MathProblem(a, b, operation, apply_operation(operation, a, b))

    def generate_distractors(self, correct_answer: int, count: int = 3) -> list[int]:
        """Return ``count`` distinct wrong answers close to ``correct_answer``.

        Values are sampled from a small band around the answer and rejected on
        collision. If the attempt cap runs out (tiny answers leave few
        non-negative neighbours), the list is topped up with the next unused
        values above the answer.
        """

        picked: list[int] = []
        taken = {correct_answer}
        attempts = 0
        while len(picked) < count and attempts < DISTRACTOR_MAX_ATTEMPTS:
            attempts += 1
            offset = self._rng.randint(-DISTRACTOR_SPREAD, DISTRACTOR_SPREAD)
            value = correct_answer + offset
            if offset == 0 or value < 0 or value in taken:
                continue
            picked.append(value)
            taken.add(value)

        value = max(0, correct_answer)
        while len(picked) < count:
            value += 1
            if value not in taken:
                picked.append(value)
                taken.add(value)
        return picked

    def build_candidates(self, problem: MathProblem) -> tuple[Candidate, ...]:
        values = [problem.correct_answer, *self.generate_distractors(problem.correct_answer, CANDIDATE_COUNT - 1)]
        self._rng.shuffle(values)

        self._batch += 1
        spacing = PLAY_WIDTH / (len(values) + 1)
        return tuple(
            Candidate(
                id=f"answer-{self._batch}-{index}",
                value=value,
                x=spacing * (index + 1),
                y=CANDIDATE_Y,
                is_correct=value == problem.correct_answer,
            )
            for index, value in enumerate(values)
        )

    def next_round(self, configuration: GameConfiguration) -> tuple[MathProblem, tuple[Candidate, ...]]:
        fixed = configuration.fixed_operand if configuration.practice_mode is PracticeMode.SPECIFIC else None
        problem = self.generate(configuration.operation, fixed)
        return problem, self.build_candidates(problem)
