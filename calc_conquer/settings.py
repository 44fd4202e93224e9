from __future__ import annotations

import logging
import os
import random
from dataclasses import dataclass
from pathlib import Path

from .game_core import ALLOWED_DURATIONS_S, GameConfiguration, PracticeMode

DB_PATH_ENV = "CALC_CONQUER_DB_PATH"
SEED_ENV = "CALC_CONQUER_SEED"
LOG_LEVEL_ENV = "CALC_CONQUER_LOG_LEVEL"


class ConfigurationError(ValueError):
    """A game configuration that must not reach the engine."""


def validate_configuration(configuration: GameConfiguration) -> None:
    fixed = configuration.fixed_operand
    if configuration.practice_mode is PracticeMode.SPECIFIC:
        if fixed is None:
            raise ConfigurationError("specific practice mode needs a fixed operand")
        hi = configuration.operation.operand_max
        if not (0 <= fixed <= hi):
            raise ConfigurationError(f"fixed operand must be in [0, {hi}] for {configuration.operation.value}")
    elif fixed is not None:
        raise ConfigurationError("fixed operand is only allowed in specific practice mode")

    if configuration.duration_s not in ALLOWED_DURATIONS_S:
        allowed = ", ".join(str(d) for d in ALLOWED_DURATIONS_S)
        raise ConfigurationError(f"duration_s must be one of {allowed}")


@dataclass(frozen=True, slots=True)
class AppSettings:
    db_path: Path
    seed: int
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "AppSettings":
        explicit = os.environ.get(DB_PATH_ENV)
        db_path = Path(explicit).expanduser() if explicit else Path.home() / ".calc_conquer_scores.sqlite3"

        raw_seed = os.environ.get(SEED_ENV, "").strip()
        try:
            seed = int(raw_seed) if raw_seed else new_seed()
        except ValueError:
            seed = new_seed()

        log_level = os.environ.get(LOG_LEVEL_ENV, "WARNING").strip().upper() or "WARNING"
        return cls(db_path=db_path, seed=seed, log_level=log_level)


def new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def configure_logging(level: str) -> None:
    resolved = logging.getLevelName(level)
    if not isinstance(resolved, int):
        resolved = logging.WARNING
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
