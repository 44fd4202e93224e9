from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .game_core import GameConfiguration, PracticeMode

SCHEMA_VERSION = 1

logger = logging.getLogger(__name__)


class ScoreStore(Protocol):
    """Best-score lookup keyed by game configuration."""

    def lookup(self, configuration: GameConfiguration) -> int:
        """Return the best recorded score, or 0 if there is none."""
        ...

    def record_if_higher(self, configuration: GameConfiguration, score: int) -> bool:
        """Store ``score`` if it beats the current best. Returns True on a new best."""
        ...


@dataclass(frozen=True, slots=True)
class HighScore:
    score: int
    recorded_at_utc: str


def score_key(configuration: GameConfiguration) -> str:
    op = configuration.operation.value
    duration = f"{int(configuration.duration_s)}s"
    if configuration.practice_mode is PracticeMode.SPECIFIC and configuration.fixed_operand is not None:
        return f"{op}-specific-{configuration.fixed_operand}-{duration}"
    return f"{op}-all-{duration}"


def format_score_key(key: str) -> str:
    """Human label for a score key, e.g. ``Multiplication - Practice 7 (60s)``."""

    parts = key.split("-")
    operation = parts[0].capitalize()
    duration = parts[-1]
    if len(parts) >= 4 and parts[1] == "specific":
        return f"{operation} - Practice {parts[2]} ({duration})"
    return f"{operation} - All Numbers ({duration})"


def _utc_now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time()))


def open_db(path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA synchronous=NORMAL;")
    _migrate(conn)
    return conn


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS high_score (
                key TEXT PRIMARY KEY,
                score INTEGER NOT NULL,
                recorded_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


class SqliteScoreStore:
    """Durable best scores in a small sqlite file.

    A broken or unreadable database never interrupts play: failures are
    logged and reported as "no score recorded".
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    def lookup(self, configuration: GameConfiguration) -> int:
        try:
            conn = open_db(self._path)
            try:
                row = conn.execute(
                    "SELECT score FROM high_score WHERE key = ?", (score_key(configuration),)
                ).fetchone()
            finally:
                conn.close()
        except (sqlite3.Error, OSError):
            logger.warning("Failed to load high score from %s", self._path, exc_info=True)
            return 0
        return 0 if row is None else int(row[0])

    def record_if_higher(self, configuration: GameConfiguration, score: int) -> bool:
        key = score_key(configuration)
        try:
            conn = open_db(self._path)
            try:
                with conn:
                    row = conn.execute("SELECT score FROM high_score WHERE key = ?", (key,)).fetchone()
                    current = 0 if row is None else int(row[0])
                    if score <= current:
                        return False
                    conn.execute(
                        """
                        INSERT INTO high_score(key, score, recorded_at_utc) VALUES (?, ?, ?)
                        ON CONFLICT(key) DO UPDATE SET
                            score = excluded.score,
                            recorded_at_utc = excluded.recorded_at_utc
                        """,
                        (key, int(score), _utc_now_iso()),
                    )
            finally:
                conn.close()
        except (sqlite3.Error, OSError):
            logger.warning("Failed to save high score to %s", self._path, exc_info=True)
            return False
        logger.info("New best %d for %s", score, key)
        return True

    def all_scores(self) -> dict[str, HighScore]:
        try:
            conn = open_db(self._path)
            try:
                rows = conn.execute("SELECT key, score, recorded_at_utc FROM high_score ORDER BY key").fetchall()
            finally:
                conn.close()
        except (sqlite3.Error, OSError):
            logger.warning("Failed to load high scores from %s", self._path, exc_info=True)
            return {}
        return {str(k): HighScore(score=int(s), recorded_at_utc=str(at)) for k, s, at in rows}


class MemoryScoreStore:
    """In-process store with the same contract as the sqlite one."""

    def __init__(self) -> None:
        self._scores: dict[str, HighScore] = {}

    def lookup(self, configuration: GameConfiguration) -> int:
        entry = self._scores.get(score_key(configuration))
        return 0 if entry is None else entry.score

    def record_if_higher(self, configuration: GameConfiguration, score: int) -> bool:
        key = score_key(configuration)
        if score <= self.lookup(configuration):
            return False
        self._scores[key] = HighScore(score=int(score), recorded_at_utc=_utc_now_iso())
        return True

    def all_scores(self) -> dict[str, HighScore]:
        return dict(sorted(self._scores.items()))
