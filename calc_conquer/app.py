"""Pygame UI shell for Calculate and Conquer.

Menus walk the player through operation, practice mode, practice number and
duration, then push a ``GameScreen`` that renders the session and forwards
input. All rules, timing and scoring live in the core modules; this layer only
draws the latest ``GameState`` and turns keys and mouse movement into intents.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .clock import RealClock
from .game_core import (
    ALLOWED_DURATIONS_S,
    PLAY_AREA,
    GameConfiguration,
    GameState,
    GameStatus,
    Operation,
    PracticeMode,
)
from .problems import ProblemGenerator
from .scores import SqliteScoreStore, format_score_key
from .settings import AppSettings, configure_logging
from .update_loop import KEYBOARD_STEP, GameSession

logger = logging.getLogger(__name__)

WINDOW_SIZE = (960, 720)
TARGET_FPS = 60

BG = (3, 9, 78)
PANEL_BG = (8, 18, 104)
BORDER = (226, 236, 255)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (186, 200, 224)
GOOD = (96, 214, 140)
BAD = (232, 96, 96)
GOLD = (255, 214, 90)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    @property
    def top(self) -> Screen | None:
        return self._screens[-1] if self._screens else None

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def pop_to_root(self) -> None:
        del self._screens[1:]

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


def _fit_label(font: pygame.font.Font, label: str, max_width: int) -> str:
    if max_width <= 0:
        return ""
    if font.size(label)[0] <= max_width:
        return label
    clipped = label
    while clipped and font.size(f"{clipped}...")[0] > max_width:
        clipped = clipped[:-1]
    return f"{clipped}..." if clipped else "..."


class MenuScreen:
    def __init__(
        self,
        app: App,
        title: str,
        items: list[MenuItem],
        *,
        is_root: bool = False,
        subtitle: str = "",
    ) -> None:
        self._app = app
        self._title = title
        self._subtitle = subtitle
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    @property
    def title(self) -> str:
        return self._title

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            self._handle_key(event.key)

    def _handle_key(self, key: int) -> None:
        if key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._back()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)

        margin = max(10, min(26, w // 34))
        frame = pygame.Rect(margin, margin, max(260, w - margin * 2), max(220, h - margin * 2))
        pygame.draw.rect(surface, PANEL_BG, frame)
        pygame.draw.rect(surface, BORDER, frame, 2)

        title = self._title_font.render(self._title, True, TEXT_MAIN)
        surface.blit(title, title.get_rect(midtop=(frame.centerx, frame.y + 18)))
        y = frame.y + 18 + title.get_height() + 8
        if self._subtitle:
            sub = self._hint_font.render(self._subtitle, True, TEXT_MUTED)
            surface.blit(sub, sub.get_rect(midtop=(frame.centerx, y)))
            y += sub.get_height() + 8

        list_rect = pygame.Rect(frame.x + 24, y + 10, frame.w - 48, frame.bottom - y - 64)
        pygame.draw.rect(surface, (6, 13, 92), list_rect)
        pygame.draw.rect(surface, (78, 102, 170), list_rect, 1)

        item_count = max(1, len(self._items))
        row_h = max(24, min(44, (list_rect.h - 8 * (item_count + 1)) // item_count))
        row_y = list_rect.y + 8
        for idx, item in enumerate(self._items):
            row = pygame.Rect(list_rect.x + 12, row_y, list_rect.w - 24, row_h)
            selected = idx == self._selected
            pygame.draw.rect(surface, (244, 248, 255) if selected else (9, 20, 106), row)
            pygame.draw.rect(surface, (120, 142, 196) if selected else (62, 84, 152), row, 2 if selected else 1)
            color = (14, 26, 74) if selected else TEXT_MAIN
            label = _fit_label(self._item_font, item.label, row.w - 20)
            text = self._item_font.render(label, True, color)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            row_y += row_h + 8

        footer = "Up/Down: Choose  |  Enter/Space: Select  |  Esc: Back"
        foot = self._hint_font.render(footer, True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(frame.centerx, frame.bottom - 12)))


class HighScoresScreen:
    def __init__(self, app: App, *, store: SqliteScoreStore) -> None:
        self._app = app
        self._scores = store.all_scores()
        self._font = pygame.font.Font(None, 30)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        surface.fill(BG)
        title = self._app.font.render("High Scores", True, TEXT_MAIN)
        surface.blit(title, (40, 40))

        scores = self._scores
        y = 100
        if not scores:
            empty = self._font.render("No high scores yet. Go play!", True, TEXT_MUTED)
            surface.blit(empty, (40, y))
        for key, entry in scores.items():
            line = f"{format_score_key(key)}: {entry.score}  ({entry.recorded_at_utc[:10]})"
            text = self._font.render(line, True, TEXT_MAIN)
            surface.blit(text, (40, y))
            y += 32
            if y > surface.get_height() - 60:
                break

        hint = self._font.render("Press any key to return", True, TEXT_MUTED)
        surface.blit(hint, (40, surface.get_height() - 50))


class GameScreen:
    """Renders a ``GameSession`` and translates input into intents.

    The logical play area is drawn onto a fixed-size canvas and scaled into
    the window, so mouse positions are mapped back into play coordinates.
    """

    def __init__(self, app: App, *, session: GameSession, configuration: GameConfiguration) -> None:
        self._app = app
        self._session = session
        self._configuration = configuration
        self._canvas = pygame.Surface((PLAY_AREA.play_width, PLAY_AREA.play_height))
        self._view = pygame.Rect(0, 0, PLAY_AREA.play_width, PLAY_AREA.play_height)
        self._hud_font = pygame.font.Font(None, 30)
        self._problem_font = pygame.font.Font(None, 64)
        self._answer_font = pygame.font.Font(None, 34)
        self._best = session.best_score(configuration)
        self._session.start_game(configuration)

    @property
    def session(self) -> GameSession:
        return self._session

    def handle_event(self, event: pygame.event.Event) -> None:
        state = self._session.state
        if event.type == pygame.KEYDOWN:
            if event.key == pygame.K_ESCAPE:
                self._leave()
            elif state.status is GameStatus.GAME_OVER:
                if event.key == pygame.K_r:
                    self._best = self._session.best_score(self._configuration)
                    self._session.start_game(self._configuration)
                elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
                    self._leave()
            elif event.key in (pygame.K_LEFT, pygame.K_a):
                self._session.nudge_player(-KEYBOARD_STEP)
            elif event.key in (pygame.K_RIGHT, pygame.K_d):
                self._session.nudge_player(KEYBOARD_STEP)
            elif event.key == pygame.K_SPACE:
                self._session.shoot()
        elif event.type == pygame.MOUSEMOTION and state.status is GameStatus.PLAYING:
            self._session.move_player(self._to_play_x(event.pos[0]))
        elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1 and state.status is GameStatus.PLAYING:
            self._session.shoot()

    def _leave(self) -> None:
        self._session.return_to_menu()
        self._session.close()
        self._app.pop_to_root()

    def _to_play_x(self, window_x: int) -> float:
        if self._view.w <= 0:
            return float(window_x)
        return (window_x - self._view.x) * PLAY_AREA.play_width / self._view.w

    def render(self, surface: pygame.Surface) -> None:
        self._session.scheduler.pump()
        state = self._session.state

        self._draw_play_area(self._canvas, state)

        w, h = surface.get_size()
        scale = min(w / PLAY_AREA.play_width, h / PLAY_AREA.play_height)
        view_w = int(PLAY_AREA.play_width * scale)
        view_h = int(PLAY_AREA.play_height * scale)
        self._view = pygame.Rect((w - view_w) // 2, (h - view_h) // 2, view_w, view_h)

        surface.fill((0, 0, 0))
        surface.blit(pygame.transform.scale(self._canvas, self._view.size), self._view.topleft)

    def _draw_play_area(self, canvas: pygame.Surface, state: GameState) -> None:
        canvas.fill((6, 8, 30))

        if state.current_problem is not None:
            text = self._problem_font.render(state.current_problem.display, True, TEXT_MAIN)
            canvas.blit(text, text.get_rect(midtop=(PLAY_AREA.play_width // 2, 20)))

        radius = PLAY_AREA.candidate_size // 2
        for candidate in state.candidates:
            color = (70, 96, 190)
            if state.revealing_answer:
                color = GOOD if candidate.is_correct else (60, 60, 80)
            center = (int(candidate.x), int(candidate.y))
            pygame.draw.circle(canvas, color, center, radius)
            pygame.draw.circle(canvas, BORDER, center, radius, 2)
            label = self._answer_font.render(str(candidate.value), True, TEXT_MAIN)
            canvas.blit(label, label.get_rect(center=center))

        for projectile in state.projectiles:
            pygame.draw.rect(canvas, GOLD, pygame.Rect(int(projectile.x) - 2, int(projectile.y) - 6, 4, 12))

        size = PLAY_AREA.player_size
        base_y = PLAY_AREA.play_height - 10
        x = int(state.player_x)
        pygame.draw.polygon(canvas, (120, 200, 255), [(x, base_y - size), (x - size // 2, base_y), (x + size // 2, base_y)])

        self._draw_hud(canvas, state)
        if state.status is GameStatus.GAME_OVER:
            self._draw_game_over(canvas, state)

    def _draw_hud(self, canvas: pygame.Surface, state: GameState) -> None:
        seconds = int(state.time_remaining_s + 0.999)
        parts = [
            f"Score: {state.score}",
            f"Level: {state.level}",
            f"Lives: {'*' * state.lives}",
            f"Time: {seconds // 60}:{seconds % 60:02d}",
        ]
        if self._best > 0:
            parts.append(f"High: {self._best}")
        text = self._hud_font.render("   ".join(parts), True, TEXT_MUTED)
        canvas.blit(text, (12, PLAY_AREA.play_height - 36 - PLAY_AREA.player_size))

    def _draw_game_over(self, canvas: pygame.Surface, state: GameState) -> None:
        panel = pygame.Rect(0, 0, 460, 280)
        panel.center = (PLAY_AREA.play_width // 2, PLAY_AREA.play_height // 2)
        pygame.draw.rect(canvas, PANEL_BG, panel)
        pygame.draw.rect(canvas, BORDER, panel, 2)

        y = panel.y + 24
        for line, color in game_over_lines(state, self._best):
            text = self._hud_font.render(line, True, color)
            canvas.blit(text, text.get_rect(midtop=(panel.centerx, y)))
            y += 46


def game_over_lines(state: GameState, best: int) -> list[tuple[str, tuple[int, int, int]]]:
    lines = [
        ("Game Over!", BAD),
        (f"Final Score: {state.score}", TEXT_MAIN),
        (f"Level Reached: {state.level}", TEXT_MAIN),
    ]
    if state.new_best:
        lines.append(("New High Score!", GOLD))
    elif best > 0:
        lines.append((f"High Score: {best}", TEXT_MUTED))
    lines.append(("Enter: Menu   R: Play again", TEXT_MUTED))
    return lines


def _build_menus(app: App, *, session_factory: Callable[[], GameSession], store: SqliteScoreStore) -> MenuScreen:
    def start(configuration: GameConfiguration) -> None:
        app.push(GameScreen(app, session=session_factory(), configuration=configuration))

    def duration_menu(operation: Operation, mode: PracticeMode, fixed: int | None) -> None:
        items: list[MenuItem] = []
        for duration in ALLOWED_DURATIONS_S:
            cfg = GameConfiguration(operation=operation, practice_mode=mode, fixed_operand=fixed, duration_s=duration)
            best = store.lookup(cfg)
            label = f"{duration} Seconds" + (f"  (best {best})" if best > 0 else "")
            items.append(MenuItem(label, lambda cfg=cfg: start(cfg)))
        items.append(MenuItem("Back", app.pop))
        app.push(MenuScreen(app, "Practice Duration", items, subtitle=operation.label))

    def number_menu(operation: Operation) -> None:
        items = [
            MenuItem(str(n), lambda n=n: duration_menu(operation, PracticeMode.SPECIFIC, n))
            for n in range(0, operation.operand_max + 1)
        ]
        items.append(MenuItem("Back", app.pop))
        app.push(MenuScreen(app, "Practice Number", items, subtitle=operation.label))

    def mode_menu(operation: Operation) -> None:
        items = [
            MenuItem("All Numbers", lambda: duration_menu(operation, PracticeMode.ALL, None)),
            MenuItem("Specific Number", lambda: number_menu(operation)),
            MenuItem("Back", app.pop),
        ]
        app.push(MenuScreen(app, "Practice Mode", items, subtitle=operation.label))

    operation_items = [MenuItem(f"{op.label} ({op.symbol})", lambda op=op: mode_menu(op)) for op in Operation]
    operation_items.append(MenuItem("Back", app.pop))
    operations = MenuScreen(app, "Choose Operation", operation_items)

    main_items = [
        MenuItem("Play", lambda: app.push(operations)),
        MenuItem("High Scores", lambda: app.push(HighScoresScreen(app, store=store))),
        MenuItem("Quit", app.quit),
    ]
    return MenuScreen(app, "Calculate and Conquer", main_items, is_root=True, subtitle="Shoot the correct answer!")


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    settings: AppSettings | None = None,
) -> int:
    cfg = settings if settings is not None else AppSettings.from_env()
    configure_logging(cfg.log_level)

    pygame.init()
    pygame.display.set_caption("Calculate and Conquer")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)
    pygame.key.set_repeat(180, 30)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)

    store = SqliteScoreStore(cfg.db_path)
    real_clock = RealClock()
    # One problem stream per process so reruns of a seed replay the same rounds.
    problems = ProblemGenerator(seed=cfg.seed)
    logger.info("Seed %d, scores at %s", cfg.seed, cfg.db_path)

    def new_session() -> GameSession:
        return GameSession(clock=real_clock, problems=problems, scores=store)

    app.push(_build_menus(app, session_factory=new_session, store=store))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        top = app.top
        if isinstance(top, GameScreen):
            top.session.close()
        pygame.quit()

    return 0
