"""Pygame UI shell for the Pinball Flipper Recall Trainer.

Screens:
- Main menu
- Shot setup (anchors per flipper, ordering hints, quick fill)
- Presets (bundled or user JSON shot lists)
- Settings (initial randomness, drift cadence and magnitude, selection mode)
- Recall session (practice attempts, final recall, results)

Deterministic timing/scoring/RNG/state lives in pinball_trainer/* (core modules).
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Protocol

import pygame

from .clock import RealClock
from .grid import GRID_STEP, NOT_POSSIBLE, PERCENT_MAX, format_anchor, format_percent
from .persistence import default_db_path, default_shots_path, load_shots, record_session, save_shots
from .presets import PresetError, default_presets_dir, list_presets, load_preset, save_preset
from .recall_core import (
    Phase,
    RecallSession,
    RecallSnapshot,
    SelectionMode,
    SessionConfig,
    format_attempt,
    new_seed,
)
from .results import session_result_from_recall
from .scoring import SEVERITY_COLORS
from .shots import (
    BASE_ELEMENTS,
    LOCATIONS,
    Shot,
    Side,
    allowed_range,
    build_example_shots,
    can_start,
    evenly_spaced_values,
    move_shot,
    next_shot_id,
)

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"
WINDOW_SIZE = (960, 540)
TARGET_FPS = 60
MAX_SHOTS = 20
EXPORT_FILENAME = "pinball_trainer_preset.json"

BG = (3, 9, 78)
PANEL_BG = (8, 18, 104)
HEADER_BG = (18, 30, 118)
BORDER = (226, 236, 255)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (186, 200, 224)
ACTIVE_BG = (244, 248, 255)
ACTIVE_TEXT = (14, 26, 74)
WARN = (220, 38, 38)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


@dataclass(slots=True)
class TrainerContext:
    """State shared across screens: the editable shot list and session settings."""

    shots: list[Shot]
    config: SessionConfig = field(default_factory=SessionConfig)
    shots_path: Path | None = None
    db_path: Path | None = None
    presets_dir: Path = field(default_factory=default_presets_dir)
    toast: str = ""
    toast_until_ms: int = 0

    def set_shots(self, shots: list[Shot]) -> None:
        self.shots = list(shots)
        if self.shots_path is None:
            return
        try:
            save_shots(self.shots_path, self.shots)
        except OSError as exc:
            logger.warning("could not save shot list to %s: %s", self.shots_path, exc)

    def notify(self, message: str, *, duration_ms: int = 3200) -> None:
        self.toast = message
        self.toast_until_ms = pygame.time.get_ticks() + duration_ms


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

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # The root menu stays; it handles quitting itself.
        if len(self._screens) > 1:
            self._screens.pop()

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


def _draw_frame(surface: pygame.Surface, title: str, tag: str, fonts: tuple[pygame.font.Font, pygame.font.Font]) -> pygame.Rect:
    """Draw the shared panel chrome and return the content rect below the header."""

    title_font, hint_font = fonts
    w, h = surface.get_size()
    surface.fill(BG)
    margin = max(10, min(26, w // 34))
    frame = pygame.Rect(margin, margin, max(260, w - margin * 2), max(220, h - margin * 2))
    pygame.draw.rect(surface, PANEL_BG, frame)
    pygame.draw.rect(surface, BORDER, frame, 2)

    header = pygame.Rect(frame.x + 2, frame.y + 2, frame.w - 4, max(34, min(52, h // 8)))
    pygame.draw.rect(surface, HEADER_BG, header)
    pygame.draw.line(surface, BORDER, (header.x, header.bottom), (header.right, header.bottom), 1)

    tag_text = hint_font.render(tag, True, TEXT_MUTED)
    surface.blit(tag_text, (header.x + 12, header.y + (header.h - tag_text.get_height()) // 2))
    title_text = title_font.render(title, True, TEXT_MAIN)
    surface.blit(title_text, title_text.get_rect(center=(frame.centerx, header.centery)))
    return pygame.Rect(frame.x + 16, header.bottom + 12, frame.w - 32, frame.bottom - header.bottom - 24)


def _draw_footer(surface: pygame.Surface, font: pygame.font.Font, text: str) -> None:
    w, h = surface.get_size()
    foot = font.render(text, True, TEXT_MUTED)
    surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - max(14, h // 40))))


def _draw_toast(surface: pygame.Surface, font: pygame.font.Font, ctx: TrainerContext) -> None:
    if not ctx.toast or pygame.time.get_ticks() > ctx.toast_until_ms:
        return
    text = font.render(ctx.toast, True, ACTIVE_TEXT)
    box = text.get_rect(midtop=(surface.get_width() // 2, 8)).inflate(20, 10)
    pygame.draw.rect(surface, ACTIVE_BG, box)
    pygame.draw.rect(surface, BORDER, box, 1)
    surface.blit(text, text.get_rect(center=box.center))


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif event.key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            if self._items:
                self._items[self._selected].action()
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            if self._is_root:
                self._app.quit()
            else:
                self._app.pop()

    def _move(self, delta: int) -> None:
        if self._items:
            self._selected = (self._selected + delta) % len(self._items)

    def render(self, surface: pygame.Surface) -> None:
        content = _draw_frame(surface, self._title, "MENU", (self._title_font, self._hint_font))
        count = max(1, len(self._items))
        row_h = max(28, min(42, (content.h - 40) // count))
        y = content.y + max(8, (content.h - row_h * count) // 2)
        for idx, item in enumerate(self._items):
            row = pygame.Rect(content.x + 12, y, content.w - 24, row_h - 6)
            selected = idx == self._selected
            pygame.draw.rect(surface, ACTIVE_BG if selected else (9, 20, 106), row)
            pygame.draw.rect(surface, (120, 142, 196) if selected else (62, 84, 152), row, 1)
            text = self._app.font.render(item.label, True, ACTIVE_TEXT if selected else TEXT_MAIN)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            y += row_h
        _draw_footer(surface, self._hint_font, "Enter/Space: Select  |  Esc/Backspace: Back")


class SetupScreen:
    """Edit the shot list: anchors per flipper, base element and location."""

    _columns = ("base", "location", Side.LEFT, Side.RIGHT)

    def __init__(self, app: App, ctx: TrainerContext, *, on_start: Callable[[], None]) -> None:
        self._app = app
        self._ctx = ctx
        self._on_start = on_start
        self._row = 0
        self._col = 2
        self._count_input = ""
        self._title_font = pygame.font.Font(None, 42)
        self._font = pygame.font.Font(None, 28)
        self._hint_font = pygame.font.Font(None, 20)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        shots = self._ctx.shots
        key = event.key
        if not shots and self._handle_count_key(event):
            return
        if key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._app.pop()
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            if can_start(shots):
                self._on_start()
            else:
                self._ctx.notify("Complete shot type and both flipper values for every shot")
        elif key in (pygame.K_PAGEUP, pygame.K_PAGEDOWN):
            self._move_shot(-1 if key == pygame.K_PAGEUP else 1)
        elif key == pygame.K_UP:
            self._row = max(0, self._row - 1)
        elif key == pygame.K_DOWN:
            self._row = min(max(0, len(shots) - 1), self._row + 1)
        elif key == pygame.K_LEFT:
            self._col = (self._col - 1) % len(self._columns)
        elif key == pygame.K_RIGHT:
            self._col = (self._col + 1) % len(self._columns)
        elif key == pygame.K_a:
            self._add_shot()
        elif key == pygame.K_DELETE:
            self._remove_shot()
        elif key == pygame.K_f:
            self._fill_evenly()
        elif key in (pygame.K_EQUALS, pygame.K_PLUS, pygame.K_KP_PLUS):
            self._adjust(+1)
        elif key in (pygame.K_MINUS, pygame.K_KP_MINUS):
            self._adjust(-1)
        elif key == pygame.K_n:
            self._toggle_not_possible()

    def _handle_count_key(self, event: pygame.event.Event) -> bool:
        """Typed size of an example layout while the list is empty; True when the key was used."""

        ch = event.unicode
        if ch and ch.isdigit():
            if len(self._count_input) < 2:
                self._count_input += ch
            return True
        if event.key == pygame.K_BACKSPACE and self._count_input:
            self._count_input = self._count_input[:-1]
            return True
        if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER) and self._count_input:
            count = int(self._count_input)
            self._count_input = ""
            if not (1 <= count <= MAX_SHOTS):
                self._ctx.notify(f"Example layouts have 1-{MAX_SHOTS} shots")
                return True
            self._ctx.set_shots(build_example_shots(count))
            self._row = 0
            return True
        return False

    def _add_shot(self) -> None:
        shots = self._ctx.shots
        if len(shots) >= MAX_SHOTS:
            return
        shot = Shot(shot_id=next_shot_id(shots), base=BASE_ELEMENTS[len(shots) % len(BASE_ELEMENTS)])
        self._ctx.set_shots([*shots, shot])
        self._row = len(self._ctx.shots) - 1

    def _move_shot(self, delta: int) -> None:
        shots = self._ctx.shots
        dst = self._row + delta
        if not (0 <= dst < len(shots)):
            return
        self._ctx.set_shots(move_shot(shots, self._row, dst))
        self._row = dst

    def _remove_shot(self) -> None:
        shots = list(self._ctx.shots)
        if not shots:
            return
        del shots[self._row]
        self._ctx.set_shots(shots)
        self._row = max(0, min(self._row, len(shots) - 1))

    def _fill_evenly(self) -> None:
        shots = self._ctx.shots
        if not shots:
            return
        column = self._columns[self._col]
        if not isinstance(column, Side):
            return
        asc = evenly_spaced_values(len(shots))
        values = asc if column is Side.LEFT else list(reversed(asc))
        self._ctx.set_shots([s.with_anchor(column, v) for s, v in zip(shots, values)])

    def _adjust(self, direction: int) -> None:
        shots = list(self._ctx.shots)
        if not shots:
            return
        shot = shots[self._row]
        column = self._columns[self._col]
        if column == "base":
            idx = BASE_ELEMENTS.index(shot.base) if shot.base in BASE_ELEMENTS else -1
            shots[self._row] = replace(shot, base=BASE_ELEMENTS[(idx + direction) % len(BASE_ELEMENTS)])
        elif column == "location":
            options = ("", *LOCATIONS)
            idx = options.index(shot.location) if shot.location in options else 0
            shots[self._row] = replace(shot, location=options[(idx + direction) % len(options)])
        else:
            current = shot.anchor(column)
            start = 50 if current is None else current
            value = max(NOT_POSSIBLE, min(PERCENT_MAX, start + direction * GRID_STEP))
            shots[self._row] = shot.with_anchor(column, value)
        self._ctx.set_shots(shots)

    def _toggle_not_possible(self) -> None:
        shots = list(self._ctx.shots)
        column = self._columns[self._col]
        if not shots or not isinstance(column, Side):
            return
        shot = shots[self._row]
        value = 50 if shot.anchor(column) == NOT_POSSIBLE else NOT_POSSIBLE
        shots[self._row] = shot.with_anchor(column, value)
        self._ctx.set_shots(shots)

    def render(self, surface: pygame.Surface) -> None:
        content = _draw_frame(surface, "Shot Setup", "SETUP", (self._title_font, self._hint_font))
        shots = self._ctx.shots
        if not shots:
            prompt = f"No shots yet. Press A to add one, or type 1-{MAX_SHOTS} then Enter for an example layout: "
            msg = self._font.render(prompt + self._count_input, True, TEXT_MAIN)
            surface.blit(msg, (content.x, content.y + 10))
        col_x = (content.x + 40, content.x + 250, content.x + 460, content.x + 600)
        headers = ("Shot", "Location", "Left", "Right")
        for x, label in zip(col_x, headers):
            surface.blit(self._hint_font.render(label, True, TEXT_MUTED), (x, content.y))

        row_h = max(20, min(30, (content.h - 70) // max(1, len(shots))))
        y = content.y + 22
        for i, shot in enumerate(shots):
            cells = (
                shot.base or "--",
                shot.location or "-",
                format_anchor(shot.init_l),
                format_anchor(shot.init_r),
            )
            surface.blit(self._hint_font.render(f"{i + 1:>2}", True, TEXT_MUTED), (content.x, y + 4))
            for c, (x, text) in enumerate(zip(col_x, cells)):
                active = i == self._row and c == self._col
                color = ACTIVE_TEXT if active else TEXT_MAIN
                column = self._columns[c]
                if isinstance(column, Side):
                    value = shot.anchor(column)
                    rng = allowed_range(shots, column, i)
                    if value not in (None, NOT_POSSIBLE) and (rng is None or not (rng[0] <= value <= rng[1])):
                        color = WARN
                rendered = self._font.render(text, True, color)
                if active:
                    pygame.draw.rect(surface, ACTIVE_BG, rendered.get_rect(topleft=(x, y)).inflate(10, 4))
                surface.blit(rendered, (x, y))
            y += row_h

        column = self._columns[self._col]
        if shots and isinstance(column, Side):
            rng = allowed_range(shots, column, self._row)
            hint = "no room" if rng is None else f"{format_percent(rng[0])}-{format_percent(rng[1])}"
            surface.blit(
                self._hint_font.render(f"{column.display_name} allowed: {hint}", True, TEXT_MUTED),
                (content.x, content.bottom - 20),
            )
        _draw_footer(
            surface,
            self._hint_font,
            "Arrows: Move  |  +/-: Change  |  N: NP  |  A/Del: Add/Remove  |  PgUp/PgDn: Reorder  |  F: Fill  |  Enter: Start",
        )
        _draw_toast(surface, self._hint_font, self._ctx)


class SettingsScreen:
    def __init__(self, app: App, ctx: TrainerContext) -> None:
        self._app = app
        self._ctx = ctx
        self._row = 0
        self._title_font = pygame.font.Font(None, 42)
        self._hint_font = pygame.font.Font(None, 20)

    def _rows(self) -> list[tuple[str, str]]:
        cfg = self._ctx.config
        return [
            ("Initial random steps", str(cfg.initial_random_steps)),
            ("Drift every N attempts", "off" if cfg.drift_every == 0 else str(cfg.drift_every)),
            ("Drift magnitude (steps)", f"{cfg.drift_magnitude:.1f}"),
            ("Selection mode", cfg.mode.value),
        ]

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE, pygame.K_RETURN):
            self._app.pop()
        elif event.key == pygame.K_UP:
            self._row = (self._row - 1) % 4
        elif event.key == pygame.K_DOWN:
            self._row = (self._row + 1) % 4
        elif event.key == pygame.K_LEFT:
            self._change(-1)
        elif event.key == pygame.K_RIGHT:
            self._change(+1)

    def _change(self, direction: int) -> None:
        cfg = self._ctx.config
        try:
            if self._row == 0:
                cfg = replace(cfg, initial_random_steps=cfg.initial_random_steps + direction)
            elif self._row == 1:
                cfg = replace(cfg, drift_every=cfg.drift_every + direction)
            elif self._row == 2:
                cfg = replace(cfg, drift_magnitude=cfg.drift_magnitude + 0.5 * direction)
            else:
                mode = SelectionMode.MANUAL if cfg.mode is SelectionMode.RANDOM else SelectionMode.RANDOM
                cfg = replace(cfg, mode=mode)
        except ValueError:
            return  # out of range: keep the previous value
        self._ctx.config = cfg

    def render(self, surface: pygame.Surface) -> None:
        content = _draw_frame(surface, "Settings", "SETTINGS", (self._title_font, self._hint_font))
        y = content.y + 20
        for i, (label, value) in enumerate(self._rows()):
            active = i == self._row
            row = pygame.Rect(content.x + 12, y, content.w - 24, 36)
            pygame.draw.rect(surface, ACTIVE_BG if active else (9, 20, 106), row)
            color = ACTIVE_TEXT if active else TEXT_MAIN
            surface.blit(self._app.font.render(label, True, color), (row.x + 10, row.y + 8))
            val = self._app.font.render(f"< {value} >", True, color)
            surface.blit(val, val.get_rect(midright=(row.right - 12, row.centery)))
            y += 46
        _draw_footer(surface, self._hint_font, "Up/Down: Select  |  Left/Right: Change  |  Esc: Back")


class RecallScreen:
    """Practice attempts, final recall and results for one session."""

    def __init__(self, app: App, ctx: TrainerContext, *, session: RecallSession) -> None:
        self._app = app
        self._ctx = ctx
        self._session = session
        self._input = ""
        self._final_row = 0
        self._final_side = Side.LEFT
        self._saved = False
        self._title_font = pygame.font.Font(None, 42)
        self._big_font = pygame.font.Font(None, 64)
        self._small_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        phase = self._session.phase
        key = event.key

        if key == pygame.K_ESCAPE:
            self._app.pop()
            return
        if key == pygame.K_F1:
            self._session.toggle_truth()
            return

        if phase is Phase.PRACTICE:
            self._handle_practice_key(event)
        elif phase is Phase.FINAL_RECALL:
            self._handle_final_key(event)
        elif phase is Phase.RESULTS and key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            self._app.pop()

    def _handle_practice_key(self, event: pygame.event.Event) -> None:
        key = event.key
        session = self._session
        if key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            if session.submit_answer(self._input):
                self._input = ""
            return
        if key == pygame.K_F2:
            session.end_session()
            self._input = ""
            return
        if key == pygame.K_TAB:
            mode = SelectionMode.MANUAL if session.mode is SelectionMode.RANDOM else SelectionMode.RANDOM
            session.set_mode(mode)
            return
        if session.mode is SelectionMode.MANUAL:
            st = session.state
            if key == pygame.K_UP:
                session.select(max(0, st.selected_index - 1), st.selected_side)
                return
            if key == pygame.K_DOWN:
                session.select(min(len(st.shots) - 1, st.selected_index + 1), st.selected_side)
                return
            if key in (pygame.K_LEFT, pygame.K_RIGHT):
                session.select(st.selected_index, Side.LEFT if key == pygame.K_LEFT else Side.RIGHT)
                return
        self._edit_input(event)

    def _handle_final_key(self, event: pygame.event.Event) -> None:
        key = event.key
        session = self._session
        n = len(session.state.shots)
        if key == pygame.K_F5:
            session.finish()
            self._save_result()
            return
        if key == pygame.K_F2:
            session.resume_practice()
            return
        if key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            if self._input == "" or session.set_final_recall(self._final_row, self._final_side, self._input):
                self._input = ""
                self._final_row = (self._final_row + 1) % max(1, n)
            return
        if key == pygame.K_UP:
            self._final_row = max(0, self._final_row - 1)
        elif key == pygame.K_DOWN:
            self._final_row = min(max(0, n - 1), self._final_row + 1)
        elif key in (pygame.K_LEFT, pygame.K_RIGHT):
            self._final_side = Side.LEFT if key == pygame.K_LEFT else Side.RIGHT
        else:
            self._edit_input(event)

    def _edit_input(self, event: pygame.event.Event) -> None:
        if event.key == pygame.K_BACKSPACE:
            self._input = self._input[:-1]
            return
        ch = event.unicode
        if ch and ch.isdigit() and len(self._input) < 3:
            self._input += ch

    def _save_result(self) -> None:
        if self._saved or self._ctx.db_path is None:
            return
        self._saved = True
        try:
            record_session(
                db_path=self._ctx.db_path,
                result=session_result_from_recall(self._session),
                app_version=APP_VERSION,
            )
        except sqlite3.Error as exc:
            logger.warning("could not save session results: %s", exc)
            self._ctx.notify("Could not save session results")

    def render(self, surface: pygame.Surface) -> None:
        snap = self._session.snapshot()
        content = _draw_frame(surface, snap.title, snap.phase.value.upper(), (self._title_font, self._small_font))
        if snap.phase is Phase.PRACTICE:
            self._render_practice(surface, content, snap)
        elif snap.phase is Phase.FINAL_RECALL:
            self._render_final(surface, content, snap)
        else:
            y = content.y + 20
            for line in snap.prompt.split("\n"):
                surface.blit(self._app.font.render(line, True, TEXT_MAIN), (content.x + 20, y))
                y += 34
            _draw_footer(surface, self._small_font, "Enter/Esc: Back to menu")
        _draw_toast(surface, self._small_font, self._ctx)

    def _render_practice(self, surface: pygame.Surface, content: pygame.Rect, snap: RecallSnapshot) -> None:
        stats = (
            f"Attempts: {snap.attempted}   Points: {snap.total_points}   "
            f"Mean error: {snap.mean_abs_error:.1f}   Mode: {snap.mode.value}"
        )
        surface.blit(self._small_font.render(stats, True, TEXT_MUTED), (content.x, content.y))

        prompt = self._big_font.render(snap.prompt, True, TEXT_MAIN)
        surface.blit(prompt, prompt.get_rect(midtop=(content.centerx, content.y + 40)))

        box = pygame.Rect(content.centerx - 110, content.y + 120, 220, 56)
        pygame.draw.rect(surface, (30, 30, 40), box)
        pygame.draw.rect(surface, BORDER, box, 2)
        caret = "|" if (pygame.time.get_ticks() // 500) % 2 == 0 else ""
        entry = self._big_font.render(self._input + caret, True, TEXT_MAIN)
        surface.blit(entry, entry.get_rect(center=box.center))
        hint = snap.error or snap.input_hint
        surface.blit(
            self._small_font.render(hint, True, WARN if snap.error else TEXT_MUTED),
            (box.x, box.bottom + 8),
        )

        last = snap.last_attempt
        if last is not None:
            color = SEVERITY_COLORS[last.severity]
            feedback = self._app.font.render(format_attempt(last), True, color)
            surface.blit(feedback, feedback.get_rect(midtop=(content.centerx, box.bottom + 40)))

        y = box.bottom + 80
        for attempt in reversed(self._session.events()[-6:-1]):
            line = self._small_font.render(format_attempt(attempt), True, SEVERITY_COLORS[attempt.severity])
            surface.blit(line, (content.x + 20, y))
            y += 20

        if snap.truth is not None:
            left = " ".join(format_percent(v) for v in snap.truth[Side.LEFT])
            right = " ".join(format_percent(v) for v in snap.truth[Side.RIGHT])
            surface.blit(self._small_font.render(f"Truth L: {left}", True, TEXT_MUTED), (content.x, content.bottom - 44))
            surface.blit(self._small_font.render(f"Truth R: {right}", True, TEXT_MUTED), (content.x, content.bottom - 24))

        footer = "Enter: Submit  |  Tab: Mode  |  F1: Truth  |  F2: Final recall  |  Esc: Menu"
        if snap.mode is SelectionMode.MANUAL:
            footer = "Up/Down: Shot  |  Left/Right: Flipper  |  " + footer
        _draw_footer(surface, self._small_font, footer)

    def _render_final(self, surface: pygame.Surface, content: pygame.Rect, snap: RecallSnapshot) -> None:
        st = self._session.state
        surface.blit(self._small_font.render(snap.prompt, True, TEXT_MUTED), (content.x, content.y))
        row_h = max(18, min(28, (content.h - 60) // max(1, len(st.shots))))
        y = content.y + 28
        for i, shot in enumerate(st.shots):
            surface.blit(self._small_font.render(f"{i + 1:>2}  {shot.shot_type}", True, TEXT_MAIN), (content.x, y))
            for side, x in ((Side.LEFT, content.x + 360), (Side.RIGHT, content.x + 480)):
                active = i == self._final_row and side is self._final_side
                text = self._input if active and self._input else format_anchor(st.side(side).final_recall[i])
                rendered = self._app.font.render(text, True, ACTIVE_TEXT if active else TEXT_MAIN)
                if active:
                    pygame.draw.rect(surface, ACTIVE_BG, rendered.get_rect(topleft=(x, y)).inflate(12, 4))
                surface.blit(rendered, (x, y))
            y += row_h
        _draw_footer(surface, self._small_font, "Arrows: Move  |  Enter: Set  |  F5: Grade  |  F2: Back to practice")


def _new_session(ctx: TrainerContext) -> RecallSession:
    return RecallSession(shots=ctx.shots, clock=RealClock(), seed=new_seed(), config=ctx.config)


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    shots_path: Path | None = None,
    db_path: Path | None = None,
) -> int:
    pygame.init()

    pygame.display.set_caption("Pinball Flipper Recall Trainer")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 32)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)

    shots_file = shots_path if shots_path is not None else default_shots_path()
    ctx = TrainerContext(
        shots=load_shots(shots_file),
        shots_path=shots_file,
        db_path=db_path if db_path is not None else default_db_path(),
    )

    def start_session() -> None:
        session = _new_session(ctx)
        if session.start():
            app.push(RecallScreen(app, ctx, session=session))

    def open_setup() -> None:
        app.push(SetupScreen(app, ctx, on_start=start_session))

    def open_practice() -> None:
        if not can_start(ctx.shots):
            open_setup()
            ctx.notify("Set up your shots first")
            return
        start_session()

    def choose_preset(filename: str) -> None:
        try:
            ctx.set_shots(load_preset(ctx.presets_dir / filename))
        except PresetError as exc:
            logger.warning("%s", exc)
            ctx.notify(str(exc))
            return
        app.pop()
        ctx.notify(f"Loaded preset: {filename}")

    def export_shots() -> None:
        if not ctx.shots:
            ctx.notify("Nothing to export")
            return
        target = ctx.shots_path.with_name(EXPORT_FILENAME) if ctx.shots_path else Path(EXPORT_FILENAME)
        try:
            save_preset(target, ctx.shots)
        except OSError as exc:
            logger.warning("could not export preset to %s: %s", target, exc)
            ctx.notify("Export failed")
            return
        ctx.notify(f"Exported to {target}")

    def open_presets() -> None:
        entries = list_presets(ctx.presets_dir)
        items = [MenuItem(e.name, lambda fn=e.filename: choose_preset(fn)) for e in entries]
        items.append(MenuItem("Export Current Shots", export_shots))
        items.append(MenuItem("Back", app.pop))
        app.push(MenuScreen(app, "Presets", items))

    main_items = [
        MenuItem("Practice", open_practice),
        MenuItem("Shot Setup", open_setup),
        MenuItem("Presets", open_presets),
        MenuItem("Settings", lambda: app.push(SettingsScreen(app, ctx))),
        MenuItem("Quit", app.quit),
    ]

    app.push(MenuScreen(app, "Main Menu", main_items, is_root=True))

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
        pygame.quit()

    return 0
