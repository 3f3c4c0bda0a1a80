from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest

# Headless SDL for CI.
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

import pygame  # noqa: E402

from pinball_trainer.app import App, MenuItem, MenuScreen, SetupScreen, TrainerContext  # noqa: E402


@pytest.fixture
def app() -> Iterator[App]:
    pygame.init()
    try:
        surface = pygame.display.set_mode((960, 540))
        yield App(surface=surface, font=pygame.font.Font(None, 32))
    finally:
        pygame.quit()


def _key(key: int, unicode: str = "") -> pygame.event.Event:
    return pygame.event.Event(pygame.KEYDOWN, {"key": key, "unicode": unicode})


def test_menu_renders_with_the_app_font_and_runs_selected_action(app: App) -> None:
    picked: list[str] = []
    menu = MenuScreen(
        app,
        "Main Menu",
        [MenuItem("Practice", lambda: picked.append("practice")), MenuItem("Quit", app.quit)],
        is_root=True,
    )
    app.push(menu)
    app.render()

    app.handle_event(_key(pygame.K_DOWN))
    app.handle_event(_key(pygame.K_UP))
    app.handle_event(_key(pygame.K_RETURN))
    assert picked == ["practice"]

    app.handle_event(_key(pygame.K_ESCAPE))
    assert app.running is False


def test_setup_builds_example_layout_from_typed_count(app: App, tmp_path: Path) -> None:
    ctx = TrainerContext(shots=[], shots_path=tmp_path / "shots.json")
    setup = SetupScreen(app, ctx, on_start=lambda: None)
    app.push(setup)

    for ch, key in (("1", pygame.K_1), ("2", pygame.K_2)):
        app.handle_event(_key(key, ch))
    app.render()
    app.handle_event(_key(pygame.K_RETURN))

    assert len(ctx.shots) == 12
    values = [s.init_l for s in ctx.shots]
    assert all(a < b for a, b in zip(values, values[1:]))
    app.render()


def test_setup_rejects_example_count_out_of_range(app: App, tmp_path: Path) -> None:
    ctx = TrainerContext(shots=[], shots_path=tmp_path / "shots.json")
    app.push(SetupScreen(app, ctx, on_start=lambda: None))

    app.handle_event(_key(pygame.K_2, "2"))
    app.handle_event(_key(pygame.K_5, "5"))
    app.handle_event(_key(pygame.K_RETURN))
    assert ctx.shots == []
    assert "1-20" in ctx.toast

    # Backspace edits the typed count before confirming.
    app.handle_event(_key(pygame.K_2, "2"))
    app.handle_event(_key(pygame.K_0, "0"))
    app.handle_event(_key(pygame.K_BACKSPACE))
    app.handle_event(_key(pygame.K_RETURN))
    assert len(ctx.shots) == 2
