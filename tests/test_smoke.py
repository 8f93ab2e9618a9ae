"""Smoke tests for the pygame UI.

These check that the main loop can initialise and run a handful of frames
without crashing under the SDL dummy video driver. They do not check
rendering correctness.
"""

from __future__ import annotations

import os

# Use the dummy drivers before importing pygame or the application
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")


def test_app_runs_headless() -> None:
    """Ensure the application can start and run a few frames headlessly."""
    # Import inside the test so that environment variables take effect
    from map_quiz.app import run

    exit_code = run(max_frames=3)
    assert exit_code == 0


def test_app_survives_missing_map(tmp_path) -> None:
    from map_quiz.app import run
    from map_quiz.config import QuizConfig

    cfg = QuizConfig(map_path=tmp_path / "missing.json", speech_enabled=False)
    assert run(max_frames=3, config=cfg) == 0
