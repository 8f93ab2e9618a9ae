from __future__ import annotations

import os


def test_ui_smoke_start_click_switch_region_and_quit() -> None:
    # Headless SDL for CI.
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

    import pygame

    from map_quiz.app import run

    def key(k: int) -> None:
        pygame.event.post(pygame.event.Event(pygame.KEYDOWN, {"key": k, "unicode": ""}))

    def click(pos: tuple[int, int]) -> None:
        pygame.event.post(pygame.event.Event(pygame.MOUSEBUTTONDOWN, {"button": 1, "pos": pos}))

    def inject(frame: int) -> None:
        # Start -> click the map -> try a region while running (rejected)
        # -> start over -> Caribbean -> resize -> quit
        if frame == 1:
            key(pygame.K_SPACE)
        elif frame == 3:
            click((480, 300))
        elif frame == 4:
            click((30, 28))
        elif frame == 6:
            key(pygame.K_SPACE)
        elif frame == 7:
            click((120, 28))
        elif frame == 10:
            pygame.event.post(pygame.event.Event(pygame.VIDEORESIZE, {"size": (800, 520), "w": 800, "h": 520}))
        elif frame == 14:
            key(pygame.K_ESCAPE)

    assert run(max_frames=40, event_injector=inject) == 0
