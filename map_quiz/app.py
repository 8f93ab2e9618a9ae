"""Pygame UI shell for the Americas map quiz.

Scoring, ordering, zoom and hit-testing live in map_quiz/* (core modules);
this module draws them and turns pointer/keyboard input into calls on
``MapQuiz``.
"""

from __future__ import annotations

import logging
import math
import random
from array import array
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .clock import Clock, RealClock
from .config import DisplayConfig, QuizConfig
from .feedback import SessionToken
from .map_asset import load_map_document
from .quiz import DIMMED_CLASS, MapQuiz
from .registry import Entity
from .results import QuizResult, format_seconds
from .scene import ShapeNode
from .session import SessionState
from .speech import OfflineSpeaker

logger = logging.getLogger(__name__)

TOP_BAR_H = 56
HUD_H = 72

BG = (14, 22, 38)
OCEAN = (120, 166, 218)
LAND = (238, 232, 210)
LAND_BORDER = (92, 92, 92)
CORRECT = (70, 178, 96)
WRONG = (214, 64, 58)
DIMMED = (190, 188, 178)
HIT_RING = (40, 40, 40)
TEXT = (236, 242, 252)
TEXT_MUTED = (170, 184, 206)
BUTTON_BG = (34, 50, 86)
BUTTON_ACTIVE = (238, 244, 255)
BUTTON_ACTIVE_TEXT = (18, 30, 70)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


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
        # Never pop the root screen.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if event.type == pygame.VIDEORESIZE:
            self._surface = pygame.display.get_surface()
            # Layout belongs to the root screen even while a panel is open.
            if self._screens:
                self._screens[0].handle_event(event)
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        for screen in self._screens:
            screen.render(self._surface)


class ToneBank:
    """Short generated beeps; silent when no mixer is available."""

    _preferred_rate = 22050
    _amp = 32767

    def __init__(self) -> None:
        self._available = False
        self._sounds: dict[str, pygame.mixer.Sound] = {}
        try:
            if pygame.mixer.get_init() is None:
                pygame.mixer.init(frequency=self._preferred_rate, size=-16, channels=1, buffer=512)
            self._sounds = {
                "good": self._build_tone_sound(660.0, 0.2, gain=0.2),
                "bad": self._build_tone_sound(220.0, 0.2, gain=0.2),
            }
            self._available = True
        except pygame.error as exc:
            logger.info("audio unavailable: %s", exc)

    @property
    def available(self) -> bool:
        return self._available

    def sound(self, name: str) -> pygame.mixer.Sound | None:
        return self._sounds.get(name)

    def play(self, name: str) -> None:
        sound = self._sounds.get(name)
        if sound is not None:
            sound.play()

    def _build_tone_sound(self, frequency_hz: float, duration_s: float, *, gain: float) -> pygame.mixer.Sound:
        pcm = self._render_tone_pcm(frequency_hz, duration_s, gain=gain)
        return pygame.mixer.Sound(buffer=pcm.tobytes())

    def _render_tone_pcm(self, frequency_hz: float, duration_s: float, *, gain: float) -> array[int]:
        # pygame.init() may already have opened the mixer at its own rate and layout.
        mixer = pygame.mixer.get_init()
        rate = self._preferred_rate if mixer is None else int(mixer[0])
        channels = 1 if mixer is None else int(mixer[2])
        sample_count = max(1, int(rate * duration_s))
        attack_n = max(1, int(rate * 0.01))
        out = array("h")
        for idx in range(sample_count):
            # Fast attack, exponential-ish decay.
            if idx < attack_n:
                envelope = idx / float(attack_n)
            else:
                envelope = math.exp(-6.0 * (idx - attack_n) / float(sample_count))
            phase = (2.0 * math.pi * float(frequency_hz) * idx) / float(rate)
            sample = int(max(-1.0, min(1.0, math.sin(phase) * gain * envelope)) * self._amp)
            for _ in range(channels):
                out.append(sample)
        return out


class PygameFeedback:
    """Tones, speech and the result panel hook for a running quiz."""

    def __init__(
        self,
        *,
        tones: ToneBank,
        speaker: OfflineSpeaker,
        on_finished: Callable[[int, int, bool], None],
        on_rejected: Callable[[], None],
        on_cancel: Callable[[], None],
    ) -> None:
        self._tones = tones
        self._speaker = speaker
        self._on_finished = on_finished
        self._on_rejected = on_rejected
        self._on_cancel = on_cancel

    def on_prompt_shown(self, entity: Entity, *, token: SessionToken) -> None:
        self._speaker.speak(entity.display_name, token=token)

    def on_correct(self, entity: Entity, *, token: SessionToken) -> None:
        self._tones.play("good")

    def on_wrong(self, selected_id: str, *, expected: Entity, token: SessionToken) -> None:
        self._tones.play("bad")

    def on_session_finished(self, percent: int, elapsed_ms: int, perfect: bool, *, token: SessionToken) -> None:
        if perfect:
            self._tones.play("good")
        self._on_finished(percent, elapsed_ms, perfect)

    def on_region_change_rejected(self) -> None:
        self._tones.play("bad")
        self._on_rejected()

    def cancel_pending(self) -> None:
        self._speaker.stop()
        self._on_cancel()

    def update(self) -> None:
        self._speaker.update()


@dataclass(frozen=True, slots=True)
class Button:
    label: str
    rect: pygame.Rect
    action: Callable[[], None]
    active: bool = False


class ResultScreen:
    """Modal end-of-quiz panel drawn over the map."""

    def __init__(
        self,
        app: App,
        *,
        percent: int,
        elapsed_ms: int,
        perfect: bool,
        on_restart: Callable[[], None],
    ) -> None:
        self._app = app
        self._on_restart = on_restart
        self._percent = percent
        self._elapsed_ms = elapsed_ms
        self._perfect = perfect
        self._big_font = pygame.font.Font(None, 84)
        self._small_font = pygame.font.Font(None, 28)

    def close(self) -> None:
        if self._app.top is self:
            self._app.pop()

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN and event.key == pygame.K_SPACE:
            # Space starts the next run straight from the panel.
            self.close()
            self._on_restart()
        elif event.type == pygame.KEYDOWN and event.key in (pygame.K_ESCAPE, pygame.K_RETURN):
            self.close()
        elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            self.close()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        shade = pygame.Surface((w, h), pygame.SRCALPHA)
        shade.fill((0, 0, 0, 150))
        surface.blit(shade, (0, 0))

        panel = pygame.Rect(0, 0, min(420, w - 40), 240)
        panel.center = (w // 2, h // 2)
        pygame.draw.rect(surface, (24, 36, 70), panel)
        pygame.draw.rect(surface, TEXT, panel, 2)

        pct = self._big_font.render(f"{self._percent}%", True, TEXT)
        surface.blit(pct, pct.get_rect(center=(panel.centerx, panel.y + 70)))
        took = self._app.font.render(f"Time: {format_seconds(self._elapsed_ms / 1000.0)}", True, TEXT)
        surface.blit(took, took.get_rect(center=(panel.centerx, panel.y + 130)))
        if self._perfect:
            perfect = self._app.font.render("Perfect score!", True, CORRECT)
            surface.blit(perfect, perfect.get_rect(center=(panel.centerx, panel.y + 170)))
        hint = self._small_font.render("Space to play again, click or Esc to close", True, TEXT_MUTED)
        surface.blit(hint, hint.get_rect(midbottom=(panel.centerx, panel.bottom - 12)))


class MapQuizScreen:
    def __init__(
        self,
        app: App,
        *,
        config: QuizConfig,
        rng: random.Random | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._app = app
        self._config = config
        self._small_font = pygame.font.Font(None, 24)
        self._label_font = pygame.font.Font(None, 20)
        self._prompt_font = pygame.font.Font(None, 44)

        self._elapsed_text = format_seconds(0.0)
        self._hint: str | None = None
        self._hint_frames = 0
        self._result_screen: ResultScreen | None = None
        self._buttons: list[Button] = []

        self._feedback = PygameFeedback(
            tones=ToneBank(),
            speaker=OfflineSpeaker(enabled=config.speech_enabled),
            on_finished=self._show_result,
            on_rejected=self._show_region_hint,
            on_cancel=self._close_result,
        )
        map_rect = self._map_rect(pygame.display.get_surface().get_size())
        document = load_map_document(config.map_path, viewport=_rect_viewport(map_rect))
        self._quiz = MapQuiz(
            document=document,
            clock=clock or RealClock(),
            feedback=self._feedback,
            config=config,
            rng=rng,
            on_tick=self._on_tick,
        )
        if len(self._quiz.registry) == 0:
            self._hint = "Could not load the map."
            self._hint_frames = -1

    @property
    def quiz(self) -> MapQuiz:
        return self._quiz

    @property
    def elapsed_text(self) -> str:
        return self._elapsed_text

    def toggle_start(self) -> None:
        self._elapsed_text = format_seconds(0.0)
        self._quiz.toggle_start()

    def after_frame(self) -> None:
        self._quiz.frame()
        self._feedback.update()
        if self._hint_frames > 0:
            self._hint_frames -= 1
            if self._hint_frames == 0:
                self._hint = None

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.VIDEORESIZE:
            size = pygame.display.get_surface().get_size()
            self._quiz.on_layout_changed(_rect_viewport(self._map_rect(size)))
            return

        if event.type == pygame.KEYDOWN:
            if event.key == pygame.K_SPACE:
                self.toggle_start()
            elif event.key == pygame.K_ESCAPE:
                self._app.quit()
            return

        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            for button in self._buttons:
                if button.rect.collidepoint(event.pos):
                    button.action()
                    return
            size = pygame.display.get_surface().get_size()
            if self._map_rect(size).collidepoint(event.pos):
                self._quiz.select_at(event.pos)

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)

        map_rect = self._map_rect((w, h))
        pygame.draw.rect(surface, OCEAN, map_rect)
        surface.set_clip(map_rect)
        try:
            self._draw_shapes(surface)
            self._draw_hit_targets(surface)
            self._draw_labels(surface)
        finally:
            surface.set_clip(None)

        self._draw_top_bar(surface, w)
        self._draw_hud(surface, w, h)

    def _draw_shapes(self, surface: pygame.Surface) -> None:
        for shape in self._quiz.document.iter_shapes():
            ctm = shape.screen_ctm()
            if ctm is None:
                continue
            fill = _shape_fill(shape)
            for poly in shape.primitives:
                if len(poly) < 3:
                    continue
                pts = [ctm.apply_point(p) for p in poly]
                pygame.draw.polygon(surface, fill, pts)
                pygame.draw.polygon(surface, LAND_BORDER, pts, 1)

    def _draw_hit_targets(self, surface: pygame.Surface) -> None:
        root_ctm = self._quiz.document.screen_ctm()
        if root_ctm is None:
            return
        for target in self._quiz.overlay.targets.values():
            center, radius = target.device_circle(root_ctm)
            shape = self._quiz.registry.shape_for(target.entity_id)
            color = HIT_RING if shape is None else _ring_color(shape)
            pygame.draw.circle(surface, color, center, max(2, int(radius)), 1)

    def _draw_labels(self, surface: pygame.Surface) -> None:
        root_ctm = self._quiz.document.screen_ctm()
        if root_ctm is None:
            return
        for name, anchor in self._quiz.labels():
            pos = root_ctm.apply_point(anchor)
            text = self._label_font.render(name, True, (20, 20, 20))
            rect = text.get_rect(center=(int(pos.x), int(pos.y)))
            pad = rect.inflate(6, 2)
            pygame.draw.rect(surface, (255, 255, 255), pad)
            surface.blit(text, rect)

    def _draw_top_bar(self, surface: pygame.Surface, w: int) -> None:
        pygame.draw.rect(surface, (20, 30, 56), pygame.Rect(0, 0, w, TOP_BAR_H))
        buttons: list[Button] = []
        x = 12
        for tag, region in self._quiz.regions.items():
            label_w = self._small_font.size(region.label)[0] + 24
            rect = pygame.Rect(x, 12, label_w, TOP_BAR_H - 24)
            buttons.append(
                Button(
                    label=region.label,
                    rect=rect,
                    action=lambda t=tag: self._quiz.set_region(t),
                    active=tag is self._quiz.region,
                )
            )
            x += label_w + 8

        start_label = "Start Over" if self._quiz.running else "Start"
        start_w = self._small_font.size(start_label)[0] + 36
        buttons.append(
            Button(
                label=start_label,
                rect=pygame.Rect(w - start_w - 12, 12, start_w, TOP_BAR_H - 24),
                action=self.toggle_start,
                active=True,
            )
        )

        for button in buttons:
            bg = BUTTON_ACTIVE if button.active else BUTTON_BG
            fg = BUTTON_ACTIVE_TEXT if button.active else TEXT
            pygame.draw.rect(surface, bg, button.rect, border_radius=6)
            label = self._small_font.render(button.label, True, fg)
            surface.blit(label, label.get_rect(center=button.rect.center))
        self._buttons = buttons

    def _draw_hud(self, surface: pygame.Surface, w: int, h: int) -> None:
        hud = pygame.Rect(0, h - HUD_H, w, HUD_H)
        pygame.draw.rect(surface, (20, 30, 56), hud)

        snap = self._quiz.snapshot()
        prompt = snap.prompt or "-"
        prompt_surf = self._prompt_font.render(prompt, True, TEXT)
        surface.blit(prompt_surf, (16, hud.y + 8))

        if snap.state is SessionState.IDLE:
            sub = "Press Start (or Space)."
            results = "Press Start to begin. (Spacebar works too.)"
        elif snap.state is SessionState.RUNNING:
            sub = ""
            results = "Quiz running..."
        else:
            sub = "Nice work."
            result: QuizResult | None = self._quiz.result()
            results = "" if result is None else result.summary_line()
        if self._hint is not None:
            sub = self._hint

        sub_surf = self._small_font.render(sub, True, TEXT_MUTED)
        surface.blit(sub_surf, (16, hud.y + 46))

        elapsed = self._elapsed_text if snap.state is SessionState.RUNNING else format_seconds(snap.elapsed_s)
        stats = f"{snap.answered} / {snap.total}    {elapsed}    {snap.percent}%"
        stats_surf = self._app.font.render(stats, True, TEXT)
        surface.blit(stats_surf, stats_surf.get_rect(topright=(w - 16, hud.y + 10)))
        res_surf = self._small_font.render(results, True, TEXT_MUTED)
        surface.blit(res_surf, res_surf.get_rect(topright=(w - 16, hud.y + 46)))

    def _on_tick(self, elapsed_s: float) -> None:
        self._elapsed_text = format_seconds(elapsed_s)

    def _show_result(self, percent: int, elapsed_ms: int, perfect: bool) -> None:
        self._close_result()
        self._result_screen = ResultScreen(
            self._app,
            percent=percent,
            elapsed_ms=elapsed_ms,
            perfect=perfect,
            on_restart=self.toggle_start,
        )
        self._app.push(self._result_screen)

    def _close_result(self) -> None:
        if self._result_screen is not None:
            self._result_screen.close()
            self._result_screen = None
        self._elapsed_text = format_seconds(0.0)

    def _show_region_hint(self) -> None:
        self._hint = "Finish or start over before switching regions."
        self._hint_frames = 120

    @staticmethod
    def _map_rect(size: tuple[int, int]) -> pygame.Rect:
        w, h = size
        return pygame.Rect(0, TOP_BAR_H, w, max(1, h - TOP_BAR_H - HUD_H))


def _rect_viewport(rect: pygame.Rect) -> tuple[float, float, float, float]:
    return (float(rect.x), float(rect.y), float(rect.w), float(rect.h))


def _shape_fill(shape: ShapeNode) -> tuple[int, int, int]:
    if shape.has_class("wrong"):
        return WRONG
    if shape.has_class("correct"):
        return CORRECT
    if shape.has_class(DIMMED_CLASS):
        return DIMMED
    return LAND


def _ring_color(shape: ShapeNode) -> tuple[int, int, int]:
    if shape.has_class("wrong"):
        return WRONG
    if shape.has_class("correct"):
        return CORRECT
    return HIT_RING


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    config: QuizConfig | None = None,
    display: DisplayConfig | None = None,
) -> int:
    cfg = config or QuizConfig.from_env()
    disp = display or DisplayConfig()

    pygame.init()
    pygame.display.set_caption(disp.caption)
    surface = pygame.display.set_mode((disp.width, disp.height), pygame.RESIZABLE)

    font = pygame.font.Font(None, 32)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)
    screen = MapQuizScreen(app, config=cfg)
    app.push(screen)

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()
            screen.after_frame()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(disp.frame_rate)
    finally:
        pygame.quit()

    return 0
