"""Configuration for the map quiz."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from .hit_targets import HitRadiusRule
from .session import ScoringPolicy

DEFAULT_MAP_PATH = Path(__file__).resolve().parent / "data" / "americas.json"

ENV_DISABLE_TTS = "MAP_QUIZ_DISABLE_TTS"
ENV_TTS_BACKEND = "MAP_QUIZ_TTS_BACKEND"
ENV_SCORING = "MAP_QUIZ_SCORING"
ENV_MAP_PATH = "MAP_QUIZ_MAP_PATH"
ENV_LOG_LEVEL = "MAP_QUIZ_LOG_LEVEL"


def _default_hit_rule() -> HitRadiusRule:
    # Bahamas is a bit smaller than it could be so it doesn't swallow Cuba.
    return HitRadiusRule(default_radius=18.0, overrides={"bs": 24.0, "tt": 18.0})


@dataclass(frozen=True, slots=True)
class QuizConfig:
    map_path: Path = DEFAULT_MAP_PATH
    scoring_policy: ScoringPolicy = ScoringPolicy.PER_PROMPT
    timer_interval_s: float = 0.1
    wrong_flash_s: float = 0.28
    viewport_settle_frames: int = 2
    hit_target_ids: tuple[str, ...] = ("bs", "tt")
    hit_radius: HitRadiusRule = field(default_factory=_default_hit_rule)
    speech_enabled: bool = True

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "QuizConfig":
        env = os.environ if environ is None else environ
        cfg = cls()

        scoring = env.get(ENV_SCORING, "").strip().lower()
        if scoring:
            try:
                cfg = replace(cfg, scoring_policy=ScoringPolicy(scoring))
            except ValueError:
                raise ValueError(f"{ENV_SCORING} must be one of {[p.value for p in ScoringPolicy]}") from None

        map_path = env.get(ENV_MAP_PATH, "").strip()
        if map_path:
            cfg = replace(cfg, map_path=Path(map_path))

        if env.get(ENV_DISABLE_TTS, "0") == "1":
            cfg = replace(cfg, speech_enabled=False)
        if env.get("SDL_AUDIODRIVER", "").strip().lower() == "dummy":
            # Keep automated/headless runs silent.
            cfg = replace(cfg, speech_enabled=False)
        return cfg


@dataclass(frozen=True, slots=True)
class DisplayConfig:
    width: int = 960
    height: int = 600
    caption: str = "Americas Map Quiz"
    frame_rate: int = 60
