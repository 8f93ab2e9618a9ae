"""Quiz session state machine: Idle -> Running -> Finished.

One ``QuizSession`` value is live at a time. ``start`` builds a fresh one,
``reset_to_idle`` swaps in the canonical empty one. Time comes from an
injected ``Clock`` and ordering from an injected ``random.Random`` so runs
are reproducible under test.

Scoring counts each prompt at most once. With ``ScoringPolicy.PER_PROMPT`` a
prompt earns its point whenever it is eventually answered; with
``ScoringPolicy.FIRST_ATTEMPT`` only if no wrong click preceded the correct
one. Either way ``score <= index <= len(order)``.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

from .clock import Clock
from .feedback import FeedbackDispatcher, NullFeedback, SessionToken, TokenSource
from .registry import Entity
from .scheduler import PeriodicTimer, TimerHandle

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"


class ScoringPolicy(str, Enum):
    PER_PROMPT = "per_prompt"
    FIRST_ATTEMPT = "first_attempt"


@dataclass(slots=True)
class QuizSession:
    state: SessionState = SessionState.IDLE
    pool: tuple[Entity, ...] = ()
    order: tuple[str, ...] = ()
    index: int = 0
    score: int = 0
    wrong: int = 0
    start_timestamp: float | None = None
    end_timestamp: float | None = None
    completed_ids: set[str] = field(default_factory=set)
    missed_current: bool = False

    @property
    def current_id(self) -> str | None:
        if self.state is not SessionState.RUNNING or self.index >= len(self.order):
            return None
        return self.order[self.index]


@dataclass(frozen=True, slots=True)
class SelectionEvent:
    index: int
    expected_id: str
    selected_id: str
    is_correct: bool
    scored: bool
    at_s: float
    response_time_s: float


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """View model for the UI (pure data)."""

    state: SessionState
    prompt: str | None
    answered: int
    total: int
    score: int
    wrong: int
    elapsed_s: float
    percent: int
    completed_ids: frozenset[str]


def fisher_yates(items: Sequence[T], rng: random.Random) -> list[T]:
    """Uniform random permutation (returns a new list)."""

    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = rng.randint(0, i)
        out[i], out[j] = out[j], out[i]
    return out


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


class QuizSessionController:
    def __init__(
        self,
        *,
        clock: Clock,
        feedback: FeedbackDispatcher | None = None,
        timer: PeriodicTimer | None = None,
        rng: random.Random | None = None,
        scoring_policy: ScoringPolicy = ScoringPolicy.PER_PROMPT,
        timer_interval_s: float = 0.1,
        on_tick: Callable[[float], None] | None = None,
    ) -> None:
        if timer_interval_s <= 0:
            raise ValueError("timer_interval_s must be > 0")

        self._clock = clock
        self._feedback: FeedbackDispatcher = feedback or NullFeedback()
        self._timer = timer or PeriodicTimer(clock=clock)
        self._rng = rng or random.Random()
        self._scoring_policy = ScoringPolicy(scoring_policy)
        self._timer_interval_s = float(timer_interval_s)
        self._on_tick = on_tick

        self._tokens = TokenSource()
        self._token: SessionToken = self._tokens.issue()
        self._timer_handle: TimerHandle | None = None
        self._session = QuizSession()
        self._events: list[SelectionEvent] = []
        self._prompt_shown_at_s: float | None = None

    @property
    def session(self) -> QuizSession:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def token(self) -> SessionToken:
        return self._token

    @property
    def scoring_policy(self) -> ScoringPolicy:
        return self._scoring_policy

    @property
    def timer(self) -> PeriodicTimer:
        return self._timer

    @property
    def timer_active(self) -> bool:
        return self._timer_handle is not None and self._timer_handle.active

    def events(self) -> list[SelectionEvent]:
        return list(self._events)

    def current_entity(self) -> Entity | None:
        current_id = self._session.current_id
        if current_id is None:
            return None
        for entity in self._session.pool:
            if entity.id == current_id:
                return entity
        return None

    def can_change_region(self) -> bool:
        return self._session.state is not SessionState.RUNNING

    def request_region_change(self) -> bool:
        """True if a region switch may proceed; rejected while Running."""

        if self.can_change_region():
            return True
        self._notify("on_region_change_rejected")
        return False

    def start(self, pool: Iterable[Entity]) -> bool:
        if self._session.state is SessionState.RUNNING:
            return False

        entities = tuple(pool)
        ids = [e.id for e in entities]
        if len(set(ids)) != len(ids):
            raise ValueError("pool contains duplicate entity ids")

        self._cancel_timer()
        self._token = self._tokens.issue()
        self._events = []
        now = self._clock.now()
        self._session = QuizSession(
            state=SessionState.RUNNING,
            pool=entities,
            order=tuple(fisher_yates(ids, self._rng)),
            start_timestamp=now,
        )
        logger.debug("session started with %d prompts", len(ids))

        if not entities:
            self.finish()
            return True

        self._timer_handle = self._timer.every(self._timer_interval_s, self._tick)
        self._show_prompt()
        return True

    def handle_selection(self, entity_id: str) -> bool:
        """Resolve a click. Returns True only for a correct selection."""

        s = self._session
        if s.state is not SessionState.RUNNING:
            return False
        expected_id = s.current_id
        if expected_id is None:
            return False
        expected = self.current_entity()
        assert expected is not None

        now = self._clock.now()
        shown_at = self._prompt_shown_at_s if self._prompt_shown_at_s is not None else now

        if entity_id == expected_id and entity_id not in s.completed_ids:
            scored = self._scoring_policy is ScoringPolicy.PER_PROMPT or not s.missed_current
            self._events.append(
                SelectionEvent(
                    index=s.index,
                    expected_id=expected_id,
                    selected_id=entity_id,
                    is_correct=True,
                    scored=scored,
                    at_s=now,
                    response_time_s=max(0.0, now - shown_at),
                )
            )
            s.completed_ids.add(entity_id)
            if scored:
                s.score += 1
            s.index += 1
            s.missed_current = False
            self._notify("on_correct", expected, token=self._token)

            if s.index >= len(s.order):
                self.finish()
            else:
                self._show_prompt()
            return True

        self._events.append(
            SelectionEvent(
                index=s.index,
                expected_id=expected_id,
                selected_id=entity_id,
                is_correct=False,
                scored=False,
                at_s=now,
                response_time_s=max(0.0, now - shown_at),
            )
        )
        s.wrong += 1
        s.missed_current = True
        self._notify("on_wrong", entity_id, expected=expected, token=self._token)
        return False

    def finish(self) -> bool:
        s = self._session
        if s.state is not SessionState.RUNNING:
            return False

        self._cancel_timer()
        now = self._clock.now()
        s.end_timestamp = now
        s.state = SessionState.FINISHED
        self._prompt_shown_at_s = None

        percent = self.final_percent()
        elapsed_ms = self.elapsed_ms()
        perfect = percent == 100 and len(s.order) > 0
        logger.info(
            "session finished: %d/%d (%d%%) in %.1fs", s.score, len(s.order), percent, elapsed_ms / 1000.0
        )
        self._notify("on_session_finished", percent, elapsed_ms, perfect, token=self._token)
        return True

    def reset_to_idle(self) -> None:
        self._cancel_timer()
        self._token = self._tokens.issue()
        self._session = QuizSession()
        self._events = []
        self._prompt_shown_at_s = None
        self._notify("cancel_pending")

    def elapsed_s(self) -> float:
        s = self._session
        if s.start_timestamp is None:
            return 0.0
        end = s.end_timestamp if s.end_timestamp is not None else self._clock.now()
        return max(0.0, end - s.start_timestamp)

    def elapsed_ms(self) -> int:
        return int(round(self.elapsed_s() * 1000.0))

    def final_percent(self) -> int:
        s = self._session
        if not s.order:
            return 0
        return round_half_up(100.0 * s.score / len(s.order))

    def running_percent(self) -> int:
        """Share of correct clicks among all clicks so far."""

        s = self._session
        answered = s.index + s.wrong
        if answered == 0:
            return 0
        return round_half_up(100.0 * s.index / answered)

    def snapshot(self) -> SessionSnapshot:
        s = self._session
        current = self.current_entity()
        percent = self.final_percent() if s.state is SessionState.FINISHED else self.running_percent()
        return SessionSnapshot(
            state=s.state,
            prompt=None if current is None else current.display_name,
            answered=s.index,
            total=len(s.order),
            score=s.score,
            wrong=s.wrong,
            elapsed_s=self.elapsed_s(),
            percent=percent,
            completed_ids=frozenset(s.completed_ids),
        )

    def _show_prompt(self) -> None:
        entity = self.current_entity()
        if entity is None:
            return
        self._prompt_shown_at_s = self._clock.now()
        self._notify("on_prompt_shown", entity, token=self._token)

    def _tick(self, now: float) -> None:
        _ = now
        if self._session.state is not SessionState.RUNNING:
            return
        if self._on_tick is not None:
            self._on_tick(self.elapsed_s())

    def _cancel_timer(self) -> None:
        if self._timer_handle is not None:
            self._timer_handle.cancel()
            self._timer_handle = None

    def _notify(self, method: str, *args: object, **kwargs: object) -> None:
        # Feedback is best-effort; it never breaks scoring or state.
        try:
            getattr(self._feedback, method)(*args, **kwargs)
        except Exception:
            logger.exception("feedback dispatcher failed in %s", method)
