"""Feedback dispatcher interface consumed by the session controller.

Presentation effects (colour flashes, tones, speech, result panel) live
behind this interface. Every session-scoped call carries a ``SessionToken``;
an implementation that applies an effect later must check
``token.is_current()`` first so nothing lands on a session that was reset.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from .registry import Entity

logger = logging.getLogger(__name__)


class TokenSource:
    def __init__(self) -> None:
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def issue(self) -> "SessionToken":
        self._generation += 1
        return SessionToken(self, self._generation)


class SessionToken:
    __slots__ = ("_source", "_generation")

    def __init__(self, source: TokenSource, generation: int) -> None:
        self._source = source
        self._generation = generation

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self) -> bool:
        return self._source.generation == self._generation

    def __repr__(self) -> str:
        state = "current" if self.is_current() else "stale"
        return f"SessionToken({self._generation}, {state})"


class FeedbackDispatcher(Protocol):
    def on_prompt_shown(self, entity: Entity, *, token: SessionToken) -> None: ...
    def on_correct(self, entity: Entity, *, token: SessionToken) -> None: ...
    def on_wrong(self, selected_id: str, *, expected: Entity, token: SessionToken) -> None: ...
    def on_session_finished(
        self, percent: int, elapsed_ms: int, perfect: bool, *, token: SessionToken
    ) -> None: ...
    def on_region_change_rejected(self) -> None: ...
    def cancel_pending(self) -> None: ...


class NullFeedback:
    def on_prompt_shown(self, entity: Entity, *, token: SessionToken) -> None:
        pass

    def on_correct(self, entity: Entity, *, token: SessionToken) -> None:
        pass

    def on_wrong(self, selected_id: str, *, expected: Entity, token: SessionToken) -> None:
        pass

    def on_session_finished(self, percent: int, elapsed_ms: int, perfect: bool, *, token: SessionToken) -> None:
        pass

    def on_region_change_rejected(self) -> None:
        pass

    def cancel_pending(self) -> None:
        pass


class CompositeFeedback:
    """Fans each call out to several dispatchers; one failing does not stop the rest."""

    def __init__(self, *dispatchers: FeedbackDispatcher) -> None:
        self._dispatchers = tuple(dispatchers)

    def on_prompt_shown(self, entity: Entity, *, token: SessionToken) -> None:
        self._each("on_prompt_shown", entity, token=token)

    def on_correct(self, entity: Entity, *, token: SessionToken) -> None:
        self._each("on_correct", entity, token=token)

    def on_wrong(self, selected_id: str, *, expected: Entity, token: SessionToken) -> None:
        self._each("on_wrong", selected_id, expected=expected, token=token)

    def on_session_finished(self, percent: int, elapsed_ms: int, perfect: bool, *, token: SessionToken) -> None:
        self._each("on_session_finished", percent, elapsed_ms, perfect, token=token)

    def on_region_change_rejected(self) -> None:
        self._each("on_region_change_rejected")

    def cancel_pending(self) -> None:
        self._each("cancel_pending")

    def _each(self, method: str, *args: object, **kwargs: object) -> None:
        for dispatcher in self._dispatchers:
            try:
                getattr(dispatcher, method)(*args, **kwargs)
            except Exception:
                logger.exception("%s.%s failed", type(dispatcher).__name__, method)


@dataclass(frozen=True, slots=True)
class FeedbackEvent:
    kind: str  # "prompt" | "correct" | "wrong" | "finished" | "region_rejected" | "cancel"
    entity_id: str | None = None
    expected_id: str | None = None
    percent: int | None = None
    elapsed_ms: int | None = None
    perfect: bool | None = None


@dataclass
class RecordingFeedback:
    """Dispatcher that only records what it was asked to do."""

    events: list[FeedbackEvent] = field(default_factory=list)
    tokens: list[SessionToken] = field(default_factory=list)

    def on_prompt_shown(self, entity: Entity, *, token: SessionToken) -> None:
        self.events.append(FeedbackEvent("prompt", entity_id=entity.id))
        self.tokens.append(token)

    def on_correct(self, entity: Entity, *, token: SessionToken) -> None:
        self.events.append(FeedbackEvent("correct", entity_id=entity.id))
        self.tokens.append(token)

    def on_wrong(self, selected_id: str, *, expected: Entity, token: SessionToken) -> None:
        self.events.append(FeedbackEvent("wrong", entity_id=selected_id, expected_id=expected.id))
        self.tokens.append(token)

    def on_session_finished(self, percent: int, elapsed_ms: int, perfect: bool, *, token: SessionToken) -> None:
        self.events.append(FeedbackEvent("finished", percent=percent, elapsed_ms=elapsed_ms, perfect=perfect))
        self.tokens.append(token)

    def on_region_change_rejected(self) -> None:
        self.events.append(FeedbackEvent("region_rejected"))

    def cancel_pending(self) -> None:
        self.events.append(FeedbackEvent("cancel"))

    def kinds(self) -> list[str]:
        return [e.kind for e in self.events]

    def count(self, kind: str) -> int:
        return sum(1 for e in self.events if e.kind == kind)
