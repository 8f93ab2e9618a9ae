from __future__ import annotations

from dataclasses import dataclass

from .session import QuizSessionController, SelectionEvent, SessionState


@dataclass(frozen=True, slots=True)
class QuizResult:
    """Summary + click log for a finished session."""

    score: int
    total: int
    wrong: int
    percent: int
    elapsed_ms: int
    perfect: bool
    mean_rt_ms: float | None
    events: list[SelectionEvent]

    @property
    def elapsed_s(self) -> float:
        return self.elapsed_ms / 1000.0

    def summary_line(self) -> str:
        return f"Score: {self.score} / {self.total} ({self.percent}%) - Time: {format_seconds(self.elapsed_s)}"


def format_seconds(seconds: float) -> str:
    return f"{seconds:.1f}s"


def quiz_result_from_session(controller: QuizSessionController) -> QuizResult | None:
    """Build a QuizResult from a finished session, or None if not finished."""

    if controller.state is not SessionState.FINISHED:
        return None

    s = controller.session
    events = controller.events()
    correct_rts_ms = [e.response_time_s * 1000.0 for e in events if e.is_correct]
    mean_ms = None if not correct_rts_ms else sum(correct_rts_ms) / float(len(correct_rts_ms))
    percent = controller.final_percent()

    return QuizResult(
        score=int(s.score),
        total=len(s.order),
        wrong=int(s.wrong),
        percent=percent,
        elapsed_ms=controller.elapsed_ms(),
        perfect=percent == 100 and len(s.order) > 0,
        mean_rt_ms=mean_ms,
        events=events,
    )
