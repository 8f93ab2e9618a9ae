from __future__ import annotations

import random
from dataclasses import dataclass

import pytest

from map_quiz.feedback import RecordingFeedback, SessionToken
from map_quiz.registry import Entity, RegionTag
from map_quiz.results import quiz_result_from_session
from map_quiz.scheduler import PeriodicTimer
from map_quiz.session import (
    QuizSession,
    QuizSessionController,
    ScoringPolicy,
    SessionState,
    fisher_yates,
    round_half_up,
)


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


POOL = (
    Entity("jm", "Jamaica", RegionTag.CARIBBEAN),
    Entity("cu", "Cuba", RegionTag.CARIBBEAN),
    Entity("bs", "Bahamas", RegionTag.CARIBBEAN),
)


def _controller(
    *,
    seed: int = 7,
    scoring_policy: ScoringPolicy = ScoringPolicy.PER_PROMPT,
) -> tuple[FakeClock, RecordingFeedback, QuizSessionController]:
    clock = FakeClock()
    feedback = RecordingFeedback()
    controller = QuizSessionController(
        clock=clock,
        feedback=feedback,
        rng=random.Random(seed),
        scoring_policy=scoring_policy,
    )
    return clock, feedback, controller


def _wrong_id(controller: QuizSessionController) -> str:
    current = controller.session.current_id
    return next(e.id for e in POOL if e.id != current)


def test_order_is_a_permutation_of_the_pool() -> None:
    for seed in range(10):
        _clock, _fb, c = _controller(seed=seed)
        assert c.start(POOL)
        assert sorted(c.session.order) == sorted(e.id for e in POOL)
        assert c.session.index == 0
        assert c.session.score == 0


def test_fisher_yates_reaches_every_ordering() -> None:
    rng = random.Random(1234)
    seen = {tuple(fisher_yates("abc", rng)) for _ in range(600)}
    assert len(seen) == 6


def test_round_half_up() -> None:
    assert round_half_up(66.5) == 67
    assert round_half_up(66.49) == 66
    assert round_half_up(0.5) == 1


def test_perfect_run_scores_every_prompt() -> None:
    clock, feedback, c = _controller()
    c.start(POOL)
    for _ in POOL:
        clock.advance(1.5)
        assert c.handle_selection(c.session.current_id or "")

    assert c.state is SessionState.FINISHED
    assert c.session.score == 3
    assert c.final_percent() == 100
    assert c.elapsed_ms() == 4500
    assert not c.timer_active

    finished = [e for e in feedback.events if e.kind == "finished"]
    assert len(finished) == 1
    assert finished[0].percent == 100
    assert finished[0].perfect is True
    assert finished[0].elapsed_ms == 4500


def test_wrong_clicks_do_not_cost_points_by_default() -> None:
    _clock, feedback, c = _controller()
    c.start(POOL)

    first = c.session.current_id
    assert not c.handle_selection(_wrong_id(c))
    assert c.handle_selection(first or "")
    second = c.session.current_id
    assert not c.handle_selection(_wrong_id(c))
    assert c.handle_selection(second or "")
    assert c.handle_selection(c.session.current_id or "")

    assert c.session.score == 3
    assert c.session.wrong == 2
    assert feedback.count("wrong") == 2
    assert feedback.count("correct") == 3
    assert feedback.kinds()[:3] == ["prompt", "wrong", "correct"]
    assert c.final_percent() == 100


def test_first_attempt_policy_withholds_point_after_a_miss() -> None:
    _clock, feedback, c = _controller(scoring_policy=ScoringPolicy.FIRST_ATTEMPT)
    c.start(POOL)

    first = c.session.current_id
    c.handle_selection(_wrong_id(c))
    c.handle_selection(_wrong_id(c))
    c.handle_selection(first or "")
    while c.state is SessionState.RUNNING:
        c.handle_selection(c.session.current_id or "")

    assert c.session.score == 2
    assert c.final_percent() == 67
    assert [e.percent for e in feedback.events if e.kind == "finished"] == [67]
    assert [ev.scored for ev in c.events() if ev.is_correct] == [False, True, True]


def test_counters_stay_ordered_under_random_clicks() -> None:
    rng = random.Random(99)
    _clock, _fb, c = _controller(seed=3)
    c.start(POOL)
    ids = [e.id for e in POOL] + ["xx"]
    while c.state is SessionState.RUNNING:
        c.handle_selection(rng.choice(ids))
        s = c.session
        assert 0 <= s.score <= s.index <= len(s.order)


def test_completed_entity_cannot_be_scored_again() -> None:
    _clock, _fb, c = _controller()
    c.start(POOL)
    first = c.session.current_id or ""
    c.handle_selection(first)

    assert not c.handle_selection(first)
    assert c.session.score == 1
    assert c.session.wrong == 1


def test_selection_outside_running_is_ignored() -> None:
    _clock, feedback, c = _controller()
    assert not c.handle_selection("jm")
    assert c.session == QuizSession()

    c.start(POOL)
    while c.state is SessionState.RUNNING:
        c.handle_selection(c.session.current_id or "")
    before = (c.session.index, c.session.score, c.session.wrong)
    events_before = len(feedback.events)

    assert not c.handle_selection("jm")
    assert (c.session.index, c.session.score, c.session.wrong) == before
    assert len(feedback.events) == events_before


def test_start_while_running_is_rejected() -> None:
    _clock, _fb, c = _controller()
    assert c.start(POOL)
    order = c.session.order
    assert not c.start(POOL)
    assert c.session.order == order


def test_duplicate_pool_ids_raise() -> None:
    _clock, _fb, c = _controller()
    with pytest.raises(ValueError):
        c.start(POOL + (POOL[0],))
    assert c.state is SessionState.IDLE


def test_empty_pool_finishes_immediately_with_zero() -> None:
    _clock, feedback, c = _controller()
    assert c.start(())
    assert c.state is SessionState.FINISHED
    assert c.final_percent() == 0
    finished = [e for e in feedback.events if e.kind == "finished"]
    assert len(finished) == 1
    assert finished[0].percent == 0
    assert finished[0].perfect is False
    assert feedback.count("prompt") == 0


def test_reset_to_idle_is_idempotent() -> None:
    clock, _fb, c = _controller()
    c.start(POOL)
    clock.advance(2.0)
    c.handle_selection(_wrong_id(c))

    c.reset_to_idle()
    once = c.session
    c.reset_to_idle()
    assert c.session == once == QuizSession()
    assert c.elapsed_s() == 0.0
    assert not c.timer_active


def test_reset_makes_old_token_stale() -> None:
    _clock, feedback, c = _controller()
    c.start(POOL)
    token: SessionToken = feedback.tokens[0]
    assert token.is_current()

    c.reset_to_idle()
    assert not token.is_current()
    assert c.token.is_current()
    assert feedback.kinds()[-1] == "cancel"


def test_region_change_rejected_only_while_running() -> None:
    _clock, feedback, c = _controller()
    assert c.request_region_change()
    c.start(POOL)
    assert not c.request_region_change()
    assert feedback.count("region_rejected") == 1
    assert c.state is SessionState.RUNNING

    while c.state is SessionState.RUNNING:
        c.handle_selection(c.session.current_id or "")
    assert c.request_region_change()


def test_timer_ticks_while_running_and_stops_at_finish() -> None:
    clock = FakeClock()
    timer = PeriodicTimer(clock=clock)
    ticks: list[float] = []
    c = QuizSessionController(
        clock=clock,
        timer=timer,
        rng=random.Random(1),
        timer_interval_s=0.5,
        on_tick=ticks.append,
    )
    c.start(POOL)
    for _ in range(4):
        clock.advance(0.5)
        timer.update()
    assert ticks == pytest.approx([0.5, 1.0, 1.5, 2.0])

    while c.state is SessionState.RUNNING:
        c.handle_selection(c.session.current_id or "")
    clock.advance(1.0)
    timer.update()
    assert len(ticks) == 4
    assert timer.active_count == 0


def test_failing_feedback_does_not_break_the_session() -> None:
    class Exploding:
        def __getattr__(self, name: str):
            def boom(*args: object, **kwargs: object) -> None:
                raise RuntimeError(name)

            return boom

    c = QuizSessionController(clock=FakeClock(), feedback=Exploding(), rng=random.Random(5))
    c.start(POOL)
    c.handle_selection("nope")
    assert c.request_region_change() is False
    while c.state is SessionState.RUNNING:
        c.handle_selection(c.session.current_id or "")
    assert c.session.score == 3
    c.reset_to_idle()
    assert c.state is SessionState.IDLE


def test_running_percent_and_snapshot() -> None:
    _clock, _fb, c = _controller()
    c.start(POOL)
    c.handle_selection(_wrong_id(c))
    c.handle_selection(c.session.current_id or "")

    snap = c.snapshot()
    assert snap.state is SessionState.RUNNING
    assert snap.answered == 1
    assert snap.total == 3
    assert snap.wrong == 1
    assert snap.percent == 50
    assert snap.prompt in {e.display_name for e in POOL}
    assert len(snap.completed_ids) == 1


def test_result_summary_for_finished_session() -> None:
    clock, _fb, c = _controller()
    assert quiz_result_from_session(c) is None

    c.start(POOL)
    for _ in POOL:
        clock.advance(0.25)
        c.handle_selection(c.session.current_id or "")

    result = quiz_result_from_session(c)
    assert result is not None
    assert (result.score, result.total, result.wrong, result.percent) == (3, 3, 0, 100)
    assert result.perfect
    assert result.mean_rt_ms == pytest.approx(250.0)
    assert result.summary_line() == "Score: 3 / 3 (100%) - Time: 0.8s"


def test_finish_outside_running_is_rejected() -> None:
    _clock, feedback, c = _controller()
    assert not c.finish()
    assert feedback.count("finished") == 0
