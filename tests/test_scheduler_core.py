from __future__ import annotations

from dataclasses import dataclass

import pytest

from map_quiz.scheduler import FrameScheduler, PeriodicTimer


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_after_frames_runs_once_after_count() -> None:
    sched = FrameScheduler()
    calls: list[int] = []
    sched.after_frames(2, lambda: calls.append(sched.frame))

    sched.on_frame()
    assert calls == []
    sched.pump(3)
    assert calls == [2]
    assert sched.pending_count == 0


def test_after_zero_frames_runs_immediately() -> None:
    sched = FrameScheduler()
    calls: list[str] = []
    sched.after_frames(0, lambda: calls.append("now"))
    assert calls == ["now"]


def test_cancelled_call_never_runs() -> None:
    sched = FrameScheduler()
    calls: list[str] = []
    call = sched.after_frames(1, lambda: calls.append("x"))
    call.cancel()
    sched.pump(2)
    assert calls == []


def test_negative_frame_count_rejected() -> None:
    with pytest.raises(ValueError):
        FrameScheduler().after_frames(-1, lambda: None)


def test_periodic_timer_collapses_missed_intervals() -> None:
    clock = FakeClock()
    timer = PeriodicTimer(clock=clock)
    seen: list[float] = []
    handle = timer.every(0.1, seen.append)

    clock.advance(0.35)
    timer.update()
    assert seen == [pytest.approx(0.35)]
    assert handle.fired == 1

    clock.advance(0.06)
    timer.update()
    assert len(seen) == 2


def test_one_shot_fires_once_and_can_be_cancelled() -> None:
    clock = FakeClock()
    timer = PeriodicTimer(clock=clock)
    seen: list[str] = []
    timer.once(0.2, lambda now: seen.append("a"))
    cancelled = timer.once(0.2, lambda now: seen.append("b"))
    cancelled.cancel()

    clock.advance(0.1)
    timer.update()
    assert seen == []
    clock.advance(0.2)
    timer.update()
    timer.update()
    assert seen == ["a"]
    assert timer.active_count == 0
