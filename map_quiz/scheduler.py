"""Frame-deferred callbacks and a clock-driven periodic timer.

Both are pumped from the main loop: ``FrameScheduler.on_frame()`` once per
completed render pass and ``PeriodicTimer.update()`` every frame.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from .clock import Clock


@dataclass(slots=True)
class ScheduledCall:
    frames_left: int
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class FrameScheduler:
    def __init__(self) -> None:
        self._pending: list[ScheduledCall] = []
        self._frame = 0

    @property
    def frame(self) -> int:
        return self._frame

    @property
    def pending_count(self) -> int:
        return sum(1 for call in self._pending if not call.cancelled)

    def after_frames(self, frames: int, callback: Callable[[], None]) -> ScheduledCall:
        """Run ``callback`` once ``frames`` render passes have completed."""

        if frames < 0:
            raise ValueError("frames must be >= 0")
        call = ScheduledCall(frames_left=int(frames), callback=callback)
        if frames == 0:
            callback()
            return call
        self._pending.append(call)
        return call

    def on_frame(self) -> None:
        self._frame += 1
        due: list[ScheduledCall] = []
        keep: list[ScheduledCall] = []
        for call in self._pending:
            if call.cancelled:
                continue
            call.frames_left -= 1
            if call.frames_left <= 0:
                due.append(call)
            else:
                keep.append(call)
        self._pending = keep
        for call in due:
            if not call.cancelled:
                call.callback()

    def pump(self, frames: int) -> None:
        for _ in range(frames):
            self.on_frame()


@dataclass(slots=True)
class TimerHandle:
    interval_s: float
    callback: Callable[[float], None]
    next_at_s: float
    repeat: bool = True
    active: bool = True
    fired: int = field(default=0)

    def cancel(self) -> None:
        self.active = False


class PeriodicTimer:
    """Repeating and one-shot callbacks driven by an injected clock.

    The callback receives the current clock reading. Missed intervals are
    collapsed into a single call.
    """

    def __init__(self, *, clock: Clock) -> None:
        self._clock = clock
        self._handles: list[TimerHandle] = []

    def every(self, interval_s: float, callback: Callable[[float], None]) -> TimerHandle:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        handle = TimerHandle(
            interval_s=float(interval_s),
            callback=callback,
            next_at_s=self._clock.now() + float(interval_s),
        )
        self._handles.append(handle)
        return handle

    def once(self, delay_s: float, callback: Callable[[float], None]) -> TimerHandle:
        if delay_s < 0:
            raise ValueError("delay_s must be >= 0")
        handle = TimerHandle(
            interval_s=float(delay_s),
            callback=callback,
            next_at_s=self._clock.now() + float(delay_s),
            repeat=False,
        )
        self._handles.append(handle)
        return handle

    @property
    def active_count(self) -> int:
        return sum(1 for h in self._handles if h.active)

    def update(self) -> None:
        now = self._clock.now()
        self._handles = [h for h in self._handles if h.active]
        for handle in list(self._handles):
            if not handle.active or now < handle.next_at_s:
                continue
            handle.fired += 1
            if not handle.repeat:
                handle.active = False
            else:
                while handle.next_at_s <= now:
                    handle.next_at_s += handle.interval_s
            handle.callback(now)
