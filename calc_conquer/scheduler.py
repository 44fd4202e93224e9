from __future__ import annotations

from collections.abc import Callable

from .clock import Clock


class ScheduledCall:
    """Handle for a callback queued on a ``FrameScheduler``."""

    __slots__ = ("_callback", "_due_s", "_cancelled", "_done")

    def __init__(self, callback: Callable[[], None], due_s: float | None) -> None:
        self._callback = callback
        self._due_s = due_s  # None means "next frame"
        self._cancelled = False
        self._done = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._done

    @property
    def active(self) -> bool:
        return not (self._cancelled or self._done)

    def cancel(self) -> None:
        self._cancelled = True

    def _is_due(self, now_s: float) -> bool:
        return self._due_s is None or now_s >= self._due_s

    def _run(self) -> None:
        self._done = True
        self._callback()


class FrameScheduler:
    """Single-threaded scheduler pumped once per display frame.

    The host (the pygame loop, or a test) calls :meth:`pump` every frame.
    Frame callbacks run on the next pump; delayed calls run on the first pump
    at or after their due time. Anything scheduled while a pump is running
    waits for the following pump, so a frame callback that re-requests itself
    runs exactly once per frame.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._queue: list[ScheduledCall] = []
        self._inflight: list[ScheduledCall] = []

    @property
    def pending(self) -> int:
        return sum(1 for call in self._queue if call.active)

    def request_frame(self, callback: Callable[[], None]) -> ScheduledCall:
        call = ScheduledCall(callback, None)
        self._queue.append(call)
        return call

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ScheduledCall:
        if delay_s < 0:
            raise ValueError("delay_s must be >= 0")
        call = ScheduledCall(callback, self._clock.now() + float(delay_s))
        self._queue.append(call)
        return call

    def pump(self) -> int:
        """Run every due callback once. Returns how many ran."""

        now_s = self._clock.now()
        batch, self._queue = self._queue, []
        self._inflight = batch
        deferred: list[ScheduledCall] = []
        ran = 0
        for call in batch:
            if not call.active:
                continue
            if not call._is_due(now_s):
                deferred.append(call)
                continue
            call._run()
            ran += 1
        self._inflight = []
        self._queue = deferred + self._queue
        return ran

    def cancel_all(self) -> None:
        for call in (*self._inflight, *self._queue):
            call.cancel()
        self._queue.clear()
