"""One-shot timers, frame callbacks and debouncing.

Every delayed action in the engine goes through a :class:`Scheduler` and
returns a :class:`ScheduledCall` that can be cancelled. Two schedulers are
provided:

* :class:`LoopScheduler` runs on the asyncio event loop and waits for the
  host page's next rendered frame for frame callbacks.
* :class:`ManualScheduler` keeps a virtual clock; tests advance it
  explicitly instead of sleeping.

Callbacks may be plain functions or return an awaitable. Failures inside a
callback are logged and never propagate into the scheduler.
"""

from __future__ import annotations

import asyncio
import heapq
import inspect
import itertools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

_logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None] | None]


class ScheduledCall:
    """Handle for a pending one-shot callback."""

    __slots__ = ("_cancelled", "_canceller", "_done", "label")

    def __init__(self, label: str = "") -> None:
        self.label = label
        self._cancelled = False
        self._done = False
        self._canceller: Callable[[], Any] | None = None

    def cancel(self) -> None:
        if self._cancelled or self._done:
            return
        self._cancelled = True
        if self._canceller is not None:
            self._canceller()
            self._canceller = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._done

    @property
    def pending(self) -> bool:
        return not (self._cancelled or self._done)

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "done" if self._done else "pending"
        return f"<ScheduledCall {self.label or '?'} {state}>"


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callback, *, label: str = "") -> ScheduledCall: ...

    def request_frame(self, callback: Callback, *, label: str = "") -> ScheduledCall: ...


async def _run_callback(handle: ScheduledCall, callback: Callback) -> None:
    if handle.cancelled:
        return
    handle._done = True  # noqa: SLF001
    try:
        result = callback()
        if inspect.isawaitable(result):
            await result
    except asyncio.CancelledError:
        raise
    except Exception:
        _logger.warning("Scheduled callback %s failed", handle.label or callback, exc_info=True)


class LoopScheduler:
    """Scheduler backed by the running asyncio event loop.

    Parameters
    ----------
    frame_source : callable
        Coroutine function that returns after the host renders its next
        frame (``HostPage.next_frame``).
    """

    def __init__(self, *, frame_source: Callable[[], Awaitable[None]]) -> None:
        self._frame_source = frame_source
        self._tasks: set[asyncio.Task[None]] = set()
        self._handles: set[ScheduledCall] = set()

    def _track(self, coro: Awaitable[None]) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(coro)  # type: ignore[arg-type]
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def call_later(self, delay: float, callback: Callback, *, label: str = "") -> ScheduledCall:
        loop = asyncio.get_running_loop()
        handle = ScheduledCall(label)

        def _fire() -> None:
            self._handles.discard(handle)
            if handle.cancelled:
                return
            task = self._track(_run_callback(handle, callback))
            handle._canceller = task.cancel  # noqa: SLF001

        timer = loop.call_later(max(0.0, delay), _fire)
        handle._canceller = timer.cancel  # noqa: SLF001
        self._handles.add(handle)
        return handle

    def request_frame(self, callback: Callback, *, label: str = "") -> ScheduledCall:
        handle = ScheduledCall(label)

        async def _after_frame() -> None:
            try:
                await self._frame_source()
            except asyncio.CancelledError:
                raise
            except Exception:
                _logger.debug("Frame wait failed; running %s anyway", label or callback, exc_info=True)
            finally:
                self._handles.discard(handle)
            if handle.cancelled:
                return
            await _run_callback(handle, callback)

        task = self._track(_after_frame())
        handle._canceller = task.cancel  # noqa: SLF001
        self._handles.add(handle)
        return handle

    async def aclose(self) -> None:
        """Cancel everything still pending and wait for running callbacks."""
        for handle in list(self._handles):
            handle.cancel()
        self._handles.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


class ManualScheduler:
    """Deterministic scheduler driven by a virtual clock.

    Timers fire only inside :meth:`advance`; frame callbacks only inside
    :meth:`flush_frames`.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._seq = itertools.count()
        self._timers: list[tuple[float, int, ScheduledCall, Callback]] = []
        self._frames: list[tuple[ScheduledCall, Callback]] = []

    def call_later(self, delay: float, callback: Callback, *, label: str = "") -> ScheduledCall:
        handle = ScheduledCall(label)
        heapq.heappush(self._timers, (self.now + max(0.0, delay), next(self._seq), handle, callback))
        return handle

    def request_frame(self, callback: Callback, *, label: str = "") -> ScheduledCall:
        handle = ScheduledCall(label)
        self._frames.append((handle, callback))
        return handle

    @property
    def pending_timers(self) -> int:
        return sum(1 for _due, _seq, handle, _cb in self._timers if handle.pending)

    @property
    def pending_frames(self) -> int:
        return sum(1 for handle, _cb in self._frames if handle.pending)

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in order."""
        target = self.now + seconds
        while self._timers and self._timers[0][0] <= target:
            due, _seq, handle, callback = heapq.heappop(self._timers)
            self.now = max(self.now, due)
            if handle.cancelled:
                continue
            await _run_callback(handle, callback)
        self.now = target

    async def flush_frames(self) -> None:
        """Run the frame callbacks requested so far.

        Callbacks requested while flushing wait for the next flush.
        """
        frames, self._frames = self._frames, []
        for handle, callback in frames:
            if handle.cancelled:
                continue
            await _run_callback(handle, callback)


class Debouncer:
    """Trailing-edge debounce around *callback*.

    Each call restarts the window; when it elapses the callback runs once
    with the arguments of the most recent call.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        delay: float,
        callback: Callable[..., Awaitable[None] | None],
        *,
        label: str = "debounce",
    ) -> None:
        self._scheduler = scheduler
        self._delay = delay
        self._callback = callback
        self._label = label
        self._handle: ScheduledCall | None = None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        if self._handle is not None:
            self._handle.cancel()

        def _fire() -> Awaitable[None] | None:
            self._handle = None
            return self._callback(*args, **kwargs)

        self._handle = self._scheduler.call_later(self._delay, _fire, label=self._label)

    @property
    def pending(self) -> bool:
        return self._handle is not None and self._handle.pending

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
