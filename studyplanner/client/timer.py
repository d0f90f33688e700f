"""Pomodoro timer state machine.

One `PomodoroTimer` drives a single countdown through focus and break
intervals and records focus intervals in the session ledger:

    idle --start_focus--> focus --pause--> paused --resume--> focus
    focus --(zero)--> short_break | long_break --(zero)--> focus
    any non-idle --stop--> idle

Ledger calls never gate local state: transitions are applied first and
remote failures are logged. Each focus interval carries a generation
number so a ledger response for an interval that already ended is
dropped instead of being attached to newer state.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import httpx

from ..utils.clock import fmt_mmss

logger = logging.getLogger("studyplanner.timer")

SESSION_KIND = "pomodoro"
# transport errors, non-2xx statuses and bodies that are not JSON
LEDGER_ERRORS = (httpx.HTTPError, ValueError)


class TimerMode(str, Enum):
    IDLE = "idle"
    FOCUS = "focus"
    PAUSED = "paused"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"


@dataclass(frozen=True)
class TimerConfig:
    """Interval lengths in minutes."""

    focus_minutes: int = 25
    short_break_minutes: int = 5
    long_break_minutes: int = 15
    long_break_every: int = 4

    def __post_init__(self):
        for name in ("focus_minutes", "short_break_minutes", "long_break_minutes", "long_break_every"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")

    @classmethod
    def for_topic(cls, estimated_minutes: int, **kwargs) -> "TimerConfig":
        """Focus length taken from a topic estimate, kept within 5..55 minutes."""
        return cls(focus_minutes=min(55, max(5, int(estimated_minutes))), **kwargs)

    @property
    def focus_seconds(self) -> int:
        return self.focus_minutes * 60

    @property
    def short_break_seconds(self) -> int:
        return self.short_break_minutes * 60

    @property
    def long_break_seconds(self) -> int:
        return self.long_break_minutes * 60


@dataclass(frozen=True)
class TimerSnapshot:
    mode: TimerMode
    remaining: int
    running: bool
    cycle_count: int
    session_id: Optional[int]


class PomodoroTimer:
    """Focus/break countdown bound to one subject/topic.

    `ledger` must provide `start_session(subject_id, topic_id, kind)` and
    `stop_session(session_id)` coroutines (see `SessionLedgerClient`).
    With `tick_interval=None` no background countdown is scheduled and the
    caller drives the timer through `tick()`.
    """

    def __init__(
        self,
        ledger: Any,
        *,
        subject_id: Optional[int] = None,
        topic_id: Optional[int] = None,
        config: Optional[TimerConfig] = None,
        on_session_saved: Optional[Callable[[dict], None]] = None,
        on_change: Optional[Callable[[TimerSnapshot], None]] = None,
        tick_interval: Optional[float] = 1.0,
    ):
        self.ledger = ledger
        self.subject_id = subject_id
        self.topic_id = topic_id
        self.config = config or TimerConfig()
        self.on_session_saved = on_session_saved
        self.on_change = on_change
        self.tick_interval = tick_interval

        self.mode = TimerMode.IDLE
        self.remaining = self.config.focus_seconds
        self.running = False
        self.cycle_count = 0
        self.session: Optional[dict] = None

        self._generation = 0
        self._interval_id = 0
        self._fired_interval = -1
        self._countdown: Optional[asyncio.Task] = None
        self._pending: set[asyncio.Task] = set()

    # -- state -----------------------------------------------------------

    @property
    def session_id(self) -> Optional[int]:
        return self.session.get("id") if self.session else None

    def snapshot(self) -> TimerSnapshot:
        return TimerSnapshot(self.mode, self.remaining, self.running, self.cycle_count, self.session_id)

    def format_remaining(self) -> str:
        return fmt_mmss(self.remaining)

    def _notify(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(self.snapshot())
        except Exception:
            logger.exception("on_change callback failed")

    def _enter(self, mode: TimerMode, seconds: int) -> None:
        self.mode = mode
        self.remaining = seconds
        self.running = True
        self._interval_id += 1
        self._start_countdown()

    def _reset_to_idle(self) -> None:
        self.mode = TimerMode.IDLE
        self.remaining = self.config.focus_seconds
        self.running = False
        self.cycle_count = 0
        self.session = None

    # -- user actions ----------------------------------------------------

    async def start_focus(self) -> Optional[dict]:
        """Begin a focus interval and open a ledger session for it.

        Returns the opened session, or None when the ledger call failed or
        its response arrived after the interval had already ended.
        """
        if self.mode is not TimerMode.IDLE:
            return None
        self._generation += 1
        generation = self._generation
        self._enter(TimerMode.FOCUS, self.config.focus_seconds)
        self._notify()
        try:
            record = await self.ledger.start_session(self.subject_id, self.topic_id, SESSION_KIND)
        except LEDGER_ERRORS:
            logger.exception("Failed to start session; timer continues without recording")
            return None
        if generation != self._generation:
            logger.warning("Ignoring stale session start id=%s", record.get("id"))
            return None
        self.session = record
        self._notify()
        return record

    def pause(self) -> None:
        if self.mode is not TimerMode.FOCUS:
            return
        self._cancel_countdown()
        self.running = False
        self.mode = TimerMode.PAUSED
        self._notify()

    def resume(self) -> None:
        if self.mode is not TimerMode.PAUSED:
            return
        self.mode = TimerMode.FOCUS
        self.running = True
        self._start_countdown()
        self._notify()

    async def stop(self) -> Optional[dict]:
        """Return to idle, closing the open session if there is one.

        Local state is reset before the ledger is contacted. Returns the
        closed session, or None when there was none or the call failed.
        """
        if self.mode is TimerMode.IDLE:
            return None
        self._cancel_countdown()
        session = self.session
        self._generation += 1
        self._reset_to_idle()
        self._notify()
        if session is None:
            return None
        return await self._close_session(session)

    # -- countdown -------------------------------------------------------

    def tick(self) -> None:
        """Advance the countdown by one second."""
        if not self.running:
            return
        self.remaining -= 1
        if self.remaining <= 0 and self._fired_interval != self._interval_id:
            self._fired_interval = self._interval_id
            self._complete()
        self._notify()

    def _complete(self) -> None:
        if self.mode is TimerMode.FOCUS:
            session = self.session
            self.session = None
            self._generation += 1
            self.cycle_count += 1
            if self.cycle_count % self.config.long_break_every == 0:
                self._enter(TimerMode.LONG_BREAK, self.config.long_break_seconds)
            else:
                self._enter(TimerMode.SHORT_BREAK, self.config.short_break_seconds)
            if session is not None:
                self._spawn(self._close_session(session))
        elif self.mode in (TimerMode.SHORT_BREAK, TimerMode.LONG_BREAK):
            # focus after a break is not recorded in the ledger
            self._generation += 1
            self._enter(TimerMode.FOCUS, self.config.focus_seconds)

    async def _run_countdown(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            if not self.running:
                return
            self.tick()

    def _start_countdown(self) -> None:
        if self.tick_interval is None:
            return
        if self._countdown is not None and not self._countdown.done():
            return
        self._countdown = asyncio.get_running_loop().create_task(self._run_countdown())

    def _cancel_countdown(self) -> None:
        task, self._countdown = self._countdown, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    # -- ledger ----------------------------------------------------------

    async def _close_session(self, session: dict) -> Optional[dict]:
        try:
            record = await self.ledger.stop_session(session["id"])
        except LEDGER_ERRORS:
            logger.exception("Failed to stop session %s on server", session.get("id"))
            return None
        if self.on_session_saved is not None:
            self.on_session_saved(record)
        return record

    def _spawn(self, coro: Awaitable) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for ledger calls started by automatic transitions."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Stop the timer and release its countdown task."""
        task = self._countdown
        await self.stop()
        self._cancel_countdown()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self.drain()

    async def __aenter__(self) -> "PomodoroTimer":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
