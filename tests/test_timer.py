import asyncio

import httpx
import pytest

from studyplanner.client.timer import PomodoroTimer, TimerConfig, TimerMode


def run(coro):
    """Run an async function in a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class FakeLedger:
    def __init__(self, fail_start=False, fail_stop=False):
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.started = []
        self.stopped = []
        self._next_id = 1

    async def start_session(self, subject_id, topic_id, kind):
        if self.fail_start:
            raise httpx.ConnectError("connection refused")
        record = {'id': self._next_id, 'subject_id': subject_id, 'topic_id': topic_id,
                  'type': kind, 'end_time': None, 'duration_minutes': None}
        self._next_id += 1
        self.started.append(record)
        return record

    async def stop_session(self, session_id):
        if self.fail_stop:
            raise httpx.ConnectError("connection refused")
        self.stopped.append(session_id)
        return {'id': session_id, 'end_time': '2030-01-01T10:25:00.000Z', 'duration_minutes': 25}


def _timer(ledger, **kwargs):
    kwargs.setdefault('tick_interval', None)
    return PomodoroTimer(ledger, subject_id=3, topic_id=9, **kwargs)


def _ticks(timer, n):
    for _ in range(n):
        timer.tick()


def test_focus_completion_moves_to_short_break():
    async def scenario():
        ledger = FakeLedger()
        saved = []
        timer = _timer(ledger, on_session_saved=saved.append)
        session = await timer.start_focus()
        assert session['id'] == 1
        assert ledger.started[0]['type'] == 'pomodoro'
        assert (timer.mode, timer.remaining, timer.running) == (TimerMode.FOCUS, 1500, True)
        _ticks(timer, 1499)
        assert timer.mode is TimerMode.FOCUS
        assert timer.remaining == 1
        timer.tick()
        assert timer.mode is TimerMode.SHORT_BREAK
        assert timer.cycle_count == 1
        assert timer.remaining == 300
        assert timer.running
        assert timer.session is None
        await timer.drain()
        assert ledger.stopped == [1]
        assert saved[0]['duration_minutes'] == 25

    run(scenario())


def test_fourth_cycle_takes_long_break_and_breaks_do_not_record():
    async def scenario():
        ledger = FakeLedger()
        timer = _timer(ledger)
        await timer.start_focus()
        for cycle in range(1, 5):
            _ticks(timer, 1500)
            assert timer.cycle_count == cycle
            if cycle < 4:
                assert timer.mode is TimerMode.SHORT_BREAK
                _ticks(timer, 300)
                assert timer.mode is TimerMode.FOCUS
                assert timer.remaining == 1500
                assert timer.session is None
        assert timer.mode is TimerMode.LONG_BREAK
        assert timer.remaining == 900
        await timer.drain()
        assert len(ledger.started) == 1
        assert ledger.stopped == [1]

    run(scenario())


def test_completion_fires_once_per_zero_crossing():
    async def scenario():
        ledger = FakeLedger()
        timer = _timer(ledger)
        await timer.start_focus()
        timer.remaining = 1
        timer.tick()
        timer.tick()
        await timer.drain()
        assert timer.cycle_count == 1
        assert timer.remaining == 299
        assert ledger.stopped == [1]

    run(scenario())


def test_pause_and_resume_keep_session():
    async def scenario():
        ledger = FakeLedger()
        timer = _timer(ledger)
        await timer.start_focus()
        _ticks(timer, 10)
        timer.pause()
        assert (timer.mode, timer.running) == (TimerMode.PAUSED, False)
        _ticks(timer, 10)
        assert timer.remaining == 1490
        assert timer.session_id == 1
        timer.resume()
        assert (timer.mode, timer.running) == (TimerMode.FOCUS, True)
        assert timer.session_id == 1
        timer.tick()
        assert timer.remaining == 1489

    run(scenario())


def test_manual_stop_closes_session_and_resets():
    async def scenario():
        ledger = FakeLedger()
        saved = []
        timer = _timer(ledger, on_session_saved=saved.append)
        await timer.start_focus()
        _ticks(timer, 1500 + 20)
        assert timer.cycle_count == 1
        timer.pause()  # no-op during a break
        assert timer.mode is TimerMode.SHORT_BREAK
        await timer.drain()
        ledger.stopped.clear()

        timer2 = _timer(ledger, on_session_saved=saved.append)
        await timer2.start_focus()
        _ticks(timer2, 60)
        closed = await timer2.stop()
        assert closed['id'] == 2
        assert ledger.stopped == [2]
        assert saved[-1] is closed
        assert (timer2.mode, timer2.remaining, timer2.cycle_count, timer2.running) == (TimerMode.IDLE, 1500, 0, False)
        assert timer2.session is None

        # stopping during a break resets the cycle counter without a ledger call
        assert await timer.stop() is None
        assert timer.cycle_count == 0
        assert ledger.stopped == [2]

    run(scenario())


def test_stop_while_idle_is_noop():
    async def scenario():
        ledger = FakeLedger()
        timer = _timer(ledger)
        assert await timer.stop() is None
        assert timer.mode is TimerMode.IDLE
        assert ledger.stopped == []

    run(scenario())


def test_start_failure_keeps_timer_running_locally():
    async def scenario():
        ledger = FakeLedger(fail_start=True)
        timer = _timer(ledger)
        assert await timer.start_focus() is None
        assert (timer.mode, timer.running, timer.session) == (TimerMode.FOCUS, True, None)
        _ticks(timer, 1500)
        assert timer.mode is TimerMode.SHORT_BREAK
        await timer.stop()
        assert ledger.stopped == []

    run(scenario())


def test_stop_failure_still_returns_to_idle():
    async def scenario():
        ledger = FakeLedger(fail_stop=True)
        timer = _timer(ledger)
        await timer.start_focus()
        assert await timer.stop() is None
        assert timer.mode is TimerMode.IDLE
        assert timer.session is None

    run(scenario())


def test_late_start_response_after_stop_is_ignored():
    class SlowLedger(FakeLedger):
        def __init__(self):
            super().__init__()
            self.release = asyncio.Event()

        async def start_session(self, subject_id, topic_id, kind):
            await self.release.wait()
            return await super().start_session(subject_id, topic_id, kind)

    async def scenario():
        ledger = SlowLedger()
        timer = _timer(ledger)
        pending = asyncio.ensure_future(timer.start_focus())
        await asyncio.sleep(0)
        assert timer.mode is TimerMode.FOCUS
        await timer.stop()
        ledger.release.set()
        assert await pending is None
        assert timer.mode is TimerMode.IDLE
        assert timer.session is None
        assert ledger.stopped == []

    run(scenario())


def test_start_focus_only_from_idle():
    async def scenario():
        ledger = FakeLedger()
        timer = _timer(ledger)
        await timer.start_focus()
        assert await timer.start_focus() is None
        assert len(ledger.started) == 1

    run(scenario())


def test_countdown_task_runs_and_is_cancelled_on_pause():
    async def scenario():
        ledger = FakeLedger()
        async with PomodoroTimer(ledger, tick_interval=0.001) as timer:
            await timer.start_focus()
            await asyncio.sleep(0.05)
            assert timer.remaining < 1500
            timer.pause()
            frozen = timer.remaining
            await asyncio.sleep(0.05)
            assert timer.remaining == frozen
            timer.resume()
            await asyncio.sleep(0.05)
            assert timer.remaining < frozen
        assert timer.mode is TimerMode.IDLE
        assert ledger.stopped == [1]

    run(scenario())


def test_on_change_reports_snapshots():
    async def scenario():
        snaps = []
        timer = _timer(FakeLedger(), on_change=snaps.append)
        await timer.start_focus()
        timer.tick()
        assert snaps[0].mode is TimerMode.FOCUS
        assert snaps[-1].remaining == 1499
        assert snaps[-1].session_id == 1
        assert timer.format_remaining() == '24:59'

    run(scenario())


def test_config_for_topic_clamps_focus_length():
    assert TimerConfig.for_topic(120).focus_minutes == 55
    assert TimerConfig.for_topic(2).focus_minutes == 5
    assert TimerConfig.for_topic(30, short_break_minutes=10).short_break_seconds == 600
    with pytest.raises(ValueError):
        TimerConfig(focus_minutes=0)


def test_custom_lengths():
    async def scenario():
        timer = _timer(FakeLedger(), config=TimerConfig(focus_minutes=1, short_break_minutes=1, long_break_minutes=2, long_break_every=2))
        await timer.start_focus()
        assert timer.remaining == 60
        _ticks(timer, 60)
        assert timer.mode is TimerMode.SHORT_BREAK
        _ticks(timer, 60 + 60)
        assert timer.mode is TimerMode.LONG_BREAK
        assert timer.remaining == 120

    run(scenario())


def test_countdown_loop_exits_when_not_running():
    async def scenario():
        timer = PomodoroTimer(FakeLedger(), tick_interval=0.001)
        await timer.start_focus()
        task = timer._countdown
        timer.running = False
        await asyncio.sleep(0.05)
        assert task.done()
        await timer.close()
        assert timer.mode is TimerMode.IDLE

    run(scenario())


def test_failing_on_change_does_not_freeze_countdown():
    def explode(snapshot):
        raise RuntimeError("render failed")

    async def scenario():
        async with PomodoroTimer(FakeLedger(), tick_interval=0.001, on_change=explode) as timer:
            session = await timer.start_focus()
            assert session['id'] == 1
            await asyncio.sleep(0.05)
            assert timer.remaining < 1500
            assert not timer._countdown.done()

    run(scenario())
