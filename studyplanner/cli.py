"""CLI to run a Pomodoro timer in the terminal against a running API.
Usage: studyplanner-timer [--subject ID] [--topic ID] [--focus MIN] [--cycles N]
"""
import argparse
import asyncio
import logging
import sys
from typing import Optional

from .client.api import SessionLedgerClient
from .client.timer import PomodoroTimer, TimerConfig, TimerMode, TimerSnapshot
from .config import settings
from .utils.clock import fmt_mmss


def _render(snap: TimerSnapshot) -> None:
    sys.stdout.write(f"\r{snap.mode.value:<12} {fmt_mmss(snap.remaining)}  cycles: {snap.cycle_count} ")
    sys.stdout.flush()


def _saved(record: dict) -> None:
    print(f"\nSession {record.get('id')} saved: {record.get('duration_minutes')} min")


async def run_timer(base_url: str, subject_id: Optional[int], topic_id: Optional[int], config: TimerConfig, cycles: int) -> None:
    """Run focus/break cycles until `cycles` focus intervals have completed.

    Ctrl+C stops the timer, closing the open session first.
    """
    async with SessionLedgerClient(base_url) as ledger:
        async with PomodoroTimer(
            ledger,
            subject_id=subject_id,
            topic_id=topic_id,
            config=config,
            on_session_saved=_saved,
            on_change=_render,
        ) as timer:
            await timer.start_focus()
            while timer.cycle_count < cycles:
                await asyncio.sleep(0.5)
                if timer.mode is TimerMode.IDLE:
                    break
    print()


def main(argv=None):
    parser = argparse.ArgumentParser(description='Pomodoro focus timer backed by the study planner API')
    parser.add_argument('--base-url', default=settings.API_BASE_URL, help='API base URL including the prefix')
    parser.add_argument('--subject', type=int, help='Subject id to record sessions against')
    parser.add_argument('--topic', type=int, help='Topic id to record sessions against')
    parser.add_argument('--focus', type=int, default=settings.FOCUS_MINUTES, help='Focus length in minutes')
    parser.add_argument('--short-break', type=int, default=settings.SHORT_BREAK_MINUTES)
    parser.add_argument('--long-break', type=int, default=settings.LONG_BREAK_MINUTES)
    parser.add_argument('--cycles', type=int, default=1, help='Stop after this many completed focus intervals')
    args = parser.parse_args(argv)
    logging.basicConfig(level=settings.LOG_LEVEL)
    config = TimerConfig(
        focus_minutes=args.focus,
        short_break_minutes=args.short_break,
        long_break_minutes=args.long_break,
    )
    try:
        asyncio.run(run_timer(args.base_url, args.subject, args.topic, config, args.cycles))
    except KeyboardInterrupt:
        print('\nStopped')


if __name__ == '__main__':
    main()
