"""Client side of the study planner: the ledger HTTP client and the Pomodoro timer."""

from .api import SessionLedgerClient
from .timer import PomodoroTimer, TimerConfig, TimerMode, TimerSnapshot

__all__ = ["SessionLedgerClient", "PomodoroTimer", "TimerConfig", "TimerMode", "TimerSnapshot"]
