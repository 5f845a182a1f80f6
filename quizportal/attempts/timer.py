from __future__ import annotations

import math
from collections.abc import Callable
from datetime import datetime

import structlog

from quizportal.attempts.clock import Cancellable, Scheduler

logger = structlog.get_logger("quizportal.attempts.timer")

DEFAULT_LOW_TIME_SECONDS = 300
RESUME_POLICY_RESTART = "restart"
RESUME_POLICY_ELAPSED = "elapsed"


def initial_remaining_seconds(
    *,
    duration_minutes: int,
    started_at: datetime,
    now_utc: datetime,
    policy: str = RESUME_POLICY_RESTART,
) -> int:
    full_duration = max(0, int(duration_minutes) * 60)
    if policy == RESUME_POLICY_RESTART:
        return full_duration
    if policy != RESUME_POLICY_ELAPSED:
        raise ValueError(f"unknown timer resume policy: {policy}")
    elapsed = math.floor((now_utc - started_at).total_seconds())
    return max(0, full_duration - max(0, elapsed))


def format_remaining(seconds: int) -> str:
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


class AttemptTimer:
    """Countdown for one attempt, ticking once per interval on a scheduler.

    Reaching zero stops the countdown and calls ``on_expire`` exactly once.
    There is no pause; ``stop`` is for teardown only.
    """

    def __init__(
        self,
        *,
        remaining_seconds: int,
        scheduler: Scheduler,
        on_expire: Callable[[], None],
        tick_seconds: float = 1.0,
        low_time_seconds: int = DEFAULT_LOW_TIME_SECONDS,
    ) -> None:
        self._remaining = max(0, int(remaining_seconds))
        self._scheduler = scheduler
        self._on_expire = on_expire
        self._tick_seconds = tick_seconds
        self._low_time_seconds = low_time_seconds
        self._handle: Cancellable | None = None
        self._started = False
        self._expired = False

    @property
    def remaining_seconds(self) -> int:
        return self._remaining

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    @property
    def expired(self) -> bool:
        return self._expired

    @property
    def is_low_time(self) -> bool:
        return self._remaining < self._low_time_seconds

    @property
    def display(self) -> str:
        return format_remaining(self._remaining)

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        if self._remaining <= 0:
            # Nothing left on a resumed attempt; expire on the next loop turn.
            self._handle = self._scheduler.call_later(0, self._expire)
            return
        self._schedule_tick()

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule_tick(self) -> None:
        self._handle = self._scheduler.call_later(self._tick_seconds, self._tick)

    def _tick(self) -> None:
        self._handle = None
        if self._expired:
            return
        self._remaining = max(0, self._remaining - 1)
        if self._remaining == 0:
            self._expire()
            return
        self._schedule_tick()

    def _expire(self) -> None:
        self._handle = None
        if self._expired:
            return
        self._expired = True
        self._remaining = 0
        logger.info("attempt_timer_expired")
        self._on_expire()
