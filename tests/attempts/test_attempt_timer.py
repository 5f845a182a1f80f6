from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from quizportal.attempts.clock import ManualScheduler
from quizportal.attempts.timer import (
    RESUME_POLICY_ELAPSED,
    RESUME_POLICY_RESTART,
    AttemptTimer,
    format_remaining,
    initial_remaining_seconds,
)

UTC = timezone.utc


def _timer(scheduler: ManualScheduler, remaining: int, expirations: list[int]) -> AttemptTimer:
    return AttemptTimer(
        remaining_seconds=remaining,
        scheduler=scheduler,
        on_expire=lambda: expirations.append(1),
        tick_seconds=1.0,
        low_time_seconds=300,
    )


def test_timer_counts_down_once_per_second() -> None:
    scheduler = ManualScheduler()
    expirations: list[int] = []
    timer = _timer(scheduler, 10, expirations)

    timer.start()
    scheduler.advance(3)

    assert timer.remaining_seconds == 7
    assert timer.is_running is True
    assert expirations == []


def test_timer_expires_exactly_once_and_stops_ticking() -> None:
    scheduler = ManualScheduler()
    expirations: list[int] = []
    timer = _timer(scheduler, 3, expirations)

    timer.start()
    scheduler.advance(3)
    assert timer.remaining_seconds == 0
    assert expirations == [1]

    fired_after = scheduler.advance(60)

    assert fired_after == 0
    assert expirations == [1]
    assert timer.expired is True
    assert timer.is_running is False


def test_timer_with_no_time_left_expires_on_next_turn() -> None:
    scheduler = ManualScheduler()
    expirations: list[int] = []
    timer = _timer(scheduler, 0, expirations)

    timer.start()
    assert expirations == []
    scheduler.advance(0)

    assert expirations == [1]


def test_stop_cancels_further_ticks() -> None:
    scheduler = ManualScheduler()
    expirations: list[int] = []
    timer = _timer(scheduler, 5, expirations)

    timer.start()
    scheduler.advance(2)
    timer.stop()
    scheduler.advance(10)

    assert timer.remaining_seconds == 3
    assert expirations == []


def test_start_is_idempotent() -> None:
    scheduler = ManualScheduler()
    timer = _timer(scheduler, 5, [])

    timer.start()
    timer.start()
    scheduler.advance(1)

    assert timer.remaining_seconds == 4


def test_low_time_threshold_is_under_five_minutes() -> None:
    scheduler = ManualScheduler()
    timer = _timer(scheduler, 301, [])

    timer.start()
    assert timer.is_low_time is False
    scheduler.advance(1)
    assert timer.is_low_time is False
    scheduler.advance(1)
    assert timer.is_low_time is True


def test_restart_policy_always_uses_full_duration() -> None:
    started = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)

    remaining = initial_remaining_seconds(
        duration_minutes=30,
        started_at=started,
        now_utc=started + timedelta(minutes=20),
        policy=RESUME_POLICY_RESTART,
    )

    assert remaining == 30 * 60


def test_elapsed_policy_subtracts_time_since_start() -> None:
    started = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)

    remaining = initial_remaining_seconds(
        duration_minutes=30,
        started_at=started,
        now_utc=started + timedelta(minutes=20, seconds=30),
        policy=RESUME_POLICY_ELAPSED,
    )

    assert remaining == 9 * 60 + 30


def test_elapsed_policy_floors_at_zero() -> None:
    started = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)

    remaining = initial_remaining_seconds(
        duration_minutes=30,
        started_at=started,
        now_utc=started + timedelta(hours=2),
        policy=RESUME_POLICY_ELAPSED,
    )

    assert remaining == 0


def test_unknown_policy_is_rejected() -> None:
    now = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)

    with pytest.raises(ValueError):
        initial_remaining_seconds(duration_minutes=1, started_at=now, now_utc=now, policy="pause")


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (0, "00:00"),
        (59, "00:59"),
        (299, "04:59"),
        (3600, "1:00:00"),
        (3725, "1:02:05"),
    ],
)
def test_format_remaining(seconds: int, expected: str) -> None:
    assert format_remaining(seconds) == expected


def test_display_follows_the_countdown() -> None:
    scheduler = ManualScheduler()
    timer = _timer(scheduler, 61, [])

    timer.start()
    assert timer.display == "01:01"
    scheduler.advance(2)

    assert timer.display == "00:59"
