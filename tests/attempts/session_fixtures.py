from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from quizportal.attempts.errors import BackendUnavailableError
from quizportal.attempts.in_memory_backend import InMemoryAttemptBackend
from quizportal.attempts.schemas import AnswerPayload
from quizportal.attempts.types import Attempt, Feedback
from quizportal.core.config import Settings
from quizportal.quizzes.types import Quiz

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "LOG_LEVEL": "WARNING",
        "AUTOSAVE_DEBOUNCE_SECONDS": 1.0,
        "AUTOSAVE_STATUS_DISPLAY_SECONDS": 2.0,
        "TIMER_TICK_SECONDS": 1.0,
        "TIMER_LOW_TIME_SECONDS": 300,
        "TIMER_RESUME_POLICY": "restart",
    }
    values.update(overrides)
    return Settings(**values)


class RecordingBackend:
    """Wraps the in-memory backend, logging calls and injecting failures."""

    def __init__(
        self,
        quizzes: list[Quiz],
        *,
        fail_saves: bool = False,
        fail_completes: int = 0,
        fail_fetch: Exception | None = None,
        complete_error: Exception | None = None,
    ) -> None:
        self.inner = InMemoryAttemptBackend(quizzes, now=lambda: NOW)
        self.calls: list[tuple[str, ...]] = []
        self.payloads: list[AnswerPayload] = []
        self.complete_gate: asyncio.Future[None] | None = None
        self._fail_saves = fail_saves
        self._fail_completes = fail_completes
        self._fail_fetch = fail_fetch
        self._complete_error = complete_error

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    async def fetch_quiz(self, quiz_id: str) -> Quiz:
        self.calls.append(("fetch_quiz", quiz_id))
        if self._fail_fetch is not None:
            raise self._fail_fetch
        return await self.inner.fetch_quiz(quiz_id)

    async def start_attempt(self, quiz_id: str) -> Attempt:
        self.calls.append(("start_attempt", quiz_id))
        return await self.inner.start_attempt(quiz_id)

    async def save_answer(self, attempt_id: str, question_id: str, payload: AnswerPayload) -> None:
        self.calls.append(("save_answer", question_id))
        self.payloads.append(payload)
        if self._fail_saves:
            raise BackendUnavailableError("save timed out")
        await self.inner.save_answer(attempt_id, question_id, payload)

    async def complete_attempt(self, attempt_id: str) -> Attempt:
        self.calls.append(("complete_attempt", attempt_id))
        if self.complete_gate is not None:
            await self.complete_gate
        if self._fail_completes > 0:
            self._fail_completes -= 1
            raise self._complete_error or BackendUnavailableError("network down")
        return await self.inner.complete_attempt(attempt_id)

    async def grade_attempt(
        self,
        attempt_id: str,
        grades: Mapping[str, Feedback],
        overall_feedback: str | None,
        *,
        graded_by: str | None = None,
    ) -> Attempt:
        self.calls.append(("grade_attempt", attempt_id))
        return await self.inner.grade_attempt(attempt_id, grades, overall_feedback, graded_by=graded_by)


async def let_tasks_run() -> None:
    for _ in range(10):
        await asyncio.sleep(0)
