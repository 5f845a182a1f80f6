from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial

import structlog

from quizportal.attempts.clock import Cancellable, Scheduler
from quizportal.attempts.errors import SessionClosedError
from quizportal.attempts.types import Answer, SaveStatus

logger = structlog.get_logger("quizportal.attempts.autosave")

SaveAnswer = Callable[[str, Answer], Awaitable[None]]

DEFAULT_DEBOUNCE_SECONDS = 1.0
DEFAULT_STATUS_DISPLAY_SECONDS = 2.0


@dataclass(slots=True)
class _QuestionSaveState:
    latest: Answer | None = None
    pending: Cancellable | None = None
    in_flight: asyncio.Task[bool] | None = None
    queued: bool = False
    status: SaveStatus | None = None
    status_reset: Cancellable | None = None


class AutosaveCoordinator:
    """Debounced, per-question serialized persistence of answers.

    Each question has at most one save in flight. An edit arriving during a
    flight marks one follow-up save, which carries whatever value is latest
    when the flight resolves. A failed save is never retried with its stale
    value; the next edit supersedes it.
    """

    def __init__(
        self,
        *,
        save: SaveAnswer,
        scheduler: Scheduler,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        status_display_seconds: float = DEFAULT_STATUS_DISPLAY_SECONDS,
        attempt_id: str | None = None,
    ) -> None:
        self._save = save
        self._scheduler = scheduler
        self._debounce_seconds = debounce_seconds
        self._status_display_seconds = status_display_seconds
        self._attempt_id = attempt_id
        self._states: dict[str, _QuestionSaveState] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def status(self, question_id: str) -> SaveStatus | None:
        state = self._states.get(question_id)
        return state.status if state is not None else None

    def has_pending(self, question_id: str | None = None) -> bool:
        if question_id is None:
            states = list(self._states.values())
        else:
            state = self._states.get(question_id)
            states = [state] if state is not None else []
        return any(
            state.pending is not None or state.in_flight is not None or state.queued for state in states
        )

    def schedule(self, answer: Answer) -> None:
        if self._closed:
            raise SessionClosedError("autosave is closed")
        state = self._states.setdefault(answer.question_id, _QuestionSaveState())
        state.latest = answer
        self._set_status(state, SaveStatus.SAVING)
        self._cancel_pending(state)
        if state.in_flight is not None:
            state.queued = True
            return
        state.pending = self._scheduler.call_later(
            self._debounce_seconds,
            partial(self._fire, answer.question_id),
        )

    async def flush(self, question_id: str) -> bool:
        """Send any debounced save now and wait for the question to settle.

        Returns False when the last save for the question failed.
        """
        state = self._states.get(question_id)
        if state is None:
            return True
        if state.pending is not None:
            self._cancel_pending(state)
            if state.in_flight is not None:
                state.queued = True
            else:
                self._start(question_id, state)

        ok = state.status != SaveStatus.ERROR
        while state.in_flight is not None:
            task = state.in_flight
            await asyncio.wait({task})
            ok = not task.cancelled() and task.result()
        return ok

    async def flush_all(self) -> list[str]:
        """Flush every question; returns ids whose final save failed."""
        question_ids = list(self._states)
        results = await asyncio.gather(*(self.flush(question_id) for question_id in question_ids))
        return [question_id for question_id, ok in zip(question_ids, results) if not ok]

    async def wait_idle(self) -> None:
        while True:
            tasks = {state.in_flight for state in self._states.values() if state.in_flight is not None}
            if not tasks:
                return
            await asyncio.wait(tasks)

    def close(self) -> None:
        self._closed = True
        for state in self._states.values():
            self._cancel_pending(state)
            state.queued = False
            if state.status_reset is not None:
                state.status_reset.cancel()
                state.status_reset = None
            if state.in_flight is not None:
                state.in_flight.cancel()

    def _fire(self, question_id: str) -> None:
        state = self._states[question_id]
        state.pending = None
        if self._closed:
            return
        if state.in_flight is not None:
            state.queued = True
            return
        self._start(question_id, state)

    def _start(self, question_id: str, state: _QuestionSaveState) -> None:
        answer = state.latest
        if answer is None:
            return
        state.queued = False
        self._set_status(state, SaveStatus.SAVING)
        state.in_flight = asyncio.get_running_loop().create_task(self._run(question_id, state, answer))

    async def _run(self, question_id: str, state: _QuestionSaveState, answer: Answer) -> bool:
        try:
            await self._save(question_id, answer)
        except Exception:
            logger.exception(
                "attempt_autosave_failed",
                attempt_id=self._attempt_id,
                question_id=question_id,
            )
            ok = False
            self._set_status(state, SaveStatus.ERROR)
        else:
            ok = True
            if not state.queued and state.pending is None:
                self._set_status(state, SaveStatus.SAVED)
                state.status_reset = self._scheduler.call_later(
                    self._status_display_seconds,
                    partial(self._clear_saved_status, question_id),
                )
        finally:
            state.in_flight = None

        if state.queued and not self._closed:
            self._start(question_id, state)
        return ok

    def _clear_saved_status(self, question_id: str) -> None:
        state = self._states[question_id]
        state.status_reset = None
        if state.status == SaveStatus.SAVED:
            state.status = None

    def _set_status(self, state: _QuestionSaveState, status: SaveStatus) -> None:
        if state.status_reset is not None:
            state.status_reset.cancel()
            state.status_reset = None
        state.status = status

    @staticmethod
    def _cancel_pending(state: _QuestionSaveState) -> None:
        if state.pending is not None:
            state.pending.cancel()
            state.pending = None
