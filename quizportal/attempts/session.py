from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

import structlog

from quizportal.attempts.answer_store import AnswerStore
from quizportal.attempts.autosave import AutosaveCoordinator
from quizportal.attempts.backend import AttemptBackend
from quizportal.attempts.clock import LoopScheduler, Scheduler
from quizportal.attempts.errors import (
    AttemptBackendError,
    AttemptLoadError,
    AttemptSubmissionError,
    InvalidAnswerError,
    SessionClosedError,
    SessionStateError,
    classify_backend_error,
)
from quizportal.attempts.schemas import answer_to_payload
from quizportal.attempts.timer import AttemptTimer, initial_remaining_seconds
from quizportal.attempts.types import (
    Answer,
    Attempt,
    SaveStatus,
    SessionErrorKind,
    SessionFailure,
    SessionState,
)
from quizportal.core.config import Settings, get_settings
from quizportal.quizzes.errors import InvalidQuestionError
from quizportal.quizzes.rules import question_order, validate_quiz
from quizportal.quizzes.types import MultiOptionAnswer, Question, QuestionType, Quiz

logger = structlog.get_logger("quizportal.attempts.session")

_SINGLE_VALUED_TYPES = (QuestionType.SINGLE_CHOICE, QuestionType.TRUE_FALSE)
_TEXT_TYPES = (QuestionType.SHORT_ANSWER, QuestionType.ESSAY)

_LOAD_FAILED_MESSAGE = "Failed to start quiz. Please try again later."
_SUBMIT_FAILED_MESSAGE = "Failed to submit quiz. Please try again."


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _consume_submission_result(task: asyncio.Task[Attempt]) -> None:
    # Timer-driven submissions have no awaiting caller; failures live in last_error.
    if not task.cancelled():
        task.exception()


class AttemptSession:
    """One student's live pass through a quiz.

    States run ``loading -> in-progress -> submitting -> submitted``. A failed
    load is a dead end (``failed``); a failed completion call returns the
    session to ``in-progress`` so the student can retry. Backend errors never
    leave this class raw: they are recorded in ``last_error`` and re-raised as
    ``AttemptLoadError`` or ``AttemptSubmissionError``.
    """

    def __init__(
        self,
        *,
        quiz_id: str,
        backend: AttemptBackend,
        scheduler: Scheduler | None = None,
        settings: Settings | None = None,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._quiz_id = quiz_id
        self._backend = backend
        self._scheduler = scheduler or LoopScheduler()
        self._settings = settings or get_settings()
        self._now = now

        self._state = SessionState.LOADING
        self._quiz: Quiz | None = None
        self._attempt: Attempt | None = None
        self._questions: tuple[Question, ...] = ()
        self._index = 0
        self._store: AnswerStore | None = None
        self._timer: AttemptTimer | None = None
        self._autosave: AutosaveCoordinator | None = None
        self._submit_task: asyncio.Task[Attempt] | None = None
        self._last_error: SessionFailure | None = None
        self._log = logger.bind(quiz_id=quiz_id)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def quiz(self) -> Quiz:
        if self._quiz is None:
            raise SessionStateError("quiz is not loaded")
        return self._quiz

    @property
    def attempt(self) -> Attempt:
        if self._attempt is None:
            raise SessionStateError("attempt is not loaded")
        return self._attempt

    @property
    def questions(self) -> tuple[Question, ...]:
        return self._questions

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def current_question(self) -> Question:
        if not self._questions:
            raise SessionStateError("quiz has no questions")
        return self._questions[self._index]

    @property
    def last_error(self) -> SessionFailure | None:
        return self._last_error

    @property
    def remaining_seconds(self) -> int:
        return self._timer.remaining_seconds if self._timer is not None else 0

    @property
    def timer(self) -> AttemptTimer | None:
        return self._timer

    @property
    def time_is_up(self) -> bool:
        return self._timer is not None and self._timer.expired

    @property
    def answers(self) -> AnswerStore:
        if self._store is None:
            raise SessionStateError("attempt is not loaded")
        return self._store

    def save_status(self, question_id: str) -> SaveStatus | None:
        if self._autosave is None:
            return None
        return self._autosave.status(question_id)

    async def load(self) -> None:
        if self._state != SessionState.LOADING:
            raise SessionStateError(f"cannot load a session in state {self._state.value}")
        try:
            quiz = validate_quiz(await self._backend.fetch_quiz(self._quiz_id))
            attempt = await self._backend.start_attempt(self._quiz_id)
        except Exception as exc:
            kind = classify_backend_error(exc, default=SessionErrorKind.LOAD)
            message = _LOAD_FAILED_MESSAGE
            if isinstance(exc, (AttemptBackendError, InvalidQuestionError)):
                message = str(exc) or _LOAD_FAILED_MESSAGE
            self._fail_load(kind, message)
            raise AttemptLoadError(str(exc) or message, kind=kind) from exc

        if not quiz.questions:
            self._fail_load(SessionErrorKind.VALIDATION, "Quiz has no questions.")
            raise AttemptLoadError("quiz has no questions", kind=SessionErrorKind.VALIDATION)

        self._quiz = quiz
        self._attempt = attempt
        self._questions = question_order(quiz, seed=attempt.attempt_id)
        self._store = AnswerStore(attempt.answers)
        self._autosave = AutosaveCoordinator(
            save=self._save_answer,
            scheduler=self._scheduler,
            debounce_seconds=self._settings.autosave_debounce_seconds,
            status_display_seconds=self._settings.autosave_status_display_seconds,
            attempt_id=attempt.attempt_id,
        )
        self._timer = AttemptTimer(
            remaining_seconds=initial_remaining_seconds(
                duration_minutes=quiz.duration_minutes,
                started_at=attempt.started_at,
                now_utc=self._now(),
                policy=self._settings.timer_resume_policy,
            ),
            scheduler=self._scheduler,
            on_expire=self._on_timer_expired,
            tick_seconds=self._settings.timer_tick_seconds,
            low_time_seconds=self._settings.timer_low_time_seconds,
        )
        self._log = self._log.bind(attempt_id=attempt.attempt_id)
        self._state = SessionState.IN_PROGRESS
        self._timer.start()
        self._log.info(
            "attempt_session_loaded",
            question_count=len(self._questions),
            resumed_answers=len(self._store),
            remaining_seconds=self._timer.remaining_seconds,
        )

    def _fail_load(self, kind: SessionErrorKind, message: str) -> None:
        self._state = SessionState.FAILED
        self._last_error = SessionFailure(kind=kind, message=message)
        self._log.warning("attempt_session_load_failed", error_kind=kind.value, error=message)

    # Navigation

    def next(self) -> int:
        return self.jump_to(self._index + 1)

    def previous(self) -> int:
        return self.jump_to(self._index - 1)

    def jump_to(self, index: int) -> int:
        self._require_in_progress()
        if 0 <= index < len(self._questions):
            self._index = index
        return self._index

    # Answers

    def select_option(self, question_id: str, option_id: str) -> Answer:
        question = self._question_for_answer(question_id, _SINGLE_VALUED_TYPES)
        if option_id not in question.option_ids:
            raise InvalidAnswerError(f"option {option_id} does not belong to question {question_id}")
        return self._schedule(self.answers.set_option_answer(question_id, option_id))

    def select_options(self, question_id: str, option_ids: Iterable[str]) -> Answer:
        question = self._question_for_answer(question_id, (QuestionType.MULTIPLE_SELECT,))
        selected = frozenset(option_ids)
        unknown = selected - set(question.option_ids)
        if unknown:
            raise InvalidAnswerError(f"options {sorted(unknown)} do not belong to question {question_id}")
        return self._schedule(self.answers.set_multi_select_answer(question_id, selected))

    def toggle_option(self, question_id: str, option_id: str) -> Answer:
        current = self.answers.get(question_id)
        selected: set[str] = set()
        if current is not None and isinstance(current.value, MultiOptionAnswer):
            selected = set(current.value.option_ids)
        selected ^= {option_id}
        return self.select_options(question_id, selected)

    def answer_text(self, question_id: str, text: str) -> Answer:
        self._question_for_answer(question_id, _TEXT_TYPES)
        return self._schedule(self.answers.set_text_answer(question_id, text))

    def _question_for_answer(
        self,
        question_id: str,
        allowed_types: tuple[QuestionType, ...],
    ) -> Question:
        self._require_in_progress()
        if self.time_is_up:
            raise SessionClosedError("time is up; the attempt can only be submitted")
        question = self.quiz.get_question(question_id)
        if question is None:
            raise InvalidAnswerError(f"question {question_id} is not part of quiz {self._quiz_id}")
        if question.question_type not in allowed_types:
            raise InvalidAnswerError(
                f"question {question_id} of type {question.question_type.value} cannot take this answer"
            )
        return question

    def _schedule(self, answer: Answer) -> Answer:
        assert self._autosave is not None
        self._autosave.schedule(answer)
        return answer

    async def _save_answer(self, question_id: str, answer: Answer) -> None:
        await self._backend.save_answer(self.attempt.attempt_id, question_id, answer_to_payload(answer))

    # Submission

    async def submit(self, *, confirmed: bool) -> Attempt | None:
        """Submit on explicit confirmation; returns None when the student backed out."""
        if not confirmed:
            return None
        return await self._submit(reason="manual")

    def _on_timer_expired(self) -> None:
        if self._state != SessionState.IN_PROGRESS:
            # A submission already in flight; its failure path locks answering.
            self._log.info("attempt_timer_expired_while_submitting", state=self._state.value)
            return
        self._log.info("attempt_auto_submit_triggered", question_index=self._index)
        task = self._start_submission("timer_expired")
        task.add_done_callback(_consume_submission_result)

    async def _submit(self, *, reason: str) -> Attempt:
        if self._state == SessionState.SUBMITTED:
            return self.attempt
        task = self._submit_task
        if task is None or task.done() or self._state == SessionState.DISPOSED:
            self._require_in_progress()
            task = self._start_submission(reason)
        return await asyncio.shield(task)

    def _start_submission(self, reason: str) -> asyncio.Task[Attempt]:
        self._state = SessionState.SUBMITTING
        self._submit_task = asyncio.get_running_loop().create_task(self._run_submission(reason))
        return self._submit_task

    async def _run_submission(self, reason: str) -> Attempt:
        assert self._autosave is not None
        self._log.info("attempt_submitting", reason=reason, question_index=self._index)

        failed_question_ids = await self._autosave.flush_all()
        if failed_question_ids:
            self._last_error = SessionFailure(
                kind=SessionErrorKind.AUTOSAVE,
                message="Some answers could not be saved before submission.",
            )
            self._log.warning("attempt_flush_failed", question_ids=failed_question_ids)

        try:
            completed = await self._backend.complete_attempt(self.attempt.attempt_id)
        except Exception as exc:
            kind = classify_backend_error(exc, default=SessionErrorKind.SUBMISSION)
            message = _SUBMIT_FAILED_MESSAGE
            if isinstance(exc, AttemptBackendError):
                message = str(exc) or _SUBMIT_FAILED_MESSAGE
            if self._state == SessionState.SUBMITTING:
                self._state = SessionState.IN_PROGRESS
                if self.time_is_up:
                    # Out of time: answers stay as flushed, only a resubmit remains.
                    self._autosave.close()
                    self.answers.freeze()
            self._last_error = SessionFailure(kind=kind, message=message)
            self._log.warning(
                "attempt_submission_failed",
                error_kind=kind.value,
                error=str(exc),
                time_is_up=self.time_is_up,
            )
            raise AttemptSubmissionError(str(exc) or message, kind=kind) from exc

        self._attempt = completed
        self._close_resources()
        self._state = SessionState.SUBMITTED
        self._log.info(
            "attempt_submitted",
            reason=reason,
            status=completed.status.value,
            score=completed.score,
            percentage=completed.percentage,
        )
        return completed

    async def wait_idle(self) -> None:
        """Wait for background saves and any timer-triggered submission to settle."""
        if self._autosave is not None:
            await self._autosave.wait_idle()
        task = self._submit_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    def dispose(self) -> None:
        """Tear down on navigation away; the attempt stays resumable server-side."""
        if self._state in (SessionState.SUBMITTED, SessionState.DISPOSED):
            return
        self._close_resources()
        if self._submit_task is not None and not self._submit_task.done():
            self._submit_task.cancel()
        self._state = SessionState.DISPOSED
        self._log.info("attempt_session_disposed")

    def _close_resources(self) -> None:
        if self._timer is not None:
            self._timer.stop()
        if self._autosave is not None:
            self._autosave.close()
        if self._store is not None:
            self._store.freeze()

    def _require_in_progress(self) -> None:
        if self._state in (SessionState.SUBMITTED, SessionState.DISPOSED):
            raise SessionClosedError(f"session is {self._state.value}")
        if self._state != SessionState.IN_PROGRESS:
            raise SessionStateError(f"session is {self._state.value}")
