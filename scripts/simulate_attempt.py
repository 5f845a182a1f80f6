"""
Attempt session walkthrough against the in-memory backend on a real event loop.
Run: python scripts/simulate_attempt.py [--auto-submit]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from quizportal.attempts.errors import AttemptLoadError, AttemptSubmissionError  # noqa: E402
from quizportal.attempts.in_memory_backend import InMemoryAttemptBackend  # noqa: E402
from quizportal.attempts.session import AttemptSession  # noqa: E402
from quizportal.attempts.types import Feedback, SessionState  # noqa: E402
from quizportal.core.config import Settings  # noqa: E402
from quizportal.core.logging import configure_logging  # noqa: E402
from quizportal.grading.results import build_attempt_result  # noqa: E402
from quizportal.quizzes.types import (  # noqa: E402
    Question,
    QuestionOption,
    QuestionType,
    Quiz,
    true_false_options,
)

DEMO_QUIZ_ID = "demo-quiz"


def _demo_quiz() -> Quiz:
    return Quiz(
        quiz_id=DEMO_QUIZ_ID,
        title="Demo quiz",
        duration_minutes=1,
        passing_score=70,
        is_published=True,
        questions=(
            Question(
                question_id="q1",
                question_type=QuestionType.SINGLE_CHOICE,
                points=5,
                text="Which option is correct?",
                options=(
                    QuestionOption(option_id="A", text="A"),
                    QuestionOption(option_id="B", text="B", is_correct=True),
                ),
            ),
            Question(
                question_id="q2",
                question_type=QuestionType.MULTIPLE_SELECT,
                points=3,
                text="Pick A and C",
                options=(
                    QuestionOption(option_id="A", text="A", is_correct=True),
                    QuestionOption(option_id="B", text="B"),
                    QuestionOption(option_id="C", text="C", is_correct=True),
                ),
            ),
            Question(
                question_id="q3",
                question_type=QuestionType.TRUE_FALSE,
                points=2,
                text="The sky is blue.",
                options=true_false_options(correct=True),
            ),
            Question(
                question_id="q4",
                question_type=QuestionType.ESSAY,
                points=10,
                text="Explain debouncing.",
            ),
        ),
    )


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Simulate one quiz attempt end to end")
    parser.add_argument("--auto-submit", action="store_true", help="let the timer submit the attempt")
    parser.add_argument("--tick-seconds", type=float, default=0.01)
    parser.add_argument("--debounce-seconds", type=float, default=0.05)
    parser.add_argument("--log-level", default="WARNING")
    return parser.parse_args()


async def _run(args: argparse.Namespace) -> int:
    settings = Settings(
        LOG_LEVEL=args.log_level,
        AUTOSAVE_DEBOUNCE_SECONDS=args.debounce_seconds,
        AUTOSAVE_STATUS_DISPLAY_SECONDS=args.debounce_seconds * 2,
        TIMER_TICK_SECONDS=args.tick_seconds,
    )
    configure_logging(settings.log_level)
    backend = InMemoryAttemptBackend([_demo_quiz()])
    session = AttemptSession(quiz_id=DEMO_QUIZ_ID, backend=backend, settings=settings)

    try:
        await session.load()
    except AttemptLoadError as exc:
        print(f"[LOAD FAILED] {exc.kind.value}: {exc}")
        return 1

    print(f"[LOADED] {len(session.questions)} questions, {session.timer.display} left")
    session.select_option("q1", "A")
    session.select_option("q1", "B")
    session.next()
    session.toggle_option("q2", "A")
    session.toggle_option("q2", "C")
    session.next()
    session.select_option("q3", "true")
    session.next()
    session.answer_text("q4", "Trailing-edge delay before persisting.")

    try:
        if args.auto_submit:
            ticks = session.remaining_seconds
            print(f"[WAITING] timer expiry after {ticks} ticks")
            await asyncio.sleep((ticks + 5) * args.tick_seconds)
            await session.wait_idle()
        else:
            await session.submit(confirmed=True)
    except AttemptSubmissionError as exc:
        print(f"[SUBMIT FAILED] {exc.kind.value}: {exc}")
        return 1
    if session.state != SessionState.SUBMITTED:
        print(f"[NOT SUBMITTED] state={session.state.value} error={session.last_error}")
        return 1

    attempt = session.attempt
    print(f"[SUBMITTED] status={attempt.status.value} score={attempt.score} pct={attempt.percentage:.2f}")

    graded = await backend.grade_attempt(
        attempt.attempt_id,
        {"q4": Feedback(score=8, comment="Clear explanation.")},
        "Good work overall.",
        graded_by="faculty-1",
    )
    result = build_attempt_result(session.quiz, graded)
    print(
        f"[GRADED] score={result.score}/{result.total_points} "
        f"pct={result.percentage:.2f} passed={result.passed}"
    )
    for review in result.reviews:
        print(f"  {review.question_id}: {review.points_earned}/{review.points} correct={review.is_correct}")
    return 0


def main() -> int:
    args = _parse_args()
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
