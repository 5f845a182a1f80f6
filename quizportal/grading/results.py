from __future__ import annotations

from dataclasses import dataclass

from quizportal.attempts.types import Attempt, AttemptStatus
from quizportal.grading.errors import ResultsNotAvailableError
from quizportal.quizzes.rules import is_objective
from quizportal.quizzes.types import AnswerValue, QuestionType, Quiz


@dataclass(frozen=True, slots=True)
class QuestionReview:
    question_id: str
    question_type: QuestionType
    points: int
    points_earned: float
    is_correct: bool | None
    answer: AnswerValue | None
    correct_option_ids: frozenset[str]
    explanation: str | None
    feedback: str | None


@dataclass(frozen=True, slots=True)
class AttemptResult:
    attempt_id: str
    status: AttemptStatus
    total_points: int
    question_count: int
    passing_score: float
    score: float | None
    percentage: float | None
    passed: bool | None
    correct_count: int | None
    overall_feedback: str | None
    awaiting_manual_grading: bool
    reviews: tuple[QuestionReview, ...] = ()


def build_attempt_result(quiz: Quiz, attempt: Attempt) -> AttemptResult:
    """Student-facing outcome of a finished attempt.

    Scores are hidden unless the quiz shows results; per-question review is
    included only when the quiz allows review.
    """
    if attempt.status == AttemptStatus.IN_PROGRESS:
        raise ResultsNotAvailableError(f"attempt {attempt.attempt_id} is still in progress")

    reviews: tuple[QuestionReview, ...] = ()
    if quiz.allow_review:
        reviews = tuple(
            QuestionReview(
                question_id=question.question_id,
                question_type=question.question_type,
                points=question.points,
                points_earned=answer.points_earned if answer is not None else 0,
                is_correct=answer.is_correct if answer is not None else None,
                answer=answer.value if answer is not None else None,
                correct_option_ids=question.correct_option_ids if is_objective(question) else frozenset(),
                explanation=question.explanation,
                feedback=(answer.feedback.comment or None) if answer is not None and answer.feedback else None,
            )
            for question in quiz.questions
            for answer in (attempt.answers.get(question.question_id),)
        )

    shown = quiz.show_results
    return AttemptResult(
        attempt_id=attempt.attempt_id,
        status=attempt.status,
        total_points=quiz.total_points,
        question_count=quiz.question_count,
        passing_score=quiz.passing_score,
        score=attempt.score if shown else None,
        percentage=attempt.percentage if shown else None,
        passed=attempt.passed if shown else None,
        correct_count=sum(1 for answer in attempt.answers.values() if answer.is_correct) if shown else None,
        overall_feedback=attempt.overall_feedback,
        awaiting_manual_grading=attempt.status == AttemptStatus.COMPLETED,
        reviews=reviews,
    )
