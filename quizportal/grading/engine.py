from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

import structlog

from quizportal.attempts.types import Answer, Attempt, AttemptStatus, Feedback
from quizportal.grading.errors import AttemptNotGradableError
from quizportal.grading.rules import aggregate_score, clamp_points, compute_percentage, is_passing
from quizportal.quizzes.errors import UnknownQuestionError
from quizportal.quizzes.rules import is_objective, score_answer
from quizportal.quizzes.types import Quiz

logger = structlog.get_logger("quizportal.grading.engine")


class GradingEngine:
    @staticmethod
    def recompute_totals(quiz: Quiz, attempt: Attempt) -> Attempt:
        attempt.score = aggregate_score(attempt.answers.values())
        attempt.percentage = compute_percentage(attempt.score, total_points=quiz.total_points)
        attempt.passed = is_passing(attempt.percentage, passing_score=quiz.passing_score)
        return attempt

    @staticmethod
    def _ordered_answers(quiz: Quiz, answers: Mapping[str, Answer]) -> dict[str, Answer]:
        return {
            question.question_id: answers[question.question_id]
            for question in quiz.questions
            if question.question_id in answers
        }

    @staticmethod
    def apply_objective_pass(quiz: Quiz, attempt: Attempt, *, now_utc: datetime) -> Attempt:
        """Score objective answers and move the attempt out of ``in-progress``.

        Subjective answers count zero until graded manually. A quiz without
        subjective questions is fully graded by this pass alone.
        """
        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise AttemptNotGradableError(f"attempt {attempt.attempt_id} is already {attempt.status.value}")

        attempt.answers = GradingEngine._ordered_answers(quiz, attempt.answers)
        for question in quiz.questions:
            answer = attempt.answers.get(question.question_id)
            if answer is None:
                continue
            if is_objective(question):
                result = score_answer(question, answer.value)
                answer.is_correct = result.is_correct
                answer.points_earned = result.points_earned
            else:
                answer.is_correct = None
                answer.points_earned = 0

        attempt.status = AttemptStatus.COMPLETED
        attempt.ended_at = now_utc
        GradingEngine.recompute_totals(quiz, attempt)

        pending = GradingEngine.pending_manual_question_ids(quiz, attempt)
        if not any(not is_objective(question) for question in quiz.questions):
            attempt.status = AttemptStatus.GRADED
            attempt.graded_at = now_utc
        else:
            logger.info(
                "attempt_needs_manual_grading",
                attempt_id=attempt.attempt_id,
                quiz_id=quiz.quiz_id,
                pending_question_ids=pending,
            )
        return attempt

    @staticmethod
    def apply_manual_grades(
        quiz: Quiz,
        attempt: Attempt,
        grades: Mapping[str, Feedback],
        *,
        overall_feedback: str | None,
        graded_by: str | None,
        now_utc: datetime,
    ) -> Attempt:
        """Merge instructor scores and feedback, then recompute the aggregate.

        Scores outside ``[0, points]`` are clamped rather than rejected. Any
        question may be graded, objective ones included as overrides. Grades
        for questions the student left unanswered carry no points and are
        skipped.
        """
        if attempt.status == AttemptStatus.IN_PROGRESS:
            raise AttemptNotGradableError(f"attempt {attempt.attempt_id} has not been completed")

        for question_id, grade in grades.items():
            question = quiz.get_question(question_id)
            if question is None:
                raise UnknownQuestionError(f"question {question_id} is not part of quiz {quiz.quiz_id}")

            answer = attempt.answers.get(question_id)
            if answer is None:
                logger.warning(
                    "attempt_grade_for_unanswered_question",
                    attempt_id=attempt.attempt_id,
                    question_id=question_id,
                )
                continue

            score = answer.points_earned
            if grade.score is not None:
                score = clamp_points(grade.score, max_points=question.points)
                if score != grade.score:
                    logger.warning(
                        "attempt_grade_clamped",
                        attempt_id=attempt.attempt_id,
                        question_id=question_id,
                        requested=grade.score,
                        applied=score,
                        max_points=question.points,
                    )
                answer.points_earned = score
                if is_objective(question):
                    answer.is_correct = score >= question.points

            answer.feedback = Feedback(score=score, comment=grade.comment)

        if overall_feedback is not None:
            attempt.overall_feedback = overall_feedback
        GradingEngine.recompute_totals(quiz, attempt)
        attempt.status = AttemptStatus.GRADED
        attempt.graded_by = graded_by
        attempt.graded_at = now_utc
        return attempt

    @staticmethod
    def pending_manual_question_ids(quiz: Quiz, attempt: Attempt) -> list[str]:
        return [
            question.question_id
            for question in quiz.questions
            if not is_objective(question)
            and question.question_id in attempt.answers
            and attempt.answers[question.question_id].feedback is None
        ]
