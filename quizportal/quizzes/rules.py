from __future__ import annotations

import random

from quizportal.quizzes.errors import InvalidQuestionError, NotObjectiveQuestionError
from quizportal.quizzes.types import (
    CHOICE_QUESTION_TYPES,
    FALSE_OPTION_ID,
    OBJECTIVE_QUESTION_TYPES,
    TRUE_OPTION_ID,
    AnswerValue,
    MultiOptionAnswer,
    ObjectiveScore,
    OptionAnswer,
    Question,
    QuestionType,
    Quiz,
    TextAnswer,
)

_MIN_CHOICE_OPTIONS = 2
_SINGLE_VALUED_TYPES: frozenset[QuestionType] = frozenset(
    {QuestionType.SINGLE_CHOICE, QuestionType.TRUE_FALSE}
)


def is_objective(question: Question) -> bool:
    return question.question_type in OBJECTIVE_QUESTION_TYPES


def validate_question(question: Question) -> Question:
    if question.points <= 0:
        raise InvalidQuestionError(f"question {question.question_id} must be worth at least one point")
    if question.question_type not in CHOICE_QUESTION_TYPES:
        return question

    if len(question.options) < _MIN_CHOICE_OPTIONS:
        raise InvalidQuestionError(f"question {question.question_id} needs at least two options")
    if len(set(question.option_ids)) != len(question.options):
        raise InvalidQuestionError(f"question {question.question_id} has duplicate option ids")

    correct_count = len(question.correct_option_ids)
    if correct_count == 0:
        raise InvalidQuestionError(f"question {question.question_id} has no correct option")
    if question.question_type in _SINGLE_VALUED_TYPES and correct_count != 1:
        raise InvalidQuestionError(f"question {question.question_id} must have exactly one correct option")
    if question.question_type == QuestionType.TRUE_FALSE and set(question.option_ids) != {
        TRUE_OPTION_ID,
        FALSE_OPTION_ID,
    }:
        raise InvalidQuestionError(f"question {question.question_id} must use 'true'/'false' option ids")
    return question


def validate_quiz(quiz: Quiz) -> Quiz:
    seen: set[str] = set()
    for question in quiz.questions:
        if question.question_id in seen:
            raise InvalidQuestionError(f"duplicate question id {question.question_id}")
        seen.add(question.question_id)
        validate_question(question)
    return quiz


def total_points(questions: tuple[Question, ...] | list[Question]) -> int:
    return sum(question.points for question in questions)


def answer_matches_question(question: Question, value: AnswerValue) -> bool:
    """Check that the answer shape fits the question type and references known options."""
    if question.question_type in _SINGLE_VALUED_TYPES:
        return isinstance(value, OptionAnswer) and value.option_id in question.option_ids
    if question.question_type == QuestionType.MULTIPLE_SELECT:
        return isinstance(value, MultiOptionAnswer) and value.option_ids <= set(question.option_ids)
    return isinstance(value, TextAnswer)


def score_answer(question: Question, value: AnswerValue) -> ObjectiveScore:
    """Score an objective answer all-or-nothing.

    Multiple-select requires the exact correct set; supersets and subsets both
    score zero. Free-text questions are never scored here.
    """
    if not is_objective(question):
        raise NotObjectiveQuestionError(
            f"question {question.question_id} of type {question.question_type.value} is graded manually"
        )

    if question.question_type == QuestionType.MULTIPLE_SELECT:
        is_correct = (
            isinstance(value, MultiOptionAnswer) and value.option_ids == question.correct_option_ids
        )
    else:
        is_correct = isinstance(value, OptionAnswer) and value.option_id == question.correct_option_id

    return ObjectiveScore(
        is_correct=is_correct,
        points_earned=question.points if is_correct else 0,
    )


def question_order(quiz: Quiz, *, seed: str) -> tuple[Question, ...]:
    if not quiz.randomize_order:
        return quiz.questions
    shuffled = list(quiz.questions)
    random.Random(f"{quiz.quiz_id}:{seed}").shuffle(shuffled)
    return tuple(shuffled)
