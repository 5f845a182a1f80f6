from __future__ import annotations

import pytest

from quizportal.quizzes.errors import InvalidQuestionError, NotObjectiveQuestionError
from quizportal.quizzes.rules import (
    answer_matches_question,
    is_objective,
    question_order,
    score_answer,
    total_points,
    validate_question,
    validate_quiz,
)
from quizportal.quizzes.types import (
    MultiOptionAnswer,
    OptionAnswer,
    Question,
    QuestionOption,
    QuestionType,
    TextAnswer,
)
from tests.quizzes.quiz_fixtures import (
    build_quiz,
    essay_question,
    multi_select_question,
    short_answer_question,
    single_choice_question,
    true_false_question,
)


def test_objective_types_are_choice_types_only() -> None:
    assert is_objective(single_choice_question()) is True
    assert is_objective(multi_select_question()) is True
    assert is_objective(true_false_question()) is True
    assert is_objective(short_answer_question()) is False
    assert is_objective(essay_question()) is False


def test_single_choice_correct_option_earns_full_points() -> None:
    question = single_choice_question(points=5, correct="B")

    result = score_answer(question, OptionAnswer(option_id="B"))

    assert result.is_correct is True
    assert result.points_earned == 5


def test_single_choice_wrong_option_earns_zero() -> None:
    result = score_answer(single_choice_question(points=5), OptionAnswer(option_id="A"))

    assert result.is_correct is False
    assert result.points_earned == 0


def test_multiple_select_superset_scores_zero() -> None:
    question = multi_select_question(points=4, correct=frozenset({"A", "C"}))

    result = score_answer(question, MultiOptionAnswer(option_ids=frozenset({"A", "B", "C"})))

    assert result.is_correct is False
    assert result.points_earned == 0


def test_multiple_select_subset_scores_zero() -> None:
    question = multi_select_question(points=4, correct=frozenset({"A", "C"}))

    result = score_answer(question, MultiOptionAnswer(option_ids=frozenset({"A"})))

    assert result.points_earned == 0


def test_multiple_select_exact_set_earns_full_points() -> None:
    question = multi_select_question(points=4, correct=frozenset({"A", "C"}))

    result = score_answer(question, MultiOptionAnswer(option_ids=frozenset({"C", "A"})))

    assert result.is_correct is True
    assert result.points_earned == 4


@pytest.mark.parametrize(
    ("correct", "selected", "expected_points"),
    [
        (True, "true", 2),
        (True, "false", 0),
        (False, "false", 2),
        (False, "true", 0),
    ],
)
def test_true_false_compares_literal_values(correct: bool, selected: str, expected_points: int) -> None:
    question = true_false_question(points=2, correct=correct)

    result = score_answer(question, OptionAnswer(option_id=selected))

    assert result.points_earned == expected_points


def test_mismatched_answer_shape_scores_zero() -> None:
    result = score_answer(single_choice_question(), MultiOptionAnswer(option_ids=frozenset({"B"})))

    assert result.is_correct is False
    assert result.points_earned == 0


@pytest.mark.parametrize("question", [essay_question(), short_answer_question()])
def test_free_text_questions_are_never_auto_scored(question: Question) -> None:
    with pytest.raises(NotObjectiveQuestionError):
        score_answer(question, TextAnswer(text="anything"))


def test_score_answer_is_repeatable() -> None:
    question = multi_select_question()
    answer = MultiOptionAnswer(option_ids=frozenset({"A", "C"}))

    assert score_answer(question, answer) == score_answer(question, answer)


def test_choice_question_needs_two_options() -> None:
    question = Question(
        question_id="q",
        question_type=QuestionType.SINGLE_CHOICE,
        points=1,
        options=(QuestionOption(option_id="A", text="A", is_correct=True),),
    )

    with pytest.raises(InvalidQuestionError):
        validate_question(question)


def test_choice_question_needs_a_correct_option() -> None:
    question = Question(
        question_id="q",
        question_type=QuestionType.MULTIPLE_SELECT,
        points=1,
        options=(
            QuestionOption(option_id="A", text="A"),
            QuestionOption(option_id="B", text="B"),
        ),
    )

    with pytest.raises(InvalidQuestionError):
        validate_question(question)


def test_single_choice_rejects_two_correct_options() -> None:
    question = Question(
        question_id="q",
        question_type=QuestionType.SINGLE_CHOICE,
        points=1,
        options=(
            QuestionOption(option_id="A", text="A", is_correct=True),
            QuestionOption(option_id="B", text="B", is_correct=True),
        ),
    )

    with pytest.raises(InvalidQuestionError):
        validate_question(question)


def test_question_must_be_worth_points() -> None:
    with pytest.raises(InvalidQuestionError):
        validate_question(essay_question(points=0))


def test_validate_quiz_rejects_duplicate_question_ids() -> None:
    quiz = build_quiz(single_choice_question("q1"), essay_question("q1"))

    with pytest.raises(InvalidQuestionError):
        validate_quiz(quiz)


def test_total_points_sums_question_points() -> None:
    quiz = build_quiz()

    assert total_points(quiz.questions) == 5 + 4 + 2 + 3 + 10
    assert quiz.total_points == total_points(quiz.questions)


def test_answer_matches_question_checks_shape_and_options() -> None:
    question = single_choice_question(option_ids=("A", "B"))

    assert answer_matches_question(question, OptionAnswer(option_id="A")) is True
    assert answer_matches_question(question, OptionAnswer(option_id="Z")) is False
    assert answer_matches_question(question, TextAnswer(text="A")) is False
    assert answer_matches_question(essay_question(), TextAnswer(text="")) is True


def test_question_order_keeps_authoring_order_without_randomize() -> None:
    quiz = build_quiz()

    assert question_order(quiz, seed="attempt-1") == quiz.questions


def test_randomized_order_is_stable_per_seed() -> None:
    quiz = build_quiz(randomize_order=True)

    first = question_order(quiz, seed="attempt-1")
    again = question_order(quiz, seed="attempt-1")

    assert first == again
    assert sorted(q.question_id for q in first) == sorted(q.question_id for q in quiz.questions)
