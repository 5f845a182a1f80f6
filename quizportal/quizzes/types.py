from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

TRUE_OPTION_ID = "true"
FALSE_OPTION_ID = "false"


class QuestionType(str, Enum):
    SINGLE_CHOICE = "single-choice"
    MULTIPLE_SELECT = "multiple-select"
    TRUE_FALSE = "true-false"
    SHORT_ANSWER = "short-answer"
    ESSAY = "essay"


OBJECTIVE_QUESTION_TYPES: frozenset[QuestionType] = frozenset(
    {
        QuestionType.SINGLE_CHOICE,
        QuestionType.MULTIPLE_SELECT,
        QuestionType.TRUE_FALSE,
    }
)
CHOICE_QUESTION_TYPES = OBJECTIVE_QUESTION_TYPES


@dataclass(frozen=True, slots=True)
class QuestionOption:
    option_id: str
    text: str
    is_correct: bool = False


@dataclass(frozen=True, slots=True)
class Question:
    question_id: str
    question_type: QuestionType
    points: int
    text: str = ""
    options: tuple[QuestionOption, ...] = ()
    explanation: str | None = None

    @property
    def correct_option_ids(self) -> frozenset[str]:
        return frozenset(option.option_id for option in self.options if option.is_correct)

    @property
    def correct_option_id(self) -> str | None:
        for option in self.options:
            if option.is_correct:
                return option.option_id
        return None

    @property
    def option_ids(self) -> tuple[str, ...]:
        return tuple(option.option_id for option in self.options)


@dataclass(frozen=True, slots=True)
class Quiz:
    quiz_id: str
    questions: tuple[Question, ...]
    duration_minutes: int = 60
    passing_score: float = 60.0
    title: str = ""
    allow_review: bool = True
    show_results: bool = True
    randomize_order: bool = False
    is_published: bool = False
    allow_multiple_attempts: bool = False
    start_at: datetime | None = None
    end_at: datetime | None = None
    _questions_by_id: dict[str, Question] = field(
        init=False,
        repr=False,
        compare=False,
        default_factory=dict,
    )

    def __post_init__(self) -> None:
        self._questions_by_id.update({question.question_id: question for question in self.questions})

    @property
    def total_points(self) -> int:
        return sum(question.points for question in self.questions)

    @property
    def question_count(self) -> int:
        return len(self.questions)

    def get_question(self, question_id: str) -> Question | None:
        return self._questions_by_id.get(question_id)


def true_false_options(*, correct: bool) -> tuple[QuestionOption, QuestionOption]:
    return (
        QuestionOption(option_id=TRUE_OPTION_ID, text="True", is_correct=correct),
        QuestionOption(option_id=FALSE_OPTION_ID, text="False", is_correct=not correct),
    )


@dataclass(frozen=True, slots=True)
class OptionAnswer:
    """Single selected option; used by single-choice and true-false questions."""

    option_id: str


@dataclass(frozen=True, slots=True)
class MultiOptionAnswer:
    option_ids: frozenset[str]


@dataclass(frozen=True, slots=True)
class TextAnswer:
    text: str


AnswerValue = OptionAnswer | MultiOptionAnswer | TextAnswer


@dataclass(frozen=True, slots=True)
class ObjectiveScore:
    is_correct: bool
    points_earned: int
